"""
Editing a draft session's checklist.

Members fill in or skip entries, adjust splits and add one-off manual
lines. Entries for existing payments mirror the payment: they can be
included or skipped, but their amount and splits come from the payment.
"""

import logging
from datetime import date
from typing import Dict, List, Optional, Sequence
from uuid import UUID

from django.db import transaction
from django.utils import timezone

from apps.accounts.models import User
from apps.expenses.models import SplitType
from apps.groups.services import is_group_member
from apps.settlements.models import (
    EntryStatus,
    EntryType,
    SessionStatus,
    SettlementEntry,
    SettlementEntrySplit,
)

from .exceptions import (
    EntryNotEditableError,
    InvalidEntryInputError,
    NotGroupMemberError,
    SessionNotFoundError,
)
from .session_access import lock_session

logger = logging.getLogger(__name__)


def _lock_entry(entry_id: UUID, user: User) -> SettlementEntry:
    """Lock the entry's session (draft only) and return the entry."""
    try:
        session_id = SettlementEntry.objects.values_list('session_id', flat=True).get(id=entry_id)
    except SettlementEntry.DoesNotExist:
        raise SessionNotFoundError(f"Settlement entry {entry_id} not found")

    session = lock_session(session_id, user, required_status=SessionStatus.DRAFT)
    entry = SettlementEntry.objects.select_related('source_payment', 'rule').get(id=entry_id)
    entry.session = session
    return entry


def _require_member(group_id: UUID, user_id: UUID, role: str) -> None:
    if not is_group_member(group_id, user_id):
        raise NotGroupMemberError(f"The {role} must be a member of this group")


def _write_splits(entry: SettlementEntry, splits: Sequence[Dict]) -> None:
    entry.splits.all().delete()
    SettlementEntrySplit.objects.bulk_create([
        SettlementEntrySplit(entry=entry, user_id=s['user_id'], amount=s['amount'])
        for s in splits
    ])


def _check_splits(group_id: UUID, splits: Sequence[Dict], amount: Optional[int]) -> None:
    if amount is None:
        raise InvalidEntryInputError("Set an amount before splitting the entry")

    seen = set()
    total = 0
    for s in splits:
        if s['user_id'] in seen:
            raise InvalidEntryInputError(f"Duplicate split for user {s['user_id']}")
        seen.add(s['user_id'])
        _require_member(group_id, s['user_id'], 'split user')
        total += s['amount']

    if total != amount:
        raise InvalidEntryInputError(
            f"Splits total ({total}) does not match entry amount ({amount})"
        )


def _resolve_rule_splits(entry: SettlementEntry, amount: int) -> Optional[List[Dict]]:
    """
    Re-apply a rule's percentage template to the amount actually paid.

    The floor remainder goes to the payer's share (or the first share when
    the payer has none). Returns None for templates of fixed amounts.
    """
    rule = entry.rule
    if rule is None:
        return None

    template = list(rule.splits.all())
    if not template or all(line.amount is not None for line in template):
        return None

    splits = [
        {'user_id': line.user_id, 'amount': line.resolve_amount(amount)}
        for line in template
    ]
    leftover = amount - sum(s['amount'] for s in splits)
    if leftover > 0:
        target = next(
            (s for s in splits if str(s['user_id']) == str(entry.payer_id)),
            splits[0],
        )
        target['amount'] += leftover
    return splits


def _apply_fill_splits(entry: SettlementEntry, amount: int, splits: Optional[List[Dict]]) -> None:
    """Make a filled entry's splits add up to its amount."""
    if splits is None and entry.split_type == SplitType.CUSTOM:
        splits = _resolve_rule_splits(entry, amount)

    if splits is not None:
        if splits:
            _check_splits(entry.session.group_id, splits, amount)
            entry.split_type = SplitType.CUSTOM
        else:
            entry.split_type = SplitType.EQUAL
        _write_splits(entry, splits)
        return

    if entry.split_type == SplitType.CUSTOM:
        total = sum(s.amount for s in entry.splits.all())
        if total != amount:
            raise InvalidEntryInputError(
                f"Splits total ({total}) does not match entry amount ({amount}); "
                "send new splits with the amount"
            )


@transaction.atomic
def update_entry(
    *,
    entry_id: UUID,
    user: User,
    status: str,
    actual_amount: Optional[int] = None,
    payer_id: Optional[UUID] = None,
    payment_date: Optional[date] = None,
    splits: Optional[List[Dict]] = None,
) -> SettlementEntry:
    """
    Fill, skip or reopen an entry.

    Filling a custom entry requires its splits to add up to the amount.
    Percentage templates of rule entries are re-applied to the amount;
    otherwise pass ``splits`` along with a changed amount.

    Args:
        entry_id: UUID of the entry
        user: Member making the change
        status: 'filled', 'skipped' or 'pending'
        actual_amount: Required (> 0) when filling a rule or manual entry
        payer_id: Optional new payer
        payment_date: Optional new date
        splits: Optional replacement split, only when filling

    Returns:
        Updated SettlementEntry

    Raises:
        SessionNotFoundError: If the entry doesn't exist
        NotGroupMemberError: If user or payer is not a member
        InvalidSessionStatusError: If the session is not a draft
        InvalidEntryInputError: If filling without a positive amount, or
            with splits that don't add up to it
        EntryNotEditableError: If changing the amount, payer, date or split
            of an entry that mirrors an existing payment
    """
    entry = _lock_entry(entry_id, user)
    group_id = entry.session.group_id

    if splits is not None and status != EntryStatus.FILLED:
        raise InvalidEntryInputError("Splits can only be set when filling an entry")

    if entry.entry_type == EntryType.EXISTING:
        payment = entry.source_payment
        changes_payment = (
            (actual_amount is not None and actual_amount != entry.expected_amount)
            or (payer_id is not None and str(payer_id) != str(entry.payer_id))
            or (payment_date is not None and payment_date != entry.payment_date)
            or splits is not None
        )
        if changes_payment or status == EntryStatus.PENDING:
            raise EntryNotEditableError("Edit the payment itself to change this entry")
        actual_amount = payment.amount if payment is not None else entry.expected_amount

    if payer_id is not None:
        _require_member(group_id, payer_id, 'payer')
        entry.payer_id = payer_id
    if payment_date is not None:
        entry.payment_date = payment_date

    now = timezone.now()
    if status == EntryStatus.FILLED:
        if actual_amount is None or actual_amount <= 0:
            raise InvalidEntryInputError("A filled entry needs an amount greater than 0")
        if entry.payer_id is None:
            raise InvalidEntryInputError("A filled entry needs a payer")
        if entry.entry_type != EntryType.EXISTING:
            _apply_fill_splits(entry, actual_amount, splits)
        entry.actual_amount = actual_amount
        entry.filled_by = user
        entry.filled_at = now
    elif status == EntryStatus.SKIPPED:
        entry.actual_amount = None
        entry.filled_by = user
        entry.filled_at = now
    elif status == EntryStatus.PENDING:
        entry.actual_amount = None
        entry.filled_by = None
        entry.filled_at = None
    else:
        raise InvalidEntryInputError(f"Unknown entry status '{status}'")

    entry.status = status
    entry.save()

    logger.info("User %s set entry %s to %s", user.id, entry.id, status)
    return entry


@transaction.atomic
def replace_entry_splits(*, entry_id: UUID, user: User, splits: List[Dict]) -> SettlementEntry:
    """
    Replace an entry's custom split. An empty list returns it to equal.

    Each split is ``{'user_id': UUID, 'amount': int}``; they must add up to
    the entry's actual amount (or expected amount while still pending).

    Raises:
        SessionNotFoundError, NotGroupMemberError, InvalidSessionStatusError
        EntryNotEditableError: If the entry mirrors an existing payment
        InvalidEntryInputError: If the splits don't add up
    """
    entry = _lock_entry(entry_id, user)

    if entry.entry_type == EntryType.EXISTING:
        raise EntryNotEditableError("Edit the payment itself to change its split")

    if splits:
        amount = entry.actual_amount if entry.actual_amount is not None else entry.expected_amount
        _check_splits(entry.session.group_id, splits, amount)
        entry.split_type = SplitType.CUSTOM
    else:
        entry.split_type = SplitType.EQUAL

    _write_splits(entry, splits)
    entry.save(update_fields=['split_type', 'updated_at'])
    return entry


@transaction.atomic
def add_manual_entry(
    *,
    session_id: UUID,
    user: User,
    description: str,
    payment_date: date,
    payer_id: UUID,
    actual_amount: Optional[int] = None,
    category_id: Optional[UUID] = None,
    splits: Optional[List[Dict]] = None,
) -> SettlementEntry:
    """
    Add a one-off line to a draft checklist.

    With an amount the entry is created filled, otherwise pending.

    Raises:
        SessionNotFoundError, NotGroupMemberError, InvalidSessionStatusError
        InvalidEntryInputError: If splits don't add up to the amount
    """
    session = lock_session(session_id, user, required_status=SessionStatus.DRAFT)
    _require_member(session.group_id, payer_id, 'payer')

    if splits:
        _check_splits(session.group_id, splits, actual_amount)

    filled = actual_amount is not None
    entry = SettlementEntry.objects.create(
        session=session,
        description=description,
        category_id=category_id,
        expected_amount=actual_amount,
        actual_amount=actual_amount,
        payer_id=payer_id,
        payment_date=payment_date,
        status=EntryStatus.FILLED if filled else EntryStatus.PENDING,
        split_type=SplitType.CUSTOM if splits else SplitType.EQUAL,
        entry_type=EntryType.MANUAL,
        filled_by=user if filled else None,
        filled_at=timezone.now() if filled else None,
    )
    if splits:
        _write_splits(entry, splits)

    logger.info("User %s added manual entry %s to session %s", user.id, entry.id, session.id)
    return entry


@transaction.atomic
def delete_manual_entry(*, entry_id: UUID, user: User) -> None:
    """
    Remove a manual entry from a draft checklist.

    Raises:
        SessionNotFoundError, NotGroupMemberError, InvalidSessionStatusError
        EntryNotEditableError: If the entry came from a rule or payment
    """
    entry = _lock_entry(entry_id, user)

    if entry.entry_type != EntryType.MANUAL:
        raise EntryNotEditableError("Only manual entries can be deleted")

    entry.delete()
    logger.info("User %s deleted manual entry %s", user.id, entry_id)

"""
Settlement session lifecycle.

    create    -> draft, checklist generated in the same transaction
    confirm   draft -> pending_payment, or straight to settled when
              nothing needs transferring (zero settlement)
    report    payer attests the transfers were sent
    receipt   recipient confirms, pending_payment -> settled

All state-changing operations are atomic and lock the session row first,
so a failure part-way leaves neither entries nor session half-updated.
"""

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterable, List, Optional, Tuple
from uuid import UUID

from django.db import transaction
from django.db.models import Max, Min
from django.utils import timezone

from apps.accounts.models import User
from apps.expenses.models import Payment, PaymentSplit, SplitType
from apps.expenses.services import SplitTotalMismatchError, get_payment_shares, validate_split_total
from apps.groups.models import GroupMembership
from apps.groups.services import is_group_member
from apps.settlements.models import (
    EntryStatus,
    EntryType,
    SessionStatus,
    SettlementEntry,
    SettlementSession,
)

from .balances import calculate_balances, calculate_entry_balances, calculate_split_balances
from .entry_generation import populate_entries
from .exceptions import (
    InsufficientPermissionsError,
    InvalidEntryInputError,
    InvalidSessionStatusError,
    NoFilledEntriesError,
    NotGroupMemberError,
    NotTransferPartyError,
    PaymentNotReportedError,
    SessionNotFoundError,
)
from .records import (
    EntryInput,
    Member,
    MemberBalance,
    PaymentInput,
    SettlementResult,
    SplitPaymentInput,
    Transfer,
)
from .session_access import lock_session
from .transfers import balances_to_transfers, consolidate_transfers, suggest_settlements

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PeriodSuggestion:
    suggested_start: date
    suggested_end: date
    oldest_unsettled_date: Optional[date]
    last_confirmed_end: Optional[date]
    unsettled_count: int


def get_group_roster(group_id: UUID) -> List[Member]:
    """Members of a group as calculator records, in join order."""
    memberships = (
        GroupMembership.objects
        .filter(group_id=group_id)
        .select_related('user')
        .order_by('joined_at')
    )
    return [
        Member(id=str(m.user_id), display_name=m.user.get_display_name())
        for m in memberships
    ]


# =============================================================================
# Create / delete
# =============================================================================

@transaction.atomic
def create_session(
    *,
    group_id: UUID,
    period_start: date,
    period_end: date,
    user: User
) -> Tuple[SettlementSession, int]:
    """
    Open a draft settlement for a period and generate its checklist.

    Several drafts may exist for a group at the same time.

    Returns:
        (session, number of entries generated)

    Raises:
        NotGroupMemberError: If user is not a member of the group
        InvalidEntryInputError: If period_start is after period_end
    """
    if not is_group_member(group_id, user.id):
        raise NotGroupMemberError("You are not a member of this group")

    if period_start > period_end:
        raise InvalidEntryInputError("period_start must be on or before period_end")

    session = SettlementSession.objects.create(
        group_id=group_id,
        period_start=period_start,
        period_end=period_end,
        status=SessionStatus.DRAFT,
        created_by=user,
    )
    entry_count = populate_entries(session)

    logger.info(
        "User %s opened settlement session %s for %s..%s",
        user.id, session.id, period_start, period_end,
    )
    return session, entry_count


@transaction.atomic
def delete_session(*, session_id: UUID, user: User) -> None:
    """
    Delete a draft session and its entries. Only its creator may do this.

    Raises:
        SessionNotFoundError, NotGroupMemberError, InvalidSessionStatusError
        InsufficientPermissionsError: If user did not create the session
    """
    session = lock_session(session_id, user, required_status=SessionStatus.DRAFT)

    if session.created_by_id != user.id:
        raise InsufficientPermissionsError("Only the creator can delete this session")

    session.delete()
    logger.info("User %s deleted settlement session %s", user.id, session_id)


# =============================================================================
# Confirm
# =============================================================================

def _settlement_basis(session: SettlementSession) -> List[SettlementEntry]:
    """Filled entries that still count towards this settlement."""
    entries = (
        session.entries
        .filter(status=EntryStatus.FILLED)
        .select_related('source_payment')
        .prefetch_related('splits', 'source_payment__splits')
    )

    basis = []
    for entry in entries:
        payment = entry.source_payment
        if payment is not None and payment.settlement_id not in (None, session.id):
            # Consumed by another session since this draft was generated
            logger.warning(
                "Entry %s skipped: payment %s already settled by %s",
                entry.id, payment.id, payment.settlement_id,
            )
            continue
        if entry.actual_amount is None:
            continue
        if entry.payer_id is None:
            raise InvalidEntryInputError(f"Entry '{entry.description}' has no payer")
        basis.append(entry)
    return basis


def _to_entry_input(entry: SettlementEntry) -> EntryInput:
    payment = entry.source_payment
    if entry.entry_type == EntryType.EXISTING and payment is not None:
        # The payment may have been edited since the checklist was generated
        splits = list(payment.splits.all())
        return EntryInput(
            payer_id=str(payment.payer_id),
            amount=payment.amount,
            split_type=SplitType.CUSTOM if splits else SplitType.EQUAL,
            splits={str(s.user_id): s.amount for s in splits},
        )

    return EntryInput(
        payer_id=str(entry.payer_id),
        amount=entry.actual_amount,
        split_type=entry.split_type,
        splits={str(s.user_id): s.amount for s in entry.splits.all()},
    )


def _record_payments(session: SettlementSession, entries: Iterable[SettlementEntry], user: User) -> int:
    """
    Mark the settlement on the payments behind its entries.

    Existing payments get their settlement set; filled rule and manual
    entries become new payments already belonging to the settlement.
    """
    count = 0
    for entry in entries:
        if entry.entry_type == EntryType.EXISTING and entry.source_payment_id is not None:
            count += Payment.objects.filter(
                id=entry.source_payment_id,
                settlement__isnull=True,
            ).update(settlement=session)
            continue

        payment = Payment.objects.create(
            group_id=session.group_id,
            payer_id=entry.payer_id,
            amount=entry.actual_amount,
            description=entry.description or 'Settlement entry',
            category_id=entry.category_id,
            payment_date=entry.payment_date,
            settlement=session,
            created_by=user,
        )
        splits = list(entry.splits.all())
        if entry.split_type == SplitType.CUSTOM and splits:
            try:
                validate_split_total(splits, entry.actual_amount)
            except SplitTotalMismatchError as e:
                raise InvalidEntryInputError(f"Entry '{entry.description}': {e}")
            PaymentSplit.objects.bulk_create([
                PaymentSplit(payment=payment, user_id=s.user_id, amount=s.amount)
                for s in splits
            ])
        entry.source_payment = payment
        entry.save(update_fields=['source_payment', 'updated_at'])
        count += 1

    return count


@transaction.atomic
def confirm_settlement(*, session_id: UUID, user: User) -> int:
    """
    Confirm a draft: compute net transfers and lock in its payments.

    Balances come from the filled entries (custom entries by their splits,
    equal entries floored across the roster with the leftover on the payer)
    and are matched into whole-unit transfers. With no transfers the session
    is a zero settlement and is settled immediately.

    Args:
        session_id: UUID of a draft session
        user: Member confirming

    Returns:
        Number of payments now carrying this session as their settlement

    Raises:
        SessionNotFoundError: If the session doesn't exist
        NotGroupMemberError: If user is not a member of the group
        InvalidSessionStatusError: If the session is not a draft
        NoFilledEntriesError: If no entry is filled
    """
    session = lock_session(session_id, user, required_status=SessionStatus.DRAFT)

    basis = _settlement_basis(session)
    if not basis:
        raise NoFilledEntriesError("No filled entries to confirm")

    balances = calculate_entry_balances(
        get_group_roster(session.group_id),
        [_to_entry_input(e) for e in basis],
    )
    transfers = balances_to_transfers(balances)

    now = timezone.now()
    session.net_transfers = [t.to_dict() for t in transfers]
    session.confirmed_at = now
    session.confirmed_by = user

    if not transfers:
        session.is_zero_settlement = True
        session.status = SessionStatus.SETTLED
        session.settled_at = now
        session.settled_by = user
    else:
        session.status = SessionStatus.PENDING_PAYMENT

    session.save()
    payment_count = _record_payments(session, basis, user)

    logger.info(
        "Settlement session %s confirmed by %s: %s, %d transfers, %d payments",
        session.id, user.id, session.status, len(transfers), payment_count,
    )

    return payment_count


# =============================================================================
# Payment report / receipt
# =============================================================================

@transaction.atomic
def report_payment(*, session_id: UUID, user: User) -> SettlementSession:
    """
    Record that a payer has sent their transfers. Reporting twice is harmless.

    Raises:
        SessionNotFoundError, NotGroupMemberError
        InvalidSessionStatusError: If the session is not pending_payment
        NotTransferPartyError: If user pays no transfer in this session
    """
    session = lock_session(session_id, user, required_status=SessionStatus.PENDING_PAYMENT)

    if str(user.id) not in session.transfer_payer_ids():
        raise NotTransferPartyError("Only a member who owes a transfer can report payment")

    session.payment_reported_at = timezone.now()
    session.payment_reported_by = user
    session.save(update_fields=['payment_reported_at', 'payment_reported_by', 'updated_at'])

    logger.info("User %s reported payment for settlement session %s", user.id, session.id)
    return session


@transaction.atomic
def confirm_settlement_receipt(*, session_id: UUID, user: User) -> int:
    """
    Recipient confirms the transfers arrived; the session becomes settled.

    Returns:
        Number of payments belonging to the now-settled session

    Raises:
        SessionNotFoundError, NotGroupMemberError
        InvalidSessionStatusError: If the session is not pending_payment
        PaymentNotReportedError: If no payment has been reported yet
        NotTransferPartyError: If user receives no transfer in this session
    """
    session = lock_session(session_id, user, required_status=SessionStatus.PENDING_PAYMENT)

    if not session.is_payment_reported:
        raise PaymentNotReportedError("Payment has not been reported yet")

    if str(user.id) not in session.transfer_recipient_ids():
        raise NotTransferPartyError("Only a transfer recipient can confirm receipt")

    session.status = SessionStatus.SETTLED
    session.settled_at = timezone.now()
    session.settled_by = user
    session.save(update_fields=['status', 'settled_at', 'settled_by', 'updated_at'])

    logger.info("User %s confirmed receipt for settlement session %s", user.id, session.id)
    return session.payments.count()


# =============================================================================
# Consolidation
# =============================================================================

def _lock_sessions(session_ids: Iterable[UUID], user: User) -> List[SettlementSession]:
    session_ids = list(dict.fromkeys(session_ids))
    sessions = list(
        SettlementSession.objects
        .select_for_update()
        .filter(id__in=session_ids)
        .order_by('id')
    )

    found = {s.id for s in sessions}
    missing = [sid for sid in session_ids if UUID(str(sid)) not in found]
    if missing:
        raise SessionNotFoundError(f"Settlement session {missing[0]} not found")

    for session in sessions:
        if not is_group_member(session.group_id, user.id):
            raise NotGroupMemberError("You are not a member of this group")
    return sessions


def get_consolidated_transfers(*, session_ids: Iterable[UUID], user: User) -> Tuple[List[Transfer], bool]:
    """
    Net the pending transfers of several sessions into one set.

    Returns:
        (transfers, is_zero)

    Raises:
        SessionNotFoundError, NotGroupMemberError
        InvalidSessionStatusError: If a session is not pending_payment
    """
    with transaction.atomic():
        sessions = _lock_sessions(session_ids, user)

    names = {}
    transfer_sets = []
    for session in sessions:
        if session.status != SessionStatus.PENDING_PAYMENT:
            raise InvalidSessionStatusError(f"Session {session.id} is not pending payment")
        transfers = [Transfer.from_dict(t) for t in session.net_transfers or []]
        for t in transfers:
            names[str(t.from_id)] = t.from_name
            names[str(t.to_id)] = t.to_name
        transfer_sets.append(transfers)

    return consolidate_transfers(transfer_sets, names)


@transaction.atomic
def settle_consolidated_sessions(*, session_ids: Iterable[UUID], user: User) -> int:
    """
    Mark several sessions settled after their transfers were paid as one.

    Sessions already settled are skipped.

    Returns:
        Number of sessions changed

    Raises:
        SessionNotFoundError: If any id doesn't exist
        NotGroupMemberError: If user is not a member of every session's group
    """
    now = timezone.now()
    changed = 0
    for session in _lock_sessions(session_ids, user):
        if session.status == SessionStatus.SETTLED:
            continue
        session.status = SessionStatus.SETTLED
        session.settled_at = now
        session.settled_by = user
        session.save(update_fields=['status', 'settled_at', 'settled_by', 'updated_at'])
        changed += 1

    logger.info("User %s settled %d consolidated sessions", user.id, changed)
    return changed


# =============================================================================
# Unsettled overview
# =============================================================================

def get_group_balances(*, group_id: UUID, user: User) -> Tuple[List[MemberBalance], SettlementResult]:
    """
    Balances and suggested transfers over a group's unsettled payments.

    When no payment has explicit splits the whole total is divided once
    (aggregate-then-floor); otherwise each payment's own shares are used.

    Raises:
        NotGroupMemberError: If user is not a member of the group
    """
    if not is_group_member(group_id, user.id):
        raise NotGroupMemberError("You are not a member of this group")

    roster = get_group_roster(group_id)
    payments = list(
        Payment.objects
        .filter(group_id=group_id, settlement__isnull=True)
        .prefetch_related('splits')
    )

    if not any(p.splits.all() for p in payments):
        balances = calculate_balances(
            roster,
            [PaymentInput(payer_id=str(p.payer_id), amount=p.amount) for p in payments],
        )
    else:
        balances = calculate_split_balances(
            roster,
            [
                SplitPaymentInput(
                    payer_id=str(p.payer_id),
                    amount=p.amount,
                    splits={str(s.user_id): s.amount for s in get_payment_shares(p)},
                )
                for p in payments
            ],
        )

    return balances, suggest_settlements(balances)


# =============================================================================
# Period suggestion
# =============================================================================

def suggest_settlement_period(*, group_id: UUID, user: User, today: Optional[date] = None) -> PeriodSuggestion:
    """
    Suggest the next period to settle for a group.

    The period ends at the newest unsettled payment (or today) and starts
    right after the last confirmed period, pulled back far enough to cover
    the oldest unsettled payment.

    Raises:
        NotGroupMemberError: If user is not a member of the group
    """
    if not is_group_member(group_id, user.id):
        raise NotGroupMemberError("You are not a member of this group")

    today = today or timezone.localdate()

    unsettled = Payment.objects.filter(group_id=group_id, settlement__isnull=True)
    stats = unsettled.aggregate(oldest=Min('payment_date'), newest=Max('payment_date'))
    oldest, newest = stats['oldest'], stats['newest']
    unsettled_count = unsettled.count()

    last_confirmed_end = (
        SettlementSession.objects
        .filter(group_id=group_id)
        .exclude(status=SessionStatus.DRAFT)
        .aggregate(last_end=Max('period_end'))['last_end']
    )

    end = newest or today

    if last_confirmed_end is not None:
        if unsettled.filter(payment_date=last_confirmed_end).exists():
            start = last_confirmed_end
        else:
            start = last_confirmed_end + timedelta(days=1)
    else:
        start = oldest or today.replace(day=1)

    if oldest is not None and oldest < start:
        start = oldest
    if start > end:
        start = end

    return PeriodSuggestion(
        suggested_start=start,
        suggested_end=end,
        oldest_unsettled_date=oldest,
        last_confirmed_end=last_confirmed_end,
        unsettled_count=unsettled_count,
    )

"""
Settlement entry generation and reconciliation.

A draft session's checklist is built from two sources:

    1. Active recurring rules: one ``pending`` entry per occurrence date
       inside the period.
    2. Unsettled payments dated on or before the period end: one ``filled``
       entry each. There is no lower bound, so an old unsettled payment is
       never left out.

``generate_settlement_entries`` rebuilds the checklist from scratch.
``refresh_settlement_entries`` re-syncs it without touching anything a
member already filled or skipped: only pending entries are updated or
removed, and only missing ones are added.
"""

import logging
from typing import Dict, Iterable, Set, Tuple
from uuid import UUID

from django.db import transaction
from django.db.models import QuerySet

from apps.accounts.models import User
from apps.expenses.models import Payment, RecurringRule, SplitType
from apps.settlements.models import (
    EntryStatus,
    EntryType,
    SessionStatus,
    SettlementEntry,
    SettlementEntrySplit,
    SettlementSession,
    rule_occurrence_key,
)

from .recurring_schedule import compute_rule_dates_in_period
from .session_access import lock_session

logger = logging.getLogger(__name__)


# =============================================================================
# Source queries
# =============================================================================

def _active_rules(group_id: UUID) -> QuerySet:
    return (
        RecurringRule.objects
        .filter(group_id=group_id, is_active=True)
        .prefetch_related('splits')
        .order_by('created_at')
    )


def _unsettled_payments(group_id: UUID, period_end) -> QuerySet:
    return (
        Payment.objects
        .filter(group_id=group_id, settlement__isnull=True, payment_date__lte=period_end)
        .prefetch_related('splits')
        .order_by('payment_date', 'created_at')
    )


def _expected_rule_occurrences(session: SettlementSession) -> Dict[str, Tuple[RecurringRule, object]]:
    """Map rule occurrence keys to (rule, date) for every occurrence in the period."""
    expected = {}
    for rule in _active_rules(session.group_id):
        for occurrence in compute_rule_dates_in_period(rule, session.period_start, session.period_end):
            expected[rule_occurrence_key(rule.id, occurrence)] = (rule, occurrence)
    return expected


# =============================================================================
# Entry construction
# =============================================================================

def _create_rule_entry(session: SettlementSession, rule: RecurringRule, payment_date) -> SettlementEntry:
    entry = SettlementEntry.objects.create(
        session=session,
        rule=rule,
        description=rule.description,
        category_id=rule.category_id,
        expected_amount=rule.default_amount,
        payer_id=rule.default_payer_id,
        payment_date=payment_date,
        status=EntryStatus.PENDING,
        split_type=rule.split_type,
        entry_type=EntryType.RULE,
    )

    if rule.split_type == SplitType.CUSTOM:
        template = list(rule.splits.all())
        if template:
            SettlementEntrySplit.objects.bulk_create([
                SettlementEntrySplit(
                    entry=entry,
                    user_id=line.user_id,
                    amount=line.resolve_amount(rule.default_amount),
                )
                for line in template
            ])

    return entry


def _create_payment_entry(session: SettlementSession, payment: Payment) -> SettlementEntry:
    splits = list(payment.splits.all())

    entry = SettlementEntry.objects.create(
        session=session,
        source_payment=payment,
        description=payment.description or '',
        category_id=payment.category_id,
        expected_amount=payment.amount,
        actual_amount=payment.amount,
        payer_id=payment.payer_id,
        payment_date=payment.payment_date,
        status=EntryStatus.FILLED,
        split_type=SplitType.CUSTOM if splits else SplitType.EQUAL,
        entry_type=EntryType.EXISTING,
        filled_by_id=payment.payer_id,
        filled_at=payment.created_at,
    )

    if splits:
        SettlementEntrySplit.objects.bulk_create([
            SettlementEntrySplit(entry=entry, user_id=s.user_id, amount=s.amount)
            for s in splits
        ])

    return entry


# =============================================================================
# Generate
# =============================================================================

@transaction.atomic
def generate_settlement_entries(*, session_id: UUID, user: User) -> int:
    """
    Rebuild a draft session's checklist from rules and unsettled payments.

    Existing entries of the session are deleted first, so calling this twice
    yields the same checklist.

    Args:
        session_id: UUID of a draft session
        user: Member requesting the rebuild

    Returns:
        Number of entries created

    Raises:
        SessionNotFoundError: If the session doesn't exist
        NotGroupMemberError: If user is not a member of the group
        InvalidSessionStatusError: If the session is not a draft
    """
    session = lock_session(session_id, user, required_status=SessionStatus.DRAFT)
    return populate_entries(session)


def populate_entries(session: SettlementSession) -> int:
    """Replace a session's entries. Caller holds the session lock."""
    session.entries.all().delete()

    count = 0
    for rule, occurrence in _expected_rule_occurrences(session).values():
        _create_rule_entry(session, rule, occurrence)
        count += 1

    for payment in _unsettled_payments(session.group_id, session.period_end):
        _create_payment_entry(session, payment)
        count += 1

    logger.info("Generated %d entries for settlement session %s", count, session.id)
    return count


# =============================================================================
# Refresh
# =============================================================================

def _reconcile_existing_entries(
    entries: Iterable[SettlementEntry],
    expected: Dict[str, Tuple[RecurringRule, object]],
) -> Tuple[Set[str], Set[str]]:
    """
    Sync, keep or drop each existing entry.

    Returns:
        (handled rule keys, handled payment ids)
    """
    handled_rule_keys = set()
    handled_payment_ids = set()

    for entry in entries:
        if entry.entry_type == EntryType.RULE or entry.rule_id is not None:
            key = entry.rule_key
            if key is not None and key in expected:
                handled_rule_keys.add(key)
                if entry.status == EntryStatus.PENDING:
                    rule, occurrence = expected[key]
                    entry.description = rule.description
                    entry.payment_date = occurrence
                    entry.expected_amount = rule.default_amount
                    entry.payer_id = rule.default_payer_id
                    entry.category_id = rule.category_id
                    entry.save(update_fields=[
                        'description', 'expected_amount', 'payer', 'category', 'payment_date', 'updated_at',
                    ])
            elif entry.status == EntryStatus.PENDING:
                entry.delete()
        elif entry.source_payment_id is not None:
            handled_payment_ids.add(str(entry.source_payment_id))

    return handled_rule_keys, handled_payment_ids


@transaction.atomic
def refresh_settlement_entries(*, session_id: UUID, user: User) -> int:
    """
    Bring a draft checklist up to date without losing member input.

    - filled / skipped entries are never modified or removed
    - pending rule entries follow the current rule (description, amount,
      payer, category), or are removed when the rule no longer fires there
    - occurrences and unsettled payments not yet on the list are added

    Returns:
        Number of entries added

    Raises:
        SessionNotFoundError: If the session doesn't exist
        NotGroupMemberError: If user is not a member of the group
        InvalidSessionStatusError: If the session is not a draft
    """
    session = lock_session(session_id, user, required_status=SessionStatus.DRAFT)

    expected = _expected_rule_occurrences(session)
    handled_rule_keys, handled_payment_ids = _reconcile_existing_entries(
        session.entries.all(),
        expected,
    )

    added = 0
    for key, (rule, occurrence) in expected.items():
        if key in handled_rule_keys:
            continue
        _create_rule_entry(session, rule, occurrence)
        added += 1

    for payment in _unsettled_payments(session.group_id, session.period_end):
        if str(payment.id) in handled_payment_ids:
            continue
        _create_payment_entry(session, payment)
        added += 1

    logger.info("Refresh added %d entries to settlement session %s", added, session.id)
    return added

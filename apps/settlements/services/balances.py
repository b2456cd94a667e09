"""
Balance aggregation.

Reduces payments plus a member roster into per-member paid / owed / net
figures. Equal shares are computed aggregate-then-floor: the whole total is
divided once instead of flooring every payment, so three payments of 1000
among three people cost each of them exactly 1000.

Balances therefore sum to the floor remainder, not to zero. The remainder is
reported by the transfer suggester rather than hidden.
"""

import logging
from typing import Dict, Iterable, List, Sequence

from .records import EntryInput, Member, MemberBalance, PaymentInput, SplitPaymentInput
from .rounding import split_equally

logger = logging.getLogger(__name__)


def _empty_ledger(members: Sequence[Member]) -> Dict[str, MemberBalance]:
    return {
        str(m.id): MemberBalance(member_id=str(m.id), display_name=m.display_name)
        for m in members
    }


def _finish(ledger: Dict[str, MemberBalance]) -> List[MemberBalance]:
    for row in ledger.values():
        row.balance = row.total_paid - row.total_owed
    return list(ledger.values())


def calculate_balances(
    members: Sequence[Member],
    payments: Iterable[PaymentInput],
) -> List[MemberBalance]:
    """
    Equal-split balances for a roster.

    Args:
        members: Roster in display order
        payments: Payments shared equally by every member

    Returns:
        One MemberBalance per member, in roster order. Payers missing from
        the roster are ignored.
    """
    if not members:
        return []

    ledger = _empty_ledger(members)
    total_expenses = 0
    for payment in payments:
        total_expenses += payment.amount
        row = ledger.get(str(payment.payer_id))
        if row is not None:
            row.total_paid += payment.amount

    per_person_owed = split_equally(total_expenses, len(members)).amount_per_person
    for row in ledger.values():
        row.total_owed = per_person_owed

    return _finish(ledger)


def calculate_split_balances(
    members: Sequence[Member],
    payments: Iterable[SplitPaymentInput],
) -> List[MemberBalance]:
    """Balances where every payment carries its own owed shares."""
    ledger = _empty_ledger(members)
    for payment in payments:
        row = ledger.get(str(payment.payer_id))
        if row is not None:
            row.total_paid += payment.amount
        for user_id, amount in payment.splits.items():
            owed_row = ledger.get(str(user_id))
            if owed_row is not None:
                owed_row.total_owed += amount

    return _finish(ledger)


def calculate_entry_balances(
    members: Sequence[Member],
    entries: Iterable[EntryInput],
) -> List[MemberBalance]:
    """
    Settlement-time balances over filled entries.

    Custom entries charge each member their own split amount. Equal entries
    (or custom entries with no splits recorded) are divided by floor among
    the whole roster, and the leftover units land on that entry's payer.
    """
    if not members:
        return []

    ledger = _empty_ledger(members)
    for entry in entries:
        payer_key = str(entry.payer_id) if entry.payer_id is not None else None
        payer_row = ledger.get(payer_key) if payer_key else None
        if payer_row is not None:
            payer_row.total_paid += entry.amount

        if entry.split_type == 'custom' and entry.splits:
            for user_id, amount in entry.splits.items():
                owed_row = ledger.get(str(user_id))
                if owed_row is None:
                    logger.warning("Split for non-member %s ignored", user_id)
                    continue
                owed_row.total_owed += amount
            continue

        share = split_equally(entry.amount, len(members))
        for row in ledger.values():
            row.total_owed += share.amount_per_person
        if payer_row is not None:
            payer_row.total_owed += share.remainder

    return _finish(ledger)

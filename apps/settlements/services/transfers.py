"""
Transfer suggestion.

Turns signed balances into debtor -> creditor transfers by greedy
largest-debt / largest-credit matching. Amounts are floored; whatever the
flooring loses, plus any credit left once debtors run out, is reported as
the unsettled remainder.
"""

import logging
import math
from collections import defaultdict, deque
from typing import Dict, Iterable, List, Mapping, Sequence, Tuple

from .records import MemberBalance, SettlementResult, Transfer

logger = logging.getLogger(__name__)

# Float tolerance for "this side is settled"
EPSILON = 0.001


class _Party:
    """Mutable working copy of one side of a match."""

    __slots__ = ('id', 'name', 'amount')

    def __init__(self, id, name, amount):
        self.id = id
        self.name = name
        self.amount = amount


def _partition(balances: Iterable[MemberBalance]) -> Tuple[deque, deque]:
    debtors = [
        _Party(b.member_id, b.display_name, -b.balance)
        for b in balances if b.balance < 0
    ]
    creditors = [
        _Party(b.member_id, b.display_name, b.balance)
        for b in balances if b.balance > 0
    ]
    debtors.sort(key=lambda p: p.amount, reverse=True)
    creditors.sort(key=lambda p: p.amount, reverse=True)
    return deque(debtors), deque(creditors)


def suggest_settlements(balances: Sequence[MemberBalance]) -> SettlementResult:
    """
    Suggest the transfers that settle a set of balances.

    Args:
        balances: Per-member balances (positive = is owed money)

    Returns:
        SettlementResult with the transfers and the unsettled remainder,
        rounded to two decimals.

    Example:
        Bob at -1000 and Alice at +1000 yields one transfer Bob -> Alice
        of 1000 with a remainder of 0.
    """
    if len(balances) <= 1:
        return SettlementResult(settlements=[], unsettled_remainder=0)

    debtors, creditors = _partition(balances)
    if not debtors or not creditors:
        return SettlementResult(settlements=[], unsettled_remainder=0)

    settlements: List[Transfer] = []
    remainder = 0

    while debtors and creditors:
        debtor = debtors[0]
        creditor = creditors[0]

        settle = min(debtor.amount, creditor.amount)
        floored = math.floor(settle)
        if floored > 0:
            settlements.append(Transfer(
                from_id=debtor.id,
                from_name=debtor.name,
                to_id=creditor.id,
                to_name=creditor.name,
                amount=floored,
            ))

        remainder += settle - floored
        debtor.amount -= settle
        creditor.amount -= settle

        if debtor.amount <= EPSILON:
            debtors.popleft()
        if creditor.amount <= EPSILON:
            creditors.popleft()

    for creditor in creditors:
        if creditor.amount > EPSILON:
            remainder += creditor.amount

    return SettlementResult(
        settlements=settlements,
        unsettled_remainder=round(remainder, 2),
    )


def _greedy_match(debtors: deque, creditors: deque) -> List[Transfer]:
    # Integer-exact variant: no flooring, no epsilon.
    result = []
    while debtors and creditors:
        debtor = debtors[0]
        creditor = creditors[0]
        settle = min(debtor.amount, creditor.amount)
        if settle > 0:
            result.append(Transfer(
                from_id=debtor.id,
                from_name=debtor.name,
                to_id=creditor.id,
                to_name=creditor.name,
                amount=settle,
            ))
        debtor.amount -= settle
        creditor.amount -= settle
        if debtor.amount <= 0:
            debtors.popleft()
        if creditor.amount <= 0:
            creditors.popleft()
    return result


def balances_to_transfers(balances: Sequence[MemberBalance]) -> List[Transfer]:
    """Integer balances to transfers, without remainder bookkeeping."""
    debtors, creditors = _partition(balances)
    return _greedy_match(debtors, creditors)


def calculate_my_transfer_balance(transfers: Iterable[Transfer], user_id) -> int:
    """
    Net position of one user across a transfer list.

    Positive means the user receives money, negative means they pay.
    """
    user_id = str(user_id)
    balance = 0
    for t in transfers:
        if str(t.to_id) == user_id:
            balance += t.amount
        if str(t.from_id) == user_id:
            balance -= t.amount
    return balance


def consolidate_transfers(
    transfer_sets: Iterable[Iterable[Transfer]],
    member_names: Mapping[str, str],
) -> Tuple[List[Transfer], bool]:
    """
    Net several sessions' transfers into one set.

    Returns:
        (transfers, is_zero) where is_zero means everything cancelled out.
    """
    net: Dict[str, int] = defaultdict(int)
    for transfers in transfer_sets:
        for t in transfers:
            net[str(t.from_id)] -= t.amount
            net[str(t.to_id)] += t.amount

    debtors = deque()
    creditors = deque()
    for member_id, balance in net.items():
        name = member_names.get(member_id, 'Unknown')
        if balance < 0:
            debtors.append(_Party(member_id, name, -balance))
        elif balance > 0:
            creditors.append(_Party(member_id, name, balance))

    if not debtors and not creditors:
        return [], True

    logger.debug(
        "Consolidating %d debtors against %d creditors",
        len(debtors), len(creditors),
    )
    return _greedy_match(debtors, creditors), False

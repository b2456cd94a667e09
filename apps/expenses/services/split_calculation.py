"""
Split calculation for a single payment.

Three ways to divide a payment among members:

    equal   floor(total / n) each; the payer, when given, absorbs the remainder
    custom  explicit per-member amounts typed in as strings
    proxy   the payer advanced the whole cost for one beneficiary

These functions are deliberately permissive: bad numeric input is clamped
to 0, never raised. Checking that splits add up to the payment amount is
the caller's job (see ``validate_split_total``).
"""

import math
import re
from dataclasses import dataclass
from typing import Iterable, List, Mapping, Optional, Sequence

from .exceptions import InvalidSplitError, SplitTotalMismatchError

_LEADING_INTEGER = re.compile(r'^\s*([+-]?\d+)')


@dataclass(frozen=True)
class SplitRecord:
    payment_id: Optional[str]
    user_id: str
    amount: int


def _parse_amount(raw: str) -> int:
    """Parse the leading base-10 integer of raw; junk or negatives become 0."""
    match = _LEADING_INTEGER.match(raw)
    if not match:
        return 0
    value = int(match.group(1))
    return value if value > 0 else 0


def calculate_equal_split(
    payment_id,
    total_amount,
    member_ids: Sequence,
    payer_id=None,
) -> List[SplitRecord]:
    """
    Divide total_amount equally among member_ids.

    Args:
        payment_id: Payment the splits belong to
        total_amount: Whole-unit amount
        member_ids: Members sharing the cost
        payer_id: Optional member who absorbs the floor remainder. Without
            one the remainder is left undistributed.

    Returns:
        One SplitRecord per member, in member_ids order. Empty when there
        are no members; all zeros when total_amount is non-positive or not
        a finite number.
    """
    if not member_ids:
        return []

    if not _is_finite(total_amount) or total_amount <= 0:
        return [SplitRecord(payment_id, user_id, 0) for user_id in member_ids]

    per_person = math.floor(total_amount / len(member_ids))
    remainder = 0
    if payer_id is not None:
        remainder = int(total_amount) - per_person * len(member_ids)

    return [
        SplitRecord(
            payment_id,
            user_id,
            per_person + remainder if payer_id is not None and str(user_id) == str(payer_id) else per_person,
        )
        for user_id in member_ids
    ]


def calculate_custom_splits(payment_id, custom_amounts: Mapping[str, str]) -> List[SplitRecord]:
    """
    Build splits from raw per-member amount strings.

    Empty strings are left out of the result entirely; anything unparseable
    or negative becomes 0.

    Example:
        Member u3 left blank is omitted::

            calculate_custom_splits('p1', {'u1': '600', 'u2': '400', 'u3': ''})
            # u1 -> 600, u2 -> 400
    """
    results = []
    for user_id, raw in custom_amounts.items():
        if raw == '':
            continue
        results.append(SplitRecord(payment_id, user_id, _parse_amount(str(raw))))
    return results


def calculate_proxy_split(
    payment_id,
    total_amount: int,
    payer_id,
    beneficiary_id,
    all_member_ids: Sequence,
) -> List[SplitRecord]:
    """
    Splits for a purchase made entirely on behalf of one member.

    The beneficiary owes the full amount; every other member, the payer
    included, owes 0.

    Raises:
        InvalidSplitError: If the beneficiary is the payer or not a member
    """
    if str(beneficiary_id) == str(payer_id):
        raise InvalidSplitError("Beneficiary must be different from payer")
    if str(beneficiary_id) not in {str(m) for m in all_member_ids}:
        raise InvalidSplitError("Beneficiary must be a group member")

    return [
        SplitRecord(
            payment_id,
            user_id,
            total_amount if str(user_id) == str(beneficiary_id) else 0,
        )
        for user_id in all_member_ids
    ]


def is_proxy_split(splits: Iterable[SplitRecord], payer_id) -> bool:
    """A split set is a proxy purchase when the payer owes nothing."""
    splits = list(splits)
    return bool(splits) and any(
        str(s.user_id) == str(payer_id) and s.amount == 0 for s in splits
    )


def get_proxy_beneficiary_id(splits: Iterable[SplitRecord], payer_id):
    splits = list(splits)
    if not is_proxy_split(splits, payer_id):
        return None
    for s in splits:
        if str(s.user_id) != str(payer_id) and s.amount > 0:
            return s.user_id
    return None


def is_custom_split(splits: Iterable[SplitRecord], payer_id, total_amount: int) -> bool:
    """True when splits are neither an equal split nor a proxy purchase."""
    splits = list(splits)
    if not splits:
        return False
    if is_proxy_split(splits, payer_id):
        return False

    per_person = total_amount // len(splits)
    remainder = total_amount - per_person * len(splits)
    for s in splits:
        expected = per_person + remainder if str(s.user_id) == str(payer_id) else per_person
        if s.amount != expected:
            return True
    return False


def validate_split_total(splits: Iterable, amount: int) -> None:
    """
    Ensure split amounts add up to the payment amount.

    Accepts SplitRecords or ``{'user_id': ..., 'amount': ...}`` dicts.

    Raises:
        SplitTotalMismatchError: With both totals in the message
    """
    total = 0
    for s in splits:
        total += s['amount'] if isinstance(s, Mapping) else s.amount
    if total != amount:
        raise SplitTotalMismatchError(
            f"Splits total ({total}) does not match payment amount ({amount})"
        )


def _is_finite(value) -> bool:
    try:
        return math.isfinite(value)
    except TypeError:
        return False

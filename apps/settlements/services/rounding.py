"""
Whole-unit money helpers.

Amounts are integers in the smallest displayed currency unit (no subunits),
so every division floors and reports what it left behind.
"""

import math
from dataclasses import dataclass


@dataclass(frozen=True)
class EqualSplit:
    """Result of dividing an amount evenly among N people."""
    amount_per_person: int
    remainder: int
    total: int


def floor_to_unit(amount) -> int:
    """
    Floor a non-negative amount to a whole unit.

    Raises:
        ValueError: If amount is negative, NaN or infinite
    """
    if not math.isfinite(amount):
        raise ValueError(f"Invalid amount: {amount}. Amount must be a finite number")
    if amount < 0:
        raise ValueError(f"Invalid amount: {amount}. Amount must be non-negative")
    return math.floor(amount)


def split_equally(amount, count) -> EqualSplit:
    """
    Divide amount among count people, flooring each share.

    The remainder (amount - per_person * count) is returned rather than
    distributed; callers decide who absorbs it.

    Example:
        >>> split_equally(1000, 3)
        EqualSplit(amount_per_person=333, remainder=1, total=1000)

    Raises:
        ValueError: If amount is invalid or count is not a positive integer
    """
    if isinstance(count, bool) or not isinstance(count, int) or count < 1:
        raise ValueError(f"Invalid count: {count}. Count must be a positive integer")

    total = floor_to_unit(amount)
    per_person = total // count
    return EqualSplit(
        amount_per_person=per_person,
        remainder=total - per_person * count,
        total=total,
    )

"""
Recurring rule schedule.

A rule fires every ``interval_months`` months counted from its anchor month,
on ``day_of_month`` clamped to the length of the month (31 means "last day").
Evaluation is pull-based: entries are only materialized when a settlement
period is generated or refreshed.
"""

import calendar
from datetime import date, datetime
from typing import List, Optional


def _months_between(year_a: int, month_a: int, year_b: int, month_b: int) -> int:
    return (year_b - year_a) * 12 + (month_b - month_a)


def should_rule_fire_in_month(
    anchor_date: date,
    interval_months: int,
    year: int,
    month: int,
    end_date: Optional[date] = None,
) -> bool:
    """
    Check whether a rule produces an occurrence in the given month.

    Args:
        anchor_date: First month the rule can fire in
        interval_months: Months between occurrences (>= 1)
        year: Target year
        month: Target month, 1-12
        end_date: Optional last month the rule can fire in

    Example:
        Anchor 2026-01-15 with interval 2 fires in Jan, Mar and May 2026,
        but not in Feb or Apr.
    """
    if interval_months < 1:
        return False
    if month < 1 or month > 12:
        return False

    months_diff = _months_between(anchor_date.year, anchor_date.month, year, month)
    if months_diff < 0:
        return False

    if end_date is not None:
        if _months_between(end_date.year, end_date.month, year, month) > 0:
            return False

    return months_diff % interval_months == 0


def get_actual_day_of_month(day_of_month: int, year: int, month: int) -> int:
    """Clamp day_of_month to the last day of the month (31 -> 28 in Feb 2026)."""
    last_day = calendar.monthrange(year, month)[1]
    return min(day_of_month, last_day)


def get_rule_anchor(rule) -> date:
    """Anchor month of a rule: its start_date, else the day it was created."""
    start_date = getattr(rule, 'start_date', None)
    if start_date is not None:
        return start_date
    created_at = rule.created_at
    if isinstance(created_at, datetime):
        return created_at.date()
    return created_at


def compute_rule_dates_in_period(rule, period_start: date, period_end: date) -> List[date]:
    """
    All occurrence dates of a rule inside an inclusive period.

    ``rule`` is any object exposing ``interval_months``, ``day_of_month``,
    ``end_date`` and either ``start_date`` or ``created_at``.

    Returns:
        Occurrence dates in chronological order (possibly empty)
    """
    anchor = get_rule_anchor(rule)
    end_date = getattr(rule, 'end_date', None)
    dates = []

    year, month = period_start.year, period_start.month
    while (year, month) <= (period_end.year, period_end.month):
        if should_rule_fire_in_month(anchor, rule.interval_months, year, month, end_date):
            day = get_actual_day_of_month(rule.day_of_month, year, month)
            occurrence = date(year, month, day)
            if period_start <= occurrence <= period_end:
                dates.append(occurrence)

        month += 1
        if month > 12:
            month = 1
            year += 1

    return dates

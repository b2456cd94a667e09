from datetime import date, datetime
from types import SimpleNamespace

import pytest

from apps.settlements.services import (
    compute_rule_dates_in_period,
    get_actual_day_of_month,
    should_rule_fire_in_month,
)


def _rule(**kwargs):
    fields = dict(
        interval_months=1,
        day_of_month=25,
        start_date=date(2026, 1, 1),
        end_date=None,
        created_at=datetime(2025, 6, 3, 12, 0),
    )
    fields.update(kwargs)
    return SimpleNamespace(**fields)


# =============================================================================
# Firing months
# =============================================================================

class TestShouldRuleFireInMonth:

    @pytest.mark.parametrize('month,fires', [
        (1, True),
        (2, False),
        (3, True),
        (4, False),
        (5, True),
    ])
    def test_every_other_month(self, month, fires):
        assert should_rule_fire_in_month(date(2026, 1, 15), 2, 2026, month) is fires

    def test_interval_crosses_year(self):
        assert should_rule_fire_in_month(date(2025, 11, 1), 2, 2026, 1)
        assert not should_rule_fire_in_month(date(2025, 11, 1), 2, 2026, 2)

    def test_not_before_anchor(self):
        assert not should_rule_fire_in_month(date(2026, 3, 1), 1, 2026, 2)

    def test_end_month_is_inclusive(self):
        end = date(2026, 3, 10)

        assert should_rule_fire_in_month(date(2026, 1, 1), 1, 2026, 3, end)
        assert not should_rule_fire_in_month(date(2026, 1, 1), 1, 2026, 4, end)

    def test_invalid_interval_or_month(self):
        assert not should_rule_fire_in_month(date(2026, 1, 1), 0, 2026, 1)
        assert not should_rule_fire_in_month(date(2026, 1, 1), 1, 2026, 13)
        assert not should_rule_fire_in_month(date(2026, 1, 1), 1, 2026, 0)


class TestActualDayOfMonth:

    def test_clamped_to_short_february(self):
        assert get_actual_day_of_month(31, 2026, 2) == 28

    def test_leap_february(self):
        assert get_actual_day_of_month(31, 2028, 2) == 29

    def test_thirty_day_month(self):
        assert get_actual_day_of_month(31, 2026, 4) == 30

    def test_day_that_exists(self):
        assert get_actual_day_of_month(15, 2026, 2) == 15


# =============================================================================
# Occurrences in a period
# =============================================================================

class TestComputeRuleDates:

    def test_month_end_rule(self):
        rule = _rule(day_of_month=31)

        dates = compute_rule_dates_in_period(rule, date(2026, 1, 15), date(2026, 3, 20))

        assert dates == [date(2026, 1, 31), date(2026, 2, 28)]

    def test_occurrence_before_period_start_excluded(self):
        rule = _rule(day_of_month=5)

        dates = compute_rule_dates_in_period(rule, date(2026, 1, 10), date(2026, 2, 28))

        assert dates == [date(2026, 2, 5)]

    def test_interval_and_end_date(self):
        rule = _rule(interval_months=3, day_of_month=1, end_date=date(2026, 7, 1))

        dates = compute_rule_dates_in_period(rule, date(2026, 1, 1), date(2026, 12, 31))

        assert dates == [date(2026, 1, 1), date(2026, 4, 1), date(2026, 7, 1)]

    def test_period_spanning_new_year(self):
        rule = _rule(start_date=date(2025, 1, 1), day_of_month=10)

        dates = compute_rule_dates_in_period(rule, date(2025, 12, 1), date(2026, 1, 31))

        assert dates == [date(2025, 12, 10), date(2026, 1, 10)]

    def test_anchor_falls_back_to_created_at(self):
        rule = _rule(start_date=None, interval_months=2, day_of_month=1)

        dates = compute_rule_dates_in_period(rule, date(2025, 5, 1), date(2025, 10, 31))

        assert dates == [date(2025, 6, 1), date(2025, 8, 1), date(2025, 10, 1)]

    def test_empty_period(self):
        rule = _rule(day_of_month=25)

        assert compute_rule_dates_in_period(rule, date(2026, 1, 1), date(2026, 1, 20)) == []

from datetime import date, datetime, timezone

import pytest

from clawback.models.db.enums import CreditFrequency
from clawback.services.recurrence import add_months, clamp_day, make_date, next_reset_date


def test_monthly_uses_anchor_day_next_month():
    assert next_reset_date("monthly", date(2024, 1, 15), date(2024, 3, 20)) == date(2024, 4, 15)


def test_monthly_clamps_31st_to_leap_february():
    assert next_reset_date(CreditFrequency.MONTHLY, date(2024, 1, 31), date(2024, 1, 31)) == date(2024, 2, 29)


def test_monthly_clamps_31st_to_thirty_day_month():
    assert next_reset_date("monthly", date(2023, 5, 31), date(2024, 3, 2)) == date(2024, 4, 30)


def test_monthly_rolls_over_year_end():
    assert next_reset_date("monthly", date(2022, 6, 5), date(2024, 12, 1)) == date(2025, 1, 5)


@pytest.mark.parametrize(
    "start,today",
    [
        (date(2020, 3, 10), date(2024, 3, 9)),
        (date(2020, 3, 10), date(2024, 3, 10)),
        (date(2020, 3, 10), date(2025, 7, 1)),
        (date(2019, 11, 30), date(2021, 1, 1)),
        (date(2026, 1, 1), date(2024, 6, 1)),
    ],
)
def test_every_four_years_strictly_future_and_on_cycle(start, today):
    due = next_reset_date("every4years", start, today)
    assert due > today
    assert (due.year - start.year) % 4 == 0
    assert (due.month, due.day) == (start.month, start.day)


def test_every_four_years_same_day_moves_to_next_cycle():
    assert next_reset_date("every4years", date(2020, 3, 10), date(2024, 3, 10)) == date(2028, 3, 10)


def test_every_five_years_before_anchor_in_cycle_year():
    assert next_reset_date("every5years", date(2021, 9, 1), date(2026, 8, 31)) == date(2026, 9, 1)


def test_every_four_years_leap_day_anchor_clamps():
    assert next_reset_date("every4years", date(2022, 2, 28), date(2023, 1, 1)) == date(2026, 2, 28)
    assert next_reset_date("every4years", date(2020, 2, 29), date(2024, 3, 1)) == date(2028, 2, 29)


@pytest.mark.parametrize(
    "frequency,step",
    [("quarterly", 3), ("semiannual", 6), ("annual", 12)],
)
def test_periodic_credits_keep_anchor_phase(frequency, step):
    start = date(2021, 2, 14)
    for today in (date(2024, 1, 1), date(2024, 2, 14), date(2024, 6, 30), date(2024, 12, 31)):
        due = next_reset_date(frequency, start, today)
        assert due > today
        assert due.day == 14
        assert (due.month - start.month) % step == 0
        # Never more than one step ahead
        year, month = add_months(today.year, today.month, step)
        assert due <= make_date(year, month, 31)


def test_quarterly_examples():
    assert next_reset_date("quarterly", date(2023, 1, 15), date(2024, 3, 20)) == date(2024, 4, 15)
    assert next_reset_date("quarterly", date(2023, 11, 15), date(2024, 1, 10)) == date(2024, 2, 15)


def test_semiannual_and_annual_examples():
    assert next_reset_date("semiannual", date(2023, 7, 1), date(2024, 7, 1)) == date(2025, 1, 1)
    assert next_reset_date("annual", date(2022, 9, 30), date(2024, 9, 29)) == date(2024, 9, 30)
    assert next_reset_date("annual", date(2022, 9, 30), date(2024, 9, 30)) == date(2025, 9, 30)


def test_quarterly_day_reclamped_each_step():
    # Anchor 31: Mar 31 -> Jun 30 -> Sep 30 -> Dec 31
    assert next_reset_date("quarterly", date(2023, 3, 31), date(2024, 4, 1)) == date(2024, 6, 30)
    assert next_reset_date("quarterly", date(2023, 3, 31), date(2024, 10, 1)) == date(2024, 12, 31)


def test_one_time_never_resets():
    for today in (date(2000, 1, 1), date(2024, 5, 5), date(2099, 12, 31)):
        assert next_reset_date("onetime", date(2024, 1, 1), today) is None


def test_time_of_day_is_ignored():
    morning = datetime(2024, 3, 20, 0, 1, tzinfo=timezone.utc)
    night = datetime(2024, 3, 20, 23, 59, tzinfo=timezone.utc)
    start = date(2024, 1, 15)
    for freq in ("monthly", "quarterly", "semiannual", "annual", "every4years", "every5years"):
        assert next_reset_date(freq, start, morning) == next_reset_date(freq, start, night)


def test_engine_is_pure():
    start = date(2021, 8, 31)
    today = date(2024, 2, 10)
    first = [next_reset_date(f, start, today) for f in CreditFrequency]
    second = [next_reset_date(f, start, today) for f in CreditFrequency]
    assert first == second
    assert start == date(2021, 8, 31)


def test_unknown_frequency_rejected():
    with pytest.raises(ValueError):
        next_reset_date("fortnightly", date(2024, 1, 1), date(2024, 2, 1))


def test_date_helpers():
    assert clamp_day(2023, 2, 31) == 28
    assert clamp_day(2024, 2, 31) == 29
    assert make_date(2024, 4, 31) == date(2024, 4, 30)
    assert add_months(2024, 11, 3) == (2025, 2)
    assert add_months(2024, 1, -1) == (2023, 12)

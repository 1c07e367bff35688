"""Credit reset date calculator.

Single public function `next_reset_date(frequency, card_start_date, now)`.
The card start date supplies the phase (month/day) every recurring credit is
aligned to; `now` is reduced to a calendar day before any comparison.

Rules:
* monthly: the anchor day of the month after `now`'s month.
* every4years / every5years: anchor month/day repeated every N years from the
  start year; first occurrence strictly after today.
* quarterly / semiannual / annual: anchor month/day stepped by 3/6/12 months;
  first occurrence strictly after today.
* onetime: never resets (None).

Day overflow (anchor 31 in a 30-day month, Feb 29 in a common year) clamps
to the last day of the target month; it never rolls into the next month.
"""
from __future__ import annotations

import calendar
from datetime import date, datetime

from clawback.models.db.enums import CreditFrequency
from clawback.utils.time import as_day

MONTH_STEPS: dict[CreditFrequency, int] = {
    CreditFrequency.QUARTERLY: 3,
    CreditFrequency.SEMIANNUAL: 6,
    CreditFrequency.ANNUAL: 12,
}

YEAR_CYCLES: dict[CreditFrequency, int] = {
    CreditFrequency.EVERY_4_YEARS: 4,
    CreditFrequency.EVERY_5_YEARS: 5,
}


def clamp_day(year: int, month: int, day: int) -> int:
    last_day = calendar.monthrange(year, month)[1]
    return min(day, last_day)


def make_date(year: int, month: int, day: int) -> date:
    """Build a date, clamping ``day`` to the month's length."""
    return date(year, month, clamp_day(year, month, day))


def add_months(year: int, month: int, months: int) -> tuple[int, int]:
    """Shift a (year, month) pair by ``months`` (may be negative)."""
    index = year * 12 + (month - 1) + months
    return index // 12, index % 12 + 1


def _coerce_frequency(frequency: CreditFrequency | str) -> CreditFrequency:
    if isinstance(frequency, CreditFrequency):
        return frequency
    try:
        return CreditFrequency(frequency)
    except ValueError:
        raise ValueError(f"Unknown credit frequency: {frequency!r}") from None


def next_reset_date(
    frequency: CreditFrequency | str,
    card_start_date: date | datetime,
    now: date | datetime,
) -> date | None:
    """Return the next reset date strictly after today, or None for one-time credits.

    Args:
        frequency: credit frequency (enum or its string value)
        card_start_date: anchor date from the user's card assignment
        now: current moment; only its calendar day is used
    """
    freq = _coerce_frequency(frequency)
    if freq == CreditFrequency.ONE_TIME:
        return None

    start = as_day(card_start_date)
    today = as_day(now)
    anchor_month, anchor_day = start.month, start.day

    if freq == CreditFrequency.MONTHLY:
        year, month = add_months(today.year, today.month, 1)
        return make_date(year, month, anchor_day)

    if freq in YEAR_CYCLES:
        years = YEAR_CYCLES[freq]
        cycle = max(0, (today.year - start.year) // years)
        candidate_year = start.year + cycle * years
        candidate = make_date(candidate_year, anchor_month, anchor_day)
        if candidate <= today:
            candidate = make_date(candidate_year + years, anchor_month, anchor_day)
        return candidate

    step = MONTH_STEPS[freq]
    year, month = today.year, anchor_month
    if make_date(year, month, anchor_day) > today:
        # Search floor: most recent occurrence at or before today
        year -= 1
    candidate = make_date(year, month, anchor_day)
    while candidate <= today:
        year, month = add_months(year, month, step)
        candidate = make_date(year, month, anchor_day)
    return candidate


__all__ = ["next_reset_date", "clamp_day", "make_date", "add_months", "MONTH_STEPS", "YEAR_CYCLES"]

"""
Schedule resolution tests.

Weekday mapping, departure time lookup and period helpers.
"""

import pytest
from datetime import date, datetime, time

from carpool_backend.app.core.clock import FixedClock
from carpool_backend.app.core.exceptions import ProofValidationError
from carpool_backend.app.domain.proofs.schedule import (
    default_window,
    iter_days,
    resolve_departure_time,
    resolve_window,
    theoretical_start,
    weekday_index,
)
from carpool_backend.app.models.proof_enums import Frequency
from carpool_backend.app.models.ride_agreement import Criteria


def regular_criteria(**weekly):
    criteria = Criteria(frequency=Frequency.REGULAR, from_date=date(2024, 1, 1))
    for prefix in ("mon", "tue", "wed", "thu", "fri", "sat", "sun"):
        setattr(criteria, f"{prefix}_check", prefix in weekly)
        setattr(criteria, f"{prefix}_time", weekly.get(prefix))
    return criteria


def test_weekday_index_starts_on_sunday():
    """0 is Sunday, 6 is Saturday."""
    assert weekday_index(date(2024, 3, 3)) == 0  # Sunday
    assert weekday_index(date(2024, 3, 4)) == 1  # Monday
    assert weekday_index(date(2024, 3, 9)) == 6  # Saturday


def test_resolve_departure_time_enabled_day():
    criteria = regular_criteria(mon=time(7, 45), wed=time(8, 10))
    assert resolve_departure_time(criteria, date(2024, 3, 4)) == time(7, 45)
    assert resolve_departure_time(criteria, date(2024, 3, 6)) == time(8, 10)


def test_resolve_departure_time_disabled_day():
    """No ride on a weekday that is not checked."""
    criteria = regular_criteria(mon=time(7, 45))
    assert resolve_departure_time(criteria, date(2024, 3, 5)) is None
    assert resolve_departure_time(criteria, date(2024, 3, 3)) is None


def test_resolve_departure_time_enabled_without_time():
    criteria = regular_criteria(fri=None)
    criteria.fri_check = True
    with pytest.raises(ProofValidationError):
        resolve_departure_time(criteria, date(2024, 3, 8))


def test_theoretical_start_punctual_ignores_day():
    criteria = Criteria(frequency=Frequency.PUNCTUAL, from_date=date(2024, 3, 1), from_time=time(8, 0, 42))
    start = theoretical_start(criteria, datetime(2024, 5, 5))
    assert start == datetime(2024, 3, 1, 8, 0)


def test_theoretical_start_regular():
    criteria = regular_criteria(wed=time(18, 30))
    assert theoretical_start(criteria, datetime(2024, 3, 6, 13, 0)) == datetime(2024, 3, 6, 18, 30)
    assert theoretical_start(criteria, datetime(2024, 3, 7)) is None


def test_default_window_is_yesterday():
    clock = FixedClock(datetime(2024, 3, 6, 9, 15))
    start, end = default_window(clock)
    assert start == datetime(2024, 3, 5, 0, 0, 0)
    assert end == datetime(2024, 3, 5, 23, 59, 59, 999999)


def test_resolve_window_keeps_explicit_bounds():
    clock = FixedClock(datetime(2024, 3, 6, 9, 15))
    start, end = resolve_window(clock, datetime(2024, 3, 1), None)
    assert start == datetime(2024, 3, 1)
    assert end == datetime(2024, 3, 5, 23, 59, 59, 999999)


def test_iter_days_includes_last_calendar_day():
    """The end bound is inclusive even when its time is before the start time."""
    days = list(iter_days(datetime(2024, 3, 4, 12, 0), datetime(2024, 3, 10, 8, 0)))
    assert [d.date() for d in days] == [date(2024, 3, n) for n in range(4, 11)]


def test_iter_days_single_day():
    days = list(iter_days(datetime(2024, 3, 1), datetime(2024, 3, 1, 23, 59)))
    assert len(days) == 1

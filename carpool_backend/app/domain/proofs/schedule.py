"""
Schedule resolution for carpool criteria.

Shared by live proof creation (today only) and batch generation (every
day of a period).
"""

from datetime import date, datetime, time, timedelta
from typing import Iterator, Optional, Tuple

from carpool_backend.app.core.clock import Clock
from carpool_backend.app.core.exceptions import ProofValidationError
from carpool_backend.app.models.proof_enums import Frequency
from carpool_backend.app.models.ride_agreement import Criteria


# Indexed 0=Sunday .. 6=Saturday
WEEKDAY_PREFIXES = ("sun", "mon", "tue", "wed", "thu", "fri", "sat")


def weekday_index(day: date) -> int:
    """Day of week with 0 = Sunday and 6 = Saturday."""
    return day.isoweekday() % 7


def resolve_departure_time(criteria: Criteria, day: date) -> Optional[time]:
    """
    Departure time of a regular criteria on ``day``.
    
    Returns None when the weekday is not a carpool day.
    
    Raises:
        ProofValidationError: the weekday is enabled without a time
    """
    prefix = WEEKDAY_PREFIXES[weekday_index(day)]
    if not getattr(criteria, f"{prefix}_check"):
        return None
    departure = getattr(criteria, f"{prefix}_time")
    if departure is None:
        raise ProofValidationError(
            f"Criteria {criteria.id} is enabled on {prefix} without a departure time",
            details={"criteria_id": criteria.id, "weekday": prefix}
        )
    return departure


def punctual_start(criteria: Criteria) -> datetime:
    """Contractual start of a punctual ride (minute precision)."""
    departure = criteria.from_time or time(0, 0)
    return datetime.combine(criteria.from_date, time(departure.hour, departure.minute))


def with_departure_time(moment: datetime, departure: Optional[time]) -> datetime:
    """Replace the time of day of ``moment`` with ``departure`` (minute precision)."""
    if departure is None:
        return moment
    return moment.replace(hour=departure.hour, minute=departure.minute, second=0, microsecond=0)


def theoretical_start(criteria: Criteria, day: datetime) -> Optional[datetime]:
    """
    Contractual driver start for a given day, or None if no ride that day.
    
    Punctual rides ignore ``day`` and use their own date and time.
    """
    if criteria.frequency == Frequency.PUNCTUAL:
        return punctual_start(criteria)
    departure = resolve_departure_time(criteria, day.date())
    if departure is None:
        return None
    return with_departure_time(datetime.combine(day.date(), time(0, 0)), departure)


def default_window(clock: Clock) -> Tuple[datetime, datetime]:
    """The whole previous calendar day."""
    yesterday = clock.now().date() - timedelta(days=1)
    return (
        datetime.combine(yesterday, time(0, 0, 0)),
        datetime.combine(yesterday, time(23, 59, 59, 999999)),
    )


def resolve_window(
    clock: Clock,
    from_date: Optional[datetime] = None,
    to_date: Optional[datetime] = None
) -> Tuple[datetime, datetime]:
    """Fill the missing bounds of a period with the default window."""
    default_from, default_to = default_window(clock)
    return from_date or default_from, to_date or default_to


def iter_days(from_date: datetime, to_date: datetime) -> Iterator[datetime]:
    """Every calendar day from ``from_date`` up to and including ``to_date``'s day."""
    current = from_date
    while current.date() <= to_date.date():
        yield current
        current = current + timedelta(days=1)

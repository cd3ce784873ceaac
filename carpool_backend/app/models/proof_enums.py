"""
Carpool proof enumerations.
"""

import enum


class ProofStatus(str, enum.Enum):
    """Proof status enumeration."""
    PENDING = "PENDING"  # Both sides certified (or theoretical), ready for the registry
    SENT = "SENT"  # Accepted by the registry
    ERROR = "ERROR"  # Rejected by the registry or submission failed


class ProofType(str, enum.Enum):
    """How the proof was produced."""
    REALTIME = "realtime"  # Certified live from both phones
    THEORETICAL = "theoretical"  # Generated from the contractual schedule


class Actor(str, enum.Enum):
    """Role of the user certifying a leg."""
    DRIVER = "driver"
    PASSENGER = "passenger"

    @property
    def counterpart(self) -> "Actor":
        return Actor.PASSENGER if self is Actor.DRIVER else Actor.DRIVER


class Leg(str, enum.Enum):
    PICKUP = "pickup"
    DROPOFF = "dropoff"


class Frequency(str, enum.Enum):
    """Criteria frequency."""
    PUNCTUAL = "punctual"  # One-off ride on from_date at from_time
    REGULAR = "regular"  # Weekly schedule between from_date and to_date


class WaypointRole(str, enum.Enum):
    DRIVER = "driver"
    PASSENGER = "passenger"


class RideAgreementStatus(str, enum.Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    DECLINED = "DECLINED"

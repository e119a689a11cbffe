from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from .errors import CapacityExceededError, InvalidCapacityError, NoCapacityConfiguredError


@dataclass(frozen=True)
class CapacitySnapshot:
    available: int
    booked: int
    remaining: int
    percentage_used: int


EMPTY_SNAPSHOT = CapacitySnapshot(available=0, booked=0, remaining=0, percentage_used=0)


def build_snapshot(*, capacity: int | None, booked: int) -> CapacitySnapshot:
    """
    Derive utilization figures for one date.
    `capacity=None` means the date has no slot configuration.
    """
    if capacity is None:
        return EMPTY_SNAPSHOT
    remaining = max(0, capacity - booked)
    if capacity > 0:
        ratio = Decimal(booked) * 100 / Decimal(capacity)
        percentage = int(ratio.quantize(Decimal(1), rounding=ROUND_HALF_UP))
    else:
        percentage = 0
    return CapacitySnapshot(
        available=capacity,
        booked=booked,
        remaining=remaining,
        percentage_used=percentage,
    )


def validate_capacity(capacity: int, *, maximum: int) -> None:
    if capacity < 0:
        raise InvalidCapacityError("capacity must be >= 0")
    if capacity > maximum:
        raise InvalidCapacityError(f"capacity must be <= {maximum}")


def validate_admission(*, capacity: int | None, active: int) -> int:
    """
    Pure admission check for a single booking.
    Returns remaining capacity after the booking if OK. Raises domain errors otherwise.
    """
    if capacity is None:
        raise NoCapacityConfiguredError("no slots configured for this date")
    remaining = capacity - active
    if remaining < 1:
        raise CapacityExceededError("no available slots for this date")
    return remaining - 1

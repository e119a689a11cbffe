from datetime import date

from ..domain.errors import InvalidTransitionError, NotFoundError
from ..domain.repositories import BookingRepository, SlotRepository
from ..domain.services import validate_admission
from ..models import Booking, BookingStatus
from ..utils.time import utc_now_naive


async def request_booking(
    slot_repo: SlotRepository,
    booking_repo: BookingRepository,
    *,
    appointment_date: date,
    patient_ref: str,
) -> Booking:
    """
    Admit one booking if the date has a free slot.
    Must run inside a transaction; the slot row lock is what makes the
    count-then-insert sequence safe across workers.
    """
    slot = await slot_repo.get_for_update(appointment_date)
    active = await booking_repo.count_active(appointment_date)
    validate_admission(capacity=slot.capacity if slot is not None else None, active=active)
    return await booking_repo.create(
        appointment_date=appointment_date,
        patient_ref=patient_ref,
        status=BookingStatus.PENDING,
    )


async def cancel_booking(
    booking_repo: BookingRepository,
    *,
    booking_id: int,
) -> tuple[Booking, BookingStatus]:
    """Returns the booking and the status it had before the call."""
    booking = await booking_repo.get_for_update(booking_id)
    if booking is None:
        raise NotFoundError("booking not found")
    previous = booking.status
    # Idempotent: already cancelled returns as-is
    if previous == BookingStatus.CANCELLED:
        return booking, previous

    booking.status = BookingStatus.CANCELLED
    booking.updated_at = utc_now_naive()
    return await booking_repo.save(booking), previous


async def confirm_booking(
    booking_repo: BookingRepository,
    *,
    booking_id: int,
) -> tuple[Booking, BookingStatus]:
    booking = await booking_repo.get_for_update(booking_id)
    if booking is None:
        raise NotFoundError("booking not found")
    previous = booking.status
    if previous == BookingStatus.CONFIRMED:
        return booking, previous
    if previous == BookingStatus.CANCELLED:
        raise InvalidTransitionError("cancelled bookings cannot be confirmed")

    booking.status = BookingStatus.CONFIRMED
    booking.updated_at = utc_now_naive()
    return await booking_repo.save(booking), previous


async def get_booking(
    booking_repo: BookingRepository,
    *,
    booking_id: int,
) -> Booking:
    booking = await booking_repo.get(booking_id)
    if booking is None:
        raise NotFoundError("booking not found")
    return booking


async def list_bookings(
    booking_repo: BookingRepository,
    *,
    status: BookingStatus | None = None,
    appointment_date: date | None = None,
) -> list[Booking]:
    return await booking_repo.list_all(status=status, appointment_date=appointment_date)

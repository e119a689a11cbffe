import logging
from datetime import date
from typing import Any, Dict, List

from ..domain.errors import NotFoundError
from ..domain.repositories import BookingRepository, SlotRepository
from ..domain.services import CapacitySnapshot, build_snapshot, validate_capacity
from ..models import SlotConfiguration

logger = logging.getLogger(__name__)


async def configure_slots(
    slot_repo: SlotRepository,
    *,
    slot_date: date,
    capacity: int,
    max_capacity: int,
) -> SlotConfiguration:
    validate_capacity(capacity, maximum=max_capacity)
    return await slot_repo.upsert(slot_date, capacity)


async def update_capacity(
    slot_repo: SlotRepository,
    booking_repo: BookingRepository,
    *,
    slot_date: date,
    capacity: int,
    max_capacity: int,
) -> SlotConfiguration:
    validate_capacity(capacity, maximum=max_capacity)
    slot = await slot_repo.get_for_update(slot_date)
    if slot is None:
        raise NotFoundError("no slots configured for this date")
    # Dropping below the active count is allowed; new requests fail until slots free up.
    active = await booking_repo.count_active(slot_date)
    if capacity < active:
        logger.warning("capacity for %s set to %d below %d active bookings", slot_date, capacity, active)
    return await slot_repo.upsert(slot_date, capacity)


async def delete_slots(
    slot_repo: SlotRepository,
    booking_repo: BookingRepository,
    *,
    slot_date: date,
) -> bool:
    active = await booking_repo.count_active(slot_date)
    if active:
        logger.warning("deleting slots for %s with %d active bookings left in place", slot_date, active)
    return await slot_repo.delete(slot_date)


async def get_snapshot(
    slot_repo: SlotRepository,
    booking_repo: BookingRepository,
    *,
    slot_date: date,
) -> CapacitySnapshot:
    slot = await slot_repo.get(slot_date)
    if slot is None:
        return build_snapshot(capacity=None, booked=0)
    booked = await booking_repo.count_active(slot_date)
    return build_snapshot(capacity=slot.capacity, booked=booked)


async def list_slots(
    slot_repo: SlotRepository,
    booking_repo: BookingRepository,
    *,
    start: date | None,
    end: date | None,
) -> List[Dict[str, Any]]:
    slots = await slot_repo.list_all(start=start, end=end)
    booked_by_date = await booking_repo.count_active_by_dates(slot.slot_date for slot in slots)
    items: List[Dict[str, Any]] = []
    for slot in slots:
        booked = booked_by_date.get(slot.slot_date, 0)
        items.append({"slot": slot, "snapshot": build_snapshot(capacity=slot.capacity, booked=booked)})
    return items

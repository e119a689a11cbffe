from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.exc import IntegrityError

from ..config import get_settings
from ..deps import get_coordinator, get_current_principal, require_admin
from ..domain.errors import DomainError
from ..schemas import CapacitySnapshotRead, SlotCapacityUpdate, SlotConfigure, SlotRead
from ..usecases.coordinator import BookingCoordinator
from ..utils.auth import Principal
from .common import audit, http_error, parse_date_param

router = APIRouter(prefix="/slots", tags=["slots"], dependencies=[Depends(get_current_principal)])


@router.get("", response_model=List[SlotRead])
async def list_slots(
    start: Optional[str] = Query(default=None, description="first date (YYYY-MM-DD), inclusive"),
    end: Optional[str] = Query(default=None, description="last date (YYYY-MM-DD), inclusive"),
    coordinator: BookingCoordinator = Depends(get_coordinator),
) -> list[SlotRead]:
    start_date = parse_date_param(start, name="start") if start is not None else None
    end_date = parse_date_param(end, name="end") if end is not None else None
    if start_date is not None and end_date is not None and start_date > end_date:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="start must not be after end")
    try:
        rows = await coordinator.list_slots(start=start_date, end=end_date)
    except DomainError as exc:
        raise http_error(exc) from exc
    return [SlotRead.from_db(slot=entry["slot"], snapshot=entry["snapshot"]) for entry in rows]


@router.get("/{slot_date}/snapshot", response_model=CapacitySnapshotRead)
async def get_snapshot(
    slot_date: str,
    coordinator: BookingCoordinator = Depends(get_coordinator),
) -> CapacitySnapshotRead:
    day = parse_date_param(slot_date)
    try:
        snapshot = await coordinator.get_snapshot(slot_date=day)
    except DomainError as exc:
        raise http_error(exc) from exc
    return CapacitySnapshotRead.from_snapshot(slot_date=day, snapshot=snapshot)


@router.put("/{slot_date}", response_model=SlotRead)
async def configure_slots(
    slot_date: str,
    payload: SlotConfigure,
    coordinator: BookingCoordinator = Depends(get_coordinator),
    principal: Principal = Depends(require_admin),
) -> SlotRead:
    day = parse_date_param(slot_date)
    capacity = payload.capacity if payload.capacity is not None else get_settings().default_daily_capacity
    try:
        slot = await coordinator.configure_slots(slot_date=day, capacity=capacity)
    except IntegrityError:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="slots for this date were configured concurrently")
    except DomainError as exc:
        raise http_error(exc) from exc

    audit(action="slots.configured", actor_id=principal.user_id, slot_date=day, capacity=slot.capacity)
    return SlotRead.from_db(slot=slot)


@router.patch("/{slot_date}", response_model=SlotRead)
async def update_capacity(
    slot_date: str,
    payload: SlotCapacityUpdate,
    coordinator: BookingCoordinator = Depends(get_coordinator),
    principal: Principal = Depends(require_admin),
) -> SlotRead:
    day = parse_date_param(slot_date)
    try:
        slot = await coordinator.update_capacity(slot_date=day, capacity=payload.capacity)
    except DomainError as exc:
        raise http_error(exc) from exc

    audit(action="slots.updated", actor_id=principal.user_id, slot_date=day, capacity=slot.capacity)
    return SlotRead.from_db(slot=slot)


@router.delete("/{slot_date}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_slots(
    slot_date: str,
    coordinator: BookingCoordinator = Depends(get_coordinator),
    principal: Principal = Depends(require_admin),
) -> Response:
    day = parse_date_param(slot_date)
    try:
        deleted = await coordinator.delete_slots(slot_date=day)
    except DomainError as exc:
        raise http_error(exc) from exc

    if deleted:
        audit(action="slots.deleted", actor_id=principal.user_id, slot_date=day)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

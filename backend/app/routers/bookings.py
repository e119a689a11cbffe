import asyncio
import json
from typing import AsyncIterator, List, Optional

from fastapi import APIRouter, Depends, Path, Query, Request, status
from fastapi.responses import StreamingResponse

from ..deps import get_coordinator, get_current_principal
from ..domain.errors import DomainError
from ..domain.events import BookingEvent
from ..infrastructure.event_bus import EventBus
from ..models import BookingStatus
from ..schemas import BookingCreate, BookingRead
from ..usecases.coordinator import BookingCoordinator
from ..utils.auth import Principal
from .common import audit, http_error, parse_date_param

router = APIRouter(prefix="/bookings", tags=["bookings"], dependencies=[Depends(get_current_principal)])

HEARTBEAT_SECONDS = 15.0


def format_sse(event: BookingEvent) -> str:
    data = json.dumps(event.to_dict(), ensure_ascii=True)
    return f"id: {event.booking_id}\nevent: {event.kind}\ndata: {data}\n\n"


async def event_stream(
    request: Request,
    event_bus: EventBus,
    *,
    heartbeat: float = HEARTBEAT_SECONDS,
) -> AsyncIterator[str]:
    async with event_bus.subscribe() as queue:
        yield ": connected\n\n"
        while not await request.is_disconnected():
            try:
                event = await asyncio.wait_for(queue.get(), timeout=heartbeat)
            except asyncio.TimeoutError:
                yield ": keep-alive\n\n"
                continue
            yield format_sse(event)


@router.post("", response_model=BookingRead, status_code=status.HTTP_201_CREATED)
async def create_booking(
    payload: BookingCreate,
    coordinator: BookingCoordinator = Depends(get_coordinator),
    principal: Principal = Depends(get_current_principal),
) -> BookingRead:
    try:
        booking = await coordinator.request_booking(
            appointment_date=payload.date,
            patient_ref=payload.patient_ref,
        )
    except DomainError as exc:
        raise http_error(exc) from exc

    audit(
        action="booking.created",
        actor_id=principal.user_id,
        slot_date=booking.appointment_date,
        booking_id=booking.id,
        patient_ref=booking.patient_ref,
        status_to=booking.status,
    )
    return BookingRead.from_db(booking=booking)


@router.get("", response_model=List[BookingRead])
async def list_bookings(
    date: Optional[str] = Query(default=None, description="appointment date (YYYY-MM-DD)"),
    status_filter: Optional[BookingStatus] = Query(default=None, alias="status"),
    coordinator: BookingCoordinator = Depends(get_coordinator),
) -> list[BookingRead]:
    appointment_date = parse_date_param(date) if date is not None else None
    try:
        rows = await coordinator.list_bookings(status=status_filter, appointment_date=appointment_date)
    except DomainError as exc:
        raise http_error(exc) from exc
    return [BookingRead.from_db(booking=booking) for booking in rows]


@router.get("/events")
async def stream_booking_events(
    request: Request,
    coordinator: BookingCoordinator = Depends(get_coordinator),
) -> StreamingResponse:
    return StreamingResponse(
        event_stream(request, coordinator.event_bus),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


@router.get("/{booking_id}", response_model=BookingRead)
async def get_booking(
    booking_id: int = Path(..., ge=1),
    coordinator: BookingCoordinator = Depends(get_coordinator),
) -> BookingRead:
    try:
        booking = await coordinator.get_booking(booking_id=booking_id)
    except DomainError as exc:
        raise http_error(exc) from exc
    return BookingRead.from_db(booking=booking)


@router.post("/{booking_id}/confirm", response_model=BookingRead)
async def confirm_booking(
    booking_id: int = Path(..., ge=1),
    coordinator: BookingCoordinator = Depends(get_coordinator),
    principal: Principal = Depends(get_current_principal),
) -> BookingRead:
    try:
        booking, previous = await coordinator.confirm_booking(booking_id=booking_id)
    except DomainError as exc:
        raise http_error(exc) from exc

    if previous != booking.status:
        audit(
            action="booking.confirmed",
            actor_id=principal.user_id,
            slot_date=booking.appointment_date,
            booking_id=booking.id,
            patient_ref=booking.patient_ref,
            status_from=previous,
            status_to=booking.status,
        )
    return BookingRead.from_db(booking=booking)


@router.post("/{booking_id}/cancel", response_model=BookingRead)
async def cancel_booking(
    booking_id: int = Path(..., ge=1),
    coordinator: BookingCoordinator = Depends(get_coordinator),
    principal: Principal = Depends(get_current_principal),
) -> BookingRead:
    try:
        booking, previous = await coordinator.cancel_booking(booking_id=booking_id)
    except DomainError as exc:
        raise http_error(exc) from exc

    if previous != booking.status:
        audit(
            action="booking.cancelled",
            actor_id=principal.user_id,
            slot_date=booking.appointment_date,
            booking_id=booking.id,
            patient_ref=booking.patient_ref,
            status_from=previous,
            status_to=booking.status,
        )
    return BookingRead.from_db(booking=booking)

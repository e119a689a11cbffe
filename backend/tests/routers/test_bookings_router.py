import json
from datetime import date, datetime, timezone
from typing import Any, cast

import pytest
from app.domain.errors import (
    CapacityExceededError,
    InvalidTransitionError,
    NoCapacityConfiguredError,
    NotFoundError,
    StoreUnavailableError,
)
from app.domain.events import BookingEvent
from app.infrastructure.event_bus import EventBus
from app.models import Booking, BookingStatus
from app.routers import bookings as router
from app.routers import common
from app.schemas import BookingCreate
from app.usecases.coordinator import BookingCoordinator
from app.utils.auth import Principal
from fastapi import HTTPException
from pydantic import ValidationError

STAFF = Principal(user_id=5, role="staff")
JUNE_1 = date(2024, 6, 1)


def _booking(status: BookingStatus = BookingStatus.PENDING) -> Booking:
    now = datetime.now(timezone.utc).replace(tzinfo=None)
    return Booking(
        id=100,
        appointment_date=JUNE_1,
        patient_ref="patient-1",
        status=status,
        created_at=now,
        updated_at=now,
    )


class FakeCoordinator:
    def __init__(self, result: Any = None, error: Exception | None = None) -> None:
        self.result = result
        self.error = error
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.event_bus = EventBus()

    async def _respond(self, name: str, **kwargs: Any) -> Any:
        self.calls.append((name, kwargs))
        if self.error is not None:
            raise self.error
        return self.result

    async def request_booking(self, **kwargs: Any) -> Any:
        return await self._respond("request_booking", **kwargs)

    async def cancel_booking(self, **kwargs: Any) -> Any:
        return await self._respond("cancel_booking", **kwargs)

    async def confirm_booking(self, **kwargs: Any) -> Any:
        return await self._respond("confirm_booking", **kwargs)


@pytest.fixture
def audit_calls(monkeypatch: pytest.MonkeyPatch) -> list[dict[str, Any]]:
    calls: list[dict[str, Any]] = []

    def fake_emit(**kwargs: Any) -> None:
        calls.append(kwargs)

    monkeypatch.setattr(common, "emit_audit_log", fake_emit)
    return calls


@pytest.mark.asyncio
async def test_create_booking_returns_booking_and_emits_audit(audit_calls: list[dict[str, Any]]) -> None:
    booking = _booking()
    coordinator = FakeCoordinator(result=booking)

    result = await router.create_booking(
        payload=BookingCreate(date=JUNE_1, patient_ref="patient-1"),
        coordinator=cast(BookingCoordinator, coordinator),
        principal=STAFF,
    )

    assert result.booking_id == booking.id
    assert result.status == BookingStatus.PENDING
    assert coordinator.calls == [("request_booking", {"appointment_date": JUNE_1, "patient_ref": "patient-1"})]
    assert len(audit_calls) == 1
    assert audit_calls[0]["action"] == "booking.created"
    assert audit_calls[0]["actor_id"] == STAFF.user_id


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("error", "status_code"),
    [
        (CapacityExceededError("full"), 409),
        (NoCapacityConfiguredError("none"), 409),
        (StoreUnavailableError("down"), 503),
    ],
)
async def test_create_booking_maps_domain_errors(
    error: Exception,
    status_code: int,
    audit_calls: list[dict[str, Any]],
) -> None:
    coordinator = FakeCoordinator(error=error)
    with pytest.raises(HTTPException) as excinfo:
        await router.create_booking(
            payload=BookingCreate(date=JUNE_1, patient_ref="patient-1"),
            coordinator=cast(BookingCoordinator, coordinator),
            principal=STAFF,
        )
    assert excinfo.value.status_code == status_code
    assert audit_calls == []


@pytest.mark.asyncio
async def test_cancel_already_cancelled_skips_audit(audit_calls: list[dict[str, Any]]) -> None:
    booking = _booking(BookingStatus.CANCELLED)
    coordinator = FakeCoordinator(result=(booking, BookingStatus.CANCELLED))

    result = await router.cancel_booking(
        booking_id=booking.id,
        coordinator=cast(BookingCoordinator, coordinator),
        principal=STAFF,
    )

    assert result.status == BookingStatus.CANCELLED
    assert audit_calls == []


@pytest.mark.asyncio
async def test_cancel_records_status_transition(audit_calls: list[dict[str, Any]]) -> None:
    booking = _booking(BookingStatus.CANCELLED)
    coordinator = FakeCoordinator(result=(booking, BookingStatus.CONFIRMED))

    await router.cancel_booking(
        booking_id=booking.id,
        coordinator=cast(BookingCoordinator, coordinator),
        principal=STAFF,
    )

    assert audit_calls[0]["action"] == "booking.cancelled"
    assert audit_calls[0]["status_from"] == BookingStatus.CONFIRMED
    assert audit_calls[0]["status_to"] == BookingStatus.CANCELLED


@pytest.mark.asyncio
async def test_cancel_unknown_booking_returns_404() -> None:
    coordinator = FakeCoordinator(error=NotFoundError("booking not found"))
    with pytest.raises(HTTPException) as excinfo:
        await router.cancel_booking(
            booking_id=1,
            coordinator=cast(BookingCoordinator, coordinator),
            principal=STAFF,
        )
    assert excinfo.value.status_code == 404


@pytest.mark.asyncio
async def test_confirm_cancelled_booking_returns_409() -> None:
    coordinator = FakeCoordinator(error=InvalidTransitionError("cancelled"))
    with pytest.raises(HTTPException) as excinfo:
        await router.confirm_booking(
            booking_id=1,
            coordinator=cast(BookingCoordinator, coordinator),
            principal=STAFF,
        )
    assert excinfo.value.status_code == 409


@pytest.mark.asyncio
async def test_audit_failure_returns_500(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_emit(**kwargs: Any) -> None:
        raise RuntimeError("fail log")

    monkeypatch.setattr(common, "emit_audit_log", fake_emit)
    booking = _booking(BookingStatus.CONFIRMED)
    coordinator = FakeCoordinator(result=(booking, BookingStatus.PENDING))

    with pytest.raises(HTTPException) as excinfo:
        await router.confirm_booking(
            booking_id=booking.id,
            coordinator=cast(BookingCoordinator, coordinator),
            principal=STAFF,
        )
    assert excinfo.value.status_code == 500


def test_format_sse_frames_event() -> None:
    event = BookingEvent.from_booking("booking.created", _booking())
    frame = router.format_sse(event)
    lines = frame.split("\n")
    assert lines[0] == "id: 100"
    assert lines[1] == "event: booking.created"
    assert json.loads(lines[2].removeprefix("data: "))["patient_ref"] == "patient-1"
    assert frame.endswith("\n\n")


class FakeRequest:
    def __init__(self, checks_before_disconnect: int) -> None:
        self.remaining = checks_before_disconnect

    async def is_disconnected(self) -> bool:
        self.remaining -= 1
        return self.remaining < 0


@pytest.mark.asyncio
async def test_event_stream_relays_published_events() -> None:
    bus = EventBus()
    stream = router.event_stream(FakeRequest(checks_before_disconnect=1), bus, heartbeat=1.0)  # type: ignore[arg-type]

    assert await stream.__anext__() == ": connected\n\n"
    bus.publish(BookingEvent.from_booking("booking.created", _booking()))
    frame = await stream.__anext__()
    assert "event: booking.created" in frame

    with pytest.raises(StopAsyncIteration):
        await stream.__anext__()
    assert bus.subscriber_count == 0


@pytest.mark.asyncio
async def test_event_stream_sends_keep_alive_when_idle() -> None:
    bus = EventBus()
    stream = router.event_stream(FakeRequest(checks_before_disconnect=1), bus, heartbeat=0.01)  # type: ignore[arg-type]
    await stream.__anext__()
    assert await stream.__anext__() == ": keep-alive\n\n"
    await stream.aclose()
    assert bus.subscriber_count == 0


@pytest.mark.parametrize("value", [1717200000, "2024-06-01T00:00:00", "2024-6-1", "2024-W22-6", None])
def test_booking_create_requires_iso_calendar_date(value: Any) -> None:
    with pytest.raises(ValidationError):
        BookingCreate(date=value, patient_ref="patient-1")


def test_booking_create_parses_iso_date_string() -> None:
    assert BookingCreate(date="2024-06-01", patient_ref="patient-1").date == JUNE_1  # type: ignore[arg-type]

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field, field_serializer, field_validator

from .domain.services import CapacitySnapshot
from .models import Booking, BookingStatus, SlotConfiguration
from .utils.time import CLINIC_TZ, parse_iso_date, utc_naive_to_clinic


class SlotConfigure(BaseModel):
    # None falls back to the configured default daily capacity.
    capacity: Optional[int] = Field(default=None, ge=0)


class SlotCapacityUpdate(BaseModel):
    capacity: int = Field(ge=0)


class CapacitySnapshotRead(BaseModel):
    date: date
    available: int
    booked: int
    remaining: int
    percentage_used: int

    @classmethod
    def from_snapshot(cls, *, slot_date: date, snapshot: CapacitySnapshot) -> "CapacitySnapshotRead":
        return cls(
            date=slot_date,
            available=snapshot.available,
            booked=snapshot.booked,
            remaining=snapshot.remaining,
            percentage_used=snapshot.percentage_used,
        )


class SlotRead(BaseModel):
    date: date
    capacity: int
    updated_at: datetime
    snapshot: Optional[CapacitySnapshotRead] = None

    @field_serializer("updated_at")
    def _ser_datetime(self, dt: datetime) -> str:
        return dt.astimezone(CLINIC_TZ).isoformat()

    @classmethod
    def from_db(cls, *, slot: SlotConfiguration, snapshot: CapacitySnapshot | None = None) -> "SlotRead":
        return cls(
            date=slot.slot_date,
            capacity=slot.capacity,
            updated_at=utc_naive_to_clinic(slot.updated_at),
            snapshot=(
                CapacitySnapshotRead.from_snapshot(slot_date=slot.slot_date, snapshot=snapshot)
                if snapshot is not None
                else None
            ),
        )


class BookingCreate(BaseModel):
    date: date
    patient_ref: str = Field(min_length=1, max_length=255)

    @field_validator("date", mode="before")
    @classmethod
    def _parse_date(cls, value: object) -> object:
        # Python callers may pass a date; JSON bodies must carry YYYY-MM-DD.
        if isinstance(value, date) and not isinstance(value, datetime):
            return value
        if not isinstance(value, str):
            raise ValueError("date must be formatted as YYYY-MM-DD")
        return parse_iso_date(value)


class BookingRead(BaseModel):
    booking_id: int
    date: date
    patient_ref: str
    status: BookingStatus
    created_at: datetime
    updated_at: datetime

    @field_serializer("created_at", "updated_at")
    def _ser_datetime(self, dt: datetime) -> str:
        return dt.astimezone(CLINIC_TZ).isoformat()

    @classmethod
    def from_db(cls, *, booking: Booking) -> "BookingRead":
        return cls(
            booking_id=booking.id,
            date=booking.appointment_date,
            patient_ref=booking.patient_ref,
            status=booking.status,
            created_at=utc_naive_to_clinic(booking.created_at),
            updated_at=utc_naive_to_clinic(booking.updated_at),
        )

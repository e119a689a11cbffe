from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import date, datetime
from typing import Any, Literal

from ..models import Booking, BookingStatus

BookingEventKind = Literal["booking.created", "booking.confirmed", "booking.cancelled"]


@dataclass(frozen=True)
class BookingEvent:
    kind: BookingEventKind
    booking_id: int
    appointment_date: date
    status: BookingStatus
    patient_ref: str
    occurred_at: datetime

    @classmethod
    def from_booking(cls, kind: BookingEventKind, booking: Booking) -> "BookingEvent":
        return cls(
            kind=kind,
            booking_id=booking.id,
            appointment_date=booking.appointment_date,
            status=booking.status,
            patient_ref=booking.patient_ref,
            occurred_at=booking.updated_at,
        )

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["appointment_date"] = self.appointment_date.isoformat()
        data["status"] = str(self.status)
        data["occurred_at"] = self.occurred_at.isoformat()
        return data

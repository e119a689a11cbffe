from __future__ import annotations

from datetime import date
from typing import Iterable, Protocol

from ..models import Booking, BookingStatus, SlotConfiguration


class SlotRepository(Protocol):
    async def get(self, slot_date: date) -> SlotConfiguration | None: ...

    async def get_for_update(self, slot_date: date) -> SlotConfiguration | None: ...

    async def upsert(self, slot_date: date, capacity: int) -> SlotConfiguration: ...

    async def delete(self, slot_date: date) -> bool: ...

    async def list_all(
        self,
        start: date | None = None,
        end: date | None = None,
    ) -> list[SlotConfiguration]: ...


class BookingRepository(Protocol):
    async def count_active(self, appointment_date: date) -> int: ...

    async def count_active_by_dates(self, dates: Iterable[date]) -> dict[date, int]: ...

    async def create(
        self,
        appointment_date: date,
        patient_ref: str,
        status: BookingStatus,
    ) -> Booking: ...

    async def get(self, booking_id: int) -> Booking | None: ...

    async def get_for_update(self, booking_id: int) -> Booking | None: ...

    async def save(self, booking: Booking) -> Booking: ...

    async def list_by_date(self, appointment_date: date) -> list[Booking]: ...

    async def list_all(
        self,
        status: BookingStatus | None = None,
        appointment_date: date | None = None,
    ) -> list[Booking]: ...

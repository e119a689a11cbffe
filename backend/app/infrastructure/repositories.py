from __future__ import annotations

from datetime import date
from typing import Iterable

from sqlalchemy import Select, delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.errors import InvalidCapacityError
from ..domain.repositories import BookingRepository, SlotRepository
from ..models import ACTIVE_BOOKING_STATUSES, Booking, BookingStatus, SlotConfiguration
from ..utils.time import utc_now_naive


class SqlAlchemySlotRepository(SlotRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, slot_date: date) -> SlotConfiguration | None:
        return await self.session.scalar(select(SlotConfiguration).where(SlotConfiguration.slot_date == slot_date))

    async def get_for_update(self, slot_date: date) -> SlotConfiguration | None:
        result = await self.session.scalar(
            select(SlotConfiguration).where(SlotConfiguration.slot_date == slot_date).with_for_update()
        )
        return result if isinstance(result, SlotConfiguration) else None

    async def upsert(self, slot_date: date, capacity: int) -> SlotConfiguration:
        if capacity < 0:
            raise InvalidCapacityError("capacity must be >= 0")
        now = utc_now_naive()
        slot = await self.get_for_update(slot_date)
        if slot is None:
            slot = SlotConfiguration(
                slot_date=slot_date,
                capacity=capacity,
                created_at=now,
                updated_at=now,
            )
        else:
            slot.capacity = capacity
            slot.updated_at = now
        self.session.add(slot)
        await self.session.flush()
        return slot

    async def delete(self, slot_date: date) -> bool:
        result = await self.session.execute(delete(SlotConfiguration).where(SlotConfiguration.slot_date == slot_date))
        return bool(result.rowcount)

    async def list_all(
        self,
        start: date | None = None,
        end: date | None = None,
    ) -> list[SlotConfiguration]:
        stmt: Select[tuple[SlotConfiguration]] = select(SlotConfiguration).order_by(SlotConfiguration.slot_date)
        if start is not None:
            stmt = stmt.where(SlotConfiguration.slot_date >= start)
        if end is not None:
            stmt = stmt.where(SlotConfiguration.slot_date <= end)
        return list((await self.session.scalars(stmt)).all())


class SqlAlchemyBookingRepository(BookingRepository):
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def count_active(self, appointment_date: date) -> int:
        stmt = select(func.count(Booking.id)).where(
            Booking.appointment_date == appointment_date,
            Booking.status.in_(ACTIVE_BOOKING_STATUSES),
        )
        return int(await self.session.scalar(stmt) or 0)

    async def count_active_by_dates(self, dates: Iterable[date]) -> dict[date, int]:
        wanted = list(dates)
        if not wanted:
            return {}
        stmt = (
            select(Booking.appointment_date, func.count(Booking.id))
            .where(
                Booking.appointment_date.in_(wanted),
                Booking.status.in_(ACTIVE_BOOKING_STATUSES),
            )
            .group_by(Booking.appointment_date)
        )
        rows = await self.session.execute(stmt)
        return {day: int(count) for day, count in rows.all()}

    async def create(
        self,
        appointment_date: date,
        patient_ref: str,
        status: BookingStatus,
    ) -> Booking:
        now = utc_now_naive()
        booking = Booking(
            appointment_date=appointment_date,
            patient_ref=patient_ref,
            status=status,
            created_at=now,
            updated_at=now,
        )
        self.session.add(booking)
        await self.session.flush()
        return booking

    async def get(self, booking_id: int) -> Booking | None:
        return await self.session.get(Booking, booking_id)

    async def get_for_update(self, booking_id: int) -> Booking | None:
        result = await self.session.scalar(select(Booking).where(Booking.id == booking_id).with_for_update())
        return result if isinstance(result, Booking) else None

    async def save(self, booking: Booking) -> Booking:
        self.session.add(booking)
        await self.session.flush()
        return booking

    async def list_by_date(self, appointment_date: date) -> list[Booking]:
        return await self.list_all(appointment_date=appointment_date)

    async def list_all(
        self,
        status: BookingStatus | None = None,
        appointment_date: date | None = None,
    ) -> list[Booking]:
        stmt: Select[tuple[Booking]] = select(Booking).order_by(Booking.appointment_date, Booking.id)
        if status is not None:
            stmt = stmt.where(Booking.status == status)
        if appointment_date is not None:
            stmt = stmt.where(Booking.appointment_date == appointment_date)
        return list((await self.session.scalars(stmt)).all())

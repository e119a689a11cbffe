from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import date
from typing import Any, AsyncIterator

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..domain.errors import StoreUnavailableError
from ..domain.events import BookingEvent
from ..domain.services import CapacitySnapshot
from ..infrastructure.event_bus import EventBus
from ..infrastructure.locks import KeyedLock
from ..infrastructure.repositories import SqlAlchemyBookingRepository, SqlAlchemySlotRepository
from ..models import Booking, BookingStatus, SlotConfiguration
from . import bookings as booking_usecase
from . import slots as slot_usecase

logger = logging.getLogger(__name__)


class BookingCoordinator:
    """
    Single entry point for every capacity-affecting mutation and store read.

    Admission for a date runs under a per-date asyncio lock and inside one
    transaction that row-locks the date's slot configuration. The lock orders
    requests within this process; the row lock orders them across processes
    on databases that honour SELECT ... FOR UPDATE. Events are published only
    after the transaction commits.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        event_bus: EventBus,
        *,
        max_capacity: int,
        locks: KeyedLock[date] | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._event_bus = event_bus
        self._max_capacity = max_capacity
        self._locks: KeyedLock[date] = locks if locks is not None else KeyedLock()

    @property
    def event_bus(self) -> EventBus:
        return self._event_bus

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    yield session
        except IntegrityError:
            raise
        except SQLAlchemyError as exc:
            logger.exception("booking store operation failed")
            raise StoreUnavailableError("booking store unavailable") from exc

    async def request_booking(self, *, appointment_date: date, patient_ref: str) -> Booking:
        async with self._locks.hold(appointment_date):
            async with self._transaction() as session:
                booking = await booking_usecase.request_booking(
                    SqlAlchemySlotRepository(session),
                    SqlAlchemyBookingRepository(session),
                    appointment_date=appointment_date,
                    patient_ref=patient_ref,
                )
        logger.info("booking %s admitted for %s", booking.id, appointment_date)
        self._event_bus.publish(BookingEvent.from_booking("booking.created", booking))
        return booking

    async def cancel_booking(self, *, booking_id: int) -> tuple[Booking, BookingStatus]:
        async with self._transaction() as session:
            booking, previous = await booking_usecase.cancel_booking(
                SqlAlchemyBookingRepository(session),
                booking_id=booking_id,
            )
        if previous != BookingStatus.CANCELLED:
            logger.info("booking %s cancelled, slot freed on %s", booking.id, booking.appointment_date)
            self._event_bus.publish(BookingEvent.from_booking("booking.cancelled", booking))
        return booking, previous

    async def confirm_booking(self, *, booking_id: int) -> tuple[Booking, BookingStatus]:
        async with self._transaction() as session:
            booking, previous = await booking_usecase.confirm_booking(
                SqlAlchemyBookingRepository(session),
                booking_id=booking_id,
            )
        if previous != BookingStatus.CONFIRMED:
            logger.info("booking %s confirmed", booking.id)
            self._event_bus.publish(BookingEvent.from_booking("booking.confirmed", booking))
        return booking, previous

    async def configure_slots(self, *, slot_date: date, capacity: int) -> SlotConfiguration:
        async with self._locks.hold(slot_date):
            async with self._transaction() as session:
                slot = await slot_usecase.configure_slots(
                    SqlAlchemySlotRepository(session),
                    slot_date=slot_date,
                    capacity=capacity,
                    max_capacity=self._max_capacity,
                )
        logger.info("slots for %s configured with capacity %d", slot_date, capacity)
        return slot

    async def update_capacity(self, *, slot_date: date, capacity: int) -> SlotConfiguration:
        async with self._locks.hold(slot_date):
            async with self._transaction() as session:
                slot = await slot_usecase.update_capacity(
                    SqlAlchemySlotRepository(session),
                    SqlAlchemyBookingRepository(session),
                    slot_date=slot_date,
                    capacity=capacity,
                    max_capacity=self._max_capacity,
                )
        logger.info("slots for %s updated to capacity %d", slot_date, capacity)
        return slot

    async def delete_slots(self, *, slot_date: date) -> bool:
        async with self._locks.hold(slot_date):
            async with self._transaction() as session:
                deleted = await slot_usecase.delete_slots(
                    SqlAlchemySlotRepository(session),
                    SqlAlchemyBookingRepository(session),
                    slot_date=slot_date,
                )
        if deleted:
            logger.info("slots for %s deleted", slot_date)
        return deleted

    async def get_snapshot(self, *, slot_date: date) -> CapacitySnapshot:
        async with self._transaction() as session:
            return await slot_usecase.get_snapshot(
                SqlAlchemySlotRepository(session),
                SqlAlchemyBookingRepository(session),
                slot_date=slot_date,
            )

    async def list_slots(self, *, start: date | None = None, end: date | None = None) -> list[dict[str, Any]]:
        async with self._transaction() as session:
            return await slot_usecase.list_slots(
                SqlAlchemySlotRepository(session),
                SqlAlchemyBookingRepository(session),
                start=start,
                end=end,
            )

    async def get_booking(self, *, booking_id: int) -> Booking:
        async with self._transaction() as session:
            return await booking_usecase.get_booking(SqlAlchemyBookingRepository(session), booking_id=booking_id)

    async def list_bookings(
        self,
        *,
        status: BookingStatus | None = None,
        appointment_date: date | None = None,
    ) -> list[Booking]:
        async with self._transaction() as session:
            return await booking_usecase.list_bookings(
                SqlAlchemyBookingRepository(session),
                status=status,
                appointment_date=appointment_date,
            )

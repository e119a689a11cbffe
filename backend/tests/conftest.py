from pathlib import Path
from typing import AsyncIterator

import pytest_asyncio
from app.database import create_schema
from app.infrastructure.event_bus import EventBus
from app.infrastructure.locks import KeyedLock
from app.usecases.coordinator import BookingCoordinator
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine


@pytest_asyncio.fixture
async def session_factory(tmp_path: Path) -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'clinic.db'}")
    await create_schema(engine)
    yield async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
    await engine.dispose()


@pytest_asyncio.fixture
async def date_locks() -> KeyedLock:
    return KeyedLock()


@pytest_asyncio.fixture
async def coordinator(
    session_factory: async_sessionmaker[AsyncSession],
    date_locks: KeyedLock,
) -> BookingCoordinator:
    return BookingCoordinator(session_factory, EventBus(queue_size=50), max_capacity=100, locks=date_locks)

"""
Pytest fixtures for the local store, a scriptable fake catalog and the
coordinator/service wiring.

Each test gets its own SQLite file so concurrent sessions see real
transaction isolation.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, Optional

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from eventsync.core.errors import SyncError
from eventsync.db.session import create_engine, create_session_factory, init_models
from eventsync.schemas.event import EventChanges, RemoteEvent
from eventsync.schemas.panthi import RemotePanthi
from eventsync.schemas.program import RemoteProgram
from eventsync.schemas.ticket_type import RemoteTicketType
from eventsync.services.catalog_service import CatalogService
from eventsync.services.interfaces.catalog import CatalogSource
from eventsync.services.snapshot import EventSnapshot
from eventsync.services.sync_coordinator import SyncCoordinator

NOW = datetime.now(timezone.utc).replace(microsecond=0)


def make_event(
    event_id: str,
    date: Optional[datetime] = NOW,
    title: Optional[str] = None,
    updated: Optional[datetime] = NOW,
    **fields,
) -> RemoteEvent:
    return RemoteEvent(
        id=event_id,
        title=title or f"Event {event_id}",
        date=date,
        last_updated_at=updated,
        **fields,
    )


def make_ticket_type(
    ticket_id: int,
    price: float = 25.0,
    updated: Optional[datetime] = NOW,
    **fields,
) -> RemoteTicketType:
    return RemoteTicketType(
        id=ticket_id,
        type_name=fields.pop("type_name", f"Ticket {ticket_id}"),
        public_price=price,
        last_updated_at=updated,
        **fields,
    )


def make_panthi(
    panthi_id: int,
    available: int = 10,
    updated: Optional[datetime] = NOW,
    **fields,
) -> RemotePanthi:
    return RemotePanthi(
        id=panthi_id,
        name=fields.pop("name", f"Panthi {panthi_id}"),
        available_slots=available,
        last_updated_at=updated,
        **fields,
    )


def make_program(program_id: str, categories: Optional[list] = None, **fields) -> RemoteProgram:
    return RemoteProgram(
        id=program_id,
        name=fields.pop("name", f"Program {program_id}"),
        categories=categories or [],
        **fields,
    )


class FakeCatalog(CatalogSource):
    """
    In-process catalog source.

    `changed` / `deleted_ids` are returned by the next fetch_events call;
    `error` is raised by every fetch while set; `gate` (an asyncio.Event)
    blocks fetches until it is set.
    """

    def __init__(self):
        self.changed: list[RemoteEvent] = []
        self.deleted_ids: list[str] = []
        self.ticket_types: dict[str, list[RemoteTicketType]] = {}
        self.slots: dict[str, list[RemotePanthi]] = {}
        self.programs: dict[str, list[RemoteProgram]] = {}
        self.error: Optional[SyncError] = None
        self.gate: Optional[asyncio.Event] = None
        self.delay: float = 0
        self.calls: list[tuple] = []

    async def _respond(self, call: tuple):
        self.calls.append(call)
        if self.gate is not None:
            await self.gate.wait()
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error

    def event_calls(self) -> list[tuple]:
        return [call for call in self.calls if call[0] == "events"]

    async def fetch_events(self, since: Optional[datetime] = None) -> EventChanges:
        await self._respond(("events", since))
        return EventChanges(changed=list(self.changed), deleted_ids=list(self.deleted_ids))

    async def fetch_ticket_types(self, event_id: str) -> list[RemoteTicketType]:
        await self._respond(("ticket_types", event_id))
        return list(self.ticket_types.get(event_id, []))

    async def fetch_slots(self, event_id: str) -> list[RemotePanthi]:
        await self._respond(("slots", event_id))
        return list(self.slots.get(event_id, []))

    async def fetch_programs(self, event_id: str) -> list[RemoteProgram]:
        await self._respond(("programs", event_id))
        return list(self.programs.get(event_id, []))


@pytest_asyncio.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """Fresh cache database per test."""
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'cache.db'}", echo=False)
    await init_models(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return create_session_factory(engine)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def catalog() -> FakeCatalog:
    return FakeCatalog()


@pytest.fixture
def snapshot() -> EventSnapshot:
    return EventSnapshot(limit=30)


@pytest.fixture
def coordinator(catalog, session_factory, snapshot) -> SyncCoordinator:
    return SyncCoordinator(catalog, session_factory, snapshot, subresource_timeout=5)


@pytest.fixture
def service(coordinator) -> CatalogService:
    return CatalogService(coordinator)


@pytest.fixture
def yesterday() -> datetime:
    return NOW - timedelta(days=1)

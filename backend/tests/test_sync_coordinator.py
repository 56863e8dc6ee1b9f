"""
Tests for the sync coordinator: delta vs full sync, watermark ordering,
single-flight, atomic commits and sub-resource syncs.
"""

import asyncio
from datetime import datetime, timezone

import pytest
from sqlalchemy.exc import OperationalError

from eventsync.core.errors import ProtocolError, StoreError, TransportError
from eventsync.services import store_service
from eventsync.services.sync_coordinator import (
    EVENTS_FAMILY,
    SyncState,
    SyncStatus,
    slots_family,
    ticket_types_family,
)

from tests.conftest import make_event, make_panthi, make_program, make_ticket_type


async def watermark(session_factory):
    async with session_factory() as db:
        return await store_service.get_watermark(db, EVENTS_FAMILY)


async def event_ids(session_factory) -> list[str]:
    async with session_factory() as db:
        return sorted(e.id for e in await store_service.list_events(db, 500))


async def wait_for_call(catalog, kind: str):
    while not any(call[0] == kind for call in catalog.calls):
        await asyncio.sleep(0.01)


@pytest.mark.asyncio
async def test_first_sync_fetches_everything_and_sets_watermark(coordinator, catalog, session_factory):
    catalog.changed = [make_event("E1"), make_event("E2")]
    before = datetime.now(timezone.utc)

    outcome = await coordinator.sync_events()

    assert outcome.status is SyncStatus.COMMITTED
    assert outcome.merge.inserted == 2
    assert catalog.event_calls() == [("events", None)]
    assert await event_ids(session_factory) == ["E1", "E2"]
    stored = await watermark(session_factory)
    assert stored is not None
    assert stored >= before.replace(microsecond=0)


@pytest.mark.asyncio
async def test_delta_sync_sends_previous_watermark(coordinator, catalog, session_factory):
    catalog.changed = [make_event("E1")]
    await coordinator.sync_events()
    first_watermark = await watermark(session_factory)

    catalog.changed = []
    await coordinator.sync_events()

    assert catalog.event_calls()[1] == ("events", first_watermark)
    assert await watermark(session_factory) >= first_watermark


@pytest.mark.asyncio
async def test_forced_full_sync_ignores_watermark(coordinator, catalog):
    catalog.changed = [make_event("E1")]
    await coordinator.sync_events()

    outcome = await coordinator.sync_events(force_full=True)

    assert outcome.forced_full is True
    assert catalog.event_calls()[1] == ("events", None)


@pytest.mark.asyncio
async def test_delta_with_tombstones_removes_events(coordinator, catalog, session_factory):
    catalog.changed = [make_event("E1"), make_event("E2"), make_event("E3")]
    await coordinator.sync_events()

    catalog.changed = [make_event("E4")]
    catalog.deleted_ids = ["E2"]
    outcome = await coordinator.sync_events()

    assert outcome.merge.inserted == 1
    assert outcome.merge.deleted == 1
    assert await event_ids(session_factory) == ["E1", "E3", "E4"]
    assert [e.id for e in coordinator.snapshot.events] == ["E1", "E3", "E4"]


@pytest.mark.asyncio
async def test_network_failure_leaves_store_and_watermark(coordinator, catalog, session_factory):
    catalog.changed = [make_event("E1")]
    await coordinator.sync_events()
    old_watermark = await watermark(session_factory)

    catalog.error = TransportError("The network connection was lost")
    outcome = await coordinator.sync_events()

    assert outcome.status is SyncStatus.FAILED
    assert outcome.error.kind == "transport"
    assert await event_ids(session_factory) == ["E1"]
    assert await watermark(session_factory) == old_watermark
    assert coordinator.needs_full_resync is False
    assert coordinator.snapshot.last_error == outcome.error.user_message
    assert coordinator.snapshot.is_loading is False
    assert [e.id for e in coordinator.snapshot.events] == ["E1"]


@pytest.mark.asyncio
async def test_server_error_is_reported_with_server_message(coordinator, catalog):
    catalog.error = ProtocolError("GET events failed", status_code=503, server_message="Maintenance window")

    outcome = await coordinator.sync_events()

    assert outcome.status is SyncStatus.FAILED
    assert outcome.error.user_message == "Maintenance window"
    assert coordinator.state(EVENTS_FAMILY) is SyncState.IDLE
    assert coordinator.last_outcome(EVENTS_FAMILY) is outcome


@pytest.mark.asyncio
async def test_successful_sync_clears_previous_error(coordinator, catalog):
    catalog.error = TransportError("offline")
    await coordinator.sync_events()
    assert coordinator.snapshot.last_error is not None

    catalog.error = None
    catalog.changed = [make_event("E1")]
    await coordinator.sync_events()

    assert coordinator.snapshot.last_error is None


@pytest.mark.asyncio
async def test_concurrent_request_for_same_family_is_busy(coordinator, catalog):
    catalog.changed = [make_event("E1")]
    catalog.gate = asyncio.Event()

    first = asyncio.create_task(coordinator.sync_events())
    await wait_for_call(catalog, "events")
    assert coordinator.state(EVENTS_FAMILY) is SyncState.RUNNING

    second = await coordinator.sync_events()
    assert second.status is SyncStatus.BUSY
    assert len(catalog.event_calls()) == 1

    catalog.gate.set()
    outcome = await first

    assert outcome.status is SyncStatus.COMMITTED
    assert coordinator.state(EVENTS_FAMILY) is SyncState.IDLE
    assert coordinator.is_running(EVENTS_FAMILY) is False


@pytest.mark.asyncio
async def test_different_families_run_concurrently(coordinator, catalog):
    catalog.changed = [make_event("E1")]
    await coordinator.sync_events()

    catalog.gate = asyncio.Event()
    catalog.ticket_types["E1"] = [make_ticket_type(1)]
    events_task = asyncio.create_task(coordinator.sync_events())
    tickets_task = asyncio.create_task(coordinator.sync_ticket_types("E1"))
    await wait_for_call(catalog, "events")
    await wait_for_call(catalog, "ticket_types")

    assert coordinator.is_running(EVENTS_FAMILY)
    assert coordinator.is_running(ticket_types_family("E1"))

    catalog.gate.set()
    events_outcome, tickets_outcome = await asyncio.gather(events_task, tickets_task)
    assert events_outcome.status is SyncStatus.COMMITTED
    assert tickets_outcome.status is SyncStatus.COMMITTED


@pytest.mark.asyncio
async def test_store_failure_rolls_back_whole_merge(coordinator, catalog, session_factory, monkeypatch):
    """Inserts from a batch whose tombstone step fails must not be visible."""
    catalog.changed = [make_event("E1"), make_event("E2")]
    await coordinator.sync_events()
    old_watermark = await watermark(session_factory)

    async def broken_delete(db, event_ids):
        raise OperationalError("DELETE FROM events", {}, Exception("disk I/O error"))

    monkeypatch.setattr(store_service, "delete_events", broken_delete)
    catalog.changed = [make_event("E3")]
    catalog.deleted_ids = ["E1"]

    outcome = await coordinator.sync_events()

    assert outcome.status is SyncStatus.FAILED
    assert isinstance(outcome.error, StoreError)
    assert await event_ids(session_factory) == ["E1", "E2"]
    assert await watermark(session_factory) == old_watermark
    assert coordinator.needs_full_resync is True


@pytest.mark.asyncio
async def test_store_failure_forces_full_resync_next_time(coordinator, catalog, monkeypatch):
    async def broken_delete(db, event_ids):
        raise OperationalError("DELETE FROM events", {}, Exception("database disk image is malformed"))

    catalog.changed = [make_event("E1")]
    await coordinator.sync_events()

    with monkeypatch.context() as patch:
        patch.setattr(store_service, "delete_events", broken_delete)
        catalog.deleted_ids = ["E1"]
        await coordinator.sync_events()

    catalog.deleted_ids = []
    outcome = await coordinator.sync_events()

    assert outcome.status is SyncStatus.COMMITTED
    assert outcome.forced_full is True
    assert catalog.event_calls()[-1] == ("events", None)
    assert coordinator.needs_full_resync is False


@pytest.mark.asyncio
async def test_snapshot_listeners_see_loading_then_result(coordinator, catalog):
    seen = []
    coordinator.snapshot.subscribe(lambda state: seen.append((state.is_loading, [e.id for e in state.events])))
    catalog.changed = [make_event("E1")]

    await coordinator.sync_events()

    assert seen[0] == (True, [])
    assert (True, ["E1"]) in seen
    assert seen[-1] == (False, ["E1"])


@pytest.mark.asyncio
async def test_reset_store_wipes_cache_and_watermark(coordinator, catalog, session_factory):
    catalog.changed = [make_event("E1")]
    await coordinator.sync_events()

    await coordinator.reset_store()

    assert await event_ids(session_factory) == []
    assert await watermark(session_factory) is None
    assert coordinator.snapshot.events == []


@pytest.mark.asyncio
async def test_ticket_types_sync_requires_cached_event(coordinator, catalog):
    catalog.ticket_types["E9"] = [make_ticket_type(1)]

    outcome = await coordinator.sync_ticket_types("E9")

    assert outcome.status is SyncStatus.SKIPPED
    assert catalog.calls == []


@pytest.mark.asyncio
async def test_ticket_types_upsert_then_prune_on_force(coordinator, catalog, session_factory):
    catalog.changed = [make_event("E1")]
    await coordinator.sync_events()
    catalog.ticket_types["E1"] = [make_ticket_type(1), make_ticket_type(2)]
    await coordinator.sync_ticket_types("E1")

    catalog.ticket_types["E1"] = [make_ticket_type(2)]
    delta = await coordinator.sync_ticket_types("E1")
    async with session_factory() as db:
        assert [t.id for t in await store_service.get_ticket_types(db, "E1")] == [1, 2]

    full = await coordinator.sync_ticket_types("E1", force_full=True)
    async with session_factory() as db:
        assert [t.id for t in await store_service.get_ticket_types(db, "E1")] == [2]

    assert delta.merge.deleted == 0
    assert full.merge.deleted == 1
    assert full.forced_full is True


@pytest.mark.asyncio
async def test_slots_skip_when_event_has_no_panthis(coordinator, catalog):
    catalog.changed = [make_event("E1", uses_panthi=False)]
    await coordinator.sync_events()

    outcome = await coordinator.sync_slots("E1")

    assert outcome.status is SyncStatus.SKIPPED
    assert coordinator.last_outcome(slots_family("E1")) is outcome


@pytest.mark.asyncio
async def test_slots_sync_merges_inventory(coordinator, catalog, session_factory):
    catalog.changed = [make_event("E1", uses_panthi=True)]
    await coordinator.sync_events()
    catalog.slots["E1"] = [make_panthi(1, available=3), make_panthi(2, available=0)]

    outcome = await coordinator.sync_slots("E1")

    assert outcome.status is SyncStatus.COMMITTED
    async with session_factory() as db:
        panthis = await store_service.get_panthis(db, "E1")
    assert [(p.id, p.available_slots) for p in panthis] == [(1, 3), (2, 0)]


@pytest.mark.asyncio
async def test_programs_replace_all(coordinator, catalog, session_factory):
    catalog.changed = [make_event("E1")]
    await coordinator.sync_events()
    catalog.programs["E1"] = [make_program("P1"), make_program("P2")]
    await coordinator.sync_programs("E1")

    catalog.programs["E1"] = [make_program("P3")]
    outcome = await coordinator.sync_programs("E1")

    assert outcome.merge.deleted == 2
    async with session_factory() as db:
        assert [p.id for p in await store_service.get_programs(db, "E1")] == ["P3"]


@pytest.mark.asyncio
async def test_programs_timeout_keeps_cached_programs(coordinator, catalog, session_factory):
    catalog.changed = [make_event("E1")]
    await coordinator.sync_events()
    catalog.programs["E1"] = [make_program("P1")]
    await coordinator.sync_programs("E1")

    catalog.programs["E1"] = []
    catalog.delay = 1.0
    outcome = await coordinator.sync_programs("E1", timeout=0.05)

    assert outcome.status is SyncStatus.FAILED
    assert outcome.error.kind == "timeout"
    async with session_factory() as db:
        assert [p.id for p in await store_service.get_programs(db, "E1")] == ["P1"]


@pytest.mark.asyncio
async def test_event_deleted_during_subresource_fetch_is_skipped(coordinator, catalog, session_factory):
    catalog.changed = [make_event("E1")]
    await coordinator.sync_events()
    catalog.ticket_types["E1"] = [make_ticket_type(1)]
    catalog.gate = asyncio.Event()

    task = asyncio.create_task(coordinator.sync_ticket_types("E1"))
    await wait_for_call(catalog, "ticket_types")
    async with session_factory() as db:
        async with db.begin():
            await store_service.delete_events(db, ["E1"])
    catalog.gate.set()
    outcome = await task

    assert outcome.status is SyncStatus.SKIPPED
    async with session_factory() as db:
        assert await store_service.get_ticket_types(db, "E1") == []


@pytest.mark.asyncio
async def test_cancelled_sync_releases_family(coordinator, catalog, session_factory):
    catalog.changed = [make_event("E1")]
    catalog.gate = asyncio.Event()

    task = asyncio.create_task(coordinator.sync_events())
    await wait_for_call(catalog, "events")
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert coordinator.is_running(EVENTS_FAMILY) is False
    assert coordinator.snapshot.is_loading is False
    assert await event_ids(session_factory) == []
    assert await watermark(session_factory) is None


@pytest.mark.asyncio
async def test_watermark_failure_rolls_back_merged_events(coordinator, catalog, session_factory, monkeypatch):
    """Merged records and the watermark commit together."""
    catalog.changed = [make_event("E1")]
    await coordinator.sync_events()
    old_watermark = await watermark(session_factory)

    async def broken_watermark(db, family, synced_at):
        raise OperationalError("UPDATE sync_watermarks", {}, Exception("database is locked"))

    monkeypatch.setattr(store_service, "set_watermark", broken_watermark)
    catalog.changed = [make_event("E2")]

    outcome = await coordinator.sync_events()

    assert outcome.status is SyncStatus.FAILED
    assert await event_ids(session_factory) == ["E1"]
    assert await watermark(session_factory) == old_watermark

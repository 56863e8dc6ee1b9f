"""
Observable, bounded projection of the cached events the UI should render.

The snapshot holds nothing the store does not have: every reload replaces
the whole list with a fresh bounded scan. It never talks to the remote
catalog.
"""

from dataclasses import dataclass, field
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from eventsync.core.config import get_settings
from eventsync.core.errors import StoreError
from eventsync.core.logging import get_logger
from eventsync.core.metrics import snapshot_size
from eventsync.schemas.event import EventView
from eventsync.services import store_service

logger = get_logger(__name__)


@dataclass(frozen=True)
class SnapshotState:
    events: list[EventView] = field(default_factory=list)
    is_loading: bool = False
    last_error: Optional[str] = None


Listener = Callable[[SnapshotState], None]


class EventSnapshot:
    def __init__(self, limit: Optional[int] = None):
        self.limit = limit if limit is not None else get_settings().SNAPSHOT_LIMIT
        self._state = SnapshotState()
        self._listeners: list[Listener] = []
        self.loaded = False

    @property
    def state(self) -> SnapshotState:
        return self._state

    @property
    def events(self) -> list[EventView]:
        return self._state.events

    @property
    def is_loading(self) -> bool:
        return self._state.is_loading

    @property
    def last_error(self) -> Optional[str]:
        return self._state.last_error

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; it is called with every published state. Returns an unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            self.unsubscribe(listener)

        return unsubscribe

    def unsubscribe(self, listener: Listener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def set_loading(self, is_loading: bool) -> None:
        self._publish(SnapshotState(self._state.events, is_loading, self._state.last_error))

    def set_error(self, message: Optional[str]) -> None:
        self._publish(SnapshotState(self._state.events, self._state.is_loading, message))

    async def reload(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        limit: Optional[int] = None,
    ) -> list[EventView]:
        """
        Bounded scan of the store.

        At the snapshot's own limit the result replaces the published events.
        Any other limit is a one-off read: subscribers keep seeing the
        published list.
        """
        bound = limit if limit is not None else self.limit
        if bound < 0:
            raise ValueError(f"snapshot limit must not be negative, got {bound}")
        publish = bound == self.limit
        try:
            async with session_factory() as db:
                records = await store_service.list_events(db, bound)
                events = [EventView.model_validate(record) for record in records]
        except SQLAlchemyError as e:
            logger.exception("snapshot_reload_failed", limit=bound)
            # Keep the previous events on screen
            if publish:
                self.set_error("Failed to load local events.")
            raise StoreError("Failed to load local events") from e

        if publish:
            self.loaded = True
            snapshot_size.set(len(events))
            self._publish(SnapshotState(events, self._state.is_loading, self._state.last_error))
        logger.debug("snapshot_reloaded", limit=bound, count=len(events))
        return events

    def _publish(self, state: SnapshotState) -> None:
        self._state = state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                logger.exception("snapshot_listener_failed", listener=repr(listener))

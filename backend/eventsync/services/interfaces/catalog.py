"""
Remote catalog interface.
The sync coordinator depends on this contract, not on a concrete HTTP client.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from eventsync.schemas.event import EventChanges
from eventsync.schemas.panthi import RemotePanthi
from eventsync.schemas.program import RemoteProgram
from eventsync.schemas.ticket_type import RemoteTicketType


class CatalogSource(ABC):
    """
    Read-only view of the remote event catalog.

    Implementations:
    - HttpCatalogClient: the REST API over httpx

    Every method raises a SyncError subclass (TransportError, ProtocolError,
    DecodingError) on failure and never touches local state.
    """

    @abstractmethod
    async def fetch_events(self, since: Optional[datetime] = None) -> EventChanges:
        """
        Fetch events changed after `since`, plus the ids deleted server-side.

        Args:
            since: Watermark of the last successful sync; None requests the
                full catalog

        Returns:
            EventChanges with the changed records and the tombstone ids
        """

    @abstractmethod
    async def fetch_ticket_types(self, event_id: str) -> list[RemoteTicketType]:
        """Fetch the full current set of ticket types for one event."""

    @abstractmethod
    async def fetch_slots(self, event_id: str) -> list[RemotePanthi]:
        """Fetch the full current panthi (slot) inventory for one event."""

    @abstractmethod
    async def fetch_programs(self, event_id: str) -> list[RemoteProgram]:
        """Fetch the sub-programs of one event, with categories and locations."""

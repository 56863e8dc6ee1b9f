from eventsync.schemas.event import RemoteEvent, EventChanges, EventView
from eventsync.schemas.ticket_type import RemoteTicketType, TicketTypeView
from eventsync.schemas.panthi import RemotePanthi, PanthiView
from eventsync.schemas.program import (
    RemoteProgram,
    ProgramView,
    ProgramCategory,
    PracticeLocation,
    PenaltyDetails,
)
from eventsync.schemas.results import LoadResult

__all__ = [
    "RemoteEvent", "EventChanges", "EventView",
    "RemoteTicketType", "TicketTypeView",
    "RemotePanthi", "PanthiView",
    "RemoteProgram", "ProgramView", "ProgramCategory", "PracticeLocation", "PenaltyDetails",
    "LoadResult",
]

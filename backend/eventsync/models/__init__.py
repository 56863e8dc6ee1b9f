from eventsync.models.event import CachedEvent
from eventsync.models.ticket_type import CachedTicketType
from eventsync.models.panthi import CachedPanthi
from eventsync.models.program import CachedProgram, CachedProgramCategory, CachedPracticeLocation
from eventsync.models.watermark import SyncWatermark

__all__ = [
    "CachedEvent",
    "CachedTicketType",
    "CachedPanthi",
    "CachedProgram",
    "CachedProgramCategory",
    "CachedPracticeLocation",
    "SyncWatermark",
]

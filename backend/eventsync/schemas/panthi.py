"""
Pydantic schemas for panthi (time-slot) inventory.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

from eventsync.schemas.common import WireDateTime


class RemotePanthi(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    available_slots: int = Field(..., ge=0)
    total_slots: Optional[int] = Field(None, ge=0)
    last_updated_at: WireDateTime = None


class PanthiView(BaseModel):
    id: int
    event_id: str
    name: str
    description: Optional[str]
    available_slots: int
    total_slots: Optional[int]
    last_updated_at: Optional[datetime]

    model_config = {"from_attributes": True}

    @property
    def is_full(self) -> bool:
        return self.available_slots <= 0

"""
Pydantic schemas for events: the remote wire shape and the cached view.
"""

from datetime import datetime
from typing import Optional
from pydantic import AliasChoices, BaseModel, Field, computed_field

from eventsync.schemas.common import WireBool, WireDateTime, WireId


class RemoteEvent(BaseModel):
    id: WireId = Field(..., min_length=1)
    title: str
    plain_description: Optional[str] = Field(
        None, validation_alias=AliasChoices("plain_description", "description")
    )
    html_description: Optional[str] = None
    location: Optional[str] = None
    category_name: Optional[str] = None
    category_id: Optional[int] = Field(
        None, validation_alias=AliasChoices("category_id", "event_cat_id")
    )
    image_url: Optional[str] = None
    is_registration_on: WireBool = Field(
        None, validation_alias=AliasChoices("is_registration_on", "is_reg_on")
    )
    is_ticketing_on: WireBool = Field(
        None, validation_alias=AliasChoices("is_ticketing_on", "is_tkt_on")
    )
    show_buy_tickets: WireBool = None
    date: WireDateTime = None
    time_label: Optional[str] = Field(
        None, validation_alias=AliasChoices("time_label", "time_string")
    )
    event_link: Optional[str] = None
    uses_panthi: WireBool = None
    last_updated_at: WireDateTime = None
    parent_event_id: Optional[WireId] = None


class EventChanges(BaseModel):
    """Response of `GET events?since=...`: changed records plus tombstones."""

    changed: list[RemoteEvent] = Field(
        default_factory=list, validation_alias=AliasChoices("changed", "events")
    )
    deleted_ids: list[WireId] = Field(
        default_factory=list, validation_alias=AliasChoices("deleted_ids", "deletedIds")
    )


class EventView(BaseModel):
    id: str
    title: str
    plain_description: Optional[str]
    html_description: Optional[str]
    location: Optional[str]
    category_name: Optional[str]
    category_id: Optional[int]
    image_url: Optional[str]
    is_registration_on: bool
    is_ticketing_on: bool
    show_buy_tickets: bool
    date: Optional[datetime]
    time_label: Optional[str]
    event_link: Optional[str]
    uses_panthi: bool
    last_updated_at: Optional[datetime]
    parent_event_id: Optional[str]

    model_config = {"from_attributes": True}

    @computed_field
    @property
    def is_date_tbd(self) -> bool:
        return self.date is None

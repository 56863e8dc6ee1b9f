"""
Pydantic schemas for event ticket types.
"""

from datetime import datetime
from typing import Optional
from pydantic import AliasChoices, BaseModel, Field, model_validator

from eventsync.schemas.common import WireBool, WireDateTime


class RemoteTicketType(BaseModel):
    id: int
    type_name: str
    public_price: float = Field(..., ge=0)
    member_price: Optional[float] = Field(None, ge=0)
    early_bird_public_price: Optional[float] = Field(None, ge=0)
    early_bird_member_price: Optional[float] = Field(None, ge=0)
    early_bird_end_date: WireDateTime = None
    currency_code: str = "USD"
    is_member_exclusive: WireBool = Field(
        None,
        validation_alias=AliasChoices("is_member_exclusive", "is_ticket_type_member_exclusive"),
    )
    last_updated_at: WireDateTime = None

    @model_validator(mode="after")
    def infer_member_exclusive(self) -> "RemoteTicketType":
        # Fallback when the server omits the flag: a ticket that is free to the
        # public but priced for members can only be bought by members.
        if self.is_member_exclusive is None:
            self.is_member_exclusive = self.public_price == 0 and (self.member_price or 0) > 0
        return self


class TicketTypeView(BaseModel):
    id: int
    event_id: str
    type_name: str
    public_price: float
    member_price: Optional[float]
    early_bird_public_price: Optional[float]
    early_bird_member_price: Optional[float]
    early_bird_end_date: Optional[datetime]
    currency_code: str
    is_member_exclusive: bool
    last_updated_at: Optional[datetime]

    model_config = {"from_attributes": True}

    def price(self, is_member: bool, at: Optional[datetime] = None) -> float:
        """Effective price for a buyer, honouring the early-bird window when `at` is given."""
        early_bird = (
            at is not None
            and self.early_bird_end_date is not None
            and at <= self.early_bird_end_date
        )
        if is_member:
            if early_bird and self.early_bird_member_price:
                return self.early_bird_member_price
            if self.member_price:
                return self.member_price
        if early_bird and self.early_bird_public_price:
            return self.early_bird_public_price
        return self.public_price

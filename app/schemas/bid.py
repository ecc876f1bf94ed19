from datetime import datetime
from decimal import Decimal
from typing import Annotated, Any, Literal, Optional, Union
from uuid import UUID

from pydantic import BaseModel, Field, field_serializer

from app.enums.bid_rejection import BidRejectionCode
from app.services.bidding.exceptions import BidRejected
from app.services.bidding.ledger import BidRecord


class BidCreate(BaseModel):
    """
    Schema for submitting a bid.

    Both fields are optional here so that incomplete or malformed submissions
    reach the bid engine and get its typed rejection instead of a 422.
    """
    item_id: Optional[Any] = None
    amount: Optional[Any] = None


class BidResponse(BaseModel):
    """Schema for a bid"""
    id: str
    item_id: str
    user_id: UUID
    amount: Decimal
    timestamp: datetime
    user_name: Optional[str] = None

    @field_serializer("user_id")
    def serialize_uuid(self, v: UUID, _info):
        return str(v)

    @field_serializer("amount")
    def serialize_amount(self, v: Decimal, _info):
        return float(v)

    @classmethod
    def from_record(cls, record: BidRecord) -> "BidResponse":
        return cls(
            id=record.id,
            item_id=record.item_id,
            user_id=record.user_id,
            amount=record.amount,
            timestamp=record.timestamp,
            user_name=record.user_name,
        )


class BidAdmittedResponse(BidResponse):
    outcome: Literal["admitted"] = "admitted"


class BidRejectedResponse(BaseModel):
    outcome: Literal["rejected"] = "rejected"
    code: BidRejectionCode
    message: str
    min_required: Optional[Decimal] = None

    @field_serializer("min_required")
    def serialize_min_required(self, v: Optional[Decimal], _info):
        return float(v) if v is not None else None

    @classmethod
    def from_error(cls, error: BidRejected) -> "BidRejectedResponse":
        return cls(code=error.code, message=error.message, min_required=error.min_required)


# What a client gets back from a bid submission, tagged by `outcome`
BidSubmissionResult = Annotated[
    Union[BidAdmittedResponse, BidRejectedResponse],
    Field(discriminator="outcome"),
]

from decimal import Decimal
from typing import Optional

from app.enums.bid_rejection import BidRejectionCode

# bids.item_id is VARCHAR(64)
MAX_ITEM_ID_LENGTH = 64


class BiddingError(Exception):
    """Base class for bidding failures"""


class BidRejected(BiddingError):
    """A proposed bid failed validation. Nothing was written."""

    def __init__(
        self,
        code: BidRejectionCode,
        message: str,
        min_required: Optional[Decimal] = None
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.min_required = min_required

    @classmethod
    def missing_fields(cls) -> "BidRejected":
        return cls(BidRejectionCode.missing_fields, "Missing required fields: item_id and amount")

    @classmethod
    def invalid_item(cls) -> "BidRejected":
        return cls(
            BidRejectionCode.missing_fields,
            f"item_id must be a string of at most {MAX_ITEM_ID_LENGTH} characters",
        )

    @classmethod
    def invalid_amount(cls) -> "BidRejected":
        return cls(BidRejectionCode.invalid_amount, "Invalid bid amount")

    @classmethod
    def too_low(cls, min_required: Decimal) -> "BidRejected":
        return cls(
            BidRejectionCode.bid_too_low,
            f"Bid must be greater than ${min_required}",
            min_required=min_required,
        )


class LedgerConflict(BiddingError):
    """The item's tail moved between reading it and appending after it"""


class StoreUnavailable(BiddingError):
    """The ledger store could not be reached or failed mid-operation"""


class IdentityResolutionFailed(BiddingError):
    """A user referenced by a bid could not be resolved to a display name"""

from enum import Enum


class BidRejectionCode(str, Enum):
    missing_fields = "missing_fields"
    invalid_amount = "invalid_amount"
    bid_too_low = "bid_too_low"

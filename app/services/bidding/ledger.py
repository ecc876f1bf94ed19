"""
Bid ledger: the append-only, per-item ordered log of admitted bids.

Two implementations share the BidLedger interface: TortoiseBidLedger writes
to the `bids` table and InMemoryBidLedger keeps everything in process memory
for development and tests.
"""

from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, List, Optional, Protocol
from uuid import UUID

from loguru import logger
from tortoise.exceptions import (
    DBConnectionError,
    IntegrityError,
    OperationalError,
    TransactionManagementError,
)
from tortoise.transactions import in_transaction

from app.models.bid import Bid
from app.services.bidding.exceptions import LedgerConflict, StoreUnavailable

CENTS = Decimal("0.01")


@dataclass(frozen=True)
class BidRecord:
    id: str
    item_id: str
    user_id: UUID
    amount: Decimal
    timestamp: datetime
    sequence: int
    user_name: Optional[str] = None

    def with_user_name(self, user_name: str) -> "BidRecord":
        return replace(self, user_name=user_name)


class BidLedger(Protocol):
    """Interface of the ledger store used by the bid engine."""

    async def append_bid(
        self,
        item_id: str,
        user_id: UUID,
        amount: Decimal,
        *,
        after: Optional[BidRecord],
    ) -> BidRecord:
        """
        Append a bid directly after `after` (None for the item's first bid).

        Assigns id, sequence and timestamp. Raises LedgerConflict when `after`
        is no longer the item's latest record.
        """
        ...

    async def query_latest(self, item_id: str) -> Optional[BidRecord]:
        ...

    async def query_all(self, item_id: str) -> List[BidRecord]:
        """All records for the item, newest first."""
        ...


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def next_position(after: Optional[BidRecord]) -> tuple[int, datetime]:
    """Sequence and timestamp for the record that follows `after`."""
    now = datetime.now(timezone.utc)
    if after is None:
        return 1, now
    return after.sequence + 1, max(now, after.timestamp)


class TortoiseBidLedger:
    """Ledger backed by the `bids` table."""

    STORE_ERRORS = (DBConnectionError, OperationalError, TransactionManagementError)

    @staticmethod
    def _to_record(bid: Bid) -> BidRecord:
        return BidRecord(
            id=str(bid.id),
            item_id=bid.item_id,
            user_id=bid.user_id,
            # the ORM hands back normalized decimals, 50.00 arrives as 5E+1
            amount=Decimal(bid.amount).quantize(CENTS),
            timestamp=_as_utc(bid.created_at),
            sequence=bid.sequence,
        )

    async def append_bid(
        self,
        item_id: str,
        user_id: UUID,
        amount: Decimal,
        *,
        after: Optional[BidRecord],
    ) -> BidRecord:
        sequence, timestamp = next_position(after)
        try:
            async with in_transaction():
                tail = await Bid.filter(item_id=item_id).order_by("-sequence").first()
                if (tail.sequence if tail else 0) != sequence - 1:
                    raise LedgerConflict(f"Ledger tail for item {item_id} moved")
                bid = await Bid.create(
                    item_id=item_id,
                    user_id=user_id,
                    amount=amount,
                    sequence=sequence,
                    created_at=timestamp,
                )
        except IntegrityError as e:
            # another writer took the same (item_id, sequence) slot
            raise LedgerConflict(f"Ledger tail for item {item_id} moved") from e
        except self.STORE_ERRORS as e:
            logger.error(f"Failed to append bid for item {item_id}: {e}")
            raise StoreUnavailable(str(e)) from e
        return self._to_record(bid)

    async def query_latest(self, item_id: str) -> Optional[BidRecord]:
        try:
            bid = await Bid.filter(item_id=item_id).order_by("-created_at", "-sequence").first()
        except self.STORE_ERRORS as e:
            logger.error(f"Failed to read latest bid for item {item_id}: {e}")
            raise StoreUnavailable(str(e)) from e
        return self._to_record(bid) if bid else None

    async def query_all(self, item_id: str) -> List[BidRecord]:
        try:
            bids = await Bid.filter(item_id=item_id).order_by("-created_at", "-sequence")
        except self.STORE_ERRORS as e:
            logger.error(f"Failed to read bids for item {item_id}: {e}")
            raise StoreUnavailable(str(e)) from e
        return [self._to_record(bid) for bid in bids]


class InMemoryBidLedger:
    """Simple in-memory ledger for development and tests."""

    def __init__(self):
        self.items: Dict[str, List[BidRecord]] = {}

    async def append_bid(
        self,
        item_id: str,
        user_id: UUID,
        amount: Decimal,
        *,
        after: Optional[BidRecord],
    ) -> BidRecord:
        await asyncio.sleep(0)
        rows = self.items.setdefault(item_id, [])
        tail = rows[-1] if rows else None
        if (tail.id if tail else None) != (after.id if after else None):
            raise LedgerConflict(f"Ledger tail for item {item_id} moved")
        sequence, timestamp = next_position(after)
        record = BidRecord(
            id=str(uuid.uuid4()),
            item_id=item_id,
            user_id=user_id,
            amount=amount,
            timestamp=timestamp,
            sequence=sequence,
        )
        rows.append(record)
        return record

    async def query_latest(self, item_id: str) -> Optional[BidRecord]:
        await asyncio.sleep(0)
        rows = self.items.get(item_id)
        return rows[-1] if rows else None

    async def query_all(self, item_id: str) -> List[BidRecord]:
        await asyncio.sleep(0)
        return list(reversed(self.items.get(item_id, [])))

import asyncio
import contextlib
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from app.enums.bid_rejection import BidRejectionCode
from app.enums.missing_user_policy import MissingUserPolicy
from app.services.auth.identity import Identity
from app.services.bidding.engine import BidEngine, normalize_item_id, parse_amount
from app.services.bidding.exceptions import (
    BidRejected,
    IdentityResolutionFailed,
    LedgerConflict,
    StoreUnavailable,
)
from app.services.bidding.ledger import InMemoryBidLedger, next_position, BidRecord


def amounts_strictly_increase(records) -> bool:
    """records are oldest first"""
    return all(a.amount < b.amount for a, b in zip(records, records[1:]))


class UnconditionalLedger(InMemoryBidLedger):
    """Appends at the tail without checking what the caller last saw"""

    async def append_bid(self, item_id, user_id, amount, *, after):
        await asyncio.sleep(0)
        rows = self.items.setdefault(item_id, [])
        sequence, timestamp = next_position(rows[-1] if rows else None)
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


class UnserializedEngine(BidEngine):
    """Check-then-append with no per-item lock"""

    def _serialized(self, item_id):
        return contextlib.nullcontext()


class AlwaysConflictingLedger(InMemoryBidLedger):
    def __init__(self):
        super().__init__()
        self.attempts = 0

    async def append_bid(self, item_id, user_id, amount, *, after):
        self.attempts += 1
        raise LedgerConflict("tail moved")


# ===================== amount parsing =====================

@pytest.mark.parametrize("raw, expected", [
    (50, Decimal("50.00")),
    ("50", Decimal("50.00")),
    (" 75.5 ", Decimal("75.50")),
    (Decimal("10.005"), Decimal("10.01")),
    (0.1, Decimal("0.10")),
])
def test_parse_amount_accepts_positive_numbers(raw, expected):
    assert parse_amount(raw) == expected


@pytest.mark.parametrize("raw", [
    "abc", "NaN", "Infinity", "-Infinity", "-5", "0", 0, "0.001", True, "1e10", "12,50",
    "9999999999.995", "1e40", [1], {"v": 1},
])
def test_parse_amount_rejects_invalid(raw):
    with pytest.raises(BidRejected) as exc_info:
        parse_amount(raw)
    assert exc_info.value.code == BidRejectionCode.invalid_amount


def test_largest_amount_that_fits_the_column():
    assert parse_amount("9999999999.994") == Decimal("9999999999.99")


def test_normalize_item_id():
    assert normalize_item_id("  lot-7 ") == "lot-7"
    assert normalize_item_id(42) == "42"
    assert normalize_item_id("Y" * 64) == "Y" * 64


@pytest.mark.parametrize("raw", ["Y" * 65, ["X"], {"id": "X"}, True, 1.5])
def test_normalize_item_id_rejects_malformed(raw):
    with pytest.raises(BidRejected) as exc_info:
        normalize_item_id(raw)
    assert exc_info.value.code == BidRejectionCode.missing_fields


# ===================== admission =====================

async def test_bidding_scenario(engine: BidEngine, directory):
    """Opening bid, a bid that is too low, then a higher one"""
    alice = directory.add("alice")
    bob = directory.add("bob")

    assert await engine.get_latest("X") is None

    first = await engine.admit_bid("X", 50, alice)
    assert first.amount == Decimal("50.00")
    assert first.user_name == "alice"

    with pytest.raises(BidRejected) as exc_info:
        await engine.admit_bid("X", 40, bob)
    assert exc_info.value.code == BidRejectionCode.bid_too_low
    assert exc_info.value.min_required == Decimal("50.00")

    second = await engine.admit_bid("X", 75, bob)

    latest = await engine.get_latest("X")
    assert latest.id == second.id
    assert latest.amount == Decimal("75.00")
    assert latest.user_id == bob.user_id

    history = await engine.get_history("X")
    assert [(r.amount, r.user_name) for r in history] == [
        (Decimal("75.00"), "bob"),
        (Decimal("50.00"), "alice"),
    ]


async def test_equal_amount_is_too_low(engine: BidEngine, ledger, directory):
    alice = directory.add("alice")
    await engine.admit_bid("X", "100", alice)

    with pytest.raises(BidRejected) as exc_info:
        await engine.admit_bid("X", "100.00", alice)

    assert exc_info.value.code == BidRejectionCode.bid_too_low
    assert "100.00" in exc_info.value.message
    assert len(ledger.items["X"]) == 1


async def test_rejection_writes_nothing(engine: BidEngine, ledger, directory):
    alice = directory.add("alice")
    await engine.admit_bid("X", 50, alice)
    before = list(ledger.items["X"])

    for amount in (10, 50, "abc", -1):
        with pytest.raises(BidRejected):
            await engine.admit_bid("X", amount, alice)

    assert ledger.items["X"] == before


@pytest.mark.parametrize("item_id, amount", [
    (None, 10), ("", 10), ("   ", 10), ("X", None), ("X", ""), ("X", "  "),
])
async def test_missing_fields(engine: BidEngine, ledger, directory, item_id, amount):
    alice = directory.add("alice")

    with pytest.raises(BidRejected) as exc_info:
        await engine.admit_bid(item_id, amount, alice)

    assert exc_info.value.code == BidRejectionCode.missing_fields
    assert ledger.items == {}


async def test_first_bid_only_needs_to_be_positive(engine: BidEngine, directory):
    alice = directory.add("alice")
    record = await engine.admit_bid("X", "0.01", alice)
    assert record.amount == Decimal("0.01")
    assert record.sequence == 1


async def test_items_are_independent(engine: BidEngine, directory):
    alice = directory.add("alice")
    await engine.admit_bid("X", 500, alice)

    record = await engine.admit_bid("Y", 1, alice)

    assert record.item_id == "Y"
    assert (await engine.get_latest("X")).amount == Decimal("500.00")


async def test_unknown_bidder_is_not_appended(engine: BidEngine, ledger):
    ghost = Identity(user_id=uuid.uuid4(), display_name="ghost")
    with pytest.raises(IdentityResolutionFailed):
        await engine.admit_bid("X", 10, ghost)
    assert ledger.items == {}


async def test_conflicts_exhaust_into_store_unavailable(directory):
    ledger = AlwaysConflictingLedger()
    engine = BidEngine(ledger, directory, conflict_retries=2)
    alice = directory.add("alice")

    with pytest.raises(StoreUnavailable):
        await engine.admit_bid("X", 10, alice)

    assert ledger.attempts == 3
    assert ledger.items == {}


async def test_item_lock_is_released_after_admission(engine: BidEngine, directory):
    alice = directory.add("alice")
    await engine.admit_bid("X", 10, alice)
    with pytest.raises(BidRejected):
        await engine.admit_bid("X", 5, alice)

    assert len(engine.locks) == 0


# ===================== queries =====================

async def test_queries_are_idempotent(engine: BidEngine, directory):
    alice = directory.add("alice")
    for amount in (10, 20, 30):
        await engine.admit_bid("X", amount, alice)

    assert await engine.get_latest("X") == await engine.get_latest("X")
    assert await engine.get_history("X") == await engine.get_history("X")


async def test_history_is_newest_first_with_increasing_timestamps(engine: BidEngine, directory):
    alice = directory.add("alice")
    for amount in (10, 20, 30, 40):
        await engine.admit_bid("X", amount, alice)

    history = await engine.get_history("X")

    assert [r.amount for r in history] == [Decimal(a) for a in ("40.00", "30.00", "20.00", "10.00")]
    oldest_first = list(reversed(history))
    assert all(a.timestamp <= b.timestamp for a, b in zip(oldest_first, oldest_first[1:]))
    assert all(r.timestamp.tzinfo is not None for r in history)
    assert history[0] == (await engine.get_latest("X")).with_user_name("alice")


async def test_history_of_unknown_item_is_empty(engine: BidEngine):
    assert await engine.get_history("nothing-here") == []


async def test_history_fails_on_deleted_bidder(engine: BidEngine, directory):
    alice = directory.add("alice")
    await engine.admit_bid("X", 10, alice)
    del directory.names[alice.user_id]

    with pytest.raises(IdentityResolutionFailed):
        await engine.get_history("X")


async def test_history_placeholder_for_deleted_bidder(ledger, directory):
    engine = BidEngine(ledger, directory, missing_user_policy=MissingUserPolicy.placeholder)
    alice = directory.add("alice")
    bob = directory.add("bob")
    await engine.admit_bid("X", 10, alice)
    await engine.admit_bid("X", 20, bob)
    del directory.names[alice.user_id]

    history = await engine.get_history("X")

    assert [r.user_name for r in history] == ["bob", BidEngine.DELETED_USER_NAME]


def test_timestamp_never_goes_backwards():
    future = datetime.now(timezone.utc) + timedelta(hours=1)
    previous = BidRecord(
        id="1", item_id="X", user_id=None, amount=Decimal("1"), timestamp=future, sequence=4
    )

    sequence, timestamp = next_position(previous)

    assert sequence == 5
    assert timestamp == future


# ===================== concurrency =====================

async def test_concurrent_ascending_bids_are_all_admitted(engine: BidEngine, ledger, directory):
    bidders = [directory.add(f"user{i}") for i in range(10)]
    await engine.admit_bid("X", 50, bidders[0])

    amounts = [60 + 10 * i for i in range(10)]
    results = await asyncio.gather(*(
        engine.admit_bid("X", amount, bidder) for amount, bidder in zip(amounts, bidders)
    ))

    assert len(results) == 10
    rows = ledger.items["X"]
    assert len(rows) == 11
    assert amounts_strictly_increase(rows)
    assert rows[-1].amount == Decimal("150.00")


async def test_concurrent_descending_bids_keep_ledger_increasing(engine: BidEngine, ledger, directory):
    bidders = [directory.add(f"user{i}") for i in range(10)]
    await engine.admit_bid("X", 50, bidders[0])

    amounts = [150 - 10 * i for i in range(10)]
    results = await asyncio.gather(
        *(engine.admit_bid("X", amount, bidder) for amount, bidder in zip(amounts, bidders)),
        return_exceptions=True,
    )

    admitted = [r for r in results if isinstance(r, BidRecord)]
    rejected = [r for r in results if isinstance(r, BidRejected)]
    assert len(admitted) == 1
    assert len(rejected) == 9
    assert all(r.code == BidRejectionCode.bid_too_low for r in rejected)
    assert [r.amount for r in ledger.items["X"]] == [Decimal("50.00"), Decimal("150.00")]


async def test_conditional_append_alone_keeps_ledger_increasing(ledger, directory):
    engine = UnserializedEngine(ledger, directory)
    bidders = [directory.add(f"user{i}") for i in range(5)]
    await engine.admit_bid("X", 50, bidders[0])

    results = await asyncio.gather(
        *(engine.admit_bid("X", 100 - 10 * i, bidder) for i, bidder in enumerate(bidders)),
        return_exceptions=True,
    )

    assert not any(isinstance(r, StoreUnavailable) for r in results)
    assert amounts_strictly_increase(ledger.items["X"])


async def test_unguarded_check_then_append_loses_ordering(directory):
    """Without the lock or the conditional append, concurrent bids break the ordering"""
    ledger = UnconditionalLedger()
    engine = UnserializedEngine(ledger, directory)
    bidders = [directory.add(f"user{i}") for i in range(5)]
    await engine.admit_bid("X", 50, bidders[0])

    await asyncio.gather(
        *(engine.admit_bid("X", 100 - 10 * i, bidder) for i, bidder in enumerate(bidders)),
        return_exceptions=True,
    )

    assert not amounts_strictly_increase(ledger.items["X"])


async def test_lock_makes_unconditional_ledger_safe(directory):
    ledger = UnconditionalLedger()
    engine = BidEngine(ledger, directory)
    bidders = [directory.add(f"user{i}") for i in range(5)]
    await engine.admit_bid("X", 50, bidders[0])

    await asyncio.gather(
        *(engine.admit_bid("X", 100 - 10 * i, bidder) for i, bidder in enumerate(bidders)),
        return_exceptions=True,
    )

    assert amounts_strictly_increase(ledger.items["X"])
    assert len(engine.locks) == 0

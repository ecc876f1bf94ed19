from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, List, Optional

from loguru import logger

from app.enums.missing_user_policy import MissingUserPolicy
from app.services.auth.identity import Identity, IdentityDirectory
from app.services.bidding.exceptions import (
    MAX_ITEM_ID_LENGTH,
    BidRejected,
    IdentityResolutionFailed,
    LedgerConflict,
    StoreUnavailable,
)
from app.services.bidding.ledger import CENTS, BidLedger, BidRecord
from app.services.bidding.locks import ItemLockRegistry

# bids.amount is DECIMAL(12, 2)
MAX_AMOUNT = Decimal("1e10")


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def parse_amount(raw: Any) -> Decimal:
    """
    Parse a submitted amount into a positive Decimal rounded to cents.

    Accepts numbers and numeric strings. Raises BidRejected(invalid_amount)
    for anything else, including NaN, infinities, zero and negatives.
    """
    if isinstance(raw, bool):
        raise BidRejected.invalid_amount()
    try:
        value = Decimal(str(raw).strip())
    except InvalidOperation:
        raise BidRejected.invalid_amount() from None

    # bounded before rounding, quantize cannot represent huge values
    if not value.is_finite() or value.copy_abs() >= MAX_AMOUNT:
        raise BidRejected.invalid_amount()

    value = value.quantize(CENTS, rounding=ROUND_HALF_UP)
    if value <= 0 or value >= MAX_AMOUNT:
        raise BidRejected.invalid_amount()
    return value


def normalize_item_id(raw: Any) -> str:
    """Submitted item id as a stripped string that fits the ledger column."""
    if _is_blank(raw):
        raise BidRejected.missing_fields()
    if isinstance(raw, bool) or not isinstance(raw, (str, int)):
        raise BidRejected.invalid_item()
    item_id = str(raw).strip()
    if len(item_id) > MAX_ITEM_ID_LENGTH:
        raise BidRejected.invalid_item()
    return item_id


class BidEngine:
    """
    Admits bids into the ledger and answers latest/history queries.

    Admission reads the item's latest bid, checks the new amount is strictly
    greater and appends, all while holding the item's lock. The ledger's
    conditional append covers writers in other processes.
    """

    DELETED_USER_NAME = "[deleted user]"

    def __init__(
        self,
        ledger: BidLedger,
        directory: IdentityDirectory,
        *,
        conflict_retries: int = 3,
        missing_user_policy: MissingUserPolicy = MissingUserPolicy.fail,
    ):
        self.ledger = ledger
        self.directory = directory
        self.conflict_retries = conflict_retries
        self.missing_user_policy = missing_user_policy
        self.locks = ItemLockRegistry()

    def _serialized(self, item_id: str):
        return self.locks.hold(item_id)

    @staticmethod
    def _require_item(item_id: Optional[str]) -> str:
        if _is_blank(item_id):
            raise BidRejected.missing_fields()
        return item_id.strip()

    async def get_latest(self, item_id: str) -> Optional[BidRecord]:
        """Most recent bid for the item, or None if nobody has bid yet."""
        item_id = self._require_item(item_id)
        latest = await self.ledger.query_latest(item_id)
        if latest is None:
            logger.debug(f"No bids yet for item {item_id}")
        return latest

    async def get_history(self, item_id: str) -> List[BidRecord]:
        """All bids for the item, newest first, with bidder display names."""
        item_id = self._require_item(item_id)
        records = await self.ledger.query_all(item_id)
        if not records:
            return []

        names = await self.directory.lookup_display_names({r.user_id for r in records})

        history = []
        for record in records:
            name = names.get(record.user_id)
            if name is None:
                if self.missing_user_policy == MissingUserPolicy.fail:
                    logger.error(
                        f"Bid {record.id} on item {item_id} references missing user {record.user_id}"
                    )
                    raise IdentityResolutionFailed(
                        f"User {record.user_id} referenced by bid {record.id} does not exist"
                    )
                name = self.DELETED_USER_NAME
            history.append(record.with_user_name(name))
        return history

    async def admit_bid(self, item_id: Any, amount: Any, identity: Identity) -> BidRecord:
        """
        Validate and append a bid.

        Raises BidRejected when the submission is incomplete, the amount is
        not a positive number or it does not beat the current latest bid.
        Nothing is written in those cases.
        """
        if _is_blank(item_id) or _is_blank(amount):
            raise BidRejected.missing_fields()
        item_id = normalize_item_id(item_id)
        value = parse_amount(amount)

        user_name = await self.directory.lookup_display_name(identity.user_id)
        if user_name is None:
            logger.error(f"Bidding user {identity.user_id} no longer exists")
            raise IdentityResolutionFailed(f"User {identity.user_id} does not exist")

        async with self._serialized(item_id):
            record = await self._append_above_latest(item_id, identity, value)

        logger.info(f"Bid {record.id} admitted: item={item_id} user={identity.user_id} amount={value}")
        return record.with_user_name(user_name)

    async def _append_above_latest(self, item_id: str, identity: Identity, amount: Decimal) -> BidRecord:
        for attempt in range(1, self.conflict_retries + 2):
            latest = await self.ledger.query_latest(item_id)
            if latest is not None and amount <= latest.amount:
                logger.warning(
                    f"Bid rejected for item {item_id}: {amount} <= latest {latest.amount} "
                    f"(user={identity.user_id})"
                )
                raise BidRejected.too_low(latest.amount)
            try:
                return await self.ledger.append_bid(item_id, identity.user_id, amount, after=latest)
            except LedgerConflict:
                logger.warning(f"Ledger for item {item_id} moved during admission, attempt {attempt}")
        raise StoreUnavailable(f"Ledger for item {item_id} kept moving during admission")

from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.core.config import settings
from app.services.auth.identity import Identity, Unauthenticated, identity_provider
from app.services.bidding.engine import BidEngine
from app.services.bidding.ledger import BidLedger, InMemoryBidLedger, TortoiseBidLedger
from app.services.currency.provider import FrankfurterRateProvider, RateProvider
from app.services.currency.relay import RelayHub, relay_hub

# missing header is reported as 403 and a bad token as 401, so the
# scheme must not raise on its own
jwt_bearer = HTTPBearer(auto_error=False)

_bid_engine: Optional[BidEngine] = None


async def get_current_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(jwt_bearer)
) -> Identity:
    """Authenticated caller from the Authorization: Bearer header"""
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied. Token required"
        )
    try:
        return await identity_provider.authenticate(credentials.credentials)
    except Unauthenticated:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )


def build_ledger() -> BidLedger:
    if settings.use_in_memory_ledger:
        return InMemoryBidLedger()
    return TortoiseBidLedger()


def get_bid_engine() -> BidEngine:
    """
    Return a singleton engine so every request shares the same per-item locks.
    """
    global _bid_engine
    if _bid_engine is None:
        _bid_engine = BidEngine(
            build_ledger(),
            identity_provider,
            conflict_retries=settings.bid_conflict_retries,
            missing_user_policy=settings.bid_history_missing_user,
        )
    return _bid_engine


def get_rate_provider() -> RateProvider:
    return FrankfurterRateProvider()


def get_relay_hub() -> RelayHub:
    return relay_hub

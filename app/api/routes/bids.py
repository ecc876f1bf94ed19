from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from loguru import logger

from app.api.dependencies import get_bid_engine, get_current_identity
from app.schemas.bid import (
    BidAdmittedResponse,
    BidCreate,
    BidRejectedResponse,
    BidResponse,
)
from app.services.auth.identity import Identity
from app.services.bidding.engine import BidEngine
from app.services.bidding.exceptions import (
    BidRejected,
    IdentityResolutionFailed,
    StoreUnavailable,
)

router = APIRouter()


def _server_failure(message: str, error: Exception) -> HTTPException:
    logger.opt(exception=error).error(f"{message}: {error}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=message
    )


def _rejection(error: BidRejected) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=BidRejectedResponse.from_error(error).model_dump(mode="json"),
    )


@router.get(
    "/{item_id}/latest",
    response_model=BidResponse,
    responses={404: {"description": "No bids registered for this item"}},
)
async def get_latest_bid(item_id: str, engine: BidEngine = Depends(get_bid_engine)):
    """Latest bid for an item"""
    try:
        latest = await engine.get_latest(item_id)
    except StoreUnavailable as e:
        raise _server_failure("Failed to get latest bid", e)

    if latest is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No bids registered for this item"
        )
    return BidResponse.from_record(latest)


@router.post(
    "",
    response_model=BidAdmittedResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": BidRejectedResponse}},
)
async def submit_bid(
    bid_data: BidCreate,
    identity: Identity = Depends(get_current_identity),
    engine: BidEngine = Depends(get_bid_engine),
):
    """
    Place a bid on an item.

    The amount must be strictly greater than the item's latest bid.
    Rejections come back as 400 with `outcome: "rejected"`, a code and,
    for bids that are too low, the amount to beat in `min_required`.
    """
    try:
        record = await engine.admit_bid(bid_data.item_id, bid_data.amount, identity)
    except BidRejected as e:
        return _rejection(e)
    except (StoreUnavailable, IdentityResolutionFailed) as e:
        raise _server_failure("Failed to register bid", e)

    return BidAdmittedResponse.from_record(record)


@router.get("/{item_id}", response_model=list[BidResponse])
async def list_bids(item_id: str, engine: BidEngine = Depends(get_bid_engine)):
    """All bids for an item, newest first"""
    try:
        history = await engine.get_history(item_id)
    except (StoreUnavailable, IdentityResolutionFailed) as e:
        raise _server_failure("Failed to get bids", e)

    return [BidResponse.from_record(record) for record in history]

"""
Bid API Routes

Handles:
- Placing bids
- Bid history
- Manually triggering a synthetic bid
"""
from typing import Union

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from auction_engine.core.dependencies import get_engine
from auction_engine.core.exceptions import NotFoundError
from auction_engine.models import RejectionReason
from auction_engine.services.auction_service import AuctionEngine

# Create router
router = APIRouter(
    prefix="/auctions",
    tags=["bids"]
)


# ============================================================================
# REQUEST MODELS
# ============================================================================
class PlaceBidRequest(BaseModel):
    """Request model for placing bid"""
    username: str
    # Anything a client sends; the validator decides what counts as an amount
    amount: Union[float, str, None] = None


# ============================================================================
# ROUTES
# ============================================================================
@router.post("/{auction_id}/bids")
def place_bid(auction_id: int, request: PlaceBidRequest, engine: AuctionEngine = Depends(get_engine)):
    """
    Place a bid

    A rejected bid is reported as a 400 with the rejection reason; an
    unknown auction as a 404.
    """
    result = engine.submit_bid(auction_id, request.username, request.amount)

    if not result.accepted:
        status_code = 404 if result.reason == RejectionReason.NOT_FOUND else 400
        raise HTTPException(
            status_code=status_code,
            detail={"reason": result.reason.value, "message": result.message},
        )

    return {
        "success": True,
        "message": result.message,
        "bid": result.bid,
        "auction": result.auction,
    }


@router.get("/{auction_id}/bids")
def get_auction_bids(auction_id: int, limit: int = 50, engine: AuctionEngine = Depends(get_engine)):
    """
    Get bid history for auction, newest first

    Args:
        auction_id: Auction ID
        limit: Maximum number of bids to return
    """
    try:
        auction = engine.get_auction(auction_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)

    bids = list(reversed(auction.bid_history))[:limit]
    return {
        "auction_id": auction_id,
        "total_bids": len(auction.bid_history),
        "bids": bids,
    }


@router.post("/{auction_id}/synthetic-bid")
def trigger_synthetic_bid(auction_id: int, engine: AuctionEngine = Depends(get_engine)):
    """Let the synthetic bidder try once on this auction"""
    result = engine.trigger_synthetic_bid(auction_id)
    if result is None:
        return {"success": False, "message": "Synthetic bidder declined"}

    return {
        "success": True,
        "message": result.message,
        "bidder": result.bidder,
        "amount": result.amount,
        "auction": result.auction,
    }

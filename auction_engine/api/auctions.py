"""
Auction API Routes

Handles:
- Creating timed and live auctions
- Listing, history and lookup
- Operator start, registration, likes and deletion
"""
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from auction_engine.core.dependencies import get_engine
from auction_engine.core.exceptions import NotFoundError, ValidationError
from auction_engine.models import AuctionCreate, AuctionStatus, LiveAuctionCreate
from auction_engine.services.auction_service import AuctionEngine

router = APIRouter(prefix="/auctions", tags=["auctions"])


# ============================================================================
# REQUEST MODELS
# ============================================================================
class RegisterRequest(BaseModel):
    """Request model for auction registration"""
    username: str
    real_name: Optional[str] = None
    phone: Optional[str] = None
    note: Optional[str] = None


class LikeRequest(BaseModel):
    username: str


# ============================================================================
# ROUTES
# ============================================================================
@router.post("", status_code=201)
def create_auction(request: AuctionCreate, engine: AuctionEngine = Depends(get_engine)):
    """Create a timed auction"""
    try:
        auction = engine.create_auction(request)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.message)

    return {
        "success": True,
        "message": f"Published auction: {auction.title}",
        "auction": auction,
    }


@router.post("/live", status_code=201)
def create_live_auction(request: LiveAuctionCreate, engine: AuctionEngine = Depends(get_engine)):
    """Create a live auction; it waits for an operator start"""
    try:
        auction = engine.create_live_auction(request)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.message)

    return {
        "success": True,
        "message": f"Published live auction: {auction.title}",
        "auction": auction,
    }


@router.get("")
def list_auctions(
    status: Optional[AuctionStatus] = None,
    category: Optional[str] = None,
    min_price: Optional[float] = None,
    max_price: Optional[float] = None,
    engine: AuctionEngine = Depends(get_engine),
):
    """List auctions, newest first"""
    auctions = engine.list_auctions(
        status=status,
        category=category,
        min_price=min_price,
        max_price=max_price,
    )

    return {
        "total": len(auctions),
        "auctions": auctions,
    }


@router.get("/history")
def get_history(engine: AuctionEngine = Depends(get_engine)):
    """Ended auctions with their settlement outcome"""
    history = engine.get_history()
    return {
        "total": len(history),
        "history": history,
    }


@router.get("/{auction_id}")
def get_auction(auction_id: int, engine: AuctionEngine = Depends(get_engine)):
    try:
        return {"auction": engine.get_auction(auction_id)}
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)


@router.post("/{auction_id}/start")
def start_live_auction(auction_id: int, engine: AuctionEngine = Depends(get_engine)):
    """Operator start of a live auction"""
    try:
        auction = engine.start_live_auction(auction_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.message)

    return {
        "success": True,
        "message": f"Live auction started: {auction.title}",
        "auction": auction,
    }


@router.post("/{auction_id}/register")
def register(auction_id: int, request: RegisterRequest, engine: AuctionEngine = Depends(get_engine)):
    try:
        auction = engine.register(
            auction_id,
            request.username,
            real_name=request.real_name,
            phone=request.phone,
            note=request.note,
        )
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.message)

    return {
        "success": True,
        "message": f"Registered for {auction.title}",
        "registered_users": auction.registered_users,
    }


@router.post("/{auction_id}/like")
def toggle_like(auction_id: int, request: LikeRequest, engine: AuctionEngine = Depends(get_engine)):
    try:
        liked = engine.toggle_like(auction_id, request.username)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.message)

    return {"liked": liked}


@router.delete("/{auction_id}")
def delete_auction(auction_id: int, engine: AuctionEngine = Depends(get_engine)):
    """Force end (if active) and remove an auction"""
    try:
        outcome = engine.delete_auction(auction_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.message)

    return {
        "success": True,
        "message": "Auction deleted",
        "outcome": outcome,
    }

"""
User API Routes
"""
from fastapi import APIRouter, Depends, HTTPException

from auction_engine.core.dependencies import get_engine
from auction_engine.core.exceptions import NotFoundError, ValidationError
from auction_engine.models import UserCreate
from auction_engine.services.auction_service import AuctionEngine

router = APIRouter(prefix="/users", tags=["users"])


@router.post("", status_code=201)
def create_user(request: UserCreate, engine: AuctionEngine = Depends(get_engine)):
    """Create a user with the starting balance unless one is given"""
    try:
        user = engine.create_user(request.username, request.balance)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=e.message)

    return {"success": True, "user": user}


@router.get("/{username}")
def get_user(username: str, engine: AuctionEngine = Depends(get_engine)):
    try:
        return {"user": engine.get_user(username)}
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=e.message)

"""
Admin API Routes - Monitoring and Management
"""
from fastapi import APIRouter, Depends, Request

from auction_engine.core.dependencies import get_engine
from auction_engine.infrastructure.redis_client import ping_redis
from auction_engine.services.auction_service import AuctionEngine

router = APIRouter(prefix="/admin", tags=["admin"])


@router.post("/tick")
def tick(engine: AuctionEngine = Depends(get_engine)):
    """Advance every auction by one second now"""
    events = engine.tick()
    return {
        "events": len(events),
        "types": [event.type.value for event in events],
    }


@router.get("/stats")
def get_stats(request: Request, engine: AuctionEngine = Depends(get_engine)):
    """Engine, worker and WebSocket statistics"""
    stats = engine.get_stats()

    ticker = getattr(request.app.state, "ticker", None)
    stats["ticks"] = ticker.ticks if ticker else 0

    manager = getattr(request.app.state, "ws_manager", None)
    stats["websocket_auctions"] = len(manager.active_connections) if manager else 0
    return stats


@router.get("/health")
def health(request: Request):
    settings = request.app.state.settings
    ticker = getattr(request.app.state, "ticker", None)

    redis_status = "not used"
    if settings.STORAGE_BACKEND == "redis":
        redis_status = "connected" if ping_redis(settings) else "disconnected"

    return {
        "status": "healthy",
        "ticker_running": bool(ticker and ticker.running),
        "storage": settings.STORAGE_BACKEND,
        "redis": redis_status,
    }

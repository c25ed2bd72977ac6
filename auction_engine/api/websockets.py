"""
WebSocket API Route

Clients watch one auction at a time. On connect they get the auction's
current countdown; afterwards every event for that auction is pushed by
the ConnectionManager. A text "ping" is answered with PONG.
"""
from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from auction_engine.core.exceptions import NotFoundError
from auction_engine.core.logger import get_logger

logger = get_logger(__name__)

router = APIRouter(tags=["websockets"])


def _countdown(websocket: WebSocket, auction_id: int):
    try:
        auction = websocket.app.state.engine.get_auction(auction_id)
    except NotFoundError:
        return None
    return {
        "status": auction.status.value,
        "time_left": auction.time_left,
        "extended_time": auction.extended_time,
        "current_bid": auction.current_bid,
        "highest_bidder": auction.highest_bidder,
    }


@router.websocket("/ws/{auction_id}")
async def watch_auction(websocket: WebSocket, auction_id: int):
    manager = websocket.app.state.ws_manager
    await manager.connect(websocket, auction_id)

    try:
        await manager.send_personal_message(websocket, {
            "type": "CONNECTED",
            "auction_id": auction_id,
            "viewers": manager.get_viewer_count(auction_id),
            "auction": _countdown(websocket, auction_id),
        })

        while True:
            text = await websocket.receive_text()
            if text.strip().lower() == "ping":
                await manager.send_personal_message(websocket, {"type": "PONG", "auction_id": auction_id})

    except WebSocketDisconnect:
        manager.disconnect(websocket, auction_id)

    except Exception as e:
        logger.error("WebSocket error", auction_id=auction_id, error=str(e))
        manager.disconnect(websocket, auction_id)

"""
WebSocket manager for real-time auction updates

Subscribes to the engine's event bus and forwards each event to the
clients watching that auction. Tick events fan out per auction from their
countdown payload. Bus handlers run on worker threads, so sends are
scheduled onto the server loop.
"""
import asyncio
from typing import Dict, Optional, Set

from fastapi import WebSocket

from auction_engine.core.logger import get_logger
from auction_engine.models import AuctionEvent, EventType

logger = get_logger(__name__)


class ConnectionManager:
    """Viewers per auction, fed from the engine's event bus"""

    def __init__(self):
        self.active_connections: Dict[int, Set[WebSocket]] = {}
        self.loop: Optional[asyncio.AbstractEventLoop] = None

    def attach(self, loop: asyncio.AbstractEventLoop) -> None:
        """Bind to the loop the connections live on"""
        self.loop = loop

    async def connect(self, websocket: WebSocket, auction_id: int):
        await websocket.accept()
        viewers = self.active_connections.setdefault(auction_id, set())
        viewers.add(websocket)
        logger.info("Viewer joined", auction_id=auction_id, viewers=len(viewers))

    def disconnect(self, websocket: WebSocket, auction_id: int):
        viewers = self.active_connections.get(auction_id)
        if viewers is None:
            return

        viewers.discard(websocket)
        if not viewers:
            del self.active_connections[auction_id]
        logger.info("Viewer left", auction_id=auction_id, viewers=len(viewers))

    async def broadcast(self, auction_id: int, message: dict):
        """Send to every viewer of the auction; viewers whose send fails are dropped"""
        viewers = list(self.active_connections.get(auction_id, ()))
        if not viewers:
            return

        results = await asyncio.gather(
            *(websocket.send_json(message) for websocket in viewers),
            return_exceptions=True,
        )
        for websocket, result in zip(viewers, results):
            if isinstance(result, Exception):
                logger.warning("Dropping viewer after failed send", auction_id=auction_id, error=str(result))
                self.disconnect(websocket, auction_id)

    async def send_personal_message(self, websocket: WebSocket, message: dict):
        try:
            await websocket.send_json(message)
        except Exception as e:
            logger.warning("Error sending personal message", error=str(e))

    def get_viewer_count(self, auction_id: int) -> int:
        return len(self.active_connections.get(auction_id, ()))

    # ========================================================================
    # EVENT BUS
    # ========================================================================
    async def dispatch(self, event: AuctionEvent):
        if event.type == EventType.TICK:
            created_at = event.created_at.isoformat()
            for auction_id, countdown in event.payload.get("countdowns", {}).items():
                await self.broadcast(int(auction_id), {
                    "type": EventType.TICK.value,
                    "auction_id": auction_id,
                    "payload": countdown,
                    "created_at": created_at,
                })
            return

        if event.auction_id is not None:
            await self.broadcast(event.auction_id, event.to_message())

    def __call__(self, event: AuctionEvent) -> None:
        """Event bus handler; may run on any thread"""
        if self.loop is None or not self.active_connections:
            return
        asyncio.run_coroutine_threadsafe(self.dispatch(event), self.loop)

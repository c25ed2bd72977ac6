"""
Background worker that drives the engine clock

Calls ``engine.tick()`` once per interval. The tick takes thread locks, so
it runs in a worker thread and never blocks the event loop.
"""
import asyncio
from typing import Optional

from auction_engine.core.logger import get_logger
from auction_engine.services.auction_service import AuctionEngine

logger = get_logger(__name__)


class Ticker:
    """Background worker for the per-second tick"""

    def __init__(self, engine: AuctionEngine, interval: float = 1.0):
        self.engine = engine
        self.interval = interval
        self.running = False
        self.task: Optional[asyncio.Task] = None
        self.ticks = 0

    async def start(self):
        """Start the background worker"""
        if self.running:
            logger.warning("Ticker already running")
            return

        self.running = True
        self.task = asyncio.create_task(self._run())
        logger.info("Ticker started", interval=self.interval)

    async def stop(self):
        """Stop the background worker"""
        if not self.running:
            return

        self.running = False
        if self.task:
            self.task.cancel()
            try:
                await self.task
            except asyncio.CancelledError:
                pass
        logger.info("Ticker stopped", ticks=self.ticks)

    async def _run(self):
        """Main worker loop"""
        while self.running:
            try:
                await asyncio.to_thread(self.engine.tick)
                self.ticks += 1
                await asyncio.sleep(self.interval)
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("Error in ticker", error=str(e))
                await asyncio.sleep(self.interval)

"""
Background worker for synthetic bids

Two triggers:
- every ``interval`` seconds, try one random eligible auction
- after each accepted user bid, answer on that auction after a random delay

Follow-ups are requested from event bus threads, so they hop onto the
worker's loop with ``call_soon_threadsafe``.
"""
import asyncio
from typing import Optional, Set

from auction_engine.core.logger import get_logger
from auction_engine.models import AuctionEvent, EventType
from auction_engine.services.auction_service import AuctionEngine

logger = get_logger(__name__)


class SyntheticBidWorker:
    """Periodic and follow-up synthetic bids"""

    def __init__(self, engine: AuctionEngine, interval: float = 20.0):
        self.engine = engine
        self.interval = interval
        self.running = False
        self.task: Optional[asyncio.Task] = None
        self.loop: Optional[asyncio.AbstractEventLoop] = None
        self._followups: Set[asyncio.Task] = set()

    async def start(self):
        """Start the periodic loop and listen for user bids"""
        if self.running:
            logger.warning("Synthetic bid worker already running")
            return

        self.running = True
        self.loop = asyncio.get_running_loop()
        self.task = asyncio.create_task(self._run())
        self.engine.event_bus.subscribe(self.on_event, [EventType.BID_PLACED])
        logger.info("Synthetic bid worker started", interval=self.interval)

    async def stop(self):
        """Stop the loop and cancel pending follow-ups"""
        if not self.running:
            return

        self.running = False
        self.engine.event_bus.unsubscribe(self.on_event)

        tasks = list(self._followups)
        if self.task:
            tasks.append(self.task)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._followups.clear()
        logger.info("Synthetic bid worker stopped")

    async def _run(self):
        """Main worker loop"""
        while self.running:
            try:
                await asyncio.sleep(self.interval)
                await asyncio.to_thread(self.engine.trigger_random_synthetic_bid)
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("Error in synthetic bid worker", error=str(e))

    # ========================================================================
    # FOLLOW-UPS
    # ========================================================================
    def on_event(self, event: AuctionEvent) -> None:
        """Event bus handler; may run on any thread"""
        if not self.running or self.loop is None or event.auction_id is None:
            return
        self.loop.call_soon_threadsafe(self.schedule_followup, event.auction_id)

    def schedule_followup(self, auction_id: int, delay: Optional[float] = None) -> asyncio.Task:
        """Schedule one synthetic bid attempt on this auction; call from the loop"""
        if delay is None:
            delay = self.engine.synthetic.follow_up_delay()

        task = asyncio.get_running_loop().create_task(self._followup(auction_id, delay))
        self._followups.add(task)
        task.add_done_callback(self._followups.discard)
        return task

    async def _followup(self, auction_id: int, delay: float):
        try:
            await asyncio.sleep(delay)
            result = await asyncio.to_thread(self.engine.trigger_synthetic_bid, auction_id)
            if result is not None:
                logger.debug("Follow-up synthetic bid", auction_id=auction_id, amount=result.amount)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("Follow-up synthetic bid failed", auction_id=auction_id, error=str(e))

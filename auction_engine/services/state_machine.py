"""
Auction State Machine

Per-tick transitions for one auction. The caller holds the auction's lock
and publishes the returned events after releasing it.

    PENDING --(scheduled start reached)--> ACTIVE --(counters exhausted)--> ENDED
    PENDING/WAITING --(operator start)--> ACTIVE/BIDDING --(phase timer 0)--> ENDED/ENDED

A non-live ACTIVE auction runs exactly one counter at a time: ``time_left``
until it reaches zero or a late bid arms ``extended_time``, after which
only the extension counts down.
"""
from datetime import datetime
from typing import List

from auction_engine.core.config import AuctionOptions
from auction_engine.core.exceptions import StateInconsistency
from auction_engine.core.logger import get_logger
from auction_engine.models import (
    Auction,
    AuctionEvent,
    AuctionStatus,
    EventType,
    LivePhase,
    Severity,
)
from auction_engine.services.anti_snipe import AntiSnipePolicy
from auction_engine.services.settlement import SettlementService

logger = get_logger(__name__)


def seconds_until(deadline: datetime, now: datetime) -> int:
    """Whole seconds from now until the deadline (negative if past)"""
    return int((deadline - now).total_seconds())


class AuctionStateMachine:
    def __init__(
        self,
        options: AuctionOptions,
        policy: AntiSnipePolicy,
        settlement: SettlementService,
    ):
        self.options = options
        self.policy = policy
        self.settlement = settlement

    def advance(self, auction: Auction, now: datetime) -> List[AuctionEvent]:
        """Apply one tick to the auction"""
        if auction.status == AuctionStatus.ENDED:
            return []

        if auction.status == AuctionStatus.PENDING:
            if auction.is_live:
                # Live auctions wait for the operator
                return []
            return self._maybe_start(auction, now)

        if auction.is_live:
            return self._advance_live(auction, now)
        return self._advance_timed(auction, now)

    # ========================================================================
    # PENDING -> ACTIVE
    # ========================================================================
    def _maybe_start(self, auction: Auction, now: datetime) -> List[AuctionEvent]:
        if auction.scheduled_start_time is None:
            logger.warning(
                "Pending auction without a start time, starting it",
                auction_id=auction.id,
            )
        elif now < auction.scheduled_start_time:
            return []

        return self.start(auction, now)

    def start(self, auction: Auction, now: datetime) -> List[AuctionEvent]:
        """Move a timed auction to ACTIVE and set its countdown"""
        if auction.scheduled_end_time is not None:
            time_left = seconds_until(auction.scheduled_end_time, now)
        else:
            time_left = self.options.default_duration

        auction.status = AuctionStatus.ACTIVE

        if time_left <= 0:
            auction.time_left = 0
            logger.info("Auction missed its window, ending unsold", auction_id=auction.id)
            _, events = self.settlement.settle(auction, now)
            return events

        auction.time_left = time_left
        logger.info("Auction started", auction_id=auction.id, time_left=time_left)
        return [AuctionEvent(
            type=EventType.AUCTION_STARTED,
            auction_id=auction.id,
            payload={"time_left": time_left},
            message=f"Auction '{auction.title}' has started, {time_left // 60} minutes left",
        )]

    def start_live(self, auction: Auction) -> List[AuctionEvent]:
        """Operator start: WAITING -> BIDDING with the full live duration"""
        auction.status = AuctionStatus.ACTIVE
        auction.live_phase = LivePhase.BIDDING
        auction.live_phase_time = auction.live_duration
        auction.time_left = auction.live_duration
        auction.extended_time = 0

        logger.info("Live auction started", auction_id=auction.id, duration=auction.live_duration)
        return [AuctionEvent(
            type=EventType.AUCTION_STARTED,
            auction_id=auction.id,
            payload={"time_left": auction.time_left, "live": True},
            message=f"Live auction '{auction.title}' is open for bidding",
        )]

    # ========================================================================
    # ACTIVE TICKS
    # ========================================================================
    def _advance_timed(self, auction: Auction, now: datetime) -> List[AuctionEvent]:
        if auction.extended_time > 0:
            auction.extended_time -= 1
            if auction.extended_time == 0:
                return self._on_counter_expired(auction, now)
            return []

        if auction.time_left > 0:
            auction.time_left -= 1
            if auction.time_left == 0:
                return self._on_counter_expired(auction, now)
            return []

        return self._recover(auction, now)

    def _on_counter_expired(self, auction: Auction, now: datetime) -> List[AuctionEvent]:
        if self.policy.should_extend_at_expiry(auction, now):
            self.policy.arm(auction)
            logger.info(
                "Anti-snipe extension",
                auction_id=auction.id,
                extended_time=auction.extended_time,
                bidder=auction.highest_bidder,
            )
            return [AuctionEvent(
                type=EventType.AUCTION_EXTENDED,
                auction_id=auction.id,
                payload={"extended_time": auction.extended_time},
                message=f"Auction '{auction.title}' extended by {auction.extended_time} seconds",
                severity=Severity.WARNING,
            )]

        _, events = self.settlement.settle(auction, now)
        return events

    def _recover(self, auction: Auction, now: datetime) -> List[AuctionEvent]:
        """ACTIVE with both counters at zero"""
        if auction.scheduled_end_time is not None:
            remaining = seconds_until(auction.scheduled_end_time, now)
            if remaining > 0:
                auction.time_left = remaining
                logger.warning("Recomputed countdown", auction_id=auction.id, time_left=remaining)
                return [AuctionEvent(
                    type=EventType.AUCTION_UPDATED,
                    auction_id=auction.id,
                    payload={"time_left": remaining},
                )]

        error = StateInconsistency(auction.id, "active with no time left")
        logger.error("Forcing auction end", auction_id=auction.id, error=str(error))
        _, events = self.settlement.settle(auction, now)
        return events

    def _advance_live(self, auction: Auction, now: datetime) -> List[AuctionEvent]:
        if auction.live_phase != LivePhase.BIDDING:
            return []

        if auction.live_phase_time <= 0:
            error = StateInconsistency(auction.id, "live phase timer already exhausted")
            logger.error("Forcing auction end", auction_id=auction.id, error=str(error))
            _, events = self.settlement.settle(auction, now)
            return events

        auction.live_phase_time -= 1
        auction.time_left = max(auction.time_left - 1, 0)

        if auction.live_phase_time == 0:
            _, events = self.settlement.settle(auction, now)
            return events
        return []

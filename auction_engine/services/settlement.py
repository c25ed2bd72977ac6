"""
Settlement & Archival

Ends an auction exactly once: stamps it ENDED, decides sold/unsold,
debits the winner, archives the snapshot and drops it from the live set.
The caller holds the auction's lock.
"""
from datetime import datetime
from typing import List, Optional, Tuple

from auction_engine.core.config import AuctionOptions
from auction_engine.core.exceptions import PersistenceFailure
from auction_engine.core.logger import get_logger
from auction_engine.infrastructure.lock import AuctionLock
from auction_engine.infrastructure.user_store import UserStore
from auction_engine.models import (
    Auction,
    AuctionEvent,
    AuctionStatus,
    BidRecordStatus,
    EventType,
    HistoryRecord,
    LivePhase,
    SettlementOutcome,
    Severity,
    User,
    WonAuction,
)
from auction_engine.services.achievements import ACHIEVEMENT_TITLES, check_win_achievements
from auction_engine.services.auction_book import AuctionBook

logger = get_logger(__name__)


class SettlementService:
    def __init__(
        self,
        book: AuctionBook,
        user_store: UserStore,
        options: AuctionOptions,
        user_lock: Optional[AuctionLock] = None,
    ):
        self.book = book
        self.user_store = user_store
        self.options = options
        self.user_lock = user_lock or AuctionLock()

    def settle(self, auction: Auction, now: datetime) -> Tuple[SettlementOutcome, List[AuctionEvent]]:
        """
        End the auction and archive it

        Settling an auction that is already archived returns the stored
        outcome and changes nothing.

        Returns:
            (outcome, events to publish once the lock is released)
        """
        existing = self.book.get_record(auction.id)
        if existing is not None:
            logger.debug("Auction already settled", auction_id=auction.id)
            return existing.outcome, []

        auction.status = AuctionStatus.ENDED
        if auction.is_live:
            auction.live_phase = LivePhase.ENDED
        auction.end_time = now

        events: List[AuctionEvent] = []
        sold = auction.highest_bidder is not None and auction.current_bid >= auction.reserve_price

        if sold:
            with self.user_lock.lock(auction.highest_bidder):
                reconciled, achievement_events = self._charge_winner(auction, now)
            events.extend(achievement_events)
            outcome = SettlementOutcome(
                auction_id=auction.id,
                sold=True,
                winner=auction.highest_bidder,
                amount=auction.current_bid,
                reconciled=reconciled,
                message=(
                    f"Auction '{auction.title}' sold to {auction.highest_bidder} "
                    f"for {auction.current_bid:,.0f}"
                ),
            )
        elif auction.highest_bidder is None:
            outcome = SettlementOutcome(
                auction_id=auction.id,
                sold=False,
                message=f"Auction '{auction.title}' ended with no bids, unsold",
            )
        else:
            outcome = SettlementOutcome(
                auction_id=auction.id,
                sold=False,
                message=f"Auction '{auction.title}' ended below reserve, unsold",
            )

        self.book.archive(HistoryRecord(auction=auction.snapshot(), outcome=outcome))
        self.book.remove(auction.id)

        logger.info(
            "Auction settled",
            auction_id=auction.id,
            sold=outcome.sold,
            winner=outcome.winner,
            amount=outcome.amount,
            reconciled=outcome.reconciled,
        )

        events.insert(0, AuctionEvent(
            type=EventType.AUCTION_ENDED,
            auction_id=auction.id,
            payload={
                "outcome": outcome.model_dump(mode="json"),
                "auction": auction.model_dump(mode="json"),
            },
            message=outcome.message,
            severity=Severity.SUCCESS if outcome.sold else Severity.INFO,
        ))
        return outcome, events

    def _charge_winner(self, auction: Auction, now: datetime) -> Tuple[bool, List[AuctionEvent]]:
        """
        Debit the winner and record the win

        Returns:
            (reconciled, achievement events)
        """
        winner = auction.highest_bidder
        try:
            user: Optional[User] = self.user_store.get_user(winner)
        except PersistenceFailure as e:
            logger.error("Could not load winner", auction_id=auction.id, winner=winner, error=str(e))
            return False, []

        if user is None:
            logger.warning(
                "Winner has no user record, settlement not reconciled",
                auction_id=auction.id,
                winner=winner,
                amount=auction.current_bid,
            )
            return False, []

        user.balance -= auction.current_bid
        if user.balance < 0:
            logger.warning(
                "Winner overdrawn",
                auction_id=auction.id,
                winner=winner,
                amount=auction.current_bid,
                balance=user.balance,
            )
        user.won_auctions.append(WonAuction(
            auction_id=auction.id,
            title=auction.title,
            image=auction.image,
            amount=auction.current_bid,
            time=now,
            is_live=auction.is_live,
        ))

        for record in reversed(user.bid_history):
            if record.auction_id == auction.id and record.status == BidRecordStatus.ACTIVE:
                record.status = BidRecordStatus.WON
                break

        unlocked = check_win_achievements(user, auction, self.options)

        try:
            self.user_store.save_user(user)
        except PersistenceFailure as e:
            logger.error("Could not save winner", auction_id=auction.id, winner=winner, error=str(e))
            return False, []

        events = [
            AuctionEvent(
                type=EventType.ACHIEVEMENT_UNLOCKED,
                auction_id=auction.id,
                payload={"username": user.username, "achievement": achievement.value},
                message=f"{user.username} unlocked '{ACHIEVEMENT_TITLES[achievement]}'",
                severity=Severity.SUCCESS,
            )
            for achievement in unlocked
        ]
        return True, events

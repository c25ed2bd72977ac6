"""
Anti-Snipe Extension Policy

Decides when a bid or a tick should open (or re-open) the grace window.
The window is re-armed to a fixed length, never added to what is left.
Live auctions never extend.
"""
from datetime import datetime
from typing import Optional

from auction_engine.models import Auction


class AntiSnipePolicy:
    def __init__(self, extend_time: int):
        self.extend_time = extend_time

    def seconds_since_last_bid(self, auction: Auction, now: datetime) -> Optional[float]:
        if auction.last_bid_time is None:
            return None
        return (now - auction.last_bid_time).total_seconds()

    def is_recent_bid(self, auction: Auction, now: datetime) -> bool:
        """True when the last bid landed inside the extension window"""
        elapsed = self.seconds_since_last_bid(auction, now)
        return elapsed is not None and elapsed < self.extend_time

    def arm_on_bid(self, auction: Auction) -> bool:
        """
        Called right after a bid is applied

        Returns:
            True if the extension window was (re-)armed
        """
        if auction.is_live:
            return False
        if auction.time_left < self.extend_time:
            auction.extended_time = self.extend_time
            return True
        return False

    def should_extend_at_expiry(self, auction: Auction, now: datetime) -> bool:
        """A counter just hit zero: keep going if someone bid recently"""
        if auction.is_live:
            return False
        return self.is_recent_bid(auction, now)

    def arm(self, auction: Auction) -> None:
        auction.extended_time = self.extend_time

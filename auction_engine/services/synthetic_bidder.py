"""
Synthetic Bidder

Simulated competitor. Decides whether to bid on an auction and how much;
the engine applies the bid through the same path as user bids, under the
same lock.
"""
import random
from typing import Optional, Tuple

from auction_engine.core.config import AuctionOptions
from auction_engine.models import Auction, AuctionStatus


class SyntheticBidder:
    def __init__(self, options: AuctionOptions, rng: Optional[random.Random] = None):
        self.options = options
        self.rng = rng or random.Random()

    def is_eligible(self, auction: Auction) -> bool:
        return (
            auction.status == AuctionStatus.ACTIVE
            and not auction.is_live
            and auction.time_left >= self.options.ai_min_time_left
        )

    def price_cap(self, auction: Auction) -> float:
        return auction.reserve_price * self.options.ai_max_price_multiplier

    def propose(self, auction: Auction) -> Optional[Tuple[str, float]]:
        """
        Roll for a synthetic bid

        Returns:
            (bidder name, amount), or None when ineligible, the probability
            gate says no or the amount would exceed the price cap
        """
        if not self.is_eligible(auction):
            return None

        if self.rng.random() >= self.options.ai_bid_probability:
            return None

        steps = self.rng.randint(self.options.ai_bid_min_steps, self.options.ai_bid_max_steps)
        amount = auction.current_bid + steps * auction.min_increment
        if amount > self.price_cap(auction):
            return None

        return self.rng.choice(self.options.ai_bidder_names), amount

    def follow_up_delay(self) -> float:
        """Seconds to wait before answering a user bid"""
        return self.rng.uniform(self.options.ai_bid_delay_min, self.options.ai_bid_delay_max)

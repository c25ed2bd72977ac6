"""
Bid Service - Business Logic

Handles:
- Bid validation (pure, no side effects)
- Applying an accepted bid to an auction
"""
import math
from datetime import datetime
from numbers import Real
from typing import Any, Optional, Tuple

from auction_engine.models import (
    Auction,
    AuctionStatus,
    Bid,
    BidValidation,
    RejectionReason,
    User,
)
from auction_engine.services.anti_snipe import AntiSnipePolicy


def _is_valid_amount(amount: Any) -> bool:
    if isinstance(amount, bool) or not isinstance(amount, Real):
        return False
    return math.isfinite(amount) and amount > 0


class BidService:
    """
    Service for bid-related business logic

    Callers hold the auction's lock across ``validate_bid`` and
    ``apply_bid`` so the check and the write see the same state.
    """

    @staticmethod
    def validate_bid(
        auction: Optional[Auction],
        amount: Any,
        bidder: Optional[User],
    ) -> BidValidation:
        """
        Validate a proposed bid

        Checks, first failure wins:
        1. Auction exists (then the bidder's user record)
        2. Auction is active
        3. Bidder is registered
        4. Amount is a positive number above the current bid
        5. Amount respects the minimum increment
        6. Bidder can afford it
        7. Bidder is not already the highest bidder

        Args:
            auction: Auction or None if it wasn't found
            amount: Proposed amount
            bidder: Bidder's user record or None if it wasn't found

        Returns:
            Validation result with the rejection reason
        """
        if auction is None:
            return BidValidation.rejected(RejectionReason.NOT_FOUND, "Auction not found")

        if bidder is None:
            return BidValidation.rejected(RejectionReason.NOT_FOUND, "User not found")

        if auction.status != AuctionStatus.ACTIVE:
            return BidValidation.rejected(
                RejectionReason.NOT_OPEN,
                "Auction has ended or has not started",
            )

        if not auction.is_registered(bidder.username):
            return BidValidation.rejected(
                RejectionReason.NOT_REGISTERED,
                "Please register for this auction first",
            )

        if not _is_valid_amount(amount) or amount <= auction.current_bid:
            return BidValidation.rejected(
                RejectionReason.TOO_LOW,
                "Bid must be higher than the current bid",
            )

        if amount < auction.current_bid + auction.min_increment:
            return BidValidation.rejected(
                RejectionReason.BELOW_INCREMENT,
                f"Minimum increment is {auction.min_increment:,.2f}",
            )

        if amount > bidder.balance:
            return BidValidation.rejected(RejectionReason.INSUFFICIENT_FUNDS, "Insufficient balance")

        if auction.highest_bidder == bidder.username:
            return BidValidation.rejected(
                RejectionReason.ALREADY_HIGHEST,
                "You are already the highest bidder",
            )

        return BidValidation.ok()

    @staticmethod
    def apply_bid(
        auction: Auction,
        bidder: str,
        amount: float,
        now: datetime,
        policy: AntiSnipePolicy,
        synthetic: bool = False,
    ) -> Tuple[Bid, bool]:
        """
        Record an accepted bid

        Appends to the history, moves the price and the leader, stamps the
        bid time and arms the anti-snipe window when little time is left.

        Returns:
            (recorded bid, whether the extension window was armed)
        """
        bid = Bid(bidder=bidder, amount=amount, time=now, synthetic=synthetic)

        auction.bid_history.append(bid)
        auction.current_bid = amount
        auction.highest_bidder = bidder
        auction.last_bid_time = now
        extended = policy.arm_on_bid(auction)

        return bid, extended

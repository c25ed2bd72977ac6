"""
Collector achievements

Unlocks are idempotent: an achievement already on the user is skipped.
Callers save the user afterwards.
"""
import enum
from typing import List

from auction_engine.core.config import AuctionOptions
from auction_engine.models import Auction, User
from auction_engine.models.user import COLLECTOR_LEVEL


class Achievement(str, enum.Enum):
    FIRST_BID = "first_bid"
    BIG_SPENDER = "big_spender"
    FIRST_WIN = "first_win"
    COLLECTOR = "collector"
    SPEED_BIDDER = "speed_bidder"


ACHIEVEMENT_TITLES = {
    Achievement.FIRST_BID: "First Bid",
    Achievement.BIG_SPENDER: "Big Spender",
    Achievement.FIRST_WIN: "First Win",
    Achievement.COLLECTOR: "Senior Collector",
    Achievement.SPEED_BIDDER: "Speed Bidder",
}


def _unlock(user: User, achievement: Achievement, unlocked: List[Achievement]) -> None:
    if achievement.value in user.achievements:
        return
    user.achievements.append(achievement.value)
    unlocked.append(achievement)


def check_bid_achievements(user: User, amount: float, options: AuctionOptions) -> List[Achievement]:
    """Run after ``total_bids`` has been incremented for an accepted bid"""
    unlocked: List[Achievement] = []

    if user.total_bids >= 1:
        _unlock(user, Achievement.FIRST_BID, unlocked)

    if amount >= options.big_spender_threshold:
        _unlock(user, Achievement.BIG_SPENDER, unlocked)

    return unlocked


def check_win_achievements(user: User, auction: Auction, options: AuctionOptions) -> List[Achievement]:
    """
    Run after the won auction was appended to ``user.won_auctions``

    Speed bidder: the winning bid armed the extension window or landed
    within ``speed_bidder_window`` seconds of the end.
    """
    unlocked: List[Achievement] = []

    if user.won_auctions:
        _unlock(user, Achievement.FIRST_WIN, unlocked)

    if len(user.won_auctions) >= options.collector_threshold:
        _unlock(user, Achievement.COLLECTOR, unlocked)
        user.level = COLLECTOR_LEVEL

    if auction.last_bid_time is not None and auction.end_time is not None:
        since_last_bid = (auction.end_time - auction.last_bid_time).total_seconds()
        if auction.extended_time > 0 or since_last_bid <= options.speed_bidder_window:
            _unlock(user, Achievement.SPEED_BIDDER, unlocked)

    return unlocked

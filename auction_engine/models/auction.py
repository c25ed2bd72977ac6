"""
Auction Model
"""
import enum
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from auction_engine.core.clock import utcnow


class AuctionStatus(str, enum.Enum):
    """Auction status enum"""
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    ENDED = "ENDED"


class LivePhase(str, enum.Enum):
    """Sub-phase of a live auction, independent of its status"""
    WAITING = "WAITING"
    BIDDING = "BIDDING"
    ENDED = "ENDED"


class Bid(BaseModel):
    """A recorded bid; never mutated once appended to an auction"""

    model_config = ConfigDict(frozen=True)

    bidder: str
    amount: float
    time: datetime
    synthetic: bool = False


class Auction(BaseModel):
    """
    In-memory auction record

    Mutated only under the auction's lock by the state machine, the bid
    apply path and settlement.
    """

    id: int
    title: str
    artist: str = ""
    category: str = ""
    image: str = ""
    description: str = ""

    # Pricing
    start_price: float
    current_bid: float
    reserve_price: float
    min_increment: float

    status: AuctionStatus = AuctionStatus.PENDING

    # Live mode
    is_live: bool = False
    live_phase: Optional[LivePhase] = None
    live_duration: int = 0
    live_phase_time: int = 0

    # Timing
    time_left: int = 0
    extended_time: int = 0
    last_bid_time: Optional[datetime] = None
    scheduled_start_time: Optional[datetime] = None
    scheduled_end_time: Optional[datetime] = None
    end_time: Optional[datetime] = None

    # Participation
    registered_users: List[str] = Field(default_factory=list)
    bid_history: List[Bid] = Field(default_factory=list)
    highest_bidder: Optional[str] = None

    # Engagement
    likes: List[str] = Field(default_factory=list)
    likes_count: int = 0

    created_at: datetime = Field(default_factory=utcnow)

    @property
    def is_scheduled(self) -> bool:
        return self.scheduled_start_time is not None or self.scheduled_end_time is not None

    def is_registered(self, username: str) -> bool:
        return username in self.registered_users

    def snapshot(self) -> "Auction":
        """Deep copy safe to hand out of the lock"""
        return self.model_copy(deep=True)


class AuctionCreate(BaseModel):
    """Request to create a regular (timed) auction"""
    title: str
    artist: str = ""
    category: str = ""
    image: str = ""
    description: str = ""
    start_price: float
    reserve_price: float
    min_increment: Optional[float] = None
    scheduled_start_time: Optional[datetime] = None
    scheduled_end_time: Optional[datetime] = None


class LiveAuctionCreate(BaseModel):
    """Request to create an operator-started live auction"""
    title: str
    artist: str = ""
    category: str = ""
    image: str = ""
    description: str = ""
    start_price: float
    reserve_price: float
    min_increment: Optional[float] = None
    duration_minutes: Optional[int] = None

"""
User Model

Users belong to the user store; the engine reads balances and records
bids, registrations and wins on them.
"""
import enum
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from auction_engine.core.clock import utcnow


DEFAULT_LEVEL = "Novice Collector"
COLLECTOR_LEVEL = "Senior Collector"


class BidRecordStatus(str, enum.Enum):
    ACTIVE = "active"
    WON = "won"


class UserBidRecord(BaseModel):
    auction_id: int
    title: str
    amount: float
    time: datetime
    status: BidRecordStatus = BidRecordStatus.ACTIVE


class WonAuction(BaseModel):
    auction_id: int
    title: str
    image: str = ""
    amount: float
    time: datetime
    is_live: bool = False


class Registration(BaseModel):
    auction_id: int
    title: str
    time: datetime
    real_name: Optional[str] = None
    phone: Optional[str] = None
    note: Optional[str] = None


class User(BaseModel):
    """User database model"""

    username: str
    balance: float = 0
    level: str = DEFAULT_LEVEL
    total_bids: int = 0
    bid_history: List[UserBidRecord] = Field(default_factory=list)
    won_auctions: List[WonAuction] = Field(default_factory=list)
    registrations: List[Registration] = Field(default_factory=list)
    achievements: List[str] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)


class UserCreate(BaseModel):
    username: str
    balance: Optional[float] = None

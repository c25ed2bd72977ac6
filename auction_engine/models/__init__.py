"""
Engine Models
"""
from auction_engine.models.auction import (
    Auction,
    AuctionCreate,
    AuctionStatus,
    Bid,
    LiveAuctionCreate,
    LivePhase,
)
from auction_engine.models.events import AuctionEvent, EventType, Severity
from auction_engine.models.results import (
    BidResult,
    BidValidation,
    HistoryRecord,
    RejectionReason,
    SettlementOutcome,
    SyntheticBidResult,
)
from auction_engine.models.user import (
    BidRecordStatus,
    Registration,
    User,
    UserBidRecord,
    UserCreate,
    WonAuction,
)

__all__ = [
    "Auction",
    "AuctionCreate",
    "AuctionEvent",
    "AuctionStatus",
    "Bid",
    "BidRecordStatus",
    "BidResult",
    "BidValidation",
    "EventType",
    "HistoryRecord",
    "LiveAuctionCreate",
    "LivePhase",
    "Registration",
    "RejectionReason",
    "SettlementOutcome",
    "Severity",
    "SyntheticBidResult",
    "User",
    "UserBidRecord",
    "UserCreate",
    "WonAuction",
]

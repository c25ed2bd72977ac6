"""
Typed results returned by engine operations
"""
import enum
from typing import Optional

from pydantic import BaseModel

from auction_engine.models.auction import Auction, Bid


class RejectionReason(str, enum.Enum):
    """Why a bid was refused, in the order the checks run"""
    NOT_FOUND = "NOT_FOUND"
    NOT_OPEN = "NOT_OPEN"
    NOT_REGISTERED = "NOT_REGISTERED"
    TOO_LOW = "TOO_LOW"
    BELOW_INCREMENT = "BELOW_INCREMENT"
    INSUFFICIENT_FUNDS = "INSUFFICIENT_FUNDS"
    ALREADY_HIGHEST = "ALREADY_HIGHEST"


class BidValidation(BaseModel):
    valid: bool
    reason: Optional[RejectionReason] = None
    message: str = ""

    @classmethod
    def ok(cls) -> "BidValidation":
        return cls(valid=True)

    @classmethod
    def rejected(cls, reason: RejectionReason, message: str) -> "BidValidation":
        return cls(valid=False, reason=reason, message=message)


class BidResult(BaseModel):
    """Outcome of ``submit_bid``; rejection is a normal result, not an error"""
    accepted: bool
    message: str
    reason: Optional[RejectionReason] = None
    bid: Optional[Bid] = None
    auction: Optional[Auction] = None


class SyntheticBidResult(BaseModel):
    bidder: str
    amount: float
    message: str
    auction: Auction


class SettlementOutcome(BaseModel):
    auction_id: int
    sold: bool
    winner: Optional[str] = None
    amount: Optional[float] = None
    # False when the winner had no user record to debit
    reconciled: bool = True
    message: str = ""


class HistoryRecord(BaseModel):
    """Immutable snapshot of an ended auction"""
    auction: Auction
    outcome: SettlementOutcome

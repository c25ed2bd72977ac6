"""
Engine error taxonomy

Rejected bids are not errors: they come back as a ``BidResult``. These
exceptions cover the other operations (creation, registration, live start,
deletion) and the infrastructure failures the engine logs.
"""
from typing import Optional

from auction_engine.models.results import RejectionReason


class AuctionError(Exception):
    """Base class for auction engine errors"""


class ValidationError(AuctionError):
    """Request violates an auction or user rule; surfaced verbatim to the caller"""

    def __init__(self, message: str, reason: Optional[RejectionReason] = None):
        super().__init__(message)
        self.message = message
        self.reason = reason


class NotFoundError(AuctionError):
    """Auction or user does not exist"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class StateInconsistency(AuctionError):
    """A tick found an impossible combination of counters"""

    def __init__(self, auction_id: int, detail: str):
        super().__init__(f"Auction {auction_id}: {detail}")
        self.auction_id = auction_id
        self.detail = detail


class PersistenceFailure(AuctionError):
    """A repository write failed after its retries"""

    def __init__(self, operation: str, cause: Optional[BaseException] = None):
        message = f"Persistence operation '{operation}' failed"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)
        self.operation = operation
        self.cause = cause

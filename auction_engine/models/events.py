"""
Engine events

Published after an in-memory transition completes; renderers, persistence
and notifications subscribe to them.
"""
import enum
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from auction_engine.core.clock import utcnow


class EventType(str, enum.Enum):
    AUCTION_CREATED = "AUCTION_CREATED"
    AUCTION_STARTED = "AUCTION_STARTED"
    AUCTION_UPDATED = "AUCTION_UPDATED"
    AUCTION_EXTENDED = "AUCTION_EXTENDED"
    AUCTION_ENDED = "AUCTION_ENDED"
    AUCTION_DELETED = "AUCTION_DELETED"
    BID_PLACED = "BID_PLACED"
    SYNTHETIC_BID = "SYNTHETIC_BID"
    USER_REGISTERED = "USER_REGISTERED"
    AUCTION_LIKED = "AUCTION_LIKED"
    ACHIEVEMENT_UNLOCKED = "ACHIEVEMENT_UNLOCKED"
    TICK = "TICK"


class Severity(str, enum.Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class AuctionEvent(BaseModel):
    type: EventType
    auction_id: Optional[int] = None
    payload: Dict[str, Any] = Field(default_factory=dict)
    # Human-readable text for the notification collaborator
    message: Optional[str] = None
    severity: Severity = Severity.INFO
    created_at: datetime = Field(default_factory=utcnow)

    def to_message(self) -> Dict[str, Any]:
        """JSON-ready dict for WebSocket broadcast"""
        return self.model_dump(mode="json")

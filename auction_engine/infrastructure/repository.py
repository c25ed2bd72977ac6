"""
Auction Repository

Persistence collaborator for the live set and the history. The engine
keeps the in-memory state authoritative; repositories only receive
snapshots after a transition and hand them back on startup.
"""
import threading
from typing import Callable, List, Optional, Protocol

import redis
from pydantic import TypeAdapter

from auction_engine.core.exceptions import PersistenceFailure
from auction_engine.core.logger import get_logger
from auction_engine.infrastructure.retry import RetryConfig, call_with_retry
from auction_engine.models import Auction, AuctionEvent, EventType, HistoryRecord

logger = get_logger(__name__)

AUCTIONS_KEY = "auctions"
HISTORY_KEY = "auctionHistory"

_auction_list = TypeAdapter(List[Auction])
_history_list = TypeAdapter(List[HistoryRecord])


class AuctionRepository(Protocol):
    def load_auctions(self) -> List[Auction]: ...

    def save_auctions(self, auctions: List[Auction]) -> None: ...

    def load_history(self) -> List[HistoryRecord]: ...

    def save_history(self, history: List[HistoryRecord]) -> None: ...


class InMemoryAuctionRepository:
    """Keeps serialized copies so callers can't mutate what was saved"""

    def __init__(self):
        self._auctions: List[Auction] = []
        self._history: List[HistoryRecord] = []
        self._lock = threading.Lock()
        self.save_count = 0

    def load_auctions(self) -> List[Auction]:
        with self._lock:
            return [auction.model_copy(deep=True) for auction in self._auctions]

    def save_auctions(self, auctions: List[Auction]) -> None:
        with self._lock:
            self._auctions = [auction.model_copy(deep=True) for auction in auctions]
            self.save_count += 1

    def load_history(self) -> List[HistoryRecord]:
        with self._lock:
            return [record.model_copy(deep=True) for record in self._history]

    def save_history(self, history: List[HistoryRecord]) -> None:
        with self._lock:
            self._history = [record.model_copy(deep=True) for record in history]


class RedisAuctionRepository:
    """
    Stores the live set and the history as two JSON documents

    Keys:
        {prefix}:auctions        -> JSON list of auctions
        {prefix}:auctionHistory  -> JSON list of history records
    """

    def __init__(
        self,
        redis_client: redis.Redis,
        key_prefix: str = "timed-auction",
        retry_config: Optional[RetryConfig] = None,
    ):
        self.redis = redis_client
        self.key_prefix = key_prefix
        self.retry_config = retry_config or RetryConfig()

    def _key(self, name: str) -> str:
        return f"{self.key_prefix}:{name}"

    def _read(self, name: str) -> Optional[str]:
        return call_with_retry(
            f"load {name}",
            self.redis.get,
            self._key(name),
            config=self.retry_config,
            retry_on=(redis.RedisError,),
        )

    def _write(self, name: str, payload: str) -> None:
        call_with_retry(
            f"save {name}",
            self.redis.set,
            self._key(name),
            payload,
            config=self.retry_config,
            retry_on=(redis.RedisError,),
        )

    def load_auctions(self) -> List[Auction]:
        raw = self._read(AUCTIONS_KEY)
        if not raw:
            return []
        return _auction_list.validate_json(raw)

    def save_auctions(self, auctions: List[Auction]) -> None:
        self._write(AUCTIONS_KEY, _auction_list.dump_json(auctions).decode())

    def load_history(self) -> List[HistoryRecord]:
        raw = self._read(HISTORY_KEY)
        if not raw:
            return []
        return _history_list.validate_json(raw)

    def save_history(self, history: List[HistoryRecord]) -> None:
        self._write(HISTORY_KEY, _history_list.dump_json(history).decode())


class PersistenceListener:
    """
    Event bus subscriber that writes snapshots after each transition

    One write at a time: the snapshot is taken inside the writer lock, so
    a later write never carries older state than an earlier one. Failures
    are logged; the in-memory state stays authoritative and the next event
    writes the full state again.
    """

    HISTORY_EVENTS = {EventType.AUCTION_ENDED, EventType.AUCTION_DELETED}

    def __init__(
        self,
        repository: AuctionRepository,
        auctions_provider: Callable[[], List[Auction]],
        history_provider: Callable[[], List[HistoryRecord]],
    ):
        self.repository = repository
        self.auctions_provider = auctions_provider
        self.history_provider = history_provider
        self.failures = 0
        self._write_lock = threading.Lock()

    def __call__(self, event: AuctionEvent) -> None:
        if event.type == EventType.ACHIEVEMENT_UNLOCKED:
            return

        with self._write_lock:
            try:
                self.repository.save_auctions(self.auctions_provider())
                if event.type in self.HISTORY_EVENTS:
                    self.repository.save_history(self.history_provider())
            except (PersistenceFailure, TimeoutError) as e:
                self.failures += 1
                logger.error(
                    "Persistence failed, keeping in-memory state",
                    event_type=event.type.value,
                    auction_id=event.auction_id,
                    error=str(e),
                )

"""
Auction Book - the live set and the archived history

Only membership is guarded here; the contents of one auction are guarded
by that auction's lock.
"""
import threading
from typing import Dict, Iterable, List, Optional

from auction_engine.core.exceptions import ValidationError
from auction_engine.models import Auction, HistoryRecord


class AuctionBook:
    def __init__(self):
        self._auctions: Dict[int, Auction] = {}
        self._history: Dict[int, HistoryRecord] = {}
        self._lock = threading.Lock()

    # ========================================================================
    # LIVE SET
    # ========================================================================
    def add(self, auction: Auction) -> None:
        """
        Add a new auction to the live set

        Raises:
            ValidationError: If the id is already live or archived
        """
        with self._lock:
            if auction.id in self._auctions or auction.id in self._history:
                raise ValidationError(f"Auction id {auction.id} already exists")
            self._auctions[auction.id] = auction

    def get(self, auction_id: int) -> Optional[Auction]:
        with self._lock:
            return self._auctions.get(auction_id)

    def remove(self, auction_id: int) -> Optional[Auction]:
        with self._lock:
            return self._auctions.pop(auction_id, None)

    def ids(self) -> List[int]:
        with self._lock:
            return list(self._auctions.keys())

    def auctions(self) -> List[Auction]:
        with self._lock:
            return list(self._auctions.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._auctions)

    def __contains__(self, auction_id: int) -> bool:
        with self._lock:
            return auction_id in self._auctions

    # ========================================================================
    # HISTORY
    # ========================================================================
    def archive(self, record: HistoryRecord) -> bool:
        """
        Store an ended auction's snapshot

        Returns:
            False if a record with this id was already archived
        """
        with self._lock:
            if record.auction.id in self._history:
                return False
            self._history[record.auction.id] = record
            return True

    def get_record(self, auction_id: int) -> Optional[HistoryRecord]:
        with self._lock:
            return self._history.get(auction_id)

    def history(self) -> List[HistoryRecord]:
        with self._lock:
            return list(self._history.values())

    def load(self, auctions: Iterable[Auction], history: Iterable[HistoryRecord]) -> None:
        """Replace both collections with persisted state"""
        with self._lock:
            self._history = {record.auction.id: record for record in history}
            self._auctions = {
                auction.id: auction for auction in auctions
                if auction.id not in self._history
            }

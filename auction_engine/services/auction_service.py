"""
Auction Engine - the entry point for every auction operation

Handles:
- Auction creation (timed and live) and operator start
- Registration, likes and deletion
- Bid submission and synthetic bids
- The per-second tick

Every mutation takes the auction's lock, re-fetches the auction inside it
and publishes events after the lock is released.
"""
import random
import threading
from datetime import datetime
from typing import Dict, List, Optional

from auction_engine.core.clock import SystemClock, ensure_utc
from auction_engine.core.config import AuctionOptions
from auction_engine.core.exceptions import NotFoundError, PersistenceFailure, ValidationError
from auction_engine.core.logger import get_logger
from auction_engine.infrastructure.event_bus import EventBus
from auction_engine.infrastructure.lock import AuctionLock
from auction_engine.infrastructure.repository import AuctionRepository
from auction_engine.infrastructure.user_store import UserStore
from auction_engine.models import (
    Auction,
    AuctionCreate,
    AuctionEvent,
    AuctionStatus,
    BidResult,
    EventType,
    HistoryRecord,
    LiveAuctionCreate,
    LivePhase,
    Registration,
    SettlementOutcome,
    Severity,
    SyntheticBidResult,
    User,
    UserBidRecord,
)
from auction_engine.services.achievements import ACHIEVEMENT_TITLES, check_bid_achievements
from auction_engine.services.anti_snipe import AntiSnipePolicy
from auction_engine.services.auction_book import AuctionBook
from auction_engine.services.bid_service import BidService
from auction_engine.services.seed import default_auctions
from auction_engine.services.settlement import SettlementService
from auction_engine.services.state_machine import AuctionStateMachine, seconds_until
from auction_engine.services.synthetic_bidder import SyntheticBidder

logger = get_logger(__name__)


class AuctionEngine:
    def __init__(
        self,
        options: AuctionOptions,
        repository: AuctionRepository,
        user_store: UserStore,
        event_bus: Optional[EventBus] = None,
        clock=None,
        rng: Optional[random.Random] = None,
        lock: Optional[AuctionLock] = None,
    ):
        self.options = options
        self.repository = repository
        self.user_store = user_store
        self.event_bus = event_bus or EventBus()
        self.clock = clock or SystemClock()

        self.lock = lock or AuctionLock()
        self.user_lock = AuctionLock(
            timeout=self.lock.timeout,
            retry_delay=self.lock.retry_delay,
            max_retries=self.lock.max_retries,
        )

        self.book = AuctionBook()
        self.policy = AntiSnipePolicy(options.extend_time)
        self.settlement = SettlementService(
            self.book, user_store, options, user_lock=self.user_lock,
        )
        self.state_machine = AuctionStateMachine(options, self.policy, self.settlement)
        self.synthetic = SyntheticBidder(options, rng)

        self._id_lock = threading.Lock()
        self._last_id = 0

    # ========================================================================
    # STATE
    # ========================================================================
    def load_state(self, seed_defaults: bool = False) -> int:
        """
        Load the live set and history from the repository

        Args:
            seed_defaults: Install the default catalogue when nothing is stored

        Returns:
            Number of live auctions
        """
        auctions = self.repository.load_auctions()
        history = self.repository.load_history()

        if not auctions and not history and seed_defaults:
            auctions = default_auctions(self.options, self.clock.now())
            self.repository.save_auctions(auctions)
            logger.info("Seeded default auctions", count=len(auctions))

        self.book.load(auctions, history)

        known_ids = [a.id for a in auctions] + [r.auction.id for r in history]
        with self._id_lock:
            self._last_id = max([self._last_id] + known_ids)

        logger.info("Engine state loaded", auctions=len(self.book), history=len(history))
        return len(self.book)

    def _next_id(self) -> int:
        """Millisecond timestamp, bumped past the last id handed out"""
        with self._id_lock:
            candidate = int(self.clock.now().timestamp() * 1000)
            if candidate <= self._last_id:
                candidate = self._last_id + 1
            self._last_id = candidate
            return candidate

    def _publish(self, events: List[AuctionEvent]) -> None:
        self.event_bus.publish_all(events)

    # ========================================================================
    # QUERIES
    # ========================================================================
    def get_auction(self, auction_id: int) -> Auction:
        """
        Get a copy of a live or archived auction

        Raises:
            NotFoundError: If the id is unknown
        """
        if auction_id in self.book:
            with self.lock.lock(auction_id):
                auction = self.book.get(auction_id)
                if auction is not None:
                    return auction.snapshot()

        record = self.book.get_record(auction_id)
        if record is None:
            raise NotFoundError(f"Auction {auction_id} not found")
        return record.auction.snapshot()

    def snapshot_auctions(self) -> List[Auction]:
        """Copy every live auction, each under its own lock"""
        snapshots = []
        for auction_id in self.book.ids():
            with self.lock.lock(auction_id):
                auction = self.book.get(auction_id)
                if auction is not None:
                    snapshots.append(auction.snapshot())
        return snapshots

    def list_auctions(
        self,
        status: Optional[AuctionStatus] = None,
        category: Optional[str] = None,
        min_price: Optional[float] = None,
        max_price: Optional[float] = None,
    ) -> List[Auction]:
        """List auctions, newest first, with optional filters on the current bid"""
        auctions = self.snapshot_auctions()
        if status is None or status == AuctionStatus.ENDED:
            auctions.extend(record.auction.snapshot() for record in self.book.history())

        if status is not None:
            auctions = [a for a in auctions if a.status == status]
        if category:
            auctions = [a for a in auctions if a.category == category]
        if min_price is not None:
            auctions = [a for a in auctions if a.current_bid >= min_price]
        if max_price is not None:
            auctions = [a for a in auctions if a.current_bid <= max_price]

        return sorted(auctions, key=lambda a: a.created_at, reverse=True)

    def get_history(self) -> List[HistoryRecord]:
        return sorted(self.book.history(), key=lambda r: r.auction.end_time or r.auction.created_at)

    def get_stats(self) -> dict:
        auctions = self.book.auctions()
        return {
            "pending": sum(1 for a in auctions if a.status == AuctionStatus.PENDING),
            "active": sum(1 for a in auctions if a.status == AuctionStatus.ACTIVE),
            "live": sum(1 for a in auctions if a.is_live),
            "ended": len(self.book.history()),
            "event_bus": self.event_bus.get_stats(),
        }

    # ========================================================================
    # USERS
    # ========================================================================
    def create_user(self, username: str, balance: Optional[float] = None) -> User:
        username = (username or "").strip()
        if not username:
            raise ValidationError("Username is required")

        with self.user_lock.lock(username):
            if self.user_store.get_user(username) is not None:
                raise ValidationError(f"User {username} already exists")

            user = User(
                username=username,
                balance=self.options.initial_balance if balance is None else balance,
                created_at=self.clock.now(),
            )
            self.user_store.save_user(user)

        logger.info("User created", username=username, balance=user.balance)
        return user

    def get_user(self, username: str) -> User:
        user = self.user_store.get_user(username)
        if user is None:
            raise NotFoundError(f"User {username} not found")
        return user

    # ========================================================================
    # CREATION
    # ========================================================================
    def _validate_pricing(self, title: str, start_price: float, reserve_price: float,
                          min_increment: Optional[float]) -> None:
        if not title or not title.strip():
            raise ValidationError("Title is required")
        if start_price <= 0 or reserve_price <= 0:
            raise ValidationError("Start price and reserve price must be positive")
        if reserve_price < start_price:
            raise ValidationError("Reserve price cannot be lower than the start price")
        if min_increment is not None and min_increment <= 0:
            raise ValidationError("Minimum increment must be positive")

    def create_auction(self, request: AuctionCreate) -> Auction:
        """
        Create a timed auction

        Without a start time, or with one already past, the auction opens
        immediately; otherwise it waits as PENDING for the tick to start it.
        An auction whose end time has already passed is settled unsold.

        Raises:
            ValidationError: On missing fields, bad prices or times
        """
        self._validate_pricing(request.title, request.start_price, request.reserve_price, request.min_increment)

        start = ensure_utc(request.scheduled_start_time)
        end = ensure_utc(request.scheduled_end_time)
        if start is not None and end is not None and start >= end:
            raise ValidationError("End time must be later than start time")

        now = self.clock.now()
        if start is None or start <= now:
            status = AuctionStatus.ACTIVE
            time_left = seconds_until(end, now) if end is not None else self.options.default_duration
        else:
            status = AuctionStatus.PENDING
            time_left = 0

        auction = Auction(
            id=self._next_id(),
            title=request.title.strip(),
            artist=request.artist,
            category=request.category,
            image=request.image,
            description=request.description,
            start_price=request.start_price,
            current_bid=request.start_price,
            reserve_price=request.reserve_price,
            min_increment=request.min_increment or self.options.min_increment,
            status=status,
            time_left=max(time_left, 0),
            scheduled_start_time=start,
            scheduled_end_time=end,
            created_at=now,
        )
        events = [AuctionEvent(
            type=EventType.AUCTION_CREATED,
            auction_id=auction.id,
            payload={"auction": auction.model_dump(mode="json")},
            message=f"Published auction '{auction.title}' ({status.value.lower()})",
        )]

        # A tick must not end it before AUCTION_CREATED is published
        with self.lock.lock(auction.id):
            self.book.add(auction)
            if status == AuctionStatus.ACTIVE and time_left <= 0:
                _, ended = self.settlement.settle(auction, now)
                events.extend(ended)
            snapshot = auction.snapshot()

        logger.info("Auction created", auction_id=auction.id, status=snapshot.status.value, time_left=time_left)
        self._publish(events)
        return snapshot

    def create_live_auction(self, request: LiveAuctionCreate) -> Auction:
        """
        Create a live auction that waits for the operator to start it

        Raises:
            ValidationError: On bad prices or a duration outside the allowed range
        """
        self._validate_pricing(request.title, request.start_price, request.reserve_price, request.min_increment)

        minutes = request.duration_minutes or self.options.default_live_duration_minutes
        if not (self.options.live_min_duration_minutes <= minutes <= self.options.live_max_duration_minutes):
            raise ValidationError(
                f"Live duration must be between {self.options.live_min_duration_minutes} "
                f"and {self.options.live_max_duration_minutes} minutes"
            )

        now = self.clock.now()
        auction = Auction(
            id=self._next_id(),
            title=request.title.strip(),
            artist=request.artist,
            category=request.category,
            image=request.image,
            description=request.description,
            start_price=request.start_price,
            current_bid=request.start_price,
            reserve_price=request.reserve_price,
            min_increment=request.min_increment or self.options.min_increment,
            status=AuctionStatus.PENDING,
            is_live=True,
            live_phase=LivePhase.WAITING,
            live_duration=minutes * 60,
            created_at=now,
        )
        with self.lock.lock(auction.id):
            self.book.add(auction)
            snapshot = auction.snapshot()

        logger.info("Live auction created", auction_id=auction.id, duration_minutes=minutes)
        self._publish([AuctionEvent(
            type=EventType.AUCTION_CREATED,
            auction_id=auction.id,
            payload={"auction": auction.model_dump(mode="json")},
            message=f"Published live auction '{auction.title}', waiting to start",
        )])
        return snapshot

    def start_live_auction(self, auction_id: int) -> Auction:
        """
        Operator start of a waiting live auction

        Raises:
            NotFoundError: If the auction is not in the live set
            ValidationError: If it is not a waiting live auction
        """
        with self.lock.lock(auction_id):
            auction = self._require_open(auction_id)
            if not auction.is_live:
                raise ValidationError("Only live auctions can be started manually")
            if auction.status != AuctionStatus.PENDING or auction.live_phase != LivePhase.WAITING:
                raise ValidationError("Live auction has already started")

            events = self.state_machine.start_live(auction)
            snapshot = auction.snapshot()

        self._publish(events)
        return snapshot

    def _require_open(self, auction_id: int) -> Auction:
        """Fetch from the live set; caller holds the lock"""
        auction = self.book.get(auction_id)
        if auction is not None:
            return auction
        if self.book.get_record(auction_id) is not None:
            raise ValidationError("Auction has ended")
        raise NotFoundError(f"Auction {auction_id} not found")

    # ========================================================================
    # PARTICIPATION
    # ========================================================================
    def register(
        self,
        auction_id: int,
        username: str,
        real_name: Optional[str] = None,
        phone: Optional[str] = None,
        note: Optional[str] = None,
    ) -> Auction:
        """
        Register a user for an auction

        Raises:
            NotFoundError: Unknown auction or user
            ValidationError: Auction ended or user already registered
        """
        with self.lock.lock(auction_id):
            auction = self._require_open(auction_id)

            with self.user_lock.lock(username):
                user = self.user_store.get_user(username)
                if user is None:
                    raise NotFoundError(f"User {username} not found")
                if auction.is_registered(username):
                    raise ValidationError("Already registered for this auction")

                auction.registered_users.append(username)
                user.registrations.append(Registration(
                    auction_id=auction.id,
                    title=auction.title,
                    time=self.clock.now(),
                    real_name=real_name,
                    phone=phone,
                    note=note,
                ))
                self._save_user(user)

            snapshot = auction.snapshot()

        logger.info("User registered", auction_id=auction_id, username=username)
        self._publish([AuctionEvent(
            type=EventType.USER_REGISTERED,
            auction_id=auction_id,
            payload={"username": username, "registered": len(snapshot.registered_users)},
            message=f"{username} registered for '{snapshot.title}'",
            severity=Severity.SUCCESS,
        )])
        return snapshot

    def toggle_like(self, auction_id: int, username: str) -> bool:
        """
        Like or unlike an auction

        Returns:
            True if the user now likes it
        """
        with self.lock.lock(auction_id):
            auction = self._require_open(auction_id)
            if auction.is_live:
                raise ValidationError("Live auctions cannot be liked")

            if username in auction.likes:
                auction.likes.remove(username)
                liked = False
            else:
                auction.likes.append(username)
                liked = True
            auction.likes_count = len(auction.likes)
            likes_count = auction.likes_count

        self._publish([AuctionEvent(
            type=EventType.AUCTION_LIKED,
            auction_id=auction_id,
            payload={"username": username, "liked": liked, "likes_count": likes_count},
        )])
        return liked

    def delete_auction(self, auction_id: int) -> Optional[SettlementOutcome]:
        """
        Remove an auction from the live set

        An ACTIVE auction is settled first (force end); a PENDING one is
        dropped without a history record.

        Returns:
            The settlement outcome, or None if nothing was settled
        """
        now = self.clock.now()
        with self.lock.lock(auction_id):
            auction = self._require_open(auction_id)

            if auction.status == AuctionStatus.ACTIVE:
                outcome, events = self.settlement.settle(auction, now)
            else:
                self.book.remove(auction_id)
                outcome, events = None, []
            title = auction.title

        logger.info("Auction deleted", auction_id=auction_id, settled=outcome is not None)
        events.append(AuctionEvent(
            type=EventType.AUCTION_DELETED,
            auction_id=auction_id,
            message=f"Auction '{title}' deleted",
            severity=Severity.WARNING,
        ))
        self._publish(events)
        return outcome

    # ========================================================================
    # BIDDING
    # ========================================================================
    def submit_bid(self, auction_id: int, username: str, amount) -> BidResult:
        """
        Validate and apply a user bid

        A rejected bid is a normal result with the rejection reason; nothing
        changes on rejection.
        """
        events: List[AuctionEvent] = []

        with self.lock.lock(auction_id):
            auction = self.book.get(auction_id)
            if auction is None:
                record = self.book.get_record(auction_id)
                auction = record.auction if record is not None else None

            with self.user_lock.lock(username):
                user = self.user_store.get_user(username)
                validation = BidService.validate_bid(auction, amount, user)
                if not validation.valid:
                    logger.info(
                        "Bid rejected",
                        auction_id=auction_id,
                        bidder=username,
                        amount=amount,
                        reason=validation.reason.value,
                    )
                    return BidResult(
                        accepted=False,
                        message=validation.message,
                        reason=validation.reason,
                    )

                now = self.clock.now()
                bid, extended = BidService.apply_bid(auction, username, amount, now, self.policy)

                user.total_bids += 1
                user.bid_history.append(UserBidRecord(
                    auction_id=auction.id,
                    title=auction.title,
                    amount=amount,
                    time=now,
                ))
                unlocked = check_bid_achievements(user, amount, self.options)
                self._save_user(user)

            snapshot = auction.snapshot()

        logger.info(
            "Bid placed",
            auction_id=auction_id,
            bidder=username,
            amount=amount,
            extended=extended,
        )

        events.append(AuctionEvent(
            type=EventType.BID_PLACED,
            auction_id=auction_id,
            payload={
                "bid": bid.model_dump(mode="json"),
                "auction": snapshot.model_dump(mode="json"),
            },
            message=f"{username} bid {amount:,.0f} on '{snapshot.title}'",
            severity=Severity.SUCCESS,
        ))
        if extended:
            events.append(self._extended_event(snapshot))
        events.extend(
            AuctionEvent(
                type=EventType.ACHIEVEMENT_UNLOCKED,
                auction_id=auction_id,
                payload={"username": username, "achievement": achievement.value},
                message=f"{username} unlocked '{ACHIEVEMENT_TITLES[achievement]}'",
                severity=Severity.SUCCESS,
            )
            for achievement in unlocked
        )
        self._publish(events)

        return BidResult(
            accepted=True,
            message="Bid placed",
            bid=bid,
            auction=snapshot,
        )

    def trigger_synthetic_bid(self, auction_id: int) -> Optional[SyntheticBidResult]:
        """
        Let the synthetic bidder try once on this auction

        Returns:
            The result, or None when it declined or the auction is gone
        """
        with self.lock.lock(auction_id):
            auction = self.book.get(auction_id)
            if auction is None:
                return None

            proposal = self.synthetic.propose(auction)
            if proposal is None:
                return None

            name, amount = proposal
            if not auction.is_registered(name):
                auction.registered_users.append(name)

            bid, extended = BidService.apply_bid(
                auction, name, amount, self.clock.now(), self.policy, synthetic=True,
            )
            snapshot = auction.snapshot()

        logger.info("Synthetic bid", auction_id=auction_id, bidder=name, amount=amount, extended=extended)

        message = f"{name} bid {amount:,.0f} on '{snapshot.title}'"
        events = [AuctionEvent(
            type=EventType.SYNTHETIC_BID,
            auction_id=auction_id,
            payload={
                "bid": bid.model_dump(mode="json"),
                "auction": snapshot.model_dump(mode="json"),
            },
            message=message,
            severity=Severity.WARNING,
        )]
        if extended:
            events.append(self._extended_event(snapshot))
        self._publish(events)

        return SyntheticBidResult(bidder=name, amount=amount, message=message, auction=snapshot)

    def trigger_random_synthetic_bid(self) -> Optional[SyntheticBidResult]:
        """Pick one eligible auction at random and try a synthetic bid on it"""
        eligible = [a.id for a in self.book.auctions() if self.synthetic.is_eligible(a)]
        if not eligible:
            return None
        return self.trigger_synthetic_bid(self.synthetic.rng.choice(eligible))

    def _extended_event(self, auction: Auction) -> AuctionEvent:
        return AuctionEvent(
            type=EventType.AUCTION_EXTENDED,
            auction_id=auction.id,
            payload={"extended_time": auction.extended_time},
            message=f"Auction '{auction.title}' extended by {auction.extended_time} seconds",
            severity=Severity.WARNING,
        )

    # ========================================================================
    # TICK
    # ========================================================================
    def tick(self, now: Optional[datetime] = None) -> List[AuctionEvent]:
        """
        Advance every auction by one second

        Auctions whose lock can't be taken this second are skipped and picked
        up on the next tick.

        Returns:
            Events published by this tick
        """
        now = now or self.clock.now()
        events: List[AuctionEvent] = []
        countdowns: Dict[int, dict] = {}

        for auction_id in self.book.ids():
            try:
                with self.lock.lock(auction_id):
                    auction = self.book.get(auction_id)
                    if auction is None:
                        continue

                    was_active = auction.status == AuctionStatus.ACTIVE
                    transition_events = self.state_machine.advance(auction, now)
                    if was_active or transition_events:
                        countdowns[auction_id] = {
                            "status": auction.status.value,
                            "time_left": auction.time_left,
                            "extended_time": auction.extended_time,
                            "live_phase_time": auction.live_phase_time,
                        }
                    events.extend(transition_events)
            except TimeoutError:
                logger.warning("Tick skipped busy auction", auction_id=auction_id)

        if countdowns:
            events.append(AuctionEvent(type=EventType.TICK, payload={"countdowns": countdowns}))

        self._publish(events)
        return events

    def _save_user(self, user: User) -> None:
        try:
            self.user_store.save_user(user)
        except PersistenceFailure as e:
            logger.error("Could not save user", username=user.username, error=str(e))

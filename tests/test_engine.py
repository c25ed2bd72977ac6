"""
Engine operations: creation, registration, bidding, likes, deletion, loading
"""
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta

import pytest

from auction_engine.core.exceptions import NotFoundError, ValidationError
from auction_engine.infrastructure.event_bus import EventBus
from auction_engine.infrastructure.repository import InMemoryAuctionRepository, PersistenceListener
from auction_engine.models import (
    AuctionCreate,
    AuctionStatus,
    BidRecordStatus,
    EventType,
    LiveAuctionCreate,
    RejectionReason,
    User,
)
from auction_engine.services.auction_service import AuctionEngine
from auction_engine.services.seed import DEFAULT_CATALOGUE


# ============================================================================
# CREATION
# ============================================================================
class TestCreateAuction:

    def test_immediate_start(self, engine, make_auction, options):
        auction = make_auction(min_increment=None)
        assert auction.status == AuctionStatus.ACTIVE
        assert auction.time_left == options.default_duration
        assert auction.current_bid == auction.start_price
        assert auction.min_increment == options.min_increment

    def test_past_start_opens_immediately_with_end_time(self, engine, clock):
        now = clock.now()
        auction = engine.create_auction(AuctionCreate(
            title="Open",
            start_price=1000,
            reserve_price=1000,
            scheduled_start_time=now - timedelta(seconds=30),
            scheduled_end_time=now + timedelta(seconds=90),
        ))
        assert auction.status == AuctionStatus.ACTIVE
        assert auction.time_left == 90
        assert auction.is_scheduled

    @pytest.mark.parametrize("fields, message", [
        (dict(title="", start_price=100, reserve_price=200), "Title"),
        (dict(title="X", start_price=0, reserve_price=200), "positive"),
        (dict(title="X", start_price=300, reserve_price=200), "Reserve"),
        (dict(title="X", start_price=100, reserve_price=200, min_increment=-5), "increment"),
    ])
    def test_invalid_specs(self, engine, fields, message):
        with pytest.raises(ValidationError) as exc:
            engine.create_auction(AuctionCreate(**fields))
        assert message in exc.value.message

    def test_end_before_start_rejected(self, engine, clock):
        now = clock.now()
        with pytest.raises(ValidationError):
            engine.create_auction(AuctionCreate(
                title="Backwards",
                start_price=100,
                reserve_price=100,
                scheduled_start_time=now + timedelta(seconds=60),
                scheduled_end_time=now + timedelta(seconds=30),
            ))

    def test_ids_are_unique_at_the_same_instant(self, make_auction):
        ids = {make_auction().id for _ in range(5)}
        assert len(ids) == 5

    def test_duplicate_id_rejected(self, engine, make_auction):
        auction = make_auction()
        with pytest.raises(ValidationError):
            engine.book.add(engine.book.get(auction.id))

    def test_created_event_published(self, make_auction, published):
        auction = make_auction()
        assert published[0].type == EventType.AUCTION_CREATED
        assert published[0].auction_id == auction.id


# ============================================================================
# REGISTRATION
# ============================================================================
class TestRegister:

    def test_register_records_details_on_user(self, engine, make_auction, make_user, user_store):
        make_user("alice")
        auction = make_auction()

        updated = engine.register(auction.id, "alice", real_name="Alice A.", phone="555-0100", note="Front row")

        assert updated.registered_users == ["alice"]
        registration = user_store.get_user("alice").registrations[0]
        assert registration.auction_id == auction.id
        assert registration.real_name == "Alice A."
        assert registration.note == "Front row"

    def test_double_registration_rejected(self, engine, make_auction, make_user):
        make_user("alice")
        auction = make_auction()
        engine.register(auction.id, "alice")

        with pytest.raises(ValidationError):
            engine.register(auction.id, "alice")
        assert engine.get_auction(auction.id).registered_users == ["alice"]

    def test_unknown_user(self, engine, make_auction):
        auction = make_auction()
        with pytest.raises(NotFoundError):
            engine.register(auction.id, "ghost")

    def test_unknown_auction(self, engine, make_user):
        make_user("alice")
        with pytest.raises(NotFoundError):
            engine.register(999, "alice")

    def test_pending_auction_accepts_registration(self, engine, clock, make_user):
        make_user("alice")
        auction = engine.create_auction(AuctionCreate(
            title="Later",
            start_price=100,
            reserve_price=100,
            scheduled_start_time=clock.now() + timedelta(minutes=5),
        ))
        assert engine.register(auction.id, "alice").registered_users == ["alice"]


# ============================================================================
# BIDDING
# ============================================================================
class TestSubmitBid:

    @pytest.fixture
    def auction(self, engine, make_auction, make_user):
        make_user("alice", 5000)
        make_user("bob", 5000)
        auction = make_auction()
        engine.register(auction.id, "alice")
        engine.register(auction.id, "bob")
        return auction

    def test_accepted_bid_updates_user(self, engine, auction, user_store):
        result = engine.submit_bid(auction.id, "alice", 2100)

        assert result.accepted
        assert result.bid.amount == 2100
        alice = user_store.get_user("alice")
        assert alice.total_bids == 1
        assert alice.bid_history[0].status == BidRecordStatus.ACTIVE
        assert alice.bid_history[0].auction_id == auction.id

    def test_rejected_bid_changes_nothing(self, engine, auction, user_store, published):
        before = engine.get_auction(auction.id)
        published.clear()

        result = engine.submit_bid(auction.id, "alice", 2050)

        assert not result.accepted
        assert result.reason == RejectionReason.BELOW_INCREMENT
        assert engine.get_auction(auction.id) == before
        assert user_store.get_user("alice").total_bids == 0
        assert published == []

    def test_unknown_auction_is_not_found(self, engine, auction):
        assert engine.submit_bid(12345, "alice", 5000).reason == RejectionReason.NOT_FOUND

    def test_unknown_user_is_not_found(self, engine, auction):
        assert engine.submit_bid(auction.id, "ghost", 2100).reason == RejectionReason.NOT_FOUND

    def test_outbid_sequence(self, engine, auction):
        assert engine.submit_bid(auction.id, "alice", 2100).accepted
        assert engine.submit_bid(auction.id, "alice", 2300).reason == RejectionReason.ALREADY_HIGHEST
        assert engine.submit_bid(auction.id, "bob", 2200).accepted

        current = engine.get_auction(auction.id)
        assert current.current_bid == 2200
        assert current.highest_bidder == "bob"
        assert [b.amount for b in current.bid_history] == [2100, 2200]

    def test_bid_event_carries_snapshot(self, engine, auction, published):
        engine.submit_bid(auction.id, "alice", 2100)
        bid_event = next(e for e in published if e.type == EventType.BID_PLACED)
        assert bid_event.payload["auction"]["current_bid"] == 2100
        assert bid_event.payload["bid"]["bidder"] == "alice"

    def test_concurrent_bids_stay_strictly_increasing(self, engine, make_auction, make_user):
        auction = make_auction(start_price=100, reserve_price=100, min_increment=10)
        bidders = [f"user_{i}" for i in range(20)]
        for name in bidders:
            make_user(name, 100_000)
            engine.register(auction.id, name)

        def place(i):
            return engine.submit_bid(auction.id, bidders[i], 110 + i * 10)

        with ThreadPoolExecutor(max_workers=20) as executor:
            results = list(executor.map(place, range(20)))

        assert any(r.accepted for r in results)

        final = engine.get_auction(auction.id)
        amounts = [b.amount for b in final.bid_history]
        assert amounts == sorted(set(amounts))
        assert final.current_bid == amounts[-1]
        assert final.highest_bidder == final.bid_history[-1].bidder
        for earlier, later in zip(amounts, amounts[1:]):
            assert later >= earlier + 10


# ============================================================================
# LIKES & DELETION
# ============================================================================
class TestLikes:

    def test_toggle(self, engine, make_auction):
        auction = make_auction()
        assert engine.toggle_like(auction.id, "alice") is True
        assert engine.get_auction(auction.id).likes_count == 1
        assert engine.toggle_like(auction.id, "alice") is False
        assert engine.get_auction(auction.id).likes_count == 0

    def test_live_auction_cannot_be_liked(self, engine):
        auction = engine.create_live_auction(LiveAuctionCreate(title="Live", start_price=100, reserve_price=100))
        with pytest.raises(ValidationError):
            engine.toggle_like(auction.id, "alice")


class TestDelete:

    def test_delete_pending_removes_without_history(self, engine, clock, published):
        auction = engine.create_auction(AuctionCreate(
            title="Later",
            start_price=100,
            reserve_price=100,
            scheduled_start_time=clock.now() + timedelta(minutes=5),
        ))

        assert engine.delete_auction(auction.id) is None
        assert auction.id not in engine.book
        assert engine.get_history() == []
        assert published[-1].type == EventType.AUCTION_DELETED

    def test_delete_active_settles_first(self, engine, make_auction, published):
        auction = make_auction()
        outcome = engine.delete_auction(auction.id)

        assert outcome.sold is False
        assert engine.get_auction(auction.id).status == AuctionStatus.ENDED
        types = [e.type for e in published]
        assert types.index(EventType.AUCTION_ENDED) < types.index(EventType.AUCTION_DELETED)

    def test_delete_ended_rejected(self, engine, make_auction):
        auction = make_auction()
        engine.delete_auction(auction.id)
        with pytest.raises(ValidationError):
            engine.delete_auction(auction.id)

    def test_delete_unknown(self, engine):
        with pytest.raises(NotFoundError):
            engine.delete_auction(1)


# ============================================================================
# QUERIES & LOADING
# ============================================================================
class TestQueries:

    def test_list_filters(self, engine, make_auction):
        cheap = make_auction(title="Cheap", start_price=100, reserve_price=100, category="photography")
        dear = make_auction(title="Dear", start_price=9000, reserve_price=9000, category="painting")
        ended = make_auction(title="Gone", start_price=500, reserve_price=500)
        engine.delete_auction(ended.id)

        assert {a.id for a in engine.list_auctions()} == {cheap.id, dear.id, ended.id}
        assert [a.id for a in engine.list_auctions(status=AuctionStatus.ACTIVE, category="painting")] == [dear.id]
        assert [a.id for a in engine.list_auctions(max_price=1000, status=AuctionStatus.ACTIVE)] == [cheap.id]
        assert [a.id for a in engine.list_auctions(status=AuctionStatus.ENDED)] == [ended.id]

    def test_get_unknown(self, engine):
        with pytest.raises(NotFoundError):
            engine.get_auction(7)

    def test_stats(self, engine, make_auction):
        make_auction()
        engine.create_live_auction(LiveAuctionCreate(title="Live", start_price=100, reserve_price=100))
        stats = engine.get_stats()
        assert stats["active"] == 1
        assert stats["pending"] == 1
        assert stats["live"] == 1


class TestLoadState:

    def test_seeds_default_catalogue(self, engine, repository):
        assert engine.load_state(seed_defaults=True) == len(DEFAULT_CATALOGUE)

        starry = engine.get_auction(1)
        assert starry.title == "The Starry Night"
        assert starry.status == AuctionStatus.ACTIVE
        assert starry.reserve_price == 3000
        assert len(repository.load_auctions()) == 2

    def test_no_seed_when_disabled(self, engine):
        assert engine.load_state(seed_defaults=False) == 0

    def test_restores_saved_state(self, engine, repository, make_auction, options, user_store, clock):
        engine.event_bus.subscribe(PersistenceListener(
            repository,
            auctions_provider=engine.snapshot_auctions,
            history_provider=engine.book.history,
        ))
        open_lot = make_auction(title="Open")
        closed_lot = make_auction(title="Closed")
        engine.delete_auction(closed_lot.id)

        restored = AuctionEngine(options, repository, user_store, clock=clock)
        assert restored.load_state(seed_defaults=True) == 1
        assert restored.get_auction(open_lot.id).title == "Open"
        assert restored.get_auction(closed_lot.id).status == AuctionStatus.ENDED

        # New ids never collide with restored ones
        assert restored.create_auction(AuctionCreate(title="Next", start_price=1, reserve_price=1)).id > closed_lot.id


class TestUsers:

    def test_create_user_with_initial_balance(self, engine, options):
        user = engine.create_user("erin")
        assert user.balance == options.initial_balance
        assert engine.get_user("erin") == user

    def test_duplicate_user(self, engine):
        engine.create_user("erin")
        with pytest.raises(ValidationError):
            engine.create_user("erin")

    def test_unknown_user(self, engine):
        with pytest.raises(NotFoundError):
            engine.get_user("nobody")

    def test_blank_username(self, engine):
        with pytest.raises(ValidationError):
            engine.create_user("  ")

    def test_user_model_defaults(self):
        assert User(username="x").achievements == []


# ============================================================================
# CONCURRENCY
# ============================================================================
class SlowFirstSaveRepository(InMemoryAuctionRepository):
    """Holds the first auctions write long enough for later events to overtake it"""

    def __init__(self, delay: float = 0.2):
        super().__init__()
        self.delay = delay
        self.saves = 0

    def save_auctions(self, auctions):
        self.saves += 1
        if self.saves == 1:
            time.sleep(self.delay)
        super().save_auctions(auctions)


class TestConcurrency:

    def test_persisted_state_matches_memory_with_worker_pool(self, options, user_store, clock):
        repository = SlowFirstSaveRepository()
        bus = EventBus(ThreadPoolExecutor(max_workers=2))
        engine = AuctionEngine(options, repository, user_store, event_bus=bus, clock=clock)
        bus.subscribe(PersistenceListener(repository, engine.snapshot_auctions, engine.book.history))

        user_store.save_user(User(username="alice", balance=5000))
        auction = engine.create_auction(AuctionCreate(title="Lot", start_price=2000, reserve_price=3000))
        engine.register(auction.id, "alice")
        assert engine.submit_bid(auction.id, "alice", 2100).accepted
        bus.shutdown()

        stored = repository.load_auctions()
        assert stored[0].current_bid == 2100
        assert stored[0].highest_bidder == "alice"
        assert len(stored[0].bid_history) == 1

    def test_lookups_of_unknown_ids_leave_no_locks(self, engine):
        for auction_id in range(1000, 2000):
            result = engine.submit_bid(auction_id, f"ghost_{auction_id}", 100)
            assert result.reason == RejectionReason.NOT_FOUND

        assert len(engine.lock) == 0
        assert len(engine.user_lock) == 0

    def test_archived_auction_leaves_no_locks(self, engine, make_auction, make_user):
        make_user("alice", 5000)
        auction = make_auction()
        engine.register(auction.id, "alice")
        engine.submit_bid(auction.id, "alice", 2100)
        engine.delete_auction(auction.id)

        with pytest.raises(ValidationError):
            engine.register(auction.id, "alice")
        assert engine.submit_bid(auction.id, "alice", 2200).reason == RejectionReason.NOT_OPEN

        assert len(engine.lock) == 0
        assert len(engine.user_lock) == 0

    def test_ticks_racing_bids_at_expiry(self, engine, make_auction, make_user, clock, run_ticks):
        auction = make_auction(start_price=2000, reserve_price=2000)
        bidders = [f"user_{i}" for i in range(10)]
        for name in bidders:
            make_user(name, 100_000)
            engine.register(auction.id, name)
        engine.book.get(auction.id).time_left = 1

        def place(i):
            return engine.submit_bid(auction.id, bidders[i], 2100 + i * 100)

        def keep_ticking():
            for _ in range(40):
                clock.advance(1)
                engine.tick()

        ticker = threading.Thread(target=keep_ticking)
        with ThreadPoolExecutor(max_workers=10) as executor:
            ticker.start()
            results = list(executor.map(place, range(10)))
        ticker.join()
        run_ticks(40)

        final = engine.get_auction(auction.id)
        assert final.status == AuctionStatus.ENDED
        assert engine.book.get_record(auction.id) is not None

        accepted = [r for r in results if r.accepted]
        for result in accepted:
            assert result.auction.extended_time > 0
        for result in results:
            if not result.accepted:
                assert result.reason in (
                    RejectionReason.NOT_OPEN,
                    RejectionReason.BELOW_INCREMENT,
                    RejectionReason.TOO_LOW,
                )

        # Every accepted bid is in the archived history, nothing else is
        assert {(r.bid.bidder, r.bid.amount) for r in accepted} == {
            (b.bidder, b.amount) for b in final.bid_history
        }
        for bid in final.bid_history:
            assert bid.time <= final.end_time
        if accepted:
            assert final.current_bid == max(r.bid.amount for r in accepted)
            assert final.highest_bidder == final.bid_history[-1].bidder

    def test_tick_during_create_cannot_end_before_created(self, engine, clock, published, monkeypatch):
        original_add = engine.book.add
        tickers = []

        def add_then_tick(auction):
            original_add(auction)
            ticker = threading.Thread(target=engine.tick)
            ticker.start()
            ticker.join(0.2)
            tickers.append(ticker)

        monkeypatch.setattr(engine.book, "add", add_then_tick)
        now = clock.now()
        auction = engine.create_auction(AuctionCreate(
            title="Already over",
            start_price=100,
            reserve_price=100,
            scheduled_end_time=now - timedelta(seconds=1),
        ))
        for ticker in tickers:
            ticker.join()

        types = [e.type for e in published if e.auction_id == auction.id]
        assert types.count(EventType.AUCTION_ENDED) == 1
        assert types.index(EventType.AUCTION_CREATED) < types.index(EventType.AUCTION_ENDED)

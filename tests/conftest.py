"""
Shared fixtures: manual clock, scripted randomness, in-memory stores and
an engine wired with an inline event bus.
"""
import random
from typing import List

import pytest

from auction_engine.core.clock import ManualClock
from auction_engine.core.config import AuctionOptions
from auction_engine.infrastructure.event_bus import EventBus
from auction_engine.infrastructure.repository import InMemoryAuctionRepository
from auction_engine.infrastructure.user_store import InMemoryUserStore
from auction_engine.models import AuctionCreate, AuctionEvent, User
from auction_engine.services.auction_service import AuctionEngine


class ScriptedRandom(random.Random):
    """Random source with fixed answers for the synthetic bidder"""

    def __init__(self, roll: float = 0.0, steps: int = 1, name_index: int = 0):
        super().__init__(0)
        self.roll = roll
        self.steps = steps
        self.name_index = name_index

    def random(self):
        return self.roll

    def randint(self, a, b):
        return max(a, min(b, self.steps))

    def choice(self, seq):
        return seq[self.name_index % len(seq)]

    def uniform(self, a, b):
        return a


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def options():
    return AuctionOptions()


@pytest.fixture
def repository():
    return InMemoryAuctionRepository()


@pytest.fixture
def user_store():
    return InMemoryUserStore()


@pytest.fixture
def rng():
    return ScriptedRandom()


@pytest.fixture
def event_bus():
    return EventBus()


@pytest.fixture
def published(event_bus) -> List[AuctionEvent]:
    """Every event the engine publishes, in order"""
    events: List[AuctionEvent] = []
    event_bus.subscribe(events.append)
    return events


@pytest.fixture
def engine(options, repository, user_store, event_bus, clock, rng):
    return AuctionEngine(
        options=options,
        repository=repository,
        user_store=user_store,
        event_bus=event_bus,
        clock=clock,
        rng=rng,
    )


@pytest.fixture
def make_user(user_store):
    def _make(username: str = "alice", balance: float = 5000) -> User:
        user = User(username=username, balance=balance)
        user_store.save_user(user)
        return user
    return _make


@pytest.fixture
def make_auction(engine):
    """Create an ACTIVE timed auction (default 180 s) through the engine"""
    def _make(start_price=2000, reserve_price=3000, min_increment=100, **fields):
        return engine.create_auction(AuctionCreate(
            title=fields.pop("title", "Test Lot"),
            start_price=start_price,
            reserve_price=reserve_price,
            min_increment=min_increment,
            **fields,
        ))
    return _make


@pytest.fixture
def run_ticks(engine, clock):
    """Tick ``count`` times, moving the clock one second before each tick"""
    def _run(count: int, advance: bool = True) -> None:
        for _ in range(count):
            if advance:
                clock.advance(1)
            engine.tick()
    return _run

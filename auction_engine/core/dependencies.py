"""
Engine wiring and FastAPI dependencies
"""
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

from fastapi import Request

from auction_engine.core.clock import SystemClock
from auction_engine.core.config import Settings, get_settings
from auction_engine.core.logger import get_logger
from auction_engine.infrastructure.event_bus import EventBus
from auction_engine.infrastructure.lock import AuctionLock
from auction_engine.infrastructure.notifier import LogNotifier, NotificationListener, Notifier
from auction_engine.infrastructure.redis_client import get_redis_client
from auction_engine.infrastructure.repository import (
    InMemoryAuctionRepository,
    PersistenceListener,
    RedisAuctionRepository,
)
from auction_engine.infrastructure.retry import RetryConfig
from auction_engine.infrastructure.user_store import InMemoryUserStore, RedisUserStore
from auction_engine.services.auction_service import AuctionEngine

logger = get_logger(__name__)


def build_engine(
    settings: Optional[Settings] = None,
    notifier: Optional[Notifier] = None,
    event_bus: Optional[EventBus] = None,
) -> AuctionEngine:
    """
    Assemble an engine from settings

    Picks in-memory or Redis storage, subscribes persistence and
    notifications to the event bus and loads the stored state.
    """
    settings = settings or get_settings()

    if settings.STORAGE_BACKEND == "redis":
        redis_client = get_redis_client(settings)
        retry_config = RetryConfig.from_settings(settings)
        repository = RedisAuctionRepository(redis_client, settings.REDIS_KEY_PREFIX, retry_config)
        user_store = RedisUserStore(redis_client, settings.REDIS_KEY_PREFIX, retry_config)
    elif settings.STORAGE_BACKEND == "memory":
        repository = InMemoryAuctionRepository()
        user_store = InMemoryUserStore()
    else:
        raise ValueError(f"Unknown storage backend: {settings.STORAGE_BACKEND}")

    if event_bus is None:
        executor = ThreadPoolExecutor(
            max_workers=settings.EVENT_WORKERS,
            thread_name_prefix="auction-events",
        )
        event_bus = EventBus(executor)

    engine = AuctionEngine(
        options=settings.auction_options(),
        repository=repository,
        user_store=user_store,
        event_bus=event_bus,
        clock=SystemClock(),
        lock=AuctionLock(
            timeout=settings.LOCK_TIMEOUT,
            retry_delay=settings.LOCK_RETRY_DELAY,
            max_retries=settings.LOCK_MAX_RETRIES,
        ),
    )

    event_bus.subscribe(PersistenceListener(
        repository,
        auctions_provider=engine.snapshot_auctions,
        history_provider=engine.book.history,
    ))
    event_bus.subscribe(NotificationListener(notifier or LogNotifier()))

    engine.load_state(seed_defaults=settings.SEED_DEFAULT_AUCTIONS)
    logger.info("Engine ready", storage=settings.STORAGE_BACKEND)
    return engine


def get_engine(request: Request) -> AuctionEngine:
    """Get the engine owned by the running app"""
    return request.app.state.engine

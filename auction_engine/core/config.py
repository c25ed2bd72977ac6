"""
Application Configuration
"""
from functools import lru_cache
from typing import List

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_AI_BIDDER_NAMES = [
    "AI_Collector_01",
    "AI_Collector_02",
    "AI_Collector_03",
    "Mystery Buyer",
    "Veteran Collector",
    "Art Enthusiast",
]


class AuctionOptions(BaseModel):
    """
    Tuning values the engine receives as one named options set

    Times are in seconds, money in the same unit as balances.
    """

    default_duration: int = 180
    extend_time: int = 15
    min_increment: float = 100

    # Synthetic bidder
    ai_min_time_left: int = 10
    ai_bid_probability: float = Field(default=0.5, ge=0, le=1)
    ai_bid_min_steps: int = Field(default=1, ge=1)
    ai_bid_max_steps: int = Field(default=5, ge=1)
    ai_max_price_multiplier: float = 1.2
    ai_bidder_names: List[str] = Field(default_factory=lambda: list(DEFAULT_AI_BIDDER_NAMES))
    ai_bid_check_interval: float = 20.0
    ai_bid_delay_min: float = 5.0
    ai_bid_delay_max: float = 20.0

    # Users
    initial_balance: float = 10000

    # Live auctions (minutes)
    live_min_duration_minutes: int = 1
    live_max_duration_minutes: int = 60
    default_live_duration_minutes: int = 3

    # Achievements
    big_spender_threshold: float = 5000
    collector_threshold: int = 5
    speed_bidder_window: int = 10


class Settings(BaseSettings):
    """Application settings"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # App
    APP_NAME: str = "Timed Auction Engine"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = True
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Storage: "memory" or "redis"
    STORAGE_BACKEND: str = "memory"
    SEED_DEFAULT_AUCTIONS: bool = True

    # Redis
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_KEY_PREFIX: str = "timed-auction"
    REDIS_SOCKET_TIMEOUT: float = 2.0

    # Persistence retries
    PERSISTENCE_MAX_RETRIES: int = 3
    PERSISTENCE_RETRY_DELAY: float = 0.2

    # Scheduling
    TICK_INTERVAL: float = 1.0
    AI_BID_ENABLED: bool = True
    EVENT_WORKERS: int = 2

    # Lock
    LOCK_TIMEOUT: float = 0.5  # seconds per attempt
    LOCK_RETRY_DELAY: float = 0.005  # seconds
    LOCK_MAX_RETRIES: int = 10

    # Auction tuning
    DEFAULT_DURATION: int = 180
    EXTEND_TIME: int = 15
    MIN_INCREMENT: float = 100
    AI_MIN_TIME_LEFT: int = 10
    AI_BID_PROBABILITY: float = 0.5
    AI_BID_MIN_STEPS: int = 1
    AI_BID_MAX_STEPS: int = 5
    AI_MAX_PRICE_MULTIPLIER: float = 1.2
    AI_BIDDER_NAMES: List[str] = list(DEFAULT_AI_BIDDER_NAMES)
    AI_BID_CHECK_INTERVAL: float = 20.0
    AI_BID_DELAY_MIN: float = 5.0
    AI_BID_DELAY_MAX: float = 20.0
    INITIAL_BALANCE: float = 10000
    LIVE_MIN_DURATION_MINUTES: int = 1
    LIVE_MAX_DURATION_MINUTES: int = 60
    DEFAULT_LIVE_DURATION_MINUTES: int = 3
    BIG_SPENDER_THRESHOLD: float = 5000
    COLLECTOR_THRESHOLD: int = 5
    SPEED_BIDDER_WINDOW: int = 10

    # CORS
    CORS_ORIGINS: list = ["*"]

    def auction_options(self) -> AuctionOptions:
        """Project the auction tuning values into the engine's options set"""
        return AuctionOptions(
            default_duration=self.DEFAULT_DURATION,
            extend_time=self.EXTEND_TIME,
            min_increment=self.MIN_INCREMENT,
            ai_min_time_left=self.AI_MIN_TIME_LEFT,
            ai_bid_probability=self.AI_BID_PROBABILITY,
            ai_bid_min_steps=self.AI_BID_MIN_STEPS,
            ai_bid_max_steps=self.AI_BID_MAX_STEPS,
            ai_max_price_multiplier=self.AI_MAX_PRICE_MULTIPLIER,
            ai_bidder_names=self.AI_BIDDER_NAMES,
            ai_bid_check_interval=self.AI_BID_CHECK_INTERVAL,
            ai_bid_delay_min=self.AI_BID_DELAY_MIN,
            ai_bid_delay_max=self.AI_BID_DELAY_MAX,
            initial_balance=self.INITIAL_BALANCE,
            live_min_duration_minutes=self.LIVE_MIN_DURATION_MINUTES,
            live_max_duration_minutes=self.LIVE_MAX_DURATION_MINUTES,
            default_live_duration_minutes=self.DEFAULT_LIVE_DURATION_MINUTES,
            big_spender_threshold=self.BIG_SPENDER_THRESHOLD,
            collector_threshold=self.COLLECTOR_THRESHOLD,
            speed_bidder_window=self.SPEED_BIDDER_WINDOW,
        )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()

"""
Retries for storage calls

Repository and user-store calls to Redis go through ``call_with_retry``.
Transient errors are retried with exponential backoff; once the attempts
are used up the error surfaces as ``PersistenceFailure``. The engine
itself never retries.
"""
import random
import time
from typing import Any, Callable, Optional, Tuple, Type, TypeVar

from auction_engine.core.config import Settings
from auction_engine.core.exceptions import PersistenceFailure
from auction_engine.core.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class RetryConfig:
    """
    Backoff schedule for storage calls

    Attributes:
        max_retries: Retries after the first attempt
        initial_delay: Seconds before the first retry, doubled each time
        max_delay: Ceiling for a single wait
        jitter: Spread each wait by up to 30%
    """

    def __init__(
        self,
        max_retries: int = 3,
        initial_delay: float = 0.2,
        max_delay: float = 5.0,
        jitter: bool = True,
    ):
        self.max_retries = max_retries
        self.initial_delay = initial_delay
        self.max_delay = max_delay
        self.jitter = jitter

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryConfig":
        return cls(
            max_retries=settings.PERSISTENCE_MAX_RETRIES,
            initial_delay=settings.PERSISTENCE_RETRY_DELAY,
        )

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait after failed attempt ``attempt`` (0-indexed)"""
        delay = min(self.initial_delay * (2 ** attempt), self.max_delay)
        if self.jitter:
            delay += random.uniform(0, 0.3 * delay)
        return delay


def call_with_retry(
    operation: str,
    func: Callable[..., T],
    *args: Any,
    config: Optional[RetryConfig] = None,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    **kwargs: Any,
) -> T:
    """
    Run a storage call, retrying the listed errors

    Args:
        operation: Short name for logs and the failure, e.g. "save auctions"
        func: The call to make
        config: Backoff schedule
        retry_on: Errors worth retrying; anything else propagates at once

    Raises:
        PersistenceFailure: the last attempt still raised one of ``retry_on``
    """
    config = config or RetryConfig()
    attempt = 0

    while True:
        try:
            result = func(*args, **kwargs)
        except retry_on as e:
            if attempt >= config.max_retries:
                logger.error(
                    "Storage call failed, giving up",
                    operation=operation,
                    attempts=attempt + 1,
                    error=str(e),
                )
                raise PersistenceFailure(operation, e) from e

            delay = config.delay_for(attempt)
            logger.warning(
                "Storage call failed, retrying",
                operation=operation,
                attempt=attempt + 1,
                max_retries=config.max_retries,
                delay_seconds=round(delay, 3),
                error=str(e),
            )
            time.sleep(delay)
            attempt += 1
            continue

        if attempt:
            logger.info("Storage call recovered", operation=operation, retries=attempt)
        return result

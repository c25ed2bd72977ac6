"""
Structured logging with structlog

Modules log through ``get_logger(__name__)`` with key/value context
(auction_id, username, event_type). ``setup_logging`` runs once per app:
console output in development, one JSON object per line elsewhere.
"""
import logging
import sys
from typing import Any, List, Optional

import structlog

from auction_engine.core.config import Settings, get_settings


def _processors(settings: Settings) -> List[Any]:
    shared = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
    ]
    if settings.ENVIRONMENT == "development":
        return shared + [structlog.dev.ConsoleRenderer()]
    return shared + [structlog.processors.dict_tracebacks, structlog.processors.JSONRenderer()]


def setup_logging(settings: Optional[Settings] = None) -> None:
    settings = settings or get_settings()
    level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    structlog.configure(
        processors=_processors(settings),
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )

    # uvicorn and fastapi log through the stdlib
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def get_logger(name: str) -> Any:
    """Get a structured logger bound to ``name``"""
    return structlog.get_logger(name)

"""
Time sources

The engine never calls ``datetime.now()`` directly; it asks a clock so the
tick processor and tests agree on "now".
"""
import threading
from datetime import datetime, timedelta, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SystemClock:
    """Wall-clock time in UTC"""

    def now(self) -> datetime:
        return utcnow()


class ManualClock:
    """
    Clock that only moves when told to

    Usage:
        clock = ManualClock()
        engine.submit_bid(...)
        clock.advance(1)
        engine.tick()
    """

    def __init__(self, start: Optional[datetime] = None):
        self._now = start or datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
        self._lock = threading.Lock()

    def now(self) -> datetime:
        with self._lock:
            return self._now

    def advance(self, seconds: float) -> datetime:
        with self._lock:
            self._now = self._now + timedelta(seconds=seconds)
            return self._now

    def set(self, value: datetime) -> None:
        with self._lock:
            self._now = value


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes as UTC"""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)

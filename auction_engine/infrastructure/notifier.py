"""
Notification collaborator

``notify(message, severity)`` is fire-and-forget; the engine never looks
at whether it succeeded.
"""
from typing import Protocol

from auction_engine.core.logger import get_logger
from auction_engine.models import AuctionEvent, Severity

logger = get_logger(__name__)


class Notifier(Protocol):
    def notify(self, message: str, severity: Severity) -> None: ...


class LogNotifier:
    """Writes notifications to the structured log"""

    def notify(self, message: str, severity: Severity) -> None:
        if severity == Severity.ERROR:
            logger.error(message, channel="notification")
        elif severity == Severity.WARNING:
            logger.warning(message, channel="notification")
        else:
            logger.info(message, channel="notification", severity=severity.value)


class NotificationListener:
    """Forwards event messages to a notifier"""

    def __init__(self, notifier: Notifier):
        self.notifier = notifier

    def __call__(self, event: AuctionEvent) -> None:
        if event.message:
            self.notifier.notify(event.message, event.severity)

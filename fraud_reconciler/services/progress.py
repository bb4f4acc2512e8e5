"""In-process progress notifications."""

import logging
from collections.abc import Callable

logger = logging.getLogger(__name__)

ProgressSubscriber = Callable[[str], None]


class ProgressReporter:
    """Synchronous best-effort publish/subscribe channel for completion messages.

    With no subscribers attached, emitting is a no-op.
    """

    def __init__(self) -> None:
        self._subscribers: list[ProgressSubscriber] = []

    def subscribe(self, subscriber: ProgressSubscriber) -> Callable[[], None]:
        """Attach a subscriber; returns a callable that detaches it."""
        self._subscribers.append(subscriber)

        def unsubscribe() -> None:
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)

        return unsubscribe

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def emit(self, message: str) -> None:
        """Deliver a message to every subscriber. Subscriber errors are logged only."""
        for subscriber in list(self._subscribers):
            try:
                subscriber(message)
            except Exception:
                logger.exception("Progress subscriber failed", extra={"progress_message": message})


def log_progress(message: str) -> None:
    """Default subscriber: write progress messages to the log."""
    logger.info(f"Progress: {message}")

"""
In-process change notification.

Responsibility:
    Lets role inboxes refresh when a record is inserted, changes status or
    is removed.
    Stores publish a ``ChangeNotice`` after their transaction commits;
    subscribers receive every notice for the entity types they asked for.

Architecture position:
    Kernel > Services.  Stores hold an optional ``ChangeFeed``; presentation
    adapters subscribe to it.

Invariants enforced:
    - Notices are published only after commit, so a subscriber never sees a
      change that was rolled back.
    - A failing subscriber is logged and skipped; the writer and the other
      subscribers are unaffected.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from uuid import UUID

from siteflow_kernel.logging_config import get_logger

logger = get_logger("services.change_feed")


class ChangeEvent(str, Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


@dataclass(frozen=True)
class ChangeNotice:
    entity_type: str
    entity_id: UUID
    event: ChangeEvent
    status: str | None = None


Subscriber = Callable[[ChangeNotice], None]


@dataclass(frozen=True)
class Subscription:
    """Handle returned by ``ChangeFeed.subscribe``; pass it to ``unsubscribe``."""
    token: int
    entity_type: str | None


class ChangeFeed:
    """Thread-safe publish/subscribe hub."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._next_token = 0
        self._subscribers: dict[int, tuple[str | None, Subscriber]] = {}

    def subscribe(self, callback: Subscriber, entity_type: str | None = None) -> Subscription:
        """Register ``callback``; ``entity_type=None`` receives everything."""
        with self._lock:
            self._next_token += 1
            token = self._next_token
            self._subscribers[token] = (entity_type, callback)
        logger.debug(
            "change_feed_subscribed",
            extra={"token": token, "entity_type": entity_type},
        )
        return Subscription(token=token, entity_type=entity_type)

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            self._subscribers.pop(subscription.token, None)

    def publish(self, notice: ChangeNotice) -> int:
        """Deliver ``notice``; returns the number of subscribers that took it."""
        with self._lock:
            targets = [
                (token, callback)
                for token, (entity_type, callback) in self._subscribers.items()
                if entity_type is None or entity_type == notice.entity_type
            ]

        delivered = 0
        for token, callback in targets:
            try:
                callback(notice)
                delivered += 1
            except Exception:
                logger.error(
                    "change_feed_subscriber_failed",
                    exc_info=True,
                    extra={
                        "token": token,
                        "entity_type": notice.entity_type,
                        "entity_id": str(notice.entity_id),
                        "change_event": notice.event.value,
                    },
                )
        return delivered

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

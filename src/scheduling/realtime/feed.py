"""In-process change feed for the four watched collections.

The store publishes a :class:`ChangeEvent` after every committed write.
Subscribers must treat each event as a cue to reload the full state they
display -- events carry identifiers only, never the changed values, and no
ordering between collections is promised.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from enum import StrEnum

import structlog
from pydantic import BaseModel, ConfigDict

logger = structlog.get_logger()


class Collection(StrEnum):
    """Collections whose changes are published."""

    DELIVERIES = "deliveries"
    TIMELINE = "delivery_timeline"
    MESSAGES = "delivery_messages"
    NOTIFICATIONS = "notifications"


class Operation(StrEnum):
    """Kind of write that produced an event."""

    INSERT = "INSERT"
    UPDATE = "UPDATE"


class ChangeEvent(BaseModel):
    """A committed change to one record."""

    model_config = ConfigDict(frozen=True)

    collection: Collection
    operation: Operation
    record_id: str
    delivery_id: str | None = None
    user_id: str | None = None


Subscriber = Callable[[ChangeEvent], None]


class ChangeFeed:
    """Fan-out of change events to registered subscribers.

    A failing subscriber is logged and skipped; it never prevents delivery
    to the others nor propagates into the writer.
    """

    def __init__(self) -> None:
        self._subscribers: dict[int, tuple[frozenset[Collection] | None, Subscriber]] = {}
        self._next_token = 0
        self._lock = threading.Lock()

    def subscribe(
        self,
        callback: Subscriber,
        collections: set[Collection] | None = None,
    ) -> int:
        """Register *callback* for *collections* (all when ``None``).

        Returns:
            A token for :meth:`unsubscribe`.
        """
        with self._lock:
            token = self._next_token
            self._next_token += 1
            self._subscribers[token] = (
                frozenset(collections) if collections is not None else None,
                callback,
            )
        return token

    def unsubscribe(self, token: int) -> None:
        """Remove a subscription; unknown tokens are ignored."""
        with self._lock:
            self._subscribers.pop(token, None)

    def publish(self, event: ChangeEvent) -> None:
        """Deliver *event* to every subscriber interested in its collection."""
        with self._lock:
            targets = list(self._subscribers.values())
        for collections, callback in targets:
            if collections is not None and event.collection not in collections:
                continue
            try:
                callback(event)
            except Exception:
                logger.exception(
                    "change_subscriber_failed",
                    collection=event.collection.value,
                    record_id=event.record_id,
                )

"""
Change feed for realtime table notifications.

Supports an in-memory fan-out for tests/local runs and a Redis pub/sub
implementation for production so every API process sees every change.
"""

from __future__ import annotations

import json
import logging
import queue
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Iterable, Optional, Protocol

import redis
from redis import exceptions as redis_exceptions

from accountify.enums import ChangeType

logger = logging.getLogger(__name__)

PUBLISHED_HISTORY = 100


@dataclass
class ChangeEvent:
    """One row-level change on a table."""

    table: str
    type: ChangeType
    record: Optional[dict] = None
    old_record: Optional[dict] = None
    commit_timestamp: float = field(default_factory=lambda: time.time())

    def as_dict(self) -> dict:
        return {
            "table": self.table,
            "type": self.type.value,
            "record": self.record,
            "old_record": self.old_record,
            "commit_timestamp": self.commit_timestamp,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ChangeEvent":
        return cls(
            table=data["table"],
            type=ChangeType(data["type"]),
            record=data.get("record"),
            old_record=data.get("old_record"),
            commit_timestamp=data.get("commit_timestamp", time.time()),
        )


class Subscription(Protocol):
    def get(self, timeout: float | None = None) -> Optional[ChangeEvent]:
        ...

    def close(self) -> None:
        ...


class ChangeFeed(Protocol):
    """Minimal publish/subscribe interface for table changes."""

    def publish(self, event: ChangeEvent) -> None:
        ...

    def subscribe(self, tables: Iterable[str] | None = None) -> Subscription:
        ...


def _matches(tables: frozenset[str] | None, event: ChangeEvent) -> bool:
    return tables is None or event.table in tables


class InMemorySubscription:
    def __init__(self, feed: "InMemoryChangeFeed", tables: frozenset[str] | None):
        self._feed = feed
        self.tables = tables
        self.events: "queue.Queue[ChangeEvent]" = queue.Queue()

    def get(self, timeout: float | None = None) -> Optional[ChangeEvent]:
        try:
            return self.events.get(timeout=timeout)
        except queue.Empty:
            return None

    def close(self) -> None:
        self._feed._remove(self)


class InMemoryChangeFeed:
    """Fan-out of events to every subscriber in this process."""

    def __init__(self):
        self._lock = threading.Lock()
        self._subscriptions: list[InMemorySubscription] = []
        # Recent events only, for inspection in tests and local runs.
        self.published: "deque[ChangeEvent]" = deque(maxlen=PUBLISHED_HISTORY)

    def publish(self, event: ChangeEvent) -> None:
        with self._lock:
            self.published.append(event)
            targets = list(self._subscriptions)
        for subscription in targets:
            if _matches(subscription.tables, event):
                subscription.events.put(event)

    def subscribe(self, tables: Iterable[str] | None = None) -> InMemorySubscription:
        subscription = InMemorySubscription(
            self, frozenset(tables) if tables is not None else None
        )
        with self._lock:
            self._subscriptions.append(subscription)
        return subscription

    def _remove(self, subscription: InMemorySubscription) -> None:
        with self._lock:
            if subscription in self._subscriptions:
                self._subscriptions.remove(subscription)

    def reset(self) -> None:
        with self._lock:
            self._subscriptions.clear()
            self.published.clear()


class RedisSubscription:
    def __init__(self, client: redis.Redis, channel: str, tables: frozenset[str] | None):
        self.tables = tables
        self._client = client
        self._channel = channel
        self._pubsub = self._open()

    def _open(self):
        pubsub = self._client.pubsub(ignore_subscribe_messages=True)
        pubsub.subscribe(self._channel)
        return pubsub

    def _resubscribe(self) -> bool:
        self._pubsub.close()
        try:
            self._pubsub = self._open()
        except redis_exceptions.ConnectionError:
            logger.warning("Could not resubscribe to %s", self._channel)
            return False
        return True

    def get(self, timeout: float | None = None) -> Optional[ChangeEvent]:
        deadline = None if timeout is None else time.monotonic() + timeout
        resubscribed = False
        while True:
            remaining = 1.0 if deadline is None else deadline - time.monotonic()
            if remaining <= 0:
                return None
            try:
                message = self._pubsub.get_message(timeout=remaining)
            except redis_exceptions.ConnectionError:
                logger.warning("Realtime subscription lost its Redis connection")
                # Reconnect once per call; otherwise sit out the timeout.
                if not resubscribed and self._resubscribe():
                    resubscribed = True
                    continue
                if deadline is not None:
                    remaining = deadline - time.monotonic()
                time.sleep(max(0.0, remaining))
                return None
            if not message:
                continue
            try:
                event = ChangeEvent.from_dict(json.loads(message["data"]))
            except (ValueError, KeyError):
                logger.warning("Dropping malformed change event: %r", message["data"])
                continue
            if _matches(self.tables, event):
                return event

    def close(self) -> None:
        self._pubsub.close()


@dataclass
class RedisChangeFeed:
    """Redis-backed feed: JSON events on a single pub/sub channel."""

    url: str
    channel: str = "accountify:changes"

    def __post_init__(self):
        self.client = redis.Redis.from_url(self.url)

    def publish(self, event: ChangeEvent) -> None:
        payload = json.dumps(event.as_dict(), default=str)
        try:
            self.client.publish(self.channel, payload)
        except redis_exceptions.ConnectionError:
            # Connection resets can happen on managed Redis. Reconnect once and retry.
            self.client = redis.Redis.from_url(self.url)
            self.client.publish(self.channel, payload)

    def subscribe(self, tables: Iterable[str] | None = None) -> RedisSubscription:
        return RedisSubscription(
            self.client, self.channel, frozenset(tables) if tables is not None else None
        )


def publish_change(
    feed: ChangeFeed | None,
    table: str,
    change_type: ChangeType,
    record: dict | None = None,
    old_record: dict | None = None,
) -> None:
    """Publish a change after a committed write; feed outages are logged only."""
    if feed is None:
        return
    try:
        feed.publish(
            ChangeEvent(
                table=table, type=change_type, record=record, old_record=old_record
            )
        )
    except redis_exceptions.RedisError:
        logger.exception("Failed to publish %s change on %s", change_type.value, table)

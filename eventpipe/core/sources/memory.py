"""In-process sources used for embedding, demos and tests."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from typing import Any

from eventpipe.core.exceptions import SourceError
from eventpipe.core.sources.base import (
    ChangeFeedSource,
    ErrorCallback,
    PullSource,
    SnapshotCallback,
    Subscription,
)


class _MemorySubscription(Subscription):
    def __init__(
        self,
        feed: InMemoryChangeFeed,
        collection: str,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> None:
        self.feed = feed
        self.collection = collection
        self.on_snapshot = on_snapshot
        self.on_error = on_error
        self.active = True

    async def cancel(self) -> None:
        if self.active:
            self.active = False
            self.feed._remove(self)


class InMemoryChangeFeed(ChangeFeedSource):
    """Change feed whose snapshots are published by the caller."""

    name = "memory"

    def __init__(self, unavailable_collections: Iterable[str] = ()) -> None:
        self.unavailable_collections = set(unavailable_collections)
        self._subscriptions: dict[str, list[_MemorySubscription]] = defaultdict(list)

    async def subscribe(
        self,
        collection: str,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> Subscription:
        if collection in self.unavailable_collections:
            raise SourceError(f"Collection {collection} is unavailable", self.name, {"collection": collection})
        subscription = _MemorySubscription(self, collection, on_snapshot, on_error)
        self._subscriptions[collection].append(subscription)
        return subscription

    def subscriber_count(self, collection: str | None = None) -> int:
        if collection is not None:
            return len(self._subscriptions.get(collection, []))
        return sum(len(subs) for subs in self._subscriptions.values())

    async def publish(self, collection: str, snapshot: Any) -> None:
        """Deliver ``snapshot`` to every subscriber of ``collection``."""
        for subscription in list(self._subscriptions.get(collection, [])):
            await subscription.on_snapshot(collection, snapshot)

    async def fail(self, collection: str, error: Exception) -> None:
        """Report a delivery error to every subscriber of ``collection``."""
        for subscription in list(self._subscriptions.get(collection, [])):
            await subscription.on_error(collection, error)

    def _remove(self, subscription: _MemorySubscription) -> None:
        subscriptions = self._subscriptions.get(subscription.collection, [])
        if subscription in subscriptions:
            subscriptions.remove(subscription)


class StaticPullSource(PullSource):
    """Pull source returning a fixed row list, or raising a fixed error."""

    def __init__(
        self,
        name: str,
        rows: Iterable[dict[str, Any]] = (),
        *,
        collection: str | None = None,
        error: Exception | None = None,
    ) -> None:
        self.name = name
        self.collection = collection or name
        self.rows = [dict(row) for row in rows]
        self.error = error
        self.fetch_count = 0

    async def fetch(self) -> list[dict[str, Any]]:
        self.fetch_count += 1
        if self.error is not None:
            raise self.error
        return [dict(row) for row in self.rows]


__all__ = ["InMemoryChangeFeed", "StaticPullSource"]

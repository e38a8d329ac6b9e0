"""Narrow interfaces for the external systems feeding the pipeline."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import Any

SnapshotCallback = Callable[[str, Any], Awaitable[None]]
ErrorCallback = Callable[[str, Exception], Awaitable[None]]


class Subscription(ABC):
    """Handle returned by :meth:`ChangeFeedSource.subscribe`."""

    collection: str

    @abstractmethod
    async def cancel(self) -> None:
        """Stop delivering snapshots. Calling twice is harmless."""


class ChangeFeedSource(ABC):
    """Push source delivering full-collection snapshots on every change."""

    name = "change_feed"

    @abstractmethod
    async def subscribe(
        self,
        collection: str,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> Subscription:
        """Open a persistent subscription.

        Raises:
            SourceError: when the subscription cannot be established.
        """

    async def close(self) -> None:
        return None


class PullSource(ABC):
    """Source polled on a fixed interval."""

    name: str
    collection: str

    @abstractmethod
    async def fetch(self) -> list[dict[str, Any]]:
        """Return the current rows; each row may carry an ``id`` key.

        Raises:
            SourceError: when the source is unreachable or the payload is malformed.
        """

    async def close(self) -> None:
        return None


__all__ = ["ChangeFeedSource", "ErrorCallback", "PullSource", "SnapshotCallback", "Subscription"]

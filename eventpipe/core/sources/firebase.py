"""Realtime-Database change feed over the REST streaming API."""

from __future__ import annotations

import asyncio
import json
from typing import Any

import httpx
from eventpipe.core.exceptions import SourceError
from eventpipe.core.logging import bind
from eventpipe.core.sources.base import ChangeFeedSource, ErrorCallback, SnapshotCallback, Subscription

_CHANGE_EVENTS = {"put", "patch"}
_TERMINAL_EVENTS = {"cancel", "auth_revoked"}


def parse_sse_lines(lines: list[str]) -> tuple[str | None, Any]:
    """Parse one server-sent event block into ``(event, data)``."""

    event: str | None = None
    data_lines: list[str] = []
    for line in lines:
        if line.startswith("event:"):
            event = line[len("event:") :].strip()
        elif line.startswith("data:"):
            data_lines.append(line[len("data:") :].strip())
    raw = "\n".join(data_lines)
    if not raw:
        return event, None
    try:
        return event, json.loads(raw)
    except json.JSONDecodeError:
        return event, raw


class _StreamSubscription(Subscription):
    def __init__(self, collection: str, task: asyncio.Task[None]) -> None:
        self.collection = collection
        self._task = task

    async def cancel(self) -> None:
        if self._task.done():
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass


class FirebaseChangeFeed(ChangeFeedSource):
    """Streams ``put``/``patch`` notifications and re-reads the full collection on each one."""

    name = "firebase"

    def __init__(
        self,
        base_url: str,
        auth_token: str | None = None,
        *,
        client: httpx.AsyncClient | None = None,
        reconnect_delay: float = 5.0,
        timeout: float = 30.0,
    ) -> None:
        if not base_url:
            raise ValueError("base_url cannot be empty")
        self.base_url = base_url.rstrip("/")
        self.auth_token = auth_token
        self.reconnect_delay = reconnect_delay
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout, read=None))
        self._log = bind(source=self.name)

    def _url(self, collection: str) -> str:
        return f"{self.base_url}/{collection}.json"

    def _params(self, **extra: str) -> dict[str, str]:
        params = dict(extra)
        if self.auth_token:
            params["auth"] = self.auth_token
        return params

    async def fetch_snapshot(self, collection: str) -> Any:
        try:
            response = await self._client.get(self._url(collection), params=self._params())
            response.raise_for_status()
            return response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise SourceError(f"Failed to read collection {collection}: {exc}", self.name) from exc

    async def subscribe(
        self,
        collection: str,
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback,
    ) -> Subscription:
        try:
            response = await self._client.get(self._url(collection), params=self._params(shallow="true"))
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise SourceError(
                f"Cannot subscribe to {collection}: {exc}", self.name, {"collection": collection}
            ) from exc

        task = asyncio.create_task(
            self._stream(collection, on_snapshot, on_error), name=f"change-feed:{collection}"
        )
        return _StreamSubscription(collection, task)

    async def _stream(self, collection: str, on_snapshot: SnapshotCallback, on_error: ErrorCallback) -> None:
        while True:
            try:
                await self._consume(collection, on_snapshot)
            except asyncio.CancelledError:
                raise
            except SourceError as exc:
                await on_error(collection, exc)
                if exc.details.get("terminal"):
                    return
            except httpx.HTTPError as exc:
                await on_error(collection, SourceError(f"Stream for {collection} failed: {exc}", self.name))
            self._log.info("Reconnecting change feed", collection=collection)
            await asyncio.sleep(self.reconnect_delay)

    async def _consume(self, collection: str, on_snapshot: SnapshotCallback) -> None:
        headers = {"Accept": "text/event-stream"}
        async with self._client.stream(
            "GET", self._url(collection), params=self._params(), headers=headers
        ) as response:
            response.raise_for_status()
            block: list[str] = []
            async for line in response.aiter_lines():
                if line:
                    block.append(line)
                    continue
                if not block:
                    continue
                event, _ = parse_sse_lines(block)
                block = []
                if event in _CHANGE_EVENTS:
                    snapshot = await self.fetch_snapshot(collection)
                    await on_snapshot(collection, snapshot)
                elif event in _TERMINAL_EVENTS:
                    raise SourceError(
                        f"Stream for {collection} closed by server: {event}",
                        self.name,
                        {"collection": collection, "terminal": True},
                    )

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()


__all__ = ["FirebaseChangeFeed", "parse_sse_lines"]

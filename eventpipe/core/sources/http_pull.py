"""Pull sources fetched over HTTP."""

from __future__ import annotations

import io
from typing import Any

import httpx
import pandas as pd

from eventpipe.core.exceptions import SourceError
from eventpipe.core.logging import bind
from eventpipe.core.sources.base import PullSource


class _HttpPullSource(PullSource):
    def __init__(self, url: str, *, client: httpx.AsyncClient | None = None, timeout: float = 30.0) -> None:
        if not url:
            raise ValueError("url cannot be empty")
        self.url = url
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout), follow_redirects=True)

    async def _get(self) -> httpx.Response:
        try:
            response = await self._client.get(self.url)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise SourceError(f"Failed to fetch {self.url}: {exc}", self.name) from exc
        bind(source=self.name).debug("Fetched pull source", url=self.url, bytes=len(response.content))
        return response

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()


class SpreadsheetSource(_HttpPullSource):
    """Reads a spreadsheet's CSV export; each row becomes one record."""

    def __init__(
        self,
        url: str,
        *,
        collection: str = "registrations",
        id_column: str | None = None,
        name: str = "spreadsheet",
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(url, client=client)
        self.name = name
        self.collection = collection
        self.id_column = id_column

    async def fetch(self) -> list[dict[str, Any]]:
        response = await self._get()
        return self.parse_csv(response.text)

    def parse_csv(self, text: str) -> list[dict[str, Any]]:
        if not text.strip():
            return []
        try:
            frame = pd.read_csv(io.StringIO(text), dtype=str, keep_default_na=False)
        except (pd.errors.ParserError, pd.errors.EmptyDataError) as exc:
            raise SourceError(f"Malformed spreadsheet export: {exc}", self.name) from exc

        frame.columns = [str(column).strip() for column in frame.columns]
        rows: list[dict[str, Any]] = []
        for index, row in enumerate(frame.to_dict(orient="records")):
            cleaned = {key: (value.strip() or None) for key, value in row.items()}
            record_id = cleaned.get(self.id_column) if self.id_column else None
            cleaned["id"] = record_id or cleaned.get("id") or f"row_{index + 1}"
            rows.append(cleaned)
        return rows


class EmailLogSource(_HttpPullSource):
    """Reads outbound-email delivery records from a JSON endpoint."""

    def __init__(
        self,
        url: str,
        *,
        collection: str = "email_logs",
        name: str = "email_logs",
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(url, client=client)
        self.name = name
        self.collection = collection

    async def fetch(self) -> list[dict[str, Any]]:
        response = await self._get()
        try:
            payload = response.json()
        except ValueError as exc:
            raise SourceError(f"Email log payload is not JSON: {exc}", self.name) from exc

        if isinstance(payload, dict):
            payload = payload.get("logs")
        if not isinstance(payload, list):
            raise SourceError("Email log payload must be a list of records", self.name)
        return [dict(entry) for entry in payload if isinstance(entry, dict)]


__all__ = ["EmailLogSource", "SpreadsheetSource"]

"""Ingestion layer."""

from eventpipe.core.ingestion.service import DataIngestionService, normalize_snapshot

__all__ = ["DataIngestionService", "normalize_snapshot"]

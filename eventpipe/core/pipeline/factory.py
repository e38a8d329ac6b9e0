"""Construction of a pipeline from configuration."""

from __future__ import annotations

from eventpipe.core.config import PipelineConfig
from eventpipe.core.monitoring import MetricsCollector
from eventpipe.core.pipeline.orchestrator import PipelineOrchestrator
from eventpipe.core.sources import (
    ChangeFeedSource,
    EmailLogSource,
    FirebaseChangeFeed,
    PullSource,
    SpreadsheetSource,
)


def build_sources(config: PipelineConfig) -> tuple[ChangeFeedSource | None, PullSource | None, PullSource | None]:
    """Instantiate the configured sources; sources without a URL are left out."""

    sources = config.sources
    change_feed: ChangeFeedSource | None = None
    if sources.change_feed.enabled and sources.change_feed.base_url:
        change_feed = FirebaseChangeFeed(sources.change_feed.base_url, sources.change_feed.auth_token)

    spreadsheet: PullSource | None = None
    if sources.spreadsheet.enabled and sources.spreadsheet.url:
        spreadsheet = SpreadsheetSource(
            sources.spreadsheet.url,
            collection=sources.spreadsheet.collection,
            id_column=sources.spreadsheet.id_column,
        )

    email_logs: PullSource | None = None
    if sources.email_logs.enabled and sources.email_logs.url:
        email_logs = EmailLogSource(sources.email_logs.url)

    return change_feed, spreadsheet, email_logs


def build_pipeline(config: PipelineConfig, metrics: MetricsCollector | None = None) -> PipelineOrchestrator:
    change_feed, spreadsheet, email_logs = build_sources(config)
    return PipelineOrchestrator(
        config,
        change_feed=change_feed,
        spreadsheet=spreadsheet,
        email_logs=email_logs,
        metrics=metrics,
    )


__all__ = ["build_pipeline", "build_sources"]

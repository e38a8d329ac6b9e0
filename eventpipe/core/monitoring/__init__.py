"""Monitoring helpers."""

from eventpipe.core.monitoring.metrics import MetricsCollector

__all__ = ["MetricsCollector"]

"""Telemetry utilities for exporting traversal events and metrics."""

from .event_sink import EventSink, FileEventSink, NullEventSink, sink_from_settings
from .metrics import (
    configure_metrics,
    record_traversal_duration,
    record_entities_resolved,
    increment_fetch_failures,
    increment_questions_answered,
    shutdown_metrics,
    collect_prometheus_metrics,
)

__all__ = [
    "EventSink",
    "FileEventSink",
    "NullEventSink",
    "sink_from_settings",
    "configure_metrics",
    "record_traversal_duration",
    "record_entities_resolved",
    "increment_fetch_failures",
    "increment_questions_answered",
    "shutdown_metrics",
    "collect_prometheus_metrics",
]

"""OpenTelemetry metrics instrumentation helpers."""

from __future__ import annotations

import logging

from opentelemetry import metrics
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import ConsoleMetricExporter, PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource

from app.core.config import settings

_logger = logging.getLogger(__name__)

_metrics_enabled = False
_meter = None
_provider: MeterProvider | None = None
_traversal_duration_hist = None
_entities_resolved_counter = None
_fetch_failures_counter = None
_questions_answered_counter = None


def configure_metrics() -> None:
    """Initialise the metrics provider if enabled via settings."""

    global _metrics_enabled, _meter, _provider
    global _traversal_duration_hist, _entities_resolved_counter, _fetch_failures_counter, _questions_answered_counter

    if not settings.otel_enabled:
        return
    if _metrics_enabled:
        return

    exporter_name = settings.otel_exporter.lower().strip()
    metric_readers = []

    if exporter_name == "console":
        metric_readers.append(PeriodicExportingMetricReader(ConsoleMetricExporter()))
    elif exporter_name == "prometheus":
        try:
            from opentelemetry.exporter.prometheus import PrometheusMetricReader  # type: ignore
        except ImportError as exc:  # pragma: no cover - optional dependency
            raise RuntimeError(
                "Prometheus exporter selected but opentelemetry-exporter-prometheus is not installed."
            ) from exc
        metric_readers.append(PrometheusMetricReader())
    elif exporter_name == "otlp":
        try:
            from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter  # type: ignore
        except ImportError as exc:  # pragma: no cover - optional dependency
            raise RuntimeError(
                "OTLP exporter selected but opentelemetry-exporter-otlp is not installed."
            ) from exc
        endpoint = settings.otel_otlp_endpoint
        exporter = OTLPMetricExporter(endpoint=endpoint) if endpoint else OTLPMetricExporter()
        metric_readers.append(PeriodicExportingMetricReader(exporter))
    else:
        _logger.warning("Unsupported OTEL exporter '%s'; defaulting to console", exporter_name)
        metric_readers.append(PeriodicExportingMetricReader(ConsoleMetricExporter()))

    _provider = MeterProvider(metric_readers=metric_readers, resource=Resource.create({"service.name": "contextbot"}))
    metrics.set_meter_provider(_provider)
    _meter = metrics.get_meter("contextbot")
    _traversal_duration_hist = _meter.create_histogram(
        name="contextbot.traversal.duration",
        unit="s",
        description="Linked-context traversal duration in seconds",
    )
    _entities_resolved_counter = _meter.create_counter(
        name="contextbot.traversal.entities",
        unit="1",
        description="Issues and pull requests resolved across traversals",
    )
    _fetch_failures_counter = _meter.create_counter(
        name="contextbot.fetch.failures",
        unit="1",
        description="Failed source-control reads by kind",
    )
    _questions_answered_counter = _meter.create_counter(
        name="contextbot.questions.answered",
        unit="1",
        description="Questions answered and posted back",
    )
    _metrics_enabled = True


def record_traversal_duration(seconds: float) -> None:
    if _metrics_enabled and _traversal_duration_hist is not None:
        _traversal_duration_hist.record(max(seconds, 0.0))


def record_entities_resolved(count: int) -> None:
    if _metrics_enabled and _entities_resolved_counter is not None and count:
        _entities_resolved_counter.add(count)


def increment_fetch_failures(kind: str) -> None:
    if _metrics_enabled and _fetch_failures_counter is not None:
        _fetch_failures_counter.add(1, {"kind": kind})


def increment_questions_answered() -> None:
    if _metrics_enabled and _questions_answered_counter is not None:
        _questions_answered_counter.add(1)


def collect_prometheus_metrics() -> tuple[bytes, str]:
    """Render the default Prometheus registry for the ``/metrics`` route."""

    try:
        from prometheus_client import CONTENT_TYPE_LATEST, generate_latest  # type: ignore
    except ImportError as exc:  # pragma: no cover - optional dependency
        raise RuntimeError(
            "Prometheus exporter selected but opentelemetry-exporter-prometheus is not installed."
        ) from exc
    return generate_latest(), CONTENT_TYPE_LATEST


def shutdown_metrics() -> None:
    global _metrics_enabled, _provider
    if _metrics_enabled and _provider is not None:
        try:
            _provider.shutdown()
        except Exception:  # pragma: no cover - defensive
            _logger.exception("Failed to shutdown metrics provider")
        finally:
            _metrics_enabled = False
            _provider = None

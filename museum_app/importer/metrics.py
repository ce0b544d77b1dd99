"""Prometheus metrics helpers for the importer."""

from __future__ import annotations

from typing import Literal

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest

_records_counter = Counter(
    "importer_records_total",
    "Queue records processed by source and outcome.",
    ["source", "outcome"],
)
_record_duration = Histogram(
    "importer_record_duration_seconds",
    "Duration of a single record import in seconds.",
    buckets=(0.05, 0.1, 0.25, 0.5, 1, 2, 5, 10, 30),
)
_enrichment_counter = Counter(
    "importer_enrichment_calls_total",
    "Enrichment calls by provider, kind and outcome.",
    ["provider", "kind", "outcome"],
)
_adapter_requests = Counter(
    "importer_adapter_requests_total",
    "Outbound source adapter requests by provider and outcome.",
    ["provider", "outcome"],
)
_pin_requests = Counter(
    "importer_pin_requests_total",
    "Pinning requests by outcome.",
    ["outcome"],
)
_queue_depth = Gauge(
    "importer_queue_depth",
    "Number of artwork index rows by import status.",
    ["status"],
)


def record_import_outcome(
    *,
    source: str,
    outcome: Literal["imported", "failed", "skipped"],
    duration_seconds: float | None = None,
) -> None:
    """Capture metrics for a single record import."""

    _records_counter.labels(source=source or "unknown", outcome=outcome).inc()
    if duration_seconds is not None:
        _record_duration.observe(duration_seconds)


def record_enrichment_call(provider: str, kind: str, outcome: Literal["success", "empty", "failure"]) -> None:
    _enrichment_counter.labels(provider=provider, kind=kind, outcome=outcome).inc()


def record_adapter_request(provider: str, outcome: Literal["success", "rate_limited", "failure"]) -> None:
    _adapter_requests.labels(provider=provider, outcome=outcome).inc()


def record_pin_request(outcome: Literal["success", "failure"]) -> None:
    _pin_requests.labels(outcome=outcome).inc()


def record_queue_depth(counts: dict[str, int]) -> None:
    """Set the queue depth gauge from a per-status count mapping."""

    for status, count in counts.items():
        _queue_depth.labels(status=status).set(count)


def render_latest() -> tuple[bytes, str]:
    """Exposition payload and content type for the metrics endpoint."""

    return generate_latest(), CONTENT_TYPE_LATEST

"""Prometheus metrics instrumentation."""

from __future__ import annotations

from fastapi import Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

REGISTRY = CollectorRegistry()

PROXY_FETCHES = Counter(
    "olw_proxy_fetches_total",
    "Fetches issued through the proxy chain",
    labelnames=("outcome",),
    registry=REGISTRY,
)

DOWNLOADED_BYTES = Counter(
    "olw_downloaded_bytes_total",
    "Bytes buffered to disk by the downloader",
    registry=REGISTRY,
)

LEARN_CACHE_LOOKUPS = Counter(
    "olw_learn_cache_lookups_total",
    "Learn page and image cache lookups",
    labelnames=("cache", "result"),
    registry=REGISTRY,
)

SNIPPET_IMPORT_DURATION = Histogram(
    "olw_snippet_import_duration_seconds",
    "Duration of open-in-overleaf snippet imports",
    labelnames=("status",),
    registry=REGISTRY,
)


def metrics_response() -> Response:
    """Return Prometheus metrics as an HTTP response."""
    payload = generate_latest(REGISTRY)
    return Response(content=payload, media_type=CONTENT_TYPE_LATEST)


__all__ = [
    "REGISTRY",
    "PROXY_FETCHES",
    "DOWNLOADED_BYTES",
    "LEARN_CACHE_LOOKUPS",
    "SNIPPET_IMPORT_DURATION",
    "metrics_response",
]

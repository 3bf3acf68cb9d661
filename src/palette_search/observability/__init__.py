"""Observability module: structured logging, search correlation and metrics."""

from palette_search.observability.context import bind_search_context, get_search_context
from palette_search.observability.logging import JsonFormatter, configure_logging
from palette_search.observability.metrics import (
    CACHE_EVICTIONS,
    HISTORY_PERSISTENCE_ERRORS,
    INDEX_RECORD_COUNT,
    INDEX_SKIPPED_RECORDS,
    SEARCH_LATENCY,
    SEARCH_REQUESTS,
    get_metrics,
    init_metrics,
    track_latency,
)


__all__ = [
    "CACHE_EVICTIONS",
    "HISTORY_PERSISTENCE_ERRORS",
    "INDEX_RECORD_COUNT",
    "INDEX_SKIPPED_RECORDS",
    "SEARCH_LATENCY",
    "SEARCH_REQUESTS",
    "JsonFormatter",
    "bind_search_context",
    "configure_logging",
    "get_metrics",
    "get_search_context",
    "init_metrics",
    "track_latency",
]

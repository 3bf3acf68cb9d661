"""Prometheus metrics for the search engine, mirrored to OpenTelemetry instruments."""

from __future__ import annotations

from contextlib import contextmanager
import time
from typing import TYPE_CHECKING, Any

from opentelemetry import metrics as otel_metrics
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import MetricReader
from opentelemetry.sdk.resources import Resource
from prometheus_client import Counter, Gauge, Histogram, generate_latest


if TYPE_CHECKING:
    from collections.abc import Generator


_meter_holder: dict[str, Any] = {"meter": None, "provider": None}


def init_metrics(
    service_name: str = "palette-search",
    resource_attributes: dict[str, str] | None = None,
    metric_readers: list[MetricReader] | None = None,
) -> MeterProvider:
    """Initialize OpenTelemetry metrics (idempotent)."""
    provider = _meter_holder.get("provider")
    if isinstance(provider, MeterProvider):
        return provider

    attributes = {"service.name": service_name}
    if resource_attributes:
        attributes.update(resource_attributes)
    resource = Resource.create(attributes)
    provider = MeterProvider(resource=resource, metric_readers=metric_readers or [])
    otel_metrics.set_meter_provider(provider)
    _meter_holder["provider"] = provider
    _meter_holder["meter"] = provider.get_meter(__name__)
    return provider


def _get_meter():
    meter = _meter_holder.get("meter")
    if meter is None:
        init_metrics()
        meter = _meter_holder.get("meter")
    return meter


def _label_key(labels: dict[str, str]) -> tuple[tuple[str, str], ...]:
    return tuple(sorted(labels.items()))


class _BoundMetric:
    def __init__(self, wrapper: MetricBridge, labels: dict[str, str]) -> None:
        self._wrapper = wrapper
        self._labels = labels

    def inc(self, amount: float = 1.0) -> None:
        self._wrapper.inc(self._labels, amount)

    def observe(self, value: float) -> None:
        self._wrapper.observe(self._labels, value)

    def set(self, value: float) -> None:
        self._wrapper.set(self._labels, value)


class MetricBridge:
    """Bridge Prometheus metrics to OTel instruments created on first use."""

    def __init__(
        self,
        prom_metric: Counter | Histogram | Gauge,
        *,
        otel_name: str,
        otel_description: str,
        otel_kind: str,
    ) -> None:
        self._prom_metric = prom_metric
        self._otel_name = otel_name
        self._otel_description = otel_description
        self._otel_kind = otel_kind
        self._otel_instrument = None
        self._last_values: dict[tuple[tuple[str, str], ...], float] = {}

    def labels(self, **labels: str) -> _BoundMetric:
        return _BoundMetric(self, labels)

    def _prom(self, labels: dict[str, str]):
        # Label-less Prometheus metrics reject .labels()
        return self._prom_metric.labels(**labels) if labels else self._prom_metric

    def _ensure_otel_instrument(self):
        if self._otel_instrument is not None:
            return self._otel_instrument
        meter = _get_meter()
        if self._otel_kind == "counter":
            self._otel_instrument = meter.create_counter(self._otel_name, description=self._otel_description)
        elif self._otel_kind == "histogram":
            self._otel_instrument = meter.create_histogram(self._otel_name, description=self._otel_description)
        elif self._otel_kind == "gauge":
            self._otel_instrument = meter.create_up_down_counter(self._otel_name, description=self._otel_description)
        else:
            raise ValueError(f"Unknown metric kind: {self._otel_kind}")
        return self._otel_instrument

    def inc(self, labels: dict[str, str], amount: float) -> None:
        self._prom(labels).inc(amount)
        self._ensure_otel_instrument().add(amount, labels)

    def observe(self, labels: dict[str, str], value: float) -> None:
        self._prom(labels).observe(value)
        self._ensure_otel_instrument().record(value, labels)

    def set(self, labels: dict[str, str], value: float) -> None:
        self._prom(labels).set(value)
        otel = self._ensure_otel_instrument()
        key = _label_key(labels)
        delta = value - self._last_values.get(key, 0.0)
        if delta:
            otel.add(delta, labels)
        self._last_values[key] = value


_SEARCH_REQUESTS_PROM = Counter(
    "palette_search_requests_total",
    "Search requests by outcome",
    ["outcome"],
)

_SEARCH_LATENCY_PROM = Histogram(
    "palette_search_latency_seconds",
    "Search latency in seconds",
    ["cache"],
    buckets=(0.0005, 0.001, 0.0025, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25),
)

_CACHE_EVICTIONS_PROM = Counter(
    "palette_search_cache_evictions_total",
    "Result cache evictions",
    ["reason"],
)

_INDEX_RECORD_COUNT_PROM = Gauge(
    "palette_search_index_records",
    "Records in the active corpus",
)

_INDEX_SKIPPED_RECORDS_PROM = Counter(
    "palette_search_index_skipped_records_total",
    "Source records skipped while building the index",
)

_HISTORY_PERSISTENCE_ERRORS_PROM = Counter(
    "palette_search_history_persistence_errors_total",
    "Failed history load/save attempts",
    ["operation"],
)

SEARCH_REQUESTS = MetricBridge(
    _SEARCH_REQUESTS_PROM,
    otel_name="palette_search_requests_total",
    otel_description="Search requests by outcome",
    otel_kind="counter",
)

SEARCH_LATENCY = MetricBridge(
    _SEARCH_LATENCY_PROM,
    otel_name="palette_search_latency_seconds",
    otel_description="Search latency in seconds",
    otel_kind="histogram",
)

CACHE_EVICTIONS = MetricBridge(
    _CACHE_EVICTIONS_PROM,
    otel_name="palette_search_cache_evictions_total",
    otel_description="Result cache evictions",
    otel_kind="counter",
)

INDEX_RECORD_COUNT = MetricBridge(
    _INDEX_RECORD_COUNT_PROM,
    otel_name="palette_search_index_records",
    otel_description="Records in the active corpus",
    otel_kind="gauge",
)

INDEX_SKIPPED_RECORDS = MetricBridge(
    _INDEX_SKIPPED_RECORDS_PROM,
    otel_name="palette_search_index_skipped_records_total",
    otel_description="Source records skipped while building the index",
    otel_kind="counter",
)

HISTORY_PERSISTENCE_ERRORS = MetricBridge(
    _HISTORY_PERSISTENCE_ERRORS_PROM,
    otel_name="palette_search_history_persistence_errors_total",
    otel_description="Failed history load/save attempts",
    otel_kind="counter",
)


@contextmanager
def track_latency(histogram: MetricBridge, **labels: str) -> Generator[None, None, None]:
    """Context manager to track operation latency."""
    start = time.perf_counter()
    try:
        yield
    finally:
        histogram.labels(**labels).observe(time.perf_counter() - start)


def get_metrics() -> bytes:
    """Generate Prometheus metrics output."""
    return generate_latest()

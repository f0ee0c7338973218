"""Prometheus metrics for lease lifecycle management."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# Counters for lifecycle transitions
tokend_lease_events_total = Counter(
    "tokend_lease_events_total",
    "Lifecycle notifications emitted by lease managers",
    ["event"],
)

tokend_lease_initialize_failures_total = Counter(
    "tokend_lease_initialize_failures_total",
    "Failed initialize() attempts (caller retries)",
)

tokend_provider_soft_failures_total = Counter(
    "tokend_provider_soft_failures_total",
    "Transport errors absorbed by providers without failing the renewal",
    ["provider"],
)

# Gauges for current state
tokend_leases_ready = Gauge(
    "tokend_leases_ready",
    "Lease managers currently holding a valid value",
)

# Histograms for latency tracking
tokend_lease_renewal_seconds = Histogram(
    "tokend_lease_renewal_seconds",
    "Duration of provider renew() calls",
    ["outcome"],
    buckets=[0.05, 0.1, 0.5, 1, 5, 10, 30],
)


__all__ = [
    "tokend_lease_events_total",
    "tokend_lease_initialize_failures_total",
    "tokend_provider_soft_failures_total",
    "tokend_leases_ready",
    "tokend_lease_renewal_seconds",
]

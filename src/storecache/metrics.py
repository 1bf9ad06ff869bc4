"""Prometheus metrics for cache operations."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

# Counters
operations_total = Counter(
    "storecache_operations_total",
    "Cache operations by outcome",
    ["operation", "outcome"],  # hit | miss | ok | rejected | error
)
clients_created_total = Counter(
    "storecache_clients_created_total",
    "Store client handles built",
)

# Histograms
command_duration_seconds = Histogram(
    "storecache_command_duration_seconds",
    "Store round-trip duration per cache operation",
    ["operation"],
    buckets=(0.0005, 0.001, 0.0025, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 1.0),
)

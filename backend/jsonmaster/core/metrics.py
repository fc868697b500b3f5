"""Prometheus metrics exposed at /metrics."""

from __future__ import annotations

from prometheus_client import Counter

COMPARISONS_TOTAL = Counter(
    "jsonmaster_comparisons_total",
    "Comparisons started, by mode.",
    ["mode"],
)

COMPARISON_FAILURES_TOTAL = Counter(
    "jsonmaster_comparison_failures_total",
    "Comparisons rejected for invalid or missing input, by mode.",
    ["mode"],
)

"""Prometheus instruments for report intake."""

from __future__ import annotations

from prometheus_client import Counter

REPORTS_TOTAL = Counter(
    "takedown_reports_total",
    "Reports processed, by outcome (created, corroborated, repeated, rejected).",
    ["outcome"],
)

STORAGE_FAILURES_TOTAL = Counter(
    "takedown_storage_failures_total",
    "Account store operations that failed and were rolled back.",
    ["operation"],
)

"""In-process metrics counters and histograms."""

import time
from collections import defaultdict
from typing import Any

from backend.core.config import settings

# Global metrics storage
_metrics = defaultdict(lambda: {"count": 0, "sum": 0.0, "values": [], "buckets": defaultdict(int)})

_BUCKETS = ((1, "<1"), (10, "1-10"), (100, "10-100"), (1000, "100-1000"))


def _key(name: str, labels: dict[str, str] | None) -> str:
    if not labels:
        return name
    return name + "{" + ",".join(f"{k}={v}" for k, v in sorted(labels.items())) + "}"


def init_metrics() -> None:
    """Reset the in-process store (used at startup and by tests)."""
    _metrics.clear()


def increment_counter(name: str, labels: dict[str, str] | None = None, value: float = 1.0) -> None:
    """Increment a counter metric."""
    if not settings.enable_metrics:
        return
    _metrics[_key(name, labels)]["count"] += value


def record_histogram(name: str, value: float, labels: dict[str, str] | None = None) -> None:
    """Record a histogram measurement."""
    if not settings.enable_metrics:
        return

    metrics = _metrics[_key(name, labels)]
    metrics["count"] += 1
    metrics["sum"] += value
    metrics["values"].append(value)

    for bound, label in _BUCKETS:
        if value < bound:
            metrics["buckets"][label] += 1
            break
    else:
        metrics["buckets"][">=1000"] += 1


def observe_duration(start_time: float, operation: str) -> None:
    """Observe the duration of a compliance operation in milliseconds."""
    duration_ms = (time.perf_counter() - start_time) * 1000
    record_histogram("tax_compliance_duration_ms", duration_ms, {"operation": operation})


def increment_preflight(valid: bool) -> None:
    increment_counter("tax_preflight_total", {"result": "valid" if valid else "invalid"})


def increment_seal() -> None:
    increment_counter("tax_seal_total")


def increment_correction() -> None:
    increment_counter("tax_correction_total")


def increment_exchange(direction: str, format_name: str) -> None:
    increment_counter("einvoice_exchange_total", {"direction": direction, "format": format_name})


def increment_validation_failure(format_name: str) -> None:
    increment_counter("einvoice_validation_failures_total", {"format": format_name})


def get_metrics() -> dict[str, Any]:
    """Get current metrics snapshot."""
    if not settings.enable_metrics:
        return {"note": "metrics disabled"}

    result = {}
    for key, data in _metrics.items():
        metric_result = {"count": data["count"], "sum": data["sum"]}
        if data["values"]:
            values = data["values"]
            metric_result.update(
                {
                    "min": min(values),
                    "max": max(values),
                    "avg": data["sum"] / len(values),
                    "buckets": dict(data["buckets"]),
                }
            )
        result[key] = metric_result

    return result

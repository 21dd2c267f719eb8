"""
response_sdk.tier0_core.metrics
─────────────────────────────────
Counters and histograms with standard naming and labels. Exported via the
default Prometheus registry; mount or push it the way the host service does.

Minimal stack: prometheus-client
Configure via: RESPONSE_METRICS_ENABLED=true|false
"""
from __future__ import annotations

from typing import Any, Callable

from prometheus_client import Counter, Histogram

# Standard labels applied to every metric
_DEFAULT_LABELS = ["service", "env"]


def _default_label_values() -> dict[str, str]:
    from response_sdk.tier0_core.config import get_config
    cfg = get_config()
    return {"service": cfg.app_name, "env": cfg.environment}


def _enabled() -> bool:
    from response_sdk.tier0_core.config import get_config
    return get_config().metrics_enabled


class _NullMetric:
    """Stand-in returned while metrics are disabled."""

    def inc(self, amount: float = 1) -> None:
        return None

    def observe(self, amount: float) -> None:
        return None


_NULL = _NullMetric()


def counter(name: str, description: str, labels: list[str] | None = None) -> Callable[..., Any]:
    """
    Create a counter with the standard labels.

    Usage:
        render_failures = counter("response_render_failures_total", "Render failures", ["engine"])
        render_failures(engine="json").inc()
    """
    all_labels = _DEFAULT_LABELS + (labels or [])
    c = Counter(name, description, all_labels)

    def _counter(**extra_labels: str) -> Any:
        if not _enabled():
            return _NULL
        return c.labels(**_default_label_values(), **extra_labels)

    return _counter


def histogram(
    name: str,
    description: str,
    labels: list[str] | None = None,
    buckets: tuple = (0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
) -> Callable[..., Any]:
    """
    Create a histogram with the standard labels.

    Usage:
        request_duration = histogram("response_request_duration_seconds", "Request duration")
        request_duration(method="GET").observe(elapsed)
    """
    all_labels = _DEFAULT_LABELS + (labels or [])
    h = Histogram(name, description, all_labels, buckets=buckets)

    def _histogram(**extra_labels: str) -> Any:
        if not _enabled():
            return _NULL
        return h.labels(**_default_label_values(), **extra_labels)

    return _histogram


__all__ = ["counter", "histogram"]

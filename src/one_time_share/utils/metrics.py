from __future__ import annotations

import os
import time
from contextlib import contextmanager
from typing import Any, Iterator

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest

_REGISTRY = CollectorRegistry()
_COUNTERS: dict[str, Counter] = {}
_HISTS: dict[str, Histogram] = {}

# global switch: metrics can be turned off entirely (e.g. in unit tests)
_DISABLED = os.environ.get("METRICS_DISABLED", "0") == "1"


def reset_registry() -> None:
    """Reset the registry (tests)."""
    global _REGISTRY, _COUNTERS, _HISTS
    _REGISTRY = CollectorRegistry()
    _COUNTERS = {}
    _HISTS = {}


def _sanitize_name(name: str) -> str:
    """Prometheus compatibility: dots/dashes -> underscores."""
    return name.replace(".", "_").replace("-", "_")


# request and purge latencies are dominated by one sqlite transaction
_BUCKETS_SEC = (0.001, 0.0025, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5)


def _label_values(labels: dict[str, Any]) -> dict[str, str]:
    return {k: str(v) for k, v in labels.items()}


def _ensure_counter(name: str, label_names: tuple[str, ...]) -> Counter:
    if name not in _COUNTERS:
        _COUNTERS[name] = Counter(name, name, list(label_names), registry=_REGISTRY)
    return _COUNTERS[name]


def _ensure_hist(name: str, label_names: tuple[str, ...]) -> Histogram:
    if name not in _HISTS:
        _HISTS[name] = Histogram(name, name, list(label_names), buckets=_BUCKETS_SEC, registry=_REGISTRY)
    return _HISTS[name]


# -------------------- PUBLIC API --------------------


def inc(name: str, amount: float = 1.0, **labels: Any) -> None:
    """Counter +amount. Label names of a metric are fixed by its first use."""
    if _DISABLED or amount <= 0:
        return
    name = _sanitize_name(name)
    values = _label_values(labels)
    c = _ensure_counter(name, tuple(sorted(values)))
    (c.labels(**values) if values else c).inc(amount)


def observe(name: str, value_ms: float, **labels: Any) -> None:
    """Observe a duration in milliseconds (stored as seconds)."""
    if _DISABLED:
        return
    name = _sanitize_name(name)
    values = _label_values(labels)
    h = _ensure_hist(name, tuple(sorted(values)))
    (h.labels(**values) if values else h).observe(float(value_ms) / 1000.0)


def export_text() -> str:
    """For /metrics in FastAPI."""
    if _DISABLED:
        return ""
    return generate_latest(_REGISTRY).decode("utf-8")


@contextmanager
def timer(name: str, **labels: Any) -> Iterator[None]:
    """
    Sync context manager:
        with timer("http_request_latency_seconds", path="/save"):
            do_work()
    """
    t0 = time.perf_counter()
    try:
        yield
    finally:
        observe(name, (time.perf_counter() - t0) * 1000.0, **labels)

"""Minimal in-memory metrics collector.

Purpose:
    - Counters and latency samples for spotting misbehaving modules
      (a callback failing on every frame shows up as a runaway counter).
    - Zero external deps; snapshot is exposed via the admin API.

Core API:
    inc(name, labels=None, value=1)
    observe(name, value, labels=None)
    snapshot() -> dict (copy for safe reading)

Metric names in use:
    - config_violations_total{path,reason}
    - config_parse_errors_total
    - env_override_total{path}
    - hook_subscriptions_total{hook}
    - hook_subscribe_failures_total{hook}
    - hook_dispatch_total{hook}
    - hook_callback_errors_total{hook,module}
    - hook_dispatch_ms{hook}                       (histogram)
    - module_init_failures_total{module}
    - module_cleanup_failures_total{module}
    - module_world_failures_total{module}
"""
from __future__ import annotations

from threading import RLock
from time import time
from typing import Any, Dict, Tuple

_COUNTERS: Dict[Tuple[str, Tuple[Tuple[str, str], ...]], float] = {}
_HIST: Dict[Tuple[str, Tuple[Tuple[str, str], ...]], list] = {}
_LOCK = RLock()


def _norm_labels(labels: dict[str, Any] | None) -> Tuple[Tuple[str, str], ...]:
    if not labels:
        return tuple()
    return tuple(sorted((str(k), str(v)) for k, v in labels.items()))


def _key_str(name: str, labels: Tuple[Tuple[str, str], ...]) -> str:
    if not labels:
        return name
    return name + "{" + ",".join(f"{k}={v}" for k, v in labels) + "}"


def inc(
    name: str,
    labels: dict[str, Any] | None = None,
    value: float = 1.0,
) -> None:
    key = (name, _norm_labels(labels))
    with _LOCK:
        _COUNTERS[key] = _COUNTERS.get(key, 0.0) + value


def observe(
    name: str,
    value: float,
    labels: dict[str, Any] | None = None,
) -> None:
    key = (name, _norm_labels(labels))
    with _LOCK:
        _HIST.setdefault(key, []).append(value)


def get(name: str, labels: dict[str, Any] | None = None) -> float:
    """Current value of a single counter (0.0 when never incremented)."""
    with _LOCK:
        return _COUNTERS.get((name, _norm_labels(labels)), 0.0)


def snapshot() -> dict[str, Any]:
    with _LOCK:
        counters = {
            _key_str(name, labels): v
            for (name, labels), v in _COUNTERS.items()
        }
        hist = {}
        for (name, labels), vals in _HIST.items():
            if not vals:
                continue
            hist[_key_str(name, labels)] = {
                "count": len(vals),
                "min": min(vals),
                "max": max(vals),
                "p50": sorted(vals)[len(vals) // 2],
                "last": vals[-1],
            }
        return {
            "ts": time(),
            "counters": counters,
            "histograms": hist,
        }


def reset_for_tests() -> None:  # pragma: no cover
    with _LOCK:
        _COUNTERS.clear()
        _HIST.clear()


__all__ = [
    "inc",
    "observe",
    "get",
    "snapshot",
    "reset_for_tests",
]

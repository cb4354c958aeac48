"""In-process counters, gauges and duration summaries for the job pipelines."""

from __future__ import annotations

import math
import threading
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple


LabelKey = Tuple[Tuple[str, str], ...]
MetricKey = Tuple[str, LabelKey]


def _label_key(labels: Optional[Dict[str, Any]]) -> LabelKey:
    pairs = []
    for key, value in (labels or {}).items():
        if value is None:
            continue
        if isinstance(value, bool):
            value = "true" if value else "false"
        pairs.append((str(key), str(value)))
    return tuple(sorted(pairs))


def _render_labels(labels: LabelKey) -> str:
    if not labels:
        return ""
    rendered = ",".join(
        '{}="{}"'.format(key, value.replace("\\", "\\\\").replace('"', '\\"'))
        for key, value in labels
    )
    return "{" + rendered + "}"


class MetricsRegistry:
    """Thread-safe metric store exposed as a JSON snapshot or Prometheus-style text."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counters: Dict[MetricKey, float] = {}
        self._gauges: Dict[MetricKey, float] = {}
        self._histograms: Dict[MetricKey, Dict[str, float]] = {}

    def increment_counter(self, metric: str, labels: Optional[Dict[str, Any]] = None, value: float = 1) -> None:
        key = (metric, _label_key(labels))
        with self._lock:
            self._counters[key] = self._counters.get(key, 0) + value

    def set_gauge(self, metric: str, labels: Optional[Dict[str, Any]] = None, value: float = 0) -> None:
        key = (metric, _label_key(labels))
        with self._lock:
            self._gauges[key] = value

    def observe_duration(self, metric: str, milliseconds: float, labels: Optional[Dict[str, Any]] = None) -> None:
        key = (metric, _label_key(labels))
        with self._lock:
            entry = self._histograms.get(key)
            if entry is None:
                entry = {"count": 0, "sum": 0.0, "min": math.inf, "max": 0.0}
                self._histograms[key] = entry
            entry["count"] += 1
            entry["sum"] += milliseconds
            entry["min"] = min(entry["min"], milliseconds)
            entry["max"] = max(entry["max"], milliseconds)

    def counter_value(self, metric: str, labels: Optional[Dict[str, Any]] = None) -> float:
        with self._lock:
            return self._counters.get((metric, _label_key(labels)), 0)

    def gauge_value(self, metric: str, labels: Optional[Dict[str, Any]] = None) -> Optional[float]:
        with self._lock:
            return self._gauges.get((metric, _label_key(labels)))

    def histogram_count(self, metric: str, labels: Optional[Dict[str, Any]] = None) -> int:
        with self._lock:
            entry = self._histograms.get((metric, _label_key(labels)))
            return int(entry["count"]) if entry else 0

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            counters: List[Dict[str, Any]] = [
                {"metric": name, "labels": dict(labels), "value": value}
                for (name, labels), value in self._counters.items()
            ]
            gauges: List[Dict[str, Any]] = [
                {"metric": name, "labels": dict(labels), "value": value}
                for (name, labels), value in self._gauges.items()
            ]
            histograms: List[Dict[str, Any]] = [
                {
                    "metric": name,
                    "labels": dict(labels),
                    **entry,
                    "avg": entry["sum"] / entry["count"] if entry["count"] else 0,
                }
                for (name, labels), entry in self._histograms.items()
            ]
        return {
            "counters": counters,
            "gauges": gauges,
            "histograms": histograms,
            "collected_at": datetime.now(timezone.utc).isoformat(),
        }

    def to_prometheus_text(self) -> str:
        lines: List[str] = []
        with self._lock:
            for (name, labels), value in sorted(self._counters.items()):
                lines.append(f"{name}{_render_labels(labels)} {value}")
            for (name, labels), value in sorted(self._gauges.items()):
                lines.append(f"{name}{_render_labels(labels)} {value}")
            for (name, labels), entry in sorted(self._histograms.items()):
                rendered = _render_labels(labels)
                lines.append(f"{name}_count{rendered} {entry['count']}")
                lines.append(f"{name}_sum{rendered} {entry['sum']}")
                lines.append(f"{name}_min{rendered} {entry['min']}")
                lines.append(f"{name}_max{rendered} {entry['max']}")
        return "\n".join(lines) + ("\n" if lines else "")

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()
            self._gauges.clear()
            self._histograms.clear()


metrics = MetricsRegistry()

increment_counter = metrics.increment_counter
set_gauge = metrics.set_gauge
observe_duration = metrics.observe_duration

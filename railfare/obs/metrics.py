"""In-process counters and timing histograms.

Ingestion runs and the HTTP API share one process-wide registry; the
snapshot is served by ``GET /metrics``.
"""

from typing import Any, Dict, List, Optional, Tuple
import threading

LabelKey = Tuple[Tuple[str, str], ...]

# Day fetches include the settle delay, so the upper bins reach well past 10s
DEFAULT_BINS_MS: List[int] = [50, 200, 1000, 5000, 10000, 15000, 30000, 60000]


def _labels_key(labels: Optional[Dict[str, str]]) -> LabelKey:
    if not labels:
        return tuple()
    return tuple(sorted((str(k), str(v)) for k, v in labels.items()))


class _Histogram:
    def __init__(self, bins: List[int]):
        self.bins = list(bins)
        self.series: Dict[LabelKey, Dict[str, Any]] = {}

    def observe(self, labels: LabelKey, value_ms: float) -> None:
        entry = self.series.get(labels)
        if entry is None:
            entry = {"counts": [0] * (len(self.bins) + 1), "sum_ms": 0.0}
            self.series[labels] = entry
        idx = next((i for i, b in enumerate(self.bins) if value_ms <= b), len(self.bins))
        entry["counts"][idx] += 1
        entry["sum_ms"] += float(value_ms)


class MetricsRegistry:
    def __init__(self):
        self._lock = threading.Lock()
        self._counters: Dict[Tuple[str, LabelKey], int] = {}
        self._histograms: Dict[str, _Histogram] = {}

    def inc(self, name: str, labels: Optional[Dict[str, str]] = None, amount: int = 1) -> None:
        key = (name, _labels_key(labels))
        with self._lock:
            self._counters[key] = self._counters.get(key, 0) + amount

    def observe(self, name: str, value_ms: float, labels: Optional[Dict[str, str]] = None) -> None:
        with self._lock:
            hist = self._histograms.setdefault(name, _Histogram(DEFAULT_BINS_MS))
            hist.observe(_labels_key(labels), value_ms)

    def counter_value(self, name: str, labels: Optional[Dict[str, str]] = None) -> int:
        with self._lock:
            return self._counters.get((name, _labels_key(labels)), 0)

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            counters = [
                {"name": name, "labels": dict(lk), "value": value}
                for (name, lk), value in self._counters.items()
            ]
            histograms = [
                {
                    "name": name,
                    "labels": dict(lk),
                    "bins_ms": list(hist.bins),
                    "counts": list(entry["counts"]),
                    "sum_ms": entry["sum_ms"],
                }
                for name, hist in self._histograms.items()
                for lk, entry in hist.series.items()
            ]
        return {"counters": counters, "histograms": histograms}

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()
            self._histograms.clear()


REGISTRY = MetricsRegistry()


def inc_counter(metric: str, labels: Optional[Dict[str, str]] = None, amount: int = 1) -> None:
    REGISTRY.inc(metric, labels, amount)


def record_timing(metric: str, value_ms: float, labels: Optional[Dict[str, str]] = None) -> None:
    if value_ms is None:
        return
    REGISTRY.observe(metric, value_ms, labels)


def get_metrics_snapshot() -> Dict[str, Any]:
    return REGISTRY.snapshot()

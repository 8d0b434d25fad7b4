"""
Diagnostic counters for the positioning and routing pipeline.

Every observation that enters the engine either becomes a measurement or is
dropped under one of the reason codes in ``MetricsCollector.DROP_REASONS``.
Planner and fusion statistics are kept as bounded histograms.
"""

import logging
import threading
import time
from collections import defaultdict, deque
from dataclasses import dataclass
from typing import Deque, Dict, List, Optional

import numpy as np

logger = logging.getLogger(__name__)


class Histogram:
    """Most recent samples of one quantity (oldest samples fall off)."""

    def __init__(self, size: int):
        self._samples: Deque[float] = deque(maxlen=size)

    def add(self, value: float):
        self._samples.append(float(value))

    def values(self) -> List[float]:
        return list(self._samples)

    def stats(self) -> Optional[Dict[str, float]]:
        """count, min, max, mean, median and p95, or None when empty."""
        if not self._samples:
            return None
        data = np.asarray(self._samples)
        return {
            'count': int(data.size),
            'min': float(data.min()),
            'max': float(data.max()),
            'mean': float(data.mean()),
            'median': float(np.median(data)),
            'p95': float(np.percentile(data, 95)),
        }


@dataclass
class MetricsSnapshot:
    """Point-in-time copy of the collector."""

    timestamp: float
    counters: Dict[str, int]
    drop_reasons: Dict[str, int]
    histograms: Dict[str, List[float]]

    def total_dropped(self) -> int:
        return sum(self.drop_reasons.values())

    def drop_rate(self, observations: int) -> float:
        """Dropped observations as a percentage of ``observations``."""
        if observations <= 0:
            return 0.0
        return 100.0 * self.total_dropped() / observations

    def top_drop_reasons(self) -> List[str]:
        """Non-zero drop reasons, most frequent first."""
        active = [(count, reason) for reason, count in self.drop_reasons.items() if count > 0]
        return [reason for _, reason in sorted(active, key=lambda item: (-item[0], item[1]))]


class MetricsCollector:
    """
    Thread-safe counters, drop reasons and histograms.

    BLE callbacks, the service consumer thread and the route worker all
    report into one collector.

    Usage:
        metrics = MetricsCollector()
        metrics.increment('observations_in')
        metrics.increment_drop('unstable_device')
        metrics.record_histogram('fused_accuracy', 2.5)
        print(metrics.snapshot().top_drop_reasons())
    """

    DROP_REASONS = {
        'invalid_rssi': 'Signal strength of exactly zero (unknown distance)',
        'unstable_device': 'Public device not yet stable enough for fusion',
        'stale': 'Measurement older than the sliding window',
        'queue_full': 'Service inbox overflow',
        'unknown_access_point': 'WiFi access point without surveyed position',
        'scan_failed': 'Platform scan subsystem reported a failure',
        'after_stop': 'Observation arrived after scanning was stopped',
    }

    STANDARD_COUNTERS = (
        'observations_in',
        'observations_dropped',
        'measurements_accepted',
        'fusion_attempts',
        'insufficient_signals',
        'position_estimates',
        'wifi_fixes',
        'route_requests',
        'route_fallbacks',
        'routes_degraded',
    )

    def __init__(self, histogram_size: int = 5000):
        """
        Args:
            histogram_size: Samples kept per histogram
        """
        if histogram_size < 1:
            raise ValueError(f"histogram_size must be positive: {histogram_size}")
        self.histogram_size = histogram_size
        self._lock = threading.Lock()
        self._counters: Dict[str, int] = defaultdict(int)
        self._drop_reasons: Dict[str, int] = defaultdict(int)
        self._histograms: Dict[str, Histogram] = {}
        self._started_at = time.time()
        self._seed()

    def _seed(self):
        # Standard keys are always present, even at zero
        with self._lock:
            for name in self.STANDARD_COUNTERS:
                self._counters[name] += 0
            for reason in self.DROP_REASONS:
                self._drop_reasons[reason] += 0

    @property
    def uptime_s(self) -> float:
        return time.time() - self._started_at

    def increment(self, counter_name: str, value: int = 1):
        with self._lock:
            self._counters[counter_name] += value

    def increment_drop(self, reason: str, value: int = 1):
        """
        Count ``value`` dropped observations under ``reason``.

        Reasons outside DROP_REASONS are still counted, with a warning.
        """
        if reason not in self.DROP_REASONS:
            logger.warning(f"Unknown drop reason '{reason}'")
        with self._lock:
            self._drop_reasons[reason] += value
            self._counters['observations_dropped'] += value

    def get_counter(self, counter_name: str) -> int:
        with self._lock:
            return self._counters.get(counter_name, 0)

    def get_drop_count(self, reason: str) -> int:
        with self._lock:
            return self._drop_reasons.get(reason, 0)

    def record_histogram(self, histogram_name: str, value: float):
        with self._lock:
            histogram = self._histograms.get(histogram_name)
            if histogram is None:
                histogram = self._histograms[histogram_name] = Histogram(self.histogram_size)
            histogram.add(value)

    def get_histogram_stats(self, histogram_name: str) -> Optional[Dict[str, float]]:
        with self._lock:
            histogram = self._histograms.get(histogram_name)
            return histogram.stats() if histogram is not None else None

    def snapshot(self) -> MetricsSnapshot:
        with self._lock:
            return MetricsSnapshot(
                timestamp=time.time(),
                counters=dict(self._counters),
                drop_reasons=dict(self._drop_reasons),
                histograms={name: h.values() for name, h in self._histograms.items()},
            )

    def reset(self):
        """Zero everything in place; components keep their reference."""
        with self._lock:
            self._counters.clear()
            self._drop_reasons.clear()
            self._histograms.clear()
            self._started_at = time.time()
        self._seed()

    def summary_lines(self) -> List[str]:
        """Human-readable report of counters, drops and histograms."""
        snapshot = self.snapshot()
        lines = [f"METRICS SUMMARY (uptime: {self.uptime_s:.1f}s)"]
        lines.extend(
            f"  {name:28s} {value:8d}"
            for name, value in sorted(snapshot.counters.items())
        )

        dropped = snapshot.total_dropped()
        if dropped:
            lines.append(f"DROPS ({snapshot.drop_rate(snapshot.counters.get('observations_in', 0)):.1f}% of input)")
            for reason in snapshot.top_drop_reasons():
                count = snapshot.drop_reasons[reason]
                lines.append(f"  {reason:28s} {count:8d} ({100.0 * count / dropped:5.1f}%)")

        for name in sorted(snapshot.histograms):
            stats = self.get_histogram_stats(name)
            if stats:
                lines.append(
                    f"  {name}: n={stats['count']} mean={stats['mean']:.3f} "
                    f"p95={stats['p95']:.3f} max={stats['max']:.3f}"
                )
        return lines

    def log_summary(self):
        logger.info("\n".join(self.summary_lines()))

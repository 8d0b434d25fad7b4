"""
Position Fusion (Weighted Centroid).

Combines concurrent distance estimates into one 2D position:

    w_i = confidence_i / (d_i + eps)
    p   = sum(w_i * p_i) / sum(w_i)

The fused point always lies inside the convex hull of the contributing
source positions. Accuracy is a heuristic uncertainty radius derived from
how many surveyed sources contributed, how close and strong they are, and
how much their signal strengths disagree.

Also provides the sliding measurement window (one live entry per source)
and cross-modal merging of BLE and WiFi fixes.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple
import logging

import numpy as np

from inav_core.proto.position import Position, PositioningStatus
from inav_core.proto.radio import Measurement
from inav_core.metrics import get_metrics

logger = logging.getLogger(__name__)


@dataclass
class FusionConfig:
    """
    Configuration for position fusion.

    Attributes:
        window_s: Measurement lifetime in the sliding window (s)
        min_measurements: Usable measurements required for a fix
        min_distance: Distances at or below this are not usable
        epsilon: Weight denominator offset
        min_accuracy: Lower accuracy clamp (floor units)
        max_accuracy: Upper accuracy clamp (floor units)
        cross_modal_improvement: Divisor applied to the better accuracy when
            BLE and WiFi fixes agree
    """

    window_s: float = 15.0
    min_measurements: int = 3
    min_distance: float = 0.1
    epsilon: float = 0.1
    min_accuracy: float = 0.3
    max_accuracy: float = 12.0
    cross_modal_improvement: float = 1.5

    def __post_init__(self):
        """Validate configuration."""
        if self.window_s <= 0:
            raise ValueError(f"window_s must be positive: {self.window_s}")
        if self.min_measurements < 1:
            raise ValueError(f"min_measurements must be >= 1: {self.min_measurements}")
        if self.epsilon <= 0:
            raise ValueError(f"epsilon must be positive: {self.epsilon}")
        if not 0 <= self.min_accuracy <= self.max_accuracy:
            raise ValueError("Require 0 <= min_accuracy <= max_accuracy")
        if self.cross_modal_improvement < 1.0:
            raise ValueError("cross_modal_improvement must be >= 1.0")


@dataclass(frozen=True)
class WindowSnapshot:
    """
    Immutable view of the measurement window at one version.

    Attributes:
        measurements: Live measurements, oldest update first
        version: Window version the snapshot was taken at
    """

    measurements: Tuple[Measurement, ...]
    version: int

    def usable(self, min_distance: float = 0.1) -> List[Measurement]:
        """Measurements with a valid positive distance."""
        return [m for m in self.measurements if m.is_usable(min_distance)]

    def __len__(self) -> int:
        return len(self.measurements)


class MeasurementWindow:
    """
    Sliding window of measurements keyed by source identifier.

    Holds at most one live measurement per identifier; a newer measurement
    replaces the older one and moves to the end of the iteration order.
    Every mutation bumps the version so consumers can detect change.

    Not thread-safe: owned by a single engine.
    """

    def __init__(self, window_s: float = 15.0):
        self.window_s = window_s
        self._entries: Dict[str, Measurement] = {}
        self._version = 0

    @property
    def version(self) -> int:
        return self._version

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, identifier: str) -> bool:
        return identifier in self._entries

    def get(self, identifier: str) -> Optional[Measurement]:
        return self._entries.get(identifier)

    def upsert(self, measurement: Measurement) -> Optional[Measurement]:
        """
        Insert a measurement, replacing any entry for the same source.

        Returns:
            The replaced measurement, or None
        """
        previous = self._entries.pop(measurement.identifier, None)
        self._entries[measurement.identifier] = measurement
        self._version += 1
        return previous

    def evict(self, now: float) -> int:
        """
        Remove measurements older than the window.

        Returns:
            Number of evicted measurements
        """
        cutoff = now - self.window_s
        stale = [k for k, m in self._entries.items() if m.timestamp < cutoff]
        for key in stale:
            del self._entries[key]
        if stale:
            self._version += 1
        return len(stale)

    def clear(self):
        if self._entries:
            self._entries.clear()
            self._version += 1

    def snapshot(self) -> WindowSnapshot:
        """Take an immutable snapshot of the current contents."""
        return WindowSnapshot(measurements=tuple(self._entries.values()), version=self._version)


@dataclass(frozen=True)
class FusionResult:
    """
    Outcome of one fusion pass.

    Attributes:
        status: POSITIONED or INSUFFICIENT_SIGNALS
        position: Fused position (None unless POSITIONED)
        measurements_used: Measurements that contributed
        known_count: Surveyed sources among them
        public_count: Estimated-position sources among them
    """

    status: PositioningStatus
    position: Optional[Position] = None
    measurements_used: Tuple[Measurement, ...] = ()
    known_count: int = 0
    public_count: int = 0

    @property
    def has_position(self) -> bool:
        return self.status == PositioningStatus.POSITIONED and self.position is not None


def weighted_centroid(
    measurements: Sequence[Measurement],
    epsilon: float = 0.1,
) -> Tuple[float, float]:
    """
    Confidence/distance weighted centroid of source positions.

    Args:
        measurements: Measurements with valid distances
        epsilon: Weight denominator offset

    Returns:
        (x, y) of the weighted centroid
    """
    if not measurements:
        raise ValueError("Cannot compute centroid of no measurements")

    points = np.array([m.source.position.xy for m in measurements], dtype=float)
    distances = np.array([m.distance for m in measurements], dtype=float)
    confidences = np.array([m.source.confidence for m in measurements], dtype=float)

    weights = confidences / (distances + epsilon)
    total = weights.sum()
    if total <= 0:
        # All-zero confidences: fall back to the plain centroid
        x, y = points.mean(axis=0)
    else:
        x, y = (points * weights[:, None]).sum(axis=0) / total

    return float(x), float(y)


def _rssi_variance(measurements: Sequence[Measurement]) -> float:
    """Population variance of RSSI values."""
    return float(np.var([m.rssi for m in measurements])) if measurements else 0.0


def _mean_distance(measurements: Sequence[Measurement]) -> float:
    distances = [m.distance for m in measurements if m.distance is not None]
    return float(np.mean(distances)) if distances else float('inf')


def estimate_accuracy(
    measurements: Sequence[Measurement],
    config: Optional[FusionConfig] = None,
) -> float:
    """
    Heuristic uncertainty radius for a fused BLE position.

    With 3 or more surveyed sources only those are graded: close and strong
    anchors give a tight radius, RSSI variance widens it by up to 1 unit.
    Otherwise all measurements are graded on signal quality and count, with
    bonuses for many devices or a known/public mix and penalties for
    unstable signals.

    Args:
        measurements: Usable measurements that contributed to the fix
        config: Fusion configuration (for the clamp range)

    Returns:
        Accuracy radius in floor units, clamped to the configured range
    """
    config = config or FusionConfig()
    known = [m for m in measurements if m.source.is_known]
    known_count = len(known)
    public_count = len(measurements) - known_count

    if known_count >= 3:
        avg_distance = _mean_distance(known)
        avg_rssi = float(np.mean([m.rssi for m in known]))

        if avg_distance <= 2.0 and avg_rssi >= -50:
            base = 0.5
        elif avg_distance <= 5.0 and avg_rssi >= -60:
            base = 1.0
        elif avg_distance <= 10.0 and avg_rssi >= -70:
            base = 1.5
        elif known_count >= 4:
            base = 2.0
        else:
            base = 2.5

        variance_penalty = min(_rssi_variance(known) / 50.0, 1.0)
        accuracy = max(base + variance_penalty, config.min_accuracy)
    else:
        count = len(measurements)
        avg_distance = _mean_distance(measurements)
        avg_rssi = float(np.mean([m.rssi for m in measurements])) if measurements else -100.0
        variance = _rssi_variance(measurements)

        if avg_rssi >= -45 and avg_distance <= 3.0:
            base = 1.5
        elif avg_rssi >= -55 and avg_distance <= 5.0:
            base = 2.5
        elif avg_rssi >= -65 and avg_distance <= 8.0:
            base = 3.5
        elif avg_rssi >= -75 and avg_distance <= 12.0:
            base = 5.0
        elif count >= 6:
            base = 3.0
        elif count >= 5:
            base = 4.0
        elif count >= 4:
            base = 5.0
        elif count >= 3:
            base = 6.0
        else:
            base = 8.0

        if count >= 6:
            count_bonus = -1.5
        elif count >= 5:
            count_bonus = -1.0
        elif count >= 4:
            count_bonus = -0.5
        else:
            count_bonus = 0.0

        if variance > 200:
            stability_penalty = 2.0
        elif variance > 100:
            stability_penalty = 1.0
        elif variance > 50:
            stability_penalty = 0.5
        else:
            stability_penalty = 0.0

        mix_bonus = -1.0 if known_count > 0 and public_count > 0 else 0.0

        accuracy = float(np.clip(base + count_bonus + stability_penalty + mix_bonus, 0.8, 12.0))
        logger.debug(
            f"Accuracy: base={base}, devices={count} (bonus={count_bonus}), "
            f"variance={variance:.1f} (penalty={stability_penalty}), mix={mix_bonus}, "
            f"final={accuracy}"
        )

    return float(np.clip(accuracy, config.min_accuracy, config.max_accuracy))


def fuse_measurements(
    measurements: Sequence[Measurement],
    config: Optional[FusionConfig] = None,
) -> FusionResult:
    """
    Fuse a measurement set into a position.

    Pure function of its input: the same measurement set always yields the
    same position and accuracy.

    Args:
        measurements: Window contents (unusable entries are skipped)
        config: Fusion configuration

    Returns:
        FusionResult (INSUFFICIENT_SIGNALS with fewer than min_measurements
        usable measurements)

    Notes:
        - Floor is taken from the first usable measurement; cross-floor
          fusion is not attempted
        - Position timestamp is the newest contributing measurement time
    """
    config = config or FusionConfig()
    metrics = get_metrics()
    metrics.increment('fusion_attempts')

    usable = [m for m in measurements if m.is_usable(config.min_distance)]
    if len(usable) < config.min_measurements:
        metrics.increment('insufficient_signals')
        return FusionResult(
            status=PositioningStatus.INSUFFICIENT_SIGNALS,
            measurements_used=tuple(usable),
        )

    x, y = weighted_centroid(usable, config.epsilon)
    accuracy = estimate_accuracy(usable, config)
    known_count = sum(1 for m in usable if m.source.is_known)

    position = Position(
        x=x,
        y=y,
        floor=usable[0].source.position.floor,
        accuracy=accuracy,
        timestamp=max(m.timestamp for m in usable),
    )

    metrics.increment('position_estimates')
    metrics.record_histogram('fused_accuracy', accuracy)

    return FusionResult(
        status=PositioningStatus.POSITIONED,
        position=position,
        measurements_used=tuple(usable),
        known_count=known_count,
        public_count=len(usable) - known_count,
    )


def fuse_cross_modal(
    ble: Optional[Position],
    wifi: Optional[Position],
    config: Optional[FusionConfig] = None,
) -> Optional[Position]:
    """
    Merge a BLE fix and a WiFi fix.

    Coordinates are averaged, the floor comes from the BLE fix, and the
    better accuracy is divided by the improvement factor. A single
    available fix passes through unchanged.

    Args:
        ble: BLE-fused position, if any
        wifi: WiFi-fused position, if any
        config: Fusion configuration

    Returns:
        Merged position, or None if neither is available
    """
    if ble is None:
        return wifi
    if wifi is None:
        return ble

    config = config or FusionConfig()
    accuracy = min(ble.accuracy, wifi.accuracy) / config.cross_modal_improvement

    return Position(
        x=(ble.x + wifi.x) / 2.0,
        y=(ble.y + wifi.y) / 2.0,
        floor=ble.floor,
        accuracy=max(accuracy, config.min_accuracy),
        timestamp=max(ble.timestamp, wifi.timestamp),
    )

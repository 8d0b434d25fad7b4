"""
WiFi Positioning (Independent Fusion Pass).

Keeps a sliding window of access point measurements and fuses the known
(surveyed) access points with the same weighted centroid used for BLE.

- Known APs: confidence 1.0; distance via free-space path loss when the
  channel frequency is known, otherwise the log-distance model with the
  AP's own reference power
- Unknown BSSIDs are remembered as discovered APs (hash-derived placeholder
  position, confidence 0.2) for diagnostics only; they never contribute
- A fix needs at least 3 known APs with usable distances
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence
import logging

import numpy as np

from inav_core.proto.position import Position
from inav_core.proto.radio import (
    AccessPoint,
    Measurement,
    RadioModality,
    RadioObservation,
    RadioSource,
    SourceKind,
)
from inav_core.localization.distance_estimator import (
    estimate_distance,
    estimate_wifi_distance,
)
from inav_core.localization.device_classifier import hash_position
from inav_core.localization.position_fusion import (
    FusionConfig,
    MeasurementWindow,
    weighted_centroid,
)
from inav_core.metrics import get_metrics

logger = logging.getLogger(__name__)


@dataclass
class WiFiConfig:
    """
    Configuration for WiFi positioning.

    Attributes:
        min_known_access_points: Known APs required for a fix
        discovered_confidence: Confidence assigned to unknown APs
        floor_width: X extent for discovered AP placeholders
        floor_height: Y extent for discovered AP placeholders
        default_floor: Floor for discovered AP placeholders
    """

    min_known_access_points: int = 3
    discovered_confidence: float = 0.2
    floor_width: float = 1020.0
    floor_height: float = 765.0
    default_floor: int = 1

    def __post_init__(self):
        """Validate configuration."""
        if self.min_known_access_points < 1:
            raise ValueError("min_known_access_points must be >= 1")
        if not 0.0 <= self.discovered_confidence <= 1.0:
            raise ValueError(f"discovered_confidence must be in [0,1]: {self.discovered_confidence}")


def estimate_wifi_accuracy(
    measurements: Sequence[Measurement],
    config: Optional[FusionConfig] = None,
) -> float:
    """
    Heuristic uncertainty radius for a WiFi fix.

    Base of 2/3/5/8 units for >=5/4/3/fewer APs, plus RSSI variance / 100,
    at least 1 unit.
    """
    config = config or FusionConfig()
    count = len(measurements)

    if count >= 5:
        base = 2.0
    elif count == 4:
        base = 3.0
    elif count == 3:
        base = 5.0
    else:
        base = 8.0

    variance = float(np.var([m.rssi for m in measurements])) if measurements else 0.0
    accuracy = max(base + variance / 100.0, 1.0)
    return float(np.clip(accuracy, config.min_accuracy, config.max_accuracy))


class WiFiPositioning:
    """
    WiFi-only position estimator.

    Not thread-safe: owned by a single PositioningEngine.

    Usage:
        wifi = WiFiPositioning(access_points)
        position = wifi.handle_scan(observations, now)
    """

    def __init__(
        self,
        access_points: Iterable[AccessPoint] = (),
        config: Optional[WiFiConfig] = None,
        fusion_config: Optional[FusionConfig] = None,
    ):
        self.config = config or WiFiConfig()
        self.fusion_config = fusion_config or FusionConfig()
        self.metrics = get_metrics()

        self._known: Dict[str, AccessPoint] = {}
        self._discovered: Dict[str, RadioSource] = {}
        self._window = MeasurementWindow(self.fusion_config.window_s)
        self._last_position: Optional[Position] = None

        for ap in access_points:
            self.add_access_point(ap)

    def add_access_point(self, access_point: AccessPoint):
        """Register a surveyed access point."""
        bssid = access_point.bssid.upper()
        self._known[bssid] = access_point
        self._discovered.pop(bssid, None)

    def is_known(self, bssid: str) -> bool:
        return bssid.upper() in self._known

    @property
    def discovered_access_points(self) -> List[RadioSource]:
        """Unknown access points seen in this session."""
        return list(self._discovered.values())

    @property
    def last_position(self) -> Optional[Position]:
        """Most recent WiFi fix (may be older than the window)."""
        return self._last_position

    @property
    def measurements(self) -> List[Measurement]:
        """Known AP measurements currently in the window."""
        return list(self._window.snapshot().measurements)

    def handle_observation(self, observation: RadioObservation) -> Optional[Measurement]:
        """
        Record one WiFi observation.

        Returns:
            Measurement stored in the window, or None for unknown APs
        """
        if observation.modality != RadioModality.WIFI:
            raise ValueError(f"Not a WiFi observation: {observation.modality}")

        bssid = observation.identifier.upper()
        ap = self._known.get(bssid)

        if ap is None:
            if bssid not in self._discovered:
                self._discovered[bssid] = RadioSource(
                    identifier=bssid,
                    position=hash_position(
                        bssid,
                        self.config.floor_width,
                        self.config.floor_height,
                        self.config.default_floor,
                        observation.timestamp,
                    ),
                    kind=SourceKind.DISCOVERED_AP,
                    confidence=self.config.discovered_confidence,
                    name=observation.name,
                )
                logger.debug(f"Discovered access point {bssid} ({observation.name})")
            self.metrics.increment_drop('unknown_access_point')
            return None

        if observation.frequency_mhz:
            distance = estimate_wifi_distance(observation.rssi, observation.frequency_mhz)
        else:
            distance = estimate_distance(observation.rssi, ap.tx_power, ap.path_loss_exponent)

        source = RadioSource(
            identifier=bssid,
            position=ap.position,
            kind=SourceKind.ACCESS_POINT,
            tx_power=ap.tx_power,
            path_loss_exponent=ap.path_loss_exponent,
            confidence=1.0,
            name=ap.ssid or None,
        )
        measurement = Measurement(
            source=source,
            rssi=observation.rssi,
            timestamp=observation.timestamp,
            distance=distance,
        )
        self._window.upsert(measurement)
        return measurement

    def handle_scan(self, observations: Sequence[RadioObservation], now: float) -> Optional[Position]:
        """
        Record a full scan and recompute the WiFi fix.

        Args:
            observations: WiFi observations of one scan
            now: Scan time (for window eviction)

        Returns:
            New WiFi position, or None if fewer than the required known APs
        """
        for observation in observations:
            self.handle_observation(observation)

        self._window.evict(now)
        return self.recompute()

    def recompute(self) -> Optional[Position]:
        """Fuse the current window; updates last_position on success."""
        usable = self._window.snapshot().usable(self.fusion_config.min_distance)
        if len(usable) < self.config.min_known_access_points:
            logger.debug(f"WiFi fix needs {self.config.min_known_access_points} known APs, have {len(usable)}")
            return None

        x, y = weighted_centroid(usable, self.fusion_config.epsilon)
        position = Position(
            x=x,
            y=y,
            floor=usable[0].source.position.floor,
            accuracy=estimate_wifi_accuracy(usable, self.fusion_config),
            timestamp=max(m.timestamp for m in usable),
        )

        self._last_position = position
        self.metrics.increment('wifi_fixes')
        return position

    def reset(self):
        """Forget measurements and the last fix (known APs are kept)."""
        self._window.clear()
        self._last_position = None

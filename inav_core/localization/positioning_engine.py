"""
Positioning Engine.

Single owner of all positioning state: the BLE measurement window, public
device stability, anchor bindings and the WiFi estimator.

Pipeline per BLE observation:
1. Classify (anchor / stable public device / ignored)
2. Estimate distance with the source's path-loss model
3. Replace the source's window entry, evict stale entries
4. Fuse the window (>= 3 usable measurements) and merge with a fresh WiFi
   fix if one exists

The engine is not thread-safe. PositioningService serializes all calls onto
one consumer thread; tests and the replay CLI drive it directly.
"""

from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple
import logging

from inav_core.proto.position import Position, PositioningStatus
from inav_core.proto.radio import (
    AccessPoint,
    Anchor,
    Measurement,
    RadioModality,
    RadioObservation,
)
from inav_core.localization.distance_estimator import estimate_distance
from inav_core.localization.device_classifier import DeviceClassifier, StabilityConfig
from inav_core.localization.position_fusion import (
    FusionConfig,
    FusionResult,
    MeasurementWindow,
    fuse_cross_modal,
    fuse_measurements,
)
from inav_core.localization.wifi_positioning import WiFiConfig, WiFiPositioning
from inav_core.metrics import get_metrics

logger = logging.getLogger(__name__)


@dataclass
class PositioningConfig:
    """
    Configuration for the positioning engine.

    Attributes:
        fusion_config: Window and fusion parameters
        stability_config: Public device stability parameters
        wifi_config: WiFi positioning parameters
    """

    fusion_config: FusionConfig = None
    stability_config: StabilityConfig = None
    wifi_config: WiFiConfig = None


class PositioningEngine:
    """
    Fuse BLE and WiFi observations into the current position.

    Usage:
        engine = PositioningEngine(anchors, access_points)
        engine.start()

        for observation in observations:
            engine.handle_observation(observation)

        if engine.status == PositioningStatus.POSITIONED:
            print(engine.current_position)
    """

    def __init__(
        self,
        anchors: Iterable[Anchor] = (),
        access_points: Iterable[AccessPoint] = (),
        config: Optional[PositioningConfig] = None,
    ):
        """
        Initialize engine.

        Args:
            anchors: Surveyed BLE anchors
            access_points: Surveyed WiFi access points
            config: Engine configuration (uses defaults if None)
        """
        self.config = config or PositioningConfig()
        self.fusion_config = self.config.fusion_config or FusionConfig()
        self.metrics = get_metrics()

        self.classifier = DeviceClassifier(
            anchors, self.config.stability_config or StabilityConfig()
        )
        self.wifi = WiFiPositioning(
            access_points, self.config.wifi_config or WiFiConfig(), self.fusion_config
        )
        self._window = MeasurementWindow(self.fusion_config.window_s)

        self._status = PositioningStatus.IDLE
        self._now = 0.0
        self._ble_position: Optional[Position] = None
        self._current_position: Optional[Position] = None
        self._ble_contributing: Tuple[Measurement, ...] = ()
        self._wifi_contributing: Tuple[Measurement, ...] = ()
        self._last_result: Optional[FusionResult] = None

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def status(self) -> PositioningStatus:
        return self._status

    @property
    def current_position(self) -> Optional[Position]:
        """Latest published (cross-modal) position."""
        return self._current_position

    @property
    def ble_position(self) -> Optional[Position]:
        return self._ble_position

    @property
    def wifi_position(self) -> Optional[Position]:
        return self.wifi.last_position

    @property
    def contributing_measurements(self) -> Tuple[Measurement, ...]:
        """Measurements behind the current position, for diagnostics."""
        return self._ble_contributing + self._wifi_contributing

    @property
    def window_version(self) -> int:
        return self._window.version

    @property
    def last_result(self) -> Optional[FusionResult]:
        return self._last_result

    def window_measurements(self) -> List[Measurement]:
        """Live BLE window contents (usable or not)."""
        return list(self._window.snapshot().measurements)

    def add_anchor(self, anchor: Anchor):
        self.classifier.add_anchor(anchor)

    def add_access_point(self, access_point: AccessPoint):
        self.wifi.add_access_point(access_point)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self):
        """Enter SCANNING (keeps anchors and public device placements)."""
        self._status = PositioningStatus.SCANNING
        logger.info("Positioning engine scanning")

    def stop(self):
        """Return to IDLE and forget live measurements."""
        self._window.clear()
        self.wifi.reset()
        self._ble_position = None
        self._current_position = None
        self._ble_contributing = ()
        self._wifi_contributing = ()
        self._status = PositioningStatus.IDLE
        logger.info("Positioning engine idle")

    def report_error(self, reason: str):
        """Record a scan failure; status becomes ERROR until data resumes."""
        self.metrics.increment_drop('scan_failed')
        self._status = PositioningStatus.ERROR
        logger.warning(f"Scan failure: {reason}")

    # ------------------------------------------------------------------
    # Input
    # ------------------------------------------------------------------

    def handle_observation(self, observation: RadioObservation) -> Optional[FusionResult]:
        """
        Process one radio observation.

        WiFi observations are routed to the WiFi estimator as a one-record
        scan.

        Args:
            observation: Normalized observation

        Returns:
            FusionResult of the BLE pass, or None if the observation did not
            enter the BLE window
        """
        self.metrics.increment('observations_in')
        self._advance_clock(observation.timestamp)

        if observation.modality == RadioModality.WIFI:
            self.handle_wifi_scan([observation], observation.timestamp)
            return None

        source = self.classifier.classify(observation, self.window_measurements())
        if source is None:
            self._window.evict(self._now)
            return None

        distance = estimate_distance(
            observation.rssi, source.tx_power, source.path_loss_exponent
        )
        if distance is None:
            self.metrics.increment('invalid_readings')

        measurement = Measurement(
            source=source,
            rssi=observation.rssi,
            timestamp=observation.timestamp,
            distance=distance,
        )
        self._window.upsert(measurement)
        self.metrics.increment('measurements_accepted')

        evicted = self._window.evict(self._now)
        if evicted:
            self.metrics.increment_drop('stale', evicted)
        self.classifier.expire(self._now)

        return self._fuse()

    def handle_wifi_scan(
        self,
        observations: Sequence[RadioObservation],
        now: Optional[float] = None,
    ) -> Optional[Position]:
        """
        Process a WiFi scan and republish the merged position.

        Args:
            observations: WiFi observations of one scan
            now: Scan time (defaults to the newest observation time)

        Returns:
            New WiFi fix, or None
        """
        if now is None:
            now = max((o.timestamp for o in observations), default=self._now)
        self._advance_clock(now)

        wifi_position = self.wifi.handle_scan(observations, self._now)
        if wifi_position is None:
            return None

        self._wifi_contributing = tuple(
            m for m in self.wifi.measurements if m.is_usable(self.fusion_config.min_distance)
        )
        self._publish()
        return wifi_position

    def recompute(self, now: Optional[float] = None) -> FusionResult:
        """
        Evict stale measurements and fuse the window again.

        Args:
            now: Evaluation time (defaults to the engine clock)
        """
        if now is not None:
            self._advance_clock(now)
        self._window.evict(self._now)
        return self._fuse()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _advance_clock(self, timestamp: float):
        """Engine time never moves backwards."""
        self._now = max(self._now, timestamp)

    def _fresh_wifi_position(self) -> Optional[Position]:
        position = self.wifi.last_position
        if position is None:
            return None
        if self._now - position.timestamp > self.fusion_config.window_s:
            return None
        return position

    def _fresh_ble_position(self) -> Optional[Position]:
        position = self._ble_position
        if position is None:
            return None
        if self._now - position.timestamp > self.fusion_config.window_s:
            return None
        return position

    def _fuse(self) -> FusionResult:
        snapshot = self._window.snapshot()
        result = fuse_measurements(snapshot.measurements, self.fusion_config)
        self._last_result = result

        if result.has_position:
            self._ble_position = result.position
            self._ble_contributing = result.measurements_used
            self._publish()
            logger.debug(
                f"Fused position ({result.position.x:.1f}, {result.position.y:.1f}) "
                f"floor {result.position.floor} accuracy {result.position.accuracy:.2f} "
                f"from {result.known_count} known + {result.public_count} public"
            )
        elif self._fresh_wifi_position() is None:
            self._status = PositioningStatus.INSUFFICIENT_SIGNALS

        return result

    def _publish(self):
        merged = fuse_cross_modal(
            self._fresh_ble_position(), self._fresh_wifi_position(), self.fusion_config
        )
        if merged is None:
            return
        self._current_position = merged
        self._status = PositioningStatus.POSITIONED

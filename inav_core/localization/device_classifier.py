"""
Radio Source Classification.

Decides whether an observed BLE identifier is a surveyed anchor or a public
(unknown) device, and tracks short-term signal stability of public devices
to decide when they are trustworthy enough to use as positioning references.

Anchor resolution:
1. Device address already bound to an anchor
2. Broadcast identifier (UUID, optionally major/minor) matching an anchor
   whose device address is not yet bound. The binding is made in place and
   kept for the rest of the session.

Public devices:
- Each reading goes into a bounded window (10 readings, 30 s)
- Stable once >= 3 readings AND (variance < threshold OR >= 6 readings)
- On first becoming stable the device gets a fixed estimated position with
  confidence 0.3, either projected from the strongest anchor in the live
  window along a hash-derived bearing, or hash-derived from the identifier
  alone. Both placements are stable placeholders, not physical estimates.
"""

from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Dict, Iterable, List, Optional, Sequence, Tuple
import hashlib
import logging
import math

import numpy as np

from inav_core.proto.position import Position
from inav_core.proto.radio import (
    Anchor,
    Measurement,
    RadioObservation,
    RadioSource,
    SourceKind,
)
from inav_core.localization.distance_estimator import estimate_distance
from inav_core.metrics import get_metrics

logger = logging.getLogger(__name__)


@dataclass
class StabilityConfig:
    """
    Configuration for public device stability tracking and placement.

    Attributes:
        max_readings: Maximum readings kept per device
        max_reading_age_s: Readings older than this are dropped (s)
        min_readings: Readings required before a device can be stable
        variance_threshold: RSSI variance below which a device is stable (dBm^2)
        override_readings: Readings after which variance is ignored
        public_confidence: Confidence assigned to public devices
        default_tx_power: Reference power assumed for public devices (dBm)
        default_path_loss_exponent: Exponent assumed for public devices
        floor_width: X extent for hash-derived placement
        floor_height: Y extent for hash-derived placement
        default_floor: Floor for hash-derived placement
    """

    max_readings: int = 10
    max_reading_age_s: float = 30.0
    min_readings: int = 3
    variance_threshold: float = 150.0
    override_readings: int = 6
    public_confidence: float = 0.3
    default_tx_power: int = -59
    default_path_loss_exponent: float = 2.0
    floor_width: float = 1020.0
    floor_height: float = 765.0
    default_floor: int = 1

    def __post_init__(self):
        """Validate configuration."""
        if self.min_readings < 1:
            raise ValueError(f"min_readings must be >= 1: {self.min_readings}")
        if self.max_readings < self.min_readings:
            raise ValueError("max_readings must be >= min_readings")
        if self.override_readings < self.min_readings:
            raise ValueError("override_readings must be >= min_readings")
        if not 0.0 < self.public_confidence < 1.0:
            raise ValueError(f"public_confidence must be in (0,1): {self.public_confidence}")


@dataclass
class DeviceStability:
    """
    Short-term signal history of one public device.

    Attributes:
        identifier: Device address
        readings: Bounded (timestamp, rssi) history, oldest first
        last_seen_at: Time of the most recent reading
    """

    identifier: str
    readings: Deque[Tuple[float, int]] = field(default_factory=deque)
    last_seen_at: float = 0.0

    def add_reading(self, rssi: int, timestamp: float, max_readings: int, max_age_s: float):
        """Append a reading and drop readings beyond the count/age bounds."""
        self.readings.append((timestamp, rssi))
        self.last_seen_at = max(self.last_seen_at, timestamp)

        while len(self.readings) > max_readings:
            self.readings.popleft()

        cutoff = self.last_seen_at - max_age_s
        while self.readings and self.readings[0][0] < cutoff:
            self.readings.popleft()

    @property
    def count(self) -> int:
        """Number of readings currently held."""
        return len(self.readings)

    def rssi_variance(self) -> float:
        """Population variance of held RSSI readings (0 with < 2 readings)."""
        if self.count < 2:
            return 0.0
        return float(np.var([rssi for _, rssi in self.readings]))

    def is_stable(self, config: StabilityConfig) -> bool:
        """Check eligibility as a positioning source."""
        if self.count < config.min_readings:
            return False
        if self.count >= config.override_readings:
            return True
        return self.rssi_variance() < config.variance_threshold


@dataclass(frozen=True)
class PublicDevice:
    """Public device with its session-fixed estimated position."""

    identifier: str
    position: Position
    confidence: float
    first_stable_at: float
    name: Optional[str] = None


def stable_hash(identifier: str) -> int:
    """
    Deterministic 32-bit hash of an identifier.

    Python's built-in hash() is salted per process, so a digest is used to
    keep placements identical across sessions.
    """
    return int(hashlib.sha256(identifier.encode("utf-8")).hexdigest()[:8], 16)


def hash_bearing(identifier: str) -> float:
    """Deterministic bearing in radians derived from an identifier."""
    return math.radians(stable_hash(identifier) % 360)


def hash_position(
    identifier: str,
    width: float,
    height: float,
    floor: int,
    timestamp: float = 0.0,
) -> Position:
    """
    Deterministic pseudo-position derived purely from an identifier.

    The low two bytes of the hash are scaled into [0, width] x [0, height].
    """
    h = stable_hash(identifier)
    x = (h & 0xFF) / 255.0 * width
    y = ((h >> 8) & 0xFF) / 255.0 * height
    return Position(x=x, y=y, floor=floor, timestamp=timestamp)


def project_from_reference(
    reference: Position,
    distance: float,
    identifier: str,
    timestamp: float = 0.0,
) -> Position:
    """
    Place a device at distance from a reference along a hash-derived bearing.

    Args:
        reference: Reference (anchor) position
        distance: Distance from the reference
        identifier: Device identifier driving the bearing
        timestamp: Timestamp for the resulting position

    Returns:
        Position on the reference's floor
    """
    bearing = hash_bearing(identifier)
    return Position(
        x=reference.x + distance * math.cos(bearing),
        y=reference.y + distance * math.sin(bearing),
        floor=reference.floor,
        timestamp=timestamp,
    )


class DeviceClassifier:
    """
    Resolve observations to anchors or stable public devices.

    Not thread-safe: owned by a single PositioningEngine.

    Usage:
        classifier = DeviceClassifier(anchors)

        source = classifier.classify(observation, window_measurements)
        if source is None:
            # Unstable public device, excluded from fusion
            ...
    """

    def __init__(
        self,
        anchors: Iterable[Anchor] = (),
        config: Optional[StabilityConfig] = None,
    ):
        """
        Initialize classifier.

        Args:
            anchors: Surveyed anchors from the data provider
            config: Stability configuration (uses defaults if None)
        """
        self.config = config or StabilityConfig()
        self.metrics = get_metrics()

        self._anchors: Dict[str, Anchor] = {}
        self._anchors_by_address: Dict[str, Anchor] = {}
        self._stability: Dict[str, DeviceStability] = {}
        self._public_devices: Dict[str, PublicDevice] = {}

        for anchor in anchors:
            self.add_anchor(anchor)

    def add_anchor(self, anchor: Anchor):
        """Register a surveyed anchor (replaces one with the same id)."""
        previous = self._anchors.get(anchor.anchor_id)
        if previous is not None and previous.device_address:
            self._anchors_by_address.pop(previous.device_address.upper(), None)

        self._anchors[anchor.anchor_id] = anchor
        if anchor.device_address:
            anchor.device_address = anchor.device_address.upper()
            self._anchors_by_address[anchor.device_address] = anchor
        logger.debug(f"Registered anchor {anchor.anchor_id} (address={anchor.device_address})")

    @property
    def anchors(self) -> List[Anchor]:
        """All registered anchors."""
        return list(self._anchors.values())

    @property
    def public_devices(self) -> Dict[str, PublicDevice]:
        """Public devices that have become stable in this session."""
        return dict(self._public_devices)

    def is_anchor(self, identifier: str) -> bool:
        """True if identifier is the bound address of an anchor."""
        return identifier.upper() in self._anchors_by_address

    def stability_for(self, identifier: str) -> Optional[DeviceStability]:
        """Stability history of a public device, if tracked."""
        return self._stability.get(identifier.upper())

    def resolve_anchor(self, observation: RadioObservation) -> Optional[Anchor]:
        """
        Resolve an observation to an anchor, binding addresses on correlation.

        Args:
            observation: BLE observation

        Returns:
            Matching anchor, or None
        """
        address = observation.identifier.upper()

        anchor = self._anchors_by_address.get(address)
        if anchor is not None:
            return anchor

        for candidate in self._anchors.values():
            if candidate.is_bound:
                continue
            if candidate.matches_broadcast(observation):
                candidate.device_address = address
                self._anchors_by_address[address] = candidate
                self.metrics.increment('anchors_bound')
                logger.info(
                    f"Bound anchor {candidate.anchor_id} to device address {address} "
                    f"via broadcast id {observation.broadcast_id}"
                )
                return candidate

        return None

    def classify(
        self,
        observation: RadioObservation,
        live_measurements: Sequence[Measurement] = (),
    ) -> Optional[RadioSource]:
        """
        Classify an observation into a usable radio source.

        Args:
            observation: BLE observation
            live_measurements: Current fusion window (for public placement)

        Returns:
            RadioSource for anchors and stable public devices, None for
            devices that are not (yet) eligible
        """
        anchor = self.resolve_anchor(observation)
        if anchor is not None:
            return RadioSource(
                identifier=anchor.device_address,
                position=anchor.position,
                kind=SourceKind.ANCHOR,
                tx_power=anchor.tx_power,
                path_loss_exponent=anchor.path_loss_exponent,
                confidence=1.0,
                name=anchor.name or anchor.anchor_id,
            )

        if observation.rssi == 0:
            self.metrics.increment_drop('invalid_rssi')
            return None

        identifier = observation.identifier.upper()
        stability = self._stability.get(identifier)
        if stability is None:
            stability = DeviceStability(identifier=identifier)
            self._stability[identifier] = stability

        stability.add_reading(
            observation.rssi,
            observation.timestamp,
            self.config.max_readings,
            self.config.max_reading_age_s,
        )

        if not stability.is_stable(self.config):
            self.metrics.increment_drop('unstable_device')
            return None

        device = self._public_devices.get(identifier)
        if device is None:
            device = self._create_public_device(observation, live_measurements)
            self._public_devices[identifier] = device

        return RadioSource(
            identifier=identifier,
            position=device.position,
            kind=SourceKind.PUBLIC_DEVICE,
            tx_power=self.config.default_tx_power,
            path_loss_exponent=self.config.default_path_loss_exponent,
            confidence=device.confidence,
            name=device.name,
        )

    def expire(self, now: float) -> int:
        """
        Drop stability histories not seen within the reading age.

        Public device placements are kept for the session.

        Returns:
            Number of histories dropped
        """
        cutoff = now - self.config.max_reading_age_s
        stale = [i for i, s in self._stability.items() if s.last_seen_at < cutoff]
        for identifier in stale:
            del self._stability[identifier]
        return len(stale)

    def _create_public_device(
        self,
        observation: RadioObservation,
        live_measurements: Sequence[Measurement],
    ) -> PublicDevice:
        """Assign a fixed estimated position to a newly stable device."""
        identifier = observation.identifier.upper()
        position = None

        anchor_measurements = [
            m for m in live_measurements
            if m.source.kind == SourceKind.ANCHOR and m.is_usable()
        ]
        if anchor_measurements:
            strongest = max(anchor_measurements, key=lambda m: m.rssi)
            distance = estimate_distance(
                observation.rssi,
                self.config.default_tx_power,
                self.config.default_path_loss_exponent,
            )
            if distance is not None:
                position = project_from_reference(
                    strongest.source.position, distance, identifier, observation.timestamp
                )
                logger.debug(
                    f"Placed public device {identifier} {distance:.1f} units from "
                    f"anchor {strongest.source.name}"
                )

        if position is None:
            position = hash_position(
                identifier,
                self.config.floor_width,
                self.config.floor_height,
                self.config.default_floor,
                observation.timestamp,
            )
            logger.debug(f"Placed public device {identifier} by identifier hash")

        self.metrics.increment('public_devices_admitted')
        return PublicDevice(
            identifier=identifier,
            position=position,
            confidence=self.config.public_confidence,
            first_stable_at=observation.timestamp,
            name=observation.name,
        )

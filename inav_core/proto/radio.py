"""
Radio Observation and Measurement Schemas.

Defines the uniform shape every BLE advertisement and WiFi scan record is
normalized into, the surveyed radio sources supplied by the data provider
(anchors and access points), and the ephemeral measurements held in the
fusion window.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .position import Position


class RadioModality(Enum):
    """Radio technology an observation came from."""

    BLE = "ble"
    WIFI = "wifi"


class SourceKind(Enum):
    """Classification of a radio source."""

    ANCHOR = "anchor"                    # Surveyed BLE beacon
    PUBLIC_DEVICE = "public_device"      # Unrecognized BLE device, estimated position
    ACCESS_POINT = "access_point"        # Surveyed WiFi access point
    DISCOVERED_AP = "discovered_ap"      # Unrecognized WiFi access point


@dataclass(frozen=True)
class RadioObservation:
    """
    One normalized radio observation.

    Attributes:
        identifier: Device address (BLE MAC) or BSSID
        rssi: Signal strength in dBm (negative; 0 means invalid reading)
        timestamp: Time the observation was received (seconds)
        modality: BLE or WIFI
        frequency_mhz: Channel frequency for WiFi, if known
        broadcast_id: Secondary broadcast identifier (iBeacon/service UUID)
        major: iBeacon major, if advertised
        minor: iBeacon minor, if advertised
        name: Advertised device name or SSID
    """

    identifier: str
    rssi: int
    timestamp: float
    modality: RadioModality = RadioModality.BLE
    frequency_mhz: Optional[int] = None
    broadcast_id: Optional[str] = None
    major: Optional[int] = None
    minor: Optional[int] = None
    name: Optional[str] = None

    def __post_init__(self):
        """Validate observation."""
        if not self.identifier:
            raise ValueError("Observation identifier cannot be empty")


@dataclass
class Anchor:
    """
    Surveyed BLE beacon supplied by the data provider.

    Attributes:
        anchor_id: Stable anchor identifier
        position: Surveyed position
        device_address: Bound device address, None until correlated
        broadcast_id: Broadcast UUID used to correlate an unbound anchor
        major: iBeacon major required for correlation (optional)
        minor: iBeacon minor required for correlation (optional)
        tx_power: Reference signal strength at 1 unit distance (dBm)
        path_loss_exponent: Log-distance path-loss exponent
        name: Human-readable name

    Notes:
        - device_address is bound in place the first time the anchor is
          correlated through its broadcast identifier, and not re-derived
          for the rest of the session
    """

    anchor_id: str
    position: Position
    device_address: Optional[str] = None
    broadcast_id: Optional[str] = None
    major: Optional[int] = None
    minor: Optional[int] = None
    tx_power: int = -59
    path_loss_exponent: float = 2.0
    name: Optional[str] = None

    def __post_init__(self):
        """Validate anchor."""
        if self.path_loss_exponent <= 0:
            raise ValueError(
                f"Path-loss exponent must be positive: {self.path_loss_exponent}"
            )

    @property
    def is_bound(self) -> bool:
        """True once a device address is known for this anchor."""
        return self.device_address is not None

    def matches_broadcast(self, observation: RadioObservation) -> bool:
        """
        Check whether an observation's broadcast identity belongs to this anchor.

        UUIDs compare case-insensitively; major/minor only participate when
        the anchor declares them.
        """
        if self.broadcast_id is None or observation.broadcast_id is None:
            return False
        if self.broadcast_id.upper() != observation.broadcast_id.upper():
            return False
        if self.major is not None and observation.major != self.major:
            return False
        if self.minor is not None and observation.minor != self.minor:
            return False
        return True

    @classmethod
    def from_dict(cls, data: dict) -> "Anchor":
        """Build an anchor from a provider record."""
        return cls(
            anchor_id=str(data['anchor_id']),
            position=Position.from_dict(data['position']),
            device_address=data.get('device_address'),
            broadcast_id=data.get('broadcast_id'),
            major=data.get('major'),
            minor=data.get('minor'),
            tx_power=int(data.get('tx_power', -59)),
            path_loss_exponent=float(data.get('path_loss_exponent', 2.0)),
            name=data.get('name'),
        )


@dataclass(frozen=True)
class AccessPoint:
    """
    Surveyed WiFi access point supplied by the data provider.

    Attributes:
        bssid: Access point MAC address
        position: Surveyed position
        ssid: Network name
        tx_power: Reference signal strength at 1 unit (used without frequency)
        path_loss_exponent: Log-distance exponent (used without frequency)
    """

    bssid: str
    position: Position
    ssid: str = ""
    tx_power: int = -40
    path_loss_exponent: float = 2.5

    @classmethod
    def from_dict(cls, data: dict) -> "AccessPoint":
        """Build an access point from a provider record."""
        return cls(
            bssid=str(data['bssid']).upper(),
            position=Position.from_dict(data['position']),
            ssid=data.get('ssid', ""),
            tx_power=int(data.get('tx_power', -40)),
            path_loss_exponent=float(data.get('path_loss_exponent', 2.5)),
        )


@dataclass(frozen=True)
class RadioSource:
    """
    A radio source usable as a positioning reference.

    Attributes:
        identifier: Device address or BSSID
        position: Declared (anchor/AP) or estimated (public device) position
        kind: Source classification
        tx_power: Reference signal strength at 1 unit distance (dBm)
        path_loss_exponent: Log-distance path-loss exponent
        confidence: Trust in the position (1.0 surveyed, < 1.0 estimated)
        name: Anchor name, device name or SSID
    """

    identifier: str
    position: Position
    kind: SourceKind
    tx_power: int = -59
    path_loss_exponent: float = 2.0
    confidence: float = 1.0
    name: Optional[str] = None

    def __post_init__(self):
        """Validate source."""
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"Confidence must be in [0,1]: {self.confidence}")

    @property
    def is_known(self) -> bool:
        """True for surveyed sources (anchors and known access points)."""
        return self.kind in (SourceKind.ANCHOR, SourceKind.ACCESS_POINT)

    @property
    def modality(self) -> RadioModality:
        """Radio technology of this source."""
        if self.kind in (SourceKind.ACCESS_POINT, SourceKind.DISCOVERED_AP):
            return RadioModality.WIFI
        return RadioModality.BLE


@dataclass(frozen=True)
class Measurement:
    """
    Signal strength reading from one source, held in the fusion window.

    Attributes:
        source: Radio source that produced the reading
        rssi: Signal strength in dBm
        timestamp: Time of the reading (seconds)
        distance: Estimated distance, None if the reading was invalid
    """

    source: RadioSource
    rssi: int
    timestamp: float
    distance: Optional[float] = None

    @property
    def identifier(self) -> str:
        """Window key for this measurement."""
        return self.source.identifier

    def is_usable(self, min_distance: float = 0.1) -> bool:
        """Check if the distance estimate is valid for fusion."""
        return self.distance is not None and self.distance > min_distance

    def to_dict(self) -> dict:
        """Convert to dictionary for diagnostics."""
        return {
            'identifier': self.identifier,
            'kind': self.source.kind.value,
            'name': self.source.name,
            'rssi': self.rssi,
            'distance': self.distance,
            'confidence': self.source.confidence,
            'timestamp': self.timestamp,
        }

"""
Position Output Schema.

Defines the position value published to the application, together with the
positioning status and signal-strength enums that accompany it.
"""

from dataclasses import dataclass, field
from enum import Enum
import math
import time


class PositioningStatus(Enum):
    """State of the positioning pipeline as seen by the application."""

    IDLE = "idle"
    SCANNING = "scanning"
    POSITIONED = "positioned"
    INSUFFICIENT_SIGNALS = "insufficient_signals"
    ERROR = "error"


class SignalStrength(Enum):
    """Coarse signal indicator for the UI."""

    EXCELLENT = "excellent"      # 4+ known sources, very strong signal
    GOOD = "good"                # 3+ known sources, good signal
    FAIR = "fair"                # 2+ known sources, fair signal
    POOR = "poor"                # 1 known source or weak signal
    SEARCHING = "searching"      # Scanning, nothing usable yet
    UNAVAILABLE = "unavailable"  # Not scanning or outside coverage


@dataclass(frozen=True)
class Position:
    """
    2D position on a building floor.

    Attributes:
        x: Horizontal coordinate in floor units
        y: Vertical coordinate in floor units
        floor: Floor number
        accuracy: Radius of uncertainty in floor units (>= 0)
        timestamp: Observation time (seconds)

    Notes:
        - Positions are immutable; every update produces a new Position
        - accuracy of 0 means "not estimated" for authored positions
    """

    x: float
    y: float
    floor: int
    accuracy: float = 0.0
    timestamp: float = field(default_factory=time.time)

    def __post_init__(self):
        """Validate position."""
        if self.accuracy < 0:
            raise ValueError(f"Accuracy cannot be negative: {self.accuracy}")

    @property
    def xy(self):
        """Get (x, y) tuple."""
        return (self.x, self.y)

    def distance_to(self, other: "Position") -> float:
        """Euclidean distance in the plane (floor is ignored)."""
        return math.hypot(self.x - other.x, self.y - other.y)

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            'x': self.x,
            'y': self.y,
            'floor': self.floor,
            'accuracy': self.accuracy,
            'timestamp': self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: dict, default_floor: int = 1) -> "Position":
        """Build a position from a dict with x, y and optional floor/accuracy."""
        return cls(
            x=float(data['x']),
            y=float(data['y']),
            floor=int(data.get('floor', default_floor)),
            accuracy=float(data.get('accuracy', 0.0)),
            timestamp=float(data.get('timestamp', 0.0)),
        )

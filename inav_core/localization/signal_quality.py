"""
Signal quality assessment for indoor fixes.

Grades the positioning state into a coarse SignalStrength indicator for the
UI, and decides whether a fix is trustworthy enough to be treated as a
confirmed indoor position.
"""

from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

from inav_core.proto.position import Position, PositioningStatus, SignalStrength
from inav_core.proto.radio import Measurement


@dataclass
class IndoorFixPolicy:
    """
    Acceptance policy for a trusted indoor fix.

    Attributes:
        min_known_sources: Surveyed sources that must have contributed
        max_accuracy: Largest acceptable uncertainty radius (floor units)
    """

    min_known_sources: int = 2
    max_accuracy: float = 3.0

    def __post_init__(self):
        if self.min_known_sources < 0:
            raise ValueError(f"min_known_sources must be >= 0: {self.min_known_sources}")
        if self.max_accuracy <= 0:
            raise ValueError(f"max_accuracy must be positive: {self.max_accuracy}")


def signal_strength_from_status(
    status: PositioningStatus,
    position: Optional[Position] = None,
) -> SignalStrength:
    """
    Grade signal strength from the positioning status and fix accuracy.

    Args:
        status: Current positioning status
        position: Current position (accuracy is graded when positioned)

    Returns:
        SignalStrength indicator
    """
    if status == PositioningStatus.POSITIONED:
        if position is None:
            return SignalStrength.POOR
        if position.accuracy <= 2.0:
            return SignalStrength.EXCELLENT
        if position.accuracy <= 4.0:
            return SignalStrength.GOOD
        if position.accuracy <= 6.0:
            return SignalStrength.FAIR
        return SignalStrength.POOR

    if status == PositioningStatus.SCANNING:
        return SignalStrength.SEARCHING
    if status == PositioningStatus.INSUFFICIENT_SIGNALS:
        return SignalStrength.POOR
    return SignalStrength.UNAVAILABLE


def signal_strength_from_measurements(measurements: Sequence[Measurement]) -> SignalStrength:
    """
    Grade signal strength from the contributing measurement set.

    More surveyed sources with a stronger mean RSSI give a better grade.
    """
    if not measurements:
        return SignalStrength.UNAVAILABLE

    known_count = sum(1 for m in measurements if m.source.is_known)
    mean_rssi = float(np.mean([m.rssi for m in measurements]))

    if known_count >= 4 and mean_rssi >= -50:
        return SignalStrength.EXCELLENT
    if known_count >= 3 and mean_rssi >= -60:
        return SignalStrength.GOOD
    if known_count >= 2 and mean_rssi >= -70:
        return SignalStrength.FAIR
    if known_count >= 1:
        return SignalStrength.POOR
    return SignalStrength.UNAVAILABLE


def is_trusted_indoor_fix(
    status: PositioningStatus,
    position: Optional[Position],
    measurements: Sequence[Measurement],
    policy: Optional[IndoorFixPolicy] = None,
) -> bool:
    """
    Check whether a fix can be presented as a confirmed indoor position.

    Args:
        status: Current positioning status
        position: Current fused position
        measurements: Measurements that contributed to it
        policy: Acceptance policy (uses defaults if None)

    Returns:
        True if positioned, enough surveyed sources contributed and the
        accuracy radius is within the policy limit
    """
    policy = policy or IndoorFixPolicy()

    if status != PositioningStatus.POSITIONED or position is None:
        return False

    known_count = sum(1 for m in measurements if m.source.is_known)
    if known_count < policy.min_known_sources:
        return False

    return position.accuracy <= policy.max_accuracy

"""
Protocol Module: Value types and message schemas.

- Position, positioning status and signal-strength indicator
- Normalized radio observations, surveyed sources, window measurements
- Per-floor navigation snapshots and routed navigation paths
"""

from .position import (
    Position,
    PositioningStatus,
    SignalStrength,
)
from .radio import (
    RadioModality,
    SourceKind,
    RadioObservation,
    Anchor,
    AccessPoint,
    RadioSource,
    Measurement,
)
from .navigation import (
    NodeType,
    WallType,
    TransitionMode,
    TurnDirection,
    NavNode,
    Wall,
    FloorSnapshot,
    MoveStep,
    TurnStep,
    FloorChangeStep,
    NavigationStep,
    NavigationPath,
    transition_mode_for,
)

__all__ = [
    # Position
    'Position',
    'PositioningStatus',
    'SignalStrength',
    # Radio
    'RadioModality',
    'SourceKind',
    'RadioObservation',
    'Anchor',
    'AccessPoint',
    'RadioSource',
    'Measurement',
    # Navigation
    'NodeType',
    'WallType',
    'TransitionMode',
    'TurnDirection',
    'NavNode',
    'Wall',
    'FloorSnapshot',
    'MoveStep',
    'TurnStep',
    'FloorChangeStep',
    'NavigationStep',
    'NavigationPath',
    'transition_mode_for',
]

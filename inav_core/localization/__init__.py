"""
Localization Module: Distance estimation, classification, position fusion.

Key classes:
- DistanceModel: Log-distance path-loss model (BLE) and FSPL (WiFi)
- DeviceClassifier: Anchor correlation and public device stability
- MeasurementWindow: Sliding window, one live measurement per source
- WiFiPositioning: Independent WiFi fusion pass over known access points
- PositioningEngine: Single owner of all positioning state
"""

from .distance_estimator import (
    DistanceModel,
    estimate_distance,
    estimate_wifi_distance,
    rssi_for_distance,
)
from .device_classifier import (
    DeviceClassifier,
    DeviceStability,
    PublicDevice,
    StabilityConfig,
    hash_bearing,
    hash_position,
    project_from_reference,
    stable_hash,
)
from .position_fusion import (
    FusionConfig,
    FusionResult,
    MeasurementWindow,
    WindowSnapshot,
    estimate_accuracy,
    fuse_cross_modal,
    fuse_measurements,
    weighted_centroid,
)
from .wifi_positioning import (
    WiFiConfig,
    WiFiPositioning,
    estimate_wifi_accuracy,
)
from .signal_quality import (
    IndoorFixPolicy,
    is_trusted_indoor_fix,
    signal_strength_from_measurements,
    signal_strength_from_status,
)
from .positioning_engine import (
    PositioningConfig,
    PositioningEngine,
)

__all__ = [
    # Distance
    'DistanceModel',
    'estimate_distance',
    'estimate_wifi_distance',
    'rssi_for_distance',
    # Classification
    'DeviceClassifier',
    'DeviceStability',
    'PublicDevice',
    'StabilityConfig',
    'hash_bearing',
    'hash_position',
    'project_from_reference',
    'stable_hash',
    # Fusion
    'FusionConfig',
    'FusionResult',
    'MeasurementWindow',
    'WindowSnapshot',
    'estimate_accuracy',
    'fuse_cross_modal',
    'fuse_measurements',
    'weighted_centroid',
    # WiFi
    'WiFiConfig',
    'WiFiPositioning',
    'estimate_wifi_accuracy',
    # Signal quality
    'IndoorFixPolicy',
    'is_trusted_indoor_fix',
    'signal_strength_from_measurements',
    'signal_strength_from_status',
    # Engine
    'PositioningConfig',
    'PositioningEngine',
]

"""
I/O Module: Signal ingestion, publication, serialized service threads.

- Scan record parsing into normalized RadioObservations
- Bounded inbox (no unbounded RAM growth), drops counted on overflow
- Single consumer thread owning the positioning engine
- Latest-value publication for position, status and diagnostics
"""

from .scan_parser import (
    extract_ibeacon,
    format_uuid,
    parse_ble_advertisement,
    parse_observation_message,
    parse_wifi_scan,
    parse_wifi_scan_record,
)
from .latest_value import LatestValue
from .positioning_service import BleScanner, PositioningService, ServiceConfig
from .route_worker import RouteWorker

__all__ = [
    'extract_ibeacon',
    'format_uuid',
    'parse_ble_advertisement',
    'parse_observation_message',
    'parse_wifi_scan',
    'parse_wifi_scan_record',
    'LatestValue',
    'BleScanner',
    'PositioningService',
    'ServiceConfig',
    'RouteWorker',
]

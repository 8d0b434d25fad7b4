"""
Scan Record Parsing (Signal Ingestion).

Normalizes raw radio observations into RadioObservation:
- BLE advertisements: device address, RSSI, iBeacon UUID/major/minor or
  advertised service UUID, device name
- WiFi scan records: BSSID, SSID, level (dBm), frequency (MHz)
- Generic dict messages (replay files, bridges) dispatched on 'type'

Malformed records raise ValueError naming the field at fault; callers count
and drop them.
"""

from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple
import logging
import time

from inav_core.proto.radio import RadioModality, RadioObservation

logger = logging.getLogger(__name__)

# iBeacon manufacturer payload: 0x02 0x15 | UUID(16) | major(2) | minor(2) | tx(1)
IBEACON_MIN_LENGTH = 23
IBEACON_UUID_SLICE = slice(2, 18)


def format_uuid(raw: bytes) -> str:
    """
    Format 16 raw bytes as an upper-case 8-4-4-4-12 UUID string.

    Args:
        raw: 16 bytes

    Returns:
        UUID string, or "" if raw is not 16 bytes long
    """
    if len(raw) != 16:
        return ""
    hex_str = raw.hex().upper()
    return (
        f"{hex_str[0:8]}-{hex_str[8:12]}-{hex_str[12:16]}-"
        f"{hex_str[16:20]}-{hex_str[20:32]}"
    )


def extract_ibeacon(payload: bytes) -> Optional[Tuple[str, int, int]]:
    """
    Extract (uuid, major, minor) from an iBeacon manufacturer payload.

    Args:
        payload: Manufacturer-specific data (without the company id)

    Returns:
        Tuple of (uuid, major, minor), or None if payload is too short
    """
    if len(payload) < IBEACON_MIN_LENGTH:
        return None
    uuid = format_uuid(payload[IBEACON_UUID_SLICE])
    major = int.from_bytes(payload[18:20], 'big')
    minor = int.from_bytes(payload[20:22], 'big')
    return uuid, major, minor


def parse_ble_advertisement(
    address: str,
    rssi: int,
    manufacturer_data: Optional[Mapping[int, bytes]] = None,
    service_uuids: Optional[Sequence[str]] = None,
    name: Optional[str] = None,
    timestamp: Optional[float] = None,
) -> RadioObservation:
    """
    Normalize a BLE advertisement.

    Args:
        address: Device address (MAC)
        rssi: Received signal strength (dBm)
        manufacturer_data: Company id -> payload bytes
        service_uuids: Advertised service UUIDs
        name: Advertised device name
        timestamp: Receive time (defaults to now)

    Returns:
        RadioObservation with modality BLE

    Notes:
        - The first manufacturer payload in iBeacon layout wins
        - Without an iBeacon payload, the first service UUID is used as the
          broadcast identifier
    """
    if not address:
        raise ValueError("BLE advertisement without device address")

    broadcast_id = None
    major = None
    minor = None

    for _company_id, payload in (manufacturer_data or {}).items():
        ibeacon = extract_ibeacon(bytes(payload))
        if ibeacon is not None:
            broadcast_id, major, minor = ibeacon
            break

    if broadcast_id is None and service_uuids:
        broadcast_id = str(service_uuids[0]).upper()

    return RadioObservation(
        identifier=address.upper(),
        rssi=int(rssi),
        timestamp=time.time() if timestamp is None else float(timestamp),
        modality=RadioModality.BLE,
        broadcast_id=broadcast_id,
        major=major,
        minor=minor,
        name=name,
    )


def parse_wifi_scan_record(record: Mapping, timestamp: Optional[float] = None) -> RadioObservation:
    """
    Normalize a WiFi scan record.

    Args:
        record: Dict with 'bssid', 'level' (dBm), optional 'ssid', 'frequency'
        timestamp: Receive time (defaults to record 'timestamp' or now)

    Returns:
        RadioObservation with modality WIFI
    """
    try:
        bssid = str(record['bssid'])
        level = int(record['level'])
    except KeyError as e:
        raise ValueError(f"WiFi scan record missing field {e}") from e

    frequency = record.get('frequency')
    if timestamp is None:
        timestamp = float(record.get('timestamp', time.time()))

    return RadioObservation(
        identifier=bssid.upper(),
        rssi=level,
        timestamp=timestamp,
        modality=RadioModality.WIFI,
        frequency_mhz=int(frequency) if frequency is not None else None,
        name=record.get('ssid'),
    )


def parse_wifi_scan(records: Iterable[Mapping], timestamp: Optional[float] = None) -> List[RadioObservation]:
    """
    Normalize a full WiFi scan, skipping malformed records.

    Args:
        records: Scan records
        timestamp: Common receive time for the scan

    Returns:
        List of RadioObservation
    """
    observations = []
    for record in records:
        try:
            observations.append(parse_wifi_scan_record(record, timestamp))
        except ValueError as e:
            logger.debug(f"Skipping WiFi record: {e}")
    return observations


def parse_observation_message(message: Dict) -> RadioObservation:
    """
    Normalize a generic observation message.

    Message format:
        {"type": "ble", "address": ..., "rssi": ..., "timestamp": ...,
         "manufacturer_data": {"76": "0215..."}, "service_uuids": [...],
         "name": ...}
        {"type": "wifi", "bssid": ..., "level": ..., "frequency": ...,
         "ssid": ..., "timestamp": ...}

    Manufacturer payloads are hex strings keyed by decimal company id.

    Raises:
        ValueError: On unknown type or missing fields
    """
    msg_type = message.get('type')

    if msg_type == 'ble':
        try:
            manufacturer_data = {
                int(company): bytes.fromhex(payload)
                for company, payload in message.get('manufacturer_data', {}).items()
            }
            return parse_ble_advertisement(
                address=message['address'],
                rssi=message['rssi'],
                manufacturer_data=manufacturer_data,
                service_uuids=message.get('service_uuids'),
                name=message.get('name'),
                timestamp=message.get('timestamp'),
            )
        except KeyError as e:
            raise ValueError(f"BLE message missing field {e}") from e

    if msg_type == 'wifi':
        return parse_wifi_scan_record(message)

    raise ValueError(f"Unknown observation type: {msg_type!r}")

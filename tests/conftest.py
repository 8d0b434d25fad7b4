"""
Pytest configuration and shared fixtures for indoor navigation core tests.

This module provides reusable fixtures for positioning (anchors, access
points, synthetic observations) and routing (floor snapshots).
"""

import sys
from pathlib import Path
from typing import Dict, List

import pytest

# Add project root to path for imports
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from inav_core.metrics import reset_metrics
from inav_core.proto import (
    AccessPoint,
    Anchor,
    FloorSnapshot,
    NavNode,
    NodeType,
    Position,
    RadioModality,
    RadioObservation,
    Wall,
)
from inav_core.localization import rssi_for_distance


# =============================================================================
# Global State
# =============================================================================


@pytest.fixture(autouse=True)
def fresh_metrics():
    """Reset the global metrics collector around every test."""
    reset_metrics()
    yield
    reset_metrics()


# =============================================================================
# Positioning Fixtures
# =============================================================================


@pytest.fixture
def square_anchors() -> List[Anchor]:
    """
    Four bound anchors at the corners of a 100 x 100 square on floor 1.

    Default model: tx_power -59 dBm, path-loss exponent 2.0.
    """
    corners = [(0.0, 0.0), (100.0, 0.0), (0.0, 100.0), (100.0, 100.0)]
    return [
        Anchor(
            anchor_id=f"A{i}",
            position=Position(x, y, floor=1),
            device_address=f"AA:BB:CC:DD:EE:0{i}",
            name=f"anchor-{i}",
        )
        for i, (x, y) in enumerate(corners)
    ]


@pytest.fixture
def square_access_points() -> List[AccessPoint]:
    """Four surveyed access points at the corners of the 100 x 100 square."""
    corners = [(0.0, 0.0), (100.0, 0.0), (0.0, 100.0), (100.0, 100.0)]
    return [
        AccessPoint(bssid=f"00:11:22:33:44:0{i}", position=Position(x, y, floor=1), ssid="corp")
        for i, (x, y) in enumerate(corners)
    ]


def ble_observation(
    identifier: str,
    rssi: int,
    timestamp: float,
    broadcast_id: str = None,
    major: int = None,
    minor: int = None,
) -> RadioObservation:
    """Build a BLE observation."""
    return RadioObservation(
        identifier=identifier,
        rssi=rssi,
        timestamp=timestamp,
        modality=RadioModality.BLE,
        broadcast_id=broadcast_id,
        major=major,
        minor=minor,
    )


def wifi_observation(bssid: str, rssi: int, timestamp: float, frequency_mhz: int = None) -> RadioObservation:
    """Build a WiFi observation."""
    return RadioObservation(
        identifier=bssid,
        rssi=rssi,
        timestamp=timestamp,
        modality=RadioModality.WIFI,
        frequency_mhz=frequency_mhz,
    )


def observations_for_point(
    anchors: List[Anchor],
    x: float,
    y: float,
    timestamp: float,
) -> List[RadioObservation]:
    """
    Observations whose RSSI maps back to the exact distance from (x, y).

    RSSI is rounded to whole dBm like a real radio would report.
    """
    observations = []
    for anchor in anchors:
        distance = anchor.position.distance_to(Position(x, y, floor=1))
        rssi = round(rssi_for_distance(distance, anchor.tx_power, anchor.path_loss_exponent))
        observations.append(ble_observation(anchor.device_address, rssi, timestamp))
    return observations


@pytest.fixture
def make_ble():
    """Factory fixture for BLE observations."""
    return ble_observation


@pytest.fixture
def make_wifi():
    """Factory fixture for WiFi observations."""
    return wifi_observation


# =============================================================================
# Navigation Fixtures
# =============================================================================


def node(node_id: str, x: float, y: float, connections=(), floor: int = 1,
         node_type: NodeType = NodeType.WALKWAY, walkable: bool = True) -> NavNode:
    """Build a navigation node."""
    return NavNode(
        id=node_id,
        position=Position(x, y, floor=floor, timestamp=0.0),
        connections=frozenset(connections),
        walkable=walkable,
        type=node_type,
    )


def wall(wall_id: str, x1: float, y1: float, x2: float, y2: float) -> Wall:
    """Build a wall segment."""
    return Wall(id=wall_id, start=(x1, y1), end=(x2, y2))


@pytest.fixture
def abc_snapshot() -> FloorSnapshot:
    """
    Nodes A(0,0) - B(50,0) - C(50,50) with connections A-B, B-C, no walls.
    """
    return FloorSnapshot(
        floor=1,
        nodes=(
            node("A", 0, 0, ["B"]),
            node("B", 50, 0, ["A", "C"]),
            node("C", 50, 50, ["B"]),
        ),
    )


@pytest.fixture
def two_floor_snapshots() -> Dict[int, FloorSnapshot]:
    """
    Two floors sharing an elevator shaft at (100, 0).

    Floor 1: W1(0,0) - E1(100,0) elevator
    Floor 2: E2(100,0) elevator - W2(100,100)
    """
    floor1 = FloorSnapshot(
        floor=1,
        nodes=(
            node("W1", 0, 0, ["E1"]),
            node("E1", 100, 0, ["W1"], node_type=NodeType.ELEVATOR),
        ),
    )
    floor2 = FloorSnapshot(
        floor=2,
        nodes=(
            node("E2", 100, 0, ["W2"], floor=2, node_type=NodeType.ELEVATOR),
            node("W2", 100, 100, ["E2"], floor=2),
        ),
    )
    return {1: floor1, 2: floor2}

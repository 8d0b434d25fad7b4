"""
Unit tests for WiFi positioning.
"""

import pytest

from conftest import ble_observation, wifi_observation
from inav_core.localization import (
    WiFiConfig,
    WiFiPositioning,
    estimate_distance,
    estimate_wifi_accuracy,
    estimate_wifi_distance,
    rssi_for_distance,
)
from inav_core.metrics import get_metrics
from inav_core.proto import (
    AccessPoint,
    Measurement,
    Position,
    RadioSource,
    SourceKind,
)


def scan_for_point(access_points, x, y, timestamp):
    """WiFi observations (no frequency) consistent with a point."""
    observations = []
    for ap in access_points:
        distance = ap.position.distance_to(Position(x, y, floor=1))
        rssi = round(rssi_for_distance(distance, ap.tx_power, ap.path_loss_exponent))
        observations.append(wifi_observation(ap.bssid, rssi, timestamp))
    return observations


def ap_measurement(rssi):
    source = RadioSource("AP", Position(0, 0, floor=1), SourceKind.ACCESS_POINT)
    return Measurement(source=source, rssi=rssi, timestamp=0.0, distance=5.0)


class TestWifiAccuracy:
    """Tests for the WiFi accuracy heuristic."""

    @pytest.mark.parametrize("count,expected", [(2, 8.0), (3, 5.0), (4, 3.0), (5, 2.0), (7, 2.0)])
    def test_base_by_count(self, count, expected):
        """Base radius shrinks with more access points."""
        assert estimate_wifi_accuracy([ap_measurement(-60)] * count) == pytest.approx(expected)

    def test_variance_widens(self):
        """RSSI variance / 100 is added to the base."""
        ms = [ap_measurement(-50), ap_measurement(-70), ap_measurement(-60)]
        assert estimate_wifi_accuracy(ms) == pytest.approx(5.0 + (200.0 / 3.0) / 100.0)


class TestWifiPositioning:
    """Tests for the WiFi estimator."""

    def test_fix_from_known_access_points(self, square_access_points):
        """Four equidistant APs fix the center."""
        wifi = WiFiPositioning(square_access_points)

        position = wifi.handle_scan(scan_for_point(square_access_points, 50, 50, 1.0), now=1.0)

        assert position is not None
        assert position.xy == pytest.approx((50.0, 50.0))
        assert position.floor == 1
        assert position.accuracy == pytest.approx(3.0)
        assert wifi.last_position == position
        assert get_metrics().get_counter('wifi_fixes') == 1

    def test_needs_three_known(self, square_access_points):
        """Two known APs are not enough."""
        wifi = WiFiPositioning(square_access_points)
        scan = scan_for_point(square_access_points[:2], 50, 50, 1.0)

        assert wifi.handle_scan(scan, now=1.0) is None
        assert wifi.last_position is None

    def test_unknown_access_point(self, square_access_points):
        """Unknown BSSIDs are remembered but never contribute."""
        wifi = WiFiPositioning(square_access_points)

        assert wifi.handle_observation(wifi_observation("de:ad:be:ef:00:00", -50, 1.0, 2437)) is None

        discovered = wifi.discovered_access_points
        assert len(discovered) == 1
        assert discovered[0].kind == SourceKind.DISCOVERED_AP
        assert discovered[0].confidence == pytest.approx(0.2)
        assert wifi.measurements == []
        assert get_metrics().get_drop_count('unknown_access_point') == 1

    def test_registering_clears_discovered(self, square_access_points):
        """A discovered AP that gets surveyed is no longer listed as discovered."""
        wifi = WiFiPositioning()
        wifi.handle_observation(wifi_observation("de:ad:be:ef:00:00", -50, 1.0))
        wifi.add_access_point(AccessPoint("DE:AD:BE:EF:00:00", Position(1, 1, floor=1)))

        assert wifi.discovered_access_points == []
        assert wifi.is_known("de:ad:be:ef:00:00")

    def test_fspl_with_frequency(self, square_access_points):
        """Known frequency selects free-space path loss."""
        wifi = WiFiPositioning(square_access_points)
        bssid = square_access_points[0].bssid

        measurement = wifi.handle_observation(wifi_observation(bssid, -60, 1.0, 2437))

        assert measurement.distance == pytest.approx(estimate_wifi_distance(-60, 2437))

    def test_log_distance_without_frequency(self, square_access_points):
        """Without a frequency the AP's own model is used."""
        wifi = WiFiPositioning(square_access_points)
        ap = square_access_points[0]

        measurement = wifi.handle_observation(wifi_observation(ap.bssid, -60, 1.0))

        assert measurement.distance == pytest.approx(
            estimate_distance(-60, ap.tx_power, ap.path_loss_exponent)
        )

    def test_stale_measurements_evicted(self, square_access_points):
        """A later scan does not reuse measurements older than the window."""
        wifi = WiFiPositioning(square_access_points)
        first = wifi.handle_scan(scan_for_point(square_access_points, 50, 50, 0.0), now=0.0)
        later = wifi.handle_scan(scan_for_point(square_access_points[:1], 50, 50, 20.0), now=20.0)

        assert first is not None
        assert later is None
        assert len(wifi.measurements) == 1
        assert wifi.last_position == first

    def test_rejects_ble(self):
        """BLE observations are a programming error here."""
        with pytest.raises(ValueError):
            WiFiPositioning().handle_observation(ble_observation("AA:BB:CC:DD:EE:FF", -60, 0.0))

    def test_reset(self, square_access_points):
        """Reset forgets measurements and the fix but keeps known APs."""
        wifi = WiFiPositioning(square_access_points)
        wifi.handle_scan(scan_for_point(square_access_points, 50, 50, 1.0), now=1.0)

        wifi.reset()

        assert wifi.measurements == []
        assert wifi.last_position is None
        assert wifi.is_known(square_access_points[0].bssid)

    def test_min_known_configurable(self, square_access_points):
        """Required AP count comes from the config."""
        wifi = WiFiPositioning(square_access_points, WiFiConfig(min_known_access_points=2))
        scan = scan_for_point(square_access_points[:2], 50, 0, 1.0)

        assert wifi.handle_scan(scan, now=1.0) is not None

"""
Unit tests for signal strength to distance conversion.
"""

import math

import pytest

from inav_core.localization import (
    DistanceModel,
    estimate_distance,
    estimate_wifi_distance,
    rssi_for_distance,
)


class TestLogDistanceModel:
    """Tests for the BLE log-distance model."""

    def test_reference_distance(self):
        """RSSI equal to tx power is 1 unit away."""
        assert estimate_distance(-59, -59, 2.0) == pytest.approx(1.0)

    def test_ten_db_per_decade(self):
        """With n=2, 20 dB of extra loss is a factor of 10 in distance."""
        assert estimate_distance(-79, -59, 2.0) == pytest.approx(10.0)
        assert estimate_distance(-99, -59, 2.0) == pytest.approx(100.0)

    def test_stronger_than_reference(self):
        """Signals stronger than tx power yield distances below 1."""
        assert estimate_distance(-49, -59, 2.0) == pytest.approx(10 ** -0.5)

    def test_zero_rssi_is_invalid(self):
        """RSSI of exactly 0 is an invalid reading."""
        assert estimate_distance(0, -59, 2.0) is None

    def test_monotonic(self):
        """A weaker signal never yields a shorter distance."""
        distances = [estimate_distance(rssi, -59, 2.5) for rssi in range(-30, -101, -1)]
        assert all(a <= b for a, b in zip(distances, distances[1:]))

    def test_invalid_exponent(self):
        """Non-positive exponent is rejected."""
        with pytest.raises(ValueError):
            estimate_distance(-70, -59, 0.0)

    def test_no_clamping(self):
        """Very weak signals give large distances, not clamped values."""
        assert estimate_distance(-120, -59, 2.0) > 1000.0


class TestDistanceModel:
    """Tests for the DistanceModel wrapper."""

    def test_defaults(self):
        """Default model matches the standard beacon calibration."""
        model = DistanceModel()
        assert model.tx_power == -59
        assert model.path_loss_exponent == 2.0
        assert model.distance(-79) == pytest.approx(10.0)

    def test_invalid_model(self):
        """Exponent is validated at construction."""
        with pytest.raises(ValueError):
            DistanceModel(path_loss_exponent=-1.0)


class TestFreeSpacePathLoss:
    """Tests for the WiFi free-space model."""

    def test_known_value(self):
        """Distance follows 10^((27.55 - 20 log10 f + |rssi|) / 20)."""
        expected = 10 ** ((27.55 - 20 * math.log10(2437) + 60) / 20)
        assert estimate_wifi_distance(-60, 2437) == pytest.approx(expected)

    def test_higher_band_is_closer(self):
        """Same level on 5 GHz maps to a shorter distance than on 2.4 GHz."""
        assert estimate_wifi_distance(-60, 5180) < estimate_wifi_distance(-60, 2412)

    def test_monotonic(self):
        """A weaker level never yields a shorter distance."""
        distances = [estimate_wifi_distance(level, 2437) for level in range(-30, -95, -1)]
        assert all(a <= b for a, b in zip(distances, distances[1:]))

    def test_zero_level(self):
        """Level of exactly 0 is invalid."""
        assert estimate_wifi_distance(0, 2437) is None

    def test_invalid_frequency(self):
        """Frequency must be positive."""
        with pytest.raises(ValueError):
            estimate_wifi_distance(-60, 0)


class TestInverse:
    """Tests for the calibration inverse."""

    @pytest.mark.parametrize("distance", [0.5, 1.0, 7.3, 42.0])
    def test_inverse(self, distance):
        """rssi_for_distance inverts estimate_distance."""
        rssi = rssi_for_distance(distance, -59, 2.0)
        assert 10 ** ((-59 - rssi) / 20.0) == pytest.approx(distance)

    def test_invalid_distance(self):
        """Distance must be positive."""
        with pytest.raises(ValueError):
            rssi_for_distance(0.0, -59, 2.0)

"""
Signal Strength to Distance Conversion.

Log-distance path-loss model for BLE:

    d = 10 ^ ((txPower - rssi) / (10 * n))

Free-space path loss for WiFi access points on a known channel:

    d = 10 ^ ((27.55 - 20 * log10(f_MHz) + |rssi|) / 20)

Both are monotonic: a weaker signal never yields a shorter distance. No
clamping is applied; implausibly large distances are left for the fusion
weights to discount.
"""

from dataclasses import dataclass
from typing import Optional
import math


# Free-space path loss constant for distance in meters and frequency in MHz
FSPL_CONSTANT_DB = 27.55


@dataclass
class DistanceModel:
    """
    Path-loss model parameters.

    Attributes:
        tx_power: Signal strength measured at 1 unit distance (dBm)
        path_loss_exponent: Environment exponent (2 = free space, 2.5-4 indoors)
    """

    tx_power: int = -59
    path_loss_exponent: float = 2.0

    def __post_init__(self):
        """Validate model."""
        if self.path_loss_exponent <= 0:
            raise ValueError(
                f"Path-loss exponent must be positive: {self.path_loss_exponent}"
            )

    def distance(self, rssi: int) -> Optional[float]:
        """Estimate distance for a signal strength with this model."""
        return estimate_distance(rssi, self.tx_power, self.path_loss_exponent)


def estimate_distance(rssi: int, tx_power: int, path_loss_exponent: float) -> Optional[float]:
    """
    Estimate distance from signal strength with the log-distance model.

    Args:
        rssi: Received signal strength (dBm)
        tx_power: Reference signal strength at 1 unit (dBm)
        path_loss_exponent: Path-loss exponent n (> 0)

    Returns:
        Estimated distance, or None if rssi is exactly zero (invalid reading)
    """
    if rssi == 0:
        return None
    if path_loss_exponent <= 0:
        raise ValueError(f"Path-loss exponent must be positive: {path_loss_exponent}")

    exponent = (tx_power - rssi) / (10.0 * path_loss_exponent)
    return 10.0 ** exponent


def estimate_wifi_distance(rssi: int, frequency_mhz: int) -> Optional[float]:
    """
    Estimate distance to a WiFi access point with free-space path loss.

    Args:
        rssi: Received signal level (dBm)
        frequency_mhz: Channel frequency (MHz)

    Returns:
        Estimated distance, or None if rssi is zero
    """
    if rssi == 0:
        return None
    if frequency_mhz <= 0:
        raise ValueError(f"Frequency must be positive: {frequency_mhz}")

    fspl = FSPL_CONSTANT_DB - 20.0 * math.log10(frequency_mhz) + abs(rssi)
    return 10.0 ** (fspl / 20.0)


def rssi_for_distance(distance: float, tx_power: int, path_loss_exponent: float) -> float:
    """
    Invert the log-distance model (useful for calibration and simulation).

    Args:
        distance: Distance in floor units (> 0)
        tx_power: Reference signal strength at 1 unit (dBm)
        path_loss_exponent: Path-loss exponent n

    Returns:
        Signal strength that the model maps to this distance
    """
    if distance <= 0:
        raise ValueError(f"Distance must be positive: {distance}")
    return tx_power - 10.0 * path_loss_exponent * math.log10(distance)

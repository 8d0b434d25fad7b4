"""
Indoor Navigation Core Package.

Estimates a user's 2D position inside a building from BLE beacons, ambient
BLE devices and WiFi access points, and plans wall-aware walking routes over
per-floor navigation graphs.

Package structure:
- io: Scan record parsing, latest-value publication, serialized service
- proto: Value types (positions, radio sources, navigation graph, paths)
- localization: Distance estimation, device classification, position fusion
- navigation: Geometry, navigation graph, A* planner, fallbacks, routing
- metrics: Diagnostics, counters, histograms
"""

__version__ = "0.1.0"
__author__ = "Indoor Navigation Team"

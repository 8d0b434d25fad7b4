"""
Indoor navigation replay configuration.
"""

# Positioning configuration
POSITIONING_CONFIG = {
    "window_s": 15.0,                 # Measurement lifetime in the fusion window
    "min_measurements": 3,            # Usable measurements required for a fix
    "epsilon": 0.1,                   # Weight denominator offset
    "min_accuracy": 0.3,              # Accuracy clamp (floor units)
    "max_accuracy": 12.0,
    "cross_modal_improvement": 1.5,   # BLE + WiFi agreement factor
    "min_known_access_points": 3,     # WiFi fix requirement
}

# Public device stability configuration
STABILITY_CONFIG = {
    "max_readings": 10,
    "max_reading_age_s": 30.0,
    "min_readings": 3,
    "variance_threshold": 150.0,      # dBm^2
    "override_readings": 6,           # Stable regardless of variance
    "public_confidence": 0.3,
    "floor_width": 1020.0,            # Extent for hash-derived placement
    "floor_height": 765.0,
}

# Navigation configuration
NAVIGATION_CONFIG = {
    "primary_snap_distance": 150.0,
    "fallback_snap_distance": 50.0,
    "wall_buffer": 0.1,
    "staircase_steps": 4,
    "transition_match_tolerance": 0.0,  # 0.0 = exact x,y match across floors
}

# Service configuration
SERVICE_CONFIG = {
    "inbox_size": 1000,
    "wifi_scan_interval_s": 10.0,
    "join_timeout_s": 2.0,            # Wait for service threads on stop
}

# Trusted indoor fix policy
INDOOR_FIX_CONFIG = {
    "min_known_sources": 2,
    "max_accuracy": 3.0,
}

# Output configuration
OUTPUT_CONFIG = {
    "print_interval": 10,             # Print every N observations
}

# Logging configuration
LOGGING_CONFIG = {
    "level": "INFO",
    "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
}

"""
Indoor positioning replay tool.

Replays recorded BLE/WiFi observations from a scenario file through the
positioning engine, prints fused positions, and optionally plans a route.

Scenario file (JSON):
    {
      "anchors": [{"anchor_id": ..., "position": {"x", "y", "floor"}, ...}],
      "access_points": [{"bssid": ..., "position": {...}, ...}],
      "floors": [{"floor": 1, "nodes": [...], "walls": [...]}],
      "observations": [{"type": "ble", ...}, {"type": "wifi", ...}],
      "route": {"start": {"x", "y", "floor"}, "goal": {...}}
    }

Usage:
    python main.py scenario.json [--route] [--threaded] [--debug]
"""

import sys
import json
import logging
import argparse
from typing import Dict, List, Optional

import config
from inav_core.proto import AccessPoint, Anchor, FloorSnapshot, Position
from inav_core.io import PositioningService, ServiceConfig, parse_observation_message
from inav_core.localization import (
    FusionConfig,
    IndoorFixPolicy,
    PositioningConfig,
    PositioningEngine,
    StabilityConfig,
    WiFiConfig,
    is_trusted_indoor_fix,
    signal_strength_from_status,
)
from inav_core.navigation import (
    MultiFloorRouter,
    NavigationError,
    PathPlanner,
    PlannerConfig,
    RouterConfig,
)
from inav_core.metrics import get_metrics

logging.basicConfig(
    level=getattr(logging, config.LOGGING_CONFIG["level"]),
    format=config.LOGGING_CONFIG["format"]
)
logger = logging.getLogger(__name__)


def build_positioning_config() -> PositioningConfig:
    """Build engine configuration from config.py."""
    pos = config.POSITIONING_CONFIG
    stab = config.STABILITY_CONFIG
    return PositioningConfig(
        fusion_config=FusionConfig(
            window_s=pos["window_s"],
            min_measurements=pos["min_measurements"],
            epsilon=pos["epsilon"],
            min_accuracy=pos["min_accuracy"],
            max_accuracy=pos["max_accuracy"],
            cross_modal_improvement=pos["cross_modal_improvement"],
        ),
        stability_config=StabilityConfig(
            max_readings=stab["max_readings"],
            max_reading_age_s=stab["max_reading_age_s"],
            min_readings=stab["min_readings"],
            variance_threshold=stab["variance_threshold"],
            override_readings=stab["override_readings"],
            public_confidence=stab["public_confidence"],
            floor_width=stab["floor_width"],
            floor_height=stab["floor_height"],
        ),
        wifi_config=WiFiConfig(
            min_known_access_points=pos["min_known_access_points"],
            floor_width=stab["floor_width"],
            floor_height=stab["floor_height"],
        ),
    )


def build_service_config() -> ServiceConfig:
    """Build positioning service configuration from config.py."""
    svc = config.SERVICE_CONFIG
    return ServiceConfig(
        inbox_size=svc["inbox_size"],
        wifi_scan_interval_s=svc["wifi_scan_interval_s"],
        join_timeout_s=svc["join_timeout_s"],
    )


def build_router() -> MultiFloorRouter:
    """Build router configuration from config.py."""
    nav = config.NAVIGATION_CONFIG
    planner = PathPlanner(PlannerConfig(
        primary_snap_distance=nav["primary_snap_distance"],
        fallback_snap_distance=nav["fallback_snap_distance"],
        wall_buffer=nav["wall_buffer"],
        staircase_steps=nav["staircase_steps"],
    ))
    return MultiFloorRouter(planner, RouterConfig(
        transition_match_tolerance=nav["transition_match_tolerance"],
    ))


class ScenarioReplay:
    """Replay a recorded scenario through the positioning engine."""

    def __init__(self, scenario: Dict):
        """
        Initialize replay.

        Args:
            scenario: Parsed scenario file
        """
        self.scenario = scenario
        self.engine = PositioningEngine(
            anchors=[Anchor.from_dict(a) for a in scenario.get("anchors", [])],
            access_points=[AccessPoint.from_dict(ap) for ap in scenario.get("access_points", [])],
            config=build_positioning_config(),
        )
        self.floors = {
            snapshot.floor: snapshot
            for snapshot in (FloorSnapshot.from_dict(f) for f in scenario.get("floors", []))
        }
        self.fix_policy = IndoorFixPolicy(**config.INDOOR_FIX_CONFIG)

        self.observation_count = 0
        self.invalid_count = 0
        self.positions: List[Position] = []

    def _observations(self):
        """Parsed scenario observations; malformed records are counted and skipped."""
        for message in self.scenario.get("observations", []):
            try:
                observation = parse_observation_message(message)
            except ValueError as e:
                self.invalid_count += 1
                logger.warning(f"Skipping observation: {e}")
                continue
            self.observation_count += 1
            yield observation

    def _record(self, position: Optional[Position]):
        if position is not None and (not self.positions or position != self.positions[-1]):
            self.positions.append(position)

    def run(self) -> Optional[Position]:
        """Replay every observation on the calling thread; returns the final position."""
        self.engine.start()
        print_interval = config.OUTPUT_CONFIG["print_interval"]

        for observation in self._observations():
            self.engine.handle_observation(observation)
            self._record(self.engine.current_position)

            if self.observation_count % print_interval == 0:
                self._print_state()

        self._print_state()
        return self.engine.current_position

    def run_threaded(self, timeout: float = 10.0) -> Optional[Position]:
        """
        Replay through a PositioningService, as live scan callbacks would.

        Observations are submitted from this thread and processed on the
        service consumer thread; published positions are collected by a
        subscriber.

        Args:
            timeout: Maximum wait for the inbox to drain (s)
        """
        service = PositioningService(self.engine, config=build_service_config())
        service.position.subscribe(self._record)
        service.start()
        try:
            for observation in self._observations():
                if not service.on_ble_advertisement(observation):
                    logger.warning(f"Observation from {observation.identifier} dropped by service")
            if not service.drain(timeout=timeout):
                logger.warning("Service did not drain before timeout")
            self._print_state()
            return service.position.get()
        finally:
            service.stop()

    def _print_state(self):
        status = self.engine.status
        position = self.engine.current_position
        measurements = self.engine.contributing_measurements
        strength = signal_strength_from_status(status, position)
        trusted = is_trusted_indoor_fix(status, position, measurements, self.fix_policy)

        if position is None:
            print(f"[{self.observation_count:5d}] status={status.value} signal={strength.value}")
            return

        print(f"[{self.observation_count:5d}] status={status.value} signal={strength.value} "
              f"pos=({position.x:.1f}, {position.y:.1f}) floor={position.floor} "
              f"accuracy={position.accuracy:.2f} sources={len(measurements)} "
              f"trusted={'yes' if trusted else 'no'}")

    def plan_route(self) -> bool:
        """Plan the scenario's route, if any; returns False on failure."""
        route = self.scenario.get("route")
        if not route:
            print("Scenario has no route")
            return False

        start = Position.from_dict(route["start"])
        goal = Position.from_dict(route["goal"])
        router = build_router()

        try:
            path = router.find_path(start, goal, self.floors)
        except NavigationError as e:
            print(f"Route failed: {e}")
            return False

        print(json.dumps(path.to_dict(), indent=2))
        if path.degraded:
            print("WARNING: best-effort route, some legs may cross walls")
        return True

    def print_statistics(self):
        """Print replay statistics."""
        print("\n" + "=" * 60)
        print(f"Observations replayed: {self.observation_count}")
        print(f"Invalid observations:  {self.invalid_count}")
        print(f"Position updates:      {len(self.positions)}")
        print("=" * 60)
        get_metrics().log_summary()


def main():
    """Entry point."""
    parser = argparse.ArgumentParser(description='Indoor positioning replay')
    parser.add_argument('scenario', type=str,
                        help='Scenario JSON file')
    parser.add_argument('--route', '-r', action='store_true',
                        help='Plan the scenario route after replay')
    parser.add_argument('--debug', '-d', action='store_true',
                        help='Enable debug logging')
    parser.add_argument('--threaded', '-t', action='store_true',
                        help='Replay through the threaded positioning service')

    args = parser.parse_args()

    if args.debug:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        with open(args.scenario, 'r', encoding='utf-8') as f:
            scenario = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.error(f"Cannot load scenario {args.scenario}: {e}")
        return 1

    replay = ScenarioReplay(scenario)
    if args.threaded:
        replay.run_threaded()
    else:
        replay.run()

    ok = True
    if args.route:
        ok = replay.plan_route()

    replay.print_statistics()
    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(main())

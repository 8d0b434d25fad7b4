"""
Tests for the scenario replay tool.
"""

import json

import pytest

from conftest import observations_for_point
import main
from inav_core.proto import Anchor, Position


@pytest.fixture
def scenario(square_anchors):
    """Scenario with four anchors, one malformed record and a two-floor route."""
    observations = [
        {"type": "ble", "address": o.identifier, "rssi": o.rssi, "timestamp": o.timestamp}
        for t in (1.0, 2.0)
        for o in observations_for_point(square_anchors, 50, 50, t)
    ]
    observations.insert(2, {"type": "ble", "address": "AA:BB:CC:DD:EE:00"})

    return {
        "anchors": [
            {
                "anchor_id": a.anchor_id,
                "position": {"x": a.position.x, "y": a.position.y, "floor": 1},
                "device_address": a.device_address,
            }
            for a in square_anchors
        ],
        "floors": [
            {"floor": 1, "nodes": [
                {"id": "W1", "position": {"x": 0, "y": 0}, "connections": ["E1"]},
                {"id": "E1", "position": {"x": 100, "y": 0}, "connections": ["W1"], "type": "elevator"},
            ]},
            {"floor": 2, "nodes": [
                {"id": "E2", "position": {"x": 100, "y": 0}, "connections": ["W2"], "type": "elevator"},
                {"id": "W2", "position": {"x": 100, "y": 100}, "connections": ["E2"]},
            ]},
        ],
        "observations": observations,
        "route": {"start": {"x": 0, "y": 0, "floor": 1}, "goal": {"x": 100, "y": 100, "floor": 2}},
    }


class TestScenarioReplay:
    """Tests for ScenarioReplay."""

    def test_replay(self, scenario, capsys):
        """Replay fuses a position and skips malformed records."""
        replay = main.ScenarioReplay(scenario)

        position = replay.run()

        assert position.distance_to(Position(50, 50, floor=1)) < 2.0
        assert replay.observation_count == 8
        assert replay.invalid_count == 1
        assert replay.positions
        assert "status=positioned" in capsys.readouterr().out

    def test_replay_threaded(self, scenario):
        """The threaded replay reaches the same fix through the service."""
        replay = main.ScenarioReplay(scenario)

        position = replay.run_threaded(timeout=5.0)

        assert position.distance_to(Position(50, 50, floor=1)) < 2.0
        assert replay.observation_count == 8
        assert replay.invalid_count == 1
        assert replay.positions[-1] == position

    def test_plan_route(self, scenario, capsys):
        """Scenario route is planned and printed as JSON."""
        replay = main.ScenarioReplay(scenario)

        assert replay.plan_route()

        out = capsys.readouterr().out
        path = json.loads(out)
        assert any("floor_change" in step for step in path["steps"])
        assert path["degraded"] is False

    def test_plan_route_failure(self, scenario, capsys):
        """Missing floor plan is reported, not raised."""
        scenario["route"]["goal"]["floor"] = 7
        replay = main.ScenarioReplay(scenario)

        assert not replay.plan_route()
        assert "Route failed" in capsys.readouterr().out


class TestMain:
    """Tests for the command-line entry point."""

    def test_main(self, scenario, tmp_path, monkeypatch):
        """Exit code 0 on a successful replay and route."""
        path = tmp_path / "scenario.json"
        path.write_text(json.dumps(scenario), encoding="utf-8")
        monkeypatch.setattr("sys.argv", ["main.py", str(path), "--route"])

        assert main.main() == 0

    def test_main_threaded(self, scenario, tmp_path, monkeypatch):
        """--threaded replays through the positioning service."""
        path = tmp_path / "scenario.json"
        path.write_text(json.dumps(scenario), encoding="utf-8")
        monkeypatch.setattr("sys.argv", ["main.py", str(path), "--threaded"])

        assert main.main() == 0

    def test_missing_file(self, tmp_path, monkeypatch):
        """Unreadable scenario exits with 1."""
        monkeypatch.setattr("sys.argv", ["main.py", str(tmp_path / "missing.json")])
        assert main.main() == 1

    def test_config_wiring(self):
        """Configuration dicts build valid component configs."""
        config = main.build_positioning_config()
        assert config.fusion_config.window_s == 15.0
        assert config.stability_config.override_readings == 6

        router = main.build_router()
        assert router.config.transition_match_tolerance == 0.0
        assert router.planner.config.primary_snap_distance == 150.0

        service_config = main.build_service_config()
        assert service_config.inbox_size == 1000
        assert service_config.wifi_scan_interval_s == 10.0

    def test_anchor_records(self, scenario):
        """Scenario anchor records parse into anchors."""
        anchors = [Anchor.from_dict(a) for a in scenario["anchors"]]
        assert [a.anchor_id for a in anchors] == ["A0", "A1", "A2", "A3"]

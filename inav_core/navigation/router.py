"""
Multi-Floor Router.

Same floor: a single PathPlanner route.

Different floors:
1. Pick the walkable elevator/stairs node nearest (Euclidean) to start
2. Route start -> transition node on the start floor
3. FloorChange step annotated with elevator or stairs
4. Find the goal-floor node at the transition node's x,y (same shaft)
5. Route that node -> goal on the goal floor

Missing floor snapshots and missing transitions raise; nothing is retried.
"""

from dataclasses import dataclass
from typing import Iterable, List, Mapping, Optional, Union
import logging

from inav_core.proto.navigation import (
    FloorChangeStep,
    FloorSnapshot,
    MoveStep,
    NavigationPath,
    NavigationStep,
    transition_mode_for,
)
from inav_core.proto.position import Position
from inav_core.navigation.errors import FloorPlanNotFoundError, NoTransitionFoundError
from inav_core.navigation.geometry import euclidean
from inav_core.navigation.path_planner import PathPlanner, PlannedRoute

logger = logging.getLogger(__name__)

FloorSnapshots = Union[Mapping[int, FloorSnapshot], Iterable[FloorSnapshot]]


@dataclass
class RouterConfig:
    """
    Configuration for multi-floor routing.

    Attributes:
        transition_match_tolerance: Per-axis tolerance when matching the
            transition node on the goal floor (0.0 = exact coordinates)
    """

    transition_match_tolerance: float = 0.0

    def __post_init__(self):
        if self.transition_match_tolerance < 0:
            raise ValueError(
                f"transition_match_tolerance cannot be negative: {self.transition_match_tolerance}"
            )


def index_snapshots(floor_snapshots: FloorSnapshots) -> Mapping[int, FloorSnapshot]:
    """Accept either a floor->snapshot mapping or a sequence of snapshots."""
    if isinstance(floor_snapshots, Mapping):
        return floor_snapshots
    return {snapshot.floor: snapshot for snapshot in floor_snapshots}


class MultiFloorRouter:
    """
    Chain single-floor routes through elevator/stairs transitions.

    Usage:
        router = MultiFloorRouter()
        path = router.find_path(start, goal, {1: floor1, 2: floor2})
        for step in path.steps:
            ...
    """

    def __init__(self, planner: Optional[PathPlanner] = None, config: Optional[RouterConfig] = None):
        self.planner = planner or PathPlanner()
        self.config = config or RouterConfig()

    def find_path(self, start: Position, goal: Position, floor_snapshots: FloorSnapshots) -> NavigationPath:
        """
        Route from start to goal.

        Args:
            start: Start position
            goal: Goal position
            floor_snapshots: Node/wall snapshots by floor

        Returns:
            NavigationPath (degraded if any leg may cross a wall)

        Raises:
            FloorPlanNotFoundError: A required floor has no snapshot
            NoTransitionFoundError: No usable transition between the floors
        """
        snapshots = index_snapshots(floor_snapshots)
        start_snapshot = self._snapshot(snapshots, start.floor)

        if start.floor == goal.floor:
            route = self.planner.plan(start, goal, start_snapshot)
            return NavigationPath.from_points(route.positions(), degraded=route.degraded)

        goal_snapshot = self._snapshot(snapshots, goal.floor)
        start_graph = self.planner.build_graph(start_snapshot)
        goal_graph = self.planner.build_graph(goal_snapshot)

        transitions = start_graph.transition_nodes()
        if not transitions:
            raise NoTransitionFoundError(start.floor, goal.floor, "no walkable elevator or stairs")

        transition = min(transitions, key=lambda n: euclidean(start.xy, n.position.xy))
        arrival = goal_graph.node_at(
            transition.position.x,
            transition.position.y,
            self.config.transition_match_tolerance,
        )
        if arrival is None:
            raise NoTransitionFoundError(
                start.floor,
                goal.floor,
                f"no node at ({transition.position.x}, {transition.position.y}) "
                f"matching {transition.id}",
            )

        logger.info(
            f"Floor change {start.floor} -> {goal.floor} via {transition.type.value} "
            f"{transition.id} -> {arrival.id}"
        )

        first_leg = self.planner.plan_on_graph(start.xy, transition.position.xy, start_graph)
        second_leg = self.planner.plan_on_graph(arrival.position.xy, goal.xy, goal_graph)

        steps: List[NavigationStep] = [MoveStep(p) for p in first_leg.positions()]
        steps.append(FloorChangeStep(start.floor, goal.floor, transition_mode_for(transition)))
        steps.extend(MoveStep(p) for p in second_leg.positions())

        return NavigationPath(
            steps=tuple(steps),
            degraded=first_leg.degraded or second_leg.degraded,
        )

    def plan_floor(self, start: Position, goal: Position, floor_snapshots: FloorSnapshots) -> PlannedRoute:
        """Single-floor route with planner diagnostics (strategy, node ids)."""
        snapshot = self._snapshot(index_snapshots(floor_snapshots), start.floor)
        return self.planner.plan(start, goal, snapshot)

    @staticmethod
    def _snapshot(snapshots: Mapping[int, FloorSnapshot], floor: int) -> FloorSnapshot:
        snapshot = snapshots.get(floor)
        if snapshot is None:
            raise FloorPlanNotFoundError(floor)
        return snapshot

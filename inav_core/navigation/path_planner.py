"""
Single-Floor Path Planner.

Strategy order (each tried only when the previous one is unavailable):
1. No nodes on the floor          -> basic obstacle avoidance
2. Start and goal snap to nodes   -> A* over the node graph, stitched with
   (primary snap distance)           corridor detours for blocked legs
3. Otherwise / A* finds no path   -> obstacle avoidance through nearby
                                     walkway/door nodes (fallback snap)

A* routes are never shortcut: every node on the path is visited. The final
point list is de-duplicated on integer grid cells.
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence, Tuple
import logging
import time

from inav_core.proto.navigation import FloorSnapshot
from inav_core.proto.position import Position
from inav_core.navigation.detours import corridor_detour, stitch_legs
from inav_core.navigation.geometry import Point, grid_cell
from inav_core.navigation.nav_graph import NavigationGraph
from inav_core.navigation.obstacle_avoidance import avoidance_with_nodes, basic_avoidance
from inav_core.navigation.search import a_star
from inav_core.metrics import get_metrics

logger = logging.getLogger(__name__)


@dataclass
class PlannerConfig:
    """
    Configuration for the single-floor planner.

    Attributes:
        primary_snap_distance: Max start/goal to node distance for A*
        fallback_snap_distance: Max snap distance in obstacle avoidance
        wall_buffer: Parametric tolerance of wall intersection tests
        staircase_steps: Subdivisions of the staircase detour
    """

    primary_snap_distance: float = 150.0
    fallback_snap_distance: float = 50.0
    wall_buffer: float = 0.1
    staircase_steps: int = 4

    def __post_init__(self):
        """Validate configuration."""
        if self.primary_snap_distance <= 0 or self.fallback_snap_distance <= 0:
            raise ValueError("Snap distances must be positive")
        if self.wall_buffer < 0:
            raise ValueError(f"wall_buffer cannot be negative: {self.wall_buffer}")
        if self.staircase_steps < 1:
            raise ValueError(f"staircase_steps must be >= 1: {self.staircase_steps}")


class RouteStrategy(Enum):
    """Which planner tier produced a route."""

    NODE_GRAPH = "node_graph"
    OBSTACLE_AVOIDANCE = "obstacle_avoidance"
    BASIC_AVOIDANCE = "basic_avoidance"


@dataclass(frozen=True)
class PlannedRoute:
    """
    Route on one floor.

    Attributes:
        floor: Floor number
        points: De-duplicated route points, start first and goal last
        strategy: Tier that produced the route
        degraded: True if some leg may cross a wall (best-effort route)
        node_ids: Graph nodes visited, in order
        node_costs: Accumulated A* cost at each node (NODE_GRAPH only)
    """

    floor: int
    points: Tuple[Point, ...]
    strategy: RouteStrategy
    degraded: bool = False
    node_ids: Tuple[str, ...] = ()
    node_costs: Tuple[float, ...] = ()

    def positions(self) -> List[Position]:
        """Route points as Positions (waypoints carry no observation time)."""
        return [Position(x=x, y=y, floor=self.floor, timestamp=0.0) for x, y in self.points]


def dedupe_points(points: Sequence[Point]) -> List[Point]:
    """
    Remove consecutive points that round to the same integer grid cell.

    The first point is always kept. The last point is always kept too; if
    it shares a cell with the point before it, it replaces that point.
    """
    if len(points) <= 2:
        return list(points)

    result = [points[0]]
    for point in points[1:-1]:
        if grid_cell(point) != grid_cell(result[-1]):
            result.append(point)

    goal = points[-1]
    if len(result) > 1 and grid_cell(goal) == grid_cell(result[-1]):
        result[-1] = goal
    else:
        result.append(goal)
    return result


class PathPlanner:
    """
    Wall-aware single-floor route planner.

    Usage:
        planner = PathPlanner()
        route = planner.plan(start, goal, snapshot)
        if route.degraded:
            print("Best-effort route, may cross walls")
    """

    def __init__(self, config: Optional[PlannerConfig] = None):
        """
        Initialize planner.

        Args:
            config: Planner configuration (uses defaults if None)
        """
        self.config = config or PlannerConfig()
        self.metrics = get_metrics()

    def build_graph(self, snapshot: FloorSnapshot) -> NavigationGraph:
        return NavigationGraph(snapshot, self.config.wall_buffer)

    def plan(self, start: Position, goal: Position, snapshot: FloorSnapshot) -> PlannedRoute:
        """
        Plan a route between two points on the snapshot's floor.

        Args:
            start: Route start (floor is not checked)
            goal: Route goal
            snapshot: Node/wall snapshot of the floor (read only)

        Returns:
            PlannedRoute, never empty: contains at least start and goal
        """
        return self.plan_on_graph(start.xy, goal.xy, self.build_graph(snapshot))

    def plan_on_graph(self, start: Point, goal: Point, graph: NavigationGraph) -> PlannedRoute:
        """Plan with an already built graph."""
        t_start = time.perf_counter()
        self.metrics.increment('route_requests')

        route = self._plan(start, goal, graph)

        self.metrics.record_histogram('planning_latency_ms', (time.perf_counter() - t_start) * 1000.0)
        if route.strategy != RouteStrategy.NODE_GRAPH:
            self.metrics.increment('route_fallbacks')
        if route.degraded:
            self.metrics.increment('routes_degraded')
            logger.warning(
                f"Degraded route on floor {graph.floor} from {start} to {goal} "
                f"({route.strategy.value}); path may cross walls"
            )
        else:
            logger.info(
                f"Route on floor {graph.floor}: {route.strategy.value}, "
                f"{len(route.points)} points, {len(route.node_ids)} nodes"
            )
        return route

    def _plan(self, start: Point, goal: Point, graph: NavigationGraph) -> PlannedRoute:
        if graph.is_empty:
            avoidance = basic_avoidance(start, goal, graph.is_clear)
            return PlannedRoute(
                floor=graph.floor,
                points=tuple(dedupe_points(avoidance.points)),
                strategy=RouteStrategy.BASIC_AVOIDANCE,
                degraded=avoidance.degraded,
            )

        start_node = graph.nearest_node(start, self.config.primary_snap_distance)
        goal_node = graph.nearest_node(goal, self.config.primary_snap_distance)

        if start_node is not None and goal_node is not None:
            result, expansions = a_star(graph, start_node.id, goal_node.id)
            self.metrics.record_histogram('a_star_expansions', expansions)

            if result is not None:
                waypoints = [start] + [graph.node(n).position.xy for n in result.node_ids] + [goal]
                points, degraded = stitch_legs(
                    waypoints,
                    graph.is_clear,
                    lambda a, b: corridor_detour(a, b, graph.is_clear, self.config.staircase_steps),
                )
                return PlannedRoute(
                    floor=graph.floor,
                    points=tuple(dedupe_points(points)),
                    strategy=RouteStrategy.NODE_GRAPH,
                    degraded=degraded,
                    node_ids=result.node_ids,
                    node_costs=result.costs,
                )
            logger.debug(f"No node path {start_node.id} -> {goal_node.id} on floor {graph.floor}")
        else:
            logger.debug(f"Start or goal not within {self.config.primary_snap_distance} of a node")

        avoidance = avoidance_with_nodes(start, goal, graph, self.config.fallback_snap_distance)
        return PlannedRoute(
            floor=graph.floor,
            points=tuple(dedupe_points(avoidance.points)),
            strategy=RouteStrategy.OBSTACLE_AVOIDANCE,
            degraded=avoidance.degraded,
            node_ids=avoidance.node_ids,
        )

"""
Obstacle-Avoidance Fallback Routing.

Used when node-graph routing is unavailable or finds no path.

Basic tier: try single-bend waypoints aligned with start/goal or their
midpoint; the first whose two legs are both wall-clear wins. Otherwise the
direct segment is returned and flagged degraded (it may cross walls).

Node tier: snap start and/or goal to a nearby walkway or door node, connect
through the node graph where possible, and stitch any remaining blocked leg
with the basic tier.
"""

from dataclasses import dataclass
from typing import List, Tuple
import logging

from inav_core.proto.navigation import NodeType
from inav_core.navigation.detours import (
    ClearanceTest,
    DetourResult,
    stitch_legs,
    try_waypoints,
)
from inav_core.navigation.geometry import Point
from inav_core.navigation.nav_graph import NavigationGraph
from inav_core.navigation.search import a_star

logger = logging.getLogger(__name__)

SNAP_NODE_TYPES = (NodeType.WALKWAY, NodeType.DOOR)

BASIC_WAYPOINT_STRATEGIES = (
    ('bend_goal_x', lambda s, g: [(g[0], s[1])]),
    ('bend_start_x', lambda s, g: [(s[0], g[1])]),
    ('bend_mid_x_start_y', lambda s, g: [((s[0] + g[0]) / 2.0, s[1])]),
    ('bend_mid_x_goal_y', lambda s, g: [((s[0] + g[0]) / 2.0, g[1])]),
    ('bend_start_x_mid_y', lambda s, g: [(s[0], (s[1] + g[1]) / 2.0)]),
    ('bend_goal_x_mid_y', lambda s, g: [(g[0], (s[1] + g[1]) / 2.0)]),
)


@dataclass(frozen=True)
class AvoidanceRoute:
    """
    Fallback route.

    Attributes:
        points: Route points from start to goal
        degraded: True if some leg may cross a wall
        node_ids: Graph nodes used, in order
    """

    points: Tuple[Point, ...]
    degraded: bool
    node_ids: Tuple[str, ...] = ()


def basic_leg(start: Point, goal: Point, is_clear: ClearanceTest) -> DetourResult:
    """
    Route one leg with at most one bend.

    Returns:
        DetourResult ending at goal; clear is False for the direct fallback
    """
    if is_clear(start, goal):
        return DetourResult(points=(goal,), clear=True, strategy='direct')

    result = try_waypoints(start, goal, BASIC_WAYPOINT_STRATEGIES, is_clear)
    if result is not None:
        return result

    return DetourResult(points=(goal,), clear=False, strategy='direct')


def basic_avoidance(start: Point, goal: Point, is_clear: ClearanceTest) -> AvoidanceRoute:
    """
    Basic obstacle avoidance from start to goal.

    Always returns at least start and goal.
    """
    leg = basic_leg(start, goal, is_clear)
    if not leg.clear:
        logger.warning(f"No clear single-bend route from {start} to {goal}; using direct segment")
    return AvoidanceRoute(points=(start,) + leg.points, degraded=not leg.clear)


def avoidance_with_nodes(
    start: Point,
    goal: Point,
    graph: NavigationGraph,
    snap_distance: float = 50.0,
) -> AvoidanceRoute:
    """
    Obstacle avoidance through nearby walkway/door nodes.

    Args:
        start: Route start
        goal: Route goal
        graph: Floor navigation graph
        snap_distance: Maximum snap distance to a node

    Returns:
        AvoidanceRoute; falls back to basic_avoidance without nearby nodes
    """
    start_node = graph.nearest_node(start, snap_distance, SNAP_NODE_TYPES)
    goal_node = graph.nearest_node(goal, snap_distance, SNAP_NODE_TYPES)

    node_ids: List[str] = []
    if start_node is not None and goal_node is not None:
        result, _ = a_star(graph, start_node.id, goal_node.id)
        if result is not None:
            node_ids = list(result.node_ids)

    if not node_ids:
        if start_node is not None:
            node_ids = [start_node.id]
        elif goal_node is not None:
            node_ids = [goal_node.id]
        else:
            return basic_avoidance(start, goal, graph.is_clear)

    waypoints = [start] + [graph.node(n).position.xy for n in node_ids] + [goal]
    points, degraded = stitch_legs(
        waypoints, graph.is_clear, lambda a, b: basic_leg(a, b, graph.is_clear)
    )
    if degraded:
        logger.warning(f"Node-assisted avoidance on floor {graph.floor} crosses a wall")

    return AvoidanceRoute(points=tuple(points), degraded=degraded, node_ids=tuple(node_ids))

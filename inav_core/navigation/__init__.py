"""
Navigation Module: Wall-aware routing over per-floor navigation graphs.

Key classes:
- NavigationGraph: Routable nodes, wall-checked symmetric adjacency
- PathPlanner: A* with corridor detours and obstacle-avoidance fallbacks
- MultiFloorRouter: Chains floors through elevator/stairs transitions
"""

from .errors import (
    NavigationError,
    FloorPlanNotFoundError,
    NoTransitionFoundError,
)
from .geometry import (
    euclidean,
    manhattan,
    segment_is_clear,
    segments_intersect,
)
from .nav_graph import NavigationGraph
from .search import SearchResult, a_star
from .detours import DetourResult, corridor_detour, staircase_detour
from .obstacle_avoidance import AvoidanceRoute, avoidance_with_nodes, basic_avoidance
from .path_planner import (
    PathPlanner,
    PlannedRoute,
    PlannerConfig,
    RouteStrategy,
    dedupe_points,
)
from .router import MultiFloorRouter, RouterConfig

__all__ = [
    # Errors
    'NavigationError',
    'FloorPlanNotFoundError',
    'NoTransitionFoundError',
    # Geometry
    'euclidean',
    'manhattan',
    'segment_is_clear',
    'segments_intersect',
    # Graph and search
    'NavigationGraph',
    'SearchResult',
    'a_star',
    # Fallbacks
    'DetourResult',
    'corridor_detour',
    'staircase_detour',
    'AvoidanceRoute',
    'avoidance_with_nodes',
    'basic_avoidance',
    # Planning
    'PathPlanner',
    'PlannedRoute',
    'PlannerConfig',
    'RouteStrategy',
    'dedupe_points',
    'MultiFloorRouter',
    'RouterConfig',
]

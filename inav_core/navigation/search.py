"""
A* search over a NavigationGraph.

Cost between adjacent nodes and the heuristic are both Manhattan distance,
which biases routes toward axis-aligned corridors. Manhattan is admissible
and consistent for a Manhattan edge cost, so the first time the goal node
is popped its cost is optimal.

The open set is a heap of (f, counter, node_id). Decreasing a node's cost
pushes a new entry; the superseded entry is skipped when popped because
the node is already closed.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple
import heapq

from inav_core.navigation.geometry import manhattan
from inav_core.navigation.nav_graph import NavigationGraph


@dataclass(frozen=True)
class SearchResult:
    """
    Successful node path.

    Attributes:
        node_ids: Node ids from start to goal (inclusive)
        costs: Accumulated cost at each node (non-decreasing)
        expansions: Nodes expanded during the search
    """

    node_ids: Tuple[str, ...]
    costs: Tuple[float, ...]
    expansions: int

    @property
    def total_cost(self) -> float:
        return self.costs[-1] if self.costs else 0.0


def a_star(
    graph: NavigationGraph,
    start_id: str,
    goal_id: str,
) -> Tuple[Optional[SearchResult], int]:
    """
    Find the cheapest node path between two routable nodes.

    Args:
        graph: Floor navigation graph
        start_id: Start node id
        goal_id: Goal node id

    Returns:
        (SearchResult or None if no path exists, number of expansions)
    """
    if not graph.is_routable(start_id) or not graph.is_routable(goal_id):
        return None, 0

    goal_xy = graph.node(goal_id).position.xy

    def heuristic(node_id: str) -> float:
        return manhattan(graph.node(node_id).position.xy, goal_xy)

    open_set: List[Tuple[float, int, str]] = []
    counter = 0
    heapq.heappush(open_set, (heuristic(start_id), counter, start_id))
    counter += 1

    came_from: Dict[str, str] = {}
    g_score: Dict[str, float] = {start_id: 0.0}
    closed_set = set()
    expansions = 0

    while open_set:
        _, _, current = heapq.heappop(open_set)

        if current in closed_set:
            continue

        if current == goal_id:
            node_ids = _reconstruct_path(came_from, current)
            costs = tuple(g_score[n] for n in node_ids)
            return SearchResult(tuple(node_ids), costs, expansions), expansions

        closed_set.add(current)
        expansions += 1
        current_xy = graph.node(current).position.xy

        for neighbor in graph.neighbors(current):
            if neighbor in closed_set:
                continue

            tentative = g_score[current] + manhattan(current_xy, graph.node(neighbor).position.xy)
            if neighbor not in g_score or tentative < g_score[neighbor]:
                came_from[neighbor] = current
                g_score[neighbor] = tentative
                heapq.heappush(open_set, (tentative + heuristic(neighbor), counter, neighbor))
                counter += 1

    return None, expansions


def _reconstruct_path(came_from: Dict[str, str], current: str) -> List[str]:
    path = [current]
    while current in came_from:
        current = came_from[current]
        path.append(current)
    path.reverse()
    return path

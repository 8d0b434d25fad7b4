"""
Navigation Graph.

Read-only routing view of one floor's snapshot:
- Routable nodes: walkable and not OBSTACLE
- Edges: an explicit connection in either direction between two routable
  nodes whose straight segment crosses no wall (adjacency is symmetric)
- Nearest-node snapping with a maximum distance and optional type filter

The graph never mutates the snapshot it was built from.
"""

from typing import Collection, Dict, List, Optional, Set
import logging

from inav_core.proto.navigation import FloorSnapshot, NavNode, NodeType, Wall
from inav_core.navigation.geometry import Point, euclidean, segment_is_clear

logger = logging.getLogger(__name__)


class NavigationGraph:
    """
    Routing graph of a single floor.

    Usage:
        graph = NavigationGraph(snapshot)
        node = graph.nearest_node((x, y), max_distance=150.0)
        for neighbor_id in graph.neighbors(node.id):
            ...
    """

    def __init__(self, snapshot: FloorSnapshot, wall_buffer: float = 0.1):
        """
        Build the graph.

        Args:
            snapshot: Floor node/wall snapshot
            wall_buffer: Parametric tolerance for wall intersection tests
        """
        self.snapshot = snapshot
        self.floor = snapshot.floor
        self.wall_buffer = wall_buffer

        self._nodes: Dict[str, NavNode] = {node.id: node for node in snapshot.nodes}
        self._routable: Dict[str, NavNode] = {
            node.id: node for node in snapshot.nodes if node.is_routable
        }
        self._adjacency: Dict[str, Set[str]] = {node_id: set() for node_id in self._routable}
        self._blocked_edges = 0

        self._build_adjacency()

    def _build_adjacency(self):
        for node in self._routable.values():
            for other_id in node.connections:
                other = self._routable.get(other_id)
                if other is None or other_id in self._adjacency[node.id]:
                    continue
                if not self.is_clear(node.position.xy, other.position.xy):
                    self._blocked_edges += 1
                    logger.debug(f"Edge {node.id}-{other_id} blocked by wall on floor {self.floor}")
                    continue
                self._adjacency[node.id].add(other_id)
                self._adjacency[other_id].add(node.id)

    @property
    def walls(self) -> List[Wall]:
        return list(self.snapshot.walls)

    @property
    def is_empty(self) -> bool:
        """True if no nodes at all were supplied for this floor."""
        return not self._nodes

    @property
    def blocked_edge_count(self) -> int:
        """Connections excluded because a wall crosses them."""
        return self._blocked_edges

    def node(self, node_id: str) -> NavNode:
        return self._nodes[node_id]

    def routable_nodes(self) -> List[NavNode]:
        return list(self._routable.values())

    def is_routable(self, node_id: str) -> bool:
        return node_id in self._routable

    def neighbors(self, node_id: str) -> List[str]:
        """Traversable neighbors of a routable node, sorted for determinism."""
        return sorted(self._adjacency.get(node_id, ()))

    def is_edge_traversable(self, a_id: str, b_id: str) -> bool:
        return b_id in self._adjacency.get(a_id, ())

    def is_clear(self, a: Point, b: Point) -> bool:
        """True if the straight segment a-b crosses no wall on this floor."""
        return segment_is_clear(a, b, self.snapshot.walls, self.wall_buffer)

    def nearest_node(
        self,
        point: Point,
        max_distance: Optional[float] = None,
        types: Optional[Collection[NodeType]] = None,
    ) -> Optional[NavNode]:
        """
        Find the nearest routable node to a point.

        Args:
            point: Query point (x, y)
            max_distance: Reject nodes farther than this (None = unlimited)
            types: Restrict to these node types (None = any routable type)

        Returns:
            Nearest node, or None if nothing qualifies
        """
        best = None
        best_distance = float('inf')
        for node in self._routable.values():
            if types is not None and node.type not in types:
                continue
            distance = euclidean(point, node.position.xy)
            if distance < best_distance:
                best = node
                best_distance = distance

        if best is None:
            return None
        if max_distance is not None and best_distance > max_distance:
            return None
        return best

    def transition_nodes(self) -> List[NavNode]:
        """Routable elevator and stairs nodes."""
        return [node for node in self._routable.values() if node.is_transition]

    def node_at(self, x: float, y: float, tolerance: float = 0.0) -> Optional[NavNode]:
        """
        Find a routable node at given coordinates.

        Args:
            x, y: Coordinates to match
            tolerance: Per-axis tolerance (0.0 = exact match)

        Returns:
            Matching node (transition nodes preferred), or None
        """
        matches = [
            node for node in self._routable.values()
            if abs(node.position.x - x) <= tolerance and abs(node.position.y - y) <= tolerance
        ]
        if not matches:
            return None
        matches.sort(key=lambda n: (not n.is_transition, euclidean((x, y), n.position.xy)))
        return matches[0]

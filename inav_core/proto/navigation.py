"""
Navigation Graph and Path Schemas.

Defines the per-floor snapshot supplied by the graph provider (nodes and
walls) and the NavigationPath returned to the application.
"""

from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, Iterable, List, Optional, Tuple, Union
import math

from .position import Position


class NodeType(Enum):
    """Kind of navigation node."""

    WALKWAY = "walkway"
    DOOR = "door"
    ELEVATOR = "elevator"
    STAIRS = "stairs"
    OBSTACLE = "obstacle"


class WallType(Enum):
    """Kind of wall (cosmetic only)."""

    EXTERIOR = "exterior"
    INTERIOR = "interior"
    LOAD_BEARING = "load_bearing"
    PARTITION = "partition"


class TransitionMode(Enum):
    """How a floor change is made."""

    ELEVATOR = "elevator"
    STAIRS = "stairs"


class TurnDirection(Enum):
    """Turn direction for narrated steps."""

    LEFT = "left"
    RIGHT = "right"
    STRAIGHT = "straight"


@dataclass(frozen=True)
class NavNode:
    """
    Routable node of a floor's navigation graph.

    Attributes:
        id: Node identifier
        position: Node position (floor included)
        connections: Ids of logically adjacent nodes (undirected)
        walkable: False excludes the node from routing
        type: Node type

    Notes:
        - A node never lists itself in connections
        - Non-walkable and OBSTACLE nodes are never traversed
    """

    id: str
    position: Position
    connections: FrozenSet[str] = frozenset()
    walkable: bool = True
    type: NodeType = NodeType.WALKWAY

    def __post_init__(self):
        """Validate node and normalize connections to a frozenset."""
        object.__setattr__(self, 'connections', frozenset(self.connections))
        if self.id in self.connections:
            raise ValueError(f"Node {self.id} cannot be connected to itself")

    @property
    def is_routable(self) -> bool:
        """True if the planner may traverse this node."""
        return self.walkable and self.type != NodeType.OBSTACLE

    @property
    def is_transition(self) -> bool:
        """True for elevator and stairs nodes."""
        return self.type in (NodeType.ELEVATOR, NodeType.STAIRS)

    @classmethod
    def from_dict(cls, data: dict, floor: int) -> "NavNode":
        """Build a node from a provider record."""
        return cls(
            id=str(data['id']),
            position=Position.from_dict(data['position'], default_floor=floor),
            connections=frozenset(str(c) for c in data.get('connections', [])),
            walkable=bool(data.get('walkable', True)),
            type=NodeType(data.get('type', NodeType.WALKWAY.value)),
        )

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            'id': self.id,
            'position': {'x': self.position.x, 'y': self.position.y, 'floor': self.position.floor},
            'connections': sorted(self.connections),
            'walkable': self.walkable,
            'type': self.type.value,
        }


@dataclass(frozen=True)
class Wall:
    """
    Floor-scoped wall segment.

    Attributes:
        id: Wall identifier
        start: Segment start point (x, y)
        end: Segment end point (x, y)
        thickness: Drawing thickness (not used in intersection tests)
        type: Wall type
    """

    id: str
    start: Tuple[float, float]
    end: Tuple[float, float]
    thickness: float = 1.0
    type: WallType = WallType.INTERIOR

    @classmethod
    def from_dict(cls, data: dict) -> "Wall":
        """Build a wall from a provider record."""
        start = data['start']
        end = data['end']
        return cls(
            id=str(data['id']),
            start=(float(start['x']), float(start['y'])),
            end=(float(end['x']), float(end['y'])),
            thickness=float(data.get('thickness', 1.0)),
            type=WallType(data.get('type', WallType.INTERIOR.value)),
        )

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            'id': self.id,
            'start': {'x': self.start[0], 'y': self.start[1]},
            'end': {'x': self.end[0], 'y': self.end[1]},
            'thickness': self.thickness,
            'type': self.type.value,
        }


@dataclass(frozen=True)
class FloorSnapshot:
    """
    Read-only node/wall snapshot of one floor.

    Attributes:
        floor: Floor number
        nodes: Navigation nodes on this floor
        walls: Wall segments on this floor
    """

    floor: int
    nodes: Tuple[NavNode, ...] = ()
    walls: Tuple[Wall, ...] = ()

    def __post_init__(self):
        """Freeze node and wall sequences."""
        object.__setattr__(self, 'nodes', tuple(self.nodes))
        object.__setattr__(self, 'walls', tuple(self.walls))

    @property
    def is_empty(self) -> bool:
        """True if the provider supplied no nodes for this floor."""
        return not self.nodes

    @classmethod
    def from_dict(cls, data: dict) -> "FloorSnapshot":
        """Build a snapshot from a provider record."""
        floor = int(data['floor'])
        return cls(
            floor=floor,
            nodes=tuple(NavNode.from_dict(n, floor) for n in data.get('nodes', [])),
            walls=tuple(Wall.from_dict(w) for w in data.get('walls', [])),
        )

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        return {
            'floor': self.floor,
            'nodes': [n.to_dict() for n in self.nodes],
            'walls': [w.to_dict() for w in self.walls],
        }


@dataclass(frozen=True)
class MoveStep:
    """Walk to a position."""

    position: Position


@dataclass(frozen=True)
class TurnStep:
    """Turn instruction (reserved for narration, not produced by the planner)."""

    direction: TurnDirection
    angle: float


@dataclass(frozen=True)
class FloorChangeStep:
    """Change floor via an elevator or stairs."""

    from_floor: int
    to_floor: int
    via: TransitionMode


NavigationStep = Union[MoveStep, TurnStep, FloorChangeStep]


@dataclass(frozen=True)
class NavigationPath:
    """
    Routed path returned to the application.

    Attributes:
        steps: Ordered navigation steps
        degraded: True if some leg could not be routed clear of walls

    Notes:
        - total_distance sums Euclidean distances between consecutive
          MoveSteps, skipping over any other step kinds in between
        - A degraded path is a best-effort approximation that may cross
          walls; it is returned rather than failing
    """

    steps: Tuple[NavigationStep, ...] = ()
    degraded: bool = False

    def __post_init__(self):
        """Freeze step sequence."""
        object.__setattr__(self, 'steps', tuple(self.steps))

    @classmethod
    def from_points(cls, points: Iterable[Position], degraded: bool = False) -> "NavigationPath":
        """Build a single-floor path of MoveSteps."""
        return cls(steps=tuple(MoveStep(p) for p in points), degraded=degraded)

    @property
    def positions(self) -> List[Position]:
        """Positions of all MoveSteps in order."""
        return [s.position for s in self.steps if isinstance(s, MoveStep)]

    @property
    def floor_changes(self) -> List[FloorChangeStep]:
        """All floor-change steps in order."""
        return [s for s in self.steps if isinstance(s, FloorChangeStep)]

    @property
    def total_distance(self) -> float:
        """Sum of distances between consecutive MoveSteps."""
        positions = self.positions
        return sum(
            math.hypot(b.x - a.x, b.y - a.y)
            for a, b in zip(positions, positions[1:])
        )

    @property
    def is_empty(self) -> bool:
        """True if the path has no steps."""
        return not self.steps

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        steps: List[dict] = []
        for step in self.steps:
            if isinstance(step, MoveStep):
                steps.append({'move': {'x': step.position.x, 'y': step.position.y,
                                       'floor': step.position.floor}})
            elif isinstance(step, FloorChangeStep):
                steps.append({'floor_change': {'from': step.from_floor, 'to': step.to_floor,
                                               'via': step.via.value}})
            else:
                steps.append({'turn': {'direction': step.direction.value, 'angle': step.angle}})
        return {
            'steps': steps,
            'total_distance': self.total_distance,
            'degraded': self.degraded,
        }


def transition_mode_for(node: NavNode) -> Optional[TransitionMode]:
    """Map a transition node to its TransitionMode (None for other nodes)."""
    if node.type == NodeType.ELEVATOR:
        return TransitionMode.ELEVATOR
    if node.type == NodeType.STAIRS:
        return TransitionMode.STAIRS
    return None

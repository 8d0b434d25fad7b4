"""
Geometry primitives for wall-aware routing.

Segment intersection uses the determinant (cross-product) parametrization:

    P(t) = p1 + t * (p2 - p1)
    Q(u) = q1 + u * (q2 - q1)

A candidate segment is blocked by a wall when both t and u fall inside
[-buffer, 1 + buffer]. The buffer widens each segment slightly, so a path
grazing a wall's endpoint is still blocked. Parallel and collinear segments
(near-zero determinant) never intersect.
"""

from typing import Iterable, Tuple
import math

from inav_core.proto.navigation import Wall

Point = Tuple[float, float]

PARALLEL_EPSILON = 1e-10


def segments_intersect(
    p1: Point,
    p2: Point,
    q1: Point,
    q2: Point,
    buffer: float = 0.1,
) -> bool:
    """
    Test whether segment p1-p2 crosses segment q1-q2.

    Args:
        p1, p2: Candidate path segment
        q1, q2: Wall segment
        buffer: Parametric tolerance added to both ends of both segments

    Returns:
        True if the segments intersect within the buffered parameter range
    """
    dpx, dpy = p2[0] - p1[0], p2[1] - p1[1]
    dqx, dqy = q2[0] - q1[0], q2[1] - q1[1]

    det = dpx * dqy - dpy * dqx
    if abs(det) < PARALLEL_EPSILON:
        return False

    diff_x, diff_y = q1[0] - p1[0], q1[1] - p1[1]
    t = (diff_x * dqy - diff_y * dqx) / det
    u = (diff_x * dpy - diff_y * dpx) / det

    low, high = -buffer, 1.0 + buffer
    return low <= t <= high and low <= u <= high


def segment_crosses_wall(a: Point, b: Point, wall: Wall, buffer: float = 0.1) -> bool:
    """True if segment a-b is blocked by wall (thickness is ignored)."""
    return segments_intersect(a, b, wall.start, wall.end, buffer)


def segment_is_clear(a: Point, b: Point, walls: Iterable[Wall], buffer: float = 0.1) -> bool:
    """True if segment a-b crosses none of the walls."""
    return not any(segment_crosses_wall(a, b, wall, buffer) for wall in walls)


def euclidean(a: Point, b: Point) -> float:
    return math.hypot(b[0] - a[0], b[1] - a[1])


def manhattan(a: Point, b: Point) -> float:
    """Axis-aligned distance; used as A* cost and heuristic."""
    return abs(b[0] - a[0]) + abs(b[1] - a[1])


def grid_cell(point: Point) -> Tuple[int, int]:
    """Integer grid cell a point rounds to."""
    return (int(round(point[0])), int(round(point[1])))

"""
Corridor Detour Synthesis.

Replaces a wall-blocked leg a->b with a short axis-aligned detour. The
candidates form an ordered strategy list; the first whose every leg is
wall-clear wins:

1. L-shape, horizontal then vertical:  a -> (b.x, a.y) -> b
2. L-shape, vertical then horizontal:  a -> (a.x, b.y) -> b
3. Split at mid x:  a -> (mid_x, a.y) -> (mid_x, b.y) -> b
4. Split at mid y:  a -> (a.x, mid_y) -> (b.x, mid_y) -> b

If none is clear, a staircase subdivides a->b into fixed steps and moves
horizontally then vertically (or the reverse) at each step, keeping
whichever sub-legs are clear. The staircase is best-effort: a step with no
clear option is walked directly and the detour is marked not clear.
"""

from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

from inav_core.navigation.geometry import Point

ClearanceTest = Callable[[Point, Point], bool]
WaypointStrategy = Callable[[Point, Point], List[Point]]


@dataclass(frozen=True)
class DetourResult:
    """
    Replacement for one leg.

    Attributes:
        points: Points after the leg start, ending with the leg end
        clear: False if some sub-leg still crosses a wall
        strategy: Name of the strategy that produced the points
    """

    points: Tuple[Point, ...]
    clear: bool
    strategy: str


def _l_horizontal_first(a: Point, b: Point) -> List[Point]:
    return [(b[0], a[1])]


def _l_vertical_first(a: Point, b: Point) -> List[Point]:
    return [(a[0], b[1])]


def _split_mid_x(a: Point, b: Point) -> List[Point]:
    mid_x = (a[0] + b[0]) / 2.0
    return [(mid_x, a[1]), (mid_x, b[1])]


def _split_mid_y(a: Point, b: Point) -> List[Point]:
    mid_y = (a[1] + b[1]) / 2.0
    return [(a[0], mid_y), (b[0], mid_y)]


CORRIDOR_STRATEGIES: Sequence[Tuple[str, WaypointStrategy]] = (
    ('l_horizontal_first', _l_horizontal_first),
    ('l_vertical_first', _l_vertical_first),
    ('split_mid_x', _split_mid_x),
    ('split_mid_y', _split_mid_y),
)


def legs_clear(points: Sequence[Point], is_clear: ClearanceTest) -> bool:
    """True if every consecutive leg of a polyline is clear."""
    return all(is_clear(p, q) for p, q in zip(points, points[1:]))


def try_waypoints(
    a: Point,
    b: Point,
    strategies: Sequence[Tuple[str, WaypointStrategy]],
    is_clear: ClearanceTest,
) -> Optional[DetourResult]:
    """
    Return the first strategy whose polyline a -> waypoints -> b is clear.

    Returns:
        DetourResult, or None if no strategy succeeds
    """
    for name, strategy in strategies:
        waypoints = strategy(a, b)
        if legs_clear([a] + waypoints + [b], is_clear):
            return DetourResult(points=tuple(waypoints) + (b,), clear=True, strategy=name)
    return None


def staircase_detour(a: Point, b: Point, is_clear: ClearanceTest, steps: int = 4) -> DetourResult:
    """
    Best-effort staircase from a to b.

    Args:
        a: Leg start
        b: Leg end
        is_clear: Wall clearance test
        steps: Number of subdivisions

    Returns:
        DetourResult; clear is False if any step had to cross a wall
    """
    steps = max(1, steps)
    points: List[Point] = []
    clear = True
    current = a

    for i in range(1, steps + 1):
        fraction = i / steps
        target = (a[0] + (b[0] - a[0]) * fraction, a[1] + (b[1] - a[1]) * fraction)

        horizontal_corner = (target[0], current[1])
        vertical_corner = (current[0], target[1])

        if is_clear(current, horizontal_corner) and is_clear(horizontal_corner, target):
            points.extend([horizontal_corner, target])
        elif is_clear(current, vertical_corner) and is_clear(vertical_corner, target):
            points.extend([vertical_corner, target])
        else:
            points.append(target)
            if not is_clear(current, target):
                clear = False

        current = target

    # Final target is computed from the fraction; pin it to b exactly
    points[-1] = b
    return DetourResult(points=tuple(points), clear=clear, strategy='staircase')


def corridor_detour(a: Point, b: Point, is_clear: ClearanceTest, staircase_steps: int = 4) -> DetourResult:
    """
    Route a blocked leg a->b around walls.

    Args:
        a: Leg start
        b: Leg end
        is_clear: Wall clearance test
        staircase_steps: Subdivisions for the staircase fallback

    Returns:
        DetourResult from the first clear strategy, or the staircase
    """
    result = try_waypoints(a, b, CORRIDOR_STRATEGIES, is_clear)
    if result is not None:
        return result
    return staircase_detour(a, b, is_clear, staircase_steps)


LegRouter = Callable[[Point, Point], DetourResult]


def stitch_legs(points: Sequence[Point], is_clear: ClearanceTest, route_leg: LegRouter) -> Tuple[List[Point], bool]:
    """
    Connect consecutive route points, detouring around blocked legs.

    Every input point is kept in order; blocked legs get route_leg's
    replacement inserted between their endpoints.

    Returns:
        (stitched points, degraded) where degraded is True if some leg
        could not be made clear
    """
    if not points:
        return [], False

    stitched: List[Point] = [points[0]]
    degraded = False

    for a, b in zip(points, points[1:]):
        if is_clear(a, b):
            stitched.append(b)
            continue
        detour = route_leg(a, b)
        stitched.extend(detour.points)
        if not detour.clear:
            degraded = True

    return stitched, degraded

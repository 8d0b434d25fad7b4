"""
Background Route Worker.

Runs find_path on a single background thread so large graphs never block
the position-update path. Requests are processed in submission order;
results and navigation errors are delivered through the returned Future.
"""

from concurrent.futures import Future, ThreadPoolExecutor
from typing import Optional
import logging

from inav_core.proto.position import Position
from inav_core.navigation.router import FloorSnapshots, MultiFloorRouter

logger = logging.getLogger(__name__)


class RouteWorker:
    """
    Off-thread route planning.

    Usage:
        with RouteWorker() as worker:
            future = worker.submit(start, goal, snapshots)
            path = future.result(timeout=5.0)   # may raise NavigationError
    """

    def __init__(self, router: Optional[MultiFloorRouter] = None):
        self.router = router or MultiFloorRouter()
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="route-worker")

    def submit(self, start: Position, goal: Position, floor_snapshots: FloorSnapshots) -> Future:
        """
        Queue a route request.

        Snapshots are read only; the caller must not mutate them while the
        request is pending.
        """
        logger.debug(f"Queued route floor {start.floor} -> floor {goal.floor}")
        return self._executor.submit(self.router.find_path, start, goal, floor_snapshots)

    def shutdown(self, wait: bool = True):
        """Stop accepting requests; pending requests still complete if wait."""
        self._executor.shutdown(wait=wait)

    def __enter__(self) -> "RouteWorker":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.shutdown(wait=True)

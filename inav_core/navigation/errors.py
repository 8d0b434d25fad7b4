"""
Navigation failures surfaced to the caller.

Input-missing conditions raise; nothing here is retried automatically.
Insufficient geometry is not an error: degraded routes are returned with
degraded=True instead.
"""

from typing import Optional


class NavigationError(Exception):
    """Base class for routing failures."""


class FloorPlanNotFoundError(NavigationError, LookupError):
    """No node/wall snapshot was supplied for a requested floor."""

    def __init__(self, floor: int):
        super().__init__(f"No floor plan for floor {floor}")
        self.floor = floor


class NoTransitionFoundError(NavigationError):
    """No usable elevator/stairs connects the start floor to the goal floor."""

    def __init__(self, from_floor: int, to_floor: int, reason: Optional[str] = None):
        message = f"No transition from floor {from_floor} to floor {to_floor}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.from_floor = from_floor
        self.to_floor = to_floor
        self.reason = reason

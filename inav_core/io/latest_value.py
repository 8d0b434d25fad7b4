"""
Latest-Value Publication Cell.

Thread-safe holder for a continuously updated value (current position,
status, contributing measurements). Readers always see the most recent
value; there is no history. A late subscriber is immediately called with the
current value. Each subscriber receives values in publication order and
always ends on the latest one; values published while its callback is busy
may be coalesced.
"""

from typing import Callable, Generic, List, Optional, Tuple, TypeVar
import logging
import threading

logger = logging.getLogger(__name__)

T = TypeVar('T')


class _Subscription:
    """
    Delivery state of one subscriber.

    Deliveries are serialized: while one thread runs the callback, newer
    values offered by other threads are parked and the running thread
    delivers the newest of them before returning. Values older than one
    already offered are dropped, so the last value a subscriber sees is the
    cell's latest.
    """

    def __init__(self, callback: Callable[[T], None]):
        self.callback = callback
        self.active = True
        self._lock = threading.Lock()
        self._offered_version = -1
        self._pending: Optional[Tuple[T, int]] = None
        self._delivering = False

    def offer(self, value: T, version: int):
        with self._lock:
            if version <= self._offered_version:
                return
            self._offered_version = version
            self._pending = (value, version)
            if self._delivering:
                return
            self._delivering = True

        while True:
            with self._lock:
                if self._pending is None or not self.active:
                    self._pending = None
                    self._delivering = False
                    return
                value, _ = self._pending
                self._pending = None
            try:
                self.callback(value)
            except Exception:
                logger.exception("LatestValue subscriber raised")


class LatestValue(Generic[T]):
    """
    Observable latest-value cell.

    Usage:
        position = LatestValue(None)
        unsubscribe = position.subscribe(lambda p: print(p))

        position.set(new_position)        # notifies subscribers
        value, version = position.wait_for_update(last_version, timeout=1.0)
    """

    def __init__(self, initial: Optional[T] = None):
        self._condition = threading.Condition()
        self._value = initial
        self._version = 0
        self._subscribers: List[_Subscription] = []

    def get(self) -> Optional[T]:
        """Current value."""
        with self._condition:
            return self._value

    @property
    def version(self) -> int:
        """Number of updates since creation."""
        with self._condition:
            return self._version

    def set(self, value: T, only_if_changed: bool = False) -> bool:
        """
        Publish a new value.

        Args:
            value: New value
            only_if_changed: Skip publication when value equals the current one

        Returns:
            True if the value was published
        """
        with self._condition:
            if only_if_changed and value == self._value:
                return False
            self._value = value
            self._version += 1
            version = self._version
            subscribers = list(self._subscribers)
            self._condition.notify_all()

        # Callbacks run outside the cell lock so they may read or set the cell
        for subscription in subscribers:
            subscription.offer(value, version)
        return True

    def subscribe(self, callback: Callable[[T], None]) -> Callable[[], None]:
        """
        Register a change callback and deliver the current value to it.

        Returns:
            Function that removes the subscription
        """
        subscription = _Subscription(callback)
        with self._condition:
            self._subscribers.append(subscription)
            current, version = self._value, self._version

        subscription.offer(current, version)

        def unsubscribe():
            with self._condition:
                subscription.active = False
                if subscription in self._subscribers:
                    self._subscribers.remove(subscription)

        return unsubscribe

    def wait_for_update(self, since_version: int, timeout: Optional[float] = None) -> Tuple[Optional[T], int]:
        """
        Block until the version moves past since_version.

        Args:
            since_version: Last version the caller has seen
            timeout: Maximum wait (s), None waits forever

        Returns:
            (value, version); version equals since_version on timeout
        """
        with self._condition:
            self._condition.wait_for(lambda: self._version > since_version, timeout=timeout)
            return self._value, self._version

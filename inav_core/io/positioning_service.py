"""
Serialized Positioning Service.

Scan callbacks arrive on arbitrary platform threads. They never touch the
engine directly: each callback enqueues an event into a bounded inbox that
a single consumer thread drains, so the measurement window and stability
state have exactly one owner.

- BLE advertisements: pushed by a BleScanner implementation
- WiFi scans: pulled by a fixed-interval timer thread
- Results: published through LatestValue cells (latest value, no history)
- Backpressure: a full inbox drops the event ('queue_full'), callbacks
  never block
- Stop: halts the BLE scanner and the WiFi timer, discards queued events
  and drops anything arriving afterwards ('after_stop')
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Optional, Sequence, Tuple
import logging
import queue
import threading
import time

from inav_core.proto.position import Position, PositioningStatus, SignalStrength
from inav_core.proto.radio import Measurement, RadioObservation
from inav_core.localization.positioning_engine import PositioningEngine
from inav_core.localization.signal_quality import signal_strength_from_status
from inav_core.io.latest_value import LatestValue
from inav_core.metrics import get_metrics

logger = logging.getLogger(__name__)

WifiScanFunction = Callable[[], Sequence[RadioObservation]]

_STOP = object()


@dataclass
class ServiceConfig:
    """
    Configuration for the positioning service.

    Attributes:
        inbox_size: Maximum queued events before dropping
        wifi_scan_interval_s: Period of the WiFi re-scan timer (s)
        join_timeout_s: Maximum wait for worker threads on stop (s)
    """

    inbox_size: int = 1000
    wifi_scan_interval_s: float = 10.0
    join_timeout_s: float = 2.0

    def __post_init__(self):
        """Validate configuration."""
        if self.inbox_size < 1:
            raise ValueError(f"inbox_size must be >= 1: {self.inbox_size}")
        if self.wifi_scan_interval_s <= 0:
            raise ValueError(f"wifi_scan_interval_s must be positive: {self.wifi_scan_interval_s}")


class BleScanner(ABC):
    """
    Platform BLE scan subsystem.

    Implementations call on_advertisement from any thread for every
    advertisement, and on_failure if scanning cannot start or breaks.
    """

    @abstractmethod
    def start(
        self,
        on_advertisement: Callable[[RadioObservation], None],
        on_failure: Callable[[str], None],
    ):
        """Begin delivering advertisements."""

    @abstractmethod
    def stop(self):
        """Stop delivering advertisements."""


class PositioningService:
    """
    Run a PositioningEngine behind a single-consumer inbox.

    Usage:
        service = PositioningService(engine, ble_scanner, wifi_scan=scan_wifi)
        service.position.subscribe(lambda p: print(p))
        service.start()
        ...
        service.stop()
    """

    def __init__(
        self,
        engine: PositioningEngine,
        ble_scanner: Optional[BleScanner] = None,
        wifi_scan: Optional[WifiScanFunction] = None,
        config: Optional[ServiceConfig] = None,
    ):
        """
        Initialize service.

        Args:
            engine: Engine owned by the consumer thread from start() on
            ble_scanner: BLE scan subsystem (optional)
            wifi_scan: Function returning one WiFi scan (optional)
            config: Service configuration (uses defaults if None)
        """
        self.engine = engine
        self.ble_scanner = ble_scanner
        self.wifi_scan = wifi_scan
        self.config = config or ServiceConfig()
        self.metrics = get_metrics()

        self.position: LatestValue[Optional[Position]] = LatestValue(None)
        self.status: LatestValue[PositioningStatus] = LatestValue(PositioningStatus.IDLE)
        self.measurements: LatestValue[Tuple[Measurement, ...]] = LatestValue(())
        self.signal_strength: LatestValue[SignalStrength] = LatestValue(SignalStrength.UNAVAILABLE)

        self._inbox: queue.Queue = queue.Queue(maxsize=self.config.inbox_size)
        self._lifecycle_lock = threading.Lock()
        self._running = False
        self._stop_event = threading.Event()
        self._consumer: Optional[threading.Thread] = None
        self._wifi_timer: Optional[threading.Thread] = None

    @property
    def is_running(self) -> bool:
        return self._running

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self):
        """Start the consumer thread, the BLE scanner and the WiFi timer."""
        with self._lifecycle_lock:
            if self._running:
                return

            self._stop_event.clear()
            self._inbox = queue.Queue(maxsize=self.config.inbox_size)
            self._running = True

            self.engine.start()
            self._publish()

            self._consumer = threading.Thread(
                target=self._consume_loop, name="positioning-consumer", daemon=True
            )
            self._consumer.start()

            if self.ble_scanner is not None:
                self.ble_scanner.start(self.on_ble_advertisement, self.on_scan_failed)

            if self.wifi_scan is not None:
                self._wifi_timer = threading.Thread(
                    target=self._wifi_loop, name="wifi-rescan", daemon=True
                )
                self._wifi_timer.start()

        logger.info("Positioning service started")

    def stop(self):
        """
        Stop scanning.

        Events still queued are discarded; an event being processed finishes
        but nothing further is scheduled.
        """
        with self._lifecycle_lock:
            if not self._running:
                return

            self._running = False
            self._stop_event.set()

            if self.ble_scanner is not None:
                self.ble_scanner.stop()

            discarded = self._discard_queued()
            if discarded:
                self.metrics.increment_drop('after_stop', discarded)

            self._inbox.put(_STOP)

            for thread in (self._consumer, self._wifi_timer):
                if thread is not None and thread is not threading.current_thread():
                    thread.join(timeout=self.config.join_timeout_s)
            self._consumer = None
            self._wifi_timer = None

            self.engine.stop()
            self._publish()

        logger.info(f"Positioning service stopped ({discarded} queued events discarded)")

    # ------------------------------------------------------------------
    # Callbacks (any thread, never block)
    # ------------------------------------------------------------------

    def on_ble_advertisement(self, observation: RadioObservation) -> bool:
        """Enqueue one BLE observation."""
        return self._submit(('ble', observation))

    def on_wifi_scan(self, observations: Sequence[RadioObservation], now: Optional[float] = None) -> bool:
        """Enqueue one WiFi scan."""
        return self._submit(('wifi', tuple(observations), now))

    def on_scan_failed(self, reason: str) -> bool:
        """Enqueue a scan failure report."""
        return self._submit(('error', reason))

    def drain(self, timeout: Optional[float] = None) -> bool:
        """
        Wait until every event queued before this call has been processed.

        Returns:
            True if the inbox drained within timeout
        """
        barrier = threading.Event()
        if not self._submit(('barrier', barrier)):
            return False
        return barrier.wait(timeout)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _submit(self, event: tuple) -> bool:
        if not self._running:
            self.metrics.increment_drop('after_stop')
            return False
        try:
            self._inbox.put_nowait(event)
        except queue.Full:
            self.metrics.increment_drop('queue_full')
            return False
        return True

    def _discard_queued(self) -> int:
        discarded = 0
        while True:
            try:
                event = self._inbox.get_nowait()
            except queue.Empty:
                break
            if event is not _STOP and event[0] == 'barrier':
                event[1].set()
                continue
            discarded += 1
        return discarded

    def _consume_loop(self):
        while True:
            event = self._inbox.get()
            if event is _STOP:
                break

            kind = event[0]
            if kind == 'barrier':
                event[1].set()
                continue
            if self._stop_event.is_set():
                self.metrics.increment_drop('after_stop')
                continue

            try:
                self._dispatch(event)
            except Exception:
                logger.exception(f"Failed to process {kind} event")
                self.engine.report_error(f"{kind} event processing failed")
            self._publish()

    def _dispatch(self, event: tuple):
        kind = event[0]
        if kind == 'ble':
            self.engine.handle_observation(event[1])
        elif kind == 'wifi':
            _, observations, now = event
            self.engine.handle_wifi_scan(observations, now)
        elif kind == 'error':
            self.engine.report_error(event[1])
        else:
            raise ValueError(f"Unknown event kind: {kind!r}")

    def _wifi_loop(self):
        while not self._stop_event.wait(self.config.wifi_scan_interval_s):
            try:
                observations = self.wifi_scan()
            except Exception as e:
                self.on_scan_failed(f"WiFi scan failed: {e}")
                continue
            self.on_wifi_scan(observations, time.time())

    def _publish(self):
        status = self.engine.status
        position = self.engine.current_position

        self.position.set(position, only_if_changed=True)
        self.status.set(status, only_if_changed=True)
        self.measurements.set(self.engine.contributing_measurements, only_if_changed=True)
        self.signal_strength.set(signal_strength_from_status(status, position), only_if_changed=True)

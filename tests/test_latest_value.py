"""
Unit tests for the latest-value publication cell.
"""

import logging
import threading

from inav_core.io import LatestValue


class TestLatestValue:
    """Tests for get/set and versioning."""

    def test_initial(self):
        """Initial value is readable at version 0."""
        cell = LatestValue(5)
        assert cell.get() == 5
        assert cell.version == 0

    def test_set(self):
        """Each publication bumps the version."""
        cell = LatestValue()
        assert cell.set(1)
        assert cell.set(1)
        assert cell.get() == 1
        assert cell.version == 2

    def test_only_if_changed(self):
        """Equal values are skipped when requested."""
        cell = LatestValue(1)
        assert not cell.set(1, only_if_changed=True)
        assert cell.version == 0
        assert cell.set(2, only_if_changed=True)
        assert cell.version == 1


class TestSubscribers:
    """Tests for change subscription."""

    def test_late_subscriber_gets_current(self):
        """Subscribing delivers the current value immediately."""
        cell = LatestValue("now")
        received = []

        cell.subscribe(received.append)

        assert received == ["now"]

    def test_notified_on_change(self):
        """Subscribers see every published value."""
        cell = LatestValue(0)
        received = []
        cell.subscribe(received.append)

        cell.set(1)
        cell.set(2)
        cell.set(2, only_if_changed=True)

        assert received == [0, 1, 2]

    def test_unsubscribe(self):
        """Unsubscribed callbacks are not called again."""
        cell = LatestValue(0)
        received = []
        unsubscribe = cell.subscribe(received.append)

        unsubscribe()
        unsubscribe()
        cell.set(1)

        assert received == [0]

    def test_failing_subscriber_is_isolated(self, caplog):
        """One failing subscriber does not stop the others."""
        cell = LatestValue(0)
        received = []

        def broken(value):
            if value:
                raise RuntimeError("boom")

        cell.subscribe(broken)
        cell.subscribe(received.append)

        with caplog.at_level(logging.ERROR):
            assert cell.set(1)

        assert received == [0, 1]
        assert "subscriber raised" in caplog.text

    def test_callback_may_read_cell(self):
        """Callbacks run outside the lock."""
        cell = LatestValue(0)
        seen = []
        cell.subscribe(lambda _: seen.append(cell.get()))

        cell.set(3)

        assert seen == [0, 3]

    def test_update_during_initial_delivery(self):
        """A value published on another thread while the current one is being
        delivered reaches the subscriber last."""
        cell = LatestValue("v1")
        received = []

        def on_value(value):
            received.append(value)
            if value == "v1":
                writer = threading.Thread(target=cell.set, args=("v2",))
                writer.start()
                writer.join(5.0)

        cell.subscribe(on_value)

        assert received == ["v1", "v2"]
        assert received[-1] == cell.get()

    def test_callback_may_publish(self):
        """A callback publishing to its own cell sees the new value afterwards."""
        cell = LatestValue(0)
        received = []

        def on_value(value):
            received.append(value)
            if value < 2:
                cell.set(value + 1)

        cell.subscribe(on_value)

        assert received == [0, 1, 2]
        assert cell.version == 2

    def test_concurrent_writers_end_on_latest(self):
        """With many writers the subscriber's last value is the cell's value."""
        cell = LatestValue(0)
        received = []
        cell.subscribe(received.append)

        writers = [
            threading.Thread(target=lambda n=n: [cell.set(n * 100 + i) for i in range(50)])
            for n in range(4)
        ]
        for writer in writers:
            writer.start()
        for writer in writers:
            writer.join()

        assert received[-1] == cell.get()


class TestWaitForUpdate:
    """Tests for blocking waits."""

    def test_timeout(self):
        """Without an update the caller's version comes back."""
        cell = LatestValue("a")
        value, version = cell.wait_for_update(0, timeout=0.01)
        assert (value, version) == ("a", 0)

    def test_already_newer(self):
        """Returns immediately when the cell is already past the version."""
        cell = LatestValue()
        cell.set("b")
        assert cell.wait_for_update(0, timeout=0) == ("b", 1)

    def test_cross_thread(self):
        """A writer on another thread wakes the waiter."""
        cell = LatestValue()
        timer = threading.Timer(0.05, cell.set, args=("c",))
        timer.start()

        value, version = cell.wait_for_update(0, timeout=5.0)
        timer.join()

        assert (value, version) == ("c", 1)

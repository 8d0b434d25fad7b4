"""
Unit tests for the diagnostics collector.

Tests cover:
- Counters and drop reason codes
- Bounded histograms and their statistics
- Snapshots, drop rates and reset
- Concurrent reporting from several threads
- The shared collector used by components
"""

import logging
import threading
import time

import pytest

from inav_core.metrics import (
    Histogram,
    MetricsCollector,
    MetricsSnapshot,
    get_metrics,
    reset_metrics,
)


class TestCounters:
    """Tests for plain counters and drop reasons."""

    def test_standard_counters_start_at_zero(self):
        """Standard counters and every drop reason exist from the start."""
        snapshot = MetricsCollector().snapshot()

        for name in MetricsCollector.STANDARD_COUNTERS:
            assert snapshot.counters[name] == 0
        assert set(snapshot.drop_reasons) == set(MetricsCollector.DROP_REASONS)
        assert snapshot.total_dropped() == 0

    def test_unknown_counter_reads_zero(self):
        assert MetricsCollector().get_counter('never_touched') == 0

    def test_increment(self):
        metrics = MetricsCollector()
        metrics.increment('route_requests')
        metrics.increment('route_requests', 4)
        assert metrics.get_counter('route_requests') == 5

    def test_drop_counts_towards_total(self):
        """A drop is recorded per reason and in observations_dropped."""
        metrics = MetricsCollector()
        metrics.increment_drop('invalid_rssi')
        metrics.increment_drop('after_stop', 2)

        assert metrics.get_drop_count('invalid_rssi') == 1
        assert metrics.get_drop_count('after_stop') == 2
        assert metrics.get_counter('observations_dropped') == 3

    def test_unknown_drop_reason_warns(self, caplog):
        """Unlisted reasons are counted and logged as a warning."""
        metrics = MetricsCollector()

        with caplog.at_level(logging.WARNING):
            metrics.increment_drop('cosmic_ray')

        assert "cosmic_ray" in caplog.text
        assert metrics.get_drop_count('cosmic_ray') == 1
        assert metrics.get_counter('observations_dropped') == 1

    def test_documented_reason_codes(self):
        """Every pipeline drop path has a documented code."""
        assert set(MetricsCollector.DROP_REASONS) == {
            'invalid_rssi',
            'unstable_device',
            'stale',
            'queue_full',
            'unknown_access_point',
            'scan_failed',
            'after_stop',
        }
        assert all(MetricsCollector.DROP_REASONS.values())


class TestHistograms:
    """Tests for histogram recording."""

    def test_stats(self):
        """Fused accuracy samples summarize correctly."""
        metrics = MetricsCollector()
        for value in (1.23, 2.45, 1.80):
            metrics.record_histogram('fused_accuracy', value)

        stats = metrics.get_histogram_stats('fused_accuracy')

        assert stats['count'] == 3
        assert stats['min'] == pytest.approx(1.23)
        assert stats['max'] == pytest.approx(2.45)
        assert stats['mean'] == pytest.approx(1.8267, abs=0.001)
        assert stats['median'] == pytest.approx(1.80)

    def test_missing_histogram(self):
        assert MetricsCollector().get_histogram_stats('a_star_expansions') is None

    def test_percentiles(self):
        """Median and p95 over a uniform range of expansion counts."""
        metrics = MetricsCollector()
        for i in range(100):
            metrics.record_histogram('a_star_expansions', i)

        stats = metrics.get_histogram_stats('a_star_expansions')

        assert stats['median'] == pytest.approx(49.5)
        assert 94.0 <= stats['p95'] <= 96.0

    def test_bounded(self):
        """Only the most recent samples are kept."""
        metrics = MetricsCollector(histogram_size=50)
        for i in range(200):
            metrics.record_histogram('planning_latency_ms', float(i))

        samples = metrics.snapshot().histograms['planning_latency_ms']
        assert len(samples) == 50
        assert samples[0] == 150.0
        assert samples[-1] == 199.0

    def test_invalid_size(self):
        with pytest.raises(ValueError):
            MetricsCollector(histogram_size=0)

    def test_histogram_helper(self):
        """Histogram on its own."""
        histogram = Histogram(size=3)
        assert histogram.stats() is None

        for value in (5, 1, 3, 7):
            histogram.add(value)

        assert histogram.values() == [1.0, 3.0, 7.0]
        assert histogram.stats()['max'] == 7.0


class TestSnapshot:
    """Tests for snapshots."""

    def test_independent_copies(self):
        """Later updates do not leak into an earlier snapshot."""
        metrics = MetricsCollector()
        metrics.increment('observations_in', 10)
        metrics.record_histogram('fused_accuracy', 1.0)
        first = metrics.snapshot()

        metrics.increment('observations_in', 5)
        metrics.record_histogram('fused_accuracy', 2.0)
        second = metrics.snapshot()

        assert first.counters['observations_in'] == 10
        assert first.histograms['fused_accuracy'] == [1.0]
        assert second.counters['observations_in'] == 15

    def test_timestamp(self):
        before = time.time()
        snapshot = MetricsCollector().snapshot()
        assert before <= snapshot.timestamp <= time.time()

    def test_drop_rate(self):
        """8 drops out of 100 observations is 8%."""
        metrics = MetricsCollector()
        metrics.increment('observations_in', 100)
        metrics.increment_drop('unstable_device', 5)
        metrics.increment_drop('stale', 3)

        assert metrics.snapshot().drop_rate(100) == pytest.approx(8.0)
        assert metrics.snapshot().drop_rate(0) == 0.0

    def test_top_drop_reasons(self):
        """Most frequent reasons first, ties by name, zeros omitted."""
        snapshot = MetricsSnapshot(
            timestamp=0.0,
            counters={},
            drop_reasons={'stale': 2, 'queue_full': 5, 'after_stop': 2, 'scan_failed': 0},
            histograms={},
        )
        assert snapshot.top_drop_reasons() == ['queue_full', 'after_stop', 'stale']


class TestReset:
    """Tests for reset."""

    def test_reset(self):
        """Reset zeroes counters, drops and histograms but keeps standard keys."""
        metrics = MetricsCollector()
        metrics.increment('observations_in', 100)
        metrics.increment_drop('stale', 5)
        metrics.record_histogram('fused_accuracy', 1.23)

        metrics.reset()

        snapshot = metrics.snapshot()
        assert snapshot.counters['observations_in'] == 0
        assert snapshot.counters['observations_dropped'] == 0
        assert snapshot.total_dropped() == 0
        assert snapshot.histograms == {}
        assert metrics.uptime_s < 5.0


class TestConcurrency:
    """Tests for reports from several threads at once."""

    def test_concurrent_reports(self):
        """Counters, drops and histograms stay consistent under contention."""
        metrics = MetricsCollector(histogram_size=100000)
        reasons = ['unstable_device', 'stale', 'queue_full']
        per_thread = 500

        def report(reason):
            for i in range(per_thread):
                metrics.increment('observations_in')
                metrics.increment_drop(reason)
                metrics.record_histogram('fused_accuracy', i)

        threads = [
            threading.Thread(target=report, args=(reason,))
            for reason in reasons
            for _ in range(4)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        snapshot = metrics.snapshot()
        total = len(threads) * per_thread
        assert snapshot.counters['observations_in'] == total
        assert snapshot.counters['observations_dropped'] == total
        for reason in reasons:
            assert snapshot.drop_reasons[reason] == 4 * per_thread
        assert len(snapshot.histograms['fused_accuracy']) == total


class TestSharedCollector:
    """Tests for the process-wide collector."""

    def test_singleton(self):
        assert get_metrics() is get_metrics()

    def test_reset_keeps_instance(self):
        """Components holding the collector keep a valid reference after reset."""
        held = get_metrics()
        held.increment('route_requests', 3)

        reset_metrics()

        assert get_metrics() is held
        assert held.get_counter('route_requests') == 0


class TestSummary:
    """Tests for the human-readable summary."""

    def test_summary_lines(self):
        """Drops are listed most frequent first with the overall rate."""
        metrics = MetricsCollector()
        metrics.increment('observations_in', 10)
        metrics.increment_drop('stale', 1)
        metrics.increment_drop('unstable_device', 3)
        metrics.record_histogram('planning_latency_ms', 2.0)

        lines = metrics.summary_lines()

        assert lines[0].startswith("METRICS SUMMARY")
        drops = lines.index("DROPS (40.0% of input)")
        assert "unstable_device" in lines[drops + 1]
        assert "stale" in lines[drops + 2]
        assert any(line.strip().startswith("planning_latency_ms: n=1") for line in lines)

    def test_log_summary(self, caplog):
        metrics = MetricsCollector()
        metrics.increment_drop('queue_full')

        with caplog.at_level(logging.INFO):
            metrics.log_summary()

        assert "METRICS SUMMARY" in caplog.text
        assert "queue_full" in caplog.text

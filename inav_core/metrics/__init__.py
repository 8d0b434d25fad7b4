"""
Process-wide diagnostics for positioning and routing.

Components grab the shared collector once and report into it:

    self.metrics = get_metrics()
    self.metrics.increment_drop('stale')
"""

from .counters import Histogram, MetricsCollector, MetricsSnapshot

_global_metrics = None


def get_metrics() -> MetricsCollector:
    """Shared collector, created on first use."""
    global _global_metrics
    if _global_metrics is None:
        _global_metrics = MetricsCollector()
    return _global_metrics


def reset_metrics():
    """Zero the shared collector without replacing it."""
    get_metrics().reset()


__all__ = ['Histogram', 'MetricsCollector', 'MetricsSnapshot', 'get_metrics', 'reset_metrics']

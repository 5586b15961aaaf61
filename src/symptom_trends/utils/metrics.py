# ============================================================================
# src/symptom_trends/utils/metrics.py
# ============================================================================
"""
In-process metrics for the trend engine.

Counters and timers are cheap dict updates guarded by a lock so the
dispatcher can record from worker callbacks.
"""

import time
import threading
import statistics
from typing import Deque, Dict, Optional, Any
from collections import defaultdict, deque


DEFAULT_TIMER_SAMPLES = 1000


class MetricsCollector:
    """
    Collect and aggregate metrics.

    Timers keep only the most recent max_timer_samples durations per name,
    so a long-running process holds a bounded window.
    """

    def __init__(self, max_timer_samples: int = DEFAULT_TIMER_SAMPLES):
        self._counters: Dict[str, int] = defaultdict(int)
        self._gauges: Dict[str, float] = {}
        self._timers: Dict[str, Deque[float]] = defaultdict(lambda: deque(maxlen=max_timer_samples))
        self._lock = threading.Lock()

    def increment(self, name: str, value: int = 1) -> None:
        """
        Increment counter.

        Args:
            name: Counter name
            value: Increment amount
        """
        with self._lock:
            self._counters[name] += value

    def set_gauge(self, name: str, value: float) -> None:
        """Set gauge value."""
        with self._lock:
            self._gauges[name] = value

    def record_time(self, name: str, duration: float) -> None:
        """
        Record operation duration.

        Args:
            name: Operation name
            duration: Duration in seconds
        """
        with self._lock:
            self._timers[name].append(duration)

    def get_counter(self, name: str) -> int:
        """Get counter value."""
        return self._counters.get(name, 0)

    def get_gauge(self, name: str) -> Optional[float]:
        """Get gauge value."""
        return self._gauges.get(name)

    def get_timer_stats(self, name: str) -> Optional[Dict[str, float]]:
        """
        Get timer statistics.

        Returns:
            Dict with count, min, max, mean, median, p95
        """
        values = self._timers.get(name, [])
        if not values:
            return None

        sorted_values = sorted(values)
        count = len(values)

        return {
            'count': count,
            'min': sorted_values[0],
            'max': sorted_values[-1],
            'mean': statistics.mean(values),
            'median': statistics.median(values),
            'p95': sorted_values[min(int(count * 0.95), count - 1)],
        }

    def get_all_metrics(self) -> Dict[str, Any]:
        """Get all metrics."""
        with self._lock:
            timer_names = list(self._timers.keys())
            counters = dict(self._counters)
            gauges = dict(self._gauges)

        return {
            'counters': counters,
            'gauges': gauges,
            'timers': {name: self.get_timer_stats(name) for name in timer_names},
        }

    def reset(self) -> None:
        """Reset all metrics."""
        with self._lock:
            self._counters.clear()
            self._gauges.clear()
            self._timers.clear()


class Timer:
    """Context manager for timing operations."""

    def __init__(self, collector: MetricsCollector, operation: str):
        self.collector = collector
        self.operation = operation
        self.start_time: Optional[float] = None
        self.duration: Optional[float] = None

    def __enter__(self):
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.duration = time.perf_counter() - self.start_time
        self.collector.record_time(self.operation, self.duration)


# Global metrics instance
_global_metrics = MetricsCollector()


def get_metrics() -> MetricsCollector:
    """Get global metrics collector."""
    return _global_metrics

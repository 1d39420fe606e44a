"""Operation profiling for B-trees: timings and structural event counts."""

import time
import functools
from collections import Counter, defaultdict
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterator, List, Optional
import statistics

# Structural events a B-tree reports while it rebalances
STRUCTURAL_EVENTS = (
    "split",
    "root_split",
    "borrow_left",
    "borrow_right",
    "merge",
    "root_collapse",
)


@dataclass
class OperationMetrics:
    """Timings of one tree operation plus the rebalancing work it caused."""
    times: List[float] = field(default_factory=list)
    events: Counter = field(default_factory=Counter)

    @property
    def call_count(self) -> int:
        return len(self.times)

    @property
    def total_time(self) -> float:
        return sum(self.times)

    @property
    def avg_time(self) -> float:
        return self.total_time / self.call_count if self.times else 0.0

    @property
    def median_time(self) -> float:
        return statistics.median(self.times) if self.times else 0.0

    def events_per_call(self, event: str) -> float:
        """Average number of times `event` happened per call."""
        return self.events[event] / self.call_count if self.times else 0.0

    def __str__(self) -> str:
        counts = ", ".join(f"{e}={self.events[e]}" for e in STRUCTURAL_EVENTS if self.events[e])
        return (f"Calls: {self.call_count}, "
                f"Total: {self.total_time:.6f}s, "
                f"Avg: {self.avg_time:.6f}s"
                + (f", {counts}" if counts else ""))


class PerformanceTracker:
    """
    Collects per-operation timings and structural event counts.

    Tracking starts disabled. While enabled, every event the tree records is
    attributed to the innermost tracked operation currently running, so a
    report shows how many splits an insert or how many merges a delete cost.
    Events raised outside any tracked operation are dropped.
    """

    _instance = None

    @classmethod
    def get_instance(cls) -> 'PerformanceTracker':
        if cls._instance is None:
            cls._instance = PerformanceTracker()
        return cls._instance

    def __init__(self):
        self.metrics: Dict[str, OperationMetrics] = defaultdict(OperationMetrics)
        self.enabled = False
        self._running: List[str] = []

    def enable(self) -> None:
        self.enabled = True

    def disable(self) -> None:
        self.enabled = False

    def reset(self) -> None:
        self.metrics.clear()
        self._running.clear()

    def record_event(self, event: str) -> None:
        if self.enabled and self._running:
            self.metrics[self._running[-1]].events[event] += 1

    def event_counts(self, operation: Optional[str] = None) -> Counter:
        """Event counts of one operation, or summed over all operations."""
        if operation is not None:
            return Counter(self.metrics[operation].events) if operation in self.metrics else Counter()
        total = Counter()
        for metrics in self.metrics.values():
            total.update(metrics.events)
        return total

    def report(self, sort_by: str = 'total_time') -> str:
        """Render a table with one row per operation and one column per event."""
        if not self.metrics:
            return "No performance data collected."

        header = f"{'Operation':<28} {'Calls':>8} {'Total (s)':>11} {'Avg (s)':>11}"
        header += "".join(f" {e:>13}" for e in STRUCTURAL_EVENTS)
        lines = ["Performance Metrics:", "-" * len(header), header, "-" * len(header)]

        rows = sorted(self.metrics.items(), key=lambda item: getattr(item[1], sort_by), reverse=True)
        for name, m in rows:
            row = f"{name:<28} {m.call_count:>8} {m.total_time:>11.6f} {m.avg_time:>11.6f}"
            row += "".join(f" {m.events[e]:>13}" for e in STRUCTURAL_EVENTS)
            lines.append(row)

        return "\n".join(lines)


def record_event(event: str) -> None:
    """Attribute a structural event to the running operation, if tracking is on."""
    tracker = PerformanceTracker.get_instance()
    if tracker.enabled:
        tracker.record_event(event)


@contextmanager
def profiled(reset: bool = True) -> Iterator[PerformanceTracker]:
    """
    Enable tracking for the duration of a with-block and restore the previous
    state afterwards.

        with profiled() as tracker:
            tree.insert(1, "a")
        print(tracker.report())
    """
    tracker = PerformanceTracker.get_instance()
    if reset:
        tracker.reset()
    was_enabled = tracker.enabled
    tracker.enable()
    try:
        yield tracker
    finally:
        tracker.enabled = was_enabled


def track_performance(method: Optional[Callable] = None, *,
                      tag: Optional[str] = None) -> Callable:
    """
    Mark a tree operation for profiling.

    Usable bare or as @track_performance(tag="name"). The operation is
    reported under `tag`, or its qualified name when no tag is given.
    """
    def decorator(func):
        name = tag or func.__qualname__

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            tracker = PerformanceTracker.get_instance()
            if not tracker.enabled:
                return func(*args, **kwargs)

            tracker._running.append(name)
            start = time.perf_counter()
            try:
                return func(*args, **kwargs)
            finally:
                tracker.metrics[name].times.append(time.perf_counter() - start)
                tracker._running.pop()
        return wrapper

    if method is None:
        return decorator
    return decorator(method)

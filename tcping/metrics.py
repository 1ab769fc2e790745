from __future__ import annotations

import math

from .errors import is_cancelled
from .models import MetricsSnapshot, Stats, Target
from .parsing import format_duration

_SUMMARY_TEMPLATE = """
Ping statistics {target}
\t{total} probes sent.
\t{successful} successful, {failed} failed.
Approximate trip times:
\tMinimum = {minimum}, Maximum = {maximum}, Average = {average}"""


class PingMetrics:
    """Running statistics for one pinger run.

    Folds Stats records in the order they were produced. Only the pinger's
    worker thread writes, so no lock is taken. Cancelled probes count as
    sent but not as failed.
    """

    def __init__(self) -> None:
        self._total = 0
        self._failed = 0
        self._min = math.inf
        self._max = 0.0
        self._total_duration = 0.0

    def fold(self, stats: Stats) -> None:
        """Add one probe attempt to the running counters."""
        self._total += 1
        if stats.error is not None and not is_cancelled(stats.error):
            self._failed += 1
        self._min = min(self._min, stats.duration)
        self._max = max(self._max, stats.duration)
        self._total_duration += stats.duration

    def snapshot(self) -> MetricsSnapshot:
        """Return the aggregated counters; durations are 0 before the first probe."""
        total = self._total
        return MetricsSnapshot(
            total=total,
            failed=self._failed,
            successful=total - self._failed,
            min_duration=self._min if total else 0.0,
            max_duration=self._max,
            total_duration=self._total_duration,
            avg_duration=(self._total_duration / total) if total else 0.0,
        )

    def summarize(self, target: Target) -> str:
        snap = self.snapshot()
        return _SUMMARY_TEMPLATE.format(
            target=target,
            total=snap.total,
            successful=snap.successful,
            failed=snap.failed,
            minimum=format_duration(snap.min_duration),
            maximum=format_duration(snap.max_duration),
            average=format_duration(snap.avg_duration),
        )

from __future__ import annotations

import json
import sys
import threading
import time
from typing import Any, Optional, TextIO

from .base import BaseProbe
from .errors import format_error, is_cancelled
from .metrics import PingMetrics
from .models import Stats, Target
from .parsing import format_duration

DEFAULT_INTERVAL = 1.0
DEFAULT_COUNTER = 4

IDLE = "idle"
RUNNING = "running"
STOPPING = "stopping"
STOPPED = "stopped"


class Pinger:
    """Probes one target at a fixed interval and prints every attempt.

    run() blocks, so callers start it on a worker thread and wait on
    done/wait() for either completion or their own reason to stop().
    The first probe fires immediately; a counter <= 0 means run until
    stopped. stop() may be called any number of times from any thread
    and also cancels the probe in flight.
    """

    def __init__(
        self,
        target: Target,
        probe: BaseProbe,
        interval: float = DEFAULT_INTERVAL,
        counter: int = DEFAULT_COUNTER,
        out: Optional[TextIO] = None,
        metrics: Optional[PingMetrics] = None,
        verbose: bool = False,
        log_out: Optional[TextIO] = None,
    ) -> None:
        self._target = target
        self._probe = probe
        self._interval = interval
        self._counter = counter
        self._out = out if out is not None else sys.stdout
        self._metrics = metrics if metrics is not None else PingMetrics()
        self._verbose = verbose
        self._log_out = log_out if log_out is not None else sys.stderr

        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._state = IDLE
        self._sent = 0

    def run(self) -> None:
        with self._lock:
            if self._state != IDLE:
                raise RuntimeError(f"pinger cannot run from state {self._state}")
            self._state = RUNNING

        interval = self._interval if self._interval > 0 else DEFAULT_INTERVAL
        self._log("pinger_started", interval=interval, counter=self._counter)
        try:
            while not self._stop_event.is_set():
                stats = self._probe.ping(self._stop_event)
                self._metrics.fold(stats)
                self._print_stats(stats)
                self._sent += 1
                if self._counter > 0 and self._sent >= self._counter:
                    break
                if self._stop_event.wait(interval):
                    break
        finally:
            self.stop()
            with self._lock:
                self._state = STOPPED
            self._log("pinger_stopped", sent=self._sent)

    def stop(self) -> None:
        """Request shutdown. Only the first call has an effect."""
        with self._lock:
            if self._state in (STOPPING, STOPPED):
                return
            self._state = STOPPED if self._state == IDLE else STOPPING
            self._stop_event.set()

    @property
    def done(self) -> threading.Event:
        return self._stop_event

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._stop_event.wait(timeout)

    @property
    def state(self) -> str:
        return self._state

    @property
    def sent(self) -> int:
        return self._sent

    @property
    def metrics(self) -> PingMetrics:
        return self._metrics

    def summarize(self) -> None:
        print(self._metrics.summarize(self._target), file=self._out, flush=True)

    def _print_stats(self, stats: Stats) -> None:
        cancelled = is_cancelled(stats.error)
        self._log(
            "probe_finished",
            connected=stats.connected,
            duration=stats.duration,
            error=format_error(stats.error) if stats.error is not None else None,
            cancelled=cancelled,
        )
        if cancelled:
            return

        status = "Connected" if stats.connected else "Failed"
        if stats.error is not None:
            status = f"{status}({format_error(stats.error)})"
        line = (
            f"Ping {self._target}({stats.address}) {status} - "
            f"time={format_duration(stats.duration):<10} dns={format_duration(stats.dns_duration):<9}"
        )
        if stats.meta:
            line += f" {stats.format_meta()}"
        print(line, file=self._out)
        if stats.extra is not None:
            print(f" {str(stats.extra).strip()}", file=self._out)
        self._out.flush()

    def _log(self, event: str, **fields: Any) -> None:
        if not self._verbose:
            return
        record = {"timestamp": time.time(), "event": event, "target": str(self._target), **fields}
        print(json.dumps(record, ensure_ascii=False), file=self._log_out, flush=True)

from __future__ import annotations

import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from .errors import ProbeCancelled
from .models import Stats


@dataclass
class ProbeOutcome:
    """What a successful probe attempt observed."""

    address: str = ""
    dns_duration: float = 0.0
    duration: Optional[float] = None
    meta: Dict[str, Any] = field(default_factory=dict)
    extra: Optional[Any] = None


class ProbeFailure(Exception):
    """Carries what a failed attempt saw before ``__cause__`` was raised."""

    def __init__(self, address: str = "", dns_duration: float = 0.0, duration: Optional[float] = None) -> None:
        super().__init__(address)
        self.address = address
        self.dns_duration = dns_duration
        self.duration = duration


class BaseProbe(ABC):
    """Abstract base class defining a single probe attempt against a target.

    - ping() never raises; any failure ends up in Stats.error.
    - Duration is always measured, failed attempts included.
    - A set ``cancel`` event turns the outcome into a cancellation.
    """

    def ping(self, cancel: threading.Event) -> Stats:
        if cancel.is_set():
            return Stats(connected=False, duration=0.0, error=ProbeCancelled())

        start = self._now()
        try:
            outcome = self.probe(cancel)
        except ProbeFailure as failure:
            elapsed = self._now() - start
            return Stats(
                connected=False,
                duration=failure.duration if failure.duration is not None else elapsed,
                error=self._cancelled_or(cancel, failure.__cause__ or failure),
                dns_duration=failure.dns_duration,
                address=failure.address,
            )
        except Exception as exc:  # noqa: BLE001
            return Stats(
                connected=False,
                duration=self._now() - start,
                error=self._cancelled_or(cancel, exc),
            )

        elapsed = self._now() - start
        return Stats(
            connected=True,
            duration=outcome.duration if outcome.duration is not None else elapsed,
            dns_duration=outcome.dns_duration,
            address=outcome.address,
            meta=dict(outcome.meta),
            extra=outcome.extra,
        )

    @abstractmethod
    def probe(self, cancel: threading.Event) -> ProbeOutcome:
        """Run one attempt, raising on failure."""
        ...

    @staticmethod
    def _cancelled_or(cancel: threading.Event, exc: BaseException) -> BaseException:
        if not cancel.is_set() or isinstance(exc, ProbeCancelled):
            return exc
        cancelled = ProbeCancelled()
        cancelled.__cause__ = exc
        return cancelled

    @staticmethod
    def _now() -> float:
        return time.perf_counter()

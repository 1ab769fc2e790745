from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

Resolver = Callable[[str, float], List[str]]


class Protocol(enum.Enum):
    TCP = "tcp"
    HTTP = "http"
    HTTPS = "https"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Target:
    protocol: Protocol
    host: str
    port: int
    path: str = ""

    @property
    def netloc(self) -> str:
        host = f"[{self.host}]" if ":" in self.host else self.host
        return f"{host}:{self.port}"

    @property
    def url(self) -> str:
        return f"{self.protocol}://{self.netloc}{self.path}"

    def __str__(self) -> str:
        return f"{self.protocol}://{self.netloc}"


@dataclass(frozen=True)
class Option:
    timeout: float = 3.0
    resolver: Optional[Resolver] = None
    proxy: Optional[str] = None
    user_agent: str = "tcping"


@dataclass(frozen=True)
class Stats:
    connected: bool
    duration: float
    error: Optional[BaseException] = None
    dns_duration: float = 0.0
    address: str = ""
    meta: Dict[str, Any] = field(default_factory=dict)
    extra: Optional[Any] = None

    def format_meta(self) -> str:
        return " ".join(f"{key}={self.meta[key]}" for key in sorted(self.meta))


@dataclass(frozen=True)
class MetricsSnapshot:
    total: int
    failed: int
    successful: int
    min_duration: float
    max_duration: float
    total_duration: float
    avg_duration: float


@dataclass(frozen=True)
class CertificateSummary:
    """Peer certificate details shown under a TLS probe line."""

    server_name: str
    version: int
    dns_names: List[str]
    not_before: str
    not_after: str

    def __str__(self) -> str:
        return (
            f"server_name={self.server_name} version={self.version} "
            f"dns_names={','.join(self.dns_names)} ({self.not_before}~{self.not_after})"
        )

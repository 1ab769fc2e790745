from __future__ import annotations

import ipaddress
import re
from typing import Optional, Union
from urllib.parse import SplitResult, urlsplit

from .models import Protocol, Target
from .registry import new_protocol

_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "μs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}

_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)")


def parse_address(addr: str) -> SplitResult:
    """Parse addr as a URL, assuming the tcp scheme when none is given."""
    addr = addr.strip()
    if not addr:
        raise ValueError("empty address")
    if "://" not in addr:
        addr = "tcp://" + addr
    parsed = urlsplit(addr)
    if not parsed.hostname:
        raise ValueError(f"{addr} has no host")
    # Accessing .port validates it.
    parsed.port
    return parsed


def build_target(url: SplitResult, port: Optional[Union[int, str]] = None) -> Target:
    protocol = new_protocol(url.scheme)
    if port is None:
        if url.port is not None:
            port = url.port
        elif protocol is Protocol.HTTPS:
            port = 443
        else:
            port = 80
    port = _parse_port(port)

    path = url.path
    if url.query:
        path = f"{path}?{url.query}"
    return Target(
        protocol=protocol,
        host=url.hostname or "",
        port=port,
        path=path,
    )


def _parse_port(value: Union[int, str]) -> int:
    try:
        port = int(value)
    except (TypeError, ValueError):
        raise ValueError(f"{value} is not a valid port") from None
    if not 0 < port < 65536:
        raise ValueError(f"{value} is not a valid port")
    return port


def parse_duration(text: str) -> float:
    """Parse text as seconds. A bare integer means milliseconds.

    Otherwise text is a sequence of decimal numbers with a unit suffix,
    such as "300ms", "1.5s" or "2h45m".
    """
    text = text.strip()
    if re.fullmatch(r"[+-]?\d+", text):
        return int(text) / 1000.0

    sign = 1.0
    body = text
    if body and body[0] in "+-":
        sign = -1.0 if body[0] == "-" else 1.0
        body = body[1:]
    if body == "0":
        return 0.0
    if not body:
        raise ValueError(f"invalid duration {text!r}")

    total = 0.0
    pos = 0
    while pos < len(body):
        match = _DURATION_PART.match(body, pos)
        if match is None:
            raise ValueError(f"invalid duration {text!r}")
        total += float(match.group(1)) * _UNITS[match.group(2)]
        pos = match.end()
    return sign * total


def format_duration(seconds: float) -> str:
    """Render seconds the way Go prints a time.Duration (1.5s, 12.3ms, 2m3s).

    Values are rounded to the precision of the unit they end up in before
    the unit is picked, so 0.9999996 prints as 1s and not 1000ms.
    """
    sign = "-" if seconds < 0 else ""
    ns = round(abs(seconds) * 1e9)
    if ns == 0:
        return "0s"
    if ns < 1_000:
        return f"{sign}{ns}ns"
    if ns < 1_000_000:
        return f"{sign}{_trim(ns / 1e3)}µs"
    us = round(ns / 1e3)
    if us < 1_000_000:
        return f"{sign}{_trim(us / 1e3)}ms"

    ms = round(ns / 1e6)
    hours, rest = divmod(ms, 3_600_000)
    minutes, rest = divmod(rest, 60_000)
    out = sign
    if hours:
        out += f"{hours}h"
    if hours or minutes:
        out += f"{minutes}m"
    return out + f"{_trim(rest / 1e3)}s"


def _trim(value: float) -> str:
    return f"{value:.3f}".rstrip("0").rstrip(".")


def format_ip(ip: str) -> str:
    """Return an IPv4 address as-is and an IPv6 address in brackets."""
    host = ip.strip().strip("[]")
    try:
        parsed = ipaddress.ip_address(host)
    except ValueError:
        raise ValueError(f"{ip!r} is not an IP address") from None
    if parsed.version == 6:
        return f"[{parsed}]"
    return str(parsed)

from __future__ import annotations

import asyncio
import ipaddress
import socket
import time
from typing import List, Optional, Sequence, Tuple

import aiodns

from .errors import NameResolutionError
from .models import Resolver


class SystemResolver:
    """Resolve through the operating system (getaddrinfo), bounded by the timeout.

    getaddrinfo runs on the loop's executor. The loop is closed without
    waiting for that thread, so a hung lookup is abandoned after the timeout.
    """

    def __call__(self, host: str, timeout: float) -> List[str]:
        loop = asyncio.new_event_loop()
        try:
            return loop.run_until_complete(self._resolve(host, timeout))
        finally:
            loop.close()

    async def _resolve(self, host: str, timeout: float) -> List[str]:
        try:
            infos = await asyncio.wait_for(
                asyncio.get_running_loop().getaddrinfo(host, None, type=socket.SOCK_STREAM),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            raise TimeoutError(f"lookup {host}: i/o timeout") from None

        v4: List[str] = []
        v6: List[str] = []
        for family, _, _, _, sockaddr in infos:
            bucket = v4 if family == socket.AF_INET else v6
            if sockaddr[0] not in bucket:
                bucket.append(sockaddr[0])
        return v4 + v6


class NameserverResolver:
    """Resolve by querying the given DNS servers directly.

    A records are asked for first; AAAA only when there is no A answer.
    Each call runs its own event loop, so this is safe to use from the
    pinger's worker thread.
    """

    def __init__(self, servers: Sequence[str]) -> None:
        if not servers:
            raise ValueError("at least one DNS server is required")
        self._servers = list(servers)

    def __call__(self, host: str, timeout: float) -> List[str]:
        return asyncio.run(self._resolve(host, timeout))

    async def _resolve(self, host: str, timeout: float) -> List[str]:
        resolver = aiodns.DNSResolver(nameservers=self._servers, timeout=timeout, tries=1)
        last_error: Optional[aiodns.error.DNSError] = None
        for qtype in ("A", "AAAA"):
            try:
                answers = await asyncio.wait_for(resolver.query(host, qtype), timeout=timeout)
            except asyncio.TimeoutError:
                raise TimeoutError(f"lookup {host} on {','.join(self._servers)}: i/o timeout") from None
            except aiodns.error.DNSError as exc:
                last_error = exc
                continue
            addresses = [answer.host for answer in answers]
            if addresses:
                return addresses

        message = "no such host"
        if last_error is not None and len(last_error.args) > 1:
            message = str(last_error.args[1])
        raise NameResolutionError(host, message) from last_error

    def __repr__(self) -> str:
        return f"NameserverResolver({self._servers!r})"


def resolve_host(host: str, timeout: float, resolver: Optional[Resolver] = None) -> Tuple[str, float]:
    """Return the first address for host and the seconds the lookup took."""
    try:
        return str(ipaddress.ip_address(host)), 0.0
    except ValueError:
        pass

    resolve = resolver or SystemResolver()
    start = time.perf_counter()
    addresses = resolve(host, timeout)
    elapsed = time.perf_counter() - start
    if not addresses:
        raise NameResolutionError(host, "no such host")
    return addresses[0], elapsed

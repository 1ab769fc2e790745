from __future__ import annotations

import datetime as _dt
import socket
import ssl
import threading
from typing import Any, Dict, Optional, Tuple
from urllib.parse import urlsplit

import requests

from .base import BaseProbe, ProbeFailure, ProbeOutcome
from .errors import ProbeCancelled
from .models import CertificateSummary, Option, Target
from .parsing import format_ip
from .registry import ProbeFactory
from .resolver import resolve_host

_HTTP_VERSIONS = {10: "HTTP/1.0", 11: "HTTP/1.1", 20: "HTTP/2"}


class TCPProbe(BaseProbe):
    """Open (and immediately close) a TCP connection, optionally with a TLS handshake."""

    def __init__(self, host: str, port: int, option: Option, tls: bool = False) -> None:
        self._host = host
        self._port = port
        self._option = option
        self._tls = tls

    def probe(self, cancel: threading.Event) -> ProbeOutcome:
        ip, dns_duration = _resolve(self._host, self._option)
        address = f"{format_ip(ip)}:{self._port}"
        if cancel.is_set():
            raise ProbeFailure(address, dns_duration, 0.0) from ProbeCancelled()

        start = self._now()
        try:
            sock = socket.create_connection((ip, self._port), timeout=self._option.timeout)
        except OSError as exc:
            raise ProbeFailure(address, dns_duration, self._now() - start) from exc

        meta: Dict[str, Any] = {}
        extra = None
        with sock:
            if self._tls:
                try:
                    meta, extra = self._handshake(sock)
                except OSError as exc:
                    raise ProbeFailure(address, dns_duration, self._now() - start) from exc
            duration = self._now() - start
        return ProbeOutcome(address=address, dns_duration=dns_duration, duration=duration, meta=meta, extra=extra)

    def _handshake(self, sock: socket.socket) -> Tuple[Dict[str, Any], CertificateSummary]:
        context = ssl.create_default_context()
        with context.wrap_socket(sock, server_hostname=self._host) as tls_sock:
            cert = tls_sock.getpeercert() or {}
            return {"tls": tls_sock.version()}, certificate_summary(self._host, cert)


class HTTPProbe(BaseProbe):
    """Send one HTTP request without following redirects."""

    def __init__(self, method: str, target: Target, option: Option, with_meta: bool = False) -> None:
        if option.proxy and not urlsplit(option.proxy).hostname:
            raise ValueError(f"invalid proxy {option.proxy}")
        self._method = method.upper()
        self._target = target
        self._option = option
        self._with_meta = with_meta

    def probe(self, cancel: threading.Event) -> ProbeOutcome:
        if self._option.proxy:
            proxy = urlsplit(self._option.proxy)
            host, port = proxy.hostname or "", proxy.port or 80
        else:
            host, port = self._target.host, self._target.port
        ip, dns_duration = _resolve(host, self._option)
        address = f"{format_ip(ip)}:{port}"

        proxies = None
        if self._option.proxy:
            proxies = {"http": self._option.proxy, "https": self._option.proxy}

        start = self._now()
        try:
            with requests.Session() as session:
                response = session.request(
                    self._method,
                    self._target.url,
                    headers={"User-Agent": self._option.user_agent},
                    proxies=proxies,
                    timeout=self._option.timeout,
                    allow_redirects=False,
                )
                body = response.content
        except requests.RequestException as exc:
            raise ProbeFailure(address, dns_duration, self._now() - start) from exc
        duration = self._now() - start

        meta: Dict[str, Any] = {"status": response.status_code, "bytes": len(body)}
        if self._with_meta:
            version = getattr(response.raw, "version", None)
            meta["http"] = _HTTP_VERSIONS.get(version, "unknown")
            server = response.headers.get("Server")
            if server:
                meta["server"] = server
        return ProbeOutcome(address=address, dns_duration=dns_duration, duration=duration, meta=meta)


def _resolve(host: str, option: Option) -> Tuple[str, float]:
    start = BaseProbe._now()
    try:
        return resolve_host(host, option.timeout, option.resolver)
    except Exception as exc:  # noqa: BLE001
        raise ProbeFailure(host, BaseProbe._now() - start) from exc


def certificate_summary(server_name: str, cert: Dict[str, Any]) -> CertificateSummary:
    dns_names = [value for kind, value in cert.get("subjectAltName", ()) if kind == "DNS"]
    return CertificateSummary(
        server_name=server_name,
        version=int(cert.get("version", 0)),
        dns_names=dns_names,
        not_before=_cert_date(cert.get("notBefore")),
        not_after=_cert_date(cert.get("notAfter")),
    )


def _cert_date(value: Optional[str]) -> str:
    if not value:
        return ""
    ts = ssl.cert_time_to_seconds(value)
    return _dt.datetime.fromtimestamp(ts, tz=_dt.timezone.utc).strftime("%Y-%m-%d")


def tcp_factory(tls: bool = False) -> ProbeFactory:
    def build(target: Target, option: Option) -> BaseProbe:
        return TCPProbe(target.host, target.port, option, tls=tls)

    return build


def http_factory(method: str = "GET", with_meta: bool = False) -> ProbeFactory:
    def build(target: Target, option: Option) -> BaseProbe:
        return HTTPProbe(method, target, option, with_meta=with_meta)

    return build

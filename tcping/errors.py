"""Normalization of probe failures into a short, stable set of categories.

Probes hand back whatever the network stack raised: a ``requests`` exception
wrapping a ``urllib3`` error wrapping an ``OSError``, a bare ``socket.timeout``,
an ``ssl`` verification error, and so on. ``format_error`` walks that chain and
returns one of the category strings below, falling back to the raw message.
"""

from __future__ import annotations

import errno
import http.client
import socket
import ssl
from typing import Iterator, List, Optional, Tuple

import requests
from urllib3 import exceptions as urllib3_exceptions

TIMED_OUT = "timed out"
CANCELLED = "cancelled"
NAME_RESOLUTION = "name resolution error"
CONNECTION_REFUSED = "connection refused by remote host"
REMOTE_CLOSED = "remote closed connection"
CONNECTION_RESET = "connection reset by remote host"
FORCIBLY_CLOSED = "connection forcibly closed by remote host"
CERT_UNVERIFIABLE = "certificate cannot be verified"
CERT_EXPIRED = "certificate has expired"
CERT_MISMATCH = "certificate does not match host"
CERT_INVALID = "invalid certificate"
INVALID_HOST = "invalid host name"
CLOSED_CONNECTION = "use of closed network connection"
CONNECTION_REFUSED_TEXT = "connection refused"
HTTPS_MISMATCH = "protocol mismatch between http and https"
CANNOT_CONNECT = "unable to establish connection"

# First match wins.
_PHRASES: Tuple[Tuple[str, str], ...] = (
    ("forcibly closed", FORCIBLY_CLOSED),
    ("connection reset", CONNECTION_RESET),
    ("doesn't contain any ip sans", CERT_UNVERIFIABLE),
    ("ip address mismatch", CERT_UNVERIFIABLE),
    ("certificate has expired", CERT_EXPIRED),
    ("hostname mismatch", CERT_MISMATCH),
    ("doesn't match", CERT_MISMATCH),
    ("certificate is valid for", CERT_MISMATCH),
    ("certificate verify failed", CERT_INVALID),
    ("certificate is not valid", CERT_INVALID),
    ("no such host", INVALID_HOST),
    ("name or service not known", INVALID_HOST),
    ("getaddrinfo", NAME_RESOLUTION),
    ("temporary failure in name resolution", NAME_RESOLUTION),
    ("closed network connection", CLOSED_CONNECTION),
    ("bad file descriptor", CLOSED_CONNECTION),
    ("connection refused", CONNECTION_REFUSED_TEXT),
    ("server gave http response to https client", HTTPS_MISMATCH),
    ("wrong version number", HTTPS_MISMATCH),
    ("record layer failure", HTTPS_MISMATCH),
    ("actively refused it", CANNOT_CONNECT),
)

_TIMEOUT_TYPES = (
    TimeoutError,
    socket.timeout,
    requests.exceptions.Timeout,
    urllib3_exceptions.TimeoutError,
)

_DNS_TYPES = (socket.gaierror, urllib3_exceptions.NameResolutionError)

_CLOSED_TYPES = (
    EOFError,
    ssl.SSLEOFError,
    http.client.RemoteDisconnected,
    http.client.IncompleteRead,
)


class ProbeCancelled(Exception):
    """The probe was interrupted because the pinger is stopping."""

    def __init__(self, message: str = "probe cancelled") -> None:
        super().__init__(message)


class NameResolutionError(Exception):
    """A configured resolver could not turn a host name into an address."""

    def __init__(self, host: str, message: str) -> None:
        super().__init__(f"lookup {host}: {message}")
        self.host = host


def iter_causes(err: BaseException) -> Iterator[BaseException]:
    """Yield ``err`` and every exception it wraps, outermost first."""
    seen = set()
    pending: List[BaseException] = [err]
    while pending:
        current = pending.pop(0)
        if id(current) in seen:
            continue
        seen.add(id(current))
        yield current
        pending.extend(_wrapped(current))


def _wrapped(err: BaseException) -> List[BaseException]:
    inner: List[BaseException] = []
    reason = getattr(err, "reason", None)
    if isinstance(reason, BaseException):
        inner.append(reason)
    for arg in err.args:
        if isinstance(arg, BaseException):
            inner.append(arg)
    if err.__cause__ is not None:
        inner.append(err.__cause__)
    elif err.__context__ is not None and not err.__suppress_context__:
        inner.append(err.__context__)
    return inner


def _errno(err: BaseException) -> Optional[int]:
    if isinstance(err, OSError) and not isinstance(err, socket.gaierror):
        return err.errno
    return None


def _structured(err: BaseException) -> Optional[str]:
    code = _errno(err)
    # urllib3 derives NewConnectionError from its ConnectTimeoutError.
    if isinstance(err, _TIMEOUT_TYPES) and not isinstance(err, urllib3_exceptions.NewConnectionError):
        return TIMED_OUT
    if code == errno.ETIMEDOUT:
        return TIMED_OUT
    if isinstance(err, ProbeCancelled):
        return CANCELLED
    if isinstance(err, _DNS_TYPES) or isinstance(err, NameResolutionError):
        return NAME_RESOLUTION
    if isinstance(err, ConnectionRefusedError) or code == errno.ECONNREFUSED:
        return CONNECTION_REFUSED
    # RemoteDisconnected is also a ConnectionResetError, so check it first.
    if isinstance(err, _CLOSED_TYPES):
        return REMOTE_CLOSED
    if isinstance(err, ConnectionResetError) or code == errno.ECONNRESET:
        return CONNECTION_RESET
    return None


def classify(err: BaseException) -> Optional[str]:
    """Return the category for ``err`` or ``None`` when nothing is known about it."""
    chain = list(iter_causes(err))
    for layer in chain:
        category = _structured(layer)
        if category is not None:
            return category

    text = " | ".join(str(layer) for layer in reversed(chain)).lower()
    for phrase, category in _PHRASES:
        if phrase in text:
            return category
    return None


def format_error(err: BaseException) -> str:
    category = classify(err)
    if category is not None:
        return category
    return str(err) or type(err).__name__


def is_cancelled(err: Optional[BaseException]) -> bool:
    return err is not None and classify(err) == CANCELLED

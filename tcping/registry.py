from __future__ import annotations

from typing import Callable, Dict, Optional, Tuple

from .base import BaseProbe
from .models import Option, Protocol, Target

ProbeFactory = Callable[[Target, Option], BaseProbe]

# Filled once at startup, read-only while pinging.
_factories: Dict[Protocol, ProbeFactory] = {}


def register(protocol: Protocol, factory: ProbeFactory) -> None:
    """Register the factory building probes for protocol. The last call wins."""
    if not isinstance(protocol, Protocol):
        raise TypeError(f"expected a Protocol, got {protocol!r}")
    _factories[protocol] = factory


def load(protocol: Protocol) -> Optional[ProbeFactory]:
    """Return the factory registered for protocol, or None."""
    return _factories.get(protocol)


def registered() -> Tuple[Protocol, ...]:
    return tuple(_factories)


def unregister_all() -> None:
    _factories.clear()


def new_protocol(name: str) -> Protocol:
    try:
        return Protocol(name.lower())
    except ValueError:
        raise ValueError(f"protocol {name} not support") from None

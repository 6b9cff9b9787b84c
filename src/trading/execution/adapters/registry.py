"""Adapter factory keyed by exchange name.

Real-venue packages call `register_exchange` at import time; strategy code
only ever calls `new_exchange`.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from ...bus import ExchangeEventBus
from ...errors import ConstructionFailed
from ...models import GLOBAL_ID_SEPARATOR
from ..credentials import ExchangeKey
from .base import ExchangeAdapter
from .simulated import SimulatedExchange

logger = logging.getLogger(__name__)

# builder(key, *, event_bus=None) -> adapter
ExchangeBuilder = Callable[..., ExchangeAdapter]

_BUILDERS: dict[str, ExchangeBuilder] = {
    "simulated": SimulatedExchange.from_key,
    "dummy": SimulatedExchange.from_key,
}


def register_exchange(name: str, builder: ExchangeBuilder, *, replace: bool = False) -> None:
    """Make `builder` available under `name` (case-insensitive)."""
    key = name.strip().lower()
    if not key:
        raise ValueError("exchange name must not be blank")
    if GLOBAL_ID_SEPARATOR in key:
        raise ValueError(f"exchange name must not contain {GLOBAL_ID_SEPARATOR!r}")
    if key in _BUILDERS and not replace:
        raise ValueError(f"exchange {key!r} is already registered")
    _BUILDERS[key] = builder


def available_exchanges() -> list[str]:
    return sorted(_BUILDERS)


def new_exchange(
    name: str, key: ExchangeKey | None = None, *, event_bus: ExchangeEventBus | None = None
) -> ExchangeAdapter:
    """Build an adapter for `name`.

    Raises `ConstructionFailed` for unknown names or when the venue rejects the
    credentials it was given.
    """
    builder = _BUILDERS.get(name.strip().lower())
    if builder is None:
        raise ConstructionFailed(f"exchange name {name!r} not found. Known: {', '.join(available_exchanges())}")
    adapter = builder(key or ExchangeKey(), event_bus=event_bus)
    logger.info("built %s adapter", adapter.exchange_name())
    return adapter

"""In-process event bus for exchange lifecycle events.

- ExchangeEventBus: fan-out pub/sub for fills and balance updates;
  adapter -> subscribers (strategies, loggers, the observability recorder).

A real venue learns fills from its own market-data stream; the simulated venue
publishes them here as they happen.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable

from .models import ExchangeEvent
from observability.recorder import ObservabilityRecorder


class ExchangeEventBus:
    """Fan-out bus for exchange events (adapter -> subscribers).

    Carries ExchangeEvent (executions, balance updates).
    """

    def __init__(self, *, recorder: ObservabilityRecorder | None = None) -> None:
        """Create an event fan-out bus with optional observability recording."""
        self._subscribers: set[asyncio.Queue[ExchangeEvent]] = set()
        self._recorder = recorder

    def subscribe(self) -> asyncio.Queue[ExchangeEvent]:
        """Create a new subscriber queue that will receive published events."""
        q: asyncio.Queue[ExchangeEvent] = asyncio.Queue()
        self._subscribers.add(q)
        return q

    def unsubscribe(self, q: asyncio.Queue[ExchangeEvent]) -> None:
        """Remove a subscriber queue (no further events will be delivered)."""
        self._subscribers.discard(q)

    async def publish(self, event: ExchangeEvent, *, stage: str = "exchange_event_bus") -> None:
        """Publish an event to all current subscribers."""
        if self._recorder is not None:
            await self._recorder.record_event(event, stage=stage)
        for q in list(self._subscribers):
            q.put_nowait(event)

    async def publish_many(self, events: Iterable[ExchangeEvent], *, stage: str = "exchange_event_bus") -> None:
        """Publish multiple events sequentially, preserving order."""
        for event in events:
            await self.publish(event, stage=stage)

"""Journals exchange events off the event loop.

`ObservabilityRecorder.record_event` turns an `Execution` or `BalanceUpdate`
into an `ObservabilityRecord` and hands it to a background writer; the sink
itself is synchronous and runs in a worker thread.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any

from trading.models import BalanceUpdate, ExchangeEvent, Execution

from .models import ObservabilityRecord, utc_now
from .sinks import ObservabilitySink

logger = logging.getLogger(__name__)


def _execution_record(fill: Execution, stage: str) -> ObservabilityRecord:
    return ObservabilityRecord(
        event_type=fill.type,
        stage=stage,
        exchange_name=fill.id.exchange_name,
        order_id=fill.order_id,
        occurred_at=fill.occurred_at,
        summary={
            "id": fill.order_id,
            "symbol": fill.id.symbol,
            "side": "buy" if fill.is_buy else "sell",
            "price": fill.price,
            "size": fill.size,
            "fee": fill.fee,
            "liquidity": fill.liquidity,
        },
    )


def _balance_record(update: BalanceUpdate, stage: str) -> ObservabilityRecord:
    return ObservabilityRecord(
        event_type=update.type,
        stage=stage,
        exchange_name=update.exchange_name,
        occurred_at=update.ts,
        # Currency code -> size; one row per update keeps the journal flat.
        summary={b.currency_code: b.size for b in update.balances},
    )


def to_record(event: ExchangeEvent, *, stage: str) -> ObservabilityRecord:
    """Project an exchange event onto a journal row."""
    if isinstance(event, Execution):
        return _execution_record(event, stage)
    if isinstance(event, BalanceUpdate):
        return _balance_record(event, stage)
    raise TypeError(f"not an exchange event: {type(event).__name__}")


class ObservabilityRecorder:
    """Queues journal rows and writes them in a background task.

    Recording never blocks trading: when the queue is full the row is dropped
    and counted in `degraded_status()`.
    """

    def __init__(self, *, sink: ObservabilitySink, max_queue_size: int = 10000) -> None:
        self._sink = sink
        self._queue: asyncio.Queue[ObservabilityRecord | None] = asyncio.Queue(maxsize=max_queue_size)
        self._writer: asyncio.Task[None] | None = None
        self._closed = False

        self._dropped = 0
        self._first_drop_at: datetime | None = None
        self._last_drop_at: datetime | None = None

    def _count_drop(self) -> None:
        now = utc_now()
        self._dropped += 1
        if self._first_drop_at is None:
            self._first_drop_at = now
        self._last_drop_at = now

    async def record_event(self, event: ExchangeEvent, *, stage: str) -> None:
        """Enqueue `event` for the sink. No-op once closed."""
        if self._closed:
            return
        if self._writer is None:
            self._writer = asyncio.create_task(self._drain(), name="observability-writer")

        record = to_record(event, stage=stage)
        try:
            self._queue.put_nowait(record)
        except asyncio.QueueFull:
            self._count_drop()
            logger.warning("observability queue full; dropped %s for %s", record.event_type, record.order_id or record.exchange_name)

    async def aclose(self) -> None:
        """Flush pending rows and close the sink. Idempotent."""
        if self._closed:
            return
        self._closed = True
        if self._writer is not None:
            await self._queue.put(None)
            await self._writer
        await asyncio.to_thread(self._sink.close)

    async def _drain(self) -> None:
        while True:
            record = await self._queue.get()
            if record is None:
                return
            try:
                await asyncio.to_thread(self._sink.write, record)
            except Exception:  # noqa: BLE001 - a failed write must not stop the writer
                self._count_drop()
                logger.exception("observability sink write failed for %s", record.event_type)

    def degraded_status(self) -> dict[str, Any]:
        """Rows lost to a full queue or a failing sink."""
        return {
            "write_failures": self._dropped,
            "first_failure_at": self._first_drop_at,
            "last_failure_at": self._last_drop_at,
        }

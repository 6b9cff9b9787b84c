from __future__ import annotations

from pathlib import Path

import pytest

from observability import DuckDBObservabilitySink, InMemoryObservabilitySink, ObservabilityRecorder
from observability.recorder import to_record
from trading.bus import ExchangeEventBus
from trading.execution.adapters.simulated import SimulatedExchange
from trading.models import Balance, BalanceUpdate, Execution, OrderID


def _fill(local_id: str = "4", *, price: float = 100.0) -> Execution:
    oid = OrderID(exchange_name="simulated", symbol="BTC_JPY", local_id=local_id)
    return Execution(id=oid, price=price, size=0.5, is_buy=True, fee=0.05)


@pytest.mark.asyncio
async def test_observability_records_fills_and_balance_updates() -> None:
    sink = InMemoryObservabilitySink()
    recorder = ObservabilityRecorder(sink=sink, max_queue_size=100)
    exchange = SimulatedExchange(event_bus=ExchangeEventBus(recorder=recorder))

    resting = await exchange.create_order(100, 1, True, "BTC_JPY", "LIMIT")
    market = await exchange.create_order(100, 1, False, "BTC_JPY", "MARKET")
    await exchange.update_ltp(99)

    await recorder.aclose()

    records = sink.snapshot()
    assert [r.event_type for r in records] == ["execution", "balance_update", "execution", "balance_update"]
    assert all(r.stage == "simulated_exchange" for r in records)
    assert all(r.exchange_name == "simulated" for r in records)
    assert all(r.logged_at >= r.occurred_at for r in records)

    fills = sink.snapshot(event_type="execution")
    assert [r.order_id for r in fills] == [market.id.global_id, resting.id.global_id]
    assert fills[0].summary["side"] == "sell"
    assert fills[0].summary["liquidity"] == "taker"
    assert fills[1].summary["liquidity"] == "maker"

    updates = sink.snapshot(event_type="balance_update")
    assert all(r.order_id is None for r in updates)
    assert updates[-1].summary["fiat"] == pytest.approx(exchange.cash)
    assert updates[-1].summary["crypto"] == pytest.approx(exchange.position)


def test_execution_record_flattens_order_id() -> None:
    record = to_record(_fill(), stage="test")

    assert record.order_id == "simulated::BTC_JPY::4"
    assert record.summary == {
        "id": "simulated::BTC_JPY::4",
        "symbol": "BTC_JPY",
        "side": "buy",
        "price": 100.0,
        "size": 0.5,
        "fee": 0.05,
        "liquidity": "taker",
    }


def test_balance_update_record_maps_currencies_to_sizes() -> None:
    update = BalanceUpdate(
        exchange_name="simulated",
        balances=[Balance(currency_code="fiat", size=-100.1), Balance(currency_code="crypto", size=1.0)],
    )

    record = to_record(update, stage="test")

    assert record.event_type == "balance_update"
    assert record.occurred_at == update.ts
    assert record.summary == {"fiat": -100.1, "crypto": 1.0}


def test_to_record_rejects_non_events() -> None:
    with pytest.raises(TypeError):
        to_record({"type": "execution"}, stage="test")  # type: ignore[arg-type]


@pytest.mark.asyncio
async def test_recorder_ignores_events_after_close() -> None:
    sink = InMemoryObservabilitySink()
    recorder = ObservabilityRecorder(sink=sink)

    await recorder.record_event(_fill("1"), stage="test")
    await recorder.aclose()
    await recorder.aclose()
    await recorder.record_event(_fill("2"), stage="test")

    assert [r.order_id for r in sink.snapshot()] == ["simulated::BTC_JPY::1"]


@pytest.mark.asyncio
async def test_recorder_drops_records_when_queue_is_full() -> None:
    sink = InMemoryObservabilitySink()
    recorder = ObservabilityRecorder(sink=sink, max_queue_size=1)

    # The writer task has not run yet, so the second record overflows.
    await recorder.record_event(_fill("1"), stage="test")
    await recorder.record_event(_fill("2"), stage="test")

    assert recorder.degraded_status()["write_failures"] == 1
    await recorder.aclose()
    assert [r.order_id for r in sink.snapshot()] == ["simulated::BTC_JPY::1"]


class _FlakySink(InMemoryObservabilitySink):
    def write(self, record):  # type: ignore[no-untyped-def]
        if record.order_id == "simulated::BTC_JPY::1":
            raise OSError("disk full")
        super().write(record)


@pytest.mark.asyncio
async def test_recorder_keeps_writing_after_a_sink_failure() -> None:
    sink = _FlakySink()
    recorder = ObservabilityRecorder(sink=sink)

    await recorder.record_event(_fill("1"), stage="test")
    await recorder.record_event(_fill("2"), stage="test")
    await recorder.aclose()

    assert recorder.degraded_status()["write_failures"] == 1
    assert [r.order_id for r in sink.snapshot()] == ["simulated::BTC_JPY::2"]


def test_duckdb_sink_round_trips_records(tmp_path: Path) -> None:
    sink = DuckDBObservabilitySink(path=tmp_path / "events.duckdb")
    try:
        sink.write(to_record(_fill("4"), stage="test"))
        sink.write(to_record(_fill("5", price=101.0), stage="test"))
        rows = sink.fetch(order_id="simulated::BTC_JPY::4")
        assert sink.fetch(order_id="simulated::BTC_JPY::6") == []
        assert len(sink.fetch()) == 2
    finally:
        sink.close()

    assert len(rows) == 1
    assert rows[0].event_type == "execution"
    assert rows[0].exchange_name == "simulated"
    assert rows[0].summary["price"] == 100.0
    assert rows[0].summary["id"] == "simulated::BTC_JPY::4"


def test_duckdb_sink_rejects_unsafe_table_name(tmp_path: Path) -> None:
    with pytest.raises(ValueError):
        DuckDBObservabilitySink(path=tmp_path / "x.duckdb", table="events; drop table x")

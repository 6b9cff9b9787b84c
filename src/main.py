"""Demo entrypoint wiring together the exchange components.

This module contains a small, end-to-end "smoke test" that:

- Loads configuration from environment and configures logging.
- Builds an adapter through the factory (the simulated venue by default).
- Records every fill and balance update through the observability recorder.
- Rests a buy, sells at market, then feeds ticks until the resting buy fills.

It is **not** production orchestration logic; it is a manual harness for
trying strategy plumbing against the canonical adapter contract.
"""

from __future__ import annotations

import asyncio
import logging
import os

from config import Config, load_config
from observability import DuckDBObservabilitySink, InMemoryObservabilitySink, ObservabilityRecorder
from observability.sinks import ObservabilitySink
from trading.bus import ExchangeEventBus
from trading.execution.adapters.base import ExchangeAdapter
from trading.execution.adapters.registry import new_exchange
from trading.execution.credentials import ExchangeKey

logger = logging.getLogger("main")


async def _log_events(event_bus: ExchangeEventBus) -> None:
    """Continuously log events observed on the given event bus."""
    q = event_bus.subscribe()
    while True:
        event = await q.get()
        logger.info("[event] %s: %s", event.type, event)


def _build_key(cfg: Config) -> ExchangeKey:
    sim = cfg.simulated
    return ExchangeKey(
        api_key=cfg.exchange.api_key,
        api_secret_key=cfg.exchange.api_secret_key,
        specific_params={
            "makerFee": sim.maker_fee,
            "takerFee": sim.taker_fee,
            "slippage": sim.slippage,
            "initialBestAsk": sim.initial_best_ask,
            "initialBestBid": sim.initial_best_bid,
        },
    )


async def _log_account(adapter: ExchangeAdapter, symbol: str) -> None:
    balances = await adapter.balance()
    stock = await adapter.stocks(symbol)
    active = await adapter.active_orders(symbol)
    logger.info(
        "balances=%s position=%s active=%s",
        {b.currency_code: b.size for b in balances},
        stock.summary,
        [str(o.id) for o in active],
    )


async def run_demo() -> None:
    """Run a minimal end-to-end demo against the configured adapter."""
    cfg = load_config()
    logging.basicConfig(level=cfg.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    sink: ObservabilitySink
    if cfg.observability_db_path:
        sink = DuckDBObservabilitySink(path=cfg.observability_db_path)
    else:
        sink = InMemoryObservabilitySink()
    recorder = ObservabilityRecorder(sink=sink)
    event_bus = ExchangeEventBus(recorder=recorder)

    adapter = new_exchange(cfg.exchange.name, _build_key(cfg), event_bus=event_bus)
    if adapter.in_scheduled_maintenance():
        logger.warning("%s is in scheduled maintenance; skipping demo", adapter.exchange_name())
        await recorder.aclose()
        return

    log_task = asyncio.create_task(_log_events(event_bus), name="event-logger")
    try:
        symbol = os.getenv("DEMO_SYMBOL", "BTC_JPY")
        price = float(os.getenv("DEMO_PRICE", "100"))
        order_types = adapter.order_types()

        await adapter.update_best_price(best_ask=price * 1.01, best_bid=price * 0.99)

        resting = await adapter.create_order(price * 0.98, 1.0, True, symbol, order_types.limit)
        logger.info("placed %s filled=%s", resting.id, resting.filled_size)

        market = await adapter.create_order(price, 0.5, False, symbol, order_types.market)
        logger.info("placed %s filled=%s", market.id, market.filled_size)
        await _log_account(adapter, symbol)

        edited = await adapter.edit_order(symbol, resting.id.local_id, price * 0.97, 1.0)
        logger.info("edited %s -> %s", resting.id, edited.id)

        for tick in (price * 0.99, price * 0.975, price * 0.96):
            await adapter.update_ltp(tick)
        await _log_account(adapter, symbol)

        await adapter.cancel_all_orders(symbol)
        # Let the event logger drain before shutting down.
        await asyncio.sleep(0)
    finally:
        log_task.cancel()
        await asyncio.gather(log_task, return_exceptions=True)
        await recorder.aclose()


def main() -> None:
    """CLI entrypoint for running the demo with `python src/main.py`."""
    asyncio.run(run_demo())


if __name__ == "__main__":
    main()

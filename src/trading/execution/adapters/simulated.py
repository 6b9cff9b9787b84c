"""In-memory simulated venue.

Stands in for a real exchange when testing trading logic locally. It keeps a
resting-order book, fills orders from synthetic top-of-book prices and
last-traded-price ticks, and maintains a cash/position ledger with maker and
taker fees.

Fill rules:
- Market orders fill in full on entry at the caller's reference price, pay the
  taker fee and widen the synthetic best price on the aggressor's side
  (buys push best ask up by `slippage`, sells push best bid down by it).
- Limit orders that cross the synthetic best price on entry fill the same way.
  Otherwise they rest (buys best-first descending, sells ascending).
- A tick fills a resting buy when it trades below the buy's limit, and a
  resting sell when it trades above the sell's limit. Those fills execute at
  the limit price and pay the maker fee.

The synthetic best prices and the resting book are independent state: a
market order never matches against resting orders.
"""

from __future__ import annotations

import asyncio
import bisect
import logging
import math
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from config import SimulatedExchangeConfig

from ...bus import ExchangeEventBus
from ...errors import ConstructionFailed, InvalidArgument, NotFound, Unsupported
from ...models import (
    Balance,
    BalanceUpdate,
    Board,
    ExchangeEvent,
    Execution,
    Liquidity,
    Order,
    OrderID,
    OrderRequest,
    OrderResponse,
    OrderTypes,
    Stock,
)
from ..credentials import ExchangeKey
from .base import ExchangeAdapter, validate_order_args, validate_symbol

logger = logging.getLogger(__name__)

# specific_params keys understood by `SimulatedExchange.from_key`.
_KEY_PARAMS: Mapping[str, str] = {
    "makerFee": "maker_fee",
    "takerFee": "taker_fee",
    "slippage": "slippage",
    "initialBestAsk": "initial_best_ask",
    "initialBestBid": "initial_best_bid",
}


@dataclass
class _RestingOrder:
    local_id: str
    symbol: str
    is_buy: bool
    price: float
    size: float
    updated_at_unix: int

    def sort_key(self) -> float:
        # Best price first on both sides.
        return -self.price if self.is_buy else self.price


class SimulatedExchange(ExchangeAdapter):
    """ExchangeAdapter implementation backed by an in-memory ledger.

    All mutating operations serialize on one `asyncio.Lock`, so a single
    instance can be shared by concurrent tasks. Instances never share state.
    """

    name = "simulated"

    def __init__(
        self,
        config: SimulatedExchangeConfig | None = None,
        *,
        event_bus: ExchangeEventBus | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Create an empty venue: no orders, zero cash, zero position."""
        self._config = config or SimulatedExchangeConfig()
        self._event_bus = event_bus
        self._clock = clock
        self._lock = asyncio.Lock()

        self._buys: list[_RestingOrder] = []
        self._sells: list[_RestingOrder] = []
        self._executions: list[Execution] = []

        self._position = 0.0
        self._cash = 0.0
        self._ltp = 0.0
        self._best_ask = self._config.initial_best_ask
        self._best_bid = self._config.initial_best_bid
        self._next_id = 0

    @classmethod
    def from_key(cls, key: ExchangeKey, *, event_bus: ExchangeEventBus | None = None) -> SimulatedExchange:
        """Build from factory credentials; fees etc. come from `specific_params`.

        The simulated venue needs no api key pair.
        """
        # A None value means "not set", matching an absent key.
        params = key.specific_params
        overrides: dict[str, Any] = {
            field: params[param] for param, field in _KEY_PARAMS.items() if params.get(param) is not None
        }
        try:
            config = SimulatedExchangeConfig(**overrides)
        except ValidationError as exc:
            raise ConstructionFailed(f"{cls.name}: invalid specific_params: {exc}") from exc
        return cls(config, event_bus=event_bus)

    # -- read-only state --------------------------------------------------

    @property
    def cash(self) -> float:
        return self._cash

    @property
    def position(self) -> float:
        return self._position

    @property
    def ltp(self) -> float:
        return self._ltp

    @property
    def best_ask(self) -> float:
        return self._best_ask

    @property
    def best_bid(self) -> float:
        return self._best_bid

    @property
    def maker_fee(self) -> float:
        return self._config.maker_fee

    @property
    def taker_fee(self) -> float:
        return self._config.taker_fee

    def executions(self) -> list[Execution]:
        """Every fill so far, oldest first."""
        return list(self._executions)

    # -- contract -------------------------------------------------------------

    def exchange_name(self) -> str:
        return self.name

    def order_types(self) -> OrderTypes:
        return OrderTypes(market="MARKET", limit="LIMIT")

    def in_scheduled_maintenance(self) -> bool:
        return False

    async def boards(self, symbol: str) -> Board:
        raise Unsupported(self.name, "boards")

    async def liquidation_order(
        self, price: float, size: float, is_buy: bool, symbol: str, order_type: str
    ) -> OrderResponse:
        raise Unsupported(self.name, "liquidation_order")

    async def create_order(
        self, price: float, size: float, is_buy: bool, symbol: str, order_type: str
    ) -> OrderResponse:
        """Place an order; see the module docstring for fill rules."""
        validate_order_args(price, size, symbol, order_type, self.order_types())
        async with self._lock:
            events: list[ExchangeEvent] = []
            response = self._place(price, size, is_buy, symbol, order_type, events)
            await self._publish(events)
        return response

    async def edit_order(self, symbol: str, local_id: str, price: float, size: float) -> Order:
        """Cancel the resting order, then re-create it as a new limit order.

        The replacement gets a new local id and loses queue priority. If it
        crosses on entry it fills immediately and the returned size is reduced
        by the filled amount.
        """
        limit = self.order_types().limit
        validate_order_args(price, size, symbol, limit, self.order_types())
        async with self._lock:
            removed = self._remove(symbol, local_id)
            if removed is None:
                raise NotFound(f"order {local_id!r} not found for {symbol!r}")

            events: list[ExchangeEvent] = []
            response = self._place(price, size, removed.is_buy, symbol, limit, events)
            await self._publish(events)

        logger.info("edited %s::%s::%s -> %s", self.name, symbol, local_id, response.id)
        return Order(
            id=response.id,
            request=OrderRequest(
                price=price,
                size=size - response.filled_size,
                symbol=symbol,
                is_buy=removed.is_buy,
                order_type=limit,
            ),
            updated_at_unix=int(self._clock()),
        )

    async def cancel_order(self, symbol: str, local_id: str) -> None:
        """Remove a resting order. An absent order is treated as already cancelled."""
        validate_symbol(symbol)
        async with self._lock:
            removed = self._remove(symbol, local_id)
        if removed is None:
            logger.debug("cancel of absent order %s::%s::%s ignored", self.name, symbol, local_id)
        else:
            logger.info("cancelled %s::%s::%s", self.name, symbol, local_id)

    async def cancel_all_orders(self, symbol: str) -> None:
        validate_symbol(symbol)
        async with self._lock:
            before = len(self._buys) + len(self._sells)
            self._buys = [o for o in self._buys if o.symbol != symbol]
            self._sells = [o for o in self._sells if o.symbol != symbol]
            cancelled = before - len(self._buys) - len(self._sells)
        logger.info("cancelled %d resting order(s) for %s", cancelled, symbol)

    async def active_orders(self, symbol: str) -> list[Order]:
        """Resting orders for `symbol`: buys best-first, then sells best-first."""
        validate_symbol(symbol)
        limit = self.order_types().limit
        return [
            Order(
                id=OrderID(exchange_name=self.name, symbol=o.symbol, local_id=o.local_id),
                request=OrderRequest(
                    price=o.price, size=o.size, symbol=o.symbol, is_buy=o.is_buy, order_type=limit
                ),
                updated_at_unix=o.updated_at_unix,
            )
            for o in [*self._buys, *self._sells]
            if o.symbol == symbol
        ]

    async def stocks(self, symbol: str) -> Stock:
        validate_symbol(symbol)
        return Stock.from_net(symbol, self._position)

    async def balance(self) -> list[Balance]:
        return self._balances()

    async def update_ltp(self, price: float) -> None:
        """Record a last-traded-price tick and fill resting orders it trades through."""
        _require_price("ltp", price, allow_zero=False)
        async with self._lock:
            self._ltp = float(price)

            filled_buys = [o for o in self._buys if self._ltp < o.price]
            filled_sells = [o for o in self._sells if self._ltp > o.price]
            if not filled_buys and not filled_sells:
                return

            self._buys = [o for o in self._buys if not self._ltp < o.price]
            self._sells = [o for o in self._sells if not self._ltp > o.price]

            events: list[ExchangeEvent] = []
            for o in [*filled_buys, *filled_sells]:
                order_id = OrderID(exchange_name=self.name, symbol=o.symbol, local_id=o.local_id)
                events.append(self._fill(order_id, o.price, o.size, o.is_buy, "maker"))
            events.append(BalanceUpdate(exchange_name=self.name, balances=self._balances()))
            await self._publish(events)

    async def update_best_price(self, best_ask: float, best_bid: float) -> None:
        _require_price("best_ask", best_ask, allow_zero=False)
        _require_price("best_bid", best_bid, allow_zero=True)
        if best_bid > best_ask:
            raise InvalidArgument(f"best_bid ({best_bid}) must not exceed best_ask ({best_ask})")
        async with self._lock:
            self._best_ask = float(best_ask)
            self._best_bid = float(best_bid)

    # -- internals (caller holds the lock) ---------------------------------------

    def _place(
        self,
        price: float,
        size: float,
        is_buy: bool,
        symbol: str,
        order_type: str,
        events: list[ExchangeEvent],
    ) -> OrderResponse:
        local_id = self._allocate_local_id()
        order_id = OrderID(exchange_name=self.name, symbol=symbol, local_id=local_id)

        is_market = order_type == self.order_types().market
        crosses = (price >= self._best_ask) if is_buy else (price <= self._best_bid)
        if is_market or crosses:
            events.append(self._fill(order_id, price, size, is_buy, "taker"))
            events.append(BalanceUpdate(exchange_name=self.name, balances=self._balances()))
            self._widen(is_buy)
            return OrderResponse(id=order_id, filled_size=size)

        resting = _RestingOrder(
            local_id=local_id,
            symbol=symbol,
            is_buy=is_buy,
            price=float(price),
            size=float(size),
            updated_at_unix=int(self._clock()),
        )
        book = self._buys if is_buy else self._sells
        bisect.insort(book, resting, key=_RestingOrder.sort_key)
        logger.info("resting %s %s %s@%s", order_id, "buy" if is_buy else "sell", size, price)
        return OrderResponse(id=order_id, filled_size=0.0)

    def _fill(self, order_id: OrderID, price: float, size: float, is_buy: bool, liquidity: Liquidity) -> Execution:
        """Apply one fill to cash and position together."""
        fee_rate = self._config.taker_fee if liquidity == "taker" else self._config.maker_fee
        notional = price * size
        fee = notional * fee_rate
        if is_buy:
            self._position += size
            self._cash -= notional + fee
        else:
            self._position -= size
            self._cash += notional - fee

        execution = Execution(id=order_id, price=price, size=size, is_buy=is_buy, fee=fee, liquidity=liquidity)
        self._executions.append(execution)
        logger.info(
            "filled %s %s %s@%s (%s, fee=%s) cash=%s position=%s",
            order_id,
            "buy" if is_buy else "sell",
            size,
            price,
            liquidity,
            fee,
            self._cash,
            self._position,
        )
        return execution

    def _widen(self, is_buy: bool) -> None:
        # Crossing consumes liquidity on the far side of the book.
        if is_buy:
            self._best_ask *= self._config.slippage
        else:
            self._best_bid /= self._config.slippage

    def _remove(self, symbol: str, local_id: str) -> _RestingOrder | None:
        for book in (self._buys, self._sells):
            for i, o in enumerate(book):
                if o.local_id == local_id and o.symbol == symbol:
                    return book.pop(i)
        return None

    def _allocate_local_id(self) -> str:
        local_id = str(self._next_id)
        self._next_id += 1
        return local_id

    def _balances(self) -> list[Balance]:
        return [
            Balance(currency_code="all", size=self._cash + self._position * self._ltp),
            Balance(currency_code="fiat", size=self._cash),
            Balance(currency_code="crypto", size=self._position),
        ]

    async def _publish(self, events: list[ExchangeEvent]) -> None:
        if self._event_bus is None or not events:
            return
        await self._event_bus.publish_many(events, stage=f"{self.name}_exchange")


def _require_price(name: str, value: float, *, allow_zero: bool) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        raise InvalidArgument(f"{name} must be a finite number. Got: {value!r}")
    if value < 0 or (value == 0 and not allow_zero):
        raise InvalidArgument(f"{name} must be {'non-negative' if allow_zero else 'positive'}. Got: {value!r}")

"""Exchange adapter interface.

Strategy code depends on this interface only, so a real venue and the
simulated one can be swapped without changing callers. An adapter that cannot
support an operation raises `Unsupported`; it never silently no-ops.
"""

from __future__ import annotations

import math
from typing import Protocol, runtime_checkable

from ...errors import InvalidArgument
from ...models import GLOBAL_ID_SEPARATOR, Balance, Board, Order, OrderResponse, OrderTypes, Stock


@runtime_checkable
class ExchangeAdapter(Protocol):
    def exchange_name(self) -> str:
        """Constant venue identity."""

    def order_types(self) -> OrderTypes:
        """The venue's literal market/limit tokens."""

    def in_scheduled_maintenance(self) -> bool:
        """Return True while the venue is in a known maintenance window."""

    async def boards(self, symbol: str) -> Board:
        """Return an order book snapshot for `symbol`."""

    async def create_order(
        self, price: float, size: float, is_buy: bool, symbol: str, order_type: str
    ) -> OrderResponse:
        """Place a new order and report how much filled immediately."""

    async def liquidation_order(
        self, price: float, size: float, is_buy: bool, symbol: str, order_type: str
    ) -> OrderResponse:
        """Place a venue-specific forced-close order."""

    async def edit_order(self, symbol: str, local_id: str, price: float, size: float) -> Order:
        """Replace a resting order's price/size; the result carries a new local id."""

    async def cancel_order(self, symbol: str, local_id: str) -> None:
        """Cancel a resting order. Cancelling an absent order is not an error."""

    async def cancel_all_orders(self, symbol: str) -> None:
        """Cancel every resting order for `symbol`."""

    async def active_orders(self, symbol: str) -> list[Order]:
        """Return the currently resting orders for `symbol`."""

    async def stocks(self, symbol: str) -> Stock:
        """Return the position summary for `symbol`."""

    async def balance(self) -> list[Balance]:
        """Return account balances."""

    async def update_ltp(self, price: float) -> None:
        """Feed a last-traded-price tick (simulation only)."""

    async def update_best_price(self, best_ask: float, best_bid: float) -> None:
        """Feed top-of-book prices (simulation only)."""


def validate_symbol(symbol: str) -> str:
    """Reject empty, whitespace-padded or separator-bearing symbols."""
    if not isinstance(symbol, str) or not symbol or symbol != symbol.strip():
        raise InvalidArgument(f"symbol must be a non-empty string. Got: {symbol!r}")
    if GLOBAL_ID_SEPARATOR in symbol:
        raise InvalidArgument(f"symbol must not contain {GLOBAL_ID_SEPARATOR!r}. Got: {symbol!r}")
    return symbol


def validate_order_args(
    price: float, size: float, symbol: str, order_type: str, order_types: OrderTypes
) -> None:
    """Shared argument checks for order placement."""
    validate_symbol(symbol)
    for name, value in (("price", price), ("size", size)):
        if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value) or value <= 0:
            raise InvalidArgument(f"{name} must be a positive number. Got: {value!r}")
    if order_type not in {order_types.market, order_types.limit}:
        raise InvalidArgument(
            f"order_type must be {order_types.market!r} or {order_types.limit!r}. Got: {order_type!r}"
        )

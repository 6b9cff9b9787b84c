"""Canonical, venue-agnostic value types.

Every adapter (simulated or real) speaks in these models so strategy code never
sees venue-specific payloads. All models are immutable snapshots.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Literal, TypeAlias

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .errors import InvalidArgument

LocalOrderId: TypeAlias = str
Liquidity = Literal["maker", "taker"]

GLOBAL_ID_SEPARATOR = "::"


def utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


class _Model(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)


class Norm(_Model):
    """A quantity at a price."""

    price: float = Field(default=0.0, ge=0.0)
    size: float = Field(default=0.0, ge=0.0)


class OrderID(_Model):
    """Composite order identifier, unique per exchange + symbol + local id."""

    exchange_name: str
    symbol: str
    local_id: LocalOrderId

    @field_validator("exchange_name", "symbol", "local_id")
    @classmethod
    def _no_separator(cls, v: str) -> str:
        # A part containing the separator would make `global_id` ambiguous.
        if GLOBAL_ID_SEPARATOR in v:
            raise ValueError(f"must not contain {GLOBAL_ID_SEPARATOR!r}")
        return v

    @property
    def global_id(self) -> str:
        """`"{exchange_name}::{symbol}::{local_id}"`, e.g. `"bitflyer::FX_BTC_JPY::001"`."""
        return GLOBAL_ID_SEPARATOR.join([self.exchange_name, self.symbol, self.local_id])

    def __str__(self) -> str:
        return self.global_id

    @classmethod
    def parse(cls, text: str) -> OrderID:
        """Inverse of `global_id`."""
        parts = text.split(GLOBAL_ID_SEPARATOR)
        if len(parts) != 3 or not all(parts):
            raise InvalidArgument(f"malformed order id: {text!r}")
        exchange_name, symbol, local_id = parts
        return cls(exchange_name=exchange_name, symbol=symbol, local_id=local_id)


class OrderTypes(_Model):
    """The literal order-type tokens a venue accepts."""

    market: str
    limit: str


class OrderRequest(Norm):
    """What the caller asked for: a price/size on one side of a symbol."""

    symbol: str
    is_buy: bool
    order_type: str

    @property
    def norm(self) -> Norm:
        return Norm(price=self.price, size=self.size)


class Order(_Model):
    """A resting or historical order."""

    id: OrderID
    request: OrderRequest
    updated_at_unix: int = 0

    @property
    def local_id(self) -> LocalOrderId:
        return self.id.local_id


class OrderResponse(_Model):
    """Synchronous result of an order submission."""

    id: OrderID
    filled_size: float = Field(default=0.0, ge=0.0)


class Board(_Model):
    """Point-in-time order book snapshot (asks ascending, bids descending)."""

    exchange_name: str
    symbol: str
    mid_price: float = 0.0
    asks: list[Norm] = Field(default_factory=list)
    bids: list[Norm] = Field(default_factory=list)

    @classmethod
    def from_levels(
        cls,
        *,
        exchange_name: str,
        symbol: str,
        asks: Iterable[Norm],
        bids: Iterable[Norm],
    ) -> Board:
        """Build a board from unordered levels, deriving the mid price."""
        sorted_asks = sorted(asks, key=lambda n: n.price)
        sorted_bids = sorted(bids, key=lambda n: n.price, reverse=True)
        mid_price = 0.0
        if sorted_asks and sorted_bids:
            mid_price = (sorted_asks[0].price + sorted_bids[0].price) / 2.0
        return cls(
            exchange_name=exchange_name,
            symbol=symbol,
            mid_price=mid_price,
            asks=sorted_asks,
            bids=sorted_bids,
        )


class Stock(_Model):
    """Position summary for one symbol; `summary` is the signed net exposure."""

    symbol: str
    long_size: float = Field(default=0.0, ge=0.0)
    short_size: float = Field(default=0.0, ge=0.0)
    summary: float = 0.0

    @model_validator(mode="after")
    def _check_summary(self) -> Stock:
        if abs(self.summary - (self.long_size - self.short_size)) > 1e-9:
            raise ValueError("summary must equal long_size - short_size")
        return self

    @classmethod
    def from_net(cls, symbol: str, net: float) -> Stock:
        if net >= 0:
            return cls(symbol=symbol, long_size=net, summary=net)
        return cls(symbol=symbol, short_size=-net, summary=net)


class Balance(_Model):
    currency_code: str
    size: float


class Execution(_Model):
    """An immutable fact: some quantity traded at some price."""

    type: Literal["execution"] = "execution"
    id: OrderID
    price: float = Field(ge=0.0)
    size: float = Field(ge=0.0)
    is_buy: bool
    fee: float = 0.0
    liquidity: Liquidity = "taker"
    occurred_at: datetime = Field(default_factory=utc_now)

    @property
    def norm(self) -> Norm:
        return Norm(price=self.price, size=self.size)

    @property
    def order_id(self) -> str:
        return self.id.global_id

    @property
    def ts(self) -> datetime:
        return self.occurred_at


class BalanceUpdate(_Model):
    type: Literal["balance_update"] = "balance_update"
    exchange_name: str
    balances: list[Balance]
    ts: datetime = Field(default_factory=utc_now)


ExchangeEvent = Execution | BalanceUpdate

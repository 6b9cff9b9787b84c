"""Journal rows derived from exchange events.

One row per published event. Fills carry their global order id so every fill
of an order can be read back together; balance updates carry only the venue.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


def utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


EventType = Literal["execution", "balance_update"]


class ObservabilityRecord(BaseModel):
    """A journaled exchange event."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    event_type: EventType
    # Producer of the event, e.g. "simulated_exchange".
    stage: str
    exchange_name: str
    # `exchange::symbol::local_id`; None for balance updates.
    order_id: str | None = None

    occurred_at: datetime
    logged_at: datetime = Field(default_factory=utc_now)

    summary: dict[str, Any] = Field(default_factory=dict)

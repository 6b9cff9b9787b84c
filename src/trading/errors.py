"""Error taxonomy shared by every exchange adapter.

Adapters raise these instead of venue-specific exceptions so strategy code can
handle failures uniformly. The core never retries; `retryable` is a hint for
callers that implement their own policy.
"""

from __future__ import annotations

from typing import Any


class ExchangeError(RuntimeError):
    """Base class for all adapter errors."""

    retryable: bool = False


class InvalidArgument(ExchangeError, ValueError):
    """Missing/non-positive price or size, malformed symbol, unknown order type."""


class Unsupported(ExchangeError):
    """The venue does not implement this operation."""

    def __init__(self, exchange_name: str, operation: str) -> None:
        self.exchange_name = exchange_name
        self.operation = operation
        super().__init__(f"{operation} is not supported by {exchange_name}")


class NotFound(ExchangeError, LookupError):
    """An order referenced by id does not currently rest on the venue."""


class ConstructionFailed(ExchangeError):
    """Adapter could not be built (missing credentials, bad venue parameters)."""


class TransportError(ExchangeError):
    """Network-level failure talking to a real venue."""

    retryable = True


class VenueRejected(ExchangeError):
    """Business error decoded from a venue response."""

    def __init__(self, *, status_code: int, payload: dict[str, Any] | None):
        """Create an error capturing HTTP status code and parsed payload (if any)."""
        self.status_code = status_code
        self.payload = payload
        super().__init__(f"venue rejected request: HTTP {status_code}: {payload}")

    @property
    def retryable(self) -> bool:  # type: ignore[override]
        # 429 and all 5xx are transient.
        return self.status_code == 429 or self.status_code >= 500

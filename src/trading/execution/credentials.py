"""Venue credentials and nonce-safe key rotation.

Some venues rate-limit per credential on a monotonic nonce. When two signed
requests race with the same credential inside one nonce window, the venue
rejects one of them. Adapters avoid that by holding several equivalent
credentials and rotating through them on every signed request.
"""

from __future__ import annotations

import threading
from collections.abc import Sequence
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from ..errors import ConstructionFailed

ADDITIONAL_KEYS_PARAM = "additional_keys"


class ExchangeKey(BaseModel):
    """Credentials handed to an adapter factory.

    `specific_params` is a per-venue escape hatch (extra key pairs for rotation,
    sub-account names, simulation fees, ...). Its keys are documented per venue.
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    api_key: str = ""
    api_secret_key: str = ""
    specific_params: dict[str, Any] = Field(default_factory=dict)

    def require_credentials(self, exchange_name: str) -> None:
        """Raise `ConstructionFailed` when either half of the key pair is blank."""
        if not self.api_key.strip() or not self.api_secret_key.strip():
            raise ConstructionFailed(f"{exchange_name}: api_key and api_secret_key are required")


class ApiCredential(BaseModel):
    model_config = ConfigDict(frozen=True)

    key_id: str
    secret: str

    def __repr__(self) -> str:
        return f"ApiCredential(key_id={self.key_id!r}, secret='[REDACTED]')"


class KeyRing:
    """Round-robin over equivalent credentials.

    Algorithm:
    - credentials: ordered, non-empty
    - next():
        - idx = counter; counter += 1 (atomic)
        - return credentials[idx mod len(credentials)]

    The counter is guarded by a `threading.Lock` so callers on different
    threads (or tasks handing work to threads) never read the same slot twice
    within one rotation.
    """

    def __init__(self, credentials: Sequence[ApiCredential]):
        if not credentials:
            raise ConstructionFailed("KeyRing requires at least one credential")
        self._credentials: tuple[ApiCredential, ...] = tuple(credentials)
        self._counter = 0
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._credentials)

    def next(self) -> ApiCredential:
        """Return the next credential in rotation."""
        with self._lock:
            idx = self._counter
            self._counter += 1
        return self._credentials[idx % len(self._credentials)]

    @classmethod
    def from_key(cls, key: ExchangeKey, *, exchange_name: str = "exchange") -> KeyRing:
        """Build a ring from the primary pair plus `specific_params["additional_keys"]`.

        `additional_keys` is a list of `[key_id, secret]` pairs.
        """
        key.require_credentials(exchange_name)
        credentials = [ApiCredential(key_id=key.api_key, secret=key.api_secret_key)]

        extra = key.specific_params.get(ADDITIONAL_KEYS_PARAM)
        if extra is None:
            return cls(credentials)
        if isinstance(extra, (str, bytes)) or not isinstance(extra, Sequence):
            raise ConstructionFailed(f"{exchange_name}: {ADDITIONAL_KEYS_PARAM} must be a list of [key_id, secret] pairs")

        for i, pair in enumerate(extra):
            if isinstance(pair, (str, bytes)) or not isinstance(pair, Sequence) or len(pair) != 2:
                raise ConstructionFailed(f"{exchange_name}: {ADDITIONAL_KEYS_PARAM}[{i}] must be a [key_id, secret] pair")
            if not all(isinstance(v, str) for v in pair):
                raise ConstructionFailed(f"{exchange_name}: {ADDITIONAL_KEYS_PARAM}[{i}] must hold two strings")
            key_id, secret = (v.strip() for v in pair)
            if not key_id or not secret:
                raise ConstructionFailed(f"{exchange_name}: {ADDITIONAL_KEYS_PARAM}[{i}] has a blank value")
            credentials.append(ApiCredential(key_id=key_id, secret=secret))
        return cls(credentials)

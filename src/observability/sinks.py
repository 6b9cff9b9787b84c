"""Observability sinks (storage backends)."""

from __future__ import annotations

import json
import threading
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

import duckdb

from .models import ObservabilityRecord

_COLUMNS = (
    "logged_at",
    "occurred_at",
    "event_type",
    "stage",
    "exchange_name",
    "order_id",
    "summary_json",
)

_TIMESTAMP_COLUMNS = ("logged_at", "occurred_at")


class ObservabilitySink(Protocol):
    """A synchronous sink for observability records.

    The recorder runs sink calls in a worker thread, so sinks may block.
    """

    def write(self, record: ObservabilityRecord) -> None:
        """Persist a single record."""

    def close(self) -> None:
        """Close any underlying resources."""


class InMemoryObservabilitySink:
    """In-memory sink for tests and local runs without a database file."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: list[ObservabilityRecord] = []

    def write(self, record: ObservabilityRecord) -> None:
        with self._lock:
            self._records.append(record)

    def close(self) -> None:  # noqa: D401 - keep interface consistent
        """No-op."""

    def snapshot(self, *, event_type: str | None = None) -> Sequence[ObservabilityRecord]:
        """Return a point-in-time copy of recorded entries, optionally filtered by type."""
        with self._lock:
            return [r for r in self._records if event_type is None or r.event_type == event_type]


@dataclass(frozen=True)
class DuckDBOptions:
    path: Path
    table: str = "exchange_events"


class DuckDBObservabilitySink:
    """DuckDB sink: an embedded, queryable journal of fills and balance updates."""

    def __init__(self, *, path: str | Path, table: str = "exchange_events") -> None:
        """Create (or open) a DuckDB-backed sink at the given path."""
        if not table.isidentifier():
            raise ValueError(f"table must be a plain identifier. Got: {table!r}")
        self._opts = DuckDBOptions(path=Path(path), table=table)
        self._lock = threading.Lock()
        self._conn = duckdb.connect(str(self._opts.path))
        self._ensure_schema()

    def _ensure_schema(self) -> None:
        create_sql = f"""
        create table if not exists {self._opts.table} (
          logged_at timestamptz not null,
          occurred_at timestamptz not null,
          event_type varchar not null,
          stage varchar not null,
          exchange_name varchar not null,
          order_id varchar,
          summary_json varchar not null
        )
        """
        with self._lock:
            self._conn.execute(create_sql)

    def write(self, record: ObservabilityRecord) -> None:
        """Insert a single record; the summary is stored as stable JSON."""
        summary_json = json.dumps(record.summary, separators=(",", ":"), sort_keys=True, default=str)
        insert_sql = f"""
        insert into {self._opts.table} ({", ".join(_COLUMNS)})
        values ({", ".join("?" for _ in _COLUMNS)})
        """
        with self._lock:
            self._conn.execute(
                insert_sql,
                [
                    record.logged_at,
                    record.occurred_at,
                    record.event_type,
                    record.stage,
                    record.exchange_name,
                    record.order_id,
                    summary_json,
                ],
            )

    def fetch(self, *, order_id: str | None = None) -> list[ObservabilityRecord]:
        """Read records back in insertion order, optionally for one order id."""
        # Timestamps come back as epoch microseconds to avoid tz-aware conversion in the driver.
        columns = [f"epoch_us({c})" if c in _TIMESTAMP_COLUMNS else c for c in _COLUMNS]
        select_sql = f"select {', '.join(columns)} from {self._opts.table}"
        params: list[str] = []
        if order_id is not None:
            select_sql += " where order_id = ?"
            params.append(order_id)
        with self._lock:
            rows = self._conn.execute(select_sql, params).fetchall()

        records: list[ObservabilityRecord] = []
        for row in rows:
            values = dict(zip(_COLUMNS, row))
            for c in _TIMESTAMP_COLUMNS:
                values[c] = datetime.fromtimestamp(values[c] / 1_000_000, tz=timezone.utc)
            values["summary"] = json.loads(values.pop("summary_json"))
            records.append(ObservabilityRecord(**values))
        return records

    def close(self) -> None:
        """Close the underlying DuckDB connection."""
        with self._lock:
            self._conn.close()

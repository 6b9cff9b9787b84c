"""Observability primitives.

This package records exchange events (fills, balance updates) as durable
records:
- Capturing both "occurred at" and "logged at" timestamps.
- Persisting records to a sink (DuckDB by default) without blocking the event loop.
"""

from .models import ObservabilityRecord
from .recorder import ObservabilityRecorder, to_record
from .sinks import DuckDBObservabilitySink, InMemoryObservabilitySink, ObservabilitySink

__all__ = [
    "DuckDBObservabilitySink",
    "InMemoryObservabilitySink",
    "ObservabilityRecord",
    "ObservabilityRecorder",
    "ObservabilitySink",
    "to_record",
]

"""Persistence layer for hrflow records."""

from __future__ import annotations

import os
from typing import Optional

from ..config import HrflowConfig, load_config
from .inmemory import InMemoryRecordStore
from .models import (
    IN_FLIGHT_STATUSES,
    TERMINAL_STATUSES,
    EscalationRecord,
    StepTransition,
    WorkflowInstance,
)
from .repository import RecordStore
from .sqlite import SQLiteRecordStore

try:  # pragma: no cover - optional dependency
    from .postgres import PostgresRecordStore
except ImportError:  # pragma: no cover - optional dependency
    PostgresRecordStore = None  # type: ignore


def open_record_store(
    collection: str,
    database_url: Optional[str] = None,
    config: Optional[HrflowConfig] = None,
) -> RecordStore:
    """Factory function to open the record store for ``collection``.

    The backend is selected based on ``database_url`` which can be provided
    explicitly, via environment variable ``HRFLOW_DATABASE_URL``, or from
    loaded configuration. When no database is configured, an in-memory store
    is returned. Every call returns a new store; callers own its lifetime.
    """

    config = config or load_config()
    database_url = (
        database_url
        or os.getenv("HRFLOW_DATABASE_URL")
        or getattr(config, "database_url", None)
    )

    if not database_url:
        return InMemoryRecordStore(collection)

    if database_url.startswith("sqlite://"):
        path = database_url.replace("sqlite://", "", 1)
        return SQLiteRecordStore(path, collection)
    if database_url.startswith("postgres://") or database_url.startswith(
        "postgresql://"
    ):
        if PostgresRecordStore is None:
            raise RuntimeError("Postgres support not available")
        return PostgresRecordStore(database_url, collection)
    raise ValueError(f"Unsupported database backend: {database_url}")


__all__ = [
    "EscalationRecord",
    "IN_FLIGHT_STATUSES",
    "InMemoryRecordStore",
    "PostgresRecordStore",
    "RecordStore",
    "SQLiteRecordStore",
    "StepTransition",
    "TERMINAL_STATUSES",
    "WorkflowInstance",
    "open_record_store",
]

"""Core memory documents, the daily log, and the lease that guards them."""

from koro.memory.lease import MemoryLease
from koro.memory.models import (
    WRITABLE_DOCUMENTS,
    CoreDocument,
    CoreMemoryDocument,
    LogRecord,
    SummaryPeriod,
    parse_date,
    parse_period_id,
)
from koro.memory.store import LogSearch, MemoryStore

__all__ = [
    "WRITABLE_DOCUMENTS",
    "CoreDocument",
    "CoreMemoryDocument",
    "LogRecord",
    "LogSearch",
    "MemoryLease",
    "MemoryStore",
    "SummaryPeriod",
    "parse_date",
    "parse_period_id",
]

"""Data models for core memory, the daily log and its summaries."""

import re
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum

from koro.errors import InvalidRequest


class CoreDocument(str, Enum):
    """The fixed set of always-loaded memory documents."""

    IDENTITY = "identity"
    USER = "user"
    STATE = "state"

    @property
    def filename(self) -> str:
        return f"{self.value}.md"

    @classmethod
    def parse(cls, name: "str | CoreDocument") -> "CoreDocument":
        """Accept ``state``, ``state.md`` or a member; reject anything else."""
        if isinstance(name, cls):
            return name
        key = str(name).strip().lower()
        if key.endswith(".md"):
            key = key[:-3]
        try:
            return cls(key)
        except ValueError:
            raise InvalidRequest(f"Invalid core memory document: {name!r}") from None


# Documents a request or tool call may replace. Identity is operator-owned.
WRITABLE_DOCUMENTS = frozenset({CoreDocument.USER, CoreDocument.STATE})


@dataclass(frozen=True)
class CoreMemoryDocument:
    """One core memory document as read from disk."""

    name: CoreDocument
    content: str
    modified_at: datetime | None = None


@dataclass(frozen=True)
class LogRecord:
    """A single timestamped record in a day's log."""

    timestamp: datetime
    text: str

    @property
    def date(self) -> date:
        return self.timestamp.date()

    def format(self) -> str:
        return f"[{self.timestamp:%Y-%m-%d %H:%M:%S}] {self.text}"


def parse_date(value: "str | date") -> date:
    """Parse a ``YYYY-MM-DD`` day, rejecting anything else."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if len(text) != 10 or text[4] != "-" or text[7] != "-":
        raise InvalidRequest(f"Invalid date format (expected YYYY-MM-DD): {value!r}")
    try:
        return date.fromisoformat(text)
    except ValueError:
        raise InvalidRequest(f"Invalid date value: {value!r}") from None


class SummaryPeriod(str, Enum):
    """Rollup summaries kept beside the daily log."""

    WEEKLY = "weekly"
    MONTHLY = "monthly"

    @classmethod
    def parse(cls, value: "str | SummaryPeriod") -> "SummaryPeriod":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise InvalidRequest(f"Invalid summary period: {value!r}") from None


_WEEK_ID_RE = re.compile(r"^(\d{4})-W(\d{2})$")
_MONTH_ID_RE = re.compile(r"^(\d{4})-(\d{2})$")


def parse_period_id(period: "str | SummaryPeriod", period_id: str) -> tuple[SummaryPeriod, str]:
    """Validate an ISO week (``2026-W08``) or month (``2026-02``) id."""
    period = SummaryPeriod.parse(period)
    text = str(period_id).strip()
    if period is SummaryPeriod.WEEKLY:
        match = _WEEK_ID_RE.match(text)
        if match:
            try:
                date.fromisocalendar(int(match.group(1)), int(match.group(2)), 1)
                return period, text
            except ValueError:
                pass
        raise InvalidRequest(f"Invalid week id (expected YYYY-Www): {period_id!r}")

    match = _MONTH_ID_RE.match(text)
    if not match or not 1 <= int(match.group(2)) <= 12:
        raise InvalidRequest(f"Invalid month id (expected YYYY-MM): {period_id!r}")
    return period, text

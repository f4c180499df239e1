"""Memory store - core memory documents and the append-only daily log.

Layout under ``base_dir``::

    core/identity.md
    core/user.md
    core/state.md
    logs/daily/YYYY-MM-DD.jsonl
    logs/weekly/YYYY-Www.md
    logs/monthly/YYYY-MM.md

Core documents and summaries are replaced whole through a temp file and
``os.replace``. Daily logs are JSONL files that are only ever appended to.
"""

import json
import os
import re
import tempfile
import threading
from collections.abc import Iterator
from datetime import date, datetime
from pathlib import Path

import structlog

from koro.errors import StorageUnavailable
from koro.memory.models import (
    CoreDocument,
    CoreMemoryDocument,
    LogRecord,
    SummaryPeriod,
    parse_date,
    parse_period_id,
)

logger = structlog.get_logger(__name__)

DateRange = tuple[date | None, date | None]

_LOG_NAME_RE = re.compile(r"^\d{4}-\d{2}-\d{2}\.jsonl$")


def _keywords(query: str) -> list[str]:
    """Lowercased, de-duplicated query terms in their original order."""
    seen: list[str] = []
    for word in re.findall(r"\w+", query.lower()):
        if word not in seen:
            seen.append(word)
    return seen


class LogSearch:
    """Lazy, restartable view over matching log records.

    Each iteration rescans the log area, yielding records in ascending
    timestamp order. A record matches when it contains any query keyword;
    an empty query matches every record.
    """

    def __init__(self, store: "MemoryStore", query: str, date_range: DateRange | None = None):
        self._store = store
        self.query = query
        self.keywords = _keywords(query)
        self.start, self.end = date_range or (None, None)

    def score(self, record: LogRecord) -> int:
        """Number of distinct keywords found in the record."""
        text = record.text.lower()
        return sum(1 for kw in self.keywords if kw in text)

    def matches(self, record: LogRecord) -> bool:
        return not self.keywords or self.score(record) > 0

    def __iter__(self) -> Iterator[LogRecord]:
        for day in self._store.list_log_dates():
            if self.start and day < self.start:
                continue
            if self.end and day > self.end:
                break
            for record in self._store.read_daily_log(day):
                if self.matches(record):
                    yield record


class MemoryStore:
    """Persistent store for core memory and daily logs."""

    def __init__(self, base_dir: Path):
        self.base_dir = base_dir
        self.core_dir = base_dir / "core"
        self.logs_dir = base_dir / "logs" / "daily"
        self.summary_dirs = {period: base_dir / "logs" / period.value for period in SummaryPeriod}
        self._append_lock = threading.Lock()
        try:
            self.core_dir.mkdir(parents=True, exist_ok=True)
            self.logs_dir.mkdir(parents=True, exist_ok=True)
            for path in self.summary_dirs.values():
                path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageUnavailable(f"Cannot prepare memory directory {base_dir}: {e}") from e

    # ------------------------------------------------------------------
    # Core memory
    # ------------------------------------------------------------------

    def _core_path(self, name: CoreDocument) -> Path:
        return self.core_dir / name.filename

    def read_document(self, name: str | CoreDocument) -> CoreMemoryDocument:
        """Read a core document with its last-modified time."""
        doc = CoreDocument.parse(name)
        path = self._core_path(doc)
        try:
            content = path.read_text(encoding="utf-8")
            modified = datetime.fromtimestamp(path.stat().st_mtime)
        except FileNotFoundError:
            return CoreMemoryDocument(name=doc, content="")
        except OSError as e:
            raise StorageUnavailable(f"Failed to read core memory {doc.filename}: {e}") from e
        return CoreMemoryDocument(name=doc, content=content, modified_at=modified)

    def read_core(self, name: str | CoreDocument) -> str:
        """Return a core document's content, or ``""`` if never written."""
        return self.read_document(name).content

    @staticmethod
    def _replace_file(path: Path, content: str) -> None:
        """Write through a synced temp file and ``os.replace`` it over ``path``."""
        tmp_name = None
        try:
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=path.parent,
                prefix=f".{path.stem}.",
                suffix=".tmp",
                delete=False,
            ) as tmp:
                tmp_name = tmp.name
                tmp.write(content)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.replace(tmp_name, path)
        except OSError:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    def write_core(self, name: str | CoreDocument, content: str) -> None:
        """Atomically replace a core document."""
        doc = CoreDocument.parse(name)
        try:
            self._replace_file(self._core_path(doc), content)
        except OSError as e:
            raise StorageUnavailable(f"Failed to write core memory {doc.filename}: {e}") from e
        logger.info("memory.core_written", document=doc.value, chars=len(content))

    # ------------------------------------------------------------------
    # Daily logs
    # ------------------------------------------------------------------

    def _log_path(self, day: date) -> Path:
        return self.logs_dir / f"{day.isoformat()}.jsonl"

    def append_log(
        self,
        day: str | date,
        record: str,
        timestamp: datetime | None = None,
    ) -> LogRecord:
        """Append one record to a day's log, creating the log if absent."""
        day = parse_date(day)
        now = datetime.now()
        if timestamp is None:
            timestamp = now if now.date() == day else datetime.combine(day, now.time())
        entry = LogRecord(timestamp=timestamp, text=record)
        line = json.dumps({"timestamp": timestamp.isoformat(), "text": record}) + "\n"

        path = self._log_path(day)
        try:
            with self._append_lock:
                with open(path, "a", encoding="utf-8") as f:
                    f.write(line)
                    f.flush()
                    os.fsync(f.fileno())
        except OSError as e:
            raise StorageUnavailable(f"Failed to append to log {path.name}: {e}") from e
        return entry

    def read_daily_log(self, day: str | date) -> list[LogRecord]:
        """Return one day's records in order, or an empty list."""
        day = parse_date(day)
        path = self._log_path(day)
        records: list[LogRecord] = []
        try:
            with open(path, encoding="utf-8") as f:
                for lineno, line in enumerate(f, 1):
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        data = json.loads(line)
                        records.append(LogRecord(
                            timestamp=datetime.fromisoformat(data["timestamp"]),
                            text=data["text"],
                        ))
                    except (json.JSONDecodeError, KeyError, TypeError, ValueError):
                        logger.warning("memory.log_line_skipped", file=path.name, line=lineno)
        except FileNotFoundError:
            return []
        except OSError as e:
            raise StorageUnavailable(f"Failed to read log {path.name}: {e}") from e
        records.sort(key=lambda r: r.timestamp)
        return records

    def list_log_dates(self) -> list[date]:
        """All days with a log, oldest first."""
        try:
            names = sorted(p.name for p in self.logs_dir.iterdir() if _LOG_NAME_RE.match(p.name))
        except FileNotFoundError:
            return []
        except OSError as e:
            raise StorageUnavailable(f"Failed to list logs: {e}") from e
        days = []
        for name in names:
            try:
                days.append(date.fromisoformat(name[:10]))
            except ValueError:
                continue
        return days

    def search_logs(self, query: str, date_range: DateRange | None = None) -> LogSearch:
        """Keyword search over the daily logs, oldest record first."""
        return LogSearch(self, query, date_range)

    # ------------------------------------------------------------------
    # Weekly / monthly summaries
    # ------------------------------------------------------------------

    def _summary_path(self, period: str | SummaryPeriod, period_id: str) -> tuple[SummaryPeriod, Path]:
        period, period_id = parse_period_id(period, period_id)
        return period, self.summary_dirs[period] / f"{period_id}.md"

    def read_summary(self, period: str | SummaryPeriod, period_id: str) -> str | None:
        """Return a weekly or monthly summary, or None if never written."""
        _, path = self._summary_path(period, period_id)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageUnavailable(f"Failed to read summary {path.name}: {e}") from e

    def write_summary(self, period: str | SummaryPeriod, period_id: str, content: str) -> None:
        """Atomically replace a weekly or monthly summary."""
        period, path = self._summary_path(period, period_id)
        try:
            self._replace_file(path, content)
        except OSError as e:
            raise StorageUnavailable(f"Failed to write summary {path.name}: {e}") from e
        logger.info("memory.summary_written", period=period.value, id=path.stem, chars=len(content))

    def list_summaries(self, period: str | SummaryPeriod) -> list[str]:
        """Ids of the stored summaries for ``period``, oldest first."""
        period = SummaryPeriod.parse(period)
        try:
            return sorted(p.stem for p in self.summary_dirs[period].glob("*.md"))
        except OSError as e:
            raise StorageUnavailable(f"Failed to list {period.value} summaries: {e}") from e

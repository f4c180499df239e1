"""Tests for memory data models."""

from datetime import date, datetime

import pytest

from koro.errors import InvalidRequest
from koro.memory.models import (
    WRITABLE_DOCUMENTS,
    CoreDocument,
    LogRecord,
    SummaryPeriod,
    parse_date,
    parse_period_id,
)


class TestCoreDocument:
    @pytest.mark.parametrize("name", ["state", "state.md", "STATE", " state.md "])
    def test_parse(self, name):
        assert CoreDocument.parse(name) is CoreDocument.STATE

    def test_filename(self):
        assert CoreDocument.IDENTITY.filename == "identity.md"

    @pytest.mark.parametrize("name", ["notes", "../state", "state.txt", ""])
    def test_parse_rejects(self, name):
        with pytest.raises(InvalidRequest):
            CoreDocument.parse(name)

    def test_identity_not_writable(self):
        assert CoreDocument.IDENTITY not in WRITABLE_DOCUMENTS
        assert CoreDocument.USER in WRITABLE_DOCUMENTS


class TestParseDate:
    def test_valid(self):
        assert parse_date("2026-10-19") == date(2026, 10, 19)
        assert parse_date(date(2026, 10, 19)) == date(2026, 10, 19)
        assert parse_date(datetime(2026, 10, 19, 8, 0)) == date(2026, 10, 19)

    @pytest.mark.parametrize("value", ["2026/10/19", "20261019", "2026-02-30", "2026-1-01x"])
    def test_invalid(self, value):
        with pytest.raises(InvalidRequest):
            parse_date(value)


class TestLogRecord:
    def test_format(self):
        record = LogRecord(timestamp=datetime(2026, 10, 19, 8, 5, 3), text="hello")
        assert record.format() == "[2026-10-19 08:05:03] hello"
        assert record.date == date(2026, 10, 19)


class TestParsePeriodId:
    def test_weekly(self):
        assert parse_period_id("weekly", "2026-W08") == (SummaryPeriod.WEEKLY, "2026-W08")

    def test_week_53_only_in_long_years(self):
        assert parse_period_id("weekly", "2026-W53")[1] == "2026-W53"
        with pytest.raises(InvalidRequest, match="week id"):
            parse_period_id("weekly", "2025-W53")

    def test_monthly(self):
        assert parse_period_id("Monthly", " 2026-12 ") == (SummaryPeriod.MONTHLY, "2026-12")

    @pytest.mark.parametrize("period_id", ["2026-00", "2026-13", "2026-W08", "26-01"])
    def test_monthly_rejects(self, period_id):
        with pytest.raises(InvalidRequest, match="month id"):
            parse_period_id("monthly", period_id)

    def test_unknown_period(self):
        with pytest.raises(InvalidRequest, match="summary period"):
            parse_period_id("daily", "2026-01-01")

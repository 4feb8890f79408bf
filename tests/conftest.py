"""Pytest configuration and fixtures."""

import csv
import logging
import os
from collections.abc import Sequence
from datetime import datetime
from pathlib import Path
from typing import Any

import pytest
import structlog

# Set test environment variables before importing settings
os.environ.setdefault("REMINDER_CALENDAR_ID", "team@example.org")
os.environ.setdefault("GOOGLE_CALENDAR_TOKEN", "test-token")

from kyc_fieldops.config.roster import Confederate  # noqa: E402
from kyc_fieldops.design import ScheduleDesign  # noqa: E402
from kyc_fieldops.reminders.calendar_api import (  # noqa: E402
    CalendarNotFoundError,
    EventReminder,
)
from kyc_fieldops.reminders.storage import CsvWorkbook, JsonFilePropertyStore  # noqa: E402

PAYMENT_HEADER = [
    "confederate_name",
    "confederate_id",
    "transaction_order",
    "channel",
    "amount_usd",
    "delivery_method",
    "approximate_date",
    "send_by_date",
]


class FakeCalendar:
    """In-memory calendar that can be scripted to fail on given calls."""

    def __init__(
        self,
        calendar_id: str = "team@example.org",
        script: Sequence[Exception | None] = (),
        exists: bool = True,
    ):
        self.calendar_id = calendar_id
        self.events: list[dict[str, Any]] = []
        self.calls = 0
        self._script = list(script)
        self._exists = exists

    async def __aenter__(self) -> "FakeCalendar":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        return None

    async def verify(self) -> None:
        if not self._exists:
            raise CalendarNotFoundError(f"Calendar not found: {self.calendar_id}", 404)

    async def create_event(
        self,
        *,
        title: str,
        start: datetime,
        end: datetime,
        description: str,
        reminders: Sequence[EventReminder] = (),
    ) -> str:
        self.calls += 1
        if self._script:
            failure = self._script.pop(0)
            if failure is not None:
                raise failure
        self.events.append(
            {
                "title": title,
                "start": start,
                "end": end,
                "description": description,
                "reminders": tuple(reminders),
            }
        )
        return f"evt-{len(self.events):03d}"


class SleepRecorder:
    """Stand-in for asyncio.sleep that records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


def write_sheet(directory: Path, rows: Sequence[Sequence[Any]], name: str = "Payment Schedule") -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / f"{name}.csv"
    with path.open("w", newline="", encoding="utf-8") as f:
        csv.writer(f, lineterminator="\n").writerows(rows)
    return path


def read_sheet(path: Path) -> list[list[str]]:
    with path.open(newline="", encoding="utf-8") as f:
        return [list(row) for row in csv.reader(f)]


@pytest.fixture
def design() -> ScheduleDesign:
    """Default study design."""
    return ScheduleDesign()


@pytest.fixture
def small_roster() -> tuple[Confederate, ...]:
    return (
        Confederate(confederate_id=1, country="Mexico"),
        Confederate(confederate_id=2, country="Mexico"),
        Confederate(confederate_id=11, country="Argentina"),
    )


@pytest.fixture
def fake_calendar() -> FakeCalendar:
    return FakeCalendar()


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def payment_rows() -> list[list[str]]:
    """Three payments due 2026-03-02, one undated row, one due 2026-03-09."""
    return [
        PAYMENT_HEADER,
        ["Carla", "3", "12", "Bank", "100", "Online", "2026-03-04", "2026-03-02"],
        ["ana", "1", "5", "Crypto", "250", "Online", "2026-03-05", "2026-03-02"],
        ["Dan", "4", "1", "Fintech", "250", "Online", "2026-03-06", ""],
        ["Bruno", "2", "7", "MTS", "100", "In-person", "2026-03-06", "2026-03-02"],
        ["Carla", "3", "13", "Crypto", "250", "Online", "2026-03-10", "2026-03-09"],
    ]


@pytest.fixture
def workbook_dir(tmp_path: Path, payment_rows: list[list[str]]) -> Path:
    directory = tmp_path / "workbook"
    write_sheet(directory, payment_rows)
    return directory


@pytest.fixture
def workbook(workbook_dir: Path) -> CsvWorkbook:
    return CsvWorkbook(workbook_dir)


@pytest.fixture
def properties(tmp_path: Path) -> JsonFilePropertyStore:
    return JsonFilePropertyStore(tmp_path / "properties.json")


@pytest.fixture(autouse=True)
def reset_logging():
    """Undo logging configuration done by the CLI between tests."""
    yield
    structlog.contextvars.clear_contextvars()
    structlog.reset_defaults()
    root = logging.getLogger()
    for handler in [h for h in root.handlers if type(h) is logging.StreamHandler]:
        root.removeHandler(handler)

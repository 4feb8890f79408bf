"""Daily "send funds" reminder batch.

Reads the payment sheet, groups rows by send-by date and creates one calendar
event per date that does not have one yet. The date -> event id map in the
property store is the single source of truth for which dates are done, so
re-running the batch never duplicates an event.
"""

import asyncio
import math
import re
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field, replace
from datetime import date, datetime, time, timedelta
from typing import Any
from zoneinfo import ZoneInfo

import structlog

from kyc_fieldops.config import get_settings
from kyc_fieldops.config.settings import FlatSettings
from kyc_fieldops.reminders.calendar_api import (
    DEFAULT_RATE_LIMIT_MARKERS,
    CalendarNotFoundError,
    CalendarService,
    EventReminder,
    is_rate_limit_error,
)
from kyc_fieldops.reminders.storage import (
    DAILY_EVENT_MAP_PROPERTY,
    PropertyStore,
    Sheet,
    Workbook,
    load_daily_event_map,
    save_daily_event_map,
)

logger = structlog.get_logger(__name__)

SleepFn = Callable[[float], Awaitable[None]]

# Formats accepted for text due-dates after ISO parsing fails
_DATE_FORMATS = (
    "%m/%d/%Y",
    "%m/%d/%Y %H:%M:%S",
    "%m/%d/%Y %H:%M",
    "%Y/%m/%d",
    "%b %d, %Y",
    "%B %d, %Y",
    "%d %b %Y",
    "%d %B %Y",
)


class ReminderSetupError(RuntimeError):
    """A required input (sheet, column or calendar) is missing."""

    pass


@dataclass(frozen=True)
class ReminderConfig:
    """Everything the reminder batch needs, passed in explicitly."""

    sheet_name: str = "Payment Schedule"
    header_row: int = 1
    calendar_id: str = ""
    timezone: str = "UTC"
    event_time: time = time(9, 0)
    event_duration: timedelta = timedelta(minutes=20)
    popup_reminder_min: int | None = 10
    email_reminder_min: int | None = 60
    max_events_per_run: int = 40
    sleep_between_creates: float = 0.3
    max_retries: int = 6
    backoff_cap_seconds: float = 60.0
    rate_limit_markers: tuple[str, ...] = DEFAULT_RATE_LIMIT_MARKERS
    property_key: str = DAILY_EVENT_MAP_PROPERTY

    # Sheet columns
    col_send_by_date: str = "send_by_date"
    col_daily_event_id: str = "calendar_event_id_daily"
    col_confederate_name: str = "confederate_name"
    col_confederate_id: str = "confederate_id"
    col_order: str = "transaction_order"
    col_channel: str = "channel"
    col_amount: str = "amount_usd"
    col_delivery: str = "delivery_method"
    col_tx_date: str = "approximate_date"
    col_tx_datetime: str = "transaction_datetime"

    @property
    def reminders(self) -> tuple[EventReminder, ...]:
        out: list[EventReminder] = []
        if self.popup_reminder_min is not None:
            out.append(EventReminder(method="popup", minutes=self.popup_reminder_min))
        if self.email_reminder_min is not None:
            out.append(EventReminder(method="email", minutes=self.email_reminder_min))
        return tuple(out)

    def event_window(self, day: date) -> tuple[datetime, datetime]:
        """Start and end of the reminder event on `day`."""
        start = datetime.combine(day, self.event_time, tzinfo=ZoneInfo(self.timezone))
        return start, start + self.event_duration

    @classmethod
    def from_settings(
        cls, settings: FlatSettings | None = None, **overrides: Any
    ) -> "ReminderConfig":
        """Build the config from settings, with keyword overrides."""
        s = settings or get_settings()
        config = cls(
            sheet_name=s.reminder_sheet_name,
            calendar_id=s.reminder_calendar_id,
            timezone=s.reminder_timezone,
            event_time=time(s.reminder_event_hour, s.reminder_event_minute),
            event_duration=timedelta(minutes=s.reminder_event_duration_min),
            popup_reminder_min=s.reminder_popup_min,
            email_reminder_min=s.reminder_email_min,
            max_events_per_run=s.reminder_max_events_per_run,
            sleep_between_creates=s.reminder_sleep_between_creates,
            max_retries=s.reminder_max_retries,
            backoff_cap_seconds=s.reminder_backoff_cap_seconds,
        )
        return replace(config, **overrides) if overrides else config


@dataclass(frozen=True)
class PaymentRow:
    """A payment sheet row due on a given send-by date."""

    row_number: int  # 1-based sheet row
    confederate_name: str = ""
    confederate_id: str = ""
    transaction_order: str = ""
    channel: str = ""
    amount: str = ""
    delivery_method: str = ""
    tx_date: str = ""
    tx_datetime: str = ""


@dataclass(frozen=True)
class SheetSchema:
    """Resolved 0-based column positions."""

    headers: tuple[str, ...]
    due_date_index: int
    event_id_index: int

    def index(self, name: str) -> int | None:
        try:
            return self.headers.index(name)
        except ValueError:
            return None


@dataclass(frozen=True)
class ReminderRunResult:
    """Counts reported at the end of a run."""

    created: int
    skipped_existing: int
    remaining: int
    total_dates: int
    created_event_ids: dict[str, str] = field(default_factory=dict)

    def summary(self) -> str:
        if self.total_dates == 0:
            return "No rows with send_by_date found."
        lines = [
            "Daily reminders:",
            f"Created this run: {self.created}",
            f"Already existed (skipped): {self.skipped_existing}",
            f"Remaining dates without an event: {self.remaining}",
            "",
            "Run the reminders command again to continue."
            if self.remaining > 0
            else "All dates covered.",
        ]
        return "\n".join(lines)


# === Parsing ===


def normalize_due_date(value: Any) -> date | None:
    """Reduce a sheet cell to a calendar date, ignoring time of day.

    Returns None for empty or unparseable values.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        pass
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def _cell_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        if value.time() == time(0, 0):
            return value.date().isoformat()
        return value.isoformat(sep=" ", timespec="minutes")
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def _headers(values: Sequence[Sequence[Any]], config: ReminderConfig) -> tuple[str, ...]:
    if len(values) < config.header_row:
        raise ReminderSetupError(f"Sheet has no header row: {config.sheet_name}")
    return tuple(str(h).strip() for h in values[config.header_row - 1])


def ensure_schema(sheet: Sheet, config: ReminderConfig) -> SheetSchema:
    """Validate the sheet header and add the event-id column if missing.

    Runs once before the batch reads any rows.

    Raises:
        ReminderSetupError: The header row or due-date column is missing.
    """
    headers = list(_headers(sheet.get_values(), config))
    if config.col_send_by_date not in headers:
        raise ReminderSetupError(f"Missing column: {config.col_send_by_date}")

    if config.col_daily_event_id not in headers:
        sheet.set_value(config.header_row, len(headers) + 1, config.col_daily_event_id)
        headers.append(config.col_daily_event_id)
        logger.info("event_id_column_added", column=config.col_daily_event_id)

    return SheetSchema(
        headers=tuple(headers),
        due_date_index=headers.index(config.col_send_by_date),
        event_id_index=headers.index(config.col_daily_event_id),
    )


def group_rows_by_due_date(
    values: Sequence[Sequence[Any]], config: ReminderConfig
) -> dict[str, list[PaymentRow]]:
    """Group data rows by ISO send-by date.

    Rows whose due-date is empty or unparseable are left out.
    """
    headers = _headers(values, config)
    if config.col_send_by_date not in headers:
        raise ReminderSetupError(f"Missing column: {config.col_send_by_date}")
    due_idx = headers.index(config.col_send_by_date)

    def col(row: Sequence[Any], name: str) -> str:
        if name not in headers:
            return ""
        idx = headers.index(name)
        return _cell_text(row[idx]) if idx < len(row) else ""

    by_date: dict[str, list[PaymentRow]] = {}
    for r in range(config.header_row, len(values)):
        row = values[r]
        due = normalize_due_date(row[due_idx] if due_idx < len(row) else None)
        if due is None:
            continue
        by_date.setdefault(due.isoformat(), []).append(
            PaymentRow(
                row_number=r + 1,
                confederate_name=col(row, config.col_confederate_name),
                confederate_id=col(row, config.col_confederate_id),
                transaction_order=col(row, config.col_order),
                channel=col(row, config.col_channel),
                amount=col(row, config.col_amount),
                delivery_method=col(row, config.col_delivery),
                tx_date=col(row, config.col_tx_date),
                tx_datetime=col(row, config.col_tx_datetime),
            )
        )
    return by_date


# === Event text ===


def build_event_title(day_key: str, n_payments: int) -> str:
    return f"SEND FUNDS (Daily) - {day_key} - {n_payments} payment(s)"


def _order_value(order: str) -> float:
    try:
        value = float(order)
    except ValueError:
        return 0.0
    return value if math.isfinite(value) else 0.0


def build_checklist_description(
    day_key: str, rows: Sequence[PaymentRow], sheet_url: str
) -> str:
    """Checklist body for one day's event.

    Rows are sorted by confederate name (case-insensitive), then by numeric
    transaction order.
    """
    ordered = sorted(
        rows, key=lambda x: (x.confederate_name.lower(), _order_value(x.transaction_order))
    )

    lines = [
        "DAILY SEND-FUNDS CHECKLIST",
        f"Send-by date: {day_key}",
        f"Total payments due: {len(rows)}",
        "",
        "Checklist (one line per transaction):",
    ]
    for x in ordered:
        if x.confederate_name:
            who = x.confederate_name
        elif x.confederate_id:
            who = f"Conf {x.confederate_id}"
        else:
            who = "Confederate"
        parts = [
            "- [ ]",
            who,
            f"#{x.transaction_order}" if x.transaction_order else "",
            "-",
            x.channel,
            f"${x.amount}" if x.amount else "",
            f"({x.delivery_method})" if x.delivery_method else "",
            f"tx_date={x.tx_date}" if x.tx_date else "",
            f"row={x.row_number}",
        ]
        lines.append(re.sub(r"\s+", " ", " ".join(parts)).strip())

    lines += ["", "Open source sheet:", sheet_url]
    return "\n".join(lines)


# === Event creation ===


async def create_event_with_retry(
    calendar: CalendarService,
    *,
    title: str,
    start: datetime,
    end: datetime,
    description: str,
    reminders: Sequence[EventReminder],
    max_retries: int,
    backoff_cap_seconds: float,
    rate_limit_markers: Sequence[str] = DEFAULT_RATE_LIMIT_MARKERS,
    sleep: SleepFn = asyncio.sleep,
) -> str:
    """Create an event, backing off exponentially while rate limited.

    Rate-limit errors are retried up to `max_retries` times with delays of
    1, 2, 4, ... seconds (capped). Anything else propagates immediately.
    """
    attempt = 0
    while True:
        try:
            return await calendar.create_event(
                title=title,
                start=start,
                end=end,
                description=description,
                reminders=reminders,
            )
        except Exception as exc:
            if attempt >= max_retries or not is_rate_limit_error(exc, rate_limit_markers):
                raise
            delay = min(backoff_cap_seconds, float(2**attempt))
            logger.warning(
                "event_rate_limited", attempt=attempt, delay_seconds=delay, error=str(exc)
            )
            await sleep(delay)
            attempt += 1


# === Write-back ===


def write_event_ids(
    sheet: Sheet,
    values: Sequence[Sequence[Any]],
    schema: SheetSchema,
    mapping: dict[str, str],
    config: ReminderConfig,
) -> None:
    """Fill the event-id column for every row with a usable due-date."""
    data_rows = values[config.header_row :]
    if not data_rows:
        return

    out: list[Any] = []
    for row in data_rows:
        current = row[schema.event_id_index] if schema.event_id_index < len(row) else ""
        raw_due = row[schema.due_date_index] if schema.due_date_index < len(row) else None
        due = normalize_due_date(raw_due)
        out.append(current if due is None else mapping.get(due.isoformat(), ""))

    sheet.set_column_values(config.header_row + 1, schema.event_id_index + 1, out)


# === Batch ===


class DailyReminderBatch:
    """One run of the daily reminder automation."""

    def __init__(
        self,
        workbook: Workbook,
        calendar: CalendarService,
        properties: PropertyStore,
        config: ReminderConfig | None = None,
        sleep: SleepFn = asyncio.sleep,
    ):
        self._workbook = workbook
        self._calendar = calendar
        self._properties = properties
        self._config = config or ReminderConfig.from_settings()
        self._sleep = sleep
        self._logger = logger.bind(component="daily_reminders", sheet=self._config.sheet_name)

    async def _prepare(self) -> tuple[Sheet, SheetSchema]:
        config = self._config
        sheet = self._workbook.get_sheet(config.sheet_name)
        if sheet is None:
            raise ReminderSetupError(f"Sheet not found: {config.sheet_name}")

        schema = ensure_schema(sheet, config)

        try:
            await self._calendar.verify()
        except CalendarNotFoundError as e:
            raise ReminderSetupError(
                f"Calendar not found: {config.calendar_id or self._calendar.calendar_id}"
            ) from e
        return sheet, schema

    async def run(self) -> ReminderRunResult:
        """Create the missing daily events and report the counts.

        Raises:
            ReminderSetupError: Sheet, due-date column or calendar missing.
            CalendarAPIError: A non-retryable creation error, or rate limiting
                that outlasted the retry cap. Events created before the error
                are still persisted.
        """
        config = self._config
        sheet, schema = await self._prepare()

        values = sheet.get_values()
        by_date = group_rows_by_due_date(values, config)
        if not by_date:
            self._logger.warning("no_due_dates_found")
            return ReminderRunResult(created=0, skipped_existing=0, remaining=0, total_dates=0)

        created_map = load_daily_event_map(self._properties, config.property_key)
        dates = sorted(by_date)
        created_now: dict[str, str] = {}
        skipped = 0

        self._logger.info("reminder_run_starting", dates=len(dates), known=len(created_map))
        try:
            for key in dates:
                if len(created_now) >= config.max_events_per_run:
                    self._logger.info("run_cap_reached", cap=config.max_events_per_run)
                    break
                if key in created_map:
                    skipped += 1
                    continue

                rows = by_date[key]
                start, end = config.event_window(date.fromisoformat(key))
                title = build_event_title(key, len(rows))
                description = build_checklist_description(key, rows, sheet.url)

                await self._sleep(config.sleep_between_creates)
                event_id = await create_event_with_retry(
                    self._calendar,
                    title=title,
                    start=start,
                    end=end,
                    description=description,
                    reminders=config.reminders,
                    max_retries=config.max_retries,
                    backoff_cap_seconds=config.backoff_cap_seconds,
                    rate_limit_markers=config.rate_limit_markers,
                    sleep=self._sleep,
                )
                created_map[key] = event_id
                created_now[key] = event_id
                self._logger.info("daily_event_recorded", date=key, event_id=event_id, rows=len(rows))
        finally:
            try:
                save_daily_event_map(self._properties, created_map, config.property_key)
            except Exception:
                self._logger.exception(
                    "daily_event_map_save_failed", created=len(created_now), dates=created_map
                )
                raise
            finally:
                write_event_ids(sheet, values, schema, created_map, config)

        remaining = sum(1 for key in dates if key not in created_map)
        result = ReminderRunResult(
            created=len(created_now),
            skipped_existing=skipped,
            remaining=remaining,
            total_dates=len(dates),
            created_event_ids=created_now,
        )
        self._logger.info(
            "reminder_run_completed",
            created=result.created,
            skipped_existing=result.skipped_existing,
            remaining=result.remaining,
        )
        return result

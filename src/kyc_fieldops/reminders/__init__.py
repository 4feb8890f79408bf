"""Daily send-funds calendar reminders driven by the payment sheet."""

from kyc_fieldops.reminders.batch import (
    DailyReminderBatch,
    PaymentRow,
    ReminderConfig,
    ReminderRunResult,
    ReminderSetupError,
    build_checklist_description,
    build_event_title,
    create_event_with_retry,
    ensure_schema,
    group_rows_by_due_date,
    normalize_due_date,
)
from kyc_fieldops.reminders.calendar_api import (
    CalendarAPIError,
    CalendarNotFoundError,
    CalendarService,
    EventReminder,
    GoogleCalendarClient,
    RateLimitError,
    is_rate_limit_error,
)
from kyc_fieldops.reminders.storage import (
    CsvWorkbook,
    JsonFilePropertyStore,
    load_daily_event_map,
    save_daily_event_map,
)

__all__ = [
    # Batch
    "DailyReminderBatch",
    "PaymentRow",
    "ReminderConfig",
    "ReminderRunResult",
    "ReminderSetupError",
    "build_checklist_description",
    "build_event_title",
    "create_event_with_retry",
    "ensure_schema",
    "group_rows_by_due_date",
    "normalize_due_date",
    # Calendar
    "CalendarAPIError",
    "CalendarNotFoundError",
    "CalendarService",
    "EventReminder",
    "GoogleCalendarClient",
    "RateLimitError",
    "is_rate_limit_error",
    # Storage
    "CsvWorkbook",
    "JsonFilePropertyStore",
    "load_daily_event_map",
    "save_daily_event_map",
]

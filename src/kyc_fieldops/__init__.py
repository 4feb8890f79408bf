"""KYC field study tooling: randomized confederate schedules and payment reminders."""

__version__ = "0.1.0"

from kyc_fieldops.config import configure_logging, get_settings, load_roster
from kyc_fieldops.design import ScheduleDesign
from kyc_fieldops.export import export_study
from kyc_fieldops.models import Channel, DeliveryMethod, ScheduleRow
from kyc_fieldops.reminders import DailyReminderBatch, ReminderConfig
from kyc_fieldops.sampling import ScheduleGenerationError
from kyc_fieldops.schedule import (
    ScheduleValidationError,
    generate_confederate_schedule,
    generate_study_schedules,
    validate_schedule,
)

__all__ = [
    # Version
    "__version__",
    # Schedule generator
    "Channel",
    "DeliveryMethod",
    "ScheduleDesign",
    "ScheduleGenerationError",
    "ScheduleRow",
    "ScheduleValidationError",
    "export_study",
    "generate_confederate_schedule",
    "generate_study_schedules",
    "validate_schedule",
    # Reminders
    "DailyReminderBatch",
    "ReminderConfig",
    # Config
    "configure_logging",
    "get_settings",
    "load_roster",
]

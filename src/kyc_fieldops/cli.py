"""Command-line entry point.

Usage:
    # Generate every confederate schedule with the study seed
    kyc-fieldops schedule --out data/randomization

    # Create the missing daily send-funds reminders
    kyc-fieldops reminders --workbook data/payments --calendar-id team@example.org
"""

import argparse
import asyncio
import sys
from datetime import date
from pathlib import Path

import structlog

from kyc_fieldops.config import bind_run_context, configure_logging, get_settings, load_roster
from kyc_fieldops.design import ScheduleDesign
from kyc_fieldops.export import export_study
from kyc_fieldops.reminders.batch import DailyReminderBatch, ReminderConfig, ReminderRunResult
from kyc_fieldops.reminders.calendar_api import GoogleCalendarClient
from kyc_fieldops.reminders.storage import CsvWorkbook, JsonFilePropertyStore
from kyc_fieldops.schedule import generate_study_schedules

logger = structlog.get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    settings = get_settings()
    parser = argparse.ArgumentParser(
        prog="kyc-fieldops",
        description="KYC audit field study: schedules and payment reminders",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Log level (default: LOG_LEVEL or INFO)",
    )
    parser.add_argument(
        "--log-format",
        choices=["json", "console"],
        default=None,
        help="Log format (default: LOG_FORMAT or console)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sched = sub.add_parser("schedule", help="Generate randomized confederate schedules")
    sched.add_argument("--out", default=settings.schedule_output_dir, help="Output directory")
    sched.add_argument("--seed", type=int, default=None, help="Global seed (default: STUDY_SEED)")
    sched.add_argument(
        "--roster", default=settings.roster_path, help="Roster YAML (default: packaged roster)"
    )
    sched.add_argument(
        "--start-monday",
        type=date.fromisoformat,
        default=None,
        help="First Monday of the study window (YYYY-MM-DD)",
    )

    rem = sub.add_parser("reminders", help="Create daily send-funds calendar events")
    rem.add_argument(
        "--workbook",
        default=settings.reminder_workbook_dir,
        help="Directory holding '<sheet name>.csv'",
    )
    rem.add_argument(
        "--properties",
        default=settings.reminder_properties_path,
        help="JSON file persisting the date -> event id map",
    )
    rem.add_argument("--sheet", default=None, help="Sheet name (default: REMINDER_SHEET_NAME)")
    rem.add_argument("--calendar-id", default=None, help="Target calendar id")
    rem.add_argument(
        "--max-events", type=int, default=None, help="Per-run creation cap (default: 40)"
    )
    return parser


def run_schedule(args: argparse.Namespace) -> Path:
    """Generate, validate and export all schedules."""
    overrides: dict[str, object] = {}
    if args.seed is not None:
        overrides["global_seed"] = args.seed
    if args.start_monday is not None:
        overrides["study_start_monday"] = args.start_monday
    design = ScheduleDesign.from_settings(**overrides)

    roster = load_roster(args.roster)
    logger.info(
        "schedule_run_starting",
        confederates=len(roster),
        seed=design.global_seed,
        start_monday=design.study_start_monday.isoformat(),
    )
    schedules = generate_study_schedules(roster, design)
    result = export_study(Path(args.out), schedules, design)
    return result.master_file


async def run_reminders(args: argparse.Namespace) -> ReminderRunResult:
    """Run one reminder batch against the CSV workbook and Google Calendar."""
    overrides: dict[str, object] = {}
    if args.sheet:
        overrides["sheet_name"] = args.sheet
    if args.calendar_id:
        overrides["calendar_id"] = args.calendar_id
    if args.max_events is not None:
        overrides["max_events_per_run"] = args.max_events
    config = ReminderConfig.from_settings(**overrides)

    async with GoogleCalendarClient(calendar_id=config.calendar_id) as calendar:
        batch = DailyReminderBatch(
            workbook=CsvWorkbook(args.workbook),
            calendar=calendar,
            properties=JsonFilePropertyStore(args.properties),
            config=config,
        )
        return await batch.run()


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(level=args.log_level, format=args.log_format)
    bind_run_context(args.command)

    try:
        if args.command == "schedule":
            master = run_schedule(args)
            print(f"Master schedule written to {master}")
        else:
            result = asyncio.run(run_reminders(args))
            print(result.summary())
    except KeyboardInterrupt:
        logger.info("run_interrupted")
        return 130
    except Exception as e:
        logger.exception(f"{args.command}_failed", error=str(e))
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())

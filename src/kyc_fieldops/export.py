"""CSV export of schedules and balance tables."""

import csv
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import structlog

from kyc_fieldops.design import ScheduleDesign
from kyc_fieldops.models import SCHEDULE_COLUMNS, ScheduleRow
from kyc_fieldops.schedule import master_schedule
from kyc_fieldops.summary import balance_by_confederate, balance_columns, balance_study

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ExportResult:
    """Paths written by `export_study`."""

    confederate_files: tuple[Path, ...]
    master_file: Path
    confederate_balance_file: Path
    study_balance_file: Path


def _write_csv(path: Path, fieldnames: Sequence[str], records: Sequence[Mapping[str, Any]]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=list(fieldnames), lineterminator="\n")
        writer.writeheader()
        writer.writerows(records)


def write_schedule_csv(path: Path, rows: Sequence[ScheduleRow]) -> None:
    """Write schedule rows with the standard column order."""
    _write_csv(path, SCHEDULE_COLUMNS, [row.to_record() for row in rows])


def confederate_filename(confederate_id: int) -> str:
    return f"confederate_{confederate_id:02d}.csv"


def export_study(
    out_dir: Path,
    schedules: Mapping[int, Sequence[ScheduleRow]],
    design: ScheduleDesign,
) -> ExportResult:
    """Write per-confederate files, the master file and both balance tables.

    Args:
        out_dir: Output directory (created if missing).
        schedules: Validated schedules keyed by confederate id.
        design: Study design, for the balance table columns.

    Returns:
        The written paths.
    """
    out_dir.mkdir(parents=True, exist_ok=True)

    confederate_files: list[Path] = []
    for cid in sorted(schedules):
        path = out_dir / confederate_filename(cid)
        write_schedule_csv(path, schedules[cid])
        confederate_files.append(path)

    master = master_schedule(schedules)
    master_file = out_dir / "master_schedule.csv"
    write_schedule_csv(master_file, master)

    columns = balance_columns(design)
    confederate_balance_file = out_dir / "balance_by_confederate.csv"
    _write_csv(
        confederate_balance_file,
        ["confederate_id", *columns],
        balance_by_confederate(master, design),
    )

    study_balance_file = out_dir / "balance_study.csv"
    _write_csv(study_balance_file, columns, [balance_study(master, design)])

    logger.info(
        "schedules_exported",
        out_dir=str(out_dir),
        confederates=len(confederate_files),
        rows=len(master),
    )
    return ExportResult(
        confederate_files=tuple(confederate_files),
        master_file=master_file,
        confederate_balance_file=confederate_balance_file,
        study_balance_file=study_balance_file,
    )

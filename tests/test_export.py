"""Tests for CSV exports."""

import csv

import pytest

from kyc_fieldops.export import confederate_filename, export_study, write_schedule_csv
from kyc_fieldops.models import SCHEDULE_COLUMNS
from kyc_fieldops.schedule import generate_study_schedules


def _read(path):
    with path.open(newline="", encoding="utf-8") as f:
        return list(csv.DictReader(f))


@pytest.fixture
def schedules(small_roster, design):
    return generate_study_schedules(small_roster, design)


class TestExportStudy:
    """Tests for export_study."""

    def test_files_written(self, tmp_path, schedules, design):
        """Test per-confederate, master and balance files are written."""
        result = export_study(tmp_path / "out", schedules, design)

        assert [p.name for p in result.confederate_files] == [
            "confederate_01.csv",
            "confederate_02.csv",
            "confederate_11.csv",
        ]
        assert result.master_file.name == "master_schedule.csv"
        assert result.confederate_balance_file.name == "balance_by_confederate.csv"
        assert result.study_balance_file.name == "balance_study.csv"
        for path in (*result.confederate_files, result.master_file):
            assert path.exists()

    def test_schedule_columns(self, tmp_path, schedules, design):
        """Test the header and value formatting of a schedule file."""
        result = export_study(tmp_path, schedules, design)
        header = result.master_file.read_text(encoding="utf-8").splitlines()[0]
        rows = _read(result.confederate_files[0])

        assert header == ",".join(SCHEDULE_COLUMNS)
        assert len(rows) == 40
        first = rows[0]
        assert first["confederate_id"] == "1"
        assert first["transaction_order"] == "1"
        assert first["block_10"] == "1"
        assert first["channel"] in {"Bank", "MTS", "Fintech", "Crypto"}
        assert first["amount_usd"] in {"100", "250"}
        assert first["delivery_method"] in {"In-person", "Online"}
        assert len(first["approximate_date"]) == 10

    def test_master_rows(self, tmp_path, schedules, design):
        result = export_study(tmp_path, schedules, design)
        rows = _read(result.master_file)

        assert len(rows) == 120
        assert [r["confederate_id"] for r in rows[::40]] == ["1", "2", "11"]

    def test_balance_files(self, tmp_path, schedules, design):
        """Test balance tables carry the designed totals."""
        result = export_study(tmp_path, schedules, design)
        per_confederate = _read(result.confederate_balance_file)
        study = _read(result.study_balance_file)

        assert len(per_confederate) == 3
        assert all(r["bank"] == "10" and r["in_person"] == "4" for r in per_confederate)
        assert study == [
            {
                "total": "120",
                "bank": "30",
                "mts": "30",
                "fintech": "30",
                "crypto": "30",
                "amount_100": "60",
                "amount_250": "60",
                "in_person": "12",
                "online": "108",
            }
        ]

    def test_byte_identical_reruns(self, tmp_path, small_roster, design):
        """Test two runs with the same seed produce identical files."""
        first = export_study(tmp_path / "a", generate_study_schedules(small_roster, design), design)
        second = export_study(tmp_path / "b", generate_study_schedules(small_roster, design), design)

        for a, b in zip(
            (*first.confederate_files, first.master_file, first.study_balance_file),
            (*second.confederate_files, second.master_file, second.study_balance_file),
        ):
            assert a.read_bytes() == b.read_bytes()


class TestHelpers:
    """Tests for export helpers."""

    def test_confederate_filename(self):
        assert confederate_filename(3) == "confederate_03.csv"
        assert confederate_filename(15) == "confederate_15.csv"

    def test_write_schedule_csv_creates_parent(self, tmp_path, schedules):
        path = tmp_path / "nested" / "dir" / "one.csv"

        write_schedule_csv(path, schedules[1])

        assert len(_read(path)) == 40

"""Tests for the command-line entry point."""

import csv
from unittest.mock import patch

import pytest

from kyc_fieldops import cli


class TestScheduleCommand:
    """Tests for `kyc-fieldops schedule`."""

    def test_writes_all_files(self, tmp_path, capsys):
        """Test the full roster is generated and exported."""
        out = tmp_path / "randomization"

        code = cli.main(["schedule", "--out", str(out), "--seed", "7"])

        assert code == 0
        assert (out / "master_schedule.csv").exists()
        assert len(list(out.glob("confederate_*.csv"))) == 15
        assert "master_schedule.csv" in capsys.readouterr().out

    def test_custom_roster(self, tmp_path):
        roster = tmp_path / "roster.yaml"
        roster.write_text("countries:\n  - country: Peru\n    count: 2\n", encoding="utf-8")
        out = tmp_path / "out"

        code = cli.main(["schedule", "--out", str(out), "--roster", str(roster)])

        assert code == 0
        with (out / "master_schedule.csv").open(newline="", encoding="utf-8") as f:
            rows = list(csv.DictReader(f))
        assert len(rows) == 80
        assert {r["country"] for r in rows} == {"Peru"}

    def test_failure_returns_one(self, tmp_path):
        """Test a missing roster file exits with status 1."""
        code = cli.main(
            ["schedule", "--out", str(tmp_path), "--roster", str(tmp_path / "missing.yaml")]
        )

        assert code == 1

    def test_rejects_bad_start_date(self, tmp_path):
        with pytest.raises(SystemExit):
            cli.main(["schedule", "--out", str(tmp_path), "--start-monday", "not-a-date"])


class TestRemindersCommand:
    """Tests for `kyc-fieldops reminders`."""

    @pytest.fixture(autouse=True)
    def no_inter_call_delay(self, monkeypatch):
        from kyc_fieldops.config import get_settings

        monkeypatch.setenv("REMINDER_SLEEP_BETWEEN_CREATES", "0")
        get_settings.cache_clear()
        yield
        get_settings.cache_clear()

    def test_runs_batch(self, workbook_dir, tmp_path, fake_calendar, capsys):
        """Test the batch runs against the CSV workbook."""
        props = tmp_path / "props.json"

        with patch.object(cli, "GoogleCalendarClient", return_value=fake_calendar) as factory:
            code = cli.main(
                [
                    "reminders",
                    "--workbook",
                    str(workbook_dir),
                    "--properties",
                    str(props),
                    "--calendar-id",
                    "ops@example.org",
                ]
            )

        assert code == 0
        assert factory.call_args.kwargs["calendar_id"] == "ops@example.org"
        assert len(fake_calendar.events) == 2
        assert props.exists()
        with (workbook_dir / "Payment Schedule.csv").open(newline="", encoding="utf-8") as f:
            header = next(csv.reader(f))
        assert header[-1] == "calendar_event_id_daily"
        assert "Created this run: 2" in capsys.readouterr().out

    def test_missing_sheet_returns_one(self, tmp_path, fake_calendar):
        with patch.object(cli, "GoogleCalendarClient", return_value=fake_calendar):
            code = cli.main(
                [
                    "reminders",
                    "--workbook",
                    str(tmp_path),
                    "--properties",
                    str(tmp_path / "p.json"),
                ]
            )

        assert code == 1
        assert fake_calendar.calls == 0

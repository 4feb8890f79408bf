"""Tests for the confederate roster loader."""

from collections import Counter

import pytest
import yaml

from kyc_fieldops.config.roster import Confederate, load_roster, parse_roster


class TestDefaultRoster:
    """Tests for the packaged study roster."""

    def test_has_fifteen_confederates(self):
        """Test the roster size matches the fielded study."""
        roster = load_roster()

        assert len(roster) == 15
        assert [c.confederate_id for c in roster] == list(range(1, 16))

    def test_country_allocation(self):
        """Test two confederates in five countries and one in five others."""
        counts = Counter(c.country for c in load_roster())

        assert sorted(counts.values()) == [1] * 5 + [2] * 5
        assert counts["Mexico"] == 2
        assert counts["Jamaica"] == 1

    def test_ids_follow_file_order(self):
        """Test ids are assigned in file order."""
        roster = load_roster()

        assert roster[0] == Confederate(confederate_id=1, country="Mexico")
        assert roster[1] == Confederate(confederate_id=2, country="Mexico")
        assert roster[-1] == Confederate(confederate_id=15, country="Jamaica")


class TestParseRoster:
    """Tests for roster validation."""

    def test_bare_list(self):
        """Test a list of entries without a wrapper mapping."""
        roster = parse_roster([{"country": "Peru"}, {"country": "Chile", "count": 2}])

        assert roster == (
            Confederate(1, "Peru"),
            Confederate(2, "Chile"),
            Confederate(3, "Chile"),
        )

    def test_expected_size_mismatch(self):
        """Test a roster whose size disagrees with expected_size."""
        with pytest.raises(ValueError, match="expected 3"):
            parse_roster({"expected_size": 3, "countries": [{"country": "Peru"}]})

    @pytest.mark.parametrize(
        "data",
        [
            "Peru",
            {"countries": []},
            {"countries": [{"count": 1}]},
            {"countries": [{"country": "Peru", "count": 0}]},
            {"countries": [{"country": "Peru", "count": "two"}]},
            {"countries": ["Peru"]},
        ],
    )
    def test_invalid_shapes(self, data):
        """Test malformed rosters are rejected."""
        with pytest.raises(ValueError):
            parse_roster(data)


class TestLoadRoster:
    """Tests for loading roster files."""

    def test_load_from_path(self, tmp_path):
        """Test loading a custom roster file."""
        path = tmp_path / "roster.yaml"
        path.write_text(
            yaml.safe_dump({"countries": [{"country": "Brazil", "count": 3}]}),
            encoding="utf-8",
        )

        roster = load_roster(path)

        assert len(roster) == 3
        assert {c.country for c in roster} == {"Brazil"}

    def test_missing_file(self, tmp_path):
        """Test a missing roster path raises."""
        with pytest.raises(FileNotFoundError):
            load_roster(tmp_path / "nope.yaml")

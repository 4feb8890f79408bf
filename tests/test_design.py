"""Tests for the study design parameters."""

from dataclasses import replace
from datetime import date

import pytest

from kyc_fieldops.design import (
    STAGE_SEED_OFFSETS,
    Phase,
    ScheduleDesign,
    phase_week_counts,
)
from kyc_fieldops.models import Channel


class TestPhaseWeekCounts:
    """Tests for splitting a phase target over its weeks."""

    @pytest.mark.parametrize(
        "total,n_weeks,expected",
        [
            (15, 4, [4, 4, 4, 3]),
            (10, 4, [3, 3, 2, 2]),
            (8, 4, [2, 2, 2, 2]),
        ],
    )
    def test_balanced_split(self, total, n_weeks, expected):
        """Test counts differ by at most one and sum to the total."""
        assert phase_week_counts(total, n_weeks) == expected

    def test_rejects_zero_weeks(self):
        with pytest.raises(ValueError):
            phase_week_counts(10, 0)

    def test_phase_week_counts(self):
        """Test the Phase helper delegates to the split."""
        assert Phase(number=3, weeks=(9, 10, 11, 12), total=10).week_counts() == [3, 3, 2, 2]


class TestScheduleDesign:
    """Tests for ScheduleDesign defaults and derived values."""

    def test_derived_counts(self, design):
        """Test the per-channel and per-block figures."""
        assert design.per_channel_total == 10
        assert design.per_amount_per_channel == 5
        assert design.extras_per_block == 2
        assert design.extras_per_channel == 2
        assert design.n_weeks == 12

    def test_phase_for_week(self, design):
        """Test week to phase mapping."""
        assert design.phase_for_week(1) == 1
        assert design.phase_for_week(4) == 1
        assert design.phase_for_week(5) == 2
        assert design.phase_for_week(12) == 3

        with pytest.raises(ValueError):
            design.phase_for_week(13)

    def test_block_for_order(self, design):
        """Test transaction order to block mapping."""
        assert design.block_for_order(1) == 1
        assert design.block_for_order(10) == 1
        assert design.block_for_order(11) == 2
        assert design.block_for_order(40) == 4

    def test_stage_seeds(self, design):
        """Test every stage of every confederate gets its own seed."""
        assert design.stage_seed(3, "channels") == 20251021 + 3 + 100
        assert design.stage_seed(3, "delivery") == 20251021 + 3 + 500

        seeds = {design.stage_seed(7, stage) for stage in STAGE_SEED_OFFSETS}
        assert len(seeds) == len(STAGE_SEED_OFFSETS)

    def test_rejects_non_monday_start(self, design):
        """Test the study must start on a Monday."""
        with pytest.raises(ValueError, match="Monday"):
            replace(design, study_start_monday=date(2026, 2, 3))

    def test_rejects_phase_totals_mismatch(self, design):
        """Test phases must cover every transaction."""
        phases = (Phase(1, (1, 2, 3, 4), 15), Phase(2, (5, 6, 7, 8), 15))
        with pytest.raises(ValueError, match="phase totals"):
            replace(design, phases=phases)

    def test_rejects_duplicate_channels(self):
        with pytest.raises(ValueError, match="distinct"):
            ScheduleDesign(
                channels=(Channel.BANK, Channel.MTS, Channel.FINTECH, Channel.FINTECH),
            )

    def test_rejects_unknown_constrained_channel(self):
        """Test constrained channels must belong to the design."""
        with pytest.raises(ValueError, match="constrained"):
            ScheduleDesign(
                channels=(Channel.BANK, Channel.MTS),
                min_per_block=4,
                max_per_block=5,
            )

    def test_from_settings_overrides(self, monkeypatch):
        """Test settings feed the seed and start date, overrides win."""
        from kyc_fieldops.config import get_settings

        get_settings.cache_clear()
        monkeypatch.setenv("STUDY_SEED", "99")
        try:
            design = ScheduleDesign.from_settings(study_start_monday=date(2026, 3, 2))
        finally:
            get_settings.cache_clear()

        assert design.global_seed == 99
        assert design.study_start_monday == date(2026, 3, 2)

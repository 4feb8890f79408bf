"""Study design parameters for the randomized schedule generator.

Every constant the samplers need lives on `ScheduleDesign`, which is passed
explicitly through the pipeline. The defaults reproduce the fielded design:
40 transactions per confederate over 12 weeks, balanced across four channels
and two amounts.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from kyc_fieldops.config import get_settings
from kyc_fieldops.models import Channel


@dataclass(frozen=True)
class Phase:
    """A run of study weeks with a fixed transaction target."""

    number: int
    weeks: tuple[int, ...]
    total: int

    def week_counts(self) -> list[int]:
        """Balanced weekly counts for this phase, before permutation."""
        return phase_week_counts(self.total, len(self.weeks))


def phase_week_counts(total: int, n_weeks: int) -> list[int]:
    """Split `total` over `n_weeks` as evenly as possible.

    15 over 4 weeks gives [4, 4, 4, 3]; 10 over 4 weeks gives [3, 3, 2, 2].
    """
    if n_weeks < 1:
        raise ValueError("n_weeks must be positive")
    base, extra = divmod(total, n_weeks)
    return [base + 1] * extra + [base] * (n_weeks - extra)


# Added to global_seed + confederate_id so every stage has its own stream
STAGE_SEED_OFFSETS: dict[str, int] = {
    "channels": 100,
    "amounts": 200,
    "weeks": 300,
    "dates": 400,
    "delivery": 500,
}

DEFAULT_PHASES: tuple[Phase, ...] = (
    Phase(number=1, weeks=(1, 2, 3, 4), total=15),
    Phase(number=2, weeks=(5, 6, 7, 8), total=15),
    Phase(number=3, weeks=(9, 10, 11, 12), total=10),
)


@dataclass(frozen=True)
class ScheduleDesign:
    """Constraints and constants for one study's schedules."""

    channels: tuple[Channel, ...] = (
        Channel.BANK,
        Channel.MTS,
        Channel.FINTECH,
        Channel.CRYPTO,
    )
    amounts: tuple[int, ...] = (100, 250)
    transactions_per_confederate: int = 40

    # Temporal balance: blocks of consecutive transaction orders
    n_blocks: int = 4
    block_size: int = 10
    min_per_block: int = 2
    max_per_block: int = 3
    max_consecutive: int = 2

    phases: tuple[Phase, ...] = DEFAULT_PHASES

    # Channels that need a new account are scheduled early
    requires_account_opening: tuple[Channel, ...] = (Channel.FINTECH, Channel.CRYPTO)
    early_weeks_for_account_opening: tuple[int, ...] = (1, 2)

    # In-person delivery is only possible at branches/agents
    in_person_channels: tuple[Channel, ...] = (Channel.BANK, Channel.MTS)
    in_person_per_channel: int = 2
    max_in_person_per_week: int = 1

    max_tx_per_day: int = 1
    weekday_offsets: tuple[int, ...] = (0, 1, 2, 3, 4)

    study_start_monday: date = date(2026, 2, 2)
    global_seed: int = 20251021

    # Rejection-sampling caps
    max_extras_attempts: int = 10_000
    max_sequence_attempts: int = 50_000
    max_week_attempts: int = 20_000
    max_in_person_attempts: int = 20_000

    def __post_init__(self) -> None:
        self._validate()

    def _validate(self) -> None:
        n_channels = len(self.channels)
        if n_channels == 0 or len(set(self.channels)) != n_channels:
            raise ValueError("channels must be non-empty and distinct")
        if self.study_start_monday.weekday() != 0:
            raise ValueError(
                f"study_start_monday must be a Monday, got {self.study_start_monday}"
            )
        if self.n_blocks * self.block_size != self.transactions_per_confederate:
            raise ValueError("n_blocks * block_size must equal transactions_per_confederate")
        if self.transactions_per_confederate % n_channels:
            raise ValueError("transactions must split evenly across channels")
        if self.per_channel_total % len(self.amounts):
            raise ValueError("per-channel total must split evenly across amounts")
        if self.min_per_block * n_channels > self.block_size:
            raise ValueError("min_per_block too large for block_size")
        if (self.extras_per_block * self.n_blocks) % n_channels:
            raise ValueError("block extras cannot be spread evenly across channels")
        if self.extras_per_block > n_channels:
            raise ValueError("each block needs distinct extra channels")
        if self.extras_per_block and self.min_per_block + 1 > self.max_per_block:
            raise ValueError("max_per_block leaves no room for block extras")
        if sum(p.total for p in self.phases) != self.transactions_per_confederate:
            raise ValueError("phase totals must sum to transactions_per_confederate")
        for phase in self.phases:
            if max(phase.week_counts()) > len(self.weekday_offsets) * self.max_tx_per_day:
                raise ValueError(
                    f"phase {phase.number} needs more transactions per week than weekdays"
                )
        constrained = set(self.requires_account_opening) | set(self.in_person_channels)
        if not constrained <= set(self.channels):
            raise ValueError("constrained channels must be part of the design")

    @property
    def per_channel_total(self) -> int:
        """Transactions per channel per confederate (10 by default)."""
        return self.transactions_per_confederate // len(self.channels)

    @property
    def per_amount_per_channel(self) -> int:
        """Transactions per amount within one channel (5 by default)."""
        return self.per_channel_total // len(self.amounts)

    @property
    def extras_per_block(self) -> int:
        """Block slots left after every channel gets its minimum (2 by default)."""
        return self.block_size - self.min_per_block * len(self.channels)

    @property
    def extras_per_channel(self) -> int:
        """How many blocks each channel gets an extra slot in (2 by default)."""
        return (self.extras_per_block * self.n_blocks) // len(self.channels)

    @property
    def n_weeks(self) -> int:
        return sum(len(p.weeks) for p in self.phases)

    def phase_for_week(self, week: int) -> int:
        """Return the phase number containing `week`."""
        for phase in self.phases:
            if week in phase.weeks:
                return phase.number
        raise ValueError(f"week {week} is outside every phase")

    def block_for_order(self, transaction_order: int) -> int:
        """Return the 1-based block for a 1-based transaction order."""
        return (transaction_order - 1) // self.block_size + 1

    def stage_seed(self, confederate_id: int, stage: str) -> int:
        """Seed for one sampling stage of one confederate."""
        return self.global_seed + confederate_id + STAGE_SEED_OFFSETS[stage]

    @classmethod
    def from_settings(cls, **overrides: object) -> ScheduleDesign:
        """Build the design from settings, with keyword overrides."""
        settings = get_settings()
        values: dict[str, object] = {
            "global_seed": settings.study_seed,
            "study_start_monday": settings.study_start_monday,
        }
        values.update(overrides)
        return cls(**values)  # type: ignore[arg-type]

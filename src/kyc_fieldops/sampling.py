"""Constrained randomization stages for confederate schedules.

Each stage draws from its own seeded `random.Random`, so a confederate's
schedule is reproducible from (global seed, confederate id). Constraints are
enforced by rejection sampling with a bounded number of attempts; running out
of attempts raises `ScheduleGenerationError`.
"""

import random
from collections import Counter
from collections.abc import Sequence
from datetime import date, timedelta
from itertools import groupby

import structlog

from kyc_fieldops.design import ScheduleDesign
from kyc_fieldops.models import Channel, DeliveryMethod

logger = structlog.get_logger(__name__)


class ScheduleGenerationError(RuntimeError):
    """Sampling could not satisfy the design constraints."""

    def __init__(self, message: str, stage: str, attempts: int | None = None):
        super().__init__(message)
        self.stage = stage
        self.attempts = attempts


def max_run_length(values: Sequence[object]) -> int:
    """Length of the longest run of identical consecutive values."""
    return max((sum(1 for _ in run) for _, run in groupby(values)), default=0)


# === Channel sequence ===


def make_block_extras(
    rng: random.Random, design: ScheduleDesign
) -> list[tuple[Channel, ...]]:
    """Choose which channels get an extra slot in each block.

    Every channel is an extra in `design.extras_per_channel` blocks, and the
    extras within a block are distinct channels.
    """
    pool = [ch for _ in range(design.extras_per_channel) for ch in design.channels]
    size = design.extras_per_block

    for attempt in range(1, design.max_extras_attempts + 1):
        shuffled = rng.sample(pool, len(pool))
        blocks = [tuple(shuffled[i : i + size]) for i in range(0, len(shuffled), size)]
        if all(len(set(block)) == size for block in blocks):
            logger.debug("block_extras_sampled", attempts=attempt)
            return blocks

    raise ScheduleGenerationError(
        "Failed to generate block extras.",
        stage="extras",
        attempts=design.max_extras_attempts,
    )


def _block_labels(extras: tuple[Channel, ...], design: ScheduleDesign) -> list[Channel]:
    counts = {ch: design.min_per_block for ch in design.channels}
    for ch in extras:
        counts[ch] += 1
    return [ch for ch in design.channels for _ in range(counts[ch])]


def generate_channel_sequence(seed: int, design: ScheduleDesign) -> list[Channel]:
    """Sample the ordered channel sequence for one confederate.

    Args:
        seed: Stage seed.
        design: Study design.

    Returns:
        One channel per transaction order, balanced per block and overall,
        with no run longer than `design.max_consecutive`.
    """
    rng = random.Random(seed)  # nosec B311
    extras = make_block_extras(rng, design)
    block_pools = [_block_labels(block_extras, design) for block_extras in extras]

    for attempt in range(1, design.max_sequence_attempts + 1):
        sequence: list[Channel] = []
        for pool in block_pools:
            sequence.extend(rng.sample(pool, len(pool)))

        if max_run_length(sequence) > design.max_consecutive:
            continue

        totals = Counter(sequence)
        if all(totals[ch] == design.per_channel_total for ch in design.channels):
            logger.debug("channel_sequence_sampled", seed=seed, attempts=attempt)
            return sequence

    raise ScheduleGenerationError(
        "Failed to generate channel sequence with consecutive constraint.",
        stage="channels",
        attempts=design.max_sequence_attempts,
    )


# === Amounts ===


def assign_amounts(
    channels: Sequence[Channel], seed: int, design: ScheduleDesign
) -> list[int]:
    """Give each channel an equal number of every amount, in random order."""
    rng = random.Random(seed)  # nosec B311
    amounts = [0] * len(channels)

    for ch in dict.fromkeys(channels):
        positions = [i for i, value in enumerate(channels) if value == ch]
        if len(positions) % len(design.amounts):
            raise ScheduleGenerationError(
                f"{ch.value} has {len(positions)} slots; cannot balance "
                f"{len(design.amounts)} amounts",
                stage="amounts",
            )
        per_amount = len(positions) // len(design.amounts)
        pool = [amount for amount in design.amounts for _ in range(per_amount)]
        for position, amount in zip(positions, rng.sample(pool, len(pool)), strict=True):
            amounts[position] = amount

    return amounts


# === Weeks ===


def _earliest_week(
    channels: Sequence[Channel], weeks: Sequence[int], channel: Channel
) -> int | None:
    matched = [w for ch, w in zip(channels, weeks, strict=True) if ch == channel]
    return min(matched) if matched else None


def opens_accounts_early(
    channels: Sequence[Channel], weeks: Sequence[int], design: ScheduleDesign
) -> bool:
    """True when every account-opening channel first occurs in an early week."""
    for ch in design.requires_account_opening:
        first = _earliest_week(channels, weeks, ch)
        if first is None or first not in design.early_weeks_for_account_opening:
            return False
    return True


def assign_weeks(
    channels: Sequence[Channel], seed: int, design: ScheduleDesign
) -> list[int]:
    """Assign a study week to every transaction order.

    Orders are consumed phase by phase (15, then 15, then 10 by default).
    Within a phase the weekly counts are a random permutation of the balanced
    split and the week labels are shuffled across that phase's orders.
    """
    rng = random.Random(seed)  # nosec B311

    for attempt in range(1, design.max_week_attempts + 1):
        weeks: list[int] = []
        for phase in design.phases:
            base_counts = phase.week_counts()
            counts = rng.sample(base_counts, len(base_counts))
            labels = [w for w, n in zip(phase.weeks, counts, strict=True) for _ in range(n)]
            weeks.extend(rng.sample(labels, len(labels)))

        if opens_accounts_early(channels, weeks, design):
            logger.debug("weeks_sampled", seed=seed, attempts=attempt)
            return weeks

    raise ScheduleGenerationError(
        "Failed to assign weeks satisfying account-opening constraint.",
        stage="weeks",
        attempts=design.max_week_attempts,
    )


# === Dates ===


def week_start(design: ScheduleDesign, week: int) -> date:
    """Monday of a 1-based study week."""
    return design.study_start_monday + timedelta(weeks=week - 1)


def assign_dates(weeks: Sequence[int], seed: int, design: ScheduleDesign) -> list[date]:
    """Pick a distinct weekday for every transaction within its week."""
    rng = random.Random(seed)  # nosec B311
    dates: list[date | None] = [None] * len(weeks)

    for week in sorted(set(weeks)):
        positions = [i for i, w in enumerate(weeks) if w == week]
        if len(positions) > len(design.weekday_offsets):
            raise ScheduleGenerationError(
                f"Week {week} has {len(positions)} transactions; cannot enforce "
                "weekday-only one-per-day rule.",
                stage="dates",
            )
        offsets = rng.sample(design.weekday_offsets, len(positions))
        monday = week_start(design, week)
        for position, offset in zip(positions, offsets, strict=True):
            dates[position] = monday + timedelta(days=offset)

    return [d for d in dates if d is not None]


# === Delivery ===


def assign_delivery_methods(
    channels: Sequence[Channel],
    weeks: Sequence[int],
    seed: int,
    design: ScheduleDesign,
) -> list[DeliveryMethod]:
    """Mark a few branch/agent transactions as in-person, spread across weeks."""
    rng = random.Random(seed)  # nosec B311
    candidates = {
        ch: [i for i, value in enumerate(channels) if value == ch]
        for ch in design.in_person_channels
    }
    for ch, positions in candidates.items():
        if len(positions) < design.in_person_per_channel:
            raise ScheduleGenerationError(
                f"{ch.value} has only {len(positions)} slots for "
                f"{design.in_person_per_channel} in-person transactions",
                stage="delivery",
            )

    for attempt in range(1, design.max_in_person_attempts + 1):
        picks: list[int] = []
        for positions in candidates.values():
            picks.extend(rng.sample(positions, design.in_person_per_channel))

        per_week = Counter(weeks[i] for i in picks)
        if max(per_week.values(), default=0) <= design.max_in_person_per_week:
            delivery = [DeliveryMethod.ONLINE] * len(channels)
            for i in picks:
                delivery[i] = DeliveryMethod.IN_PERSON
            logger.debug("delivery_sampled", seed=seed, attempts=attempt)
            return delivery

    raise ScheduleGenerationError(
        "Failed to assign in-person transactions under week constraints.",
        stage="delivery",
        attempts=design.max_in_person_attempts,
    )

"""Per-confederate schedule assembly and invariant checks."""

from collections import Counter
from collections.abc import Iterable, Mapping, Sequence

import structlog

from kyc_fieldops.config.roster import Confederate
from kyc_fieldops.design import ScheduleDesign
from kyc_fieldops.models import DeliveryMethod, ScheduleRow
from kyc_fieldops.sampling import (
    assign_amounts,
    assign_dates,
    assign_delivery_methods,
    assign_weeks,
    generate_channel_sequence,
    max_run_length,
)

logger = structlog.get_logger(__name__)


class ScheduleValidationError(AssertionError):
    """A generated schedule broke a design invariant.

    This signals a bug in the generator or an inconsistent design, never a
    transient condition.
    """

    def __init__(self, check: str, message: str, confederate_id: int | None = None):
        super().__init__(f"[{check}] {message}")
        self.check = check
        self.confederate_id = confederate_id


def generate_confederate_schedule(
    confederate: Confederate, design: ScheduleDesign
) -> list[ScheduleRow]:
    """Run every sampling stage for one confederate and validate the result.

    Args:
        confederate: Roster entry (id and country).
        design: Study design.

    Returns:
        Rows ordered by transaction order.

    Raises:
        ScheduleGenerationError: A sampling stage ran out of attempts.
        ScheduleValidationError: The assembled schedule broke an invariant.
    """
    cid = confederate.confederate_id
    channels = generate_channel_sequence(design.stage_seed(cid, "channels"), design)
    amounts = assign_amounts(channels, design.stage_seed(cid, "amounts"), design)
    weeks = assign_weeks(channels, design.stage_seed(cid, "weeks"), design)
    dates = assign_dates(weeks, design.stage_seed(cid, "dates"), design)
    delivery = assign_delivery_methods(
        channels, weeks, design.stage_seed(cid, "delivery"), design
    )

    rows = [
        ScheduleRow(
            confederate_id=cid,
            country=confederate.country,
            transaction_order=order,
            block=design.block_for_order(order),
            phase=design.phase_for_week(week),
            assigned_week=week,
            date=day,
            channel=channel,
            amount=amount,
            delivery_method=method,
        )
        for order, (channel, amount, week, day, method) in enumerate(
            zip(channels, amounts, weeks, dates, delivery, strict=True), start=1
        )
    ]

    validate_schedule(rows, design)
    return rows


def _check(condition: bool, check: str, message: str, confederate_id: int | None) -> None:
    if not condition:
        raise ScheduleValidationError(check, message, confederate_id=confederate_id)


def validate_schedule(rows: Sequence[ScheduleRow], design: ScheduleDesign) -> None:
    """Assert every design invariant on one confederate's schedule.

    Raises:
        ScheduleValidationError: Naming the first violated check.
    """
    cid = rows[0].confederate_id if rows else None
    n = design.transactions_per_confederate

    _check(len(rows) == n, "row_count", f"expected {n} rows, got {len(rows)}", cid)
    _check(
        len({r.confederate_id for r in rows}) == 1,
        "single_confederate",
        "rows belong to more than one confederate",
        cid,
    )
    orders = [r.transaction_order for r in rows]
    _check(
        sorted(orders) == list(range(1, n + 1)),
        "transaction_order",
        "transaction orders must be unique and cover 1..n",
        cid,
    )
    ordered = sorted(rows, key=lambda r: r.transaction_order)

    # Channel totals
    totals = Counter(r.channel for r in rows)
    for ch in design.channels:
        _check(
            totals[ch] == design.per_channel_total,
            "channel_totals",
            f"{ch.value} appears {totals[ch]} times, expected {design.per_channel_total}",
            cid,
        )

    # Amounts within channel
    for ch in design.channels:
        per_amount = Counter(r.amount for r in rows if r.channel == ch)
        for amount in design.amounts:
            _check(
                per_amount[amount] == design.per_amount_per_channel,
                "amount_balance",
                f"{ch.value} has {per_amount[amount]} x {amount}, "
                f"expected {design.per_amount_per_channel}",
                cid,
            )

    # Block balance
    for block in range(1, design.n_blocks + 1):
        in_block = Counter(r.channel for r in rows if r.block == block)
        for ch in design.channels:
            _check(
                design.min_per_block <= in_block[ch] <= design.max_per_block,
                "block_balance",
                f"block {block} has {in_block[ch]} x {ch.value}",
                cid,
            )
    for r in rows:
        _check(
            r.block == design.block_for_order(r.transaction_order),
            "block_assignment",
            f"order {r.transaction_order} labelled block {r.block}",
            cid,
        )

    # No clustering
    _check(
        max_run_length([r.channel for r in ordered]) <= design.max_consecutive,
        "max_consecutive",
        f"a channel repeats more than {design.max_consecutive} times in a row",
        cid,
    )

    # Phase totals
    for phase in design.phases:
        in_phase = sum(1 for r in rows if r.assigned_week in phase.weeks)
        _check(
            in_phase == phase.total,
            "phase_totals",
            f"phase {phase.number} has {in_phase} transactions, expected {phase.total}",
            cid,
        )
    for r in rows:
        _check(
            r.phase == design.phase_for_week(r.assigned_week),
            "phase_assignment",
            f"week {r.assigned_week} labelled phase {r.phase}",
            cid,
        )

    # Account opening priority
    for ch in design.requires_account_opening:
        first = min((r.assigned_week for r in rows if r.channel == ch), default=None)
        _check(
            first in design.early_weeks_for_account_opening,
            "account_opening",
            f"earliest {ch.value} week is {first}",
            cid,
        )

    # Delivery totals
    for ch in design.channels:
        in_person = sum(
            1
            for r in rows
            if r.channel == ch and r.delivery_method == DeliveryMethod.IN_PERSON
        )
        expected = design.in_person_per_channel if ch in design.in_person_channels else 0
        _check(
            in_person == expected,
            "delivery_totals",
            f"{ch.value} has {in_person} in-person transactions, expected {expected}",
            cid,
        )

    # In-person spread across weeks
    in_person_weeks = Counter(
        r.assigned_week for r in rows if r.delivery_method == DeliveryMethod.IN_PERSON
    )
    _check(
        max(in_person_weeks.values(), default=0) <= design.max_in_person_per_week,
        "in_person_spread",
        f"more than {design.max_in_person_per_week} in-person transaction(s) in a week",
        cid,
    )

    # Calendar dates
    for r in rows:
        _check(
            r.date.weekday() in design.weekday_offsets,
            "weekday_only",
            f"order {r.transaction_order} falls on {r.date:%A} {r.date}",
            cid,
        )
        offset_days = (r.date - design.study_start_monday).days
        _check(
            offset_days // 7 + 1 == r.assigned_week,
            "date_in_week",
            f"order {r.transaction_order} date {r.date} is outside week {r.assigned_week}",
            cid,
        )
    per_day = Counter(r.date for r in rows)
    _check(
        max(per_day.values(), default=0) <= design.max_tx_per_day,
        "one_per_day",
        f"more than {design.max_tx_per_day} transaction(s) on one date",
        cid,
    )


def generate_study_schedules(
    roster: Iterable[Confederate], design: ScheduleDesign
) -> dict[int, list[ScheduleRow]]:
    """Generate and validate schedules for every confederate in the roster."""
    schedules: dict[int, list[ScheduleRow]] = {}
    for confederate in roster:
        logger.info(
            "generating_schedule",
            confederate_id=confederate.confederate_id,
            country=confederate.country,
        )
        schedules[confederate.confederate_id] = generate_confederate_schedule(
            confederate, design
        )
    logger.info("schedules_generated", confederates=len(schedules))
    return schedules


def master_schedule(schedules: Mapping[int, Sequence[ScheduleRow]]) -> list[ScheduleRow]:
    """Concatenate schedules ordered by confederate then transaction order."""
    rows = [row for rows in schedules.values() for row in rows]
    return sorted(rows, key=lambda r: (r.confederate_id, r.transaction_order))

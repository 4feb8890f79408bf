"""Balance roll-ups over generated schedules."""

from collections.abc import Iterable, Sequence
from itertools import groupby

from kyc_fieldops.design import ScheduleDesign
from kyc_fieldops.models import DeliveryMethod, ScheduleRow


def balance_columns(design: ScheduleDesign) -> list[str]:
    """Column names of a balance table, without the grouping key."""
    return (
        ["total"]
        + [ch.value.lower() for ch in design.channels]
        + [f"amount_{amount}" for amount in design.amounts]
        + ["in_person", "online"]
    )


def _counts(rows: Sequence[ScheduleRow], design: ScheduleDesign) -> dict[str, int]:
    counts: dict[str, int] = {"total": len(rows)}
    for ch in design.channels:
        counts[ch.value.lower()] = sum(1 for r in rows if r.channel == ch)
    for amount in design.amounts:
        counts[f"amount_{amount}"] = sum(1 for r in rows if r.amount == amount)
    counts["in_person"] = sum(
        1 for r in rows if r.delivery_method == DeliveryMethod.IN_PERSON
    )
    counts["online"] = sum(1 for r in rows if r.delivery_method == DeliveryMethod.ONLINE)
    return counts


def balance_by_confederate(
    rows: Iterable[ScheduleRow], design: ScheduleDesign
) -> list[dict[str, int]]:
    """Channel, amount and delivery counts for each confederate."""
    ordered = sorted(rows, key=lambda r: (r.confederate_id, r.transaction_order))
    table: list[dict[str, int]] = []
    for cid, group in groupby(ordered, key=lambda r: r.confederate_id):
        table.append({"confederate_id": cid, **_counts(list(group), design)})
    return table


def balance_study(rows: Iterable[ScheduleRow], design: ScheduleDesign) -> dict[str, int]:
    """Channel, amount and delivery counts over the whole study."""
    return _counts(list(rows), design)

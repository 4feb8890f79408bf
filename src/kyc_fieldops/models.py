"""Record types shared by the schedule generator and its exports."""

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any


class Channel(str, Enum):
    """Payment rails compared in the study."""

    BANK = "Bank"
    MTS = "MTS"  # Money transfer service
    FINTECH = "Fintech"
    CRYPTO = "Crypto"


class DeliveryMethod(str, Enum):
    """How a confederate completes a transaction."""

    IN_PERSON = "In-person"
    ONLINE = "Online"


# Export header, in row order. Names match the payment sheet columns.
SCHEDULE_COLUMNS: tuple[str, ...] = (
    "confederate_id",
    "country",
    "transaction_order",
    "block_10",
    "phase",
    "assigned_week",
    "approximate_date",
    "channel",
    "amount_usd",
    "delivery_method",
)


@dataclass(frozen=True)
class ScheduleRow:
    """One scheduled transaction for a confederate."""

    confederate_id: int
    country: str
    transaction_order: int  # 1-based, unique per confederate
    block: int
    phase: int
    assigned_week: int
    date: date
    channel: Channel
    amount: int
    delivery_method: DeliveryMethod

    def to_record(self) -> dict[str, Any]:
        """Serialize to an export record keyed by `SCHEDULE_COLUMNS`."""
        return {
            "confederate_id": self.confederate_id,
            "country": self.country,
            "transaction_order": self.transaction_order,
            "block_10": self.block,
            "phase": self.phase,
            "assigned_week": self.assigned_week,
            "approximate_date": self.date.isoformat(),
            "channel": self.channel.value,
            "amount_usd": self.amount,
            "delivery_method": self.delivery_method.value,
        }

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_FLOOR, Decimal
from enum import StrEnum

SLOTS_PER_CATEGORY = 5
PRICE_DECIMALS = 9
PRICE_SCALE = Decimal(10) ** PRICE_DECIMALS


class Category(StrEnum):
    OUTPERFORM = "top_performer"
    UNDERPERFORM = "worst_performer"

    @property
    def flag(self) -> int:
        """On-ledger category byte: 0 for outperform, 1 for underperform."""
        return 0 if self is Category.OUTPERFORM else 1

    @classmethod
    def from_flag(cls, flag: int) -> Category:
        if flag == 0:
            return cls.OUTPERFORM
        if flag == 1:
            return cls.UNDERPERFORM
        raise ValueError(f"Unknown category flag: {flag}")


def price_from_units(units: int) -> Decimal:
    """Convert a 9-decimal fixed-point ledger price to a Decimal."""
    return Decimal(units) / PRICE_SCALE


def price_to_units(price: Decimal) -> int:
    """Convert a price to 9-decimal fixed point, truncating extra precision."""
    return int((price * PRICE_SCALE).to_integral_value(rounding=ROUND_FLOOR))


@dataclass(frozen=True)
class PredictionSlot:
    category: Category
    rank: int  # 0-4 within the category
    asset_id: str = ""
    entry_timestamp: int = 0
    duration: int = 0
    predicted_percentage: int = 0
    entry_price_units: int = 0
    resolution_price_units: int = 0

    @property
    def is_empty(self) -> bool:
        return not self.asset_id.strip()

    @property
    def resolution_timestamp(self) -> int:
        return self.entry_timestamp + self.duration

    @property
    def entry_price(self) -> Decimal:
        return price_from_units(self.entry_price_units)

    @property
    def is_resolved(self) -> bool:
        return self.resolution_price_units != 0

    def is_eligible(self, now: int) -> bool:
        return (
            not self.is_empty
            and self.entry_timestamp > 0
            and self.duration > 0
            and now >= self.resolution_timestamp
        )

    def seconds_remaining(self, now: int) -> int:
        return max(0, self.resolution_timestamp - now)


@dataclass
class PredictionAccount:
    owner: str
    slots: list[PredictionSlot]
    points: int
    last_updated: int
    prediction_count: int | None = None  # absent on compact accounts
    schema: str = "full"
    discriminator: bytes = field(default=b"", repr=False)

    def slot(self, category: Category, rank: int) -> PredictionSlot:
        if not 0 <= rank < SLOTS_PER_CATEGORY:
            raise ValueError(f"Slot rank must be 0-{SLOTS_PER_CATEGORY - 1}, got {rank}")
        for s in self.slots:
            if s.category is category and s.rank == rank:
                return s
        raise KeyError(f"No {category} slot at rank {rank}")

    def eligible_slots(self, now: int) -> list[PredictionSlot]:
        """Slots ready for resolution, outperform ranks first."""
        return [s for s in self.slots if s.is_eligible(now)]

    @property
    def active_slots(self) -> list[PredictionSlot]:
        return [s for s in self.slots if not s.is_empty and s.entry_timestamp > 0]

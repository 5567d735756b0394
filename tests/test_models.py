from __future__ import annotations

from decimal import Decimal

import pytest

from prediction_resolver.models.prediction import (
    Category,
    PredictionAccount,
    PredictionSlot,
    price_from_units,
    price_to_units,
)


class TestCategory:
    def test_values(self) -> None:
        assert Category.OUTPERFORM == "top_performer"
        assert Category.UNDERPERFORM == "worst_performer"

    def test_flags(self) -> None:
        assert Category.OUTPERFORM.flag == 0
        assert Category.UNDERPERFORM.flag == 1
        assert Category.from_flag(1) is Category.UNDERPERFORM

    def test_unknown_flag(self) -> None:
        with pytest.raises(ValueError):
            Category.from_flag(2)


class TestPriceUnits:
    def test_from_units(self) -> None:
        assert price_from_units(1_500_000_000) == Decimal("1.5")

    def test_to_units_truncates(self) -> None:
        assert price_to_units(Decimal("0.0000000019")) == 1
        assert price_to_units(Decimal("43250.123456789")) == 43_250_123_456_789


class TestPredictionSlot:
    def _slot(self, **kwargs) -> PredictionSlot:
        defaults = dict(
            category=Category.OUTPERFORM, rank=0, asset_id="bitcoin",
            entry_timestamp=1000, duration=500, predicted_percentage=10,
            entry_price_units=100_000_000_000,
        )
        defaults.update(kwargs)
        return PredictionSlot(**defaults)

    def test_resolution_timestamp(self) -> None:
        assert self._slot().resolution_timestamp == 1500

    def test_eligible_at_maturity(self) -> None:
        slot = self._slot()
        assert not slot.is_eligible(1499)
        assert slot.is_eligible(1500)

    def test_empty_slot_not_eligible(self) -> None:
        slot = self._slot(asset_id="  ")
        assert slot.is_empty
        assert not slot.is_eligible(10_000)

    def test_zero_duration_not_eligible(self) -> None:
        assert not self._slot(duration=0).is_eligible(10_000)

    def test_seconds_remaining(self) -> None:
        slot = self._slot()
        assert slot.seconds_remaining(1200) == 300
        assert slot.seconds_remaining(2000) == 0

    def test_entry_price(self) -> None:
        assert self._slot().entry_price == Decimal(100)


class TestPredictionAccount:
    def test_slot_lookup_rejects_bad_rank(self) -> None:
        account = PredictionAccount(owner="x", slots=[], points=0, last_updated=0)
        with pytest.raises(ValueError):
            account.slot(Category.OUTPERFORM, 5)

    def test_eligible_slots_keep_order(self) -> None:
        slots = [
            PredictionSlot(Category.OUTPERFORM, 0, "a", 10, 10),
            PredictionSlot(Category.OUTPERFORM, 1),
            PredictionSlot(Category.UNDERPERFORM, 0, "b", 10, 10),
        ]
        account = PredictionAccount(owner="x", slots=slots, points=0, last_updated=0)
        eligible = account.eligible_slots(100)
        assert [(s.category, s.rank) for s in eligible] == [
            (Category.OUTPERFORM, 0), (Category.UNDERPERFORM, 0),
        ]

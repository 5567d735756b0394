"""Tiered accuracy scoring for resolved predictions.

A prediction first has to get the direction right: outperform slots expect
a non-negative move, underperform slots a negative one. A wrong direction
earns a flat consolation award. Otherwise points are tiered by how far the
predicted magnitude was from the actual magnitude, in percentage points.
"""

from __future__ import annotations

from decimal import Decimal

from prediction_resolver.models.prediction import Category, PredictionSlot
from prediction_resolver.models.resolution import AccuracyLabel, Score, ScoredSlot

WRONG_DIRECTION_POINTS = 10
CORRECT_DIRECTION_POINTS = 50

# (max error in percentage points, points, label), ascending
ACCURACY_TIERS: tuple[tuple[Decimal, int, AccuracyLabel], ...] = (
    (Decimal(1), 1000, AccuracyLabel.PERFECT),
    (Decimal(2), 750, AccuracyLabel.EXCELLENT),
    (Decimal(5), 500, AccuracyLabel.GREAT),
    (Decimal(10), 250, AccuracyLabel.GOOD),
    (Decimal(20), 100, AccuracyLabel.FAIR),
)


def actual_percentage(entry_price: Decimal, resolution_price: Decimal) -> Decimal:
    if entry_price <= 0:
        raise ValueError(f"Entry price must be positive, got {entry_price}")
    return (resolution_price - entry_price) / entry_price * 100


def score_prediction(
    predicted_percentage: Decimal | int | float,
    actual: Decimal | int | float,
    category: Category,
) -> Score:
    predicted = Decimal(str(predicted_percentage))
    actual = Decimal(str(actual))

    expects_up = category is Category.OUTPERFORM
    went_up = actual >= 0
    if expects_up != went_up:
        return Score(WRONG_DIRECTION_POINTS, AccuracyLabel.WRONG_DIRECTION)

    error = abs(abs(predicted) - abs(actual))
    for threshold, points, label in ACCURACY_TIERS:
        if error <= threshold:
            return Score(points, label)
    return Score(CORRECT_DIRECTION_POINTS, AccuracyLabel.CORRECT_DIRECTION)


def score_slot(slot: PredictionSlot, resolution_price: Decimal) -> ScoredSlot:
    actual = actual_percentage(slot.entry_price, resolution_price)
    return ScoredSlot(
        slot=slot,
        resolution_price=resolution_price,
        actual_percentage=actual,
        score=score_prediction(slot.predicted_percentage, actual, slot.category),
    )

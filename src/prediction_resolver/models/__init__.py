from __future__ import annotations

from prediction_resolver.models.prediction import (
    PRICE_DECIMALS,
    SLOTS_PER_CATEGORY,
    Category,
    PredictionAccount,
    PredictionSlot,
    price_from_units,
    price_to_units,
)
from prediction_resolver.models.resolution import (
    AccuracyLabel,
    BatchResolution,
    PreviewResult,
    ResolutionRecord,
    ResolvedBy,
    Score,
    ScoredSlot,
    SingleResolution,
    WorkflowState,
)

__all__ = [
    # prediction
    "Category",
    "PredictionSlot",
    "PredictionAccount",
    "SLOTS_PER_CATEGORY",
    "PRICE_DECIMALS",
    "price_from_units",
    "price_to_units",
    # resolution
    "AccuracyLabel",
    "ResolvedBy",
    "WorkflowState",
    "Score",
    "ScoredSlot",
    "ResolutionRecord",
    "SingleResolution",
    "BatchResolution",
    "PreviewResult",
]

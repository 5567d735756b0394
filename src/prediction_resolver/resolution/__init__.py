from __future__ import annotations

from prediction_resolver.resolution.actors import ActorDirectory
from prediction_resolver.resolution.engine import MAX_BATCH_SLOTS, ResolutionEngine
from prediction_resolver.resolution.errors import ErrorCode, ResolutionError
from prediction_resolver.resolution.scoring import (
    actual_percentage,
    score_prediction,
    score_slot,
)
from prediction_resolver.resolution.sweep import ResolutionSweeper, SweepReport, sweep_loop

__all__ = [
    "ResolutionEngine",
    "MAX_BATCH_SLOTS",
    "ErrorCode",
    "ResolutionError",
    "ActorDirectory",
    # scoring
    "actual_percentage",
    "score_prediction",
    "score_slot",
    # sweep
    "ResolutionSweeper",
    "SweepReport",
    "sweep_loop",
]

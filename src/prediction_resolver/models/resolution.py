from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import StrEnum

from prediction_resolver.models.prediction import Category, PredictionSlot


class AccuracyLabel(StrEnum):
    WRONG_DIRECTION = "wrong_direction"
    PERFECT = "perfect"
    EXCELLENT = "excellent"
    GREAT = "great"
    GOOD = "good"
    FAIR = "fair"
    CORRECT_DIRECTION = "correct_direction"


class ResolvedBy(StrEnum):
    USER = "user"
    SWEEP = "sweep"


class WorkflowState(StrEnum):
    LOCK_PENDING = "LOCK_PENDING"
    ACCOUNT_LOADED = "ACCOUNT_LOADED"
    SLOTS_SELECTED = "SLOTS_SELECTED"
    PRICES_FETCHED = "PRICES_FETCHED"
    SCORED = "SCORED"
    TX_SUBMITTED = "TX_SUBMITTED"
    TX_CONFIRMED = "TX_CONFIRMED"
    PERSISTED = "PERSISTED"
    DONE = "DONE"
    FAILED = "FAILED"


@dataclass(frozen=True)
class Score:
    points: int
    label: AccuracyLabel


@dataclass(frozen=True)
class ScoredSlot:
    slot: PredictionSlot
    resolution_price: Decimal
    actual_percentage: Decimal
    score: Score

    @property
    def points(self) -> int:
        return self.score.points


@dataclass
class ResolutionRecord:
    wallet_address: str
    category: Category
    rank: int  # 0-based slot rank; stored 1-based
    prediction_timestamp: int
    asset_id: str
    predicted_percentage: int
    entry_price: Decimal
    resolution_price: Decimal
    actual_percentage: Decimal
    duration: int
    points_earned: int
    total_points: int
    signature: str
    resolved_by: ResolvedBy
    resolved_at: datetime | None = None
    id: str | None = None

    @property
    def resolution_time(self) -> int:
        return self.prediction_timestamp + self.duration


@dataclass
class SingleResolution:
    scored: ScoredSlot
    previous_total: int
    new_total: int
    signature: str
    states: list[WorkflowState] = field(default_factory=list)


@dataclass
class BatchResolution:
    scored: list[ScoredSlot]
    previous_total: int
    new_total: int
    signature: str
    dropped: list[PredictionSlot]
    states: list[WorkflowState] = field(default_factory=list)

    @property
    def total_points_awarded(self) -> int:
        return sum(s.points for s in self.scored)


@dataclass(frozen=True)
class PreviewResult:
    resolution_price: Decimal
    actual_percentage: Decimal
    score: Score

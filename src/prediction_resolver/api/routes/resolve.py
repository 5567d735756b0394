"""Resolution endpoints: single slot, batch, preview, and stored history."""

from __future__ import annotations

import logging
from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from prediction_resolver.api.deps import app_state, get_actors, get_engine
from prediction_resolver.ledger.program import parse_pubkey
from prediction_resolver.models.prediction import Category
from prediction_resolver.models.resolution import ResolutionRecord, ScoredSlot
from prediction_resolver.resolution.actors import ActorDirectory
from prediction_resolver.resolution.engine import ResolutionEngine
from prediction_resolver.resolution.errors import ErrorCode, ResolutionError

logger = logging.getLogger(__name__)

router = APIRouter()

_STATUS_BY_CODE = {
    ErrorCode.ACCOUNT_NOT_FOUND: 404,
    ErrorCode.LOCK_HELD: 409,
    ErrorCode.NO_READY_PREDICTIONS: 422,
    ErrorCode.PRICE_FETCH_FAILED: 503,
    ErrorCode.LEDGER_UNAVAILABLE: 503,
    ErrorCode.TRANSACTION_FAILED: 502,
}


def error_status(exc: ResolutionError) -> int:
    if exc.is_validation:
        return 400
    return _STATUS_BY_CODE.get(exc.code, 500)


def _http_error(exc: ResolutionError) -> HTTPException:
    return HTTPException(status_code=error_status(exc), detail=exc.to_dict())


class ResolveRequest(BaseModel):
    walletAddress: str | None = None
    agentName: str | None = None
    predictionType: Category
    siloIndex: int


class BatchResolveRequest(BaseModel):
    walletAddress: str | None = None
    agentName: str | None = None


class PreviewRequest(BaseModel):
    assetId: str
    entryTimestamp: int
    duration: int
    entryPrice: Decimal
    predictedPercentage: float
    category: Category


def _slot_dict(s: ScoredSlot) -> dict:
    return {
        "predictionType": str(s.slot.category),
        "siloIndex": s.slot.rank,
        "symbol": s.slot.asset_id,
        "predictedPercentage": s.slot.predicted_percentage,
        "actualPercentage": round(float(s.actual_percentage), 4),
        "priceAtPrediction": float(s.slot.entry_price),
        "priceAtScoring": float(s.resolution_price),
        "points": s.points,
        "accuracy": str(s.score.label),
    }


def _record_dict(r: ResolutionRecord) -> dict:
    return {
        "id": r.id,
        "predictionType": str(r.category),
        "siloIndex": r.rank,
        "symbol": r.asset_id,
        "predictedPercentage": r.predicted_percentage,
        "predictionTimestamp": r.prediction_timestamp,
        "duration": r.duration,
        "priceAtPrediction": float(r.entry_price),
        "priceAtScoring": float(r.resolution_price),
        "actualPercentage": float(r.actual_percentage),
        "pointsEarned": r.points_earned,
        "totalPoints": r.total_points,
        "signature": r.signature,
        "resolvedBy": str(r.resolved_by),
        "resolvedAt": r.resolved_at.isoformat() if r.resolved_at else None,
    }


@router.post("/resolve-prediction")
async def resolve_prediction(
    body: ResolveRequest,
    engine: ResolutionEngine = Depends(get_engine),
    actors: ActorDirectory = Depends(get_actors),
) -> dict:
    """Resolve one matured prediction slot and clear it."""
    try:
        wallet = actors.resolve(body.walletAddress, body.agentName)
        result = await engine.resolve_one(wallet, body.predictionType, body.siloIndex)
    except ResolutionError as exc:
        raise _http_error(exc)

    return {
        "success": True,
        "walletAddress": wallet,
        **_slot_dict(result.scored),
        "previousTotal": result.previous_total,
        "newTotal": result.new_total,
        "signature": result.signature,
    }


@router.post("/resolve-prediction/batch")
async def resolve_batch(
    body: BatchResolveRequest,
    engine: ResolutionEngine = Depends(get_engine),
    actors: ActorDirectory = Depends(get_actors),
) -> dict:
    """Resolve every matured slot for an actor, then clear all slots."""
    try:
        wallet = actors.resolve(body.walletAddress, body.agentName)
        result = await engine.resolve_batch(wallet)
    except ResolutionError as exc:
        raise _http_error(exc)

    return {
        "success": True,
        "walletAddress": wallet,
        "resolvedCount": len(result.scored),
        "totalPointsAwarded": result.total_points_awarded,
        "previousTotal": result.previous_total,
        "newTotal": result.new_total,
        "signature": result.signature,
        "results": [_slot_dict(s) for s in result.scored],
        "dropped": [
            {"predictionType": str(s.category), "siloIndex": s.rank, "symbol": s.asset_id}
            for s in result.dropped
        ],
    }


@router.post("/resolve-prediction/preview")
async def preview_resolution(
    body: PreviewRequest,
    engine: ResolutionEngine = Depends(get_engine),
) -> dict:
    """Projected score for the given inputs. Nothing is written."""
    try:
        result = await engine.preview(
            asset_id=body.assetId,
            entry_timestamp=body.entryTimestamp,
            duration=body.duration,
            entry_price=body.entryPrice,
            predicted_percentage=Decimal(str(body.predictedPercentage)),
            category=body.category,
        )
    except ResolutionError as exc:
        raise _http_error(exc)

    return {
        "resolutionPrice": float(result.resolution_price),
        "actualPercentage": round(float(result.actual_percentage), 4),
        "points": result.score.points,
        "accuracy": str(result.score.label),
    }


@router.get("/resolutions/{wallet_address}")
def list_resolutions(
    wallet_address: str,
    limit: int = Query(default=50, ge=1, le=500),
) -> dict:
    """Stored resolution records for a wallet, newest first."""
    try:
        wallet = str(parse_pubkey(wallet_address))
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid wallet address")

    if app_state.registry is None:
        raise HTTPException(status_code=503, detail="Resolution history is not configured")

    records = app_state.registry.list_resolutions(wallet, limit=limit)
    return {
        "walletAddress": wallet,
        "resolutions": [_record_dict(r) for r in records],
        "count": len(records),
    }

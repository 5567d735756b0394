"""Resolution workflow: lock, load, select, price, score, submit, persist.

Each request runs one sequential workflow against a single actor's
prediction account. The per-actor lock is the only cross-request
coordination; everything else is read from the ledger at request time.
The ledger transaction is the commit point: nothing before it mutates
state, and persistence after it is best-effort.
"""

from __future__ import annotations

import asyncio
import logging
import time
from decimal import Decimal
from typing import Callable, Protocol, Sequence

from prediction_resolver.ledger.client import LedgerError
from prediction_resolver.ledger.codec import CorruptAccountError, decode
from prediction_resolver.ledger.instructions import (
    ClearAllSlots,
    ClearSingleSlot,
    LedgerInstruction,
    SetResolutionPrice,
    UpdateUserPoints,
)
from prediction_resolver.ledger.program import AuthorityNotConfigured
from prediction_resolver.models.prediction import (
    SLOTS_PER_CATEGORY,
    Category,
    PredictionAccount,
    PredictionSlot,
    price_to_units,
)
from prediction_resolver.models.resolution import (
    BatchResolution,
    PreviewResult,
    ResolutionRecord,
    ResolvedBy,
    ScoredSlot,
    SingleResolution,
    WorkflowState,
)
from prediction_resolver.pricing.oracle import PriceOracle
from prediction_resolver.registry.queries import ResolutionRegistry
from prediction_resolver.resolution.errors import ErrorCode, ResolutionError
from prediction_resolver.resolution.scoring import (
    actual_percentage,
    score_prediction,
    score_slot,
)
from prediction_resolver.store.lock import LockManager

logger = logging.getLogger(__name__)

MAX_BATCH_SLOTS = 2 * SLOTS_PER_CATEGORY
DEFAULT_SINGLE_LOCK_TTL = 90
DEFAULT_BATCH_LOCK_TTL = 120


class PredictionLedger(Protocol):
    async def fetch_account(self, owner: str) -> bytes | None: ...

    async def submit(self, owner: str, instructions: Sequence[LedgerInstruction]) -> str: ...


class _Trace:
    """Ordered record of the states a single workflow passed through."""

    def __init__(self, owner: str, mode: str) -> None:
        self.owner = owner
        self.mode = mode
        self.states: list[WorkflowState] = [WorkflowState.LOCK_PENDING]

    @property
    def current(self) -> WorkflowState:
        return self.states[-1]

    def advance(self, state: WorkflowState) -> None:
        self.states.append(state)
        logger.debug("[%s %s] -> %s", self.mode, self.owner, state)

    def fail(self) -> None:
        self.states.append(WorkflowState.FAILED)


class ResolutionEngine:
    def __init__(
        self,
        ledger: PredictionLedger,
        oracle: PriceOracle,
        locks: LockManager,
        registry: ResolutionRegistry | None = None,
        preview_oracle: PriceOracle | None = None,
        single_lock_ttl: int = DEFAULT_SINGLE_LOCK_TTL,
        batch_lock_ttl: int = DEFAULT_BATCH_LOCK_TTL,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._ledger = ledger
        self._oracle = oracle
        self._preview_oracle = preview_oracle or oracle
        self._locks = locks
        self._registry = registry
        self._single_lock_ttl = single_lock_ttl
        self._batch_lock_ttl = batch_lock_ttl
        self._clock = clock

    def _now(self) -> int:
        return int(self._clock())

    # ------------------------------------------------------------------
    # Single slot
    # ------------------------------------------------------------------

    async def resolve_one(
        self,
        owner: str,
        category: Category,
        rank: int,
        resolved_by: ResolvedBy = ResolvedBy.USER,
    ) -> SingleResolution:
        """Resolve one matured slot and clear it in the same transaction."""
        if not 0 <= rank < SLOTS_PER_CATEGORY:
            raise ResolutionError(
                ErrorCode.INVALID_SLOT,
                f"Slot index must be between 0 and {SLOTS_PER_CATEGORY - 1}, got {rank}",
            )
        trace = _Trace(owner, "single")
        await self._acquire(owner, self._single_lock_ttl)
        try:
            return await self._run(trace, self._resolve_one(trace, owner, category, rank, resolved_by))
        finally:
            await self._release(owner)

    async def _resolve_one(
        self,
        trace: _Trace,
        owner: str,
        category: Category,
        rank: int,
        resolved_by: ResolvedBy,
    ) -> SingleResolution:
        account = await self._load_account(owner)
        trace.advance(WorkflowState.ACCOUNT_LOADED)

        now = self._now()
        slot = _validate_slot(account.slot(category, rank), now)
        trace.advance(WorkflowState.SLOTS_SELECTED)
        logger.info(
            "Resolving %s %s #%d (%s) for %s",
            category, slot.asset_id, rank, resolved_by, owner,
        )

        price = await self._oracle.get_price(slot.asset_id, slot.resolution_timestamp)
        if price is None:
            raise ResolutionError(
                ErrorCode.PRICE_FETCH_FAILED,
                f"Could not fetch resolution price for {slot.asset_id}",
            )
        trace.advance(WorkflowState.PRICES_FETCHED)

        scored = score_slot(slot, price)
        trace.advance(WorkflowState.SCORED)
        _log_score(scored)

        new_total = account.points + scored.points
        instructions = _build_instructions(
            [scored], new_total, ClearSingleSlot(category=category, rank=rank),
        )
        signature = await self._submit(trace, owner, instructions)

        await self._persist(owner, [scored], new_total, signature, resolved_by)
        trace.advance(WorkflowState.PERSISTED)
        trace.advance(WorkflowState.DONE)
        logger.info(
            "Resolved %s #%d for %s: +%d points (%d -> %d) tx=%s",
            category, rank, owner, scored.points, account.points, new_total, signature,
        )
        return SingleResolution(
            scored=scored,
            previous_total=account.points,
            new_total=new_total,
            signature=signature,
            states=trace.states,
        )

    # ------------------------------------------------------------------
    # Batch
    # ------------------------------------------------------------------

    async def resolve_batch(
        self, owner: str, resolved_by: ResolvedBy = ResolvedBy.USER,
    ) -> BatchResolution:
        """Resolve every matured slot of an actor and clear all slots."""
        trace = _Trace(owner, "batch")
        await self._acquire(owner, self._batch_lock_ttl)
        try:
            return await self._run(trace, self._resolve_batch(trace, owner, resolved_by))
        finally:
            await self._release(owner)

    async def _resolve_batch(
        self, trace: _Trace, owner: str, resolved_by: ResolvedBy,
    ) -> BatchResolution:
        account = await self._load_account(owner)
        trace.advance(WorkflowState.ACCOUNT_LOADED)

        eligible = account.eligible_slots(self._now())[:MAX_BATCH_SLOTS]
        if not eligible:
            raise ResolutionError(
                ErrorCode.NO_READY_PREDICTIONS, "No predictions ready for resolution",
            )
        dropped = [s for s in eligible if s.entry_price_units == 0]
        for slot in dropped:
            logger.warning(
                "Dropping %s #%d (%s) for %s: no entry price recorded",
                slot.category, slot.rank, slot.asset_id, owner,
            )
        candidates = [s for s in eligible if s.entry_price_units != 0]
        trace.advance(WorkflowState.SLOTS_SELECTED)
        logger.info(
            "Batch resolving %d slot(s) for %s (%s)", len(candidates), owner, resolved_by,
        )

        prices = await self._oracle.get_prices(
            (s.asset_id, s.resolution_timestamp) for s in candidates
        )
        priced: list[tuple[PredictionSlot, Decimal]] = []
        for slot in candidates:
            price = prices.get((slot.asset_id, slot.resolution_timestamp))
            if price is None:
                logger.warning(
                    "Dropping %s #%d (%s) for %s: resolution price unavailable",
                    slot.category, slot.rank, slot.asset_id, owner,
                )
                dropped.append(slot)
            else:
                priced.append((slot, price))
        if not priced:
            raise ResolutionError(
                ErrorCode.PRICE_FETCH_FAILED,
                "Could not fetch resolution prices for any ready prediction",
            )
        trace.advance(WorkflowState.PRICES_FETCHED)

        scored = [score_slot(slot, price) for slot, price in priced]
        for s in scored:
            _log_score(s)
        trace.advance(WorkflowState.SCORED)

        new_total = account.points + sum(s.points for s in scored)
        instructions = _build_instructions(scored, new_total, ClearAllSlots())
        signature = await self._submit(trace, owner, instructions)

        await self._persist(owner, scored, new_total, signature, resolved_by)
        trace.advance(WorkflowState.PERSISTED)
        trace.advance(WorkflowState.DONE)
        result = BatchResolution(
            scored=scored,
            previous_total=account.points,
            new_total=new_total,
            signature=signature,
            dropped=dropped,
            states=trace.states,
        )
        logger.info(
            "Batch resolved %d slot(s) for %s: +%d points (%d -> %d), %d dropped, tx=%s",
            len(scored), owner, result.total_points_awarded, account.points,
            new_total, len(dropped), signature,
        )
        return result

    # ------------------------------------------------------------------
    # Preview
    # ------------------------------------------------------------------

    async def preview(
        self,
        asset_id: str,
        entry_timestamp: int,
        duration: int,
        entry_price: Decimal,
        predicted_percentage: int | float | Decimal,
        category: Category,
    ) -> PreviewResult:
        """Projected score for explicit inputs. Touches neither the ledger nor the lock."""
        if not asset_id.strip():
            raise ResolutionError(ErrorCode.INVALID_REQUEST, "Asset ID is required")
        if entry_timestamp <= 0:
            raise ResolutionError(ErrorCode.NO_TIMESTAMP, "Prediction has no timestamp")
        if duration <= 0:
            raise ResolutionError(ErrorCode.NO_DURATION, "Prediction has no duration")
        if entry_price <= 0:
            raise ResolutionError(ErrorCode.MISSING_ENTRY_PRICE, "Entry price must be positive")

        resolution_ts = entry_timestamp + duration
        now = self._now()
        if now < resolution_ts:
            remaining = resolution_ts - now
            raise ResolutionError(
                ErrorCode.NOT_READY,
                f"Prediction not ready for resolution. {_format_remaining(remaining)} remaining",
                remaining_seconds=remaining,
            )

        price = await self._preview_oracle.get_price(asset_id, resolution_ts)
        if price is None:
            raise ResolutionError(
                ErrorCode.PRICE_FETCH_FAILED, f"Could not fetch resolution price for {asset_id}",
            )
        actual = actual_percentage(entry_price, price)
        return PreviewResult(
            resolution_price=price,
            actual_percentage=actual,
            score=score_prediction(predicted_percentage, actual, category),
        )

    # ------------------------------------------------------------------
    # Shared steps
    # ------------------------------------------------------------------

    async def _run(self, trace: _Trace, workflow):
        try:
            return await workflow
        except ResolutionError as exc:
            exc.state = trace.current
            trace.fail()
            logger.info(
                "Resolution for %s failed at %s: %s", trace.owner, exc.state, exc.code,
            )
            raise
        except Exception as exc:
            failed_at = trace.current
            trace.fail()
            logger.exception("Unexpected error resolving %s at %s", trace.owner, failed_at)
            raise ResolutionError(
                ErrorCode.RESOLUTION_FAILED, f"Resolution failed: {exc}", state=failed_at,
            ) from exc

    async def _acquire(self, owner: str, ttl_seconds: int) -> None:
        if not await self._locks.acquire(owner, ttl_seconds):
            raise ResolutionError(
                ErrorCode.LOCK_HELD,
                "A resolution is already in progress for this wallet. Please wait.",
                state=WorkflowState.LOCK_PENDING,
            )

    async def _release(self, owner: str) -> None:
        try:
            await self._locks.release(owner)
        except Exception:
            # the lock still expires at its TTL
            logger.exception("Failed to release resolution lock for %s", owner)

    async def _load_account(self, owner: str) -> PredictionAccount:
        try:
            data = await self._ledger.fetch_account(owner)
        except LedgerError as exc:
            raise ResolutionError(
                ErrorCode.LEDGER_UNAVAILABLE, f"Could not load prediction account: {exc}",
            ) from exc
        if data is None:
            raise ResolutionError(
                ErrorCode.ACCOUNT_NOT_FOUND, f"No prediction account found for {owner}",
            )
        try:
            return decode(data)
        except CorruptAccountError as exc:
            raise ResolutionError(ErrorCode.CORRUPT_ACCOUNT, str(exc)) from exc

    async def _submit(
        self, trace: _Trace, owner: str, instructions: list[LedgerInstruction],
    ) -> str:
        trace.advance(WorkflowState.TX_SUBMITTED)
        try:
            signature = await self._ledger.submit(owner, instructions)
        except (LedgerError, AuthorityNotConfigured) as exc:
            raise ResolutionError(
                ErrorCode.TRANSACTION_FAILED, f"Transaction failed: {exc}",
            ) from exc
        trace.advance(WorkflowState.TX_CONFIRMED)
        return signature

    async def _persist(
        self,
        owner: str,
        scored: list[ScoredSlot],
        new_total: int,
        signature: str,
        resolved_by: ResolvedBy,
    ) -> None:
        if self._registry is None:
            logger.debug("No registry configured; skipping persistence for %s", owner)
            return
        for s in scored:
            record = ResolutionRecord(
                wallet_address=owner,
                category=s.slot.category,
                rank=s.slot.rank,
                prediction_timestamp=s.slot.entry_timestamp,
                asset_id=s.slot.asset_id,
                predicted_percentage=s.slot.predicted_percentage,
                entry_price=s.slot.entry_price,
                resolution_price=s.resolution_price,
                actual_percentage=s.actual_percentage,
                duration=s.slot.duration,
                points_earned=s.points,
                total_points=new_total,
                signature=signature,
                resolved_by=resolved_by,
            )
            try:
                await asyncio.to_thread(self._registry.upsert_resolution, record)
            except Exception:
                # the ledger already holds the result
                logger.exception(
                    "Failed to persist resolution of %s #%d for %s (tx=%s)",
                    s.slot.category, s.slot.rank, owner, signature,
                )


def _validate_slot(slot: PredictionSlot, now: int) -> PredictionSlot:
    if slot.is_empty:
        raise ResolutionError(ErrorCode.EMPTY_SLOT, "No prediction in this slot")
    if slot.entry_timestamp <= 0:
        raise ResolutionError(ErrorCode.NO_TIMESTAMP, "Prediction has no timestamp")
    if slot.duration <= 0:
        raise ResolutionError(ErrorCode.NO_DURATION, "Prediction has no duration")
    if now < slot.resolution_timestamp:
        remaining = slot.seconds_remaining(now)
        raise ResolutionError(
            ErrorCode.NOT_READY,
            f"Prediction not ready for resolution. {_format_remaining(remaining)} remaining",
            remaining_seconds=remaining,
        )
    if slot.entry_price_units == 0:
        raise ResolutionError(
            ErrorCode.MISSING_ENTRY_PRICE, "Prediction has no recorded entry price",
        )
    return slot


def _build_instructions(
    scored: list[ScoredSlot], new_total: int, clear: LedgerInstruction,
) -> list[LedgerInstruction]:
    instructions: list[LedgerInstruction] = [
        SetResolutionPrice(
            category=s.slot.category,
            rank=s.slot.rank,
            price_units=price_to_units(s.resolution_price),
        )
        for s in scored
    ]
    instructions.append(UpdateUserPoints(new_total=new_total))
    instructions.append(clear)
    return instructions


def _log_score(scored: ScoredSlot) -> None:
    logger.info(
        "%s %s #%d: predicted %s%%, actual %.2f%% -> %d points (%s)",
        scored.slot.asset_id, scored.slot.category, scored.slot.rank,
        scored.slot.predicted_percentage, scored.actual_percentage,
        scored.points, scored.score.label,
    )


def _format_remaining(seconds: int) -> str:
    hours, rest = divmod(seconds, 3600)
    minutes = rest // 60
    if hours:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"

"""Periodic sweep that batch-resolves every actor with matured predictions."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable, Protocol

from prediction_resolver.ledger.client import LedgerError
from prediction_resolver.ledger.codec import CorruptAccountError, decode
from prediction_resolver.models.resolution import ResolvedBy
from prediction_resolver.resolution.engine import ResolutionEngine
from prediction_resolver.resolution.errors import ErrorCode, ResolutionError

logger = logging.getLogger(__name__)

# Codes that mean "nothing to do right now" rather than a failure
_SKIP_CODES = {ErrorCode.LOCK_HELD, ErrorCode.NO_READY_PREDICTIONS}


class AccountLister(Protocol):
    async def list_prediction_accounts(self) -> list[tuple[str, bytes]]: ...


@dataclass
class SweepReport:
    owners_scanned: int = 0
    owners_resolved: int = 0
    owners_skipped: int = 0
    owners_failed: int = 0
    total_points_awarded: int = 0

    def to_dict(self) -> dict:
        return {
            "ownersScanned": self.owners_scanned,
            "ownersResolved": self.owners_resolved,
            "ownersSkipped": self.owners_skipped,
            "ownersFailed": self.owners_failed,
            "totalPointsAwarded": self.total_points_awarded,
        }


class ResolutionSweeper:
    """Scans all prediction accounts and resolves the ones with ready slots.

    Owners are processed one at a time so the price provider's rate limit
    is shared fairly; a failure for one owner never aborts the pass.
    """

    def __init__(
        self,
        ledger: AccountLister,
        engine: ResolutionEngine,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._ledger = ledger
        self._engine = engine
        self._clock = clock

    async def run_once(self) -> SweepReport:
        report = SweepReport()
        accounts = await self._ledger.list_prediction_accounts()
        now = int(self._clock())
        logger.info("Sweep: scanning %d prediction accounts", len(accounts))

        for address, data in accounts:
            report.owners_scanned += 1
            try:
                account = decode(data)
            except CorruptAccountError as exc:
                logger.warning("Sweep: skipping undecodable account %s: %s", address, exc)
                report.owners_failed += 1
                continue

            if not account.eligible_slots(now):
                report.owners_skipped += 1
                continue

            try:
                result = await self._engine.resolve_batch(account.owner, ResolvedBy.SWEEP)
            except ResolutionError as exc:
                if exc.code in _SKIP_CODES:
                    logger.info("Sweep: skipped %s (%s)", account.owner, exc.code)
                    report.owners_skipped += 1
                else:
                    logger.warning(
                        "Sweep: failed to resolve %s: %s %s",
                        account.owner, exc.code, exc.message,
                    )
                    report.owners_failed += 1
                continue

            report.owners_resolved += 1
            report.total_points_awarded += result.total_points_awarded

        logger.info(
            "Sweep complete: scanned=%d resolved=%d skipped=%d failed=%d points=%d",
            report.owners_scanned, report.owners_resolved, report.owners_skipped,
            report.owners_failed, report.total_points_awarded,
        )
        return report


async def sweep_loop(sweeper: ResolutionSweeper, interval_seconds: int) -> None:
    """Run a sweep every ``interval_seconds`` until cancelled."""
    while True:
        try:
            await sweeper.run_once()
        except asyncio.CancelledError:
            raise
        except LedgerError:
            logger.exception("Sweep could not list prediction accounts")
        except Exception:
            logger.exception("Sweep pass failed")
        await asyncio.sleep(interval_seconds)

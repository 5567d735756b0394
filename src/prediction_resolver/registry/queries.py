from __future__ import annotations

import logging
from datetime import UTC, datetime
from decimal import Decimal

from prediction_resolver.models.prediction import Category
from prediction_resolver.models.resolution import ResolutionRecord, ResolvedBy
from prediction_resolver.registry.db import Database

logger = logging.getLogger(__name__)

_COLUMNS = (
    "id, wallet_address, prediction_type, rank, symbol, predicted_percentage, "
    "prediction_timestamp, duration, price_at_prediction, price_at_scoring, "
    "actual_percentage, points_earned, total_points, solana_signature, "
    "resolved_by, resolved_at"
)


class ResolutionRegistry:
    """Query layer for resolution records.

    Records are keyed by (wallet, category, rank, prediction timestamp);
    ranks are stored 1-based.
    """

    def __init__(self, db: Database) -> None:
        self._db = db

    def upsert_resolution(self, record: ResolutionRecord) -> str | None:
        """Insert the record or update the existing row for the same slot instance."""
        resolved_at = record.resolved_at or datetime.now(UTC)
        rows = self._db.execute(
            """
            INSERT INTO resolution_records (
                wallet_address, prediction_type, rank, symbol, predicted_percentage,
                prediction_timestamp, duration, resolution_time,
                price_at_prediction, price_at_scoring, actual_percentage,
                points_earned, total_points, processed, solana_signature,
                resolved_by, resolved_at
            ) VALUES (%s, %s, %s, %s, %s, %s, %s, to_timestamp(%s), %s, %s, %s, %s, %s, TRUE, %s, %s, %s)
            ON CONFLICT (wallet_address, prediction_type, rank, prediction_timestamp) DO UPDATE SET
                price_at_prediction = EXCLUDED.price_at_prediction,
                price_at_scoring = EXCLUDED.price_at_scoring,
                actual_percentage = EXCLUDED.actual_percentage,
                duration = EXCLUDED.duration,
                processed = TRUE,
                points_earned = EXCLUDED.points_earned,
                total_points = EXCLUDED.total_points,
                solana_signature = EXCLUDED.solana_signature,
                resolved_by = EXCLUDED.resolved_by,
                resolved_at = EXCLUDED.resolved_at
            RETURNING id
            """,
            (
                record.wallet_address,
                str(record.category),
                record.rank + 1,
                record.asset_id,
                record.predicted_percentage,
                record.prediction_timestamp,
                record.duration,
                record.resolution_time,
                record.entry_price,
                record.resolution_price,
                record.actual_percentage.quantize(Decimal("0.0001")),
                record.points_earned,
                record.total_points,
                record.signature,
                str(record.resolved_by),
                resolved_at,
            ),
        )
        return str(rows[0]["id"]) if rows else None

    def get_resolution(
        self, wallet_address: str, category: Category, rank: int, prediction_timestamp: int,
    ) -> ResolutionRecord | None:
        rows = self._db.execute(
            f"SELECT {_COLUMNS} FROM resolution_records "
            "WHERE wallet_address = %s AND prediction_type = %s "
            "AND rank = %s AND prediction_timestamp = %s",
            (wallet_address, str(category), rank + 1, prediction_timestamp),
        )
        if not rows:
            return None
        return self._row_to_record(rows[0])

    def list_resolutions(self, wallet_address: str, limit: int = 50) -> list[ResolutionRecord]:
        rows = self._db.execute(
            f"SELECT {_COLUMNS} FROM resolution_records "
            "WHERE wallet_address = %s AND processed = TRUE "
            "ORDER BY resolved_at DESC NULLS LAST LIMIT %s",
            (wallet_address, limit),
        )
        return [self._row_to_record(r) for r in rows]

    @staticmethod
    def _row_to_record(r: dict) -> ResolutionRecord:
        return ResolutionRecord(
            id=str(r["id"]) if r.get("id") is not None else None,
            wallet_address=r["wallet_address"],
            category=Category(r["prediction_type"]),
            rank=r["rank"] - 1,
            prediction_timestamp=r["prediction_timestamp"],
            asset_id=r["symbol"] or "",
            predicted_percentage=r["predicted_percentage"] or 0,
            entry_price=Decimal(str(r["price_at_prediction"] or 0)),
            resolution_price=Decimal(str(r["price_at_scoring"] or 0)),
            actual_percentage=Decimal(str(r["actual_percentage"] or 0)),
            duration=r["duration"] or 0,
            points_earned=r["points_earned"] or 0,
            total_points=r["total_points"] or 0,
            signature=r["solana_signature"] or "",
            resolved_by=ResolvedBy(r["resolved_by"] or ResolvedBy.USER),
            resolved_at=r["resolved_at"],
        )

from __future__ import annotations

import struct
from decimal import Decimal

import pytest

from prediction_resolver.ledger.codec import (
    COMPACT_SCHEMA,
    FULL_SCHEMA,
    SCHEMAS_BY_SIZE,
    CorruptAccountError,
    decode,
)
from prediction_resolver.models.prediction import Category

from fakes import NOW, build_account, slot_values, wallet


class TestSchemaLayout:
    def test_sizes(self) -> None:
        assert COMPACT_SCHEMA.size == 196
        assert FULL_SCHEMA.size == 724
        assert set(SCHEMAS_BY_SIZE) == {196, 724}

    def test_full_offsets(self) -> None:
        offsets = FULL_SCHEMA.offsets
        assert offsets["owner"] == 8
        assert offsets["top_ids"] == 40
        assert offsets["worst_ids"] == 200
        assert offsets["top_timestamps"] == 360
        assert offsets["top_percentages"] == 440
        assert offsets["top_prices"] == 460
        assert offsets["top_resolution_prices"] == 540
        assert offsets["top_durations"] == 620
        assert offsets["prediction_count"] == 700
        assert offsets["points"] == 708
        assert offsets["last_updated"] == 716

    def test_compact_offsets(self) -> None:
        offsets = COMPACT_SCHEMA.offsets
        assert offsets["worst_ids"] == 70
        assert offsets["top_timestamps"] == 100
        assert offsets["points"] == 180
        assert offsets["last_updated"] == 188

    def test_points_land_at_offset(self) -> None:
        data = build_account(wallet(), points=123_456)
        assert struct.unpack_from("<Q", data, 708)[0] == 123_456


class TestDecodeFull:
    def test_decodes_header(self) -> None:
        owner = wallet(3)
        account = decode(build_account(owner, points=2500, prediction_count=7))
        assert account.owner == owner
        assert account.points == 2500
        assert account.prediction_count == 7
        assert account.schema == "full"
        assert account.last_updated == NOW - 86400

    def test_slot_order(self) -> None:
        account = decode(build_account(wallet()))
        assert len(account.slots) == 10
        assert [s.category for s in account.slots[:5]] == [Category.OUTPERFORM] * 5
        assert [s.rank for s in account.slots[5:]] == [0, 1, 2, 3, 4]

    def test_decodes_slot_fields(self) -> None:
        account = decode(build_account(
            wallet(),
            worst={2: slot_values("ethereum", entry_timestamp=NOW - 100, duration=50,
                                  predicted=-15, entry_price="2500.5")},
        ))
        slot = account.slot(Category.UNDERPERFORM, 2)
        assert slot.asset_id == "ethereum"
        assert slot.entry_timestamp == NOW - 100
        assert slot.duration == 50
        assert slot.predicted_percentage == -15
        assert slot.entry_price == Decimal("2500.5")
        assert slot.resolution_price_units == 0

    def test_trims_padded_ids(self) -> None:
        data = bytearray(build_account(wallet(), top={0: slot_values("sol")}))
        data[40:72] = b"sol  " + b"\x00" * 27
        account = decode(bytes(data))
        assert account.slot(Category.OUTPERFORM, 0).asset_id == "sol"

    def test_empty_slots(self) -> None:
        account = decode(build_account(wallet(), top={1: slot_values()}))
        assert account.slot(Category.OUTPERFORM, 0).is_empty
        assert len(account.active_slots) == 1


class TestDecodeCompact:
    def test_missing_columns_zero_filled(self) -> None:
        account = decode(build_account(
            wallet(), top={0: slot_values("sol")}, points=40, schema=COMPACT_SCHEMA,
        ))
        slot = account.slot(Category.OUTPERFORM, 0)
        assert account.schema == "compact"
        assert account.prediction_count is None
        assert account.points == 40
        assert slot.asset_id == "sol"
        assert slot.duration == 0
        assert slot.entry_price_units == 0
        assert not slot.is_eligible(NOW)

    def test_ids_truncated_to_six_bytes(self) -> None:
        account = decode(build_account(
            wallet(), top={0: slot_values("bitcoin")}, schema=COMPACT_SCHEMA,
        ))
        assert account.slot(Category.OUTPERFORM, 0).asset_id == "bitcoi"


class TestCorruptAccounts:
    @pytest.mark.parametrize("size", [0, 195, 197, 723, 725, 1024])
    def test_unknown_size_rejected(self, size: int) -> None:
        with pytest.raises(CorruptAccountError):
            decode(bytes(size))

    def test_is_value_error(self) -> None:
        with pytest.raises(ValueError):
            decode(b"\x00" * 10)

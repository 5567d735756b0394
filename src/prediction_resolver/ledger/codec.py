"""Binary codec for on-ledger prediction accounts.

Account layouts are declared as ordered field lists rather than sequential
reads, so both schema generations share one decoder and tests can build
fixtures from the same definitions. The variant is chosen purely by total
byte length; the wire format carries no version marker.

All integers are little-endian. Every layout starts with an 8-byte account
discriminator followed by the 32-byte owner public key.
"""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass
from typing import Any

from solders.pubkey import Pubkey

from prediction_resolver.models.prediction import (
    SLOTS_PER_CATEGORY,
    Category,
    PredictionAccount,
    PredictionSlot,
)

logger = logging.getLogger(__name__)


class CorruptAccountError(ValueError):
    """Raised when account bytes match none of the known layouts."""


@dataclass(frozen=True)
class FieldSpec:
    """One named field, possibly repeated ``count`` times back to back.

    ``fmt`` is a single struct code (``q``, ``Q``, ``h``) or a fixed-width
    byte string (``32s``).
    """

    name: str
    fmt: str
    count: int = 1
    text: bool = False  # decode as a padded utf-8 string

    @property
    def width(self) -> int:
        return struct.calcsize("<" + self.fmt)

    @property
    def size(self) -> int:
        return self.width * self.count

    def decode(self, data: bytes, offset: int) -> Any:
        values = []
        for i in range(self.count):
            (raw,) = struct.unpack_from("<" + self.fmt, data, offset + i * self.width)
            if self.text:
                raw = _trim_fixed_string(raw)
            values.append(raw)
        return values[0] if self.count == 1 else values

    def encode(self, value: Any) -> bytes:
        values = [value] if self.count == 1 else list(value)
        if len(values) != self.count:
            raise ValueError(f"{self.name}: expected {self.count} values, got {len(values)}")
        out = bytearray()
        for v in values:
            if self.text and isinstance(v, str):
                v = v.encode("utf-8")
            out += struct.pack("<" + self.fmt, v)
        return bytes(out)


def _trim_fixed_string(raw: bytes) -> str:
    return raw.decode("utf-8", errors="replace").rstrip("\x00 ")


@dataclass(frozen=True)
class AccountSchema:
    name: str
    fields: tuple[FieldSpec, ...]

    @property
    def size(self) -> int:
        return sum(f.size for f in self.fields)

    @property
    def offsets(self) -> dict[str, int]:
        """Byte offset of each field, computed additively from the header."""
        result: dict[str, int] = {}
        offset = 0
        for f in self.fields:
            result[f.name] = offset
            offset += f.size
        return result

    def has_field(self, name: str) -> bool:
        return any(f.name == name for f in self.fields)

    def unpack(self, data: bytes) -> dict[str, Any]:
        values: dict[str, Any] = {}
        offset = 0
        for f in self.fields:
            values[f.name] = f.decode(data, offset)
            offset += f.size
        return values

    def pack(self, values: dict[str, Any]) -> bytes:
        """Serialise field values; fields missing from ``values`` are zeroed."""
        out = bytearray()
        for f in self.fields:
            if f.name in values:
                out += f.encode(values[f.name])
            else:
                out += bytes(f.size)
        return bytes(out)


_HEADER = (
    FieldSpec("discriminator", "8s"),
    FieldSpec("owner", "32s"),
)

COMPACT_SCHEMA = AccountSchema(
    name="compact",
    fields=_HEADER + (
        FieldSpec("top_ids", "6s", SLOTS_PER_CATEGORY, text=True),
        FieldSpec("worst_ids", "6s", SLOTS_PER_CATEGORY, text=True),
        FieldSpec("top_timestamps", "q", SLOTS_PER_CATEGORY),
        FieldSpec("worst_timestamps", "q", SLOTS_PER_CATEGORY),
        FieldSpec("points", "Q"),
        FieldSpec("last_updated", "q"),
    ),
)

FULL_SCHEMA = AccountSchema(
    name="full",
    fields=_HEADER + (
        FieldSpec("top_ids", "32s", SLOTS_PER_CATEGORY, text=True),
        FieldSpec("worst_ids", "32s", SLOTS_PER_CATEGORY, text=True),
        FieldSpec("top_timestamps", "q", SLOTS_PER_CATEGORY),
        FieldSpec("worst_timestamps", "q", SLOTS_PER_CATEGORY),
        FieldSpec("top_percentages", "h", SLOTS_PER_CATEGORY),
        FieldSpec("worst_percentages", "h", SLOTS_PER_CATEGORY),
        FieldSpec("top_prices", "Q", SLOTS_PER_CATEGORY),
        FieldSpec("worst_prices", "Q", SLOTS_PER_CATEGORY),
        FieldSpec("top_resolution_prices", "Q", SLOTS_PER_CATEGORY),
        FieldSpec("worst_resolution_prices", "Q", SLOTS_PER_CATEGORY),
        FieldSpec("top_durations", "q", SLOTS_PER_CATEGORY),
        FieldSpec("worst_durations", "q", SLOTS_PER_CATEGORY),
        FieldSpec("prediction_count", "Q"),
        FieldSpec("points", "Q"),
        FieldSpec("last_updated", "q"),
    ),
)

SCHEMAS_BY_SIZE: dict[int, AccountSchema] = {
    COMPACT_SCHEMA.size: COMPACT_SCHEMA,
    FULL_SCHEMA.size: FULL_SCHEMA,
}

_PREFIXES = {Category.OUTPERFORM: "top", Category.UNDERPERFORM: "worst"}


def schema_for(data: bytes) -> AccountSchema:
    schema = SCHEMAS_BY_SIZE.get(len(data))
    if schema is None:
        raise CorruptAccountError(
            f"Unexpected account size {len(data)} bytes; "
            f"expected one of {sorted(SCHEMAS_BY_SIZE)}"
        )
    return schema


def decode(data: bytes) -> PredictionAccount:
    """Decode raw account bytes into a PredictionAccount."""
    schema = schema_for(data)
    values = schema.unpack(data)

    def column(category: Category, suffix: str) -> list:
        name = f"{_PREFIXES[category]}_{suffix}"
        if schema.has_field(name):
            return values[name]
        return [0] * SLOTS_PER_CATEGORY

    slots: list[PredictionSlot] = []
    for category in (Category.OUTPERFORM, Category.UNDERPERFORM):
        ids = column(category, "ids")
        timestamps = column(category, "timestamps")
        percentages = column(category, "percentages")
        prices = column(category, "prices")
        resolution_prices = column(category, "resolution_prices")
        durations = column(category, "durations")
        for rank in range(SLOTS_PER_CATEGORY):
            slots.append(
                PredictionSlot(
                    category=category,
                    rank=rank,
                    asset_id=ids[rank],
                    entry_timestamp=timestamps[rank],
                    duration=durations[rank],
                    predicted_percentage=percentages[rank],
                    entry_price_units=prices[rank],
                    resolution_price_units=resolution_prices[rank],
                )
            )

    account = PredictionAccount(
        owner=str(Pubkey.from_bytes(values["owner"])),
        slots=slots,
        points=values["points"],
        last_updated=values["last_updated"],
        prediction_count=values.get("prediction_count"),
        schema=schema.name,
        discriminator=values["discriminator"],
    )
    logger.debug(
        "Decoded %s account for %s: points=%d active=%d",
        schema.name, account.owner, account.points, len(account.active_slots),
    )
    return account

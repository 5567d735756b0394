"""Typed builders for the prediction program's admin instructions.

Each builder produces an opaque payload: the 8-byte Anchor discriminator
(first 8 bytes of ``sha256("global:<name>")``) followed by little-endian
packed parameters.
"""

from __future__ import annotations

import hashlib
import struct
from dataclasses import dataclass
from typing import ClassVar

from prediction_resolver.models.prediction import SLOTS_PER_CATEGORY, Category

U64_MAX = 2**64 - 1


def anchor_discriminator(name: str) -> bytes:
    return hashlib.sha256(f"global:{name}".encode()).digest()[:8]


def _check_rank(rank: int) -> None:
    if not 0 <= rank < SLOTS_PER_CATEGORY:
        raise ValueError(f"Slot rank must be 0-{SLOTS_PER_CATEGORY - 1}, got {rank}")


def _check_u64(name: str, value: int) -> None:
    if not 0 <= value <= U64_MAX:
        raise ValueError(f"{name} out of u64 range: {value}")


class LedgerInstruction:
    """Base for instruction builders. Subclasses set ``anchor_name``."""

    anchor_name: ClassVar[str]

    @property
    def discriminator(self) -> bytes:
        return anchor_discriminator(self.anchor_name)

    def params(self) -> bytes:
        return b""

    @property
    def data(self) -> bytes:
        return self.discriminator + self.params()


@dataclass(frozen=True)
class SetResolutionPrice(LedgerInstruction):
    anchor_name: ClassVar[str] = "admin_set_resolution_price"

    category: Category
    rank: int
    price_units: int

    def __post_init__(self) -> None:
        _check_rank(self.rank)
        _check_u64("price_units", self.price_units)

    def params(self) -> bytes:
        return struct.pack("<BBQ", self.category.flag, self.rank, self.price_units)


@dataclass(frozen=True)
class UpdateUserPoints(LedgerInstruction):
    anchor_name: ClassVar[str] = "update_user_points"

    new_total: int

    def __post_init__(self) -> None:
        _check_u64("new_total", self.new_total)

    def params(self) -> bytes:
        return struct.pack("<Q", self.new_total)


@dataclass(frozen=True)
class ClearSingleSlot(LedgerInstruction):
    anchor_name: ClassVar[str] = "admin_clear_user_silo"

    category: Category
    rank: int

    def __post_init__(self) -> None:
        _check_rank(self.rank)

    def params(self) -> bytes:
        return struct.pack("<BB", self.category.flag, self.rank)


@dataclass(frozen=True)
class ClearAllSlots(LedgerInstruction):
    anchor_name: ClassVar[str] = "admin_clear_user_silos"

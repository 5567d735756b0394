from __future__ import annotations

from prediction_resolver.ledger.client import LedgerClient, LedgerError
from prediction_resolver.ledger.codec import (
    COMPACT_SCHEMA,
    FULL_SCHEMA,
    AccountSchema,
    CorruptAccountError,
    FieldSpec,
    decode,
)
from prediction_resolver.ledger.instructions import (
    ClearAllSlots,
    ClearSingleSlot,
    LedgerInstruction,
    SetResolutionPrice,
    UpdateUserPoints,
    anchor_discriminator,
)
from prediction_resolver.ledger.program import (
    AuthorityNotConfigured,
    LedgerGateway,
    PredictionProgram,
    SigningAuthority,
    TransactionSubmitter,
    parse_pubkey,
)

__all__ = [
    # codec
    "AccountSchema",
    "FieldSpec",
    "COMPACT_SCHEMA",
    "FULL_SCHEMA",
    "CorruptAccountError",
    "decode",
    # instructions
    "LedgerInstruction",
    "SetResolutionPrice",
    "UpdateUserPoints",
    "ClearSingleSlot",
    "ClearAllSlots",
    "anchor_discriminator",
    # transport
    "LedgerClient",
    "LedgerError",
    "LedgerGateway",
    "PredictionProgram",
    "SigningAuthority",
    "TransactionSubmitter",
    "AuthorityNotConfigured",
    "parse_pubkey",
]

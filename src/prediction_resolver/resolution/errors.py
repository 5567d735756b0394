from __future__ import annotations

from enum import StrEnum

from prediction_resolver.models.resolution import WorkflowState


class ErrorCode(StrEnum):
    # caller / validation
    EMPTY_SLOT = "EMPTY_SLOT"
    NO_TIMESTAMP = "NO_TIMESTAMP"
    NO_DURATION = "NO_DURATION"
    NOT_READY = "NOT_READY"
    MISSING_ENTRY_PRICE = "MISSING_ENTRY_PRICE"
    INVALID_SLOT = "INVALID_SLOT"
    INVALID_AGENT = "INVALID_AGENT"
    INVALID_WALLET = "INVALID_WALLET"
    MISSING_WALLET = "MISSING_WALLET"
    INVALID_REQUEST = "INVALID_REQUEST"
    NO_READY_PREDICTIONS = "NO_READY_PREDICTIONS"
    # transient infrastructure
    LOCK_HELD = "LOCK_HELD"
    PRICE_FETCH_FAILED = "PRICE_FETCH_FAILED"
    LEDGER_UNAVAILABLE = "LEDGER_UNAVAILABLE"
    # fatal for the request
    ACCOUNT_NOT_FOUND = "ACCOUNT_NOT_FOUND"
    CORRUPT_ACCOUNT = "CORRUPT_ACCOUNT"
    TRANSACTION_FAILED = "TRANSACTION_FAILED"
    RESOLUTION_FAILED = "RESOLUTION_FAILED"


RETRYABLE_CODES = frozenset({
    ErrorCode.LOCK_HELD,
    ErrorCode.PRICE_FETCH_FAILED,
    ErrorCode.LEDGER_UNAVAILABLE,
})

VALIDATION_CODES = frozenset({
    ErrorCode.EMPTY_SLOT,
    ErrorCode.NO_TIMESTAMP,
    ErrorCode.NO_DURATION,
    ErrorCode.NOT_READY,
    ErrorCode.MISSING_ENTRY_PRICE,
    ErrorCode.INVALID_SLOT,
    ErrorCode.INVALID_AGENT,
    ErrorCode.INVALID_WALLET,
    ErrorCode.MISSING_WALLET,
    ErrorCode.INVALID_REQUEST,
})


class ResolutionError(Exception):
    """A resolution request ended without committing anything to the ledger."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        remaining_seconds: int | None = None,
        state: WorkflowState | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.remaining_seconds = remaining_seconds
        self.state = state

    @property
    def retryable(self) -> bool:
        return self.code in RETRYABLE_CODES

    @property
    def is_validation(self) -> bool:
        return self.code in VALIDATION_CODES

    def to_dict(self) -> dict:
        data: dict = {"error": str(self.code), "message": self.message, "retryable": self.retryable}
        if self.remaining_seconds is not None:
            data["remainingSeconds"] = self.remaining_seconds
        return data

    def __repr__(self) -> str:
        return f"ResolutionError({self.code}, {self.message!r})"

"""Error value hierarchy: no domain function raises exceptions.

Every error is a frozen dataclass carrying a stable ErrorCode, so callers
can match on the code and the error can be logged, serialized and stored.
Base class SettlorError, @final subclasses per failure category:

    validation      ValidationError
    authorization   AuthorizationError
    state           IllegalTransitionError
    timing          TimingError
    arithmetic      CalculationError
    value rail      TransferError, ConservationViolationError
    storage         PersistenceError
    price feed      PriceFeedError
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import final

from settlor.core.types import UtcDatetime


class ErrorCode(Enum):
    """Stable, enumerable error codes surfaced verbatim to callers."""

    # validation
    INVALID_OPTION_TYPE = "INVALID_OPTION_TYPE"
    PRICE_MUST_BE_NON_ZERO = "PRICE_MUST_BE_NON_ZERO"
    STRIKE_MUST_BE_NON_ZERO = "STRIKE_MUST_BE_NON_ZERO"
    MARGIN_MUST_BE_NON_ZERO = "MARGIN_MUST_BE_NON_ZERO"
    UNDERLYING_TOO_LONG = "UNDERLYING_TOO_LONG"
    INVALID_PRICE = "INVALID_PRICE"
    INVALID_TRANSFER = "INVALID_TRANSFER"
    INVALID_RECORD = "INVALID_RECORD"
    # authorization
    UNAUTHORIZED = "UNAUTHORIZED"
    # state
    OPTION_NOT_AVAILABLE = "OPTION_NOT_AVAILABLE"
    OPTION_NOT_OWNED = "OPTION_NOT_OWNED"
    CANNOT_DELIST_OWNED_OPTION = "CANNOT_DELIST_OWNED_OPTION"
    ILLEGAL_TRANSITION = "ILLEGAL_TRANSITION"
    # timing
    OPTION_EXPIRED = "OPTION_EXPIRED"
    OPTION_NOT_EXPIRED = "OPTION_NOT_EXPIRED"
    CANNOT_EXERCISE_BEFORE_EXPIRY = "CANNOT_EXERCISE_BEFORE_EXPIRY"
    SETTLEMENT_TOO_SOON = "SETTLEMENT_TOO_SOON"
    INVALID_INITIATION_DATE = "INVALID_INITIATION_DATE"
    # arithmetic
    CALCULATION_OVERFLOW = "CALCULATION_OVERFLOW"
    INSUFFICIENT_MARGIN = "INSUFFICIENT_MARGIN"
    # value rail
    INSUFFICIENT_FUNDS = "INSUFFICIENT_FUNDS"
    UNREGISTERED_ACCOUNT = "UNREGISTERED_ACCOUNT"
    CONSERVATION_VIOLATION = "CONSERVATION_VIOLATION"
    BATCH_ALREADY_APPLIED = "BATCH_ALREADY_APPLIED"
    # storage
    PERSISTENCE_ERROR = "PERSISTENCE_ERROR"
    CONTRACT_EXISTS = "CONTRACT_EXISTS"
    CONTRACT_NOT_FOUND = "CONTRACT_NOT_FOUND"
    VERSION_CONFLICT = "VERSION_CONFLICT"
    # price feed
    PRICE_UNAVAILABLE = "PRICE_UNAVAILABLE"


@dataclass(frozen=True, slots=True)
class SettlorError:
    """Base error value. Not @final: it has subclasses."""

    message: str
    code: ErrorCode
    timestamp: UtcDatetime
    source: str  # "module.function" that produced this error

    def with_context(self, context: str) -> SettlorError:
        """Return a copy with context prepended to message."""
        return replace(self, message=f"{context}: {self.message}")

    def to_dict(self) -> dict[str, object]:
        return {
            "message": self.message,
            "code": self.code.value,
            "timestamp": self.timestamp.value.isoformat(),
            "source": self.source,
        }


@final
@dataclass(frozen=True, slots=True)
class FieldViolation:
    """Describes a single field validation failure."""

    path: str  # e.g. "contract.strike"
    constraint: str  # e.g. "must be > 0"
    actual_value: str


@final
@dataclass(frozen=True, slots=True)
class ValidationError(SettlorError):
    """Malformed input: zero amounts, oversized strings, bad enum tags."""

    fields: tuple[FieldViolation, ...]

    def to_dict(self) -> dict[str, object]:
        return {
            **SettlorError.to_dict(self),
            "fields": [
                {"path": f.path, "constraint": f.constraint, "actual_value": f.actual_value}
                for f in self.fields
            ],
        }


@final
@dataclass(frozen=True, slots=True)
class AuthorizationError(SettlorError):
    """Caller is not the party the operation requires."""

    required_party: str
    actual_party: str

    def to_dict(self) -> dict[str, object]:
        return {
            **SettlorError.to_dict(self),
            "required_party": self.required_party,
            "actual_party": self.actual_party,
        }


@final
@dataclass(frozen=True, slots=True)
class IllegalTransitionError(SettlorError):
    """Operation is not valid for the contract's current status."""

    from_state: str
    to_state: str

    def to_dict(self) -> dict[str, object]:
        return {
            **SettlorError.to_dict(self),
            "from_state": self.from_state,
            "to_state": self.to_state,
        }


@final
@dataclass(frozen=True, slots=True)
class TimingError(SettlorError):
    """Too early or too late relative to initiation, expiry or last settlement."""

    now: str
    boundary: str

    def to_dict(self) -> dict[str, object]:
        return {**SettlorError.to_dict(self), "now": self.now, "boundary": self.boundary}


@final
@dataclass(frozen=True, slots=True)
class CalculationError(SettlorError):
    """Checked arithmetic failed: overflow or a subtraction below zero."""

    operation: str
    operands: tuple[int, ...]

    def to_dict(self) -> dict[str, object]:
        return {
            **SettlorError.to_dict(self),
            "operation": self.operation,
            "operands": [str(o) for o in self.operands],
        }


@final
@dataclass(frozen=True, slots=True)
class TransferError(SettlorError):
    """The value rail refused a transfer batch; nothing was moved."""

    batch_id: str
    leg: int  # index of the offending transfer, -1 when not leg-specific

    def to_dict(self) -> dict[str, object]:
        return {**SettlorError.to_dict(self), "batch_id": self.batch_id, "leg": self.leg}


@final
@dataclass(frozen=True, slots=True)
class ConservationViolationError(SettlorError):
    """Total value across the rail changed during a batch."""

    law_name: str
    expected: str
    actual: str

    def to_dict(self) -> dict[str, object]:
        return {
            **SettlorError.to_dict(self),
            "law_name": self.law_name,
            "expected": self.expected,
            "actual": self.actual,
        }


@final
@dataclass(frozen=True, slots=True)
class PersistenceError(SettlorError):
    """Record store operation failed."""

    operation: str

    def to_dict(self) -> dict[str, object]:
        return {**SettlorError.to_dict(self), "operation": self.operation}


@final
@dataclass(frozen=True, slots=True)
class PriceFeedError(SettlorError):
    """A price observation could not be obtained or parsed."""

    instrument: str

    def to_dict(self) -> dict[str, object]:
        return {**SettlorError.to_dict(self), "instrument": self.instrument}

"""Lifecycle state machine: transition table and operation guards.

CONTRACT_TRANSITIONS defines the valid status edges. Guards check one
precondition each and return Ok(None) or the categorised error; operations
chain them with ``match`` before touching any value.

Production contracts enforce timing (expiry, settlement interval); test
contracts (is_test=True) skip those checks, except expire_option which
always requires the expiry to have passed.
"""

from __future__ import annotations

from datetime import timedelta

from settlor.contract.types import ContractRecord, ContractStatus
from settlor.core.errors import (
    AuthorizationError,
    ErrorCode,
    IllegalTransitionError,
    TimingError,
)
from settlor.core.party import PartyKey
from settlor.core.result import Err, Ok
from settlor.core.types import UtcDatetime

# ---------------------------------------------------------------------------
# Transition table
# ---------------------------------------------------------------------------

type TransitionTable = frozenset[tuple[ContractStatus, ContractStatus]]

CONTRACT_TRANSITIONS: TransitionTable = frozenset({
    (ContractStatus.LISTED, ContractStatus.OWNED),            # purchase
    (ContractStatus.LISTED, ContractStatus.DELISTED),         # delist
    (ContractStatus.LISTED, ContractStatus.EXPIRED),          # expire unsold
    (ContractStatus.OWNED, ContractStatus.OWNED),             # settle / resell
    (ContractStatus.OWNED, ContractStatus.MARGIN_CALLED),     # settle
    (ContractStatus.OWNED, ContractStatus.EXPIRED),           # exercise / expire
})


def check_transition(
    from_state: ContractStatus,
    to_state: ContractStatus,
    timestamp: UtcDatetime,
    transitions: TransitionTable = CONTRACT_TRANSITIONS,
) -> Ok[None] | Err[IllegalTransitionError]:
    """Validate a status change against the transition table."""
    if (from_state, to_state) in transitions:
        return Ok(None)
    return Err(IllegalTransitionError(
        message=f"Invalid transition: {from_state.value} -> {to_state.value}",
        code=ErrorCode.ILLEGAL_TRANSITION,
        timestamp=timestamp,
        source="contract.lifecycle.check_transition",
        from_state=from_state.value,
        to_state=to_state.value,
    ))


# ---------------------------------------------------------------------------
# Guards
# ---------------------------------------------------------------------------


def require_status(
    record: ContractRecord,
    expected: ContractStatus,
    code: ErrorCode,
    now: UtcDatetime,
    message: str,
) -> Ok[None] | Err[IllegalTransitionError]:
    if record.status == expected:
        return Ok(None)
    return Err(IllegalTransitionError(
        message=message,
        code=code,
        timestamp=now,
        source="contract.lifecycle.require_status",
        from_state=record.status.value,
        to_state=expected.value,
    ))


def require_party(
    actual: PartyKey,
    expected: PartyKey | None,
    role: str,
    now: UtcDatetime,
) -> Ok[None] | Err[AuthorizationError]:
    """Caller must be the party holding ``role`` on the contract."""
    if expected is not None and actual == expected:
        return Ok(None)
    return Err(AuthorizationError(
        message=f"Unauthorized: caller is not the contract {role}",
        code=ErrorCode.UNAUTHORIZED,
        timestamp=now,
        source="contract.lifecycle.require_party",
        required_party=expected.hex if expected else "",
        actual_party=actual.hex,
    ))


def _timing_err(
    message: str, code: ErrorCode, now: UtcDatetime, boundary: UtcDatetime, source: str,
) -> Err[TimingError]:
    return Err(TimingError(
        message=message,
        code=code,
        timestamp=now,
        source=source,
        now=now.value.isoformat(),
        boundary=boundary.value.isoformat(),
    ))


def require_before_expiry(
    record: ContractRecord, now: UtcDatetime,
) -> Ok[None] | Err[TimingError]:
    """Production contracts only: now < expiry."""
    if record.is_test or now < record.expiry:
        return Ok(None)
    return _timing_err(
        "Option has expired", ErrorCode.OPTION_EXPIRED, now, record.expiry,
        "contract.lifecycle.require_before_expiry",
    )


def require_at_or_after_expiry(
    record: ContractRecord,
    now: UtcDatetime,
    code: ErrorCode,
    *,
    honour_test_mode: bool,
) -> Ok[None] | Err[TimingError]:
    """now >= expiry; test contracts pass when honour_test_mode is set."""
    if (honour_test_mode and record.is_test) or now >= record.expiry:
        return Ok(None)
    message = (
        "Cannot exercise option before expiry date (European option)"
        if code == ErrorCode.CANNOT_EXERCISE_BEFORE_EXPIRY
        else "Option has not expired yet"
    )
    return _timing_err(
        message, code, now, record.expiry,
        "contract.lifecycle.require_at_or_after_expiry",
    )


def require_settlement_interval(
    record: ContractRecord, now: UtcDatetime, interval: timedelta,
) -> Ok[None] | Err[TimingError]:
    """Production contracts only: at least ``interval`` since the last settlement."""
    if record.is_test or record.last_settlement_at is None:
        return Ok(None)
    earliest = record.last_settlement_at.shifted(interval)
    if now >= earliest:
        return Ok(None)
    return _timing_err(
        "Settlement can only occur once per day", ErrorCode.SETTLEMENT_TOO_SOON,
        now, earliest, "contract.lifecycle.require_settlement_interval",
    )

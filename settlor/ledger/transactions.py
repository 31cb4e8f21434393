"""Value-rail types: Transfer and TransferBatch.

A Transfer is one intent to move ``amount`` base units between two
accounts. A TransferBatch is executed all-or-nothing by the rail.
Invariants (non-empty, distinct accounts, 0 < amount <= u64) are checked by
the create() smart constructors.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import final

from settlor.core.fixed_point import U64_MAX
from settlor.core.result import Err, Ok
from settlor.core.types import UtcDatetime


class AccountType(Enum):
    PARTY = "PARTY"        # seller, buyer or reseller wallet
    CUSTODY = "CUSTODY"    # margin held on behalf of one contract


class ExecuteResult(Enum):
    APPLIED = "APPLIED"
    ALREADY_APPLIED = "ALREADY_APPLIED"


@final
@dataclass(frozen=True, slots=True)
class Account:
    account_id: str
    account_type: AccountType


@final
@dataclass(frozen=True, slots=True)
class Transfer:
    """One leg of a batch: source -> destination."""

    source: str
    destination: str
    amount: int
    memo: str

    @staticmethod
    def create(source: str, destination: str, amount: int, memo: str) -> Ok[Transfer] | Err[str]:
        if not source:
            return Err("Transfer: source must be non-empty")
        if not destination:
            return Err("Transfer: destination must be non-empty")
        if source == destination:
            return Err(f"Transfer: source and destination must differ, both are '{source}'")
        if isinstance(amount, bool) or not isinstance(amount, int):
            return Err(f"Transfer: amount must be int, got {type(amount).__name__}")
        if amount <= 0:
            return Err(f"Transfer: amount must be > 0, got {amount}")
        if amount > U64_MAX:
            return Err(f"Transfer: amount exceeds u64 range, got {amount}")
        return Ok(Transfer(source=source, destination=destination, amount=amount, memo=memo))


@final
@dataclass(frozen=True, slots=True)
class TransferBatch:
    """Ordered transfers executed atomically under one idempotency key."""

    batch_id: str
    transfers: tuple[Transfer, ...]
    timestamp: UtcDatetime

    @staticmethod
    def create(
        batch_id: str, transfers: tuple[Transfer, ...], timestamp: UtcDatetime,
    ) -> Ok[TransferBatch] | Err[str]:
        if not batch_id:
            return Err("TransferBatch: batch_id must be non-empty")
        if not transfers:
            return Err("TransferBatch: at least one transfer required")
        return Ok(TransferBatch(batch_id=batch_id, transfers=transfers, timestamp=timestamp))

"""Infrastructure protocol definitions.

Domain code depends on these abstractions. Infrastructure code implements
them. The two never meet except in orchestration/.

Failures are values: the store and log return Err[PersistenceError], the
rail returns Err[TransferError | ConservationViolationError].
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from settlor.contract.types import ContractRecord
from settlor.core.errors import ConservationViolationError, PersistenceError, TransferError
from settlor.core.result import Err, Ok
from settlor.core.types import UtcDatetime
from settlor.ledger.history import ContractEvent
from settlor.ledger.transactions import Account, ExecuteResult, TransferBatch


@runtime_checkable
class ContractStore(Protocol):
    """Key-value store of contract records with optimistic concurrency.

    Invariants:
      - insert() fails with CONTRACT_EXISTS if the id is already stored.
      - get() returns the record stamped with its stored version.
      - compare_and_swap() writes only if the stored version equals
        expected_version, and returns the record with version + 1.
    """

    def insert(
        self, record: ContractRecord,
    ) -> Ok[ContractRecord] | Err[PersistenceError]: ...

    def get(
        self, contract_id: str,
    ) -> Ok[ContractRecord] | Err[PersistenceError]: ...

    def compare_and_swap(
        self, record: ContractRecord, expected_version: int,
    ) -> Ok[ContractRecord] | Err[PersistenceError]: ...

    def contract_ids(self) -> tuple[str, ...]: ...


@runtime_checkable
class ValueRail(Protocol):
    """Moves funds between party wallets and contract custody accounts.

    execute() is all-or-nothing and idempotent by batch_id. reverse() undoes
    an applied batch and frees its batch_id for a later retry.
    """

    def register_account(self, account: Account) -> Ok[None] | Err[str]: ...

    def is_registered(self, account_id: str) -> bool: ...

    def fund(self, account_id: str, amount: int) -> Ok[int] | Err[str]: ...

    def execute(
        self, batch: TransferBatch,
    ) -> Ok[ExecuteResult] | Err[TransferError | ConservationViolationError]: ...

    def reverse(
        self, batch_id: str, timestamp: UtcDatetime,
    ) -> Ok[ExecuteResult] | Err[TransferError | ConservationViolationError]: ...

    def get_balance(self, account_id: str) -> int: ...


@runtime_checkable
class HistoryLog(Protocol):
    """Append-only per-contract event log."""

    def append(self, event: ContractEvent) -> Ok[None] | Err[PersistenceError]: ...

    def replay(
        self, contract_id: str,
    ) -> Ok[tuple[ContractEvent, ...]] | Err[PersistenceError]: ...

"""Custody ledger: the in-memory value rail.

Holds integer balances for party wallets and per-contract custody
accounts and executes TransferBatches atomically.

Core invariants:
  - Conservation: the sum of all balances is unchanged by every execute().
  - No overdraft: a leg whose source lacks funds aborts the whole batch.
  - Atomicity: on any failure every balance is restored.
  - Idempotency: a batch_id is applied at most once, until reverse()
    releases it.

CustodyLedger is @final but not a dataclass: it holds mutable state.
"""

from __future__ import annotations

from collections import defaultdict
from typing import final

from settlor.core.errors import ConservationViolationError, ErrorCode, TransferError
from settlor.core.fixed_point import U64_MAX
from settlor.core.result import Err, Ok
from settlor.core.types import UtcDatetime
from settlor.ledger.transactions import Account, ExecuteResult, Transfer, TransferBatch

_SOURCE = "ledger.engine.CustodyLedger.execute"


@final
class CustodyLedger:
    """Balances per account, moved only by atomic transfer batches."""

    def __init__(self) -> None:
        self._accounts: dict[str, Account] = {}
        self._balances: dict[str, int] = defaultdict(int)
        self._batches: list[TransferBatch] = []
        self._applied_batch_ids: set[str] = set()

    def register_account(self, account: Account) -> Ok[None] | Err[str]:
        aid = account.account_id
        if aid in self._accounts:
            return Err(f"Account already registered: {aid}")
        self._accounts[aid] = account
        return Ok(None)

    def is_registered(self, account_id: str) -> bool:
        return account_id in self._accounts

    def fund(self, account_id: str, amount: int) -> Ok[int] | Err[str]:
        """External deposit onto the rail (wallet top-up). Returns the new balance."""
        if account_id not in self._accounts:
            return Err(f"Account not registered: {account_id}")
        if amount <= 0:
            return Err(f"Funding amount must be > 0, got {amount}")
        new_balance = self._balances[account_id] + amount
        if new_balance > U64_MAX:
            return Err(f"Funding would overflow {account_id}")
        self._balances[account_id] = new_balance
        return Ok(new_balance)

    def execute(
        self, batch: TransferBatch,
    ) -> Ok[ExecuteResult] | Err[TransferError | ConservationViolationError]:
        """Execute a batch atomically.

        1. Already applied -> Ok(ALREADY_APPLIED)
        2. Every account registered
        3. Apply legs in order, refusing overdraft and u64 overflow
        4. Post-verify total supply unchanged
        5. Record the batch

        On any failure: restore ALL touched balances.
        """
        if batch.batch_id in self._applied_batch_ids:
            return Ok(ExecuteResult.ALREADY_APPLIED)

        for leg, transfer in enumerate(batch.transfers):
            for account_id in (transfer.source, transfer.destination):
                if account_id not in self._accounts:
                    return Err(TransferError(
                        message=f"Account not registered: {account_id}",
                        code=ErrorCode.UNREGISTERED_ACCOUNT,
                        timestamp=batch.timestamp,
                        source=_SOURCE,
                        batch_id=batch.batch_id,
                        leg=leg,
                    ))

        pre_supply = self.total_supply()
        old_balances: dict[str, int] = {}

        def rollback() -> None:
            for key, val in old_balances.items():
                self._balances[key] = val

        for leg, transfer in enumerate(batch.transfers):
            for key in (transfer.source, transfer.destination):
                if key not in old_balances:
                    old_balances[key] = self._balances[key]
            if self._balances[transfer.source] < transfer.amount:
                available = self._balances[transfer.source]
                rollback()
                return Err(TransferError(
                    message=(
                        f"Insufficient funds in {transfer.source}: "
                        f"need {transfer.amount}, have {available} ({transfer.memo})"
                    ),
                    code=ErrorCode.INSUFFICIENT_FUNDS,
                    timestamp=batch.timestamp,
                    source=_SOURCE,
                    batch_id=batch.batch_id,
                    leg=leg,
                ))
            if self._balances[transfer.destination] + transfer.amount > U64_MAX:
                rollback()
                return Err(TransferError(
                    message=f"Balance overflow in {transfer.destination} ({transfer.memo})",
                    code=ErrorCode.CALCULATION_OVERFLOW,
                    timestamp=batch.timestamp,
                    source=_SOURCE,
                    batch_id=batch.batch_id,
                    leg=leg,
                ))
            self._balances[transfer.source] -= transfer.amount
            self._balances[transfer.destination] += transfer.amount

        post_supply = self.total_supply()
        if post_supply != pre_supply:
            rollback()
            return Err(ConservationViolationError(
                message="Total value on the rail changed",
                code=ErrorCode.CONSERVATION_VIOLATION,
                timestamp=batch.timestamp,
                source=_SOURCE,
                law_name="conservation",
                expected=str(pre_supply),
                actual=str(post_supply),
            ))

        self._batches.append(batch)
        self._applied_batch_ids.add(batch.batch_id)
        return Ok(ExecuteResult.APPLIED)

    def reverse(
        self, batch_id: str, timestamp: UtcDatetime,
    ) -> Ok[ExecuteResult] | Err[TransferError | ConservationViolationError]:
        """Undo an applied batch and release its batch_id.

        The inverse legs run through execute() as a batch of their own, so
        the undo is atomic and conservation-checked. Once it lands, the
        original batch_id can be executed again.
        """
        original = next((b for b in reversed(self._batches) if b.batch_id == batch_id), None)
        if original is None or batch_id not in self._applied_batch_ids:
            return Err(TransferError(
                message=f"Batch not applied: {batch_id}",
                code=ErrorCode.INVALID_TRANSFER,
                timestamp=timestamp,
                source="ledger.engine.CustodyLedger.reverse",
                batch_id=batch_id,
                leg=-1,
            ))
        legs = tuple(
            Transfer(
                source=t.destination, destination=t.source,
                amount=t.amount, memo=f"reversal: {t.memo}",
            )
            for t in reversed(original.transfers)
        )
        # batch count keeps repeated reversals of one id distinct
        reversal = TransferBatch(f"{batch_id}:reversal:{len(self._batches)}", legs, timestamp)
        match self.execute(reversal):
            case Err(e):
                return Err(e)
            case Ok(_):
                pass
        self._applied_batch_ids.discard(batch_id)
        return Ok(ExecuteResult.APPLIED)

    def get_balance(self, account_id: str) -> int:
        return self._balances.get(account_id, 0)

    def total_supply(self) -> int:
        return sum(self._balances.values())

    def batch_count(self) -> int:
        return len(self._batches)

    def snapshot(self) -> dict[str, int]:
        """Non-zero balances, for tests and reporting."""
        return {aid: bal for aid, bal in sorted(self._balances.items()) if bal != 0}

    def clone(self) -> CustodyLedger:
        new = CustodyLedger()
        new._accounts = dict(self._accounts)
        new._balances = defaultdict(int, self._balances)
        new._batches = list(self._batches)
        new._applied_batch_ids = set(self._applied_batch_ids)
        return new


"""In-memory implementations of the store and history protocols.

Test doubles that let the suite and the walkthrough run without a database.
The contract store keeps the encoded record bytes, so every read goes
through the persisted layout exactly as a real store would.
All classes are @final.
"""

from __future__ import annotations

from dataclasses import replace
from typing import final

from settlor.contract.codec import decode_record, encode_record
from settlor.contract.types import ContractRecord
from settlor.core.errors import ErrorCode, PersistenceError
from settlor.core.result import Err, Ok
from settlor.core.types import UtcDatetime
from settlor.ledger.history import ContractEvent


def _persistence_error(operation: str, detail: str, code: ErrorCode) -> PersistenceError:
    return PersistenceError(
        message=detail,
        code=code,
        timestamp=UtcDatetime.now(),
        source=f"memory_adapter.{operation}",
        operation=operation,
    )


@final
class InMemoryContractStore:
    """Encoded records keyed by contract_id, each with a version counter."""

    def __init__(self) -> None:
        self._rows: dict[str, tuple[int, bytes]] = {}

    def insert(
        self, record: ContractRecord,
    ) -> Ok[ContractRecord] | Err[PersistenceError]:
        if record.contract_id in self._rows:
            return Err(_persistence_error(
                "insert", f"Contract already exists: {record.contract_id}",
                ErrorCode.CONTRACT_EXISTS,
            ))
        self._rows[record.contract_id] = (1, encode_record(record))
        return Ok(replace(record, version=1))

    def get(
        self, contract_id: str,
    ) -> Ok[ContractRecord] | Err[PersistenceError]:
        row = self._rows.get(contract_id)
        if row is None:
            return Err(_persistence_error(
                "get", f"Contract not found: {contract_id}", ErrorCode.CONTRACT_NOT_FOUND,
            ))
        version, data = row
        match decode_record(data, version=version):
            case Err(e):
                return Err(_persistence_error(
                    "get", f"Stored record is corrupt: {e.message}", ErrorCode.PERSISTENCE_ERROR,
                ))
            case Ok(record):
                return Ok(record)

    def compare_and_swap(
        self, record: ContractRecord, expected_version: int,
    ) -> Ok[ContractRecord] | Err[PersistenceError]:
        row = self._rows.get(record.contract_id)
        if row is None:
            return Err(_persistence_error(
                "compare_and_swap", f"Contract not found: {record.contract_id}",
                ErrorCode.CONTRACT_NOT_FOUND,
            ))
        stored_version, _ = row
        if stored_version != expected_version:
            return Err(_persistence_error(
                "compare_and_swap",
                f"Version conflict on {record.contract_id}: "
                f"expected {expected_version}, stored {stored_version}",
                ErrorCode.VERSION_CONFLICT,
            ))
        new_version = stored_version + 1
        self._rows[record.contract_id] = (new_version, encode_record(record))
        return Ok(replace(record, version=new_version))

    def contract_ids(self) -> tuple[str, ...]:
        return tuple(self._rows)

    def raw(self, contract_id: str) -> bytes | None:
        """Test-only helper."""
        row = self._rows.get(contract_id)
        return row[1] if row else None

    def count(self) -> int:
        """Test-only helper."""
        return len(self._rows)


@final
class InMemoryHistoryLog:
    """Append-only event log, partitioned by contract_id."""

    def __init__(self) -> None:
        self._events: dict[str, list[ContractEvent]] = {}

    def append(self, event: ContractEvent) -> Ok[None] | Err[PersistenceError]:
        self._events.setdefault(event.contract_id, []).append(event)
        return Ok(None)

    def replay(
        self, contract_id: str,
    ) -> Ok[tuple[ContractEvent, ...]] | Err[PersistenceError]:
        return Ok(tuple(self._events.get(contract_id, ())))

    def count(self) -> int:
        """Test-only helper."""
        return sum(len(v) for v in self._events.values())

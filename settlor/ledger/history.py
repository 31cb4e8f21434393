"""Contract history: one ContractEvent per committed operation.

Events are appended by OptionDesk after the record write succeeds, so the
log never contains an operation whose effects were rolled back.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass
from typing import final

from settlor.core.party import PartyKey
from settlor.core.result import Err, Ok
from settlor.core.serialization import content_hash
from settlor.core.types import UtcDatetime
from settlor.ledger.exercise import ExerciseReport
from settlor.ledger.options import OperationKind, Transition
from settlor.ledger.settlement import SettlementReport
from settlor.ledger.transactions import Transfer


@final
@dataclass(frozen=True, slots=True)
class ContractEvent:
    contract_id: str
    operation: OperationKind
    timestamp: UtcDatetime
    actor: PartyKey | None  # None for permissionless operations
    version: int            # record version after the write
    transfers: tuple[Transfer, ...] = ()
    report: SettlementReport | ExerciseReport | None = None

    @staticmethod
    def from_transition(
        transition: Transition,
        timestamp: UtcDatetime,
        actor: PartyKey | None,
        version: int,
    ) -> ContractEvent:
        return ContractEvent(
            contract_id=transition.after.contract_id,
            operation=transition.operation,
            timestamp=timestamp,
            actor=actor,
            version=version,
            transfers=transition.transfers,
            report=transition.report,
        )

    @property
    def margin_called(self) -> bool:
        return isinstance(self.report, SettlementReport) and self.report.margin_called

    def event_id(self) -> Ok[str] | Err[str]:
        """Content hash of the event, stable across processes."""
        return content_hash(self)


@final
@dataclass(frozen=True, slots=True)
class HistorySummary:
    initializations: int = 0
    purchases: int = 0
    resells: int = 0
    settlements: int = 0
    exercises: int = 0
    expiries: int = 0
    delistings: int = 0
    margin_calls: int = 0

    @property
    def ownership_transfers(self) -> int:
        return self.purchases + self.resells

    @property
    def total(self) -> int:
        return (
            self.initializations + self.purchases + self.resells + self.settlements
            + self.exercises + self.expiries + self.delistings
        )


def summarize(events: Iterable[ContractEvent]) -> HistorySummary:
    counts: Counter[OperationKind] = Counter()
    margin_calls = 0
    for event in events:
        counts[event.operation] += 1
        if event.margin_called:
            margin_calls += 1
    return HistorySummary(
        initializations=counts[OperationKind.INITIALIZE],
        purchases=counts[OperationKind.PURCHASE],
        resells=counts[OperationKind.RESELL],
        settlements=counts[OperationKind.SETTLE],
        exercises=counts[OperationKind.EXERCISE],
        expiries=counts[OperationKind.EXPIRE],
        delistings=counts[OperationKind.DELIST],
        margin_calls=margin_calls,
    )

"""Contract domain types: OptionKind, ContractStatus, ContractRecord.

ContractRecord is immutable. Operations return a new record via
dataclasses.replace; the store increments ``version`` on every committed
write so a stale handle can never overwrite a newer record.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import final

from settlor.core.party import PartyKey
from settlor.core.result import Err, Ok
from settlor.core.types import UtcDatetime


class OptionKind(Enum):
    """Contract kind. Values are the persisted one-byte tags."""

    CALL = 0
    PUT = 1

    @staticmethod
    def from_tag(tag: int) -> Ok[OptionKind] | Err[str]:
        try:
            return Ok(OptionKind(tag))
        except ValueError:
            return Err(f"Invalid option type {tag} (must be 0 for Call or 1 for Put)")


class ContractStatus(Enum):
    LISTED = "Listed"
    OWNED = "Owned"
    EXPIRED = "Expired"
    DELISTED = "Delisted"
    MARGIN_CALLED = "MarginCalled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES: frozenset[ContractStatus] = frozenset({
    ContractStatus.EXPIRED,
    ContractStatus.DELISTED,
    ContractStatus.MARGIN_CALLED,
})


@final
@dataclass(frozen=True, slots=True)
class ContractRecord:
    """One option contract and its margin state.

    Immutable after initialization: contract_id, kind, underlying, seller,
    initiation, expiry, premium, strike, initial_margin, is_test.
    owner is None until the contract is purchased.
    """

    contract_id: str
    kind: OptionKind
    underlying: str
    seller: PartyKey
    owner: PartyKey | None
    initiation: UtcDatetime
    expiry: UtcDatetime
    status: ContractStatus
    premium: int
    strike: int
    initial_margin: int
    seller_margin: int
    buyer_margin: int
    last_settlement_at: UtcDatetime | None
    last_settlement_ratio: int
    is_test: bool
    version: int = 0

    @property
    def total_margin(self) -> int:
        return self.seller_margin + self.buyer_margin

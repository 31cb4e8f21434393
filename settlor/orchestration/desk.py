"""OptionDesk: the only place domain and infrastructure meet.

Every operation follows the same sequence:

    1. read the record (with its stored version) from the ContractStore
    2. run the pure operation from settlor.ledger.options
    3. execute its transfer intents on the ValueRail as one batch
    4. compare-and-swap the new record at the version read in step 1
    5. append a ContractEvent to the HistoryLog

A failure in steps 1-3 leaves every balance and record untouched. If the
swap in step 4 loses a race, the batch from step 3 is reversed before the
conflict is returned. The history append happens only after the swap.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import final

from settlor.contract.types import ContractRecord
from settlor.core.errors import (
    ErrorCode,
    FieldViolation,
    SettlorError,
    TransferError,
    ValidationError,
)
from settlor.core.party import PartyKey
from settlor.core.result import Err, Ok
from settlor.core.types import UtcDatetime
from settlor.infra.config import DEFAULT_ENGINE_CONFIG, EngineConfig
from settlor.infra.protocols import ContractStore, HistoryLog, ValueRail
from settlor.ledger import options
from settlor.ledger.history import ContractEvent, HistorySummary, summarize
from settlor.ledger.options import Transition
from settlor.ledger.transactions import (
    Account,
    AccountType,
    ExecuteResult,
    TransferBatch,
)
from settlor.ledger.transfers import custody_account, party_account
from settlor.oracle.feed import PriceFeed, observe

logger = logging.getLogger(__name__)

type Clock = Callable[[], UtcDatetime]


@final
class OptionDesk:
    """Runs contract operations against a store, a value rail and a history log."""

    def __init__(
        self,
        store: ContractStore,
        rail: ValueRail,
        history_log: HistoryLog,
        *,
        clock: Clock = UtcDatetime.now,
        config: EngineConfig = DEFAULT_ENGINE_CONFIG,
    ) -> None:
        self._store = store
        self._rail = rail
        self._history = history_log
        self._clock = clock
        self._config = config

    @property
    def config(self) -> EngineConfig:
        return self._config

    def now(self) -> UtcDatetime:
        """Clock time truncated to the whole seconds the record can hold."""
        return self._clock().whole_seconds()

    # -----------------------------------------------------------------------
    # Wallets
    # -----------------------------------------------------------------------

    def open_wallet(self, party: PartyKey, deposit: int = 0) -> Ok[int] | Err[str]:
        """Register a party wallet on the rail, optionally funding it."""
        account_id = party_account(party)
        if not self._rail.is_registered(account_id):
            match self._rail.register_account(Account(account_id, AccountType.PARTY)):
                case Err(e):
                    return Err(e)
        if deposit:
            return self._rail.fund(account_id, deposit)
        return Ok(self._rail.get_balance(account_id))

    def balance_of(self, party: PartyKey) -> int:
        return self._rail.get_balance(party_account(party))

    def custody_balance(self, contract_id: str) -> int:
        return self._rail.get_balance(custody_account(contract_id))

    # -----------------------------------------------------------------------
    # Queries
    # -----------------------------------------------------------------------

    def get_contract(self, contract_id: str) -> Ok[ContractRecord] | Err[SettlorError]:
        match self._store.get(contract_id):
            case Err(e):
                return Err(e)
            case Ok(record):
                return Ok(record)

    def history(self, contract_id: str) -> Ok[tuple[ContractEvent, ...]] | Err[SettlorError]:
        match self._history.replay(contract_id):
            case Err(e):
                return Err(e)
            case Ok(events):
                return Ok(events)

    def summary(self, contract_id: str) -> Ok[HistorySummary] | Err[SettlorError]:
        return self.history(contract_id).map(summarize)

    # -----------------------------------------------------------------------
    # Operations
    # -----------------------------------------------------------------------

    def initialize_option(
        self,
        seller: PartyKey,
        kind_tag: int,
        underlying: str,
        initiation: UtcDatetime,
        premium: int,
        strike: int,
        initial_margin: int,
        *,
        is_test: bool = False,
    ) -> Ok[Transition] | Err[SettlorError]:
        now = self.now()
        match options.initialize_option(
            kind_tag, underlying, seller, initiation, premium, strike,
            initial_margin, is_test, now, self._config,
        ):
            case Err(e):
                return self._rejected("initialize_option", underlying, e)
            case Ok(transition):
                pass
        match self._store.insert(transition.after):
            case Err(e):
                return self._rejected("initialize_option", underlying, e)
            case Ok(stored):
                pass

        custody = custody_account(stored.contract_id)
        if not self._rail.is_registered(custody):
            match self._rail.register_account(Account(custody, AccountType.CUSTODY)):
                case Err(reason):
                    logger.error("Custody account for %s not registered: %s", stored.contract_id, reason)

        committed = Transition(operation=transition.operation, before=None, after=stored)
        self._record_event(committed, now, seller)
        logger.info(
            "Listed %s %s contract %s (strike=%d premium=%d margin=%d test=%s)",
            stored.kind.name, stored.underlying, stored.contract_id,
            stored.strike, stored.premium, stored.initial_margin, stored.is_test,
        )
        return Ok(committed)

    def purchase_option(
        self, contract_id: str, buyer: PartyKey,
    ) -> Ok[Transition] | Err[SettlorError]:
        now = self.now()
        match self._store.get(contract_id):
            case Err(e):
                return Err(e)
            case Ok(record):
                pass
        return self._commit(
            "purchase_option", options.purchase_option(record, buyer, now), now, buyer,
        )

    def daily_settlement(
        self, contract_id: str, asset_price: int, reference_price: int,
    ) -> Ok[Transition] | Err[SettlorError]:
        """Permissionless: anyone may trigger the day's settlement."""
        now = self.now()
        match self._store.get(contract_id):
            case Err(e):
                return Err(e)
            case Ok(record):
                pass
        return self._commit(
            "daily_settlement",
            options.daily_settlement(record, asset_price, reference_price, now, self._config),
            now, None,
        )

    def settle_from_feed(
        self, contract_id: str, feed: PriceFeed, as_of: UtcDatetime | None = None,
    ) -> Ok[Transition] | Err[SettlorError]:
        """Pull both prices for the contract's underlying, then settle."""
        match self._store.get(contract_id):
            case Err(e):
                return Err(e)
            case Ok(record):
                pass
        match observe(feed, record.underlying, as_of):
            case Err(e):
                logger.warning("No prices for %s: %s", record.underlying, e.message)
                return Err(e)
            case Ok(observation):
                pass
        return self.daily_settlement(
            contract_id, observation.asset.price, observation.reference.price,
        )

    def exercise_option(
        self, contract_id: str, caller: PartyKey, asset_price: int, reference_price: int,
    ) -> Ok[Transition] | Err[SettlorError]:
        now = self.now()
        match self._store.get(contract_id):
            case Err(e):
                return Err(e)
            case Ok(record):
                pass
        return self._commit(
            "exercise_option",
            options.exercise_option(record, caller, asset_price, reference_price, now, self._config),
            now, caller,
        )

    def expire_option(self, contract_id: str) -> Ok[Transition] | Err[SettlorError]:
        now = self.now()
        match self._store.get(contract_id):
            case Err(e):
                return Err(e)
            case Ok(record):
                pass
        return self._commit("expire_option", options.expire_option(record, now), now, None)

    def delist_option(
        self, contract_id: str, caller: PartyKey,
    ) -> Ok[Transition] | Err[SettlorError]:
        now = self.now()
        match self._store.get(contract_id):
            case Err(e):
                return Err(e)
            case Ok(record):
                pass
        return self._commit("delist_option", options.delist_option(record, caller, now), now, caller)

    def resell_option(
        self, contract_id: str, caller: PartyKey, new_owner: PartyKey, price: int,
    ) -> Ok[Transition] | Err[SettlorError]:
        now = self.now()
        match self._store.get(contract_id):
            case Err(e):
                return Err(e)
            case Ok(record):
                pass
        return self._commit(
            "resell_option",
            options.resell_option(record, caller, new_owner, price, now),
            now, caller,
        )

    # -----------------------------------------------------------------------
    # Commit sequencing
    # -----------------------------------------------------------------------

    def _commit(
        self,
        op_name: str,
        outcome: Ok[Transition] | Err[SettlorError],
        now: UtcDatetime,
        actor: PartyKey | None,
    ) -> Ok[Transition] | Err[SettlorError]:
        match outcome:
            case Err(e):
                return self._rejected(op_name, "", e)
            case Ok(transition):
                pass
        before = transition.before
        assert before is not None  # only initialize has no prior record

        batch: TransferBatch | None = None
        if transition.transfers:
            batch_id = f"{before.contract_id}:v{before.version}:{transition.operation.value}"
            match TransferBatch.create(batch_id, transition.transfers, now):
                case Err(reason):
                    return self._rejected(op_name, before.contract_id, ValidationError(
                        message=reason,
                        code=ErrorCode.INVALID_TRANSFER,
                        timestamp=now,
                        source=f"orchestration.desk.{op_name}",
                        fields=(FieldViolation(path="batch", constraint="valid batch", actual_value=batch_id),),
                    ))
                case Ok(batch):
                    pass
            match self._rail.execute(batch):
                case Err(e):
                    return self._rejected(op_name, before.contract_id, e)
                case Ok(ExecuteResult.ALREADY_APPLIED):
                    # funds for this version moved earlier and were never undone
                    logger.error("Batch %s was already applied", batch.batch_id)
                    return self._rejected(op_name, before.contract_id, TransferError(
                        message=f"Batch {batch.batch_id} was already applied",
                        code=ErrorCode.BATCH_ALREADY_APPLIED,
                        timestamp=now,
                        source=f"orchestration.desk.{op_name}",
                        batch_id=batch.batch_id,
                        leg=-1,
                    ))

        match self._store.compare_and_swap(transition.after, before.version):
            case Err(e):
                if batch is not None:
                    self._reverse(batch, now)
                return self._rejected(op_name, before.contract_id, e)
            case Ok(stored):
                pass

        committed = Transition(
            operation=transition.operation,
            before=before,
            after=stored,
            transfers=transition.transfers,
            report=transition.report,
        )
        self._record_event(committed, now, actor)
        logger.info(
            "%s on %s: %s -> %s (v%d)",
            op_name, stored.contract_id, before.status.value, stored.status.value, stored.version,
        )
        return Ok(committed)

    def _reverse(self, batch: TransferBatch, now: UtcDatetime) -> None:
        """Undo an applied batch whose record write was refused."""
        match self._rail.reverse(batch.batch_id, now):
            case Err(e):
                logger.critical("Could not reverse batch %s: %s", batch.batch_id, e.message)
            case Ok(_):
                logger.warning("Reversed batch %s after a failed record write", batch.batch_id)

    def _record_event(self, transition: Transition, now: UtcDatetime, actor: PartyKey | None) -> None:
        event = ContractEvent.from_transition(transition, now, actor, transition.after.version)
        match self._history.append(event):
            case Err(e):
                logger.error(
                    "History append failed for %s: %s", transition.after.contract_id, e.message,
                )

    @staticmethod
    def _rejected(op_name: str, subject: str, error: SettlorError) -> Err[SettlorError]:
        logger.info("%s rejected %s: %s (%s)", op_name, subject, error.message, error.code.value)
        return Err(error)

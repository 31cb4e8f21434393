"""Contract operations: initialize, purchase, settle, exercise, expire, delist, resell.

Every function is pure. It validates the request against the current record,
then returns a Transition holding the new record and the transfer intents
the value rail must execute before that record may be committed. Nothing is
mutated here; OptionDesk sequences rail execution and the store write.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import final

from settlor.contract.lifecycle import (
    check_transition,
    require_at_or_after_expiry,
    require_before_expiry,
    require_party,
    require_status,
)
from settlor.contract.types import ContractRecord, ContractStatus, OptionKind
from settlor.core.errors import (
    CalculationError,
    ErrorCode,
    FieldViolation,
    SettlorError,
    TimingError,
    ValidationError,
)
from settlor.core.fixed_point import U64_MAX
from settlor.core.party import PartyKey
from settlor.core.result import Err, Ok
from settlor.core.serialization import derive_contract_id
from settlor.core.types import UtcDatetime
from settlor.infra.config import DEFAULT_ENGINE_CONFIG, EngineConfig
from settlor.ledger.exercise import ExerciseReport, exercise
from settlor.ledger.settlement import SettlementReport, settle_daily
from settlor.ledger.transactions import Transfer
from settlor.ledger.transfers import purchase_transfers, resale_transfers


class OperationKind(Enum):
    INITIALIZE = "initialize"
    PURCHASE = "purchase"
    SETTLE = "daily_settlement"
    EXERCISE = "exercise"
    EXPIRE = "expire"
    DELIST = "delist"
    RESELL = "resell"


@final
@dataclass(frozen=True, slots=True)
class Transition:
    """Outcome of one operation: before/after records plus transfer intents."""

    operation: OperationKind
    before: ContractRecord | None  # None for initialize
    after: ContractRecord
    transfers: tuple[Transfer, ...] = ()
    report: SettlementReport | ExerciseReport | None = None


def _invalid(
    code: ErrorCode,
    message: str,
    path: str,
    constraint: str,
    actual: object,
    now: UtcDatetime,
    fn_name: str,
) -> Err[ValidationError]:
    return Err(ValidationError(
        message=message,
        code=code,
        timestamp=now,
        source=f"ledger.options.{fn_name}",
        fields=(FieldViolation(path=path, constraint=constraint, actual_value=str(actual)),),
    ))


def _checked_transition(
    operation: OperationKind,
    before: ContractRecord,
    after: ContractRecord,
    now: UtcDatetime,
    transfers: tuple[Transfer, ...] = (),
    report: SettlementReport | ExerciseReport | None = None,
) -> Ok[Transition] | Err[SettlorError]:
    match check_transition(before.status, after.status, now):
        case Err(e):
            return Err(e)
    return Ok(Transition(
        operation=operation, before=before, after=after,
        transfers=transfers, report=report,
    ))


# ---------------------------------------------------------------------------
# Initialize
# ---------------------------------------------------------------------------


def initialize_option(
    kind_tag: int,
    underlying: str,
    seller: PartyKey,
    initiation: UtcDatetime,
    premium: int,
    strike: int,
    initial_margin: int,
    is_test: bool,
    now: UtcDatetime,
    config: EngineConfig = DEFAULT_ENGINE_CONFIG,
) -> Ok[Transition] | Err[SettlorError]:
    """List a new contract. Expiry is initiation + config.expiry_period.

    Production contracts may not start in the past; test contracts may.
    """
    fn = "initialize_option"
    match OptionKind.from_tag(kind_tag):
        case Err(reason):
            return _invalid(
                ErrorCode.INVALID_OPTION_TYPE, reason,
                "kind", "0 (Call) or 1 (Put)", kind_tag, now, fn,
            )
        case Ok(kind):
            pass
    if premium <= 0:
        return _invalid(
            ErrorCode.PRICE_MUST_BE_NON_ZERO, "Price must be greater than zero",
            "premium", "must be > 0", premium, now, fn,
        )
    if strike <= 0:
        return _invalid(
            ErrorCode.STRIKE_MUST_BE_NON_ZERO, "Strike price must be greater than zero",
            "strike", "must be > 0", strike, now, fn,
        )
    if initial_margin <= 0:
        return _invalid(
            ErrorCode.MARGIN_MUST_BE_NON_ZERO, "Margin must be greater than zero",
            "initial_margin", "must be > 0", initial_margin, now, fn,
        )
    symbol_bytes = len(underlying.encode("utf-8"))
    if symbol_bytes > config.max_underlying_bytes:
        return _invalid(
            ErrorCode.UNDERLYING_TOO_LONG,
            f"Underlying asset name too long (max {config.max_underlying_bytes} bytes)",
            "underlying", f"<= {config.max_underlying_bytes} UTF-8 bytes", symbol_bytes, now, fn,
        )
    oversized = tuple(v for v in (premium, strike, initial_margin) if v > U64_MAX)
    if oversized:
        return Err(CalculationError(
            message="Amount exceeds u64 range",
            code=ErrorCode.CALCULATION_OVERFLOW,
            timestamp=now,
            source=f"ledger.options.{fn}",
            operation="range",
            operands=oversized,
        ))

    start = initiation.whole_seconds()
    if not is_test and start < now.whole_seconds():
        return Err(TimingError(
            message="Initiation date cannot be in the past for real contracts",
            code=ErrorCode.INVALID_INITIATION_DATE,
            timestamp=now,
            source=f"ledger.options.{fn}",
            now=now.value.isoformat(),
            boundary=start.value.isoformat(),
        ))

    record = ContractRecord(
        contract_id=derive_contract_id(seller, underlying),
        kind=kind,
        underlying=underlying,
        seller=seller,
        owner=None,
        initiation=start,
        expiry=start.shifted(config.expiry_period),
        status=ContractStatus.LISTED,
        premium=premium,
        strike=strike,
        initial_margin=initial_margin,
        seller_margin=0,
        buyer_margin=0,
        last_settlement_at=None,
        last_settlement_ratio=0,
        is_test=is_test,
    )
    return Ok(Transition(operation=OperationKind.INITIALIZE, before=None, after=record))


# ---------------------------------------------------------------------------
# Purchase / resell
# ---------------------------------------------------------------------------


def purchase_option(
    record: ContractRecord,
    buyer: PartyKey,
    now: UtcDatetime,
) -> Ok[Transition] | Err[SettlorError]:
    """Buyer pays the premium; both sides post initial_margin into custody."""
    match require_status(
        record, ContractStatus.LISTED, ErrorCode.OPTION_NOT_AVAILABLE, now,
        "Option is not available for purchase",
    ):
        case Err(e):
            return Err(e)
    match require_before_expiry(record, now):
        case Err(e):
            return Err(e)
    match purchase_transfers(record, buyer, now):
        case Err(e):
            return Err(e)
        case Ok(transfers):
            pass

    after = replace(
        record,
        status=ContractStatus.OWNED,
        owner=buyer,
        seller_margin=record.initial_margin,
        buyer_margin=record.initial_margin,
        last_settlement_at=now,
    )
    return _checked_transition(OperationKind.PURCHASE, record, after, now, transfers)


def resell_option(
    record: ContractRecord,
    caller: PartyKey,
    new_owner: PartyKey,
    price: int,
    now: UtcDatetime,
) -> Ok[Transition] | Err[SettlorError]:
    """Owner sells the position on; the buyer margin is swapped, not re-sized."""
    fn = "resell_option"
    match require_status(
        record, ContractStatus.OWNED, ErrorCode.OPTION_NOT_AVAILABLE, now,
        "Option is not available for resale",
    ):
        case Err(e):
            return Err(e)
    match require_party(caller, record.owner, "owner", now):
        case Err(e):
            return Err(e)
    match require_before_expiry(record, now):
        case Err(e):
            return Err(e)
    if price <= 0:
        return _invalid(
            ErrorCode.PRICE_MUST_BE_NON_ZERO, "Price must be greater than zero",
            "price", "must be > 0", price, now, fn,
        )
    if new_owner == caller:
        return _invalid(
            ErrorCode.INVALID_TRANSFER, "New owner must differ from the current owner",
            "new_owner", "!= owner", new_owner.hex, now, fn,
        )
    match resale_transfers(record, caller, new_owner, price, now):
        case Err(e):
            return Err(e)
        case Ok(transfers):
            pass

    after = replace(record, owner=new_owner)
    return _checked_transition(OperationKind.RESELL, record, after, now, transfers)


# ---------------------------------------------------------------------------
# Settle / exercise
# ---------------------------------------------------------------------------


def daily_settlement(
    record: ContractRecord,
    asset_price: int,
    reference_price: int,
    now: UtcDatetime,
    config: EngineConfig = DEFAULT_ENGINE_CONFIG,
) -> Ok[Transition] | Err[SettlorError]:
    # Margins move inside custody only: no rail transfers.
    match settle_daily(record, asset_price, reference_price, now, config):
        case Err(e):
            return Err(e)
        case Ok(report):
            pass
    return _checked_transition(OperationKind.SETTLE, record, report.record, now, report=report)


def exercise_option(
    record: ContractRecord,
    caller: PartyKey,
    asset_price: int,
    reference_price: int,
    now: UtcDatetime,
    config: EngineConfig = DEFAULT_ENGINE_CONFIG,
) -> Ok[Transition] | Err[SettlorError]:
    match exercise(record, caller, asset_price, reference_price, now, config):
        case Err(e):
            return Err(e)
        case Ok(report):
            pass
    return _checked_transition(OperationKind.EXERCISE, record, report.record, now, report=report)


# ---------------------------------------------------------------------------
# Expire / delist
# ---------------------------------------------------------------------------


def expire_option(record: ContractRecord, now: UtcDatetime) -> Ok[Transition] | Err[SettlorError]:
    """Anyone may expire a non-terminal contract once its expiry has passed.

    The expiry check applies to test contracts too.
    """
    match check_transition(record.status, ContractStatus.EXPIRED, now):
        case Err(e):
            return Err(e)
    match require_at_or_after_expiry(
        record, now, ErrorCode.OPTION_NOT_EXPIRED, honour_test_mode=False,
    ):
        case Err(e):
            return Err(e)
    after = replace(record, status=ContractStatus.EXPIRED)
    return Ok(Transition(operation=OperationKind.EXPIRE, before=record, after=after))


def delist_option(
    record: ContractRecord, caller: PartyKey, now: UtcDatetime,
) -> Ok[Transition] | Err[SettlorError]:
    """Seller withdraws an unsold listing."""
    match require_party(caller, record.seller, "seller", now):
        case Err(e):
            return Err(e)
    match require_status(
        record, ContractStatus.LISTED, ErrorCode.CANNOT_DELIST_OWNED_OPTION, now,
        "Cannot delist an option that has been purchased",
    ):
        case Err(e):
            return Err(e)
    after = replace(record, status=ContractStatus.DELISTED)
    return _checked_transition(OperationKind.DELIST, record, after, now)

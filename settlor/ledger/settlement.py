"""Daily mark-to-market settlement and margin calls.

Each settlement re-prices the underlying in reference-currency units,
compares it with the previous settlement ratio (the strike before the first
settlement) and moves the difference from the losing side's margin to the
winning side's margin.

Margin call: when the loser's margin would reach or fall below the threshold
(margin_call_threshold_pct of initial_margin), only ``loser - threshold`` is
moved, the loser is left holding exactly the threshold and the contract
becomes MarginCalled. Either way seller_margin + buyer_margin is unchanged.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import final

from settlor.contract.lifecycle import (
    require_before_expiry,
    require_settlement_interval,
    require_status,
)
from settlor.contract.types import ContractRecord, ContractStatus, OptionKind
from settlor.core.errors import ErrorCode, SettlorError
from settlor.core.fixed_point import checked_add, checked_div, checked_mul, checked_sub, saturating_sub
from settlor.core.result import Err, Ok
from settlor.core.types import UtcDatetime
from settlor.infra.config import DEFAULT_ENGINE_CONFIG, EngineConfig
from settlor.oracle.ratio import compute_ratio

logger = logging.getLogger(__name__)

_SOURCE = "ledger.settlement.settle_daily"


@final
@dataclass(frozen=True, slots=True)
class GainAttribution:
    """Who profits from a price move. At most one side is non-zero."""

    buyer_gain: int
    seller_gain: int


@final
@dataclass(frozen=True, slots=True)
class MarginMove:
    winner_margin: int
    loser_margin: int
    transferred: int
    margin_called: bool


@final
@dataclass(frozen=True, slots=True)
class SettlementReport:
    record: ContractRecord
    current_ratio: int
    reference_ratio: int
    buyer_gain: int
    seller_gain: int
    transferred: int
    margin_called: bool


def reference_ratio(record: ContractRecord) -> int:
    """Baseline for this settlement: last ratio, or the strike if never settled."""
    return record.last_settlement_ratio or record.strike


def attribute_gain(kind: OptionKind, current: int, reference: int) -> GainAttribution:
    """Call buyers gain on a rise, put buyers on a fall; the seller takes the other side."""
    diff = abs(current - reference)
    if diff == 0:
        return GainAttribution(buyer_gain=0, seller_gain=0)
    buyer_wins = current > reference if kind == OptionKind.CALL else current < reference
    if buyer_wins:
        return GainAttribution(buyer_gain=diff, seller_gain=0)
    return GainAttribution(buyer_gain=0, seller_gain=diff)


def margin_threshold(
    initial_margin: int, pct: int, timestamp: UtcDatetime,
) -> Ok[int] | Err[SettlorError]:
    match checked_mul(initial_margin, pct, timestamp=timestamp, source=_SOURCE):
        case Err(e):
            return Err(e)
        case Ok(scaled):
            pass
    return checked_div(scaled, 100, timestamp=timestamp, source=_SOURCE)


def move_margin(
    winner: int, loser: int, gain: int, threshold: int, timestamp: UtcDatetime,
) -> Ok[MarginMove] | Err[SettlorError]:
    """Move ``gain`` from loser to winner, clamping at the threshold."""
    if gain >= loser or saturating_sub(loser, gain) <= threshold:
        amount = saturating_sub(loser, threshold)
        margin_called = True
    else:
        amount = gain
        margin_called = False

    match checked_add(winner, amount, timestamp=timestamp, source=_SOURCE):
        case Err(e):
            return Err(e)
        case Ok(new_winner):
            pass
    match checked_sub(
        loser, amount, timestamp=timestamp, source=_SOURCE,
        code=ErrorCode.INSUFFICIENT_MARGIN,
    ):
        case Err(e):
            return Err(e)
        case Ok(new_loser):
            pass

    return Ok(MarginMove(
        winner_margin=new_winner,
        loser_margin=new_loser,
        transferred=amount,
        margin_called=margin_called,
    ))


def settle_daily(
    record: ContractRecord,
    asset_price: int,
    reference_price: int,
    now: UtcDatetime,
    config: EngineConfig = DEFAULT_ENGINE_CONFIG,
) -> Ok[SettlementReport] | Err[SettlorError]:
    """Run one mark-to-market settlement. Anyone may call it."""
    match require_status(
        record, ContractStatus.OWNED, ErrorCode.OPTION_NOT_OWNED, now,
        "Option is not owned",
    ):
        case Err(e):
            return Err(e)
    match require_before_expiry(record, now):
        case Err(e):
            return Err(e)
    match require_settlement_interval(record, now, config.settlement_interval):
        case Err(e):
            return Err(e)

    match compute_ratio(asset_price, reference_price, now, scale=config.ratio_scale):
        case Err(e):
            return Err(e)
        case Ok(current):
            pass

    baseline = reference_ratio(record)
    gains = attribute_gain(record.kind, current, baseline)

    match margin_threshold(record.initial_margin, config.margin_call_threshold_pct, now):
        case Err(e):
            return Err(e)
        case Ok(threshold):
            pass

    buyer_margin = record.buyer_margin
    seller_margin = record.seller_margin
    transferred = 0
    margin_called = False

    if gains.buyer_gain > 0:
        match move_margin(buyer_margin, seller_margin, gains.buyer_gain, threshold, now):
            case Err(e):
                return Err(e)
            case Ok(mv):
                buyer_margin, seller_margin = mv.winner_margin, mv.loser_margin
                transferred, margin_called = mv.transferred, mv.margin_called
    elif gains.seller_gain > 0:
        match move_margin(seller_margin, buyer_margin, gains.seller_gain, threshold, now):
            case Err(e):
                return Err(e)
            case Ok(mv):
                seller_margin, buyer_margin = mv.winner_margin, mv.loser_margin
                transferred, margin_called = mv.transferred, mv.margin_called

    if margin_called:
        logger.warning(
            "Margin call on %s: %s margin exhausted at %d%%, positions forcibly settled",
            record.contract_id,
            "seller" if gains.buyer_gain > 0 else "buyer",
            config.margin_call_threshold_pct,
        )

    new_record = replace(
        record,
        buyer_margin=buyer_margin,
        seller_margin=seller_margin,
        status=ContractStatus.MARGIN_CALLED if margin_called else record.status,
        last_settlement_at=now,
        last_settlement_ratio=current,
    )
    return Ok(SettlementReport(
        record=new_record,
        current_ratio=current,
        reference_ratio=baseline,
        buyer_gain=gains.buyer_gain,
        seller_gain=gains.seller_gain,
        transferred=transferred,
        margin_called=margin_called,
    ))

"""Final settlement at exercise (European style).

The payoff is the option's intrinsic value in ratio units against the
strike. It is reported, not paid: exercise moves no margin and issues no
transfer. The contract ends Expired with the final ratio recorded.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import final

from settlor.contract.lifecycle import require_at_or_after_expiry, require_party, require_status
from settlor.contract.types import ContractRecord, ContractStatus, OptionKind
from settlor.core.errors import ErrorCode, SettlorError
from settlor.core.fixed_point import saturating_sub
from settlor.core.party import PartyKey
from settlor.core.result import Err, Ok
from settlor.core.types import UtcDatetime
from settlor.infra.config import DEFAULT_ENGINE_CONFIG, EngineConfig
from settlor.oracle.ratio import compute_ratio

logger = logging.getLogger(__name__)


@final
@dataclass(frozen=True, slots=True)
class ExerciseReport:
    record: ContractRecord
    final_ratio: int
    strike: int
    payoff: int


def intrinsic_payoff(kind: OptionKind, final_ratio: int, strike: int) -> int:
    """Call: max(final - strike, 0). Put: max(strike - final, 0)."""
    if kind == OptionKind.CALL:
        return saturating_sub(final_ratio, strike)
    return saturating_sub(strike, final_ratio)


def exercise(
    record: ContractRecord,
    caller: PartyKey,
    asset_price: int,
    reference_price: int,
    now: UtcDatetime,
    config: EngineConfig = DEFAULT_ENGINE_CONFIG,
) -> Ok[ExerciseReport] | Err[SettlorError]:
    match require_status(
        record, ContractStatus.OWNED, ErrorCode.OPTION_NOT_OWNED, now,
        "Option is not owned",
    ):
        case Err(e):
            return Err(e)
    match require_party(caller, record.owner, "owner", now):
        case Err(e):
            return Err(e)
    match require_at_or_after_expiry(
        record, now, ErrorCode.CANNOT_EXERCISE_BEFORE_EXPIRY, honour_test_mode=True,
    ):
        case Err(e):
            return Err(e)

    match compute_ratio(asset_price, reference_price, now, scale=config.ratio_scale):
        case Err(e):
            return Err(e)
        case Ok(final_ratio):
            pass

    payoff = intrinsic_payoff(record.kind, final_ratio, record.strike)
    logger.info(
        "Exercise settlement on %s: ratio=%d strike=%d payoff=%d",
        record.contract_id, final_ratio, record.strike, payoff,
    )
    return Ok(ExerciseReport(
        record=replace(
            record,
            status=ContractStatus.EXPIRED,
            last_settlement_at=now,
            last_settlement_ratio=final_ratio,
        ),
        final_ratio=final_ratio,
        strike=record.strike,
        payoff=payoff,
    ))

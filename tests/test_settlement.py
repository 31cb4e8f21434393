"""Tests for daily settlement, margin calls and exercise payoff."""

from __future__ import annotations

from dataclasses import replace
from datetime import timedelta

import pytest
from hypothesis import given
from hypothesis import strategies as st

from settlor.contract.types import ContractRecord, ContractStatus, OptionKind
from settlor.core.errors import ErrorCode, SettlorError
from settlor.core.result import Err, Ok, unwrap
from settlor.core.types import UtcDatetime
from settlor.infra.config import EngineConfig
from settlor.ledger.exercise import exercise, intrinsic_payoff
from settlor.ledger.settlement import (
    SettlementReport,
    attribute_gain,
    margin_threshold,
    move_margin,
    reference_ratio,
    settle_daily,
)

from conftest import BUYER, STRANGER, T0, make_record

# ratio == asset price when the reference price is 1
UNIT = EngineConfig(ratio_scale=1)
NEXT_DAY = T0.shifted(timedelta(days=1))


def settle(
    record: ContractRecord, asset: int, now: UtcDatetime = NEXT_DAY,
) -> Ok[SettlementReport] | Err[SettlorError]:
    return settle_daily(record, asset, 1, now, UNIT)


# ---------------------------------------------------------------------------
# Building blocks
# ---------------------------------------------------------------------------


class TestGainAttribution:
    @pytest.mark.parametrize(
        ("kind", "current", "reference", "buyer", "seller"),
        [
            (OptionKind.CALL, 1200, 1000, 200, 0),
            (OptionKind.CALL, 900, 1000, 0, 100),
            (OptionKind.PUT, 900, 1000, 100, 0),
            (OptionKind.PUT, 1200, 1000, 0, 200),
            (OptionKind.CALL, 1000, 1000, 0, 0),
            (OptionKind.PUT, 1000, 1000, 0, 0),
        ],
    )
    def test_table(self, kind: OptionKind, current: int, reference: int, buyer: int, seller: int) -> None:
        gains = attribute_gain(kind, current, reference)
        assert (gains.buyer_gain, gains.seller_gain) == (buyer, seller)

    def test_reference_is_strike_until_first_settlement(self) -> None:
        assert reference_ratio(make_record(last_settlement_ratio=0)) == 1000
        assert reference_ratio(make_record(last_settlement_ratio=1234)) == 1234

    def test_threshold_is_floor_percentage(self) -> None:
        assert unwrap(margin_threshold(1000, 20, T0)) == 200
        assert unwrap(margin_threshold(999, 20, T0)) == 199


class TestMoveMargin:
    def test_plain_move(self) -> None:
        mv = unwrap(move_margin(1000, 1000, 300, 200, T0))
        assert (mv.winner_margin, mv.loser_margin, mv.transferred, mv.margin_called) == (
            1300, 700, 300, False,
        )

    def test_gain_beyond_loser_margin_clamps_at_threshold(self) -> None:
        mv = unwrap(move_margin(1000, 1000, 5000, 200, T0))
        assert (mv.winner_margin, mv.loser_margin, mv.transferred, mv.margin_called) == (
            1800, 200, 800, True,
        )

    def test_loser_already_below_threshold_moves_nothing(self) -> None:
        mv = unwrap(move_margin(1000, 150, 10, 200, T0))
        assert mv.transferred == 0
        assert mv.loser_margin == 150
        assert mv.margin_called

    @given(
        st.integers(0, 10**12), st.integers(0, 10**12),
        st.integers(1, 10**12), st.integers(0, 10**12),
    )
    def test_total_margin_preserved(self, winner: int, loser: int, gain: int, threshold: int) -> None:
        mv = unwrap(move_margin(winner, loser, gain, threshold, T0))
        assert mv.winner_margin + mv.loser_margin == winner + loser
        assert mv.loser_margin >= 0


# ---------------------------------------------------------------------------
# settle_daily
# ---------------------------------------------------------------------------


class TestSettleDaily:
    def test_call_rise_pays_buyer(self) -> None:
        report = unwrap(settle(make_record(), 1100))
        assert report.buyer_gain == 100
        assert report.record.buyer_margin == 1100
        assert report.record.seller_margin == 900
        assert report.record.last_settlement_ratio == 1100
        assert report.record.last_settlement_at == NEXT_DAY
        assert report.record.status == ContractStatus.OWNED

    def test_put_rise_pays_seller(self) -> None:
        report = unwrap(settle(make_record(kind=OptionKind.PUT), 1100))
        assert report.seller_gain == 100
        assert report.record.seller_margin == 1100
        assert report.record.buyer_margin == 900

    def test_second_settlement_measures_from_last_ratio(self) -> None:
        first = unwrap(settle(make_record(), 1100)).record
        second = unwrap(settle(first, 1050, NEXT_DAY.shifted(timedelta(days=1))))
        assert second.reference_ratio == 1100
        assert second.seller_gain == 50
        assert second.record.buyer_margin == 1050

    def test_unchanged_ratio_only_advances_clock(self) -> None:
        record = make_record(last_settlement_ratio=1000)
        report = unwrap(settle(record, 1000))
        assert report.transferred == 0
        assert report.record.buyer_margin == record.buyer_margin
        assert report.record.last_settlement_at == NEXT_DAY

    def test_loss_reaching_threshold_triggers_margin_call(self) -> None:
        report = unwrap(settle(make_record(), 1800))
        assert report.margin_called
        assert report.record.status == ContractStatus.MARGIN_CALLED
        assert report.record.seller_margin == 200
        assert report.record.buyer_margin == 1800

    def test_loss_one_short_of_threshold_stays_owned(self) -> None:
        report = unwrap(settle(make_record(), 1799))
        assert not report.margin_called
        assert report.record.status == ContractStatus.OWNED
        assert report.record.seller_margin == 201

    def test_buyer_margin_call_on_put(self) -> None:
        report = unwrap(settle(make_record(kind=OptionKind.PUT), 5000))
        assert report.record.status == ContractStatus.MARGIN_CALLED
        assert report.record.buyer_margin == 200

    def test_margin_call_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level("WARNING", logger="settlor.ledger.settlement"):
            unwrap(settle(make_record(), 9999))
        assert "Margin call" in caplog.text

    def test_requires_owned(self) -> None:
        result = settle(make_record(status=ContractStatus.LISTED, owner=None), 1100)
        assert isinstance(result, Err)
        assert result.error.code == ErrorCode.OPTION_NOT_OWNED

    def test_rejected_after_expiry(self) -> None:
        record = make_record()
        result = settle(record, 1100, record.expiry)
        assert isinstance(result, Err)
        assert result.error.code == ErrorCode.OPTION_EXPIRED

    def test_once_per_interval(self) -> None:
        result = settle(make_record(), 1100, T0.shifted(timedelta(hours=23)))
        assert isinstance(result, Err)
        assert result.error.code == ErrorCode.SETTLEMENT_TOO_SOON

    def test_test_contracts_skip_timing(self) -> None:
        record = make_record(is_test=True)
        assert unwrap(settle(record, 1100, T0)).buyer_gain == 100
        assert unwrap(settle(record, 1100, record.expiry.shifted(timedelta(days=9)))).buyer_gain == 100

    def test_zero_reference_price(self) -> None:
        result = settle_daily(make_record(), 1100, 0, NEXT_DAY, UNIT)
        assert isinstance(result, Err)
        assert result.error.code == ErrorCode.INVALID_PRICE

    def test_default_scale_uses_billion(self) -> None:
        record = make_record(strike=1_500_000_000)
        report = unwrap(settle_daily(record, 225_500_000, 150_000_000, NEXT_DAY))
        assert report.current_ratio == 1_503_333_333

    @given(st.sampled_from(list(OptionKind)), st.integers(1, 10**6), st.integers(0, 5000), st.integers(0, 5000))
    def test_settlement_conserves_margin(
        self, kind: OptionKind, asset: int, seller_margin: int, buyer_margin: int,
    ) -> None:
        record = make_record(kind=kind, seller_margin=seller_margin, buyer_margin=buyer_margin)
        report = unwrap(settle(record, asset))
        assert report.record.total_margin == record.total_margin
        assert report.record.seller_margin >= 0 and report.record.buyer_margin >= 0


# ---------------------------------------------------------------------------
# Exercise
# ---------------------------------------------------------------------------


class TestExercise:
    @pytest.mark.parametrize(
        ("kind", "final", "strike", "payoff"),
        [
            (OptionKind.CALL, 120, 100, 20),
            (OptionKind.PUT, 120, 100, 0),
            (OptionKind.CALL, 80, 100, 0),
            (OptionKind.PUT, 80, 100, 20),
        ],
    )
    def test_intrinsic_payoff(self, kind: OptionKind, final: int, strike: int, payoff: int) -> None:
        assert intrinsic_payoff(kind, final, strike) == payoff

    def test_owner_exercises_at_expiry(self) -> None:
        record = make_record()
        report = unwrap(exercise(record, BUYER, 1200, 1, record.expiry, UNIT))
        assert report.payoff == 200
        assert report.record.status == ContractStatus.EXPIRED
        assert report.record.last_settlement_ratio == 1200
        assert report.record.last_settlement_at == record.expiry
        assert report.record.total_margin == record.total_margin

    def test_before_expiry_rejected(self) -> None:
        record = make_record()
        result = exercise(record, BUYER, 1200, 1, NEXT_DAY, UNIT)
        assert isinstance(result, Err)
        assert result.error.code == ErrorCode.CANNOT_EXERCISE_BEFORE_EXPIRY

    def test_test_contract_exercises_early(self) -> None:
        record = make_record(is_test=True)
        assert unwrap(exercise(record, BUYER, 1200, 1, NEXT_DAY, UNIT)).payoff == 200

    def test_only_owner(self) -> None:
        record = make_record()
        result = exercise(record, STRANGER, 1200, 1, record.expiry, UNIT)
        assert isinstance(result, Err)
        assert result.error.code == ErrorCode.UNAUTHORIZED

    def test_requires_owned(self) -> None:
        record = replace(make_record(), status=ContractStatus.MARGIN_CALLED)
        result = exercise(record, BUYER, 1200, 1, record.expiry, UNIT)
        assert isinstance(result, Err)
        assert result.error.code == ErrorCode.OPTION_NOT_OWNED

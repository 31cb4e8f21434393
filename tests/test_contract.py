"""Tests for settlor.contract: record layout and lifecycle guards."""

from __future__ import annotations

from dataclasses import replace
from datetime import timedelta

from hypothesis import given

from settlor.contract.codec import RECORD_SPACE, decode_record, encode_record
from settlor.contract.lifecycle import (
    CONTRACT_TRANSITIONS,
    check_transition,
    require_at_or_after_expiry,
    require_before_expiry,
    require_party,
    require_settlement_interval,
    require_status,
)
from settlor.contract.types import (
    TERMINAL_STATUSES,
    ContractRecord,
    ContractStatus,
    OptionKind,
)
from settlor.core.errors import ErrorCode
from settlor.core.result import Err, Ok, unwrap

from conftest import BUYER, STRANGER, T0, contract_records, make_record

# ---------------------------------------------------------------------------
# Types
# ---------------------------------------------------------------------------


class TestContractTypes:
    def test_option_kind_tags(self) -> None:
        assert OptionKind.from_tag(0) == Ok(OptionKind.CALL)
        assert OptionKind.from_tag(1) == Ok(OptionKind.PUT)
        assert isinstance(OptionKind.from_tag(2), Err)

    def test_terminal_statuses(self) -> None:
        assert {s for s in ContractStatus if s.is_terminal} == {
            ContractStatus.EXPIRED, ContractStatus.DELISTED, ContractStatus.MARGIN_CALLED,
        }

    def test_total_margin(self) -> None:
        assert make_record(seller_margin=300, buyer_margin=1700).total_margin == 2000


# ---------------------------------------------------------------------------
# Codec
# ---------------------------------------------------------------------------


class TestCodec:
    @given(contract_records())
    def test_decode_inverts_encode(self, record: ContractRecord) -> None:
        data = encode_record(record)
        assert len(data) <= RECORD_SPACE
        assert decode_record(data, version=record.version) == Ok(record)

    def test_unset_owner_is_zero_key(self) -> None:
        record = make_record(owner=None, status=ContractStatus.LISTED, last_settlement_at=None)
        decoded = unwrap(decode_record(encode_record(record)))
        assert decoded.owner is None
        assert decoded.last_settlement_at is None

    def test_version_comes_from_caller(self) -> None:
        decoded = unwrap(decode_record(encode_record(make_record()), version=7))
        assert decoded.version == 7

    def test_truncated_rejected(self) -> None:
        data = encode_record(make_record())
        for cut in (0, 3, len(data) - 1):
            result = decode_record(data[:cut])
            assert isinstance(result, Err)
            assert result.error.code == ErrorCode.INVALID_RECORD

    def test_trailing_bytes_rejected(self) -> None:
        assert isinstance(decode_record(encode_record(make_record()) + b"\x00"), Err)

    def test_bad_kind_tag_rejected(self) -> None:
        data = bytearray(encode_record(make_record()))
        data[0] = 9
        assert isinstance(decode_record(bytes(data)), Err)

    def test_oversized_symbol_length_rejected(self) -> None:
        data = bytearray(encode_record(make_record()))
        data[1:5] = (33).to_bytes(4, "little")
        result = decode_record(bytes(data))
        assert isinstance(result, Err)
        assert result.error.fields[0].path == "underlying"

    def test_bad_status_tag_rejected(self) -> None:
        record = make_record()
        data = bytearray(encode_record(record))
        # kind(1) + len(4) + symbol + seller(32) + initiation(8) + expiry(8)
        status_offset = 5 + len(record.underlying.encode()) + 32 + 16
        data[status_offset] = 5
        result = decode_record(bytes(data))
        assert isinstance(result, Err)
        assert result.error.fields[0].path == "status"


# ---------------------------------------------------------------------------
# Transition table
# ---------------------------------------------------------------------------


class TestTransitions:
    def test_no_edge_back_to_listed(self) -> None:
        assert all(to != ContractStatus.LISTED for _, to in CONTRACT_TRANSITIONS)

    def test_terminal_states_have_no_outgoing_edges(self) -> None:
        assert all(frm not in TERMINAL_STATUSES for frm, _ in CONTRACT_TRANSITIONS)

    def test_illegal_transition(self) -> None:
        result = check_transition(ContractStatus.EXPIRED, ContractStatus.OWNED, T0)
        assert isinstance(result, Err)
        assert result.error.code == ErrorCode.ILLEGAL_TRANSITION
        assert result.error.from_state == "Expired"

    def test_legal_transition(self) -> None:
        assert check_transition(ContractStatus.LISTED, ContractStatus.OWNED, T0) == Ok(None)


# ---------------------------------------------------------------------------
# Guards
# ---------------------------------------------------------------------------


class TestGuards:
    def test_require_status(self) -> None:
        record = make_record(status=ContractStatus.LISTED)
        result = require_status(
            record, ContractStatus.OWNED, ErrorCode.OPTION_NOT_OWNED, T0, "not owned",
        )
        assert isinstance(result, Err)
        assert result.error.code == ErrorCode.OPTION_NOT_OWNED

    def test_require_party(self) -> None:
        assert require_party(BUYER, BUYER, "owner", T0) == Ok(None)
        denied = require_party(STRANGER, BUYER, "owner", T0)
        assert isinstance(denied, Err)
        assert denied.error.code == ErrorCode.UNAUTHORIZED
        assert isinstance(require_party(BUYER, None, "owner", T0), Err)

    def test_before_expiry_production_only(self) -> None:
        record = make_record()
        at_expiry = record.expiry
        assert isinstance(require_before_expiry(record, at_expiry), Err)
        assert require_before_expiry(replace(record, is_test=True), at_expiry) == Ok(None)

    def test_at_or_after_expiry(self) -> None:
        record = make_record()
        early = record.expiry.shifted(timedelta(seconds=-1))
        result = require_at_or_after_expiry(
            record, early, ErrorCode.CANNOT_EXERCISE_BEFORE_EXPIRY, honour_test_mode=True,
        )
        assert isinstance(result, Err)
        assert result.error.code == ErrorCode.CANNOT_EXERCISE_BEFORE_EXPIRY
        assert require_at_or_after_expiry(
            record, record.expiry, ErrorCode.OPTION_NOT_EXPIRED, honour_test_mode=False,
        ) == Ok(None)

    def test_test_mode_only_honoured_when_asked(self) -> None:
        record = make_record(is_test=True)
        assert require_at_or_after_expiry(
            record, T0, ErrorCode.CANNOT_EXERCISE_BEFORE_EXPIRY, honour_test_mode=True,
        ) == Ok(None)
        assert isinstance(require_at_or_after_expiry(
            record, T0, ErrorCode.OPTION_NOT_EXPIRED, honour_test_mode=False,
        ), Err)

    def test_settlement_interval(self) -> None:
        record = make_record(last_settlement_at=T0)
        day = timedelta(days=1)
        too_soon = require_settlement_interval(record, T0.shifted(day - timedelta(seconds=1)), day)
        assert isinstance(too_soon, Err)
        assert too_soon.error.code == ErrorCode.SETTLEMENT_TOO_SOON
        assert require_settlement_interval(record, T0.shifted(day), day) == Ok(None)
        assert require_settlement_interval(replace(record, is_test=True), T0, day) == Ok(None)

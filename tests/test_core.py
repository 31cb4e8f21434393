"""Tests for settlor.core: Result, UtcDatetime, PartyKey, errors, checked arithmetic, serialization."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta, timezone

import pytest
from hypothesis import given
from hypothesis import strategies as st

from settlor.core.errors import (
    CalculationError,
    ErrorCode,
    FieldViolation,
    TransferError,
    ValidationError,
)
from settlor.core.fixed_point import (
    U64_MAX,
    U128_MAX,
    checked_add,
    checked_div,
    checked_mul,
    checked_sub,
    fits_u64,
    saturating_sub,
)
from settlor.core.party import KEY_LENGTH, ZERO_KEY_BYTES, PartyKey
from settlor.core.result import Err, Ok, sequence, unwrap
from settlor.core.serialization import canonical_bytes, content_hash, derive_contract_id
from settlor.core.types import UtcDatetime

from conftest import T0, party_keys

# ---------------------------------------------------------------------------
# Result
# ---------------------------------------------------------------------------


class TestResult:
    def test_ok_map_and_bind(self) -> None:
        assert Ok(2).map(lambda x: x + 1) == Ok(3)
        assert Ok(2).bind(lambda x: Err(f"bad {x}")) == Err("bad 2")

    def test_err_short_circuits(self) -> None:
        err: Err[str] = Err("boom")
        assert err.map(lambda x: x + 1) is err
        assert err.bind(lambda x: Ok(x)) is err
        assert err.unwrap_or(7) == 7
        assert err.map_err(str.upper) == Err("BOOM")

    def test_unwrap_err_raises(self) -> None:
        with pytest.raises(RuntimeError):
            unwrap(Err("nope"))
        with pytest.raises(RuntimeError):
            Err("nope").unwrap()

    def test_sequence_first_err_wins(self) -> None:
        assert sequence([Ok(1), Ok(2)]) == Ok([1, 2])
        assert sequence([Ok(1), Err("a"), Err("b")]) == Err("a")

    def test_pattern_matching(self) -> None:
        match Ok(5):
            case Ok(v):
                assert v == 5
            case Err(_):
                pytest.fail("expected Ok")


# ---------------------------------------------------------------------------
# UtcDatetime
# ---------------------------------------------------------------------------


class TestUtcDatetime:
    def test_naive_rejected(self) -> None:
        with pytest.raises(TypeError):
            UtcDatetime(value=datetime(2025, 1, 1))
        assert isinstance(UtcDatetime.parse(datetime(2025, 1, 1)), Err)

    def test_parse_normalises_to_utc(self) -> None:
        plus_two = timezone(timedelta(hours=2))
        parsed = unwrap(UtcDatetime.parse(datetime(2025, 1, 1, 14, tzinfo=plus_two)))
        assert parsed.value == datetime(2025, 1, 1, 12, tzinfo=UTC)

    def test_whole_seconds_and_unix_round_trip(self) -> None:
        t = UtcDatetime(value=datetime(2025, 8, 1, 12, 0, 0, 987_654, tzinfo=UTC))
        whole = t.whole_seconds()
        assert whole.value.microsecond == 0
        assert UtcDatetime.from_unix_seconds(whole.unix_seconds) == whole

    def test_ordering(self) -> None:
        later = T0.shifted(timedelta(seconds=1))
        assert T0 < later and later > T0
        assert T0 <= T0 and T0 >= T0


# ---------------------------------------------------------------------------
# PartyKey
# ---------------------------------------------------------------------------


class TestPartyKey:
    def test_zero_key_rejected(self) -> None:
        assert isinstance(PartyKey.parse(ZERO_KEY_BYTES), Err)
        with pytest.raises(TypeError):
            PartyKey(value=ZERO_KEY_BYTES)

    def test_wrong_length_rejected(self) -> None:
        assert isinstance(PartyKey.parse(b"\x01" * 31), Err)

    def test_hex_parse(self) -> None:
        key = PartyKey.from_seed("alice")
        assert PartyKey.parse(key.hex) == Ok(key)
        assert isinstance(PartyKey.parse("zz" * KEY_LENGTH), Err)

    def test_seed_is_deterministic(self) -> None:
        assert PartyKey.from_seed("bob") == PartyKey.from_seed("bob")
        assert PartyKey.from_seed("bob") != PartyKey.from_seed("carol")

    @given(party_keys())
    def test_raw_bytes_round_trip(self, key: PartyKey) -> None:
        assert PartyKey.parse(key.value) == Ok(key)


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class TestErrors:
    def test_to_dict_includes_code_and_fields(self) -> None:
        err = ValidationError(
            message="bad", code=ErrorCode.STRIKE_MUST_BE_NON_ZERO, timestamp=T0,
            source="test", fields=(FieldViolation("strike", "must be > 0", "0"),),
        )
        d = err.to_dict()
        assert d["code"] == "STRIKE_MUST_BE_NON_ZERO"
        assert d["fields"] == [{"path": "strike", "constraint": "must be > 0", "actual_value": "0"}]

    def test_with_context_prefixes_message(self) -> None:
        err = TransferError(
            message="no funds", code=ErrorCode.INSUFFICIENT_FUNDS, timestamp=T0,
            source="test", batch_id="b1", leg=2,
        )
        wrapped = err.with_context("purchase")
        assert wrapped.message == "purchase: no funds"
        assert wrapped.to_dict()["leg"] == 2


# ---------------------------------------------------------------------------
# Checked arithmetic
# ---------------------------------------------------------------------------


class TestFixedPoint:
    def test_add_overflow(self) -> None:
        result = checked_add(U64_MAX, 1, timestamp=T0, source="t")
        assert isinstance(result, Err)
        assert result.error.code == ErrorCode.CALCULATION_OVERFLOW

    def test_add_respects_custom_limit(self) -> None:
        assert checked_add(U64_MAX, 1, timestamp=T0, source="t", limit=U128_MAX) == Ok(2**64)

    def test_sub_underflow_uses_given_code(self) -> None:
        result = checked_sub(1, 2, timestamp=T0, source="t", code=ErrorCode.INSUFFICIENT_MARGIN)
        assert isinstance(result, Err)
        assert isinstance(result.error, CalculationError)
        assert result.error.code == ErrorCode.INSUFFICIENT_MARGIN

    def test_mul_and_div(self) -> None:
        assert isinstance(checked_mul(2**32, 2**32, timestamp=T0, source="t"), Err)
        assert checked_mul(2**32, 2**31, timestamp=T0, source="t") == Ok(2**63)
        assert checked_div(7, 2, timestamp=T0, source="t") == Ok(3)
        assert isinstance(checked_div(7, 0, timestamp=T0, source="t"), Err)

    @given(st.integers(0, U64_MAX), st.integers(0, U64_MAX))
    def test_saturating_sub_never_negative(self, a: int, b: int) -> None:
        assert saturating_sub(a, b) == max(a - b, 0)

    def test_fits_u64(self) -> None:
        assert fits_u64(0) and fits_u64(U64_MAX)
        assert not fits_u64(-1) and not fits_u64(U64_MAX + 1)


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------


class TestSerialization:
    def test_canonical_bytes_is_order_independent(self) -> None:
        assert canonical_bytes({"b": 1, "a": 2}) == canonical_bytes({"a": 2, "b": 1})

    def test_large_ints_serialized_as_strings(self) -> None:
        assert unwrap(canonical_bytes({"x": U64_MAX})) == f'{{"x":"{U64_MAX}"}}'.encode()

    def test_unsupported_type_is_err(self) -> None:
        assert isinstance(content_hash(object()), Err)

    def test_contract_id_depends_on_seller_and_symbol(self) -> None:
        a = PartyKey.from_seed("a")
        b = PartyKey.from_seed("b")
        assert derive_contract_id(a, "AAPL") == derive_contract_id(a, "AAPL")
        assert derive_contract_id(a, "AAPL") != derive_contract_id(b, "AAPL")
        assert derive_contract_id(a, "AAPL") != derive_contract_id(a, "MSFT")
        assert len(derive_contract_id(a, "AAPL")) == 64

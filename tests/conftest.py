"""Hypothesis strategies and pytest fixtures for settlor.

Strategies are composable: records are built from keys, prices and margins.
Fixtures wire an OptionDesk to the in-memory store, rail and history log.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime, timedelta

import pytest
from hypothesis import HealthCheck, settings
from hypothesis import strategies as st
from hypothesis.strategies import SearchStrategy

from settlor.contract.types import ContractRecord, ContractStatus, OptionKind
from settlor.core.fixed_point import U64_MAX
from settlor.core.party import KEY_LENGTH, PartyKey
from settlor.core.serialization import derive_contract_id
from settlor.core.types import UtcDatetime
from settlor.infra.memory_adapter import InMemoryContractStore, InMemoryHistoryLog
from settlor.ledger.engine import CustodyLedger
from settlor.orchestration.desk import OptionDesk

# ---------------------------------------------------------------------------
# Hypothesis global settings
# ---------------------------------------------------------------------------

settings.register_profile(
    "ci",
    max_examples=200,
    suppress_health_check=[HealthCheck.too_slow],
    deadline=None,
)
settings.register_profile(
    "dev",
    max_examples=50,
    suppress_health_check=[HealthCheck.too_slow],
    deadline=None,
)
settings.load_profile("dev")


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

T0 = UtcDatetime(value=datetime(2025, 8, 1, 12, 0, 0, tzinfo=UTC))
SELLER = PartyKey.from_seed("seller")
BUYER = PartyKey.from_seed("buyer")
NEW_BUYER = PartyKey.from_seed("new-buyer")
STRANGER = PartyKey.from_seed("stranger")


def make_record(**overrides: object) -> ContractRecord:
    """An Owned CALL on AAPL, strike 1000, margins 1000/1000, production mode."""
    seller = overrides.pop("seller", SELLER)
    underlying = overrides.pop("underlying", "AAPL")
    assert isinstance(seller, PartyKey) and isinstance(underlying, str)
    fields: dict[str, object] = {
        "contract_id": derive_contract_id(seller, underlying),
        "kind": OptionKind.CALL,
        "underlying": underlying,
        "seller": seller,
        "owner": BUYER,
        "initiation": T0,
        "expiry": T0.shifted(timedelta(days=30)),
        "status": ContractStatus.OWNED,
        "premium": 500,
        "strike": 1000,
        "initial_margin": 1000,
        "seller_margin": 1000,
        "buyer_margin": 1000,
        "last_settlement_at": T0,
        "last_settlement_ratio": 0,
        "is_test": False,
    }
    fields.update(overrides)
    return ContractRecord(**fields)  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------


def party_keys() -> SearchStrategy[PartyKey]:
    return st.binary(min_size=KEY_LENGTH, max_size=KEY_LENGTH).filter(
        lambda b: any(b),
    ).map(lambda b: PartyKey(value=b))


def prices(max_value: int = 10**12) -> SearchStrategy[int]:
    """Positive prices with 6 implied decimals."""
    return st.integers(min_value=1, max_value=max_value)


def u64s(min_value: int = 0) -> SearchStrategy[int]:
    return st.integers(min_value=min_value, max_value=U64_MAX)


def utc_datetimes() -> SearchStrategy[UtcDatetime]:
    return st.datetimes(
        min_value=datetime(2000, 1, 1),
        max_value=datetime(2100, 1, 1),
        timezones=st.just(UTC),
    ).map(lambda d: UtcDatetime(value=d).whole_seconds())


@st.composite
def contract_records(draw: st.DrawFn) -> ContractRecord:
    seller = draw(party_keys())
    underlying = draw(st.text(min_size=1, max_size=8).filter(lambda s: len(s.encode()) <= 32))
    initiation = draw(utc_datetimes())
    margin = draw(st.integers(min_value=1, max_value=10**15))
    status = draw(st.sampled_from(list(ContractStatus)))
    owned = status != ContractStatus.LISTED
    return ContractRecord(
        contract_id=derive_contract_id(seller, underlying),
        kind=draw(st.sampled_from(list(OptionKind))),
        underlying=underlying,
        seller=seller,
        owner=draw(party_keys()) if owned else None,
        initiation=initiation,
        expiry=initiation.shifted(timedelta(days=30)),
        status=status,
        premium=draw(u64s(1)),
        strike=draw(u64s(1)),
        initial_margin=margin,
        seller_margin=draw(st.integers(0, 2 * margin)) if owned else 0,
        buyer_margin=draw(st.integers(0, 2 * margin)) if owned else 0,
        last_settlement_at=draw(st.none() | utc_datetimes()),
        last_settlement_ratio=draw(u64s()),
        is_test=draw(st.booleans()),
    )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


class MutableClock:
    """Test clock: returns a fixed instant until moved."""

    def __init__(self, start: UtcDatetime = T0) -> None:
        self.now = start

    def __call__(self) -> UtcDatetime:
        return self.now

    def advance(self, delta: timedelta) -> UtcDatetime:
        self.now = self.now.shifted(delta)
        return self.now


@pytest.fixture
def clock() -> MutableClock:
    return MutableClock()


@pytest.fixture
def rail() -> CustodyLedger:
    return CustodyLedger()


@pytest.fixture
def store() -> InMemoryContractStore:
    return InMemoryContractStore()


@pytest.fixture
def history_log() -> InMemoryHistoryLog:
    return InMemoryHistoryLog()


@pytest.fixture
def desk(
    store: InMemoryContractStore,
    rail: CustodyLedger,
    history_log: InMemoryHistoryLog,
    clock: MutableClock,
) -> OptionDesk:
    d = OptionDesk(store, rail, history_log, clock=clock)
    for party in (SELLER, BUYER, NEW_BUYER, STRANGER):
        d.open_wallet(party, 100_000)
    return d


@pytest.fixture
def listed_contract(desk: OptionDesk) -> Callable[..., str]:
    """Factory: list a contract on the desk and return its id."""

    def _list(
        *,
        kind_tag: int = 0,
        underlying: str = "AAPL",
        premium: int = 500,
        strike: int = 1_000,
        initial_margin: int = 1_000,
        is_test: bool = False,
        seller: PartyKey = SELLER,
    ) -> str:
        result = desk.initialize_option(
            seller, kind_tag, underlying, desk.now(), premium, strike, initial_margin,
            is_test=is_test,
        )
        return result.unwrap().after.contract_id

    return _list

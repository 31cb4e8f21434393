"""Workflow data types for the settlement keeper.

Activity inputs and outputs carry only str/int/bool fields so they pass
through Temporal's default JSON payload converter unchanged. Outputs report
failures in an ``error`` / ``error_code`` pair instead of raising, so
expected domain rejections are never retried.

All types: @final @dataclass(frozen=True, slots=True).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import final

from settlor.infra.config import SECONDS_PER_DAY

# ---------------------------------------------------------------------------
# Workflow input / result
# ---------------------------------------------------------------------------


@final
@dataclass(frozen=True, slots=True)
class KeeperInput:
    """Which contract to keep settled, and for how long.

    The contract_id doubles as the Temporal workflow id, so only one keeper
    runs per contract.
    """

    contract_id: str
    symbol: str
    max_rounds: int = 30
    interval_seconds: int = SECONDS_PER_DAY
    # Price at workflow time instead of "latest"; fixture feeds and backfills.
    historical_prices: bool = False

    def __post_init__(self) -> None:
        if self.max_rounds <= 0:
            raise TypeError(f"KeeperInput.max_rounds must be > 0, got {self.max_rounds}")
        if self.interval_seconds <= 0:
            raise TypeError(
                f"KeeperInput.interval_seconds must be > 0, got {self.interval_seconds}"
            )


@final
@dataclass(frozen=True, slots=True)
class KeeperResult:
    contract_id: str
    rounds: int
    final_status: str
    stopped_reason: str  # "TERMINAL" | "EXPIRED" | "MAX_ROUNDS" | "FAILED"
    detail: str = ""


# ---------------------------------------------------------------------------
# Activity inputs / outputs
# ---------------------------------------------------------------------------


@final
@dataclass(frozen=True, slots=True)
class PriceFetchInput:
    symbol: str
    as_of_unix: int | None = None  # None = latest


@final
@dataclass(frozen=True, slots=True)
class PriceFetchOutput:
    asset_price: int = 0
    reference_price: int = 0
    error: str | None = None


@final
@dataclass(frozen=True, slots=True)
class SettleInput:
    contract_id: str
    asset_price: int
    reference_price: int


@final
@dataclass(frozen=True, slots=True)
class SettleOutput:
    contract_status: str = ""
    current_ratio: int = 0
    transferred: int = 0
    margin_called: bool = False
    error_code: str | None = None
    error: str | None = None


@final
@dataclass(frozen=True, slots=True)
class ExpireInput:
    contract_id: str


@final
@dataclass(frozen=True, slots=True)
class ExpireOutput:
    contract_status: str = ""
    error_code: str | None = None
    error: str | None = None

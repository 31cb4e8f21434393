"""Engine, price-feed and keeper configuration.

Pure configuration data. The 30-day expiry, the one-day settlement
interval and the 20% margin-call threshold live here as named fields so
they can be overridden (and tested) independently of the engine.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import timedelta
from typing import final

SECONDS_PER_DAY: int = 24 * 60 * 60

# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


@final
@dataclass(frozen=True, slots=True)
class EngineConfig:
    """Contract economics and timing rules."""

    expiry_period: timedelta = timedelta(days=30)
    settlement_interval: timedelta = timedelta(seconds=SECONDS_PER_DAY)
    margin_call_threshold_pct: int = 20
    ratio_scale: int = 10**9          # native-unit scaling of asset/ref ratios
    max_underlying_bytes: int = 32

    def __post_init__(self) -> None:
        if not 0 <= self.margin_call_threshold_pct <= 100:
            raise TypeError(
                "EngineConfig.margin_call_threshold_pct must be in [0, 100], "
                f"got {self.margin_call_threshold_pct}"
            )
        if self.ratio_scale <= 0:
            raise TypeError(f"EngineConfig.ratio_scale must be > 0, got {self.ratio_scale}")
        if self.expiry_period <= timedelta(0):
            raise TypeError("EngineConfig.expiry_period must be positive")


DEFAULT_ENGINE_CONFIG: EngineConfig = EngineConfig()


# ---------------------------------------------------------------------------
# Price feed
# ---------------------------------------------------------------------------

ALPHA_VANTAGE_KEY_ENV: str = "ALPHA_VANTAGE_API_KEY"


@final
@dataclass(frozen=True, slots=True)
class PriceFeedConfig:
    """HTTP price sources: CoinGecko for the reference coin, Alpha Vantage for equities."""

    coingecko_url: str = "https://api.coingecko.com/api/v3/simple/price"
    alpha_vantage_url: str = "https://www.alphavantage.co/query"
    reference_coin_id: str = "solana"
    reference_symbol: str = "SOL"
    quote_currency: str = "usd"
    user_agent: str = "settlor-price-feed/0.1"
    timeout_s: float = 10.0
    # api key: loaded from env var ALPHA_VANTAGE_API_KEY. NEVER in code.
    alpha_vantage_api_key: str = field(default="demo", repr=False)

    @staticmethod
    def from_env(environ: dict[str, str] | None = None) -> PriceFeedConfig:
        env = os.environ if environ is None else environ
        return PriceFeedConfig(alpha_vantage_api_key=env.get(ALPHA_VANTAGE_KEY_ENV, "demo"))


# ---------------------------------------------------------------------------
# Keeper (Temporal)
# ---------------------------------------------------------------------------


@final
@dataclass(frozen=True, slots=True)
class KeeperConfig:
    """Temporal connection for the settlement keeper worker."""

    target_host: str = "localhost:7233"
    namespace: str = "default"
    task_queue: str = "settlor-keeper"

"""Price feeds: where asset and reference-currency prices come from.

The settlement core only consumes integers with 6 implied decimals
(``$225.50 -> 225_500_000``). A PriceFeed supplies them either from
canned fixtures (FixturePriceFeed) or live HTTP sources (HttpPriceFeed:
CoinGecko for the reference coin, Alpha Vantage for equities).

Every feed method returns Ok[PriceQuote] | Err[PriceFeedError].
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_DOWN, Decimal, InvalidOperation
from typing import Protocol, final, runtime_checkable

import requests
from dateutil.parser import isoparse

from settlor.core.errors import ErrorCode, PriceFeedError
from settlor.core.fixed_point import U64_MAX
from settlor.core.result import Err, Ok
from settlor.core.types import UtcDatetime
from settlor.infra.config import PriceFeedConfig

logger = logging.getLogger(__name__)

PRICE_DECIMALS: int = 6
_PRICE_UNIT = Decimal(10) ** PRICE_DECIMALS


@final
@dataclass(frozen=True, slots=True)
class PriceQuote:
    """One price observation in micro-units (6 implied decimals)."""

    symbol: str
    price: int
    as_of: UtcDatetime


@final
@dataclass(frozen=True, slots=True)
class PriceObservation:
    """The two independent inputs of a settlement."""

    asset: PriceQuote
    reference: PriceQuote


def to_fixed_point(raw: Decimal | str | float) -> Ok[int] | Err[str]:
    """Convert a decimal price to micro-units, truncating extra digits.

    Floats go through repr so 225.5 becomes exactly 225_500_000.
    """
    try:
        value = Decimal(repr(raw)) if isinstance(raw, float) else Decimal(raw)
    except (InvalidOperation, ValueError):
        return Err(f"price is not a number: {raw!r}")
    if not value.is_finite() or value <= 0:
        return Err(f"price must be positive and finite, got {raw!r}")
    micros = int((value * _PRICE_UNIT).to_integral_value(rounding=ROUND_DOWN))
    if micros <= 0:
        return Err(f"price rounds to zero micro-units: {raw!r}")
    if micros > U64_MAX:
        return Err(f"price exceeds u64 range: {raw!r}")
    return Ok(micros)


def _feed_err(message: str, instrument: str, timestamp: UtcDatetime, source: str) -> Err[PriceFeedError]:
    return Err(PriceFeedError(
        message=message,
        code=ErrorCode.PRICE_UNAVAILABLE,
        timestamp=timestamp,
        source=source,
        instrument=instrument,
    ))


@runtime_checkable
class PriceFeed(Protocol):
    """Source of asset and reference-currency prices.

    as_of=None means "latest". Implementations may ignore as_of when they
    only serve live prices.
    """

    def asset_price(
        self, symbol: str, as_of: UtcDatetime | None = None,
    ) -> Ok[PriceQuote] | Err[PriceFeedError]: ...

    def reference_price(
        self, as_of: UtcDatetime | None = None,
    ) -> Ok[PriceQuote] | Err[PriceFeedError]: ...


def observe(
    feed: PriceFeed, symbol: str, as_of: UtcDatetime | None = None,
) -> Ok[PriceObservation] | Err[PriceFeedError]:
    """Fetch both settlement inputs. Either failure aborts."""
    match feed.asset_price(symbol, as_of):
        case Err(e):
            return Err(e)
        case Ok(asset):
            pass
    match feed.reference_price(as_of):
        case Err(e):
            return Err(e)
        case Ok(reference):
            pass
    return Ok(PriceObservation(asset=asset, reference=reference))


# ---------------------------------------------------------------------------
# Fixture feed
# ---------------------------------------------------------------------------

# Simulated AAPL and SOL closes, August-September 2025 (USD).
MOCK_AAPL_PRICES: dict[str, str] = {
    "2025-08-01": "225.50",
    "2025-08-05": "228.75",
    "2025-08-10": "223.25",
    "2025-08-15": "230.50",
    "2025-08-20": "235.00",
    "2025-08-25": "232.50",
    "2025-08-30": "238.75",
    "2025-09-01": "240.00",
}
MOCK_SOL_PRICES: dict[str, str] = {
    "2025-08-01": "150.00",
    "2025-08-05": "152.50",
    "2025-08-10": "148.00",
    "2025-08-15": "155.00",
    "2025-08-20": "160.00",
    "2025-08-25": "157.50",
    "2025-08-30": "162.00",
    "2025-09-01": "165.00",
}


@final
class FixturePriceFeed:
    """Canned prices keyed by calendar date, with a per-symbol default.

    Dates without an entry fall back to the default, mirroring a mock
    oracle that always answers.
    """

    def __init__(
        self,
        asset_tables: Mapping[str, Mapping[date, int]],
        reference_table: Mapping[date, int],
        *,
        asset_defaults: Mapping[str, int] | None = None,
        reference_default: int | None = None,
        reference_symbol: str = "SOL",
    ) -> None:
        self._assets = {s: dict(t) for s, t in asset_tables.items()}
        self._reference = dict(reference_table)
        self._asset_defaults = dict(asset_defaults or {})
        self._reference_default = reference_default
        self._reference_symbol = reference_symbol

    @staticmethod
    def from_decimal_tables(
        asset_tables: Mapping[str, Mapping[str, str]],
        reference_table: Mapping[str, str],
        *,
        asset_defaults: Mapping[str, str] | None = None,
        reference_default: str | None = None,
        reference_symbol: str = "SOL",
    ) -> Ok[FixturePriceFeed] | Err[str]:
        """Build from ISO-date -> decimal-string tables."""

        def convert(table: Mapping[str, str]) -> Ok[dict[date, int]] | Err[str]:
            out: dict[date, int] = {}
            for key, raw in table.items():
                try:
                    day = isoparse(key).date()
                except ValueError:
                    return Err(f"fixture date is not ISO-8601: '{key}'")
                match to_fixed_point(raw):
                    case Err(e):
                        return Err(f"{key}: {e}")
                    case Ok(micros):
                        out[day] = micros
            return Ok(out)

        assets: dict[str, dict[date, int]] = {}
        for symbol, table in asset_tables.items():
            match convert(table):
                case Err(e):
                    return Err(f"{symbol}: {e}")
                case Ok(converted):
                    assets[symbol] = converted
        match convert(reference_table):
            case Err(e):
                return Err(f"{reference_symbol}: {e}")
            case Ok(reference):
                pass

        defaults: dict[str, int] = {}
        for symbol, raw in (asset_defaults or {}).items():
            match to_fixed_point(raw):
                case Err(e):
                    return Err(f"{symbol} default: {e}")
                case Ok(micros):
                    defaults[symbol] = micros
        ref_default: int | None = None
        if reference_default is not None:
            match to_fixed_point(reference_default):
                case Err(e):
                    return Err(f"{reference_symbol} default: {e}")
                case Ok(micros):
                    ref_default = micros

        return Ok(FixturePriceFeed(
            assets, reference,
            asset_defaults=defaults,
            reference_default=ref_default,
            reference_symbol=reference_symbol,
        ))

    @staticmethod
    def aapl_sol_august_2025() -> FixturePriceFeed:
        """AAPL priced in SOL over August 2025; defaults to the Aug 1 prices."""
        match FixturePriceFeed.from_decimal_tables(
            {"AAPL": MOCK_AAPL_PRICES},
            MOCK_SOL_PRICES,
            asset_defaults={"AAPL": "225.50"},
            reference_default="150.00",
        ):
            case Ok(feed):
                return feed
            case Err(e):
                raise RuntimeError(f"built-in fixture tables are invalid: {e}")

    def asset_price(
        self, symbol: str, as_of: UtcDatetime | None = None,
    ) -> Ok[PriceQuote] | Err[PriceFeedError]:
        when = as_of or UtcDatetime.now()
        table = self._assets.get(symbol, {})
        price = table.get(when.value.date(), self._asset_defaults.get(symbol))
        if price is None:
            return _feed_err(
                f"No fixture price for {symbol} on {when.value.date().isoformat()}",
                symbol, when, "oracle.feed.FixturePriceFeed.asset_price",
            )
        return Ok(PriceQuote(symbol=symbol, price=price, as_of=when))

    def reference_price(
        self, as_of: UtcDatetime | None = None,
    ) -> Ok[PriceQuote] | Err[PriceFeedError]:
        when = as_of or UtcDatetime.now()
        price = self._reference.get(when.value.date(), self._reference_default)
        if price is None:
            return _feed_err(
                f"No fixture price for {self._reference_symbol} on {when.value.date().isoformat()}",
                self._reference_symbol, when, "oracle.feed.FixturePriceFeed.reference_price",
            )
        return Ok(PriceQuote(symbol=self._reference_symbol, price=price, as_of=when))


# ---------------------------------------------------------------------------
# HTTP feed
# ---------------------------------------------------------------------------


@final
class HttpPriceFeed:
    """Live and historical prices over HTTP.

    Reference coin: CoinGecko ``simple/price`` (latest) or
    ``coins/{id}/history`` (a given day).
    Equities: Alpha Vantage ``GLOBAL_QUOTE`` (latest) or
    ``TIME_SERIES_DAILY`` close (a given day).
    """

    def __init__(
        self,
        config: PriceFeedConfig | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self._config = config or PriceFeedConfig.from_env()
        self._session = session or requests.Session()
        self._session.headers.update({"User-Agent": self._config.user_agent})

    def _get_json(
        self, url: str, params: dict[str, str], instrument: str, source: str,
    ) -> Ok[dict[str, object]] | Err[PriceFeedError]:
        try:
            response = self._session.get(url, params=params, timeout=self._config.timeout_s)
            response.raise_for_status()
            payload = response.json()
        except requests.RequestException as e:
            logger.warning("Price request for %s failed: %s", instrument, e)
            return _feed_err(f"request failed: {e}", instrument, UtcDatetime.now(), source)
        except ValueError as e:
            return _feed_err(f"response is not JSON: {e}", instrument, UtcDatetime.now(), source)
        if not isinstance(payload, dict):
            return _feed_err("unexpected response shape", instrument, UtcDatetime.now(), source)
        return Ok(payload)

    def _quote(
        self, symbol: str, raw: object, as_of: UtcDatetime, source: str,
    ) -> Ok[PriceQuote] | Err[PriceFeedError]:
        if raw is None:
            return _feed_err(
                f"Failed to parse {symbol} price. Check API key or rate limits.",
                symbol, as_of, source,
            )
        match to_fixed_point(raw if isinstance(raw, (str, float)) else str(raw)):
            case Err(e):
                return _feed_err(f"{symbol}: {e}", symbol, as_of, source)
            case Ok(micros):
                logger.debug("%s price %d micro-units as of %s", symbol, micros, as_of.value)
                return Ok(PriceQuote(symbol=symbol, price=micros, as_of=as_of))

    def reference_price(
        self, as_of: UtcDatetime | None = None,
    ) -> Ok[PriceQuote] | Err[PriceFeedError]:
        cfg = self._config
        source = "oracle.feed.HttpPriceFeed.reference_price"
        if as_of is None:
            match self._get_json(
                cfg.coingecko_url,
                {"ids": cfg.reference_coin_id, "vs_currencies": cfg.quote_currency},
                cfg.reference_symbol, source,
            ):
                case Err(e):
                    return Err(e)
                case Ok(payload):
                    pass
            coin = payload.get(cfg.reference_coin_id)
            raw = coin.get(cfg.quote_currency) if isinstance(coin, dict) else None
            return self._quote(cfg.reference_symbol, raw, UtcDatetime.now(), source)

        history_url = cfg.coingecko_url.replace(
            "simple/price", f"coins/{cfg.reference_coin_id}/history",
        )
        match self._get_json(
            history_url,
            {"date": as_of.value.strftime("%d-%m-%Y"), "localization": "false"},
            cfg.reference_symbol, source,
        ):
            case Err(e):
                return Err(e)
            case Ok(payload):
                pass
        market = payload.get("market_data")
        prices = market.get("current_price") if isinstance(market, dict) else None
        raw = prices.get(cfg.quote_currency) if isinstance(prices, dict) else None
        return self._quote(cfg.reference_symbol, raw, as_of, source)

    def asset_price(
        self, symbol: str, as_of: UtcDatetime | None = None,
    ) -> Ok[PriceQuote] | Err[PriceFeedError]:
        cfg = self._config
        source = "oracle.feed.HttpPriceFeed.asset_price"
        if as_of is None:
            match self._get_json(
                cfg.alpha_vantage_url,
                {"function": "GLOBAL_QUOTE", "symbol": symbol, "apikey": cfg.alpha_vantage_api_key},
                symbol, source,
            ):
                case Err(e):
                    return Err(e)
                case Ok(payload):
                    pass
            quote = payload.get("Global Quote")
            raw = quote.get("05. price") if isinstance(quote, dict) else None
            return self._quote(symbol, raw, UtcDatetime.now(), source)

        match self._get_json(
            cfg.alpha_vantage_url,
            {"function": "TIME_SERIES_DAILY", "symbol": symbol, "apikey": cfg.alpha_vantage_api_key},
            symbol, source,
        ):
            case Err(e):
                return Err(e)
            case Ok(payload):
                pass
        series = payload.get("Time Series (Daily)")
        day = series.get(as_of.value.date().isoformat()) if isinstance(series, dict) else None
        raw = day.get("4. close") if isinstance(day, dict) else None
        if raw is None:
            return _feed_err(
                f"Failed to get historical price for {symbol} on {as_of.value.date().isoformat()}",
                symbol, as_of, source,
            )
        return self._quote(symbol, raw, as_of, source)

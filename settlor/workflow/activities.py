"""Activity implementations for the settlement keeper.

Activities are thin IO wrappers bound to one OptionDesk and one PriceFeed.
All settlement logic lives in the pure ledger layer behind the desk.

Each activity:
- Is a method decorated with @activity.defn
- Takes a single frozen-dataclass input
- Returns a frozen-dataclass output (with optional error field)
- Is safe to retry: settlement is rate-limited by the stored timestamp and
  rail batches are idempotent by batch_id
- Runs blocking work in a thread; desk calls hold one lock, so the
  in-memory adapters see one operation at a time
"""

from __future__ import annotations

import asyncio
import threading
from collections.abc import Callable
from typing import final

from temporalio import activity

from settlor.core.errors import ErrorCode
from settlor.core.result import Err, Ok
from settlor.core.types import UtcDatetime
from settlor.ledger.settlement import SettlementReport
from settlor.oracle.feed import PriceFeed, observe
from settlor.orchestration.desk import OptionDesk
from settlor.workflow.types import (
    ExpireInput,
    ExpireOutput,
    PriceFetchInput,
    PriceFetchOutput,
    SettleInput,
    SettleOutput,
)


@final
class KeeperActivities:
    """Keeper activities over a shared desk and feed."""

    def __init__(self, desk: OptionDesk, feed: PriceFeed) -> None:
        self._desk = desk
        self._feed = feed
        self._desk_lock = threading.Lock()

    def _on_desk[T](self, operation: Callable[..., T], *args: object) -> T:
        with self._desk_lock:
            return operation(*args)

    @activity.defn(name="fetch_prices")
    async def fetch_prices(self, inp: PriceFetchInput) -> PriceFetchOutput:
        """Asset and reference prices for one symbol.

        Timeout: 30s | Retries: 3 on faults (a missing price is returned and skips the round)
        Runs the feed in a thread: HTTP feeds block.
        """
        as_of = None if inp.as_of_unix is None else UtcDatetime.from_unix_seconds(inp.as_of_unix)
        activity.logger.info("Fetching prices for %s", inp.symbol)
        result = await asyncio.to_thread(observe, self._feed, inp.symbol, as_of)
        match result:
            case Err(e):
                return PriceFetchOutput(error=e.message)
            case Ok(obs):
                return PriceFetchOutput(
                    asset_price=obs.asset.price, reference_price=obs.reference.price,
                )

    @activity.defn(name="settle_contract")
    async def settle_contract(self, inp: SettleInput) -> SettleOutput:
        """One daily settlement.

        Timeout: 30s | Retries: 1 (a rejection is an answer, not a fault)
        """
        activity.logger.info("Settling %s", inp.contract_id)
        result = await asyncio.to_thread(
            self._on_desk, self._desk.daily_settlement,
            inp.contract_id, inp.asset_price, inp.reference_price,
        )
        match result:
            case Err(e):
                status = ""
                if e.code == ErrorCode.OPTION_NOT_OWNED:
                    # tells a finished contract apart from one never bought
                    current = await asyncio.to_thread(
                        self._on_desk, self._desk.get_contract, inp.contract_id,
                    )
                    if isinstance(current, Ok):
                        status = current.value.status.value
                return SettleOutput(contract_status=status, error_code=e.code.value, error=e.message)
            case Ok(transition):
                pass
        report = transition.report
        assert isinstance(report, SettlementReport)
        return SettleOutput(
            contract_status=transition.after.status.value,
            current_ratio=report.current_ratio,
            transferred=report.transferred,
            margin_called=report.margin_called,
        )

    @activity.defn(name="expire_contract")
    async def expire_contract(self, inp: ExpireInput) -> ExpireOutput:
        """Mark a contract past its expiry as Expired.

        Timeout: 30s | Retries: 1
        """
        activity.logger.info("Expiring %s", inp.contract_id)
        result = await asyncio.to_thread(self._on_desk, self._desk.expire_option, inp.contract_id)
        match result:
            case Err(e):
                return ExpireOutput(error_code=e.code.value, error=e.message)
            case Ok(transition):
                return ExpireOutput(contract_status=transition.after.status.value)

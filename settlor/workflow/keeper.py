"""Durable settlement keeper for one contract.

Loop: fetch prices -> settle -> sleep(interval), until the contract reaches
a terminal status, its expiry passes (then expire it), or max_rounds is hit.
Settlement is permissionless, so the keeper needs no party identity.

Determinism contract: this module contains NO I/O, NO randomness,
NO system clock access (uses workflow.now()), NO mutable globals.
All external interaction is delegated to Activities.
"""

from __future__ import annotations

from datetime import timedelta

from temporalio import workflow
from temporalio.common import RetryPolicy

with workflow.unsafe.imports_passed_through():
    from settlor.contract.types import TERMINAL_STATUSES
    from settlor.core.errors import ErrorCode
    from settlor.workflow.activities import KeeperActivities
    from settlor.workflow.types import (
        ExpireInput,
        KeeperInput,
        KeeperResult,
        PriceFetchInput,
        SettleInput,
    )

ACTIVITY_TIMEOUT: timedelta = timedelta(seconds=30)

PRICE_RETRY = RetryPolicy(
    initial_interval=timedelta(seconds=2),
    backoff_coefficient=2.0,
    maximum_interval=timedelta(seconds=30),
    maximum_attempts=3,
)

SETTLE_RETRY = RetryPolicy(maximum_attempts=1)

_TERMINAL_VALUES: frozenset[str] = frozenset(s.value for s in TERMINAL_STATUSES)

# Rejections after which another round cannot succeed.
_FATAL_CODES: frozenset[str] = frozenset({
    ErrorCode.CONTRACT_NOT_FOUND.value,
    ErrorCode.OPTION_NOT_OWNED.value,
    ErrorCode.INVALID_PRICE.value,
    ErrorCode.CALCULATION_OVERFLOW.value,
})


@workflow.defn(name="SettlementKeeper")
class SettlementKeeperWorkflow:
    """Keeps one contract marked to market until it can no longer settle.

    Invariants maintained:
    - Terminates: at most max_rounds settlement attempts
    - A contract past expiry is expired, never settled
    - All activity inputs/outputs are frozen dataclasses
    """

    def __init__(self) -> None:
        self._status: str = "STARTING"
        self._rounds: int = 0
        self._contract_status: str = ""

    @workflow.query
    def get_status(self) -> str:
        """Current keeper phase."""
        return self._status

    @workflow.query
    def get_rounds(self) -> int:
        return self._rounds

    @workflow.run
    async def run(self, inp: KeeperInput) -> KeeperResult:
        interval = timedelta(seconds=inp.interval_seconds)

        while self._rounds < inp.max_rounds:
            self._rounds += 1

            self._status = "FETCHING_PRICES"
            as_of = int(workflow.now().timestamp()) if inp.historical_prices else None
            prices = await workflow.execute_activity_method(
                KeeperActivities.fetch_prices,
                PriceFetchInput(symbol=inp.symbol, as_of_unix=as_of),
                start_to_close_timeout=ACTIVITY_TIMEOUT,
                retry_policy=PRICE_RETRY,
            )
            if prices.error is not None:
                workflow.logger.warning("Round %d skipped: %s", self._rounds, prices.error)
            else:
                self._status = "SETTLING"
                settled = await workflow.execute_activity_method(
                    KeeperActivities.settle_contract,
                    SettleInput(
                        contract_id=inp.contract_id,
                        asset_price=prices.asset_price,
                        reference_price=prices.reference_price,
                    ),
                    start_to_close_timeout=ACTIVITY_TIMEOUT,
                    retry_policy=SETTLE_RETRY,
                )
                if settled.error_code == ErrorCode.OPTION_EXPIRED.value:
                    return await self._expire(inp)
                if (
                    settled.error_code == ErrorCode.OPTION_NOT_OWNED.value
                    and settled.contract_status in _TERMINAL_VALUES
                ):
                    # finished before or between rounds
                    self._status = "COMPLETED"
                    return KeeperResult(
                        contract_id=inp.contract_id,
                        rounds=self._rounds,
                        final_status=settled.contract_status,
                        stopped_reason="TERMINAL",
                    )
                if settled.error_code in _FATAL_CODES:
                    self._status = "FAILED"
                    return KeeperResult(
                        contract_id=inp.contract_id,
                        rounds=self._rounds,
                        final_status=self._contract_status,
                        stopped_reason="FAILED",
                        detail=f"{settled.error_code}: {settled.error}",
                    )
                if settled.error_code is None:
                    self._contract_status = settled.contract_status
                    if settled.contract_status in _TERMINAL_VALUES:
                        self._status = "COMPLETED"
                        return KeeperResult(
                            contract_id=inp.contract_id,
                            rounds=self._rounds,
                            final_status=settled.contract_status,
                            stopped_reason="TERMINAL",
                        )
                else:
                    workflow.logger.info(
                        "Round %d not settled: %s", self._rounds, settled.error_code,
                    )

            if self._rounds < inp.max_rounds:
                self._status = "SLEEPING"
                await workflow.sleep(interval)

        self._status = "COMPLETED"
        return KeeperResult(
            contract_id=inp.contract_id,
            rounds=self._rounds,
            final_status=self._contract_status,
            stopped_reason="MAX_ROUNDS",
        )

    async def _expire(self, inp: KeeperInput) -> KeeperResult:
        self._status = "EXPIRING"
        expired = await workflow.execute_activity_method(
            KeeperActivities.expire_contract,
            ExpireInput(contract_id=inp.contract_id),
            start_to_close_timeout=ACTIVITY_TIMEOUT,
            retry_policy=SETTLE_RETRY,
        )
        self._status = "COMPLETED"
        if expired.error_code is not None:
            return KeeperResult(
                contract_id=inp.contract_id,
                rounds=self._rounds,
                final_status=self._contract_status,
                stopped_reason="FAILED",
                detail=f"{expired.error_code}: {expired.error}",
            )
        return KeeperResult(
            contract_id=inp.contract_id,
            rounds=self._rounds,
            final_status=expired.contract_status,
            stopped_reason="EXPIRED",
        )

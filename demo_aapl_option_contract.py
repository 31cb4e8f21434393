"""
demo_aapl_option_contract.py -- A walkthrough of one margined AAPL call, priced in SOL.

This file runs a complete contract lifecycle against the in-memory store, the
custody ledger and the August 2025 fixture prices:

  1. A seller lists a 30-day CALL on AAPL (strike 1.5 SOL per share)
  2. A buyer purchases it: premium to the seller, both margins into custody
  3. Daily settlements on Aug 5, 10 and 15 move margin with the AAPL/SOL ratio
  4. The buyer resells the position on Aug 18
  5. More settlements, then the new owner exercises on Sep 1

All amounts are in lamports (10^9 per SOL). Ratios use the same scale:
AAPL $225.50 / SOL $150.00 -> 1_503_333_333.

Run this:  python demo_aapl_option_contract.py
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime

from settlor.core.party import PartyKey
from settlor.core.result import unwrap
from settlor.core.types import UtcDatetime
from settlor.infra.memory_adapter import InMemoryContractStore, InMemoryHistoryLog
from settlor.ledger.engine import CustodyLedger
from settlor.ledger.exercise import ExerciseReport
from settlor.ledger.settlement import SettlementReport
from settlor.oracle.feed import FixturePriceFeed
from settlor.orchestration.desk import OptionDesk

LAMPORTS_PER_SOL = 1_000_000_000


def sep(title: str) -> None:
    """Print a section separator."""
    print(f"\n{'=' * 72}")
    print(f"  {title}")
    print(f"{'=' * 72}\n")


def sol(lamports: int) -> str:
    return f"{lamports / LAMPORTS_PER_SOL:.6f} SOL"


class ScenarioClock:
    """A clock the walkthrough moves forward by hand."""

    def __init__(self, start: datetime) -> None:
        self._now = UtcDatetime(value=start)

    def __call__(self) -> UtcDatetime:
        return self._now

    def set(self, day: str) -> UtcDatetime:
        self._now = UtcDatetime(value=datetime.fromisoformat(day).replace(hour=12, tzinfo=UTC))
        return self._now


logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

clock = ScenarioClock(datetime(2025, 8, 1, 12, tzinfo=UTC))
rail = CustodyLedger()
desk = OptionDesk(InMemoryContractStore(), rail, InMemoryHistoryLog(), clock=clock)
feed = FixturePriceFeed.aapl_sol_august_2025()

seller = PartyKey.from_seed("seller")
buyer = PartyKey.from_seed("buyer")
new_buyer = PartyKey.from_seed("new-buyer")

for party, deposit in ((seller, 5), (buyer, 10), (new_buyer, 10)):
    unwrap(desk.open_wallet(party, deposit * LAMPORTS_PER_SOL))


# ---------------------------------------------------------------------------
sep("1. Listing")
# ---------------------------------------------------------------------------
# is_test=True lets the contract start on a past date (Aug 1 2025) and skips
# the once-per-day settlement limit, exactly as the historical replay needs.

listed = unwrap(desk.initialize_option(
    seller,
    kind_tag=0,
    underlying="AAPL",
    initiation=UtcDatetime(value=datetime(2025, 8, 1, tzinfo=UTC)),
    premium=2 * LAMPORTS_PER_SOL,
    strike=1_500_000_000,
    initial_margin=1 * LAMPORTS_PER_SOL,
    is_test=True,
)).after
contract_id = listed.contract_id

print(f"  Contract:    {contract_id[:16]}...")
print(f"  Kind:        {listed.kind.name} on {listed.underlying}")
print(f"  Strike:      {sol(listed.strike)} per share")
print(f"  Premium:     {sol(listed.premium)}")
print(f"  Margin:      {sol(listed.initial_margin)} per side")
print(f"  Expiry:      {listed.expiry.value.date()}")
print(f"  Status:      {listed.status.value}")


# ---------------------------------------------------------------------------
sep("2. Purchase")
# ---------------------------------------------------------------------------

owned = unwrap(desk.purchase_option(contract_id, buyer)).after
print(f"  Owner:       {owned.owner}")
print(f"  Custody:     {sol(desk.custody_balance(contract_id))}")
print(f"  Seller:      {sol(desk.balance_of(seller))} (premium in, margin out)")
print(f"  Buyer:       {sol(desk.balance_of(buyer))}")


# ---------------------------------------------------------------------------
sep("3. Daily settlements")
# ---------------------------------------------------------------------------


def settle(day: str) -> None:
    as_of = clock.set(day)
    transition = unwrap(desk.settle_from_feed(contract_id, feed, as_of))
    report = transition.report
    assert isinstance(report, SettlementReport)
    print(
        f"  {day}  ratio {report.reference_ratio:>13,} -> {report.current_ratio:>13,}"
        f"  buyer {sol(report.record.buyer_margin)}  seller {sol(report.record.seller_margin)}"
        f"  {report.record.status.value}"
    )


for day in ("2025-08-05", "2025-08-10", "2025-08-15"):
    settle(day)


# ---------------------------------------------------------------------------
sep("4. Resale")
# ---------------------------------------------------------------------------
# The new buyer pays 2.5 SOL and deposits the current buyer margin; the old
# buyer gets the same amount back out of custody. Custody does not change.

clock.set("2025-08-18")
custody_before = desk.custody_balance(contract_id)
resold = unwrap(desk.resell_option(contract_id, buyer, new_buyer, 5 * LAMPORTS_PER_SOL // 2)).after
print(f"  New owner:   {resold.owner}")
print(f"  Custody:     {sol(custody_before)} -> {sol(desk.custody_balance(contract_id))}")
print(f"  Old buyer:   {sol(desk.balance_of(buyer))}")
print(f"  New buyer:   {sol(desk.balance_of(new_buyer))}")

for day in ("2025-08-20", "2025-08-25", "2025-08-30"):
    settle(day)


# ---------------------------------------------------------------------------
sep("5. Exercise")
# ---------------------------------------------------------------------------

clock.set("2025-09-01")
aapl = unwrap(feed.asset_price("AAPL", clock())).price
sol_usd = unwrap(feed.reference_price(clock())).price
exercised = unwrap(desk.exercise_option(contract_id, new_buyer, aapl, sol_usd))
report = exercised.report
assert isinstance(report, ExerciseReport)
print(f"  Final ratio: {report.final_ratio:,}")
print(f"  Strike:      {report.strike:,}")
print(f"  Payoff:      {sol(report.payoff)}")
print(f"  Status:      {exercised.after.status.value}")


# ---------------------------------------------------------------------------
sep("History")
# ---------------------------------------------------------------------------

summary = unwrap(desk.summary(contract_id))
print(f"  Operations:          {summary.total}")
print(f"  Settlements:         {summary.settlements}")
print(f"  Ownership transfers: {summary.ownership_transfers}")
print(f"  Margin calls:        {summary.margin_calls}")

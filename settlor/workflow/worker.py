"""Worker configuration for the settlement keeper.

Starts a Temporal worker with the keeper workflow and the activities of one
KeeperActivities instance registered on the keeper task queue.

Usage::

    import asyncio
    from settlor.workflow.worker import run_worker

    asyncio.run(run_worker(desk, HttpPriceFeed()))
"""

from __future__ import annotations

from temporalio.client import Client
from temporalio.worker import Worker

from settlor.infra.config import KeeperConfig
from settlor.oracle.feed import PriceFeed
from settlor.orchestration.desk import OptionDesk
from settlor.workflow.activities import KeeperActivities
from settlor.workflow.keeper import SettlementKeeperWorkflow


def build_worker(
    client: Client, desk: OptionDesk, feed: PriceFeed, task_queue: str,
) -> Worker:
    activities = KeeperActivities(desk, feed)
    return Worker(
        client,
        task_queue=task_queue,
        workflows=[SettlementKeeperWorkflow],
        activities=[
            activities.fetch_prices,
            activities.settle_contract,
            activities.expire_contract,
        ],
    )


async def run_worker(
    desk: OptionDesk, feed: PriceFeed, config: KeeperConfig | None = None,
) -> None:
    """Connect to Temporal and run the worker until interrupted."""
    cfg = config or KeeperConfig()
    client = await Client.connect(cfg.target_host, namespace=cfg.namespace)
    worker = build_worker(client, desk, feed, cfg.task_queue)
    await worker.run()

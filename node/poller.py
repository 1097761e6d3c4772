"""
Drives the pending tracker's recheck and new-block ticks
"""

import asyncio
from typing import List, Optional

from config.config import BLOCK_POLL_INTERVAL, RECHECK_INTERVAL, shutdown_event as default_shutdown_event
from ledger.query import LedgerQuery
from log_utils import get_logger
from tracker.pending_tracker import PendingTracker

logger = get_logger(__name__)


class TrackerPoller:
    """Runs reconcile_pending on an interval and resubmit_pending on new blocks"""

    def __init__(
        self,
        tracker: PendingTracker,
        query: LedgerQuery,
        recheck_interval: float = RECHECK_INTERVAL,
        block_poll_interval: float = BLOCK_POLL_INTERVAL,
        shutdown_event: Optional[asyncio.Event] = None,
    ):
        self.tracker = tracker
        self.query = query
        self.recheck_interval = recheck_interval
        self.block_poll_interval = block_poll_interval
        self.shutdown_event = shutdown_event or default_shutdown_event
        self.latest_block_number: Optional[int] = None
        self.tasks: List[asyncio.Task] = []

    async def poll_block(self) -> bool:
        """Resubmit pending transactions if the chain has advanced; True if it did"""
        block_number = await self.query.get_block_number()
        if self.latest_block_number is not None and block_number <= self.latest_block_number:
            return False
        self.latest_block_number = block_number
        logger.with_context(block_number=block_number).debug("New block observed")
        await self.tracker.resubmit_pending(block_number)
        return True

    async def _run_every(self, interval: float, tick, name: str):
        while not self.shutdown_event.is_set():
            try:
                await tick()
            except Exception as e:
                logger.error(f"{name} tick failed: {e}", exc_info=True)
            try:
                await asyncio.wait_for(self.shutdown_event.wait(), timeout=interval)
            except asyncio.TimeoutError:
                continue
        logger.info(f"{name} loop stopped")

    def start(self) -> None:
        if self.tasks:
            return
        self.tasks = [
            asyncio.create_task(self._run_every(self.recheck_interval, self.tracker.reconcile_pending, "recheck")),
            asyncio.create_task(self._run_every(self.block_poll_interval, self.poll_block, "block")),
        ]
        logger.info(
            f"Tracker poller started (recheck every {self.recheck_interval}s, "
            f"block poll every {self.block_poll_interval}s)"
        )

    async def run(self) -> None:
        """Run until the shutdown event is set"""
        self.start()
        await asyncio.gather(*self.tasks)

    async def stop(self) -> None:
        self.shutdown_event.set()
        for task in self.tasks:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self.tasks = []
        logger.info("Tracker poller stopped")

"""Background recovery of withdrawals left pending."""

import asyncio
import logging
from typing import Callable, Iterable, List, Optional

from core.errors import BridgeError
from core.types import Asset, WithdrawalState
from withdrawal.coordinator import WithdrawalCoordinator, WithdrawalFlow

logger = logging.getLogger(__name__)


class PendingWithdrawalMonitor:
    """Periodically retries ``recover()`` for each configured asset.

    A withdrawal whose signature did not arrive in time stays on-chain as a
    signed-later receipt; this monitor picks it up and finalizes it.
    """

    def __init__(
        self,
        coordinator_factory: Callable[[Asset], WithdrawalCoordinator],
        assets: Iterable[Asset],
        poll_interval: int = 60,
        on_finalized: Callable[[WithdrawalFlow], None] = None,
    ):
        """Initialize the monitor.

        Args:
            coordinator_factory: Builds a fresh coordinator for an asset
            assets: Assets to check for pending withdrawals
            poll_interval: Seconds between checks
            on_finalized: Callback for recovered and finalized withdrawals
        """
        self.coordinator_factory = coordinator_factory
        self.assets: List[Asset] = list(assets)
        self.poll_interval = poll_interval
        self.on_finalized = on_finalized

        self.running = False
        self._task: Optional[asyncio.Task] = None

        logger.info(
            f"Initialized pending withdrawal monitor "
            f"(assets={[a.symbol for a in self.assets]}, poll_interval={poll_interval}s)"
        )

    async def start(self) -> None:
        """Start monitoring."""
        logger.info("Starting pending withdrawal monitor...")
        self.running = True
        self._task = asyncio.create_task(self._monitor_loop())

    async def stop(self) -> None:
        """Stop monitoring."""
        logger.info("Stopping pending withdrawal monitor...")
        self.running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    async def _monitor_loop(self) -> None:
        while self.running:
            try:
                await self.check_pending()
            except Exception as e:
                logger.error(f"Error in monitoring loop: {e}", exc_info=True)

            await asyncio.sleep(self.poll_interval)

    async def check_pending(self) -> List[WithdrawalFlow]:
        """Try to finalize a pending withdrawal for every asset.

        Returns:
            Flows finalized during this check
        """
        finalized = []
        for asset in self.assets:
            coordinator = self.coordinator_factory(asset)
            try:
                flow = await coordinator.recover()
            except BridgeError as e:
                logger.error(f"Recovery of pending {asset.symbol} withdrawal failed: {e}")
                continue

            if flow is None or flow.state != WithdrawalState.FINALIZED:
                continue

            logger.info(f"Recovered {asset.symbol} withdrawal nonce {flow.nonce}")
            finalized.append(flow)
            await self._notify(flow)

        return finalized

    async def _notify(self, flow: WithdrawalFlow) -> None:
        if not self.on_finalized:
            return
        try:
            if asyncio.iscoroutinefunction(self.on_finalized):
                await self.on_finalized(flow)
            else:
                self.on_finalized(flow)
        except Exception as e:
            logger.error(f"Error in withdrawal callback: {e}", exc_info=True)

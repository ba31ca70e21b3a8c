"""
Transaction confirmation polling.

Kupo has no push notifications, so confirmation is detected by polling
for the transaction's unspent outputs.
"""

import asyncio
from enum import Enum
from typing import Optional

import structlog

from kupmios.provider.indexer import IndexerClient

logger = structlog.get_logger(__name__)


class PollerState(str, Enum):
    """Confirmation poller states."""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    STOPPED = "stopped"


class ConfirmationPoller:
    """
    Polls the indexer until a transaction's outputs show up as unspent.

    The first poll happens one interval after ``wait`` starts. Once outputs
    are seen polling ends, and confirmation is reported after the settle
    delay. ``stop`` and the optional timeout end an unconfirmed wait but
    never cut short the settle delay of a confirmed one.
    """

    def __init__(
        self,
        indexer: IndexerClient,
        tx_hash: str,
        interval: float = 3.0,
        settle_delay: float = 1.0,
    ):
        self.indexer = indexer
        self.tx_hash = tx_hash
        self.interval = interval
        self.settle_delay = settle_delay
        self.state = PollerState.PENDING
        self.polls = 0
        self._stopped = asyncio.Event()

    def stop(self) -> None:
        """Stop polling; a pending wait returns False."""
        self._stopped.set()

    async def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Wait for confirmation.

        Args:
            timeout: Maximum time to wait, unbounded when None

        Returns:
            True if confirmed, False if stopped or timed out
        """
        try:
            seen = await asyncio.wait_for(self._poll(), timeout=timeout)
        except asyncio.TimeoutError:
            self.state = PollerState.STOPPED
            logger.warning("tx_confirmation_timeout", tx_hash=self.tx_hash, polls=self.polls)
            return False

        if not seen:
            self.state = PollerState.STOPPED
            logger.info("tx_confirmation_stopped", tx_hash=self.tx_hash, polls=self.polls)
            return False

        # Outputs are on chain; the timeout and stop no longer apply.
        await asyncio.sleep(self.settle_delay)
        self.state = PollerState.CONFIRMED
        logger.info("tx_confirmed", tx_hash=self.tx_hash, polls=self.polls)
        return True

    async def _poll(self) -> bool:
        """Poll until outputs are seen (True) or the poller is stopped (False)."""
        while True:
            try:
                await asyncio.wait_for(self._stopped.wait(), timeout=self.interval)
                return False
            except asyncio.TimeoutError:
                pass

            self.polls += 1
            matches = await self.indexer.get_unspent_by_tx(self.tx_hash)
            if matches:
                return True

"""
Receipt polling with a wall-clock deadline and an optional attempt cap.
"""

import asyncio
import logging
from typing import Optional

from web3.exceptions import TransactionNotFound

from ...engine.exceptions import TransactionTimeoutError
from ...schemas.transactions import Receipt
from ..bases import BaseRpcClient
from .constants import DEFAULT_POLL_INTERVAL, DEFAULT_POLL_TIMEOUT

logger = logging.getLogger(__name__)


class ReceiptPoller:
    """
    Repeatedly queries ``eth_getTransactionReceipt`` until the receipt exists.

    "Not yet included" is either a null result or web3's TransactionNotFound;
    both schedule the next attempt. Every other error propagates unchanged
    and ends polling.

    Attributes:
        rpc: Shared RPC client.
        interval: Seconds between attempts.
        timeout: Seconds after the first attempt at which polling gives up.
        max_attempts: Optional cap on the number of attempts.
        attempts: Attempts made by the most recent ``poll``.

    Example:
        poller = ReceiptPoller(rpc, interval=0.5, timeout=60)
        receipt = await poller.poll(tx_hash)
    """

    def __init__(
        self,
        rpc: BaseRpcClient,
        interval: float = DEFAULT_POLL_INTERVAL,
        timeout: float = DEFAULT_POLL_TIMEOUT,
        max_attempts: Optional[int] = None,
    ):
        if interval <= 0:
            raise ValueError("interval must be positive")
        if timeout <= 0:
            raise ValueError("timeout must be positive")
        if max_attempts is not None and max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        self.rpc = rpc
        self.interval = interval
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.attempts = 0

    async def _fetch(self, tx_hash: str) -> Optional[Receipt]:
        try:
            return await self.rpc.get_transaction_receipt(tx_hash)
        except TransactionNotFound:
            return None

    async def poll(self, tx_hash: str) -> Receipt:
        """
        Wait for the receipt of ``tx_hash``.

        The first attempt is made immediately; later attempts follow every
        ``interval`` seconds. The last sleep is shortened so that one final
        attempt happens at the deadline.

        Args:
            tx_hash: Hash returned by the broadcast.

        Returns:
            Receipt: The inclusion receipt.

        Raises:
            TransactionTimeoutError: If the deadline or attempt cap is reached
                with the receipt still absent.
            Exception: Any error from the RPC client other than "not found",
                unchanged.
        """
        loop = asyncio.get_running_loop()
        started = loop.time()
        deadline = started + self.timeout
        self.attempts = 0

        while True:
            self.attempts += 1
            receipt = await self._fetch(tx_hash)
            if receipt is not None:
                logger.debug("Receipt for %s found after %d attempt(s)", tx_hash, self.attempts)
                return receipt

            remaining = deadline - loop.time()
            if remaining <= 0 or (self.max_attempts is not None and self.attempts >= self.max_attempts):
                elapsed = loop.time() - started
                raise TransactionTimeoutError(
                    f"Transaction {tx_hash} not included after {self.attempts} attempt(s) "
                    f"in {elapsed:.2f}s",
                    tx_hash=tx_hash,
                    attempts=self.attempts,
                    elapsed=elapsed,
                )

            await asyncio.sleep(min(self.interval, remaining))

"""
Confirmation tracking for an included transaction.

The watcher polls the chain height and reports, one by one, every
confirmation count between the last reported one and the current height.
Callbacks are held weakly when they are bound methods, so a watcher never
keeps its owner alive: once the owner is collected, the watch ends.
"""

import asyncio
import logging
import weakref
from typing import Awaitable, Callable, Optional

from ...schemas.transactions import Receipt
from ..bases import BaseRpcClient
from .constants import DEFAULT_CONFIRMATION_INTERVAL

logger = logging.getLogger(__name__)

ConfirmationCallback = Callable[[int, int], Awaitable[None]]
ErrorCallback = Callable[[Exception], Awaitable[None]]


def _weak_callback(callback: Optional[Callable]) -> Callable[[], Optional[Callable]]:
    if callback is None:
        return lambda: None
    if hasattr(callback, "__self__") and hasattr(callback, "__func__"):
        return weakref.WeakMethod(callback)
    return lambda: callback


class ConfirmationWatcher:
    """
    Reports confirmations of ``receipt`` until stopped.

    A count of ``n`` means ``n`` blocks were produced on top of the inclusion
    block. Counts are reported strictly increasing without gaps; a chain
    height that moves backwards reports nothing until it catches up again.

    The watch stops when:
    - ``cancel()`` is called
    - ``max_confirmations`` has been reported
    - the owner of a bound-method callback is garbage-collected
    - a block height query fails (reported once through ``on_error``)

    Attributes:
        rpc: Shared RPC client.
        receipt: Receipt of the transaction being watched.
        interval: Seconds between block height checks.
        max_confirmations: Count after which the watch ends; None for no limit.
        last_count: Last confirmation count reported.

    Example:
        watcher = ConfirmationWatcher(rpc, receipt, handle._on_confirmation, handle._on_watch_error)
        watcher.start()
        ...
        watcher.cancel()
    """

    def __init__(
        self,
        rpc: BaseRpcClient,
        receipt: Receipt,
        on_confirmation: ConfirmationCallback,
        on_error: Optional[ErrorCallback] = None,
        interval: float = DEFAULT_CONFIRMATION_INTERVAL,
        max_confirmations: Optional[int] = None,
        start_from: int = 0,
        on_stopped: Optional[Callable[["ConfirmationWatcher"], None]] = None,
    ):
        if interval <= 0:
            raise ValueError("interval must be positive")
        if max_confirmations is not None and max_confirmations < 1:
            raise ValueError("max_confirmations must be at least 1")

        self.rpc = rpc
        self.receipt = receipt
        self.interval = interval
        self.max_confirmations = max_confirmations
        self.last_count = max(start_from, 0)

        self._confirmation_ref = _weak_callback(on_confirmation)
        self._error_ref = _weak_callback(on_error)
        self._stopped_ref = _weak_callback(on_stopped)
        self._task: Optional[asyncio.Task] = None
        self._cancelled = False

    @property
    def running(self) -> bool:
        """True while the watch task is alive."""
        return self._task is not None and not self._task.done()

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def start(self) -> "ConfirmationWatcher":
        """
        Schedule the watch loop on the running event loop.

        Returns:
            ConfirmationWatcher: self, for chaining.

        Raises:
            RuntimeError: If the watcher was cancelled or is already running.
        """
        if self._cancelled:
            raise RuntimeError("Confirmation watcher was cancelled")
        if self.running:
            raise RuntimeError("Confirmation watcher is already running")
        self._task = asyncio.get_running_loop().create_task(self._run())
        return self

    def cancel(self) -> None:
        """
        Stop the watch permanently.

        Safe to call from inside a confirmation callback: the count being
        delivered completes and no further counts are reported.
        """
        self.request_stop()
        if self._task is not None and not self._task.done() and asyncio.current_task() is not self._task:
            self._task.cancel()

    def request_stop(self) -> None:
        """Stop at the next check without touching the task; callable without a running loop."""
        self._cancelled = True

    def _limit_reached(self) -> bool:
        return self.max_confirmations is not None and self.last_count >= self.max_confirmations

    async def _run(self) -> None:
        try:
            await self._watch()
        except asyncio.CancelledError:
            logger.debug("Confirmation watch for %s cancelled", self.receipt.transactionHash)
            raise
        finally:
            on_stopped = self._stopped_ref()
            if on_stopped is not None:
                on_stopped(self)

    async def _watch(self) -> None:
        inclusion_block = self.receipt.blockNumber
        while not self._cancelled:
            try:
                current = await self.rpc.get_block_number()
            except Exception as e:
                logger.warning(
                    "Confirmation watch for %s stopped: %s", self.receipt.transactionHash, e
                )
                on_error = self._error_ref()
                if on_error is not None:
                    await on_error(e)
                return

            target = current - inclusion_block
            if self.max_confirmations is not None:
                target = min(target, self.max_confirmations)

            while self.last_count < target:
                if self._cancelled:
                    return
                on_confirmation = self._confirmation_ref()
                if on_confirmation is None:
                    logger.debug("Owner of watch for %s was collected", self.receipt.transactionHash)
                    return
                self.last_count += 1
                await on_confirmation(self.last_count, inclusion_block + self.last_count)
                del on_confirmation

            if self._limit_reached() or self._confirmation_ref() is None:
                return

            await asyncio.sleep(self.interval)

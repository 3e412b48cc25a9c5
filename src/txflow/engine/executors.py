"""
Transaction submission engine.

Drives one submission through pricing, broadcast, receipt polling and
confirmation watching, and exposes the outcome twice: as an awaitable
terminal result and as a stream of lifecycle events.

Core Classes:
    - PipelineState: Lifecycle states and the transitions allowed between them
    - TransactionHandle: Per-submission result future, listener table and state
    - SubmissionPipeline: Schedules submissions against one node
"""

import asyncio
import copy
import itertools
import logging
import weakref
from enum import Enum
from typing import Any, Dict, FrozenSet, Generator, Optional, Union

from pydantic import ValidationError

from ..adapters.bases import BaseRpcClient
from ..adapters.evm.confirmations import ConfirmationWatcher
from ..adapters.evm.constants import NodeContext
from ..adapters.evm.pricing import GasPricingResolver, needs_pricing
from ..adapters.evm.receipts import ReceiptPoller
from ..adapters.evm.signatures import LocalSigner
from ..schemas.transactions import Receipt, SignedTransactionBytes, SubmitOptions, TransactionRequest
from .events import (
    BaseEvent,
    ConfirmationEvent,
    ErrorEvent,
    EventBus,
    EventListener,
    ReceiptEvent,
    SendingEvent,
    SentEvent,
    TransactionEventTag,
    TransactionHashEvent,
    coerce_tag,
)
from .exceptions import InvalidTransition, TransactionValidationError

logger = logging.getLogger(__name__)


class PipelineState(str, Enum):
    """Lifecycle states of one submission."""
    CREATED = "created"
    PRICING = "pricing"
    BROADCASTING = "broadcasting"
    HASHED = "hashed"
    POLLING_RECEIPT = "polling_receipt"
    MINED = "mined"
    WATCHING_CONFIRMATIONS = "watching_confirmations"
    FAILED = "failed"


_TRANSITIONS: Dict[PipelineState, FrozenSet[PipelineState]] = {
    PipelineState.CREATED: frozenset({PipelineState.PRICING, PipelineState.BROADCASTING, PipelineState.FAILED}),
    PipelineState.PRICING: frozenset({PipelineState.BROADCASTING, PipelineState.FAILED}),
    PipelineState.BROADCASTING: frozenset({PipelineState.HASHED, PipelineState.FAILED}),
    PipelineState.HASHED: frozenset({PipelineState.POLLING_RECEIPT, PipelineState.FAILED}),
    PipelineState.POLLING_RECEIPT: frozenset({PipelineState.MINED, PipelineState.FAILED}),
    PipelineState.MINED: frozenset({PipelineState.WATCHING_CONFIRMATIONS}),
    PipelineState.WATCHING_CONFIRMATIONS: frozenset({PipelineState.MINED}),
    PipelineState.FAILED: frozenset(),
}

Submission = Union[TransactionRequest, Dict[str, Any], SignedTransactionBytes, bytes, bytearray, str]

_submission_ids = itertools.count(1)


def _snapshot(wire: Union[Dict[str, Any], SignedTransactionBytes]) -> Union[Dict[str, Any], SignedTransactionBytes]:
    """Give each event its own copy of a dict payload; signed payloads are immutable."""
    if isinstance(wire, dict):
        return copy.deepcopy(wire)
    return wire


class TransactionHandle:
    """
    Result and event surface of a single submission.

    The handle is returned before any work starts, so listeners attached
    right after ``submit`` see every event. Events are delivered only to the
    listeners registered at the moment they fire; nothing is replayed.

    Attributes:
        submission_id: Process-unique id, used in log messages.

    Example:
        handle = pipeline.submit({"to": "0xabc", "value": 1})
        handle.on("transactionHash", lambda e: print(e.tx_hash))
        receipt = await handle
    """

    def __init__(
        self,
        rpc: BaseRpcClient,
        confirmation_interval: float,
        confirmation_blocks: Optional[int],
    ) -> None:
        self.submission_id = next(_submission_ids)
        self._rpc = rpc
        self._confirmation_interval = confirmation_interval
        self._confirmation_blocks = confirmation_blocks

        self._bus = EventBus()
        self._future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._state = PipelineState.CREATED
        self._tx_hash: Optional[str] = None
        self._receipt: Optional[Receipt] = None
        self._task: Optional[asyncio.Task] = None

        self._watcher: Optional[ConfirmationWatcher] = None
        self._watch_finalizer: Optional[weakref.finalize] = None
        self._last_confirmation = 0
        self._confirmations_cancelled = False
        self._resolving = False

    # ------------------------------------------------------------------
    # Public surface
    # ------------------------------------------------------------------

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def tx_hash(self) -> Optional[str]:
        """Hash returned by the broadcast, None before it."""
        return self._tx_hash

    @property
    def receipt(self) -> Optional[Receipt]:
        """Inclusion receipt, None before MINED."""
        return self._receipt

    @property
    def confirmations(self) -> int:
        """Highest confirmation count reported so far."""
        if self._watcher is not None:
            return self._watcher.last_count
        return self._last_confirmation

    def done(self) -> bool:
        """True once the terminal result is settled (MINED or FAILED)."""
        return self._future.done()

    def on(self, tag: Union[str, TransactionEventTag], listener: EventListener) -> "TransactionHandle":
        """
        Attach a listener for one lifecycle event.

        Attaching the first ``confirmation`` listener to a mined transaction
        starts confirmation watching, resuming after the last reported count.

        Args:
            tag: Event tag (``"sending"``, ``"sent"``, ``"transactionHash"``,
                ``"receipt"``, ``"confirmation"`` or ``"error"``).
            listener: Plain callable or coroutine function taking the event.

        Returns:
            TransactionHandle: self, for chaining.

        Raises:
            ValueError: If ``tag`` is not a lifecycle event.
            TypeError: If ``listener`` is not callable.
        """
        tag = coerce_tag(tag)
        self._bus.subscribe(tag, listener)
        if tag is TransactionEventTag.CONFIRMATION:
            self._maybe_watch()
        return self

    def off(self, tag: Union[str, TransactionEventTag], listener: EventListener) -> bool:
        """
        Detach one registration of ``listener``.

        Removing the last ``confirmation`` listener stops the watch; a later
        listener resumes from the last reported count.

        Returns:
            bool: True if a registration was removed.
        """
        tag = coerce_tag(tag)
        removed = self._bus.unsubscribe(tag, listener)
        if (
            removed
            and tag is TransactionEventTag.CONFIRMATION
            and self._bus.listener_count(tag) == 0
            and self._watcher is not None
        ):
            self._watcher.cancel()
            self._detach_watcher()
        return removed

    def cancel_confirmations(self) -> None:
        """
        Stop confirmation watching for good.

        The terminal result is unaffected; no further ``confirmation``
        events are emitted, even if new listeners are attached.
        """
        self._confirmations_cancelled = True
        if self._watcher is not None:
            self._watcher.cancel()
            self._detach_watcher()

    async def result(self) -> Receipt:
        """
        Wait for the terminal result.

        Cancelling the awaiting task does not cancel the submission.

        Returns:
            Receipt: The inclusion receipt.

        Raises:
            TxFlowError: The error that failed the submission.
        """
        return await asyncio.shield(self._future)

    def __await__(self) -> Generator[Any, None, Receipt]:
        return self.result().__await__()

    def __repr__(self) -> str:
        return f"TransactionHandle(id={self.submission_id}, state={self._state.value}, tx_hash={self._tx_hash})"

    # ------------------------------------------------------------------
    # Lifecycle, driven by SubmissionPipeline
    # ------------------------------------------------------------------

    def _label(self) -> str:
        return self._tx_hash or f"submission-{self.submission_id}"

    def _transition(self, target: PipelineState) -> None:
        if target not in _TRANSITIONS[self._state]:
            raise InvalidTransition(self._state, target)
        logger.debug("%s: %s -> %s", self._label(), self._state.value, target.value)
        self._state = target

    async def _emit(self, event: BaseEvent) -> None:
        await self._bus.dispatch(event)

    async def _resolve(self, receipt: Receipt) -> None:
        self._receipt = receipt
        self._transition(PipelineState.MINED)
        logger.info("%s mined in block %s", self._label(), receipt.blockNumber)
        # Confirmation listeners attached by receipt listeners wait for the last one.
        self._resolving = True
        try:
            await self._emit(ReceiptEvent(receipt=receipt))
        finally:
            self._resolving = False
        self._future.set_result(receipt)
        self._maybe_watch()

    async def _fail(self, error: Exception) -> None:
        logger.warning("%s failed in state %s: %s", self._label(), self._state.value, error)
        self._transition(PipelineState.FAILED)
        await self._emit(ErrorEvent(error=error))
        self._future.set_exception(error)
        # Reported through the error event; do not warn if nobody awaits.
        self._future.exception()

    # ------------------------------------------------------------------
    # Confirmation watching
    # ------------------------------------------------------------------

    def _limit_reached(self) -> bool:
        return self._confirmation_blocks is not None and self._last_confirmation >= self._confirmation_blocks

    def _maybe_watch(self) -> None:
        if (
            self._state is not PipelineState.MINED
            or self._resolving
            or self._confirmations_cancelled
            or self._watcher is not None
            or self._bus.listener_count(TransactionEventTag.CONFIRMATION) == 0
            or self._limit_reached()
        ):
            return

        watcher = ConfirmationWatcher(
            self._rpc,
            self._receipt,
            self._on_confirmation,
            on_error=self._on_watch_error,
            interval=self._confirmation_interval,
            max_confirmations=self._confirmation_blocks,
            start_from=self._last_confirmation,
            on_stopped=self._on_watch_stopped,
        )
        self._watcher = watcher
        self._transition(PipelineState.WATCHING_CONFIRMATIONS)
        watcher.start()
        self._watch_finalizer = weakref.finalize(self, watcher.request_stop)

    def _detach_watcher(self) -> None:
        self._last_confirmation = self._watcher.last_count
        self._watcher = None
        if self._watch_finalizer is not None:
            self._watch_finalizer.detach()
            self._watch_finalizer = None
        if self._state is PipelineState.WATCHING_CONFIRMATIONS:
            self._transition(PipelineState.MINED)

    async def _on_confirmation(self, confirmations: int, block_number: int) -> None:
        await self._emit(
            ConfirmationEvent(confirmations=confirmations, block_number=block_number, receipt=self._receipt)
        )

    async def _on_watch_error(self, error: Exception) -> None:
        await self._emit(ErrorEvent(error=error))

    def _on_watch_stopped(self, watcher: ConfirmationWatcher) -> None:
        if watcher is self._watcher:
            self._detach_watcher()


class SubmissionPipeline:
    """
    Submits transactions to one node and tracks them to inclusion.

    Every call to ``submit`` creates an independent TransactionHandle and
    schedules its work as an asyncio task: nothing runs until the caller
    yields to the event loop. The RPC client, node context and signer are
    shared read-only between submissions.

    Attributes:
        rpc: RPC client used for every node call.
        context: Node context supplying polling and pricing defaults.
        signer: Optional local signer; when set, unsigned requests are signed
            in-process and sent raw instead of through ``eth_sendTransaction``.

    Example:
        pipeline = SubmissionPipeline(rpc, NodeContext.from_env())
        handle = pipeline.send_transaction({"from": sender, "to": recipient, "value": 1})
        handle.on("receipt", print)
        receipt = await handle
    """

    def __init__(
        self,
        rpc: BaseRpcClient,
        context: NodeContext,
        signer: Optional[LocalSigner] = None,
    ) -> None:
        self.rpc = rpc
        self.context = context
        self.signer = signer
        self._resolver = GasPricingResolver(rpc, fee_multiplier=context.fee_multiplier)

    def submit(
        self,
        transaction: Submission,
        options: Optional[Union[SubmitOptions, Dict[str, Any]]] = None,
    ) -> TransactionHandle:
        """
        Start a submission.

        Must be called with a running event loop. Validation problems with
        ``transaction`` do not raise here: they fail the returned handle
        (``result()`` raises and an ``error`` event fires) before any
        network call.

        Args:
            transaction: A TransactionRequest or request dict for the
                unsigned path; SignedTransactionBytes, raw bytes or a 0x-hex
                string for the pre-signed path.
            options: Per-submission overrides of the context defaults.

        Returns:
            TransactionHandle: Handle for the scheduled submission.

        Raises:
            pydantic.ValidationError: If ``options`` is an invalid dict.
            RuntimeError: If no event loop is running.
        """
        return self._start(transaction, options, expect=None)

    def send_transaction(
        self,
        request: Union[TransactionRequest, Dict[str, Any]],
        options: Optional[Union[SubmitOptions, Dict[str, Any]]] = None,
    ) -> TransactionHandle:
        """Submit an unsigned request. See :meth:`submit`."""
        return self._start(request, options, expect=TransactionRequest)

    def send_signed_transaction(
        self,
        signed: Union[SignedTransactionBytes, bytes, bytearray, str],
        options: Optional[Union[SubmitOptions, Dict[str, Any]]] = None,
    ) -> TransactionHandle:
        """Submit pre-signed bytes. See :meth:`submit`."""
        return self._start(signed, options, expect=SignedTransactionBytes)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _start(self, transaction: Submission, options, expect: Optional[type]) -> TransactionHandle:
        if options is None:
            options = SubmitOptions()
        elif isinstance(options, dict):
            options = SubmitOptions.model_validate(options)

        if options.confirmation_blocks is None:
            confirmation_blocks = self.context.confirmation_blocks
        elif options.confirmation_blocks == 0:
            confirmation_blocks = None
        else:
            confirmation_blocks = options.confirmation_blocks
        handle = TransactionHandle(
            self.rpc,
            confirmation_interval=options.confirmation_interval or self.context.confirmation_interval,
            confirmation_blocks=confirmation_blocks,
        )
        poller = ReceiptPoller(
            self.rpc,
            interval=options.poll_interval or self.context.poll_interval,
            timeout=options.poll_timeout or self.context.poll_timeout,
            max_attempts=options.max_poll_attempts or self.context.max_poll_attempts,
        )
        handle._task = asyncio.get_running_loop().create_task(
            self._execute(handle, transaction, options, poller, expect)
        )
        return handle

    @staticmethod
    def _coerce(
        transaction: Submission, expect: Optional[type]
    ) -> Union[TransactionRequest, SignedTransactionBytes]:
        if isinstance(transaction, (TransactionRequest, dict)):
            kind = TransactionRequest
        elif isinstance(transaction, (SignedTransactionBytes, bytes, bytearray, str)):
            kind = SignedTransactionBytes
        else:
            raise TransactionValidationError(
                f"Unsupported transaction payload type: {type(transaction).__name__}"
            )

        if expect is not None and kind is not expect:
            raise TransactionValidationError(
                f"Expected {expect.__name__}-compatible payload, got {type(transaction).__name__}"
            )

        try:
            if isinstance(transaction, dict):
                return TransactionRequest.model_validate(transaction)
            if isinstance(transaction, (bytes, bytearray, str)):
                return SignedTransactionBytes.from_bytes(transaction)
        except ValidationError as e:
            raise TransactionValidationError(f"Invalid transaction: {e}") from e
        return transaction

    async def _execute(
        self,
        handle: TransactionHandle,
        transaction: Submission,
        options: SubmitOptions,
        poller: ReceiptPoller,
        expect: Optional[type],
    ) -> None:
        try:
            payload = self._coerce(transaction, expect)

            if isinstance(payload, TransactionRequest):
                payload.check_pricing()
                if needs_pricing(payload, options.skip_pricing):
                    handle._transition(PipelineState.PRICING)
                    payload = await self._resolver.resolve(payload)

                if self.signer is not None:
                    payload = await self.signer.fill(payload, self.rpc)
                    signed = self.signer.sign(payload)
                else:
                    signed = None
                wire = payload.to_rpc_dict()
            else:
                signed = payload
                wire = payload

            await handle._emit(SendingEvent(transaction=_snapshot(wire)))
            handle._transition(PipelineState.BROADCASTING)
            if signed is not None:
                tx_hash = await self.rpc.send_raw_transaction(signed)
            else:
                tx_hash = await self.rpc.send_transaction(payload)

            handle._tx_hash = tx_hash
            handle._transition(PipelineState.HASHED)
            logger.info("Submission %s broadcast as %s", handle.submission_id, tx_hash)
            await handle._emit(SentEvent(transaction=_snapshot(wire)))
            await handle._emit(TransactionHashEvent(tx_hash=tx_hash))

            handle._transition(PipelineState.POLLING_RECEIPT)
            receipt = await poller.poll(tx_hash)
        except asyncio.CancelledError:
            handle._future.cancel()
            raise
        except Exception as e:
            await handle._fail(e)
            return

        await handle._resolve(receipt)

"""
Typed lifecycle events and the per-submission listener registry.

Events carry their own data; a submission emits them in a fixed order
(sending, sent, transactionHash, receipt, confirmation*) or an error. The
EventBus is a plain table of listeners per tag consulted at emission time
only: nothing is buffered, so a listener sees only the events emitted after
it was registered.
"""

import inspect
import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict

from ..schemas.transactions import Receipt, SignedTransactionBytes

logger = logging.getLogger(__name__)


class TransactionEventTag(str, Enum):
    """Lifecycle event names, matching the JSON-RPC ecosystem's conventions."""
    SENDING = "sending"
    SENT = "sent"
    TRANSACTION_HASH = "transactionHash"
    RECEIPT = "receipt"
    CONFIRMATION = "confirmation"
    ERROR = "error"


# ==================== Base Event ====================

class BaseEvent(ABC):
    """Base class for all lifecycle events."""

    tag: TransactionEventTag

    @abstractmethod
    def __repr__(self) -> str:
        """String representation of the event."""
        pass


# ==================== Lifecycle Events ====================

TransactionPayload = Union[Dict[str, Any], SignedTransactionBytes]


class SendingEvent(BaseModel, BaseEvent):
    """Emitted right before broadcast with the fully formatted transaction."""
    tag: TransactionEventTag = TransactionEventTag.SENDING
    transaction: TransactionPayload

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def __repr__(self) -> str:
        return f"SendingEvent(transaction={self.transaction!r})"


class SentEvent(BaseModel, BaseEvent):
    """Emitted once the node accepted the transaction."""
    tag: TransactionEventTag = TransactionEventTag.SENT
    transaction: TransactionPayload

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def __repr__(self) -> str:
        return f"SentEvent(transaction={self.transaction!r})"


class TransactionHashEvent(BaseModel, BaseEvent):
    """Emitted with the hash returned by the broadcast call."""
    tag: TransactionEventTag = TransactionEventTag.TRANSACTION_HASH
    tx_hash: str

    def __repr__(self) -> str:
        return f"TransactionHashEvent(tx_hash={self.tx_hash})"


class ReceiptEvent(BaseModel, BaseEvent):
    """Emitted when the transaction was included in a block."""
    tag: TransactionEventTag = TransactionEventTag.RECEIPT
    receipt: Receipt

    def __repr__(self) -> str:
        return f"ReceiptEvent(receipt={self.receipt!r})"


class ConfirmationEvent(BaseModel, BaseEvent):
    """Emitted once per block produced on top of the inclusion block."""
    tag: TransactionEventTag = TransactionEventTag.CONFIRMATION
    confirmations: int
    block_number: int
    receipt: Receipt

    def __repr__(self) -> str:
        return f"ConfirmationEvent(confirmations={self.confirmations}, block={self.block_number})"


class ErrorEvent(BaseModel, BaseEvent):
    """Emitted when the submission fails or confirmation tracking breaks."""
    tag: TransactionEventTag = TransactionEventTag.ERROR
    error: Exception

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def __repr__(self) -> str:
        return f"ErrorEvent(error={self.error!r})"


# ==================== Event Bus ====================

EventListener = Callable[[BaseEvent], Optional[Awaitable[None]]]


def coerce_tag(tag: Union[str, TransactionEventTag]) -> TransactionEventTag:
    """
    Resolve an event tag given as enum member or its string value.

    Raises:
        ValueError: If ``tag`` does not name a lifecycle event.
    """
    try:
        return TransactionEventTag(tag)
    except ValueError:
        valid = ", ".join(t.value for t in TransactionEventTag)
        raise ValueError(f"Unknown event tag {tag!r}; expected one of: {valid}") from None


class EventBus:
    """Listener table for one submission, keyed by event tag."""

    def __init__(self) -> None:
        """Initialize with no listeners."""
        self._listeners: Dict[TransactionEventTag, List[EventListener]] = {}

    def subscribe(self, tag: Union[str, TransactionEventTag], listener: EventListener) -> None:
        """
        Register a listener for the given event tag.

        Listeners may be plain callables or coroutine functions; both receive
        the event model. The same listener may be registered more than once
        and is then called once per registration.

        Args:
            tag: The event tag to listen for.
            listener: Callable invoked with each matching event.

        Raises:
            TypeError: If listener is not callable.
        """
        if not callable(listener):
            raise TypeError(f"Listener must be callable, got {type(listener).__name__}")
        self._listeners.setdefault(coerce_tag(tag), []).append(listener)

    def unsubscribe(self, tag: Union[str, TransactionEventTag], listener: EventListener) -> bool:
        """
        Remove one registration of ``listener`` for ``tag``.

        Returns:
            bool: True if a registration was removed.
        """
        listeners = self._listeners.get(coerce_tag(tag), [])
        if listener in listeners:
            listeners.remove(listener)
            return True
        return False

    def listener_count(self, tag: Union[str, TransactionEventTag]) -> int:
        """Number of listeners currently registered for ``tag``."""
        return len(self._listeners.get(coerce_tag(tag), []))

    async def dispatch(self, event: BaseEvent) -> None:
        """
        Deliver an event to the listeners registered for its tag right now.

        Listeners run in registration order; coroutine listeners are awaited
        before the next listener is called. A listener that raises is logged
        and does not prevent delivery to the remaining listeners.

        Args:
            event: The event to deliver.
        """
        for listener in list(self._listeners.get(event.tag, [])):
            try:
                result = listener(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Listener %r failed while handling %r", listener, event)

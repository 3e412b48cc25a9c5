"""
Exception and Error Definitions Module

Defines the exception hierarchy for transaction submission, gas pricing,
receipt polling and JSON-RPC transport. All exceptions inherit from
TxFlowError for unified exception handling.

Exception Hierarchy:
    TxFlowError (root)
    ├── TransactionValidationError
    ├── PricingError
    ├── TransportError
    ├── TransactionTimeoutError (also a builtin TimeoutError)
    ├── ConfigurationError
    └── InvalidTransition

Chain reorganisations are not represented: a receipt that was reported and
later dropped from the canonical chain is not re-validated or signalled.
"""

from typing import Any, Optional


class TxFlowError(Exception):
    """
    Root exception class for all txflow exceptions.

    Every error surfaced by a submission (through ``result()`` and the
    ``error`` event) that originates in this package inherits from this class.
    """
    pass


class TransactionValidationError(TxFlowError):
    """
    Raised when a transaction request is malformed.

    Detected before any network call and never retried.

    This includes scenarios such as:
    - Both legacy gasPrice and fee-market fields are set
    - A request dict that does not validate into a TransactionRequest
    - Unsupported submission payload types
    """
    pass


class PricingError(TxFlowError):
    """
    Raised when gas pricing cannot be resolved.

    Aborts the submission before anything is broadcast.

    This includes scenarios such as:
    - The latest-block probe, eth_gasPrice or eth_maxPriorityFeePerGas call fails
    - The node returns a missing, negative or non-numeric price
    """
    pass


class TransportError(TxFlowError):
    """
    Raised when a JSON-RPC call fails for a reason other than "not yet available".

    Surfaced verbatim and never retried by the pipeline.

    This includes scenarios such as:
    - Network connectivity issues or HTTP error statuses
    - A malformed JSON-RPC response
    - A JSON-RPC error object (node rejection, execution revert)

    Attributes:
        rpc_method: RPC method that was called (e.g., 'eth_sendRawTransaction')
        code: JSON-RPC error code, when the node returned one
        data: JSON-RPC error data, when the node returned one
    """

    def __init__(
        self,
        message: str,
        rpc_method: Optional[str] = None,
        code: Optional[int] = None,
        data: Any = None,
    ) -> None:
        super().__init__(message)
        self.rpc_method = rpc_method
        self.code = code
        self.data = data


class TransactionTimeoutError(TxFlowError, TimeoutError):
    """
    Raised when a receipt is not observed within the polling deadline.

    Distinct from TransportError: the transaction may still be included
    later, so callers can choose to poll again with a longer deadline.

    Attributes:
        tx_hash: Hash of the transaction that was being polled
        attempts: Number of receipt queries made
        elapsed: Seconds spent polling
    """

    def __init__(self, message: str, tx_hash: str, attempts: int, elapsed: float) -> None:
        super().__init__(message)
        self.tx_hash = tx_hash
        self.attempts = attempts
        self.elapsed = elapsed


class ConfigurationError(TxFlowError):
    """
    Raised when configuration is missing or invalid.

    This includes scenarios such as:
    - No RPC URL configured
    - Non-numeric polling or timeout settings in the environment
    - Missing private key for local signing
    """
    pass


class InvalidTransition(TxFlowError):
    """
    Raised when the submission state machine is asked for a transition it does not allow.

    Attributes:
        current_state: State the pipeline was in
        target_state: State that was requested
    """

    def __init__(self, current_state: Any, target_state: Any) -> None:
        super().__init__(f"Invalid transition {current_state} -> {target_state}")
        self.current_state = current_state
        self.target_state = target_state

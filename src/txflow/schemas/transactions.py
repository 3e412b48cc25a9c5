"""
Transaction Schema Models

Data models for the submission pipeline: what the caller sends, what the
node returns, and how a single submission is tuned.

Core Classes:
    - TransactionRequest: Unsigned application-level transaction request
    - SignedTransactionBytes: Immutable pre-signed raw transaction
    - Log: Log entry emitted by an included transaction
    - Receipt: Inclusion record returned by the node
    - SubmitOptions: Per-submission overrides of the node context defaults
"""

from typing import Any, Dict, List, Optional, Union

from pydantic import ConfigDict, Field, field_validator, model_validator
from eth_utils import to_bytes, to_hex

from .bases import CanonicalModel, TransactionStatus, ensure_hex, to_quantity
from ..engine.exceptions import TransactionValidationError
from .formatters import RECEIPT_SCHEMA, format_transaction, format_value


_QUANTITY_FIELDS = (
    "value",
    "gas",
    "gasPrice",
    "maxPriorityFeePerGas",
    "maxFeePerGas",
    "nonce",
    "chainId",
)

_FEE_MARKET_FIELDS = ("maxPriorityFeePerGas", "maxFeePerGas")


class TransactionRequest(CanonicalModel):
    """
    Unsigned transaction request as supplied by the application.

    Pricing is expressed in exactly one of two modes: a legacy ``gasPrice``
    or the fee-market pair ``maxPriorityFeePerGas`` / ``maxFeePerGas``.
    Setting both modes is rejected by :meth:`check_pricing` before any network
    call. Requests are treated as values: pricing resolution and signing
    return new instances through :meth:`with_fields`.

    Attributes:
        sender: Sending account (RPC key ``from``). Optional when the node
            signs with a default account.
        to: Recipient address; omitted for contract creation.
        value: Amount transferred in the smallest unit.
        data: 0x-hex call data.
        gas: Gas limit.
        gasPrice: Legacy gas price.
        maxPriorityFeePerGas: Fee-market priority fee.
        maxFeePerGas: Fee-market fee cap.
        nonce: Sender nonce.
        chainId: Target chain id.

    Call data may also be given under its JSON-RPC name ``input``. Any other
    key outside the fields above is rejected.

    Example:
        request = TransactionRequest(**{"from": "0xAbC...", "to": "0xdef...", "value": 1})
        request.pricing_mode()  # None, pricing will be resolved
    """

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    sender: Optional[str] = Field(None, alias="from", description="Sending account address")
    to: Optional[str] = Field(None, description="Recipient address")
    value: Optional[int] = Field(None, description="Transferred amount in the smallest unit")
    data: Optional[str] = Field(None, description="0x-hex encoded call data")
    gas: Optional[int] = Field(None, description="Gas limit")
    gasPrice: Optional[int] = Field(None, description="Legacy gas price")
    maxPriorityFeePerGas: Optional[int] = Field(None, description="Fee-market priority fee per gas")
    maxFeePerGas: Optional[int] = Field(None, description="Fee-market maximum fee per gas")
    nonce: Optional[int] = Field(None, description="Sender nonce")
    chainId: Optional[int] = Field(None, description="Target chain id")

    @model_validator(mode="before")
    @classmethod
    def _accept_input_key(cls, values: Any) -> Any:
        if not isinstance(values, dict) or "input" not in values:
            return values
        values = dict(values)
        call_data = values.pop("input")
        if values.get("data") is not None and values["data"] != call_data:
            raise ValueError("'input' and 'data' carry different call data")
        values["data"] = call_data
        return values

    @field_validator("sender", "to", "data", mode="before")
    @classmethod
    def _check_hex(cls, value: Any, info) -> Any:
        if value is None:
            return value
        return ensure_hex(value, info.field_name)

    @field_validator(*_QUANTITY_FIELDS, mode="before")
    @classmethod
    def _check_quantity(cls, value: Any, info) -> Optional[int]:
        return to_quantity(value, info.field_name)

    def pricing_mode(self) -> Optional[str]:
        """
        Report which pricing mode is populated.

        Returns:
            Optional[str]: ``"legacy"`` when ``gasPrice`` is set, ``"fee_market"``
            when any fee-market field is set, otherwise None. Requests with
            both modes report ``"legacy"``; :meth:`check_pricing` rejects them.
        """
        if self.gasPrice is not None:
            return "legacy"
        if any(getattr(self, name) is not None for name in _FEE_MARKET_FIELDS):
            return "fee_market"
        return None

    def has_complete_pricing(self) -> bool:
        """Return True when ``gasPrice`` or both fee-market fields are set."""
        if self.gasPrice is not None:
            return True
        return all(getattr(self, name) is not None for name in _FEE_MARKET_FIELDS)

    def check_pricing(self) -> None:
        """
        Reject requests that populate both pricing modes.

        Raises:
            TransactionValidationError: If ``gasPrice`` is combined with any
                fee-market field.
        """
        if self.gasPrice is not None and any(getattr(self, name) is not None for name in _FEE_MARKET_FIELDS):
            raise TransactionValidationError(
                "Transaction sets both gasPrice and fee-market fields; "
                "use either gasPrice or maxPriorityFeePerGas/maxFeePerGas"
            )

    def with_fields(self, **updates: Any) -> "TransactionRequest":
        """
        Return a validated copy with ``updates`` applied.

        Args:
            **updates: Field values keyed by field name (``sender`` or ``from``).

        Returns:
            TransactionRequest: New request; ``self`` is left untouched.
        """
        data = self.model_dump(by_alias=True)
        if "sender" in updates:
            updates["from"] = updates.pop("sender")
        data.update(updates)
        return TransactionRequest.model_validate(data)

    def to_rpc_dict(self) -> Dict[str, Any]:
        """
        Build the JSON-RPC transaction object.

        Returns:
            Dict[str, Any]: Hex-encoded fields keyed by RPC name, unset fields omitted.
        """
        return format_transaction(self.model_dump(by_alias=True, exclude_none=True))

    def to_signable_dict(self) -> Dict[str, Any]:
        """
        Build the dict accepted by ``eth_account`` for local signing.

        Returns:
            Dict[str, Any]: Integer quantities, ``from`` omitted, unset fields omitted.
        """
        return self.model_dump(exclude={"sender"}, exclude_none=True)


class SignedTransactionBytes(CanonicalModel):
    """
    Opaque signed raw transaction for the pre-signed submission path.

    Immutable once constructed.

    Attributes:
        raw_transaction: 0x-prefixed hex encoding of the signed transaction.

    Example:
        signed = SignedTransactionBytes.from_bytes(account.sign_transaction(tx).raw_transaction)
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    raw_transaction: str = Field(..., description="0x-hex encoded signed transaction")

    @field_validator("raw_transaction", mode="before")
    @classmethod
    def _normalize(cls, value: Any) -> str:
        if isinstance(value, (bytes, bytearray)):
            value = to_hex(bytes(value))
        ensure_hex(value, "raw_transaction")
        if len(value) <= 2:
            raise ValueError("'raw_transaction' must not be empty")
        return value.lower()

    @classmethod
    def from_bytes(cls, raw: Union[bytes, bytearray, str]) -> "SignedTransactionBytes":
        """Wrap raw signed bytes (or their 0x-hex form)."""
        return cls(raw_transaction=raw)

    def to_hex(self) -> str:
        return self.raw_transaction

    def to_bytes(self) -> bytes:
        return to_bytes(hexstr=self.raw_transaction)

    def __repr__(self) -> str:
        return f"SignedTransactionBytes({self.raw_transaction[:18]}...)"


class Log(CanonicalModel):
    """Log entry emitted by an included transaction."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="allow")

    address: str
    topics: List[str] = Field(default_factory=list)
    data: str = "0x"
    blockNumber: Optional[int] = None
    blockHash: Optional[str] = None
    transactionHash: Optional[str] = None
    transactionIndex: Optional[int] = None
    logIndex: Optional[int] = None
    removed: bool = False


class Receipt(CanonicalModel):
    """
    Inclusion record of a transaction.

    Absent until the transaction is included; immutable afterwards. Fields
    the node reports beyond the ones declared here are kept as extras.

    Attributes:
        transactionHash: Hash of the included transaction.
        transactionIndex: Position of the transaction within its block.
        blockHash: Hash of the inclusion block.
        blockNumber: Number of the inclusion block.
        sender: Sending account (RPC key ``from``).
        to: Recipient, None for contract creation.
        contractAddress: Created contract, if any.
        cumulativeGasUsed: Gas used in the block up to and including this transaction.
        gasUsed: Gas consumed by this transaction.
        effectiveGasPrice: Price actually paid per gas.
        status: Execution outcome (1 success, 0 reverted); None for
            receipts that only carry a state ``root``.
        logs: Emitted log entries.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="allow")

    transactionHash: str
    transactionIndex: int = 0
    blockHash: Optional[str] = None
    blockNumber: int
    sender: Optional[str] = Field(None, alias="from")
    to: Optional[str] = None
    contractAddress: Optional[str] = None
    cumulativeGasUsed: int = 0
    gasUsed: int = 0
    effectiveGasPrice: Optional[int] = None
    status: Optional[TransactionStatus] = None
    type: Optional[int] = None
    logs: List[Log] = Field(default_factory=list)

    @classmethod
    def from_rpc(cls, raw: Dict[str, Any]) -> "Receipt":
        """
        Build a receipt from the node's hex-encoded payload.

        Args:
            raw: ``eth_getTransactionReceipt`` result object.

        Returns:
            Receipt: Receipt with integer quantities.

        Raises:
            ValueError: If the payload does not match the receipt schema.
        """
        return cls.model_validate(format_value(RECEIPT_SCHEMA, raw))

    def is_success(self) -> bool:
        """Return True if the receipt reports successful execution."""
        return self.status is TransactionStatus.SUCCESS

    def __repr__(self) -> str:
        status = self.status.name if self.status is not None else None
        return f"Receipt(tx={self.transactionHash}, block={self.blockNumber}, status={status})"


class SubmitOptions(CanonicalModel):
    """
    Per-submission options. Unset values fall back to the ``NodeContext``.

    Attributes:
        skip_pricing: Disable automatic gas pricing resolution.
        poll_interval: Seconds between receipt poll attempts.
        poll_timeout: Seconds after which receipt polling gives up.
        max_poll_attempts: Maximum receipt poll attempts.
        confirmation_interval: Seconds between block height checks while watching confirmations.
        confirmation_blocks: Stop watching once this many confirmations were
            reported; 0 watches until cancelled regardless of the context.

    ``skipPricing``, ``pollIntervalMs`` and ``pollTimeoutMs`` are accepted as
    well; the millisecond values are converted to seconds. Unknown keys are
    rejected.
    """

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    skip_pricing: bool = Field(False, alias="skipPricing")
    poll_interval: Optional[float] = Field(None, gt=0)
    poll_timeout: Optional[float] = Field(None, gt=0)
    max_poll_attempts: Optional[int] = Field(None, ge=1)
    confirmation_interval: Optional[float] = Field(None, gt=0)
    confirmation_blocks: Optional[int] = Field(None, ge=0)

    @model_validator(mode="before")
    @classmethod
    def _accept_milliseconds(cls, values: Any) -> Any:
        if not isinstance(values, dict):
            return values
        values = dict(values)
        for key, name in (("pollIntervalMs", "poll_interval"), ("pollTimeoutMs", "poll_timeout")):
            if key not in values:
                continue
            if name in values:
                raise ValueError(f"'{key}' and '{name}' cannot both be set")
            millis = values.pop(key)
            if isinstance(millis, (int, float)) and not isinstance(millis, bool):
                millis = millis / 1000
            values[name] = millis
        return values

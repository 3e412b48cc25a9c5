"""
Base Schema Models for txflow

This module defines the fundamental base classes that all other schema models
inherit from. It provides the foundation for validation, canonical
serialization and the hex-string conventions used on the JSON-RPC wire.

Core Classes:
    - CanonicalModel: RFC8785-style Pydantic base model with deterministic JSON output
    - TransactionStatus: On-chain execution outcome recorded in a receipt

Helpers:
    - ensure_hex: Validate a 0x-prefixed hex string
    - to_quantity: Coerce an int or hex quantity string into an int

Dependencies:
    - pydantic: For data validation and serialization
    - eth_utils: For hex detection and conversion
"""

import json
from enum import Enum
from typing import Any, Dict, Optional, Union

from eth_utils import is_0x_prefixed, is_hex, to_int
from pydantic import BaseModel, ConfigDict


class CanonicalModel(BaseModel):
    """
    RFC8785-style Pydantic base model with canonical JSON serialization.

    Features:
        - Automatic conversion of Pydantic objects and enums to standard types
        - Deterministic key sorting in JSON output
        - No extra whitespace, so equal models always serialize identically
        - Field aliases are honoured on both input and output

    Example:
        class MyModel(CanonicalModel):
            name: str
            value: int

        model = MyModel(name="test", value=123)
        model.to_canonical_json()  # '{"name":"test","value":123}'
    """

    model_config = ConfigDict(populate_by_name=True)

    def to_canonical_json(self) -> str:
        """
        Convert model to a canonical JSON string (sorted keys, compact separators).

        Returns:
            str: Canonical JSON string using field aliases and omitting unset (None) fields.
        """
        data = self.model_dump(mode="json", by_alias=True, exclude_none=True)
        return json.dumps(
            data,
            separators=(",", ":"),
            sort_keys=True,
            ensure_ascii=False
        )

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert model to dictionary representation.

        Returns:
            Dict[str, Any]: Dictionary with all model fields keyed by alias.
        """
        return self.model_dump(by_alias=True)


class TransactionStatus(int, Enum):
    """
    Execution outcome of an included transaction, as reported in its receipt.

    Attributes:
        FAILED: Transaction was included but reverted (status 0x0)
        SUCCESS: Transaction was included and executed successfully (status 0x1)
    """
    FAILED = 0
    SUCCESS = 1


def ensure_hex(value: Any, field_name: str = "value") -> str:
    """
    Validate that ``value`` is a 0x-prefixed hex string.

    Args:
        value: Candidate value.
        field_name: Name used in the error message.

    Returns:
        str: The validated string, unchanged.

    Raises:
        ValueError: If the value is not a 0x-prefixed hex string.
    """
    if not isinstance(value, str) or not is_0x_prefixed(value) or not is_hex(value):
        raise ValueError(f"'{field_name}' must be a 0x-prefixed hex string, got: {value!r}")
    return value


def to_quantity(value: Union[int, str, None], field_name: str = "value") -> Optional[int]:
    """
    Coerce an integer quantity given as int, decimal string or 0x-hex string.

    Args:
        value: Quantity to coerce. ``None`` passes through.
        field_name: Name used in the error message.

    Returns:
        Optional[int]: The non-negative integer, or None.

    Raises:
        ValueError: If the value cannot be read as a non-negative integer.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError(f"'{field_name}' must be an integer quantity, got: {value!r}")
    if isinstance(value, int):
        quantity = value
    elif isinstance(value, str) and is_0x_prefixed(value):
        quantity = to_int(hexstr=value)
    elif isinstance(value, str) and value.isdigit():
        quantity = int(value)
    else:
        raise ValueError(f"'{field_name}' must be an integer quantity, got: {value!r}")

    if quantity < 0:
        raise ValueError(f"'{field_name}' must be non-negative, got: {quantity}")
    return quantity

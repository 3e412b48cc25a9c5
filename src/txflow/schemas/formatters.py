"""
EVM Value Formatters

Pure, side-effect-free conversion between the hex-string representation used
on the JSON-RPC wire and native Python values.

A *schema* describes the shape of a value:

    - ``"uint"``: an unsigned integer quantity (int, decimal string or 0x-hex string)
    - ``"bytes"``: a byte string (0x-hex string or ``bytes``)
    - ``"address"``: a 0x-prefixed account address, passed through unchanged
    - ``{key: schema}``: a mapping; keys without a schema are passed through
    - ``[schema]``: a list whose items all follow ``schema``

Example:
    format_value(RECEIPT_SCHEMA, raw_receipt)                      # hex -> ints
    format_value(TRANSACTION_SCHEMA, tx, NumberFormat.HEX)         # ints -> hex
"""

from enum import Enum
from typing import Any, Dict, List, Union

from eth_utils import is_0x_prefixed, to_bytes, to_hex, to_int


class NumberFormat(str, Enum):
    """Output representation for ``uint`` values."""
    HEX = "hex"
    INT = "int"
    STR = "str"


class BytesFormat(str, Enum):
    """Output representation for ``bytes`` values."""
    HEX = "hex"
    BYTES = "bytes"


Schema = Union[str, Dict[str, Any], List[Any]]


TRANSACTION_SCHEMA: Dict[str, Schema] = {
    "from": "address",
    "to": "address",
    "value": "uint",
    "gas": "uint",
    "gasPrice": "uint",
    "maxPriorityFeePerGas": "uint",
    "maxFeePerGas": "uint",
    "nonce": "uint",
    "chainId": "uint",
    "type": "uint",
    "data": "bytes",
}

LOG_SCHEMA: Dict[str, Schema] = {
    "address": "address",
    "topics": ["bytes"],
    "data": "bytes",
    "blockNumber": "uint",
    "blockHash": "bytes",
    "transactionHash": "bytes",
    "transactionIndex": "uint",
    "logIndex": "uint",
}

RECEIPT_SCHEMA: Dict[str, Schema] = {
    "transactionHash": "bytes",
    "transactionIndex": "uint",
    "blockHash": "bytes",
    "blockNumber": "uint",
    "from": "address",
    "to": "address",
    "contractAddress": "address",
    "cumulativeGasUsed": "uint",
    "gasUsed": "uint",
    "effectiveGasPrice": "uint",
    "status": "uint",
    "type": "uint",
    "logsBloom": "bytes",
    "logs": [LOG_SCHEMA],
}

BLOCK_SCHEMA: Dict[str, Schema] = {
    "number": "uint",
    "hash": "bytes",
    "parentHash": "bytes",
    "timestamp": "uint",
    "gasLimit": "uint",
    "gasUsed": "uint",
    "baseFeePerGas": "uint",
    "miner": "address",
}


def _format_uint(value: Any, number_format: NumberFormat) -> Any:
    if isinstance(value, bool):
        raise ValueError(f"Expected an integer quantity, got: {value!r}")
    if isinstance(value, int):
        number = value
    elif isinstance(value, str) and is_0x_prefixed(value):
        number = to_int(hexstr=value)
    elif isinstance(value, str) and value.isdigit():
        number = int(value)
    else:
        raise ValueError(f"Expected an integer quantity, got: {value!r}")

    if number < 0:
        raise ValueError(f"Quantity must be non-negative, got: {number}")

    if number_format == NumberFormat.HEX:
        return hex(number)
    if number_format == NumberFormat.STR:
        return str(number)
    return number


def _format_bytes(value: Any, bytes_format: BytesFormat) -> Any:
    if isinstance(value, (bytes, bytearray)):
        raw = bytes(value)
    elif isinstance(value, str) and is_0x_prefixed(value):
        raw = to_bytes(hexstr=value)
    else:
        raise ValueError(f"Expected 0x-prefixed hex or bytes, got: {value!r}")

    if bytes_format == BytesFormat.BYTES:
        return raw
    return to_hex(raw)


def format_value(
    schema: Schema,
    value: Any,
    number_format: NumberFormat = NumberFormat.INT,
    bytes_format: BytesFormat = BytesFormat.HEX,
) -> Any:
    """
    Convert ``value`` according to ``schema`` into the requested representation.

    ``None`` values are passed through at every level, so optional fields
    stay optional.

    Args:
        schema: Shape description (see module docstring).
        value: Value to convert.
        number_format: Target representation for ``uint`` values.
        bytes_format: Target representation for ``bytes`` values.

    Returns:
        The converted value. Inputs are never mutated.

    Raises:
        ValueError: If a value does not fit its schema or the schema is unknown.
    """
    if value is None:
        return None

    if isinstance(schema, dict):
        if not isinstance(value, dict):
            raise ValueError(f"Expected a mapping, got: {type(value).__name__}")
        return {
            key: format_value(schema[key], item, number_format, bytes_format) if key in schema else item
            for key, item in value.items()
        }

    if isinstance(schema, list):
        if not isinstance(value, (list, tuple)):
            raise ValueError(f"Expected a list, got: {type(value).__name__}")
        return [format_value(schema[0], item, number_format, bytes_format) for item in value]

    if schema == "uint":
        return _format_uint(value, number_format)
    if schema == "bytes":
        return _format_bytes(value, bytes_format)
    if schema == "address":
        return value

    raise ValueError(f"Unknown schema: {schema!r}")


def format_transaction(transaction: Dict[str, Any]) -> Dict[str, Any]:
    """
    Format a transaction dict into its JSON-RPC wire form.

    Quantities become 0x-hex strings, data becomes lower-case 0x-hex and
    ``None`` fields are dropped.

    Args:
        transaction: Transaction fields keyed by their RPC names.

    Returns:
        Dict[str, Any]: Wire-ready transaction object.
    """
    formatted = format_value(TRANSACTION_SCHEMA, transaction, NumberFormat.HEX, BytesFormat.HEX)
    return {key: item for key, item in formatted.items() if item is not None}

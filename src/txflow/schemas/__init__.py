from .bases import CanonicalModel, TransactionStatus, ensure_hex, to_quantity
from .formatters import (
    NumberFormat,
    BytesFormat,
    TRANSACTION_SCHEMA,
    LOG_SCHEMA,
    RECEIPT_SCHEMA,
    BLOCK_SCHEMA,
    format_value,
    format_transaction,
)
from .transactions import TransactionRequest, SignedTransactionBytes, Log, Receipt, SubmitOptions

__all__ = [
    "CanonicalModel",
    "TransactionStatus",
    "ensure_hex",
    "to_quantity",
    "NumberFormat",
    "BytesFormat",
    "TRANSACTION_SCHEMA",
    "LOG_SCHEMA",
    "RECEIPT_SCHEMA",
    "BLOCK_SCHEMA",
    "format_value",
    "format_transaction",
    "TransactionRequest",
    "SignedTransactionBytes",
    "Log",
    "Receipt",
    "SubmitOptions",
]

from .bases import BaseRpcClient
from .evm import (
    NodeContext,
    HttpRpcClient,
    GasPricingResolver,
    ReceiptPoller,
    ConfirmationWatcher,
    LocalSigner,
)

__all__ = [
    "BaseRpcClient",
    "NodeContext",
    "HttpRpcClient",
    "GasPricingResolver",
    "ReceiptPoller",
    "ConfirmationWatcher",
    "LocalSigner",
]

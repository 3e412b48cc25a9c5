from .constants import NodeContext, get_private_key_from_env
from .rpc import HttpRpcClient
from .pricing import GasPricingResolver, needs_pricing
from .receipts import ReceiptPoller
from .confirmations import ConfirmationWatcher
from .signatures import LocalSigner

__all__ = [
    "NodeContext",
    "get_private_key_from_env",
    "HttpRpcClient",
    "GasPricingResolver",
    "needs_pricing",
    "ReceiptPoller",
    "ConfirmationWatcher",
    "LocalSigner",
]

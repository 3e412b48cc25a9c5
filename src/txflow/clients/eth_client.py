"""
Ethereum JSON-RPC Client

Bundles an HTTP transport, the node context and a submission pipeline
behind one object, for applications that talk to a single node.
"""

import logging
from typing import Any, Dict, Optional, Union

import httpx

from ..adapters.bases import BlockIdentifier
from ..adapters.evm.constants import NodeContext
from ..adapters.evm.rpc import HttpRpcClient
from ..adapters.evm.signatures import LocalSigner
from ..engine.executors import SubmissionPipeline, TransactionHandle
from ..schemas.transactions import Receipt, SignedTransactionBytes, SubmitOptions, TransactionRequest

logger = logging.getLogger(__name__)


class EthClient:
    """
    Async client for one EVM node.

    Owns an HttpRpcClient and a SubmissionPipeline sharing the same
    NodeContext. Can be used as an async context manager, which closes the
    HTTP transport on exit.

    Usage:
        ```python
        async with EthClient("http://127.0.0.1:8545") as client:
            handle = client.send_transaction({"from": sender, "to": recipient, "value": 1})
            handle.on("confirmation", lambda e: print(e.confirmations))
            receipt = await handle
        ```
    """

    def __init__(
        self,
        rpc_url: Optional[str] = None,
        context: Optional[NodeContext] = None,
        signer: Optional[LocalSigner] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        **overrides
    ):
        """
        Initialize the client.

        Args:
            rpc_url: Node endpoint; falls back to TXFLOW_RPC_URL when no
                ``context`` is given.
            context: Explicit node context; takes precedence over ``rpc_url``
                and ``overrides``.
            signer: Optional local signer for unsigned requests.
            http_client: Optional pre-built httpx.AsyncClient for the transport.
            **overrides: NodeContext fields used when building the context
                from the environment.

        Raises:
            ConfigurationError: If no RPC URL can be resolved.
        """
        self.context = context or NodeContext.from_env(rpc_url, **overrides)
        self.rpc = HttpRpcClient(self.context, client=http_client)
        self.pipeline = SubmissionPipeline(self.rpc, self.context, signer=signer)
        logger.debug("EthClient ready for %s", self.context.rpc_url)

    @property
    def signer(self) -> Optional[LocalSigner]:
        return self.pipeline.signer

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    def send_transaction(
        self,
        request: Union[TransactionRequest, Dict[str, Any]],
        options: Optional[Union[SubmitOptions, Dict[str, Any]]] = None,
    ) -> TransactionHandle:
        """Submit an unsigned request; see SubmissionPipeline.submit."""
        return self.pipeline.send_transaction(request, options)

    def send_signed_transaction(
        self,
        signed: Union[SignedTransactionBytes, bytes, bytearray, str],
        options: Optional[Union[SubmitOptions, Dict[str, Any]]] = None,
    ) -> TransactionHandle:
        """Submit pre-signed bytes; see SubmissionPipeline.submit."""
        return self.pipeline.send_signed_transaction(signed, options)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_block_number(self) -> int:
        return await self.rpc.get_block_number()

    async def get_balance(self, address: str, block: Optional[BlockIdentifier] = None) -> int:
        return await self.rpc.get_balance(address, block)

    async def get_gas_price(self) -> int:
        return await self.rpc.get_gas_price()

    async def get_transaction_receipt(self, tx_hash: str) -> Optional[Receipt]:
        return await self.rpc.get_transaction_receipt(tx_hash)

    async def get_transaction_count(self, address: str, block: Optional[BlockIdentifier] = None) -> int:
        return await self.rpc.get_transaction_count(address, block)

    async def get_chain_id(self) -> int:
        return await self.rpc.get_chain_id()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def aclose(self) -> None:
        await self.rpc.aclose()

    async def __aenter__(self) -> "EthClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

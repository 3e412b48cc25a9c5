"""
Abstract Base Class for JSON-RPC Clients

Defines the interface every node transport must implement and the typed
helpers the submission pipeline builds on. A concrete client only has to
provide ``call``; everything else is expressed in terms of it.

Core Classes:
    - BaseRpcClient: ``call(method, params)`` plus typed helpers

Implementations:
    - txflow.adapters.evm.rpc.HttpRpcClient: JSON-RPC over HTTP (httpx)
    - Test doubles that script ``call`` results
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Union

from ..engine.exceptions import TransportError
from ..schemas.bases import ensure_hex
from ..schemas.formatters import BLOCK_SCHEMA, format_value
from ..schemas.transactions import Receipt, SignedTransactionBytes, TransactionRequest


BlockIdentifier = Union[int, str]

# JSON-RPC method names
SEND_RAW_TRANSACTION = "eth_sendRawTransaction"
SEND_TRANSACTION = "eth_sendTransaction"
GET_TRANSACTION_RECEIPT = "eth_getTransactionReceipt"
GET_BLOCK_NUMBER = "eth_blockNumber"
GET_BLOCK_BY_NUMBER = "eth_getBlockByNumber"
GET_MAX_PRIORITY_FEE = "eth_maxPriorityFeePerGas"
GET_GAS_PRICE = "eth_gasPrice"
GET_TRANSACTION_COUNT = "eth_getTransactionCount"
GET_CHAIN_ID = "eth_chainId"
GET_BALANCE = "eth_getBalance"
ESTIMATE_GAS = "eth_estimateGas"


class BaseRpcClient(ABC):
    """
    Abstract JSON-RPC client.

    Clients are stateless apart from read-only configuration and are safe
    to share between any number of concurrent submissions. They never
    retry: every failure surfaces to the caller as a TransportError.

    Key Responsibilities:
    1. call: Issue one named remote call with positional parameters
    2. Typed helpers: Encode arguments and decode results for the calls the
       submission pipeline depends on

    Example Implementation:
        class ScriptedClient(BaseRpcClient):
            async def call(self, method, params):
                return self.responses[method]
    """

    default_block: str = "latest"

    @abstractmethod
    async def call(self, method: str, params: List[Any]) -> Any:
        """
        Issue a JSON-RPC call and return its ``result`` member.

        Args:
            method: RPC method name (e.g., "eth_blockNumber")
            params: Positional parameters

        Returns:
            The decoded ``result`` value, which may be None.

        Raises:
            TransportError: If the call fails for any reason, including a
                JSON-RPC error object returned by the node.
        """
        pass

    # ------------------------------------------------------------------
    # Result decoding
    # ------------------------------------------------------------------

    @staticmethod
    def _quantity(method: str, result: Any) -> int:
        try:
            quantity = format_value("uint", result)
        except ValueError as e:
            raise TransportError(f"Malformed {method} result: {result!r}", rpc_method=method) from e
        if quantity is None:
            raise TransportError(f"Empty {method} result", rpc_method=method)
        return quantity

    @staticmethod
    def _hash(method: str, result: Any) -> str:
        try:
            return ensure_hex(result, "transaction hash").lower()
        except ValueError as e:
            raise TransportError(f"Malformed {method} result: {result!r}", rpc_method=method) from e

    def _block_param(self, block: Optional[BlockIdentifier]) -> str:
        if block is None:
            return self.default_block
        if isinstance(block, int):
            return hex(block)
        return block

    # ------------------------------------------------------------------
    # Typed helpers
    # ------------------------------------------------------------------

    async def send_transaction(self, request: TransactionRequest) -> str:
        """Broadcast an unsigned request for the node to sign; returns the hash."""
        result = await self.call(SEND_TRANSACTION, [request.to_rpc_dict()])
        return self._hash(SEND_TRANSACTION, result)

    async def send_raw_transaction(self, signed: SignedTransactionBytes) -> str:
        """Broadcast pre-signed bytes; returns the hash."""
        result = await self.call(SEND_RAW_TRANSACTION, [signed.to_hex()])
        return self._hash(SEND_RAW_TRANSACTION, result)

    async def get_transaction_receipt(self, tx_hash: str) -> Optional[Receipt]:
        """
        Fetch the receipt of ``tx_hash``.

        Returns:
            Optional[Receipt]: None while the transaction is not yet included.

        Raises:
            TransportError: On call failure or a malformed receipt payload.
        """
        result = await self.call(GET_TRANSACTION_RECEIPT, [tx_hash])
        if result is None:
            return None
        try:
            return Receipt.from_rpc(result)
        except ValueError as e:
            raise TransportError(
                f"Malformed {GET_TRANSACTION_RECEIPT} result for {tx_hash}",
                rpc_method=GET_TRANSACTION_RECEIPT,
            ) from e

    async def get_block_number(self) -> int:
        result = await self.call(GET_BLOCK_NUMBER, [])
        return self._quantity(GET_BLOCK_NUMBER, result)

    async def get_block(self, block: Optional[BlockIdentifier] = None) -> Optional[Dict[str, Any]]:
        """
        Fetch a block header (transactions as hashes) with integer quantities.

        Args:
            block: Block number or tag; defaults to ``default_block``.

        Returns:
            Optional[Dict[str, Any]]: The block, or None if the node does not know it.
        """
        result = await self.call(GET_BLOCK_BY_NUMBER, [self._block_param(block), False])
        if result is None:
            return None
        try:
            return format_value(BLOCK_SCHEMA, result)
        except ValueError as e:
            raise TransportError(f"Malformed {GET_BLOCK_BY_NUMBER} result", rpc_method=GET_BLOCK_BY_NUMBER) from e

    async def get_gas_price(self) -> int:
        result = await self.call(GET_GAS_PRICE, [])
        return self._quantity(GET_GAS_PRICE, result)

    async def get_max_priority_fee(self) -> int:
        result = await self.call(GET_MAX_PRIORITY_FEE, [])
        return self._quantity(GET_MAX_PRIORITY_FEE, result)

    async def get_transaction_count(self, address: str, block: Optional[BlockIdentifier] = None) -> int:
        result = await self.call(GET_TRANSACTION_COUNT, [address, self._block_param(block)])
        return self._quantity(GET_TRANSACTION_COUNT, result)

    async def get_balance(self, address: str, block: Optional[BlockIdentifier] = None) -> int:
        result = await self.call(GET_BALANCE, [address, self._block_param(block)])
        return self._quantity(GET_BALANCE, result)

    async def get_chain_id(self) -> int:
        result = await self.call(GET_CHAIN_ID, [])
        return self._quantity(GET_CHAIN_ID, result)

    async def estimate_gas(self, request: TransactionRequest) -> int:
        result = await self.call(ESTIMATE_GAS, [request.to_rpc_dict()])
        return self._quantity(ESTIMATE_GAS, result)

"""
JSON-RPC over HTTP

Async transport for EVM node JSON-RPC built on httpx. Each call posts one
JSON-RPC 2.0 envelope and returns its ``result``; every failure becomes a
TransportError. There is no retry logic here: retrying is a caller policy.
"""

import itertools
import logging
from typing import Any, List, Optional

import httpx

from ...engine.exceptions import TransportError
from ..bases import BaseRpcClient
from .constants import NodeContext

logger = logging.getLogger(__name__)


class HttpRpcClient(BaseRpcClient):
    """
    JSON-RPC client for a single node endpoint.

    Safe to share between concurrent submissions: the only mutable state is
    the request id counter, and ids only need to be unique per connection.

    Usage:
        ```python
        async with HttpRpcClient(NodeContext(rpc_url="http://127.0.0.1:8545")) as rpc:
            block = await rpc.get_block_number()
        ```
    """

    def __init__(
        self,
        context: NodeContext,
        client: Optional[httpx.AsyncClient] = None,
        **kwargs
    ):
        """
        Initialize the client for ``context.rpc_url``.

        Args:
            context: Node context supplying the URL, timeout and default block.
            client: Optional pre-built httpx.AsyncClient (e.g. with a mock transport).
                When given, the caller keeps ownership and ``aclose`` leaves it open.
            **kwargs: Extra httpx.AsyncClient arguments used when ``client`` is None.
        """
        self.context = context
        self.default_block = context.default_block
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=context.request_timeout, **kwargs)
        self._ids = itertools.count(1)

    async def call(self, method: str, params: List[Any]) -> Any:
        """
        Post a JSON-RPC request and return its ``result`` member.

        Args:
            method: RPC method name (e.g., "eth_getTransactionReceipt")
            params: Positional parameters

        Returns:
            The ``result`` member of the response (None is a valid result).

        Raises:
            TransportError: On connection failure, HTTP error status, invalid
                JSON, a response without ``result``, or a JSON-RPC error object.
        """
        request_id = next(self._ids)
        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params,
            "id": request_id,
        }
        logger.debug("RPC -> %s id=%s params=%r", method, request_id, params)

        try:
            response = await self._client.post(self.context.rpc_url, json=payload)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise TransportError(
                f"RPC {method} failed with HTTP {e.response.status_code}",
                rpc_method=method,
            ) from e
        except httpx.HTTPError as e:
            raise TransportError(f"RPC {method} failed: {e}", rpc_method=method) from e

        try:
            data = response.json()
        except ValueError as e:
            raise TransportError(f"RPC {method} returned invalid JSON", rpc_method=method) from e

        if not isinstance(data, dict):
            raise TransportError(f"RPC {method} returned a non-object response", rpc_method=method)

        if data.get("error") is not None:
            error = data["error"]
            if isinstance(error, dict):
                raise TransportError(
                    f"RPC error: {error.get('message', error)}",
                    rpc_method=method,
                    code=error.get("code"),
                    data=error.get("data"),
                )
            raise TransportError(f"RPC error: {error}", rpc_method=method)

        if data.get("id") != request_id:
            raise TransportError(
                f"RPC {method} response id {data.get('id')!r} does not match request id {request_id}",
                rpc_method=method,
            )

        if "result" not in data:
            raise TransportError(f"RPC {method} response has no result", rpc_method=method)

        logger.debug("RPC <- %s id=%s", method, request_id)
        return data["result"]

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "HttpRpcClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

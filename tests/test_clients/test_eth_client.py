"""
EthClient Test Suite

End-to-end runs of the client facade against an in-memory JSON-RPC node
served through httpx.MockTransport.
"""

import asyncio
import json

import httpx
import pytest

from mocks import (
    MOCK_PRIVATE_KEY,
    MOCK_RECIPIENT,
    MOCK_RPC_URL,
    MOCK_SENDER,
    MOCK_SIGNED_RAW,
    MOCK_TX_HASH,
    make_block_payload,
    make_context,
    make_receipt_payload,
)
from txflow.adapters.evm.signatures import LocalSigner
from txflow.clients import EthClient
from txflow.engine.exceptions import ConfigurationError
from txflow.engine.executors import PipelineState


class FakeNode:
    """Minimal JSON-RPC node: one mined transaction, receipt after ``pending_polls`` misses."""

    def __init__(self, pending_polls=1, base_fee=None):
        self.pending_polls = pending_polls
        self.base_fee = base_fee
        self.height = 10
        self.methods = []

    def result_for(self, method, params):
        if method == "eth_getBlockByNumber":
            return make_block_payload(self.height, base_fee=self.base_fee)
        if method == "eth_gasPrice":
            return "0x3b9aca00"
        if method == "eth_maxPriorityFeePerGas":
            return "0x1"
        if method in ("eth_sendTransaction", "eth_sendRawTransaction"):
            return MOCK_TX_HASH
        if method == "eth_getTransactionReceipt":
            if self.pending_polls > 0:
                self.pending_polls -= 1
                return None
            return make_receipt_payload(params[0], block_number=10)
        if method == "eth_blockNumber":
            self.height += 1
            return hex(self.height)
        if method == "eth_getTransactionCount":
            return "0x0"
        if method == "eth_chainId":
            return "0xaa36a7"
        if method == "eth_estimateGas":
            return "0x5208"
        if method == "eth_getBalance":
            return "0xde0b6b3a7640000"
        raise AssertionError(f"unexpected method {method}")

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        self.methods.append(body["method"])
        result = self.result_for(body["method"], body["params"])
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": result})

    def client(self, **kwargs):
        http = httpx.AsyncClient(transport=httpx.MockTransport(self.handler))
        return EthClient(context=make_context(), http_client=http, **kwargs), http


@pytest.mark.asyncio
async def test_send_transaction_end_to_end():
    node = FakeNode(pending_polls=2)
    client, http = node.client()
    events = []

    async with http:
        handle = client.send_transaction({"from": MOCK_SENDER, "to": MOCK_RECIPIENT, "value": 1})
        for tag in ("sending", "sent", "transactionHash", "receipt"):
            handle.on(tag, lambda event: events.append(event.tag.value))
        receipt = await handle

    assert receipt.transactionHash == MOCK_TX_HASH
    assert events == ["sending", "sent", "transactionHash", "receipt"]
    assert node.methods == [
        "eth_getBlockByNumber",
        "eth_gasPrice",
        "eth_sendTransaction",
        "eth_getTransactionReceipt",
        "eth_getTransactionReceipt",
        "eth_getTransactionReceipt",
    ]


@pytest.mark.asyncio
async def test_send_signed_transaction_with_confirmations():
    node = FakeNode(pending_polls=0)
    client, http = node.client()
    counts = []

    async with http:
        handle = client.send_signed_transaction(MOCK_SIGNED_RAW, {"confirmation_blocks": 3})
        handle.on("confirmation", lambda event: counts.append(event.confirmations))
        await handle
        for _ in range(200):
            if handle.state is not PipelineState.WATCHING_CONFIRMATIONS:
                break
            await asyncio.sleep(0.01)

    assert counts == [1, 2, 3]
    assert "eth_getBlockByNumber" not in node.methods


@pytest.mark.asyncio
async def test_local_signer_sends_raw():
    node = FakeNode(pending_polls=0, base_fee=10)
    client, http = node.client(signer=LocalSigner(MOCK_PRIVATE_KEY))

    async with http:
        await client.send_transaction({"to": MOCK_RECIPIENT, "value": 1})

    assert client.signer.address == MOCK_SENDER
    assert "eth_sendRawTransaction" in node.methods
    assert "eth_sendTransaction" not in node.methods


@pytest.mark.asyncio
async def test_queries_delegate_to_the_node():
    node = FakeNode(pending_polls=0)
    client, http = node.client()

    async with http:
        assert await client.get_block_number() == 11
        assert await client.get_balance(MOCK_SENDER) == 10**18
        assert await client.get_gas_price() == 10**9
        assert await client.get_transaction_count(MOCK_SENDER) == 0
        assert await client.get_chain_id() == 11155111
        receipt = await client.get_transaction_receipt(MOCK_TX_HASH)

    assert receipt.blockNumber == 10


@pytest.mark.asyncio
async def test_context_manager_closes_owned_transport(monkeypatch):
    monkeypatch.setenv("TXFLOW_RPC_URL", MOCK_RPC_URL)

    async with EthClient(poll_interval=0.5) as client:
        assert client.context.rpc_url == MOCK_RPC_URL
        assert client.context.poll_interval == 0.5
        http = client.rpc._client

    assert http.is_closed


def test_missing_url_is_a_configuration_error(monkeypatch):
    monkeypatch.delenv("TXFLOW_RPC_URL", raising=False)
    with pytest.raises(ConfigurationError):
        EthClient()

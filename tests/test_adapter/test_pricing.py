"""
Gas Pricing Test Suite

Fee-market and legacy resolution, caller-set fields and failure handling.
"""

import pytest

from mocks import MOCK_RECIPIENT, MockRpcClient, make_block_payload
from txflow.adapters.evm.pricing import GasPricingResolver, needs_pricing
from txflow.engine.exceptions import PricingError, TransportError
from txflow.schemas.transactions import TransactionRequest


GWEI = 10**9


def test_needs_pricing():
    assert needs_pricing(TransactionRequest(to=MOCK_RECIPIENT))
    assert needs_pricing(TransactionRequest(maxFeePerGas=1))
    assert not needs_pricing(TransactionRequest(to=MOCK_RECIPIENT), skip_pricing=True)
    assert not needs_pricing(TransactionRequest(gasPrice=1))
    assert not needs_pricing(TransactionRequest(maxFeePerGas=2, maxPriorityFeePerGas=1))


class TestFeeMarket:

    @pytest.mark.asyncio
    async def test_fills_priority_fee_and_fee_cap(self):
        rpc = MockRpcClient()
        rpc.script("eth_getBlockByNumber", make_block_payload(base_fee=30 * GWEI))
        rpc.script("eth_maxPriorityFeePerGas", hex(2 * GWEI))

        priced = await GasPricingResolver(rpc).resolve(TransactionRequest(to=MOCK_RECIPIENT))

        assert priced.maxPriorityFeePerGas == 2 * GWEI
        assert priced.maxFeePerGas == 62 * GWEI
        assert priced.gasPrice is None
        assert priced.pricing_mode() == "fee_market"
        assert rpc.params_of("eth_getBlockByNumber") == [["latest", False]]

    @pytest.mark.asyncio
    async def test_caller_fee_cap_is_kept(self):
        rpc = MockRpcClient()
        rpc.script("eth_getBlockByNumber", make_block_payload(base_fee=30 * GWEI))
        rpc.script("eth_maxPriorityFeePerGas", hex(2 * GWEI))

        priced = await GasPricingResolver(rpc).resolve(TransactionRequest(maxFeePerGas=100 * GWEI))

        assert priced.maxFeePerGas == 100 * GWEI
        assert priced.maxPriorityFeePerGas == 2 * GWEI

    @pytest.mark.asyncio
    async def test_fee_multiplier_is_configurable(self):
        rpc = MockRpcClient()
        rpc.script("eth_getBlockByNumber", make_block_payload(base_fee=10))
        rpc.script("eth_maxPriorityFeePerGas", "0x1")

        priced = await GasPricingResolver(rpc, fee_multiplier=3).resolve(TransactionRequest())

        assert priced.maxFeePerGas == 31

    @pytest.mark.asyncio
    async def test_partial_pair_on_legacy_chain_fails(self):
        rpc = MockRpcClient()
        rpc.script("eth_getBlockByNumber", make_block_payload())

        with pytest.raises(PricingError, match="base fee"):
            await GasPricingResolver(rpc).resolve(TransactionRequest(maxPriorityFeePerGas=1))


class TestLegacy:

    @pytest.mark.asyncio
    async def test_fills_gas_price_only(self):
        rpc = MockRpcClient()
        rpc.script("eth_getBlockByNumber", make_block_payload())
        rpc.script("eth_gasPrice", hex(5 * GWEI))

        request = TransactionRequest(to=MOCK_RECIPIENT, value=1)
        priced = await GasPricingResolver(rpc).resolve(request)

        assert priced.gasPrice == 5 * GWEI
        assert priced.maxFeePerGas is None
        assert priced.maxPriorityFeePerGas is None
        assert request.gasPrice is None
        assert "eth_maxPriorityFeePerGas" not in rpc.methods()


@pytest.mark.asyncio
async def test_complete_request_is_returned_without_queries():
    rpc = MockRpcClient()
    request = TransactionRequest(gasPrice=1)

    assert await GasPricingResolver(rpc).resolve(request) is request
    assert rpc.calls == []


class TestFailures:

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "method",
        ["eth_getBlockByNumber", "eth_gasPrice"],
    )
    async def test_query_failure_becomes_pricing_error(self, method):
        cause = TransportError("unavailable", rpc_method=method)
        rpc = MockRpcClient()
        rpc.set_default("eth_getBlockByNumber", make_block_payload())
        rpc.script(method, cause)

        with pytest.raises(PricingError) as excinfo:
            await GasPricingResolver(rpc).resolve(TransactionRequest())

        assert excinfo.value.__cause__ is cause

    @pytest.mark.asyncio
    async def test_priority_fee_failure_becomes_pricing_error(self):
        rpc = MockRpcClient()
        rpc.script("eth_getBlockByNumber", make_block_payload(base_fee=1))
        rpc.script("eth_maxPriorityFeePerGas", TransportError("method not found", code=-32601))

        with pytest.raises(PricingError):
            await GasPricingResolver(rpc).resolve(TransactionRequest())

    @pytest.mark.asyncio
    @pytest.mark.parametrize("bad_price", [None, "-0x1", "cheap"])
    async def test_unusable_gas_price_becomes_pricing_error(self, bad_price):
        rpc = MockRpcClient()
        rpc.script("eth_getBlockByNumber", make_block_payload())
        rpc.script("eth_gasPrice", bad_price)

        with pytest.raises(PricingError):
            await GasPricingResolver(rpc).resolve(TransactionRequest())

    @pytest.mark.asyncio
    async def test_missing_latest_block_becomes_pricing_error(self):
        rpc = MockRpcClient()
        rpc.script("eth_getBlockByNumber", None)

        with pytest.raises(PricingError):
            await GasPricingResolver(rpc).resolve(TransactionRequest())

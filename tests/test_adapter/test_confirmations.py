"""
Confirmation Watcher Test Suite

Counting from the chain height, stop conditions and weak ownership.
"""

import asyncio
import gc

import pytest

from mocks import MockRpcClient, make_receipt_payload
from txflow.adapters.evm.confirmations import ConfirmationWatcher
from txflow.engine.exceptions import TransportError
from txflow.schemas.transactions import Receipt


RECEIPT = Receipt.from_rpc(make_receipt_payload(block_number=100))


class Recorder:
    """Owner whose bound methods receive the watcher callbacks."""

    def __init__(self):
        self.counts = []
        self.blocks = []
        self.errors = []
        self.stopped = []

    async def on_confirmation(self, confirmations, block_number):
        self.counts.append(confirmations)
        self.blocks.append(block_number)

    async def on_error(self, error):
        self.errors.append(error)

    def on_stopped(self, watcher):
        self.stopped.append(watcher)


def make_watcher(rpc, recorder, **kwargs):
    return ConfirmationWatcher(
        rpc,
        RECEIPT,
        recorder.on_confirmation,
        on_error=recorder.on_error,
        interval=0.01,
        on_stopped=recorder.on_stopped,
        **kwargs
    )


async def wait_stopped(watcher, timeout=1.0):
    async def _wait():
        while watcher.running:
            await asyncio.sleep(0.005)
    await asyncio.wait_for(_wait(), timeout)


class TestCounting:

    @pytest.mark.asyncio
    async def test_every_count_is_reported_once(self):
        rpc = MockRpcClient()
        rpc.script("eth_blockNumber", hex(100), hex(103), hex(103), hex(106))
        recorder = Recorder()
        watcher = make_watcher(rpc, recorder, max_confirmations=6).start()

        await wait_stopped(watcher)

        assert recorder.counts == [1, 2, 3, 4, 5, 6]
        assert recorder.blocks == [101, 102, 103, 104, 105, 106]
        assert watcher.last_count == 6
        assert recorder.stopped == [watcher]

    @pytest.mark.asyncio
    async def test_backwards_height_reports_nothing(self):
        rpc = MockRpcClient()
        rpc.script("eth_blockNumber", hex(102), hex(99), hex(101), hex(103))
        recorder = Recorder()
        watcher = make_watcher(rpc, recorder, max_confirmations=3).start()

        await wait_stopped(watcher)

        assert recorder.counts == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_height_beyond_limit_is_capped(self):
        rpc = MockRpcClient()
        rpc.script("eth_blockNumber", hex(150))
        recorder = Recorder()
        watcher = make_watcher(rpc, recorder, max_confirmations=3).start()

        await wait_stopped(watcher)

        assert recorder.counts == [1, 2, 3]
        assert len(rpc.calls) == 1

    @pytest.mark.asyncio
    async def test_start_from_resumes_after_last_count(self):
        rpc = MockRpcClient()
        rpc.script("eth_blockNumber", hex(105))
        recorder = Recorder()
        watcher = make_watcher(rpc, recorder, max_confirmations=5, start_from=3).start()

        await wait_stopped(watcher)

        assert recorder.counts == [4, 5]


class TestStopping:

    @pytest.mark.asyncio
    async def test_cancel_stops_a_sleeping_watch(self):
        rpc = MockRpcClient()
        rpc.set_default("eth_blockNumber", hex(101))
        recorder = Recorder()
        watcher = make_watcher(rpc, recorder).start()

        await asyncio.sleep(0.03)
        watcher.cancel()
        await wait_stopped(watcher)

        assert watcher.cancelled
        assert recorder.counts == [1]
        assert recorder.stopped == [watcher]
        with pytest.raises(RuntimeError):
            watcher.start()

    @pytest.mark.asyncio
    async def test_error_is_reported_once_and_ends_the_watch(self):
        failure = TransportError("node went away", rpc_method="eth_blockNumber")
        rpc = MockRpcClient()
        rpc.script("eth_blockNumber", hex(101), failure)
        recorder = Recorder()
        watcher = make_watcher(rpc, recorder).start()

        await wait_stopped(watcher)

        assert recorder.counts == [1]
        assert recorder.errors == [failure]
        assert len(rpc.calls) == 2

    @pytest.mark.asyncio
    async def test_collected_owner_ends_the_watch(self):
        rpc = MockRpcClient()
        rpc.set_default("eth_blockNumber", hex(101))
        recorder = Recorder()
        watcher = make_watcher(rpc, recorder).start()
        await asyncio.sleep(0.02)

        del recorder
        gc.collect()
        await wait_stopped(watcher)

        assert not watcher.running

    @pytest.mark.asyncio
    async def test_start_twice_is_rejected(self):
        rpc = MockRpcClient()
        rpc.set_default("eth_blockNumber", hex(100))
        watcher = make_watcher(rpc, Recorder()).start()

        with pytest.raises(RuntimeError):
            watcher.start()
        watcher.cancel()
        await wait_stopped(watcher)


@pytest.mark.parametrize("kwargs", [{"interval": 0}, {"max_confirmations": 0}])
def test_invalid_settings_are_rejected(kwargs):
    with pytest.raises(ValueError):
        ConfirmationWatcher(MockRpcClient(), RECEIPT, lambda count, block: None, **kwargs)

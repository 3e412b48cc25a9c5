import asyncio
import logging

from txflow.clients import EthClient
from txflow.adapters.evm.signatures import LocalSigner
from txflow.engine.events import ConfirmationEvent, ReceiptEvent, TransactionHashEvent
from txflow.engine.executors import PipelineState

rpc_url = "http://127.0.0.1:8545"  # Replace with your node endpoint
wpk = "0xxxx"  # Replace with a funded test key, or set TXFLOW_PRIVATE_KEY

logging.basicConfig(level=logging.INFO)


def on_hash(event: TransactionHashEvent):
    print(f"Broadcast: {event.tx_hash}")


async def on_receipt(event: ReceiptEvent):
    print(f"Mined in block {event.receipt.blockNumber} (success: {event.receipt.is_success()})")


def on_confirmation(event: ConfirmationEvent):
    print(f"Confirmation {event.confirmations} at block {event.block_number}")


async def main():
    async with EthClient(rpc_url, signer=LocalSigner(wpk), confirmation_blocks=3) as client:
        handle = client.send_transaction({
            "to": "0x1234567890123456789012345678901234567890",
            "value": 10**15,
        })
        handle.on("transactionHash", on_hash).on("receipt", on_receipt).on("confirmation", on_confirmation)

        receipt = await handle

        # Keep the loop alive until the watcher reports the last confirmation
        while handle.state is PipelineState.WATCHING_CONFIRMATIONS:
            await asyncio.sleep(1)
        return receipt


if __name__ == "__main__":
    receipt = asyncio.run(main())
    print("Receipt:", receipt.to_canonical_json())

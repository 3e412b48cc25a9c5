"""
Local Transaction Signing

In-process signing of unsigned transaction requests with ``eth_account``.
The signer fills the fields a node would otherwise fill for
``eth_sendTransaction`` (nonce, chain id, gas limit) and produces
``SignedTransactionBytes`` for ``eth_sendRawTransaction``.

No key material ever leaves the process; the node only sees the raw
signed bytes.
"""

import logging
from typing import Optional

from eth_account import Account
from web3 import AsyncWeb3

from ...engine.exceptions import ConfigurationError, TransactionValidationError
from ...schemas.transactions import SignedTransactionBytes, TransactionRequest
from ..bases import BaseRpcClient
from .constants import get_private_key_from_env

logger = logging.getLogger(__name__)


class LocalSigner:
    """
    Signs transaction requests with a locally held private key.

    Attributes:
        account: The ``eth_account`` LocalAccount derived from the key.

    Example:
        signer = LocalSigner("0x4c08...")
        request = await signer.fill(request, rpc)
        signed = signer.sign(request)
    """

    def __init__(self, private_key: Optional[str] = None):
        """
        Initialize the signer.

        Args:
            private_key: Hex private key. Falls back to TXFLOW_PRIVATE_KEY.

        Raises:
            ConfigurationError: If no key is available or the key is malformed.
        """
        resolved = private_key if private_key else get_private_key_from_env()
        if not resolved:
            raise ConfigurationError(
                "Private key not provided. Either pass 'private_key' or set the "
                "'TXFLOW_PRIVATE_KEY' environment variable."
            )
        try:
            self.account = Account.from_key(resolved)
        except (ValueError, TypeError) as e:
            raise ConfigurationError(f"Invalid private key: {e}") from e

    @property
    def address(self) -> str:
        """Checksummed address of the signing account."""
        return AsyncWeb3.to_checksum_address(self.account.address)

    def _check_sender(self, request: TransactionRequest) -> None:
        if request.sender is not None and request.sender.lower() != self.address.lower():
            raise TransactionValidationError(
                f"Request sender {request.sender} does not match signing account {self.address}"
            )

    async def fill(self, request: TransactionRequest, rpc: BaseRpcClient) -> TransactionRequest:
        """
        Complete a request for local signing.

        ``from`` is set to the signing account; ``nonce`` comes from the
        pending transaction count, ``chainId`` from ``eth_chainId`` and
        ``gas`` from ``eth_estimateGas``. Fields the caller already set are
        left alone.

        Args:
            request: Priced request (gasPrice or the fee-market pair set).
            rpc: RPC client used for the queries.

        Returns:
            TransactionRequest: The completed request.

        Raises:
            TransactionValidationError: If ``from`` names another account.
            TransportError: If any query fails.
        """
        self._check_sender(request)
        request = request.with_fields(sender=self.address)

        updates = {}
        if request.nonce is None:
            updates["nonce"] = await rpc.get_transaction_count(self.address, "pending")
        if request.chainId is None:
            updates["chainId"] = await rpc.get_chain_id()
        if request.gas is None:
            updates["gas"] = await rpc.estimate_gas(request)

        if updates:
            logger.debug("Filled %s for local signing", ", ".join(sorted(updates)))
            request = request.with_fields(**updates)
        return request

    def sign(self, request: TransactionRequest) -> SignedTransactionBytes:
        """
        Sign a completed request.

        Args:
            request: Request with nonce, gas and pricing set.

        Returns:
            SignedTransactionBytes: The raw signed transaction.

        Raises:
            TransactionValidationError: If the request is incomplete or names
                another sender.
        """
        self._check_sender(request)
        missing = [name for name in ("nonce", "gas") if getattr(request, name) is None]
        if not request.has_complete_pricing():
            missing.append("gasPrice or maxPriorityFeePerGas/maxFeePerGas")
        if missing:
            raise TransactionValidationError(f"Cannot sign incomplete transaction; missing {', '.join(missing)}")

        tx = request.to_signable_dict()
        try:
            if tx.get("to") is not None:
                tx["to"] = AsyncWeb3.to_checksum_address(tx["to"])
            signed = self.account.sign_transaction(tx)
        except (ValueError, TypeError) as e:
            raise TransactionValidationError(f"Failed to sign transaction: {e}") from e
        return SignedTransactionBytes.from_bytes(signed.raw_transaction)

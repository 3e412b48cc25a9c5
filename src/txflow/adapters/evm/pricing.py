"""
Gas pricing resolution for unsigned transaction requests.

The network is probed through the latest block: a ``baseFeePerGas`` field
means fee-market pricing (priority fee + fee cap), its absence means legacy
``gasPrice`` pricing. Only fields the caller left unset are filled, and the
other pricing mode is never touched.
"""

import logging
from typing import Optional

from ...engine.exceptions import PricingError
from ...schemas.transactions import TransactionRequest
from ..bases import BaseRpcClient
from .constants import DEFAULT_FEE_MULTIPLIER

logger = logging.getLogger(__name__)


def needs_pricing(request: TransactionRequest, skip_pricing: bool = False) -> bool:
    """
    Decide whether pricing resolution must run before broadcast.

    Args:
        request: The unsigned request.
        skip_pricing: Caller opted out of automatic pricing.

    Returns:
        bool: True when pricing is enabled and neither ``gasPrice`` nor the
        complete fee-market pair is set.
    """
    return not skip_pricing and not request.has_complete_pricing()


def _usable(name: str, value: Optional[int]) -> int:
    if not isinstance(value, int) or isinstance(value, bool) or value < 0:
        raise PricingError(f"Node returned an unusable {name}: {value!r}")
    return value


class GasPricingResolver:
    """
    Fills unset fee fields of a TransactionRequest from current network pricing.

    Attributes:
        rpc: Shared RPC client used for pricing queries.
        fee_multiplier: Base fee multiplier for the derived ``maxFeePerGas``.

    Example:
        resolver = GasPricingResolver(rpc)
        priced = await resolver.resolve(request)
    """

    def __init__(self, rpc: BaseRpcClient, fee_multiplier: int = DEFAULT_FEE_MULTIPLIER):
        self.rpc = rpc
        self.fee_multiplier = fee_multiplier

    async def resolve(self, request: TransactionRequest) -> TransactionRequest:
        """
        Return a copy of ``request`` with one pricing mode fully populated.

        Fee-market networks get ``maxPriorityFeePerGas`` from
        ``eth_maxPriorityFeePerGas`` and ``maxFeePerGas = baseFee * multiplier
        + priorityFee``; legacy networks get ``gasPrice`` from ``eth_gasPrice``.
        Caller-set fields are kept as they are.

        Args:
            request: Request lacking complete pricing.

        Returns:
            TransactionRequest: The priced request.

        Raises:
            PricingError: If any pricing query fails or returns an unusable value.
        """
        if request.has_complete_pricing():
            return request

        try:
            block = await self.rpc.get_block("latest")
        except Exception as e:
            raise PricingError(f"Failed to probe latest block for pricing: {e}") from e

        if block is None:
            raise PricingError("Node returned no latest block while probing pricing")

        base_fee = block.get("baseFeePerGas")
        if base_fee is None and request.pricing_mode() is None:
            return await self._resolve_legacy(request)

        # Half a fee-market pair: the missing half needs a base fee.
        if base_fee is None:
            raise PricingError(
                "Network does not report a base fee; cannot derive the missing fee-market field"
            )
        return await self._resolve_fee_market(request, _usable("baseFeePerGas", base_fee))

    async def _resolve_legacy(self, request: TransactionRequest) -> TransactionRequest:
        try:
            gas_price = await self.rpc.get_gas_price()
        except Exception as e:
            raise PricingError(f"Failed to query gas price: {e}") from e

        priced = request.with_fields(gasPrice=_usable("gasPrice", gas_price))
        logger.debug("Resolved legacy pricing gasPrice=%s", priced.gasPrice)
        return priced

    async def _resolve_fee_market(self, request: TransactionRequest, base_fee: int) -> TransactionRequest:
        priority_fee = request.maxPriorityFeePerGas
        if priority_fee is None:
            try:
                priority_fee = await self.rpc.get_max_priority_fee()
            except Exception as e:
                raise PricingError(f"Failed to query max priority fee: {e}") from e
            priority_fee = _usable("maxPriorityFeePerGas", priority_fee)

        max_fee = request.maxFeePerGas
        if max_fee is None:
            max_fee = base_fee * self.fee_multiplier + priority_fee

        priced = request.with_fields(maxPriorityFeePerGas=priority_fee, maxFeePerGas=max_fee)
        logger.debug(
            "Resolved fee-market pricing maxPriorityFeePerGas=%s maxFeePerGas=%s",
            priced.maxPriorityFeePerGas,
            priced.maxFeePerGas,
        )
        return priced

"""
Client module for EVM nodes.

Provides a single object bundling the JSON-RPC transport, node context and
transaction submission pipeline.
"""

from .eth_client import EthClient

__all__ = ["EthClient"]

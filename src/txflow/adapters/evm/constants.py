"""
EVM Node Configuration

Provides the explicit node context shared by the RPC client and the
submission pipeline, environment-aware loading of that context, and the
polling and pricing defaults.

Environment Variables:
    - TXFLOW_RPC_URL: JSON-RPC endpoint (required by NodeContext.from_env)
    - TXFLOW_DEFAULT_BLOCK: Default block tag for state queries
    - TXFLOW_REQUEST_TIMEOUT: HTTP request timeout in seconds
    - TXFLOW_POLL_INTERVAL: Seconds between receipt poll attempts
    - TXFLOW_POLL_TIMEOUT: Seconds before receipt polling gives up
    - TXFLOW_CONFIRMATION_BLOCKS: Confirmations after which watching stops
    - TXFLOW_PRIVATE_KEY: Private key for local signing
"""

import os
from typing import Dict, Optional

import dotenv
from pydantic import BaseModel, ConfigDict, Field

from ...engine.exceptions import ConfigurationError

dotenv.load_dotenv()


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

DEFAULT_BLOCK = "latest"
DEFAULT_REQUEST_TIMEOUT = 60.0
DEFAULT_POLL_INTERVAL = 1.0
#: Receipt polling gives up after this many seconds (50 blocks at 15 s).
DEFAULT_POLL_TIMEOUT = 750.0
DEFAULT_CONFIRMATION_INTERVAL = 1.0
DEFAULT_CONFIRMATION_BLOCKS = 24
#: maxFeePerGas = base fee * multiplier + priority fee.
DEFAULT_FEE_MULTIPLIER = 2


class NodeContext(BaseModel):
    """
    Read-only configuration shared by every pipeline talking to one node.

    Passed explicitly to the RPC client and the submission pipeline instead
    of living in module-level mutable state.

    Attributes:
        rpc_url: JSON-RPC endpoint URL.
        default_block: Block tag used by state queries when none is given.
        request_timeout: HTTP request timeout in seconds.
        poll_interval: Seconds between receipt poll attempts.
        poll_timeout: Seconds after which receipt polling fails with a timeout.
        max_poll_attempts: Optional cap on receipt poll attempts.
        confirmation_interval: Seconds between block height checks while watching.
        confirmation_blocks: Confirmations after which watching stops; None watches until cancelled.
        fee_multiplier: Base fee multiplier used to derive maxFeePerGas.

    Example:
        context = NodeContext(rpc_url="http://127.0.0.1:8545", poll_interval=0.5)
        context = NodeContext.from_env()
    """

    model_config = ConfigDict(frozen=True)

    rpc_url: str = Field(..., min_length=1, description="JSON-RPC endpoint URL")
    default_block: str = Field(DEFAULT_BLOCK, description="Default block tag")
    request_timeout: float = Field(DEFAULT_REQUEST_TIMEOUT, gt=0, description="HTTP timeout (seconds)")
    poll_interval: float = Field(DEFAULT_POLL_INTERVAL, gt=0, description="Receipt poll interval (seconds)")
    poll_timeout: float = Field(DEFAULT_POLL_TIMEOUT, gt=0, description="Receipt poll deadline (seconds)")
    max_poll_attempts: Optional[int] = Field(None, ge=1, description="Receipt poll attempt cap")
    confirmation_interval: float = Field(
        DEFAULT_CONFIRMATION_INTERVAL, gt=0, description="Block height check interval (seconds)"
    )
    confirmation_blocks: Optional[int] = Field(
        DEFAULT_CONFIRMATION_BLOCKS, ge=1, description="Confirmations after which watching stops"
    )
    fee_multiplier: int = Field(DEFAULT_FEE_MULTIPLIER, ge=1, description="Base fee multiplier for maxFeePerGas")

    @classmethod
    def from_env(cls, rpc_url: Optional[str] = None, **overrides) -> "NodeContext":
        """
        Build a context from TXFLOW_* environment variables.

        Explicit arguments take precedence over the environment.

        Args:
            rpc_url: Endpoint URL overriding TXFLOW_RPC_URL.
            **overrides: Any other NodeContext field.

        Returns:
            NodeContext: The resolved context.

        Raises:
            ConfigurationError: If no RPC URL is configured or a numeric
                variable cannot be parsed.
        """
        url = rpc_url or os.getenv("TXFLOW_RPC_URL")
        if not url:
            raise ConfigurationError(
                "RPC URL not provided. Either pass 'rpc_url' or set the "
                "'TXFLOW_RPC_URL' environment variable."
            )

        values: Dict[str, object] = {"rpc_url": url}
        default_block = os.getenv("TXFLOW_DEFAULT_BLOCK")
        if default_block:
            values["default_block"] = default_block

        for field_name, env_name, cast in (
            ("request_timeout", "TXFLOW_REQUEST_TIMEOUT", float),
            ("poll_interval", "TXFLOW_POLL_INTERVAL", float),
            ("poll_timeout", "TXFLOW_POLL_TIMEOUT", float),
            ("confirmation_blocks", "TXFLOW_CONFIRMATION_BLOCKS", int),
        ):
            raw = os.getenv(env_name)
            if raw is None or raw == "":
                continue
            try:
                values[field_name] = cast(raw)
            except ValueError as e:
                raise ConfigurationError(f"Invalid value for {env_name}: {raw!r}") from e

        values.update(overrides)
        return cls(**values)


def get_private_key_from_env() -> Optional[str]:
    """
    Load the local signing key from the TXFLOW_PRIVATE_KEY environment variable.

    Returns:
        str: Private key from environment, or None if not configured

    Note:
        The private key should be stored securely in environment variables
        and never committed to version control.
    """
    return os.getenv("TXFLOW_PRIVATE_KEY")

"""
Node Context Test Suite

Explicit construction, defaults and environment loading.
"""

import pytest
from pydantic import ValidationError

from txflow.adapters.evm.constants import (
    DEFAULT_CONFIRMATION_BLOCKS,
    DEFAULT_POLL_TIMEOUT,
    NodeContext,
    get_private_key_from_env,
)
from txflow.engine.exceptions import ConfigurationError


ENV_VARS = (
    "TXFLOW_RPC_URL",
    "TXFLOW_DEFAULT_BLOCK",
    "TXFLOW_REQUEST_TIMEOUT",
    "TXFLOW_POLL_INTERVAL",
    "TXFLOW_POLL_TIMEOUT",
    "TXFLOW_CONFIRMATION_BLOCKS",
    "TXFLOW_PRIVATE_KEY",
)


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_defaults():
    context = NodeContext(rpc_url="http://127.0.0.1:8545")

    assert context.default_block == "latest"
    assert context.poll_timeout == DEFAULT_POLL_TIMEOUT == 750.0
    assert context.confirmation_blocks == DEFAULT_CONFIRMATION_BLOCKS == 24
    assert context.fee_multiplier == 2
    assert context.max_poll_attempts is None


def test_context_is_read_only():
    context = NodeContext(rpc_url="http://127.0.0.1:8545")
    with pytest.raises(ValidationError):
        context.poll_interval = 5


@pytest.mark.parametrize("field", ["poll_interval", "poll_timeout", "request_timeout", "confirmation_interval"])
def test_non_positive_durations_are_rejected(field):
    with pytest.raises(ValidationError):
        NodeContext(rpc_url="http://127.0.0.1:8545", **{field: 0})


def test_from_env_reads_every_variable(clean_env):
    clean_env.setenv("TXFLOW_RPC_URL", "http://node:8545")
    clean_env.setenv("TXFLOW_DEFAULT_BLOCK", "finalized")
    clean_env.setenv("TXFLOW_REQUEST_TIMEOUT", "5")
    clean_env.setenv("TXFLOW_POLL_INTERVAL", "0.5")
    clean_env.setenv("TXFLOW_POLL_TIMEOUT", "30")
    clean_env.setenv("TXFLOW_CONFIRMATION_BLOCKS", "12")

    context = NodeContext.from_env()

    assert context.rpc_url == "http://node:8545"
    assert context.default_block == "finalized"
    assert context.request_timeout == 5.0
    assert context.poll_interval == 0.5
    assert context.poll_timeout == 30.0
    assert context.confirmation_blocks == 12


def test_explicit_arguments_override_environment(clean_env):
    clean_env.setenv("TXFLOW_RPC_URL", "http://node:8545")
    clean_env.setenv("TXFLOW_POLL_INTERVAL", "0.5")

    context = NodeContext.from_env("http://other:8545", poll_interval=2.0)

    assert context.rpc_url == "http://other:8545"
    assert context.poll_interval == 2.0


def test_missing_url_is_a_configuration_error(clean_env):
    with pytest.raises(ConfigurationError, match="TXFLOW_RPC_URL"):
        NodeContext.from_env()


def test_unparseable_number_is_a_configuration_error(clean_env):
    clean_env.setenv("TXFLOW_RPC_URL", "http://node:8545")
    clean_env.setenv("TXFLOW_POLL_TIMEOUT", "soon")

    with pytest.raises(ConfigurationError, match="TXFLOW_POLL_TIMEOUT"):
        NodeContext.from_env()


def test_private_key_from_env(clean_env):
    assert get_private_key_from_env() is None
    clean_env.setenv("TXFLOW_PRIVATE_KEY", "0xabc")
    assert get_private_key_from_env() == "0xabc"

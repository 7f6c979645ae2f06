"""Shared test fixtures."""

import pytest

from levee.llm.client import LLMClient
from levee.llm.config import LLMClientConfig


@pytest.fixture()
def config():
    """Config with an explicit plaintext gRPC address (no discovery)."""
    return LLMClientConfig(api_key="lv-test-key", grpc_address="llm.test:9090")


@pytest.fixture()
def make_client(config):
    """Build an LLMClient wired to a given channel factory."""

    def _make(channel_factory, client_config=None, http_client=None):
        return LLMClient(
            client_config or config,
            http_client=http_client,
            channel_factory=channel_factory,
        )

    return _make

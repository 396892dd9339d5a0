"""Shared pytest fixtures for Fluxgate tests."""

from __future__ import annotations

from collections.abc import Generator
from typing import Any
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from fluxgate.core.client_manager import ClientManager
from fluxgate.core.config import GatewayConfig

TEST_API_KEY = "test-secret-key"

SAMPLE_IMAGE_DATA = {
    "path": "/tmp/x.png",
    "url": "http://x/x.png",
    "size": None,
    "orig_name": "image.webp",
    "mime_type": None,
    "is_stream": False,
    "meta": {"_type": "gradio.FileData"},
}


class FakeRemote:
    """Stand-in for the Gradio Space.

    ``connect`` returns a fresh client per call; every client shares the
    same ``predict`` mock so calls can be counted across reconnects.

    Attributes:
        connect_calls: Number of times ``connect`` was invoked.
        connect_error: If set, ``connect`` raises it.
        predict: Mock used as ``client.predict`` on every handle.
    """

    def __init__(self) -> None:
        self.connect_calls = 0
        self.connect_error: Exception | None = None
        self.predict = MagicMock(return_value=(dict(SAMPLE_IMAGE_DATA), 42))
        self.clients: list[Any] = []

    def connect(self, config: GatewayConfig) -> Any:
        self.connect_calls += 1
        if self.connect_error is not None:
            raise self.connect_error
        client = MagicMock(name=f"client-{self.connect_calls}")
        client.predict = self.predict
        self.clients.append(client)
        return client


@pytest.fixture
def test_config(monkeypatch) -> GatewayConfig:
    """Create a configuration isolated from the environment and ``.env``.

    Returns:
        GatewayConfig with a known API key and a short timeout.
    """
    for name in ("FLUX_API_KEY", "FLUX_MODEL_ID", "FLUX_API_NAME", "FLUX_REQUEST_TIMEOUT"):
        monkeypatch.delenv(name, raising=False)
    return GatewayConfig(api_key=TEST_API_KEY, request_timeout=5.0, _env_file=None)


@pytest.fixture
def fake_remote() -> FakeRemote:
    return FakeRemote()


@pytest.fixture
def client_manager(test_config: GatewayConfig, fake_remote: FakeRemote) -> ClientManager:
    """ClientManager wired to the fake remote instead of gradio_client."""
    return ClientManager(test_config, connect=fake_remote.connect)


@pytest.fixture
def test_client(
    monkeypatch,
    test_config: GatewayConfig,
    fake_remote: FakeRemote,
) -> Generator[TestClient, None, None]:
    """TestClient running the app's lifespan against the fake remote.

    The module-level ``config`` is swapped before startup so the lifespan
    reads the test API key; the manager it creates is then replaced with one
    using the fake connect primitive.
    """
    import fluxgate.api.main as main_module

    monkeypatch.setattr(main_module, "config", test_config)
    with TestClient(main_module.app) as client:
        main_module.app.state.client_manager = ClientManager(
            test_config, connect=fake_remote.connect
        )
        yield client


@pytest.fixture
def api_key() -> str:
    return TEST_API_KEY


@pytest.fixture
def auth_headers(api_key: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {api_key}"}

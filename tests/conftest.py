"""Pytest fixtures and configuration for ms365 tests.

Provides common fixtures for configuration isolation, a GraphClient with a
mocked HTTP transport, and helpers for building fake Graph responses.
"""

from collections.abc import Generator
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest

from ms365.auth.msal_auth import reset_shared_token_caches
from ms365.client import reset_default_factory
from ms365.config import reset_config
from ms365.config_schema import AppConfig, AuthConfig
from ms365.graph.client import GraphClient

ENV_VARS = (
    "CLIMICROSOFT365_TENANT",
    "CLIMICROSOFT365_AADAPPID",
    "MS365_USE_CLI_APP_ID",
    "MS365_CONFIG_PATH",
)


@pytest.fixture(autouse=True)
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Keep the developer's environment and ~/.ms365 out of every test."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr("ms365.config.DEFAULT_CONFIG_PATH", tmp_path / "no-such-config.yaml")
    reset_config()
    reset_default_factory()
    reset_shared_token_caches()
    yield
    reset_config()
    reset_default_factory()
    reset_shared_token_caches()


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch: pytest.MonkeyPatch) -> None:
    """Make retry backoff instantaneous."""
    monkeypatch.setattr("ms365.graph.client.time.sleep", lambda _seconds: None)


@pytest.fixture
def app_config(tmp_path: Path) -> AppConfig:
    """Return an AppConfig with a temporary token cache."""
    return AppConfig(
        auth=AuthConfig(
            tenant="contoso",
            token_cache_path=str(tmp_path / "token_cache.json"),
        )
    )


def make_response(
    status_code: int = 200,
    json_data: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
    content: bytes | None = None,
) -> MagicMock:
    """Create a fake requests.Response."""
    response = MagicMock()
    response.status_code = status_code
    response.headers = headers or {}
    response.json.return_value = json_data if json_data is not None else {}
    response.text = str(json_data or "")
    if content is not None:
        response.content = content
    else:
        response.content = b"" if status_code == 204 else b"{...}"
    return response


def graph_error(status_code: int, code: str = "itemNotFound", message: str = "Not found") -> MagicMock:
    """Create a fake Graph error response."""
    return make_response(status_code, {"error": {"code": code, "message": message}})


@pytest.fixture
def mock_auth() -> MagicMock:
    """Return a mock GraphAuth that always has a token."""
    auth = MagicMock()
    auth.tenant = "contoso"
    auth.client_id = "11111111-2222-3333-4444-555555555555"
    auth.scopes = ["https://graph.microsoft.com/.default"]
    auth.get_access_token.return_value = "test-token"
    return auth


@pytest.fixture
def graph_client(mock_auth: MagicMock) -> GraphClient:
    """Return a real GraphClient whose HTTP session is a MagicMock.

    Queue responses with graph_client.session.request.side_effect = [...].
    """
    client = GraphClient(mock_auth, retry_delays=[0.0])
    client.session = MagicMock()
    return client


@pytest.fixture
def mock_client() -> MagicMock:
    """Return a mock GraphClient for resource object tests."""
    return MagicMock(spec=GraphClient)


def requested_urls(client: GraphClient) -> list[str]:
    """URLs of every request sent through a graph_client fixture."""
    return [call.kwargs["url"] for call in client.session.request.call_args_list]

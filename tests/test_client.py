"""Tests for client construction, configuration and id qualification."""

import os
from unittest.mock import MagicMock, patch

import pytest

from mts_client.client import Client
from mts_client.config import DEFAULT_BASE_URL, Settings
from mts_client.errors import ValidationError


class TestClientConstruction:
    """Test Client credential validation."""

    def test_missing_username(self) -> None:
        with pytest.raises(ValidationError, match="username is required"):
            Client("token", "")

    def test_missing_token(self) -> None:
        with pytest.raises(ValidationError, match="access token is required"):
            Client("", "alice")

    def test_valid_credentials(self) -> None:
        client = Client("token", "alice")

        assert client.username == "alice"
        assert client.access_token == "token"
        assert client.base_url == DEFAULT_BASE_URL
        assert client.timeout is None

    def test_no_request_on_construction(self) -> None:
        session = MagicMock()

        Client("token", "alice", session=session)

        session.request.assert_not_called()

    def test_base_url_trailing_slash(self) -> None:
        client = Client("token", "alice", base_url="http://localhost:8080/")
        assert client.base_url == "http://localhost:8080"

    def test_repr_hides_token(self) -> None:
        client = Client("secret-token", "alice")
        assert "secret-token" not in repr(client)


class TestClientFromEnv:
    """Test building a client from environment variables."""

    def test_credentials_from_env(self) -> None:
        with patch.dict(
            os.environ,
            {"MAPBOX_ACCESS_TOKEN": "env-token", "MAPBOX_USERNAME": "env-user"},
            clear=True,
        ):
            client = Client.from_env()

        assert client.access_token == "env-token"
        assert client.username == "env-user"
        assert client.base_url == DEFAULT_BASE_URL

    def test_optional_settings(self) -> None:
        with patch.dict(
            os.environ,
            {
                "MAPBOX_ACCESS_TOKEN": "env-token",
                "MAPBOX_USERNAME": "env-user",
                "MTS_API_BASE_URL": "http://localhost:9000",
                "MTS_TIMEOUT": "2.5",
            },
            clear=True,
        ):
            client = Client.from_env()

        assert client.base_url == "http://localhost:9000"
        assert client.timeout == 2.5

    def test_missing_token(self) -> None:
        with patch.dict(os.environ, {"MAPBOX_USERNAME": "env-user"}, clear=True):
            with pytest.raises(ValidationError, match="MAPBOX_ACCESS_TOKEN"):
                Client.from_env()

    def test_missing_username(self) -> None:
        with patch.dict(os.environ, {"MAPBOX_ACCESS_TOKEN": "env-token"}, clear=True):
            with pytest.raises(ValidationError, match="MAPBOX_USERNAME"):
                Client.from_env()


class TestSettings:
    """Test Settings defaults and parsing."""

    def test_defaults(self) -> None:
        with patch.dict(os.environ, {}, clear=True):
            settings = Settings.from_env()

        assert settings.access_token == ""
        assert settings.username == ""
        assert settings.base_url == DEFAULT_BASE_URL
        assert settings.timeout is None
        assert settings.log_level == "WARNING"

    def test_invalid_timeout(self) -> None:
        with patch.dict(os.environ, {"MTS_TIMEOUT": "soon"}, clear=True):
            with pytest.raises(ValidationError, match="MTS_TIMEOUT"):
                Settings.from_env()


class TestQualify:
    """Test tileset id qualification."""

    def test_adds_username_prefix(self, client: Client) -> None:
        assert client.qualify("my-tileset") == "alice.my-tileset"

    def test_keeps_qualified_id(self, client: Client) -> None:
        assert client.qualify("alice.my-tileset") == "alice.my-tileset"

    def test_prefix_requires_dot(self, client: Client) -> None:
        assert client.qualify("alicetiles") == "alice.alicetiles"

    def test_empty(self, client: Client) -> None:
        with pytest.raises(ValidationError, match="tileset is required"):
            client.qualify("")

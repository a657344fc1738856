"""Tests for ScreepsHttpClient."""

from __future__ import annotations

from unittest.mock import MagicMock

import aiohttp
import pytest

from screeps_console.errors import (
    ScreepsAuthError,
    ScreepsCommandSendError,
    ScreepsConnectionError,
    ScreepsResponseError,
    ScreepsTimeout,
)
from screeps_console.http import ScreepsHttpClient, rotated_token

from .conftest import create_mock_response


class TestRotatedToken:
    """Tests for rotated token header lookup."""

    @pytest.mark.parametrize("name", ["X-Token", "x-token", "X-TOKEN"])
    def test_case_insensitive(self, name):
        assert rotated_token({name: "fresh"}) == "fresh"

    def test_missing_header(self):
        assert rotated_token({"Content-Type": "application/json"}) is None

    def test_empty_header(self):
        assert rotated_token({"X-Token": ""}) is None


class TestFetchIdentity:
    """Tests for the /api/auth/me identity lookup."""

    async def test_success(self, mock_session: MagicMock) -> None:
        """Test identity resolution sends the token header."""
        client = ScreepsHttpClient(mock_session, "screeps.com")
        mock_session.get.return_value = create_mock_response(
            json_data={"_id": "u1", "username": "someone"}
        )

        result = await client.fetch_identity("secret")

        assert result.user_id == "u1"
        assert result.token is None
        call_args = mock_session.get.call_args
        assert call_args.args[0] == "https://screeps.com/api/auth/me"
        assert call_args.kwargs["headers"] == {"X-Token": "secret"}
        assert call_args.kwargs["timeout"].total == 10

    async def test_rotated_token(self, mock_session: MagicMock) -> None:
        client = ScreepsHttpClient(mock_session)
        mock_session.get.return_value = create_mock_response(
            json_data={"_id": "u1"}, headers={"x-token": "rotated"}
        )

        result = await client.fetch_identity("secret")

        assert result.token == "rotated"

    async def test_missing_identity_raises_auth_error(
        self, mock_session: MagicMock
    ) -> None:
        client = ScreepsHttpClient(mock_session)
        mock_session.get.return_value = create_mock_response(json_data={"ok": 1})

        with pytest.raises(ScreepsAuthError, match="Failed to retrieve user ID"):
            await client.fetch_identity("secret")

    async def test_unauthorized_raises_auth_error(
        self, mock_session: MagicMock
    ) -> None:
        client = ScreepsHttpClient(mock_session)
        mock_session.get.return_value = create_mock_response(status=401)

        with pytest.raises(ScreepsAuthError, match="Token rejected"):
            await client.fetch_identity("bad")

    async def test_server_error_raises_response_error(
        self, mock_session: MagicMock
    ) -> None:
        client = ScreepsHttpClient(mock_session)
        mock_session.get.return_value = create_mock_response(status=502)

        with pytest.raises(ScreepsResponseError) as exc_info:
            await client.fetch_identity("secret")
        assert exc_info.value.status == 502

    async def test_invalid_json_raises_auth_error(
        self, mock_session: MagicMock
    ) -> None:
        client = ScreepsHttpClient(mock_session)
        response = create_mock_response()
        response.json.side_effect = ValueError("Expecting value")
        mock_session.get.return_value = response

        with pytest.raises(ScreepsAuthError, match="not valid JSON"):
            await client.fetch_identity("secret")

    async def test_timeout(self, mock_session: MagicMock) -> None:
        client = ScreepsHttpClient(mock_session)
        mock_session.get.side_effect = TimeoutError("Request timed out")

        with pytest.raises(ScreepsTimeout, match="Auth request timed out"):
            await client.fetch_identity("secret")

    async def test_client_error(self, mock_session: MagicMock) -> None:
        client = ScreepsHttpClient(mock_session)
        mock_session.get.side_effect = aiohttp.ClientError("Connection refused")

        with pytest.raises(ScreepsConnectionError, match="Auth request failed"):
            await client.fetch_identity("secret")


class TestSendConsoleCommand:
    """Tests for the /api/user/console command endpoint."""

    async def test_success(self, mock_session: MagicMock) -> None:
        """Test the command body carries expression and shard."""
        client = ScreepsHttpClient(mock_session, "screeps.com", timeout=3.0)
        mock_session.post.return_value = create_mock_response(json_data={"ok": 1})

        result = await client.send_console_command("secret", "Game.time", "shard2")

        assert result.token is None
        assert result.data == {"ok": 1}
        call_args = mock_session.post.call_args
        assert call_args.args[0] == "https://screeps.com/api/user/console"
        assert call_args.kwargs["json"] == {"expression": "Game.time", "shard": "shard2"}
        assert call_args.kwargs["headers"] == {"X-Token": "secret"}
        assert call_args.kwargs["timeout"].total == 3.0

    async def test_rotated_token(self, mock_session: MagicMock) -> None:
        client = ScreepsHttpClient(mock_session)
        mock_session.post.return_value = create_mock_response(
            json_data={"ok": 1}, headers={"X-Token": "next"}
        )

        result = await client.send_console_command("secret", "1+1", "shard3")

        assert result.token == "next"

    async def test_non_json_body(self, mock_session: MagicMock) -> None:
        client = ScreepsHttpClient(mock_session)
        response = create_mock_response()
        response.json.side_effect = ValueError("Expecting value")
        mock_session.post.return_value = response

        result = await client.send_console_command("secret", "1+1", "shard3")

        assert result.data == {}

    async def test_non_200_raises_command_send_error(
        self, mock_session: MagicMock
    ) -> None:
        client = ScreepsHttpClient(mock_session)
        mock_session.post.return_value = create_mock_response(status=429)

        with pytest.raises(ScreepsCommandSendError) as exc_info:
            await client.send_console_command("secret", "1+1", "shard3")
        assert exc_info.value.status == 429

    async def test_timeout(self, mock_session: MagicMock) -> None:
        client = ScreepsHttpClient(mock_session)
        mock_session.post.side_effect = TimeoutError()

        with pytest.raises(ScreepsTimeout, match="Console request timed out"):
            await client.send_console_command("secret", "1+1", "shard3")

    async def test_client_error(self, mock_session: MagicMock) -> None:
        client = ScreepsHttpClient(mock_session)
        mock_session.post.side_effect = aiohttp.ClientError("reset")

        with pytest.raises(ScreepsConnectionError, match="Console request failed"):
            await client.send_console_command("secret", "1+1", "shard3")

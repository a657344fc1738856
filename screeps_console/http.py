"""HTTP client for Screeps API endpoints."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import aiohttp

from .errors import (
    ScreepsAuthError,
    ScreepsCommandSendError,
    ScreepsConnectionError,
    ScreepsResponseError,
    ScreepsTimeout,
)

DEFAULT_HOST = "screeps.com"
TOKEN_HEADER = "X-Token"
AUTH_ME_PATH = "/api/auth/me"
CONSOLE_PATH = "/api/user/console"


@dataclass(frozen=True)
class ScreepsAuthResult:
    """Identity resolved from the auth endpoint."""

    user_id: str
    token: str | None = None


@dataclass(frozen=True)
class ScreepsCommandResult:
    """Acknowledgement of a delivered console command."""

    token: str | None = None
    data: dict[str, Any] = field(default_factory=dict)


def rotated_token(headers: Mapping[str, str]) -> str | None:
    """Return the rotated token header value, matched case-insensitively."""
    wanted = TOKEN_HEADER.lower()
    for name, value in headers.items():
        if name.lower() == wanted and value:
            return value
    return None


class ScreepsHttpClient:
    """HTTP client wrapper for the Screeps web API."""

    def __init__(
        self,
        session: aiohttp.ClientSession,
        host: str = DEFAULT_HOST,
        *,
        timeout: float = 10.0,
    ) -> None:
        self._session = session
        self._host = host
        self._timeout = timeout

    def _url(self, path: str) -> str:
        return f"https://{self._host}{path}"

    @staticmethod
    def _auth_headers(token: str) -> dict[str, str]:
        return {TOKEN_HEADER: token}

    async def fetch_identity(self, token: str) -> ScreepsAuthResult:
        """Resolve the user id owning ``token`` via /api/auth/me.

        Raises:
            ScreepsAuthError: Token rejected or response carries no user id.
            ScreepsResponseError: Any other non-200 response.
            ScreepsTimeout: Request timed out.
            ScreepsConnectionError: Network request failed.
        """
        url = self._url(AUTH_ME_PATH)
        try:
            async with self._session.get(
                url,
                headers=self._auth_headers(token),
                timeout=aiohttp.ClientTimeout(total=self._timeout),
            ) as resp:
                if resp.status in (401, 403):
                    raise ScreepsAuthError(f"Token rejected (HTTP {resp.status})")
                if resp.status != 200:
                    raise ScreepsResponseError(
                        resp.status, f"Auth request failed with HTTP {resp.status}"
                    )
                try:
                    data = await resp.json(content_type=None)
                except ValueError as err:
                    raise ScreepsAuthError("Auth response is not valid JSON") from err
                user_id = data.get("_id") if isinstance(data, dict) else None
                if not user_id:
                    raise ScreepsAuthError("Failed to retrieve user ID")
                return ScreepsAuthResult(
                    user_id=str(user_id), token=rotated_token(resp.headers)
                )
        except TimeoutError as err:
            raise ScreepsTimeout("Auth request timed out") from err
        except aiohttp.ClientError as err:
            raise ScreepsConnectionError("Auth request failed") from err

    async def send_console_command(
        self, token: str, expression: str, shard: str
    ) -> ScreepsCommandResult:
        """POST a console expression for evaluation on ``shard``.

        The evaluation result is not part of the response; it arrives later on
        the console channel.

        Raises:
            ScreepsCommandSendError: Non-200 response.
            ScreepsTimeout: Request timed out.
            ScreepsConnectionError: Network request failed.
        """
        url = self._url(CONSOLE_PATH)
        try:
            async with self._session.post(
                url,
                json={"expression": expression, "shard": shard},
                headers=self._auth_headers(token),
                timeout=aiohttp.ClientTimeout(total=self._timeout),
            ) as resp:
                if resp.status != 200:
                    raise ScreepsCommandSendError(
                        resp.status, f"Console request failed with HTTP {resp.status}"
                    )
                try:
                    data = await resp.json(content_type=None)
                except ValueError:
                    data = None
                return ScreepsCommandResult(
                    token=rotated_token(resp.headers),
                    data=data if isinstance(data, dict) else {},
                )
        except TimeoutError as err:
            raise ScreepsTimeout("Console request timed out") from err
        except aiohttp.ClientError as err:
            raise ScreepsConnectionError("Console request failed") from err

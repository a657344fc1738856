"""Console channel payload handling."""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

from .errors import ScreepsDecodeError

DEFAULT_SHARD = "shard3"
RESULT_PREFIX = "Result: "
ERROR_PREFIX = "Error: "


def format_result(value: Any) -> str:
    """Render an evaluation result as console text."""
    if isinstance(value, str):
        return value
    return json.dumps(value)


class ConsoleChannelHandler:
    """Turn console channel pushes into console lines and track the shard.

    Payload shape::

        {"shard": "shard0", "messages": {"log": [...], "results": [...]}}
        {"shard": "shard0", "error": "..."}
    """

    def __init__(
        self,
        emit: Callable[[str], None],
        *,
        default_shard: str = DEFAULT_SHARD,
    ) -> None:
        self._emit = emit
        self._active_shard = default_shard

    @property
    def active_shard(self) -> str:
        return self._active_shard

    def set_active_shard(self, shard: str) -> None:
        self._active_shard = shard

    def handle_payload(self, payload: Any) -> None:
        """Emit console lines for one channel payload.

        Raises:
            ScreepsDecodeError: If the payload is not a JSON object.
        """
        if not isinstance(payload, dict):
            raise ScreepsDecodeError("Console payload is not an object")

        shard = payload.get("shard")
        if shard:
            self._active_shard = str(shard)

        messages = payload.get("messages")
        if messages:
            if not isinstance(messages, dict):
                raise ScreepsDecodeError("Console messages is not an object")
            logs = messages.get("log") or []
            results = messages.get("results") or []
            if not isinstance(logs, list) or not isinstance(results, list):
                raise ScreepsDecodeError("Console log and results must be lists")
            for line in logs:
                self._emit(str(line))
            for result in results:
                self._emit(f"{RESULT_PREFIX}{format_result(result)}")
        elif payload.get("error"):
            self._emit(f"{ERROR_PREFIX}{payload['error']}")

"""Small helpers shared by every component that talks HTTP."""

from __future__ import annotations

import threading
from typing import Any

import httpx

from szczk_store._errors import Cancelled

_MAX_BODY_CHARS = 2048


def response_text(response: httpx.Response) -> str:
    """Return the (truncated) body text of a response for error reporting."""
    try:
        text = response.text
    except (httpx.ResponseNotRead, UnicodeDecodeError):
        return ""
    if len(text) > _MAX_BODY_CHARS:
        return text[:_MAX_BODY_CHARS] + "..."
    return text


def json_object(response: httpx.Response) -> dict[str, Any]:
    """Decode a JSON object body.

    :raises ValueError: If the body is not JSON or not an object.
    """
    data = response.json()
    if not isinstance(data, dict):
        raise ValueError(f"expected a JSON object, got {type(data).__name__}")
    return data


def raise_if_cancelled(*events: threading.Event | None, operation: str | None = None) -> None:
    """Raise :class:`Cancelled` if any of the given events is set.

    :raises Cancelled: If cancellation was requested.
    """
    for event in events:
        if event is not None and event.is_set():
            raise Cancelled("Operation cancelled", operation=operation)

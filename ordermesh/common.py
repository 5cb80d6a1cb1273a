"""Environment lookup, shared errors and JSON helpers."""

from __future__ import annotations

import json
import os
from typing import Any


class NoItemsError(ValueError):
    """An order arrived without any items."""

    def __init__(self, message: str = "items must have at least 1 item!") -> None:
        super().__init__(message)


class NoStockError(ValueError):
    """At least one requested item is not available in the quantity asked for."""

    def __init__(self, message: str = "some item is not in stock") -> None:
        super().__init__(message)


class MissingBodyError(ValueError):
    """A request carried no body to decode."""

    def __init__(self, message: str = "missing request body") -> None:
        super().__init__(message)


_HTML_SAFE = str.maketrans(
    {
        "<": "\\u003c",
        ">": "\\u003e",
        "&": "\\u0026",
        "\u2028": "\\u2028",
        "\u2029": "\\u2029",
    }
)


def env_string(key: str, fallback: str) -> str:
    """Return the environment variable ``key``, or ``fallback`` when it is unset."""
    return os.environ.get(key, fallback)


def read_json(body: Any) -> Any:
    """Decode the first JSON value from a request body (bytes, str or readable)."""
    if body is None:
        raise MissingBodyError()
    if hasattr(body, "read"):
        body = body.read()
    if isinstance(body, (bytes, bytearray)):
        body = bytes(body).decode("utf-8")
    value, _ = json.JSONDecoder().raw_decode(body.lstrip())
    return value


def _to_plain(value: Any) -> Any:
    if hasattr(value, "to_dict"):
        return value.to_dict()
    raise TypeError(f"{type(value).__name__} is not JSON serialisable")


def encode_json(value: Any) -> bytes:
    """Encode ``value`` as compact, HTML-safe JSON followed by a newline."""
    text = json.dumps(value, ensure_ascii=False, separators=(",", ":"), default=_to_plain)
    return (text.translate(_HTML_SAFE) + "\n").encode("utf-8")


def error_body(message: str) -> dict[str, str]:
    """The JSON object used to report an error to an HTTP client."""
    return {"error": message}
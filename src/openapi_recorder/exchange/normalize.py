"""Normalisation helpers for captured exchange data."""

import json
import re
from typing import Any

from openapi_recorder.errors import MalformedExchange

_PATH_PARAM = re.compile(r"/:([^:/]+)")
_INTEGER = re.compile(r"-?\d+")


def normalize_path(path: str) -> str:
    """Convert ``/users/:id`` style templates to ``/users/{id}``."""
    return _PATH_PARAM.sub(r"/{\1}", path)


def normalize_content_type(content_type: str | None) -> str | None:
    """Strip parameters such as ``; charset=utf-8`` from a media type."""
    if content_type is None:
        return None
    media_type = content_type.split(";", 1)[0].strip()
    return media_type or None


def is_json(content_type: str | None) -> bool:
    media_type = normalize_content_type(content_type)
    if not media_type:
        return False
    return media_type == "application/json" or media_type.endswith("+json")


def try_cast(value: Any) -> Any:
    """Convert an always-string parameter value to int when it is one."""
    if isinstance(value, str) and _INTEGER.fullmatch(value):
        return int(value)
    return value


def decode_body(body: Any, content_type: str | None) -> Any:
    """Return the structured value of a body.

    Already-decoded values pass through. Raw text is parsed when the media
    type is JSON; other text is kept as a string.

    Raises:
        MalformedExchange: If raw bytes are not UTF-8 or JSON text does not parse.
    """
    if isinstance(body, (bytes, bytearray)):
        try:
            body = body.decode("utf-8")
        except UnicodeDecodeError as e:
            raise MalformedExchange(f"body is not UTF-8 text: {e}") from e

    if not isinstance(body, str):
        return body
    if not body.strip():
        return None
    if not is_json(content_type):
        return body

    try:
        return json.loads(body)
    except json.JSONDecodeError as e:
        raise MalformedExchange(f"invalid JSON body ({content_type}): {e.msg} (line {e.lineno})") from e


def parameter_name(key: str, value: Any) -> tuple[str, Any]:
    """Flatten single-key nested query values: ``{"filter": {"name": "x"}}`` -> ``filter[name]``."""
    name = str(key)
    while isinstance(value, dict) and len(value) == 1:
        sub_key, value = next(iter(value.items()))
        name = f"{name}[{sub_key}]"
    return name, value


def normalize_example_key(name: str | None) -> str | None:
    """Turn a free-form example name into a key usable in an ``examples`` map."""
    if not name:
        return None
    key = re.sub(r"\W+", "_", name.strip().lower()).strip("_")
    return key or None

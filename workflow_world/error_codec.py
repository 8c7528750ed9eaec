"""Normalization of failure payloads coming from different backends."""

from __future__ import annotations

import json
import logging
from typing import Any, Mapping, Optional

from pydantic import BaseModel

logger = logging.getLogger(__name__)

UNKNOWN_ERROR_MESSAGE = "Unknown error"

_UNPARSEABLE = object()


class StructuredError(BaseModel):
    """Canonical representation of a run or step failure."""

    message: str
    stack: Optional[str] = None
    code: Optional[str] = None


def _optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    return value if isinstance(value, str) else str(value)


def _from_mapping(value: Mapping[str, Any]) -> StructuredError:
    message = value.get("message")
    return StructuredError(
        message=UNKNOWN_ERROR_MESSAGE if message is None else _optional_text(message),
        stack=_optional_text(value.get("stack")),
        code=_optional_text(value.get("code")),
    )


def _parse_json(text: str) -> Any:
    try:
        return json.loads(text)
    except ValueError:
        return _UNPARSEABLE


def _is_absent(value: Any) -> bool:
    return value is None or value == ""


def _text_of(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value)


def decode_error(error: Any, error_ref: Any = None) -> Optional[StructuredError]:
    """Decode a wire error into a :class:`StructuredError`.

    ``error_ref`` is an already dereferenced error object and wins over the
    inline ``error`` when both are present. ``None`` and ``""`` count as
    absent. Decoding never raises: values that cannot be interpreted degrade
    to a best-effort message.
    """
    source = error if _is_absent(error_ref) else error_ref

    if _is_absent(source):
        return None
    if isinstance(source, StructuredError):
        return source
    if isinstance(source, Mapping):
        return _from_mapping(source)
    if isinstance(source, str):
        parsed = _parse_json(source)
        if parsed is _UNPARSEABLE:
            logger.warning("Error payload is not JSON; using the raw text as message")
            return StructuredError(message=source)
        if isinstance(parsed, Mapping) and "message" in parsed:
            return _from_mapping(parsed)
        return StructuredError(message=_text_of(parsed))
    return StructuredError(message=str(source))


def encode_error(error: Optional[StructuredError]) -> Optional[str]:
    """Serialize an error for wire formats that carry it as a JSON string."""
    if error is None:
        return None
    return error.model_dump_json(exclude_none=True)


__all__ = [
    "StructuredError",
    "UNKNOWN_ERROR_MESSAGE",
    "decode_error",
    "encode_error",
]

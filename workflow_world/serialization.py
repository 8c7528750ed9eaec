"""Serialization boundary for workflow payloads.

Workflow values are encoded by the runtime into an opaque byte sequence before
they reach a World. Backends store and transport those bytes verbatim and never
look inside them.

Records written before payloads were versioned (``specVersion`` 1) carry an
arbitrary JSON value instead. Both forms are modelled as a tagged union so that
readers switch on ``format`` rather than probing the value::

    payload = validate_serialized_data(raw)
    if payload.format == "binary":
        handle_bytes(payload.data)
    else:
        handle_legacy(payload.value)

On JSON wires (HTTP bodies, local record files) binary payloads travel as
base64 strings inside records whose ``specVersion`` is 2 or higher.
"""

from __future__ import annotations

import base64
import binascii
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    SerializationInfo,
    ValidationInfo,
    model_serializer,
)

from .errors import SerializationError, ValidationError

SPEC_VERSION_LEGACY = 1
SPEC_VERSION_CURRENT = 2

SerializedData = bytes

_BYTE_TYPES = (bytes, bytearray, memoryview)


class BinaryData(BaseModel):
    """Current-format payload: opaque bytes from the runtime's encoder."""

    model_config = ConfigDict(frozen=True)

    format: Literal["binary"] = "binary"
    data: bytes

    @model_serializer(mode="plain")
    def _serialize(self, info: SerializationInfo) -> Any:
        if info.mode_is_json():
            return encode_bytes(self.data)
        return self.data


class LegacyData(BaseModel):
    """Pre-versioning payload: any JSON value, read-only compatibility data."""

    model_config = ConfigDict(frozen=True)

    format: Literal["legacy"] = "legacy"
    value: Any = None

    @model_serializer(mode="plain")
    def _serialize(self) -> Any:
        return self.value


def is_current_format(value: Any) -> bool:
    """Return ``True`` when ``value`` is a raw byte sequence."""
    return isinstance(value, _BYTE_TYPES) or isinstance(value, BinaryData)


def validate_binary(value: Any, field: str = "data") -> SerializedData:
    """Validate ``value`` against the current binary format."""
    if isinstance(value, BinaryData):
        return value.data
    if isinstance(value, _BYTE_TYPES):
        return bytes(value)
    raise ValidationError(
        f"{field} must be serialized bytes, got {type(value).__name__}", field=field
    )


def validate_legacy(value: Any) -> LegacyData:
    """Wrap ``value`` as legacy data. Any shape is accepted."""
    if isinstance(value, LegacyData):
        return value
    return LegacyData(value=value)


def validate_serialized_data(value: Any) -> Union[BinaryData, LegacyData]:
    """Accept either payload form and return it tagged."""
    if isinstance(value, (BinaryData, LegacyData)):
        return value
    if is_current_format(value):
        return BinaryData(data=validate_binary(value))
    return validate_legacy(value)


def _coerce_payload(value: Any) -> Any:
    if value is None:
        return None
    return validate_serialized_data(value)


SerializedPayload = Annotated[
    Union[BinaryData, LegacyData], BeforeValidator(validate_serialized_data)
]
OptionalPayload = Annotated[
    Optional[Union[BinaryData, LegacyData]], BeforeValidator(_coerce_payload)
]


def require_current_format(value: Any, field: str) -> Optional[BinaryData]:
    """Validate a payload about to be written. New writes are always binary."""
    if value is None:
        return None
    return BinaryData(data=validate_binary(value, field=field))


def _require_binary_field(value: Any, info: ValidationInfo) -> Optional[BinaryData]:
    return require_current_format(value, info.field_name or "data")


# Payload accepted by write requests: bytes only, rejected otherwise.
WritePayload = Annotated[Optional[BinaryData], BeforeValidator(_require_binary_field)]


def encode_bytes(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def decode_bytes(text: str, field: str = "data") -> bytes:
    try:
        return base64.b64decode(text.encode("ascii"), validate=True)
    except (binascii.Error, UnicodeEncodeError) as exc:
        raise SerializationError(
            f"{field} is neither base64-encoded bytes nor a legacy payload"
        ) from exc


def decode_wire_payload(value: Any, spec_version: Optional[int], field: str) -> Any:
    """Turn a JSON wire value back into bytes when the record is versioned."""
    if value is None or (spec_version or SPEC_VERSION_LEGACY) < SPEC_VERSION_CURRENT:
        return value
    if isinstance(value, str):
        return decode_bytes(value, field=field)
    return value


__all__ = [
    "SPEC_VERSION_LEGACY",
    "SPEC_VERSION_CURRENT",
    "SerializedData",
    "BinaryData",
    "LegacyData",
    "SerializedPayload",
    "OptionalPayload",
    "WritePayload",
    "is_current_format",
    "validate_binary",
    "validate_legacy",
    "validate_serialized_data",
    "require_current_format",
    "encode_bytes",
    "decode_bytes",
    "decode_wire_payload",
]

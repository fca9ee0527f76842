"""Conversions between Python values and the string/bytes payloads SQS carries.

These helpers are shared by the producer (encoding bodies and attributes) and
by the consumer (decoding them back into the types a handler declares).
"""

import dataclasses
from collections.abc import Mapping, Set
from datetime import UTC, date, datetime, time
from decimal import Decimal
from enum import Enum
from functools import lru_cache
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, TypeAdapter, ValidationError
from pydantic_core import PydanticSerializationError, to_json

from sqstemplate.exceptions import BodyParseError

WireType = Literal["String", "Number"]

OMIT_EMPTY_MARKER = "omitempty"

_TRUE_LITERALS = frozenset({"1", "t", "T", "TRUE", "true", "True"})
_FALSE_LITERALS = frozenset({"0", "f", "F", "FALSE", "false", "False"})


def is_record(value: Any) -> bool:
    """Tells if the value is a record instance (a pydantic model or a dataclass)."""
    if isinstance(value, BaseModel):
        return True

    return dataclasses.is_dataclass(value) and not isinstance(value, type)


def is_composite(value: Any) -> bool:
    if is_record(value):
        return True

    return isinstance(value, Mapping | list | tuple | Set)


def record_field_count(value: Any) -> int:
    if isinstance(value, BaseModel):
        return len(type(value).model_fields)

    return len(dataclasses.fields(value))


def is_zero(value: Any) -> bool:
    """Tells if the value is meaningfully empty.

    This predicate is the single gate deciding if an attribute is encoded
    and if a decoded body is usable.
    """
    if value is None:
        return True

    if isinstance(value, bool):
        return not value

    if isinstance(value, int | float | Decimal | complex):
        return value == 0

    if isinstance(value, str | bytes | bytearray | memoryview):
        return len(value) == 0

    if is_record(value):
        return record_field_count(value) == 0

    if isinstance(value, Mapping | list | tuple | Set):
        return len(value) == 0

    return False


def detect_wire_type(value: Any) -> WireType | None:
    """Maps a value to the SQS data type it travels as.

    Returns None when the value has no textual representation, in which case
    the caller falls back to a binary payload.
    """
    if value is None:
        return None

    if isinstance(value, bool | str):
        return "String"

    if isinstance(value, int | float | Decimal):
        return "Number"

    if isinstance(value, datetime | date | time | UUID):
        return "String"

    if isinstance(value, Enum):
        return detect_wire_type(value.value)

    if is_composite(value):
        return "String"

    return None


def _quote(value: Any) -> str:
    return f'"{value}"'


def _to_json_text(value: Any) -> str:
    try:
        return to_json(value).decode("utf-8")
    except (PydanticSerializationError, TypeError, ValueError):
        return _quote(value)


def convert_to_string(value: Any) -> str:
    """Converts a value to its wire text. Never raises.

    Zero values produce an empty string so callers can drop them.
    """
    if is_zero(value):
        return ""

    if isinstance(value, Enum):
        return convert_to_string(value.value)

    if is_composite(value):
        return _to_json_text(value)

    if isinstance(value, bool):
        return "true" if value else "false"

    if isinstance(value, int):
        return str(value)

    if isinstance(value, float):
        return repr(value)

    if isinstance(value, Decimal):
        return str(value)

    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.isoformat()

    if isinstance(value, date | time):
        return value.isoformat()

    if isinstance(value, str):
        return value

    if isinstance(value, bytes | bytearray | memoryview):
        return bytes(value).decode("utf-8", errors="replace")

    if isinstance(value, UUID):
        return str(value)

    return _quote(value)


def convert_to_bytes(value: Any) -> bytes:
    """Converts a value to a binary payload. Never raises; failures yield b''."""
    if value is None:
        return b""

    if isinstance(value, bytes | bytearray | memoryview):
        return bytes(value)

    if is_composite(value):
        try:
            return to_json(value)
        except (PydanticSerializationError, TypeError, ValueError):
            return b""

    if isinstance(value, str):
        return value.encode("utf-8")

    try:
        return to_json(value, fallback=str)
    except (PydanticSerializationError, TypeError, ValueError):
        return b""


def field_name_from_tag(tag: str | None) -> str:
    """Extracts the wire name from a tag like ``"trace_id,omitempty"``.

    An empty result tells the caller to use the declared field name instead.
    """
    if not tag:
        return ""

    name = tag.split(",")[0].strip()
    if name == OMIT_EMPTY_MARKER:
        return ""

    return name


@lru_cache(maxsize=256)
def get_type_adapter(target: Any) -> TypeAdapter[Any]:
    return TypeAdapter(target)


def _is_plain_number(raw: str) -> bool:
    # int() and float() accept digit separators and padding, the wire format does not.
    return bool(raw) and "_" not in raw and raw == raw.strip()


def _parse_int(raw: str) -> int | None:
    if not _is_plain_number(raw):
        return None

    try:
        return int(raw, 10)
    except ValueError:
        return None


def _parse_bool(raw: str) -> bool | None:
    if raw in _TRUE_LITERALS:
        return True

    if raw in _FALSE_LITERALS:
        return False

    return None


def _parse_float(raw: str) -> float | None:
    if not _is_plain_number(raw):
        return None

    try:
        return float(raw)
    except ValueError:
        return None


def _parse_timestamp(raw: str) -> datetime | None:
    # RFC3339 requires the date, the time and an offset.
    if "T" not in raw.upper():
        return None

    try:
        parsed = datetime.fromisoformat(raw.replace("z", "Z"))
    except ValueError:
        return None

    if parsed.tzinfo is None:
        return None

    return parsed


_SCALAR_PARSERS = (_parse_int, _parse_bool, _parse_float, _parse_timestamp)


def parse_string_to_typed(raw: str, target: Any = Any) -> Any:
    """Parses a wire string into a value assignable to ``target``.

    The attempts follow a fixed order: structured JSON decode, integer,
    boolean, float, RFC3339 timestamp and, finally, the raw string. The
    first candidate that validates against ``target`` wins; a candidate that
    parses but does not fit the target type falls through to the next one.

    Raises:
        BodyParseError: when no attempt produces a value of the target type.
    """
    adapter = get_type_adapter(target)

    try:
        return adapter.validate_json(raw)
    except (ValidationError, ValueError):
        pass

    for parser in _SCALAR_PARSERS:
        candidate = parser(raw)
        if candidate is None:
            continue

        try:
            return adapter.validate_python(candidate, strict=True)
        except ValidationError:
            continue

    # JSON mode keeps strings out of numeric fields but accepts them for dates, UUIDs and enums.
    try:
        return adapter.validate_json(to_json(raw), strict=True)
    except ValidationError as e:
        raise BodyParseError(f"sqs: could not parse {raw!r} into {target!r}") from e

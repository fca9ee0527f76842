"""Attribute codec: records and mappings to SQS message attributes, and back.

Records are pydantic models or dataclasses. Their fields are walked by a small
visitor that yields the wire name, the exclusion marker and the value:

* pydantic models use ``Field(alias=...)`` for the wire name and
  ``Field(exclude=True)`` to keep a field out of the attributes;
* dataclasses use a tag in the field metadata, ``field(metadata={"sqs": "name"})``,
  where ``"-"`` excludes the field and an empty name keeps the declared one.
"""

import dataclasses
import re
import typing
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ValidationError

from sqstemplate.codec.convert import (
    convert_to_bytes,
    convert_to_string,
    detect_wire_type,
    field_name_from_tag,
    get_type_adapter,
    is_record,
    is_zero,
    parse_string_to_typed,
)
from sqstemplate.datastructures import AttributeValue, MessageSystemAttributes, WireAttributes
from sqstemplate.exceptions import (
    BodyParseError,
    InvalidAttributeContainerError,
    InvalidTraceHeaderError,
)

FIELD_TAG_KEY = "sqs"
EXCLUDE_MARKER = "-"
TRACE_HEADER_ATTRIBUTE = "AWSTraceHeader"

_TRACE_ROOT_PATTERN = re.compile(r"^1-[0-9a-f]{8}-[0-9a-f]{24}$")
_TRACE_PARENT_PATTERN = re.compile(r"^[0-9a-f]{16}$")
_TRACE_SAMPLED_VALUES = frozenset({"0", "1", "?"})


@dataclass(frozen=True)
class RecordField:
    name: str
    wire_name: str
    excluded: bool
    annotation: Any = Any


def iter_record_schema(record_type: type) -> Iterator[RecordField]:
    """Walks the declared fields of a record type."""
    if isinstance(record_type, type) and issubclass(record_type, BaseModel):
        for name, info in record_type.model_fields.items():
            wire_name = info.alias or name
            yield RecordField(
                name=name,
                wire_name=info.serialization_alias or wire_name,
                excluded=info.exclude is True,
                annotation=info.annotation if info.annotation is not None else Any,
            )
        return

    try:
        hints = typing.get_type_hints(record_type)
    except (NameError, TypeError):
        hints = {}

    for field in dataclasses.fields(record_type):
        if field.name.startswith("_"):
            continue

        tag = field_name_from_tag(field.metadata.get(FIELD_TAG_KEY))
        yield RecordField(
            name=field.name,
            wire_name=tag or field.name,
            excluded=tag == EXCLUDE_MARKER,
            annotation=hints.get(field.name, Any),
        )


def _record_items(record: Any) -> Iterator[tuple[str, Any]]:
    for field in iter_record_schema(type(record)):
        if field.excluded:
            continue

        value = getattr(record, field.name, None)
        if is_zero(value):
            continue

        yield field.wire_name, value


def _mapping_items(mapping: Mapping[Any, Any]) -> Iterator[tuple[str, Any]]:
    for key, value in mapping.items():
        name = convert_to_string(key)
        if not name or is_zero(value):
            continue

        yield name, value


def to_wire_value(value: Any) -> AttributeValue | None:
    """Encodes a single value, or returns None when there is nothing to send."""
    data_type = detect_wire_type(value)
    if data_type is not None:
        string_value = convert_to_string(value)
        if not string_value:
            return None

        return AttributeValue(data_type=data_type, string_value=string_value)

    binary_value = convert_to_bytes(value)
    if not binary_value:
        return None

    return AttributeValue(data_type="Binary", binary_value=binary_value)


def encode_attributes(value: Any) -> WireAttributes | None:
    """Converts a mapping or a record into SQS message attributes.

    Zero values are skipped. An empty result is returned as None so the
    transport omits the field entirely.

    Raises:
        InvalidAttributeContainerError: when the value is neither a mapping nor a record.
    """
    if value is None:
        return None

    if isinstance(value, Mapping):
        items = _mapping_items(value)
    elif is_record(value):
        items = _record_items(value)
    else:
        raise InvalidAttributeContainerError(
            "sqs: message attributes must be a mapping or a record, "
            f"got {type(value).__name__}"
        )

    result: WireAttributes = {}
    for name, item in items:
        wire_value = to_wire_value(item)
        if wire_value is None or wire_value.is_empty():
            continue

        result[name] = wire_value

    return result or None


def validate_trace_header(header: str) -> None:
    """Checks the X-Ray trace header syntax, e.g.

    ``Root=1-5759e988-bd862e3fe1be46a994272793;Parent=53995c3f42cd8ad8;Sampled=1``
    """
    fields: dict[str, str] = {}
    for part in header.split(";"):
        key, separator, value = part.strip().partition("=")
        if not separator or not key or key in fields:
            raise InvalidTraceHeaderError(f"sqs: malformed trace header segment {part!r}")
        fields[key] = value

    root = fields.get("Root", "")
    if not _TRACE_ROOT_PATTERN.match(root):
        raise InvalidTraceHeaderError(f"sqs: invalid trace header root {root!r}")

    parent = fields.get("Parent")
    if parent is not None and not _TRACE_PARENT_PATTERN.match(parent):
        raise InvalidTraceHeaderError(f"sqs: invalid trace header parent {parent!r}")

    sampled = fields.get("Sampled")
    if sampled is not None and sampled not in _TRACE_SAMPLED_VALUES:
        raise InvalidTraceHeaderError(f"sqs: invalid trace header sampled flag {sampled!r}")


def encode_system_attributes(
    system_attributes: MessageSystemAttributes | None,
) -> WireAttributes | None:
    """Encodes the producer system attributes. Malformed headers are a hard error."""
    if system_attributes is None or not system_attributes.aws_trace_header:
        return None

    header = system_attributes.aws_trace_header
    validate_trace_header(header)
    return {TRACE_HEADER_ATTRIBUTE: AttributeValue(data_type="String", string_value=header)}


def is_wire_attributes_type(target: Any) -> bool:
    return target is WireAttributes or target == WireAttributes


def _usable_string(value: AttributeValue) -> str:
    if value.string_value:
        return value.string_value

    if value.binary_value:
        return value.binary_value.decode("utf-8", errors="replace")

    return ""


def _declared_fields(target: Any) -> dict[str, tuple[str, Any]]:
    """Maps each wire name to the validation key and the declared type."""
    if typing.get_origin(target) is None and isinstance(target, type) and (
        issubclass(target, BaseModel) or dataclasses.is_dataclass(target)
    ):
        declared: dict[str, tuple[str, Any]] = {}
        for field in iter_record_schema(target):
            if field.excluded:
                continue

            key = field.name
            if issubclass(target, BaseModel):
                info = target.model_fields[field.name]
                key = info.alias or field.name
            declared[field.wire_name] = (key, field.annotation)
        return declared

    return {}


def _value_type(target: Any) -> Any:
    if typing.get_origin(target) in (dict, Mapping):
        args = typing.get_args(target)
        if len(args) == 2:
            return args[1]

    return Any


def _validate_dropping_invalid(values: dict[str, Any], target: Any) -> Any:
    adapter = get_type_adapter(target)
    try:
        return adapter.validate_python(values)
    except ValidationError as e:
        invalid = {error["loc"][0] for error in e.errors() if error["loc"]}

    remaining = {key: value for key, value in values.items() if key not in invalid}
    if not remaining or len(remaining) == len(values):
        return None

    try:
        return adapter.validate_python(remaining)
    except ValidationError:
        return None


def decode_attributes(wire: WireAttributes | None, target: Any = Any) -> Any:
    """Converts SQS message attributes into ``target``.

    With the pass-through target the wire mapping is returned untouched.
    Otherwise each value is parsed against the declared type of its field and
    the result is validated into the target as a whole. Values that cannot be
    converted are dropped; when nothing is left the result is None.
    """
    if is_wire_attributes_type(target):
        return dict(wire or {})

    if not wire:
        return None

    declared = _declared_fields(target)
    fallback_type = _value_type(target)

    values: dict[str, Any] = {}
    for name, wire_value in wire.items():
        raw = _usable_string(wire_value)
        if not raw:
            continue

        if declared and name not in declared:
            continue

        key, annotation = declared.get(name, (name, fallback_type))
        try:
            values[key] = parse_string_to_typed(raw, annotation)
        except BodyParseError:
            continue

    if not values:
        return None

    if target is Any:
        return values

    return _validate_dropping_invalid(values, target)

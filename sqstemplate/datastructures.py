from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, Generic, Literal, TypeVar

import anyio
from pydantic import BaseModel, ConfigDict, Field, field_validator

from sqstemplate.codec.convert import parse_string_to_typed
from sqstemplate.exceptions import BodyParseError

BodyT = TypeVar("BodyT")
AttributesT = TypeVar("AttributesT")

DataType = Literal["String", "Number", "Binary"]


@dataclass(frozen=True)
class AttributeValue:
    data_type: str
    string_value: str | None = None
    binary_value: bytes | None = None

    def is_empty(self) -> bool:
        return not self.data_type or (not self.string_value and not self.binary_value)

    def to_wire(self) -> dict[str, Any]:
        wire: dict[str, Any] = {"DataType": self.data_type}
        if self.string_value:
            wire["StringValue"] = self.string_value
        if self.binary_value:
            wire["BinaryValue"] = self.binary_value
        return wire

    @classmethod
    def from_wire(cls, wire: dict[str, Any]) -> "AttributeValue":
        return cls(
            data_type=wire.get("DataType", ""),
            string_value=wire.get("StringValue"),
            binary_value=wire.get("BinaryValue"),
        )


# The pass-through attribute shape: what SQS sent, without conversion.
WireAttributes = dict[str, AttributeValue]


def attributes_to_wire(attributes: WireAttributes) -> dict[str, dict[str, Any]]:
    return {name: value.to_wire() for name, value in attributes.items()}


def attributes_from_wire(wire: dict[str, dict[str, Any]] | None) -> WireAttributes:
    if not wire:
        return {}

    return {name: AttributeValue.from_wire(value) for name, value in wire.items()}


class SystemAttributes(BaseModel):
    """The SQS-managed attributes of a received message.

    ApproximateFirstReceiveTimestamp and SentTimestamp arrive as epoch
    milliseconds and are exposed as UTC datetimes.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    approximate_receive_count: int = Field(default=0, alias="ApproximateReceiveCount")
    approximate_first_receive_timestamp: datetime | None = Field(
        default=None, alias="ApproximateFirstReceiveTimestamp"
    )
    message_deduplication_id: str = Field(default="", alias="MessageDeduplicationId")
    message_group_id: str = Field(default="", alias="MessageGroupId")
    sender_id: str = Field(default="", alias="SenderId")
    sent_timestamp: datetime | None = Field(default=None, alias="SentTimestamp")
    sequence_number: int = Field(default=0, alias="SequenceNumber")

    @field_validator("approximate_first_receive_timestamp", "sent_timestamp", mode="before")
    @classmethod
    def from_epoch_millis(cls, value: Any) -> Any:
        if isinstance(value, int | float) and not isinstance(value, bool):
            return datetime.fromtimestamp(value / 1000, tz=UTC)
        return value

    @classmethod
    def from_wire(cls, wire: dict[str, str] | None) -> "SystemAttributes":
        """Builds the model from the raw SQS map, dropping entries that do not parse."""
        values: dict[str, Any] = {}
        for name, raw in (wire or {}).items():
            wire_type = _SYSTEM_ATTRIBUTE_WIRE_TYPES.get(name)
            if wire_type is None or not raw:
                continue

            try:
                values[name] = parse_string_to_typed(raw, wire_type)
            except BodyParseError:
                continue

        return cls.model_validate(values)


_SYSTEM_ATTRIBUTE_WIRE_TYPES: dict[str, type] = {
    "ApproximateReceiveCount": int,
    "ApproximateFirstReceiveTimestamp": int,
    "MessageDeduplicationId": str,
    "MessageGroupId": str,
    "SenderId": str,
    "SentTimestamp": int,
    "SequenceNumber": int,
}


@dataclass(frozen=True)
class MessageSystemAttributes:
    """System attributes a producer may attach. SQS only supports the X-Ray header."""

    aws_trace_header: str = ""


@dataclass(frozen=True)
class ReceivedMessage(Generic[BodyT, AttributesT]):
    id: str
    receipt_handle: str
    body: BodyT
    attributes: AttributesT | None
    system_attributes: SystemAttributes
    md5_of_body: str = ""
    md5_of_message_attributes: str | None = None


@dataclass(frozen=True)
class Context(Generic[BodyT, AttributesT]):
    """What a consumer handler receives for one delivery."""

    queue_url: str
    message: ReceivedMessage[BodyT, AttributesT]
    deadline: float

    def remaining(self) -> float:
        """Seconds left before the handler timeout fires."""
        return max(0.0, self.deadline - anyio.current_time())


SimpleContext = Context[BodyT, WireAttributes]


@dataclass(frozen=True)
class SendMessageResult:
    message_id: str
    md5_of_message_body: str = ""
    md5_of_message_attributes: str | None = None
    sequence_number: str | None = None


@dataclass(frozen=True)
class DeleteMessageBatchEntry:
    id: str
    receipt_handle: str

    def to_wire(self) -> dict[str, Any]:
        return {"Id": self.id, "ReceiptHandle": self.receipt_handle}


@dataclass(frozen=True)
class ChangeMessageVisibilityBatchEntry:
    id: str
    receipt_handle: str
    # Seconds, from 0 to 43200 (12 hours).
    visibility_timeout: int = 0

    def to_wire(self) -> dict[str, Any]:
        return {
            "Id": self.id,
            "ReceiptHandle": self.receipt_handle,
            "VisibilityTimeout": self.visibility_timeout,
        }

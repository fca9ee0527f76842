import hashlib
import time
import uuid
from collections import defaultdict
from collections.abc import Generator
from dataclasses import dataclass, field
from typing import Any
from unittest.mock import MagicMock, patch

import anyio
import pytest
from pydantic import BaseModel, Field

from sqstemplate.clients.sqs import SQSClient
from sqstemplate.datastructures import WireAttributes, attributes_to_wire

QUEUE_URL = "https://sqs.us-east-1.amazonaws.com/000000000000/orders"
CLIENT_MODULE_PATH = "sqstemplate.clients.sqs"


class InMemorySQSClient(SQSClient):
    """An SQS client keeping the queues in memory.

    ``script`` holds what the next fetches return, in order: an exception is
    raised, a list is returned as the batch. Once it is exhausted the fetch
    returns what was sent to the queue, and sets ``stop_when_drained`` when the
    queue is empty.
    """

    def __init__(self) -> None:
        super().__init__(region_name="us-east-1")
        self.queues: dict[str, list[dict[str, Any]]] = defaultdict(list)
        self.script: list[Exception | list[dict[str, Any]]] = []
        self.stop_when_drained: anyio.Event | None = None

        self.receive_calls: list[dict[str, Any]] = []
        self.fetch_times: list[float] = []
        self.deleted: list[str] = []
        self.sent: list[dict[str, Any]] = []

    async def receive_messages(
        self,
        queue_url: str,
        *,
        max_messages: int,
        visibility_timeout: float = 0,
        wait_time: float = 0,
        attempt_id: str | None = None,
    ) -> list[dict[str, Any]]:
        self.fetch_times.append(time.monotonic())
        self.receive_calls.append(
            {
                "queue_url": queue_url,
                "max_messages": max_messages,
                "visibility_timeout": visibility_timeout,
                "wait_time": wait_time,
                "attempt_id": attempt_id,
            }
        )

        if self.script:
            step = self.script.pop(0)
            if isinstance(step, Exception):
                raise step
            return step

        queue = self.queues[queue_url]
        batch, self.queues[queue_url] = queue[:max_messages], queue[max_messages:]
        if not batch and self.stop_when_drained is not None:
            self.stop_when_drained.set()

        return batch

    async def delete_message(self, queue_url: str, receipt_handle: str) -> dict[str, Any]:
        self.deleted.append(receipt_handle)
        return {}

    async def send_message(
        self,
        queue_url: str,
        body: str,
        *,
        delay: float = 0,
        attributes: WireAttributes | None = None,
        system_attributes: WireAttributes | None = None,
        dedup_id: str | None = None,
        group_id: str | None = None,
    ) -> dict[str, Any]:
        self.sent.append(
            {
                "queue_url": queue_url,
                "body": body,
                "delay": delay,
                "attributes": attributes,
                "system_attributes": system_attributes,
                "dedup_id": dedup_id,
                "group_id": group_id,
            }
        )

        message = make_raw_message(body, attributes=attributes, group_id=group_id)
        self.queues[queue_url].append(message)
        return {
            "MessageId": message["MessageId"],
            "MD5OfMessageBody": message["MD5OfBody"],
        }


def make_raw_message(
    body: str,
    attributes: WireAttributes | None = None,
    group_id: str | None = None,
    message_id: str | None = None,
) -> dict[str, Any]:
    """Builds a message the way boto3 returns it from receive_message."""
    system_attributes = {
        "ApproximateReceiveCount": "1",
        "SentTimestamp": str(int(time.time() * 1000)),
        "SenderId": "AIDAEXAMPLE",
    }
    if group_id:
        system_attributes["MessageGroupId"] = group_id

    message: dict[str, Any] = {
        "MessageId": message_id or str(uuid.uuid4()),
        "ReceiptHandle": f"handle-{uuid.uuid4()}",
        "Body": body,
        "MD5OfBody": hashlib.md5(body.encode("utf-8")).hexdigest(),
        "Attributes": system_attributes,
    }
    if attributes:
        message["MessageAttributes"] = attributes_to_wire(attributes)

    return message


class Order(BaseModel):
    id: int
    customer: str
    total: float = 0.0


class OrderHeaders(BaseModel):
    tenant: str = Field(alias="Tenant")
    priority: int = Field(default=0, alias="Priority")
    urgent: bool = False
    internal_note: str = Field(default="", exclude=True)


@dataclass
class TraceHeaders:
    trace_id: str = field(default="", metadata={"sqs": "TraceId,omitempty"})
    retries: int = field(default=0, metadata={"sqs": "Retries"})
    secret: str = field(default="", metadata={"sqs": "-"})
    source: str = ""


@pytest.fixture
def sqs_client() -> InMemorySQSClient:
    return InMemorySQSClient()


@pytest.fixture
def boto_client() -> Generator[MagicMock]:
    with patch(f"{CLIENT_MODULE_PATH}.boto3") as boto3:
        yield boto3.client.return_value


@pytest.fixture
def client(boto_client: MagicMock) -> SQSClient:
    return SQSClient(region_name="us-east-1")

import functools
import os
import threading
from typing import Any

import anyio
import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError

from sqstemplate.datastructures import WireAttributes, attributes_to_wire
from sqstemplate.exceptions import TransportUnavailableError
from sqstemplate.logger import logger

ALL_ATTRIBUTES = "All"


def _default_config() -> Config:
    return Config(
        retries={"max_attempts": 6, "mode": "standard"},
        read_timeout=70,  # above the 20s long-poll ceiling
        connect_timeout=3,
    )


class SQSClient:
    """The transport handle shared by consumers, producers and queue operations.

    The underlying boto3 client is created on first use, once, and reused
    afterwards. Every call runs in a worker thread so a blocking request never
    stalls the event loop.
    """

    def __init__(
        self,
        region_name: str | None = None,
        endpoint_url: str | None = None,
        config: Config | None = None,
    ) -> None:
        self.region_name = region_name
        self.endpoint_url = endpoint_url or os.getenv("SQSTEMPLATE_ENDPOINT_URL") or None
        self.config = config or _default_config()

        self._lock = threading.Lock()
        self._client: Any = None

    @property
    def client(self) -> Any:
        if self._client is not None:
            return self._client

        with self._lock:
            if self._client is None:
                self._client = self._create_client()

        return self._client

    def _create_client(self) -> Any:
        try:
            return boto3.client(
                "sqs",
                region_name=self.region_name,
                endpoint_url=self.endpoint_url,
                config=self.config,
            )
        except (BotoCoreError, ValueError) as e:
            logger.critical(f"Could not create the SQS client: {e}")
            raise TransportUnavailableError(f"sqs: could not create the SQS client: {e}") from e

    async def call(self, operation: str, **params: Any) -> dict[str, Any]:
        """Invokes a boto3 SQS operation with the given request parameters."""
        method = getattr(self.client, operation)
        response: dict[str, Any] = await anyio.to_thread.run_sync(
            functools.partial(method, **params)
        )
        return response

    async def receive_messages(
        self,
        queue_url: str,
        *,
        max_messages: int,
        visibility_timeout: float = 0,
        wait_time: float = 0,
        attempt_id: str | None = None,
    ) -> list[dict[str, Any]]:
        params: dict[str, Any] = {
            "QueueUrl": queue_url,
            "MaxNumberOfMessages": max_messages,
            "AttributeNames": [ALL_ATTRIBUTES],
            "MessageAttributeNames": [ALL_ATTRIBUTES],
        }
        if int(visibility_timeout) > 0:
            params["VisibilityTimeout"] = int(visibility_timeout)
        if int(wait_time) > 0:
            params["WaitTimeSeconds"] = int(wait_time)
        if attempt_id:
            params["ReceiveRequestAttemptId"] = attempt_id

        response = await self.call("receive_message", **params)
        return list(response.get("Messages", []))

    async def delete_message(self, queue_url: str, receipt_handle: str) -> dict[str, Any]:
        return await self.call("delete_message", QueueUrl=queue_url, ReceiptHandle=receipt_handle)

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
        params: dict[str, Any] = {"QueueUrl": queue_url, "MessageBody": body}
        if int(delay) > 0:
            params["DelaySeconds"] = int(delay)
        if attributes:
            params["MessageAttributes"] = attributes_to_wire(attributes)
        if system_attributes:
            params["MessageSystemAttributes"] = attributes_to_wire(system_attributes)
        if dedup_id:
            params["MessageDeduplicationId"] = dedup_id
        if group_id:
            params["MessageGroupId"] = group_id

        return await self.call("send_message", **params)

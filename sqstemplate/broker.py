"""Broker implementation."""

from collections.abc import Sequence
from typing import Any

import anyio
from pydantic import ConfigDict, validate_call

from sqstemplate.clients.sqs import SQSClient
from sqstemplate.datastructures import (
    ChangeMessageVisibilityBatchEntry,
    DeleteMessageBatchEntry,
    SendMessageResult,
    WireAttributes,
)
from sqstemplate.logger import logger
from sqstemplate.options import (
    ConsumerOptions,
    CreateQueueOptions,
    DefaultOptions,
    ListMoveTasksOptions,
    ListQueuesOptions,
    ProducerOptions,
)
from sqstemplate.sqs import consumer, producer, queue
from sqstemplate.sqs.consumer import ConsumerHandle
from sqstemplate.types import AsyncHandler, AsyncSimpleHandler

STRICT = ConfigDict(strict=True, arbitrary_types_allowed=True)


class SQSBroker:
    """Binds one SQS client to every operation and tracks the background consumers."""

    def __init__(
        self,
        region_name: str | None = None,
        endpoint_url: str | None = None,
        client: SQSClient | None = None,
    ) -> None:
        self.client = client or SQSClient(region_name=region_name, endpoint_url=endpoint_url)
        self._consumers: list[ConsumerHandle] = []

    async def receive(
        self,
        queue_url: str,
        handler: AsyncHandler,
        *opts: ConsumerOptions | None,
        body_type: Any = Any,
        attributes_type: Any = WireAttributes,
        stop_event: anyio.Event | None = None,
    ) -> None:
        await consumer.receive(
            queue_url,
            handler,
            *opts,
            body_type=body_type,
            attributes_type=attributes_type,
            client=self.client,
            stop_event=stop_event,
        )

    async def receive_async(
        self,
        queue_url: str,
        handler: AsyncHandler,
        *opts: ConsumerOptions | None,
        body_type: Any = Any,
        attributes_type: Any = WireAttributes,
        stop_event: anyio.Event | None = None,
    ) -> ConsumerHandle:
        handle = await consumer.receive_async(
            queue_url,
            handler,
            *opts,
            body_type=body_type,
            attributes_type=attributes_type,
            client=self.client,
            stop_event=stop_event,
        )
        self._consumers.append(handle)
        return handle

    async def receive_simple(
        self,
        queue_url: str,
        handler: AsyncSimpleHandler,
        *opts: ConsumerOptions | None,
        body_type: Any = Any,
        stop_event: anyio.Event | None = None,
    ) -> None:
        await self.receive(
            queue_url,
            handler,
            *opts,
            body_type=body_type,
            attributes_type=WireAttributes,
            stop_event=stop_event,
        )

    async def receive_simple_async(
        self,
        queue_url: str,
        handler: AsyncSimpleHandler,
        *opts: ConsumerOptions | None,
        body_type: Any = Any,
        stop_event: anyio.Event | None = None,
    ) -> ConsumerHandle:
        return await self.receive_async(
            queue_url,
            handler,
            *opts,
            body_type=body_type,
            attributes_type=WireAttributes,
            stop_event=stop_event,
        )

    async def send(
        self, queue_url: str, body: Any, *opts: ProducerOptions | None
    ) -> SendMessageResult:
        return await producer.send(queue_url, body, *opts, client=self.client)

    def send_async(self, queue_url: str, body: Any, *opts: ProducerOptions | None) -> Any:
        return producer.send_async(queue_url, body, *opts, client=self.client)

    @validate_call(config=STRICT)
    async def create_queue(
        self, queue_name: str, *opts: CreateQueueOptions | None
    ) -> dict[str, Any]:
        return await queue.create_queue(queue_name, *opts, client=self.client)

    @validate_call(config=STRICT)
    async def delete_queue(self, queue_url: str, *opts: DefaultOptions | None) -> dict[str, Any]:
        return await queue.delete_queue(queue_url, *opts, client=self.client)

    @validate_call(config=STRICT)
    async def purge_queue(self, queue_url: str, *opts: DefaultOptions | None) -> dict[str, Any]:
        return await queue.purge_queue(queue_url, *opts, client=self.client)

    @validate_call(config=STRICT)
    async def tag_queue(
        self, queue_url: str, tags: dict[str, str], *opts: DefaultOptions | None
    ) -> dict[str, Any]:
        return await queue.tag_queue(queue_url, tags, *opts, client=self.client)

    @validate_call(config=STRICT)
    async def untag_queue(
        self, queue_url: str, tag_keys: Sequence[str], *opts: DefaultOptions | None
    ) -> dict[str, Any]:
        return await queue.untag_queue(queue_url, tag_keys, *opts, client=self.client)

    @validate_call(config=STRICT)
    async def set_queue_attributes(
        self, queue_url: str, attributes: dict[str, str], *opts: DefaultOptions | None
    ) -> dict[str, Any]:
        return await queue.set_queue_attributes(queue_url, attributes, *opts, client=self.client)

    @validate_call(config=STRICT)
    async def list_queues(self, *opts: ListQueuesOptions | None) -> dict[str, Any]:
        return await queue.list_queues(*opts, client=self.client)

    @validate_call(config=STRICT)
    async def list_queue_tags(
        self, queue_url: str, *opts: DefaultOptions | None
    ) -> dict[str, Any]:
        return await queue.list_queue_tags(queue_url, *opts, client=self.client)

    @validate_call(config=STRICT)
    async def get_queue_url(
        self,
        queue_name: str,
        *opts: DefaultOptions | None,
        queue_owner_aws_account_id: str | None = None,
    ) -> dict[str, Any]:
        return await queue.get_queue_url(
            queue_name,
            *opts,
            queue_owner_aws_account_id=queue_owner_aws_account_id,
            client=self.client,
        )

    @validate_call(config=STRICT)
    async def get_queue_attributes(
        self,
        queue_url: str,
        *opts: DefaultOptions | None,
        attribute_names: Sequence[str] | None = None,
    ) -> dict[str, Any]:
        return await queue.get_queue_attributes(
            queue_url, *opts, attribute_names=attribute_names, client=self.client
        )

    @validate_call(config=STRICT)
    async def change_message_visibility(
        self,
        queue_url: str,
        receipt_handle: str,
        visibility_timeout: int,
        *opts: DefaultOptions | None,
    ) -> dict[str, Any]:
        return await queue.change_message_visibility(
            queue_url, receipt_handle, visibility_timeout, *opts, client=self.client
        )

    @validate_call(config=STRICT)
    async def change_message_visibility_batch(
        self,
        queue_url: str,
        entries: Sequence[ChangeMessageVisibilityBatchEntry],
        *opts: DefaultOptions | None,
    ) -> dict[str, Any]:
        return await queue.change_message_visibility_batch(
            queue_url, entries, *opts, client=self.client
        )

    @validate_call(config=STRICT)
    async def delete_message(
        self, queue_url: str, receipt_handle: str, *opts: DefaultOptions | None
    ) -> dict[str, Any]:
        return await queue.delete_message(queue_url, receipt_handle, *opts, client=self.client)

    @validate_call(config=STRICT)
    async def delete_message_batch(
        self,
        queue_url: str,
        entries: Sequence[DeleteMessageBatchEntry],
        *opts: DefaultOptions | None,
    ) -> dict[str, Any]:
        return await queue.delete_message_batch(queue_url, entries, *opts, client=self.client)

    @validate_call(config=STRICT)
    async def start_message_move_task(
        self,
        source_arn: str,
        *opts: DefaultOptions | None,
        destination_arn: str | None = None,
        max_number_of_messages_per_second: int | None = None,
    ) -> dict[str, Any]:
        return await queue.start_message_move_task(
            source_arn,
            *opts,
            destination_arn=destination_arn,
            max_number_of_messages_per_second=max_number_of_messages_per_second,
            client=self.client,
        )

    @validate_call(config=STRICT)
    async def cancel_message_move_task(
        self, task_handle: str, *opts: DefaultOptions | None
    ) -> dict[str, Any]:
        return await queue.cancel_message_move_task(task_handle, *opts, client=self.client)

    @validate_call(config=STRICT)
    async def list_message_move_tasks(
        self, source_arn: str, *opts: ListMoveTasksOptions | None
    ) -> dict[str, Any]:
        return await queue.list_message_move_tasks(source_arn, *opts, client=self.client)

    def alive(self) -> bool:
        if not self._consumers:
            logger.info("There are no background consumers running.")
            return False

        for handle in self._consumers:
            if not handle.alive():
                logger.error(f"The consumer for {handle.queue_url} is not alive")
                return False

        return True

    def ready(self) -> bool:
        if not self._consumers:
            logger.info("There are no background consumers running.")
            return False

        for handle in self._consumers:
            if not handle.ready():
                logger.error(f"The consumer for {handle.queue_url} is not ready")
                return False

        return True

    async def shutdown(self) -> None:
        """Stops every background consumer and waits for them to finish."""
        for handle in self._consumers:
            handle.cancel()

        for handle in self._consumers:
            try:
                await handle.join()
            except Exception:
                logger.exception(f"The consumer for {handle.queue_url} stopped with an error")

        self._consumers.clear()

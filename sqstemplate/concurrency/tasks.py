import asyncio
from collections.abc import Generator
from contextlib import contextmanager
from typing import Any

import anyio
from anyio import create_task_group, get_cancelled_exc_class
from anyio.abc import TaskGroup

from sqstemplate.clients.sqs import SQSClient
from sqstemplate.codec.attributes import decode_attributes
from sqstemplate.codec.convert import is_zero, parse_string_to_typed
from sqstemplate.datastructures import (
    Context,
    ReceivedMessage,
    SystemAttributes,
    attributes_from_wire,
)
from sqstemplate.exceptions import (
    BodyParseError,
    ConsumerFatalError,
    TransportUnavailableError,
)
from sqstemplate.logger import logger
from sqstemplate.options import ConsumerOptions
from sqstemplate.types import AsyncHandler

MAX_CONSECUTIVE_FETCH_FAILURES = 3

FATAL_EXCEPTIONS = (TransportUnavailableError,)


def _discard_outcome(task: "asyncio.Future[Any]") -> None:
    if not task.cancelled():
        task.exception()


class SQSPollTask:
    """The consumer poll loop for a single queue.

    Each cycle fetches one batch, hands the messages to the handler one at a
    time under the handler timeout, and sleeps ``fetch_retry_delay`` before
    the next cycle. Three fetch failures in a row stop the loop with a
    ``ConsumerFatalError``.
    """

    def __init__(
        self,
        queue_url: str,
        handler: AsyncHandler,
        options: ConsumerOptions,
        client: SQSClient,
        body_type: Any = Any,
        attributes_type: Any = Any,
        stop_event: anyio.Event | None = None,
    ) -> None:
        self.ready = False
        self.running = False
        self.queue_url = queue_url
        self.handler = handler
        self.options = options
        self.client = client
        self.body_type = body_type
        self.attributes_type = attributes_type
        self.stop_event = stop_event or anyio.Event()

        self.failed_fetches = 0
        self.fatal_error: Exception | None = None

    async def start(self) -> None:
        logger.info_if(self.options.debug, f"The message poll loop started for {self.queue_url}")

        async with create_task_group() as tg:
            self.running = True
            while self.running and not self.stop_event.is_set():
                try:
                    messages = await self.client.receive_messages(
                        self.queue_url,
                        max_messages=self.options.max_messages_per_fetch,
                        visibility_timeout=self.options.visibility_timeout,
                        wait_time=self.options.wait_time,
                        attempt_id=self.options.dedup_attempt_id,
                    )
                except get_cancelled_exc_class():
                    logger.debug("We got a cancellation from parent, we will cancel the subtasks")
                    self.shutdown()
                    tg.cancel_scope.cancel()
                    raise
                except Exception as e:
                    self._on_exception(e)
                    if self.running:
                        await self._sleep()
                    continue

                self.ready = True
                self.failed_fetches = 0
                if messages:
                    await self._process_batch(tg, messages)
                else:
                    logger.info_if(self.options.debug, f"No messages on {self.queue_url}")

                await self._sleep()

        self.running = False
        logger.info_if(self.options.debug, f"The message poll loop stopped for {self.queue_url}")
        if self.fatal_error is not None:
            raise self.fatal_error

    async def _sleep(self) -> None:
        with anyio.move_on_after(self.options.fetch_retry_delay):
            await self.stop_event.wait()

    async def _process_batch(self, tg: TaskGroup, messages: list[dict[str, Any]]) -> None:
        succeeded: list[str] = []
        failed: list[str] = []
        for raw_message in messages:
            message_id = raw_message.get("MessageId", "")
            with self._contextualize(message_id):
                try:
                    message = self._deserialize_message(raw_message)
                except BodyParseError as e:
                    logger.error_if(self.options.debug, f"Message skipped: {e}")
                    continue

                if await self._handle(message):
                    succeeded.append(message.id)
                    if self.options.auto_delete_on_success:
                        tg.start_soon(self._delete, message)
                else:
                    failed.append(message.id)

        logger.info_if(
            self.options.debug,
            f"Processed {len(messages)} messages from {self.queue_url}: "
            f"succeeded={succeeded} failed={failed}",
        )

    def _deserialize_message(self, raw_message: dict[str, Any]) -> ReceivedMessage[Any, Any]:
        body = parse_string_to_typed(raw_message.get("Body") or "", self.body_type)
        if is_zero(body):
            raise BodyParseError()

        wire_attributes = attributes_from_wire(raw_message.get("MessageAttributes"))
        return ReceivedMessage(
            id=raw_message.get("MessageId", ""),
            receipt_handle=raw_message.get("ReceiptHandle", ""),
            body=body,
            attributes=decode_attributes(wire_attributes, self.attributes_type),
            system_attributes=SystemAttributes.from_wire(raw_message.get("Attributes")),
            md5_of_body=raw_message.get("MD5OfBody", ""),
            md5_of_message_attributes=raw_message.get("MD5OfMessageAttributes"),
        )

    async def _handle(self, message: ReceivedMessage[Any, Any]) -> bool:
        timeout = self.options.handler_timeout
        context = Context(
            queue_url=self.queue_url,
            message=message,
            deadline=anyio.current_time() + timeout,
        )

        handler_task = asyncio.ensure_future(self.handler(context))
        try:
            done, _ = await asyncio.wait({handler_task}, timeout=timeout)
        except get_cancelled_exc_class():
            handler_task.cancel()
            raise

        if not done:
            # The handler may ignore the cancellation; its outcome is discarded.
            handler_task.cancel()
            handler_task.add_done_callback(_discard_outcome)
            logger.error_if(self.options.debug, f"Message handler timed out after {timeout}s")
            return False

        if handler_task.cancelled():
            logger.error_if(self.options.debug, "Message handler was cancelled")
            return False

        error = handler_task.exception()
        if error is not None:
            logger.error_if(
                self.options.debug, "Unhandled exception on message handler", exc_info=error
            )
            return False

        logger.info_if(self.options.debug, "Message successfully processed.")
        return True

    async def _delete(self, message: ReceivedMessage[Any, Any]) -> None:
        with self._contextualize(message.id):
            try:
                await self.client.delete_message(self.queue_url, message.receipt_handle)
                logger.info_if(self.options.debug, "Message deleted.")
            except Exception:
                logger.error_if(self.options.debug, "Could not delete the message", exc_info=True)

    @contextmanager
    def _contextualize(self, message_id: str) -> Generator[None, None, None]:
        with logger.contextualize(queue_url=self.queue_url, message_id=message_id):
            yield

    def _on_exception(self, e: Exception) -> None:
        self.ready = False
        if self._should_terminate(e):
            self.running = False
            logger.critical(
                f"A non-recoverable exception happened while polling {self.queue_url}.",
                exc_info=True,
            )
            self.fatal_error = e
            return

        self.failed_fetches += 1
        logger.error_if(
            self.options.debug,
            f"Fetch from {self.queue_url} failed "
            f"({self.failed_fetches}/{MAX_CONSECUTIVE_FETCH_FAILURES}).",
            exc_info=True,
        )
        if self.failed_fetches < MAX_CONSECUTIVE_FETCH_FAILURES:
            return

        self.running = False
        fatal_error = ConsumerFatalError(self.queue_url, self.failed_fetches)
        fatal_error.__cause__ = e
        self.fatal_error = fatal_error
        logger.critical(str(fatal_error))

    def _should_terminate(self, exception: Exception) -> bool:
        return isinstance(exception, FATAL_EXCEPTIONS)

    def task_ready(self) -> bool:
        return self.ready

    def task_alive(self) -> bool:
        return self.running

    def shutdown(self) -> None:
        self.running = False
        self.stop_event.set()

"""Public consumer API.

``receive`` runs the poll loop in the calling task until the stop event is set
or the loop gives up. ``receive_async`` spawns the same loop in its own task
and returns a handle to observe or stop it.
"""

import asyncio
from typing import Any

import anyio

from sqstemplate.clients.sqs import SQSClient
from sqstemplate.concurrency.tasks import SQSPollTask
from sqstemplate.concurrency.utils import ensure_async_callable
from sqstemplate.datastructures import WireAttributes
from sqstemplate.logger import logger
from sqstemplate.options import ConsumerOptions, merge_consumer_options
from sqstemplate.types import AsyncHandler, AsyncSimpleHandler

# Strong references to the background consumers, dropped once they finish.
_background_tasks: set["asyncio.Task[None]"] = set()


class ConsumerHandle:
    """A consumer running in the background."""

    def __init__(self, poll_task: SQSPollTask, task: "asyncio.Task[None]") -> None:
        self.poll_task = poll_task
        self._task = task

    @property
    def queue_url(self) -> str:
        return self.poll_task.queue_url

    def cancel(self) -> None:
        """Asks the loop to stop after the current cycle."""
        self.poll_task.shutdown()

    def done(self) -> bool:
        return self._task.done()

    def alive(self) -> bool:
        return self.poll_task.task_alive()

    def ready(self) -> bool:
        return self.poll_task.task_ready()

    async def join(self) -> None:
        """Waits for the loop to finish, raising its fatal error if any."""
        await self._task


def _build_poll_task(
    queue_url: str,
    handler: AsyncHandler,
    opts: tuple[ConsumerOptions | None, ...],
    body_type: Any,
    attributes_type: Any,
    client: SQSClient | None,
    stop_event: anyio.Event | None,
) -> SQSPollTask:
    ensure_async_callable(handler)
    return SQSPollTask(
        queue_url=queue_url,
        handler=handler,
        options=merge_consumer_options(*opts),
        client=client or SQSClient(),
        body_type=body_type,
        attributes_type=attributes_type,
        stop_event=stop_event,
    )


def _retrieve_outcome(task: "asyncio.Task[None]") -> None:
    if task.cancelled():
        return

    # Fatal errors are logged by the loop itself; this marks them as retrieved.
    error = task.exception()
    if error is not None:
        logger.debug(f"Background consumer finished with {type(error).__name__}")


async def receive(
    queue_url: str,
    handler: AsyncHandler,
    *opts: ConsumerOptions | None,
    body_type: Any = Any,
    attributes_type: Any = WireAttributes,
    client: SQSClient | None = None,
    stop_event: anyio.Event | None = None,
) -> None:
    """Consumes ``queue_url`` until ``stop_event`` is set.

    The handler receives a ``Context`` whose body is parsed into ``body_type``
    and whose attributes are decoded into ``attributes_type``. A handler that
    returns is a success; one that raises or exceeds the handler timeout is a
    failure and the message is left on the queue.

    Raises:
        TypeError: when the handler is not async.
        ConsumerFatalError: after three consecutive fetch failures.
    """
    poll_task = _build_poll_task(
        queue_url, handler, opts, body_type, attributes_type, client, stop_event
    )
    await poll_task.start()


async def receive_async(
    queue_url: str,
    handler: AsyncHandler,
    *opts: ConsumerOptions | None,
    body_type: Any = Any,
    attributes_type: Any = WireAttributes,
    client: SQSClient | None = None,
    stop_event: anyio.Event | None = None,
) -> ConsumerHandle:
    """Starts consuming ``queue_url`` in a background task.

    The returned handle may be discarded; the loop keeps running until the
    stop event is set, the handle is cancelled, or the loop gives up.
    """
    poll_task = _build_poll_task(
        queue_url, handler, opts, body_type, attributes_type, client, stop_event
    )
    task = asyncio.create_task(poll_task.start())
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)
    task.add_done_callback(_retrieve_outcome)
    return ConsumerHandle(poll_task, task)


async def receive_simple(
    queue_url: str,
    handler: AsyncSimpleHandler,
    *opts: ConsumerOptions | None,
    body_type: Any = Any,
    client: SQSClient | None = None,
    stop_event: anyio.Event | None = None,
) -> None:
    """Same as ``receive`` with the attributes left as ``WireAttributes``."""
    await receive(
        queue_url,
        handler,
        *opts,
        body_type=body_type,
        attributes_type=WireAttributes,
        client=client,
        stop_event=stop_event,
    )


async def receive_simple_async(
    queue_url: str,
    handler: AsyncSimpleHandler,
    *opts: ConsumerOptions | None,
    body_type: Any = Any,
    client: SQSClient | None = None,
    stop_event: anyio.Event | None = None,
) -> ConsumerHandle:
    return await receive_async(
        queue_url,
        handler,
        *opts,
        body_type=body_type,
        attributes_type=WireAttributes,
        client=client,
        stop_event=stop_event,
    )

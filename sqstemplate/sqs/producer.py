import asyncio
from typing import Any

from sqstemplate.clients.sqs import SQSClient
from sqstemplate.codec.attributes import encode_attributes, encode_system_attributes
from sqstemplate.codec.convert import convert_to_string
from sqstemplate.datastructures import SendMessageResult
from sqstemplate.exceptions import EmptyMessageBodyError
from sqstemplate.logger import logger
from sqstemplate.options import ProducerOptions, merge_producer_options

# Strong references to the pending background sends, dropped once they finish.
_background_tasks: set["asyncio.Task[SendMessageResult | None]"] = set()


async def send(
    queue_url: str,
    body: Any,
    *opts: ProducerOptions | None,
    client: SQSClient | None = None,
) -> SendMessageResult:
    """Sends ``body`` to ``queue_url``.

    The body is converted to its string form and the attributes of the merged
    options are encoded into SQS message attributes. Nothing is sent when any
    of them is invalid.

    Raises:
        EmptyMessageBodyError: when the body converts to an empty string.
        InvalidAttributeContainerError: when the attributes are neither a mapping nor a record.
        InvalidTraceHeaderError: when the trace header is malformed.
    """
    options = merge_producer_options(*opts)

    message_body = convert_to_string(body)
    if not message_body:
        raise EmptyMessageBodyError()

    attributes = encode_attributes(options.attributes)
    system_attributes = encode_system_attributes(options.system_attributes)

    client = client or SQSClient()
    try:
        response = await client.send_message(
            queue_url,
            message_body,
            delay=options.delay,
            attributes=attributes,
            system_attributes=system_attributes,
            dedup_id=options.dedup_id,
            group_id=options.group_id,
        )
    except Exception:
        logger.error_if(options.debug, f"Error sending message to {queue_url}", exc_info=True)
        raise

    result = SendMessageResult(
        message_id=response.get("MessageId", ""),
        md5_of_message_body=response.get("MD5OfMessageBody", ""),
        md5_of_message_attributes=response.get("MD5OfMessageAttributes"),
        sequence_number=response.get("SequenceNumber"),
    )
    logger.info_if(options.debug, f"Message {result.message_id} sent to {queue_url}")
    return result


async def _send_in_background(
    queue_url: str,
    body: Any,
    opts: tuple[ProducerOptions | None, ...],
    client: SQSClient | None,
) -> SendMessageResult | None:
    try:
        return await send(queue_url, body, *opts, client=client)
    except Exception:
        debug = any(isinstance(opt, ProducerOptions) and opt.debug for opt in opts)
        logger.error_if(debug, f"Background send to {queue_url} failed", exc_info=True)
        return None


def send_async(
    queue_url: str,
    body: Any,
    *opts: ProducerOptions | None,
    client: SQSClient | None = None,
) -> "asyncio.Task[SendMessageResult | None]":
    """Sends ``body`` from a background task.

    Errors are logged and never raised; the task resolves to None when the
    send failed.
    """
    task = asyncio.create_task(_send_in_background(queue_url, body, opts, client))
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)
    return task

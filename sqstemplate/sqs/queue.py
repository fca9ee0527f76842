"""Queue administration.

Thin wrappers over the SQS API: required parameters are checked, the options
are merged, and the boto3 response is returned as is. Transport errors
propagate unchanged.
"""

from collections.abc import Sequence
from typing import Any

from sqstemplate.clients.sqs import ALL_ATTRIBUTES, SQSClient
from sqstemplate.codec.convert import is_zero
from sqstemplate.datastructures import (
    ChangeMessageVisibilityBatchEntry,
    DeleteMessageBatchEntry,
)
from sqstemplate.exceptions import MissingParameterError
from sqstemplate.logger import logger
from sqstemplate.options import (
    CreateQueueOptions,
    DefaultOptions,
    ListMoveTasksOptions,
    ListQueuesOptions,
    merge_create_queue_options,
    merge_default_options,
    merge_list_move_tasks_options,
    merge_list_queues_options,
)


def _require(**params: Any) -> None:
    for name, value in params.items():
        if is_zero(value):
            raise MissingParameterError(name)


async def _call(
    client: SQSClient | None,
    debug: bool,
    operation: str,
    **params: Any,
) -> dict[str, Any]:
    action = operation.replace("_", " ")
    logger.info_if(debug, f"Running {action}..")

    client = client or SQSClient()
    try:
        response = await client.call(operation, **params)
    except Exception:
        logger.error_if(debug, f"Error on {action}", exc_info=True)
        raise

    logger.info_if(debug, f"The {action} succeeded: {response}")
    return response


async def create_queue(
    queue_name: str,
    *opts: CreateQueueOptions | None,
    client: SQSClient | None = None,
) -> dict[str, Any]:
    _require(queue_name=queue_name)
    options = merge_create_queue_options(*opts)

    params: dict[str, Any] = {"QueueName": queue_name}
    if options.attributes:
        params["Attributes"] = options.attributes
    if options.tags:
        params["tags"] = options.tags

    return await _call(client, options.debug, "create_queue", **params)


async def delete_queue(
    queue_url: str,
    *opts: DefaultOptions | None,
    client: SQSClient | None = None,
) -> dict[str, Any]:
    _require(queue_url=queue_url)
    options = merge_default_options(*opts)
    return await _call(client, options.debug, "delete_queue", QueueUrl=queue_url)


async def purge_queue(
    queue_url: str,
    *opts: DefaultOptions | None,
    client: SQSClient | None = None,
) -> dict[str, Any]:
    """Deletes every message in the queue. SQS allows one purge per queue every 60 seconds."""
    _require(queue_url=queue_url)
    options = merge_default_options(*opts)
    return await _call(client, options.debug, "purge_queue", QueueUrl=queue_url)


async def tag_queue(
    queue_url: str,
    tags: dict[str, str],
    *opts: DefaultOptions | None,
    client: SQSClient | None = None,
) -> dict[str, Any]:
    _require(queue_url=queue_url, tags=tags)
    options = merge_default_options(*opts)
    return await _call(client, options.debug, "tag_queue", QueueUrl=queue_url, Tags=tags)


async def untag_queue(
    queue_url: str,
    tag_keys: Sequence[str],
    *opts: DefaultOptions | None,
    client: SQSClient | None = None,
) -> dict[str, Any]:
    _require(queue_url=queue_url, tag_keys=tag_keys)
    options = merge_default_options(*opts)
    return await _call(
        client, options.debug, "untag_queue", QueueUrl=queue_url, TagKeys=list(tag_keys)
    )


async def set_queue_attributes(
    queue_url: str,
    attributes: dict[str, str],
    *opts: DefaultOptions | None,
    client: SQSClient | None = None,
) -> dict[str, Any]:
    """Updates queue attributes such as DelaySeconds or VisibilityTimeout.

    Most changes take up to 60 seconds to propagate; MessageRetentionPeriod
    takes up to 15 minutes.
    """
    _require(queue_url=queue_url, attributes=attributes)
    options = merge_default_options(*opts)
    return await _call(
        client, options.debug, "set_queue_attributes", QueueUrl=queue_url, Attributes=attributes
    )


async def list_queues(
    *opts: ListQueuesOptions | None,
    client: SQSClient | None = None,
) -> dict[str, Any]:
    options = merge_list_queues_options(*opts)

    params: dict[str, Any] = {}
    if options.max_results > 0:
        params["MaxResults"] = options.max_results
    if options.next_token:
        params["NextToken"] = options.next_token
    if options.queue_name_prefix:
        params["QueueNamePrefix"] = options.queue_name_prefix

    return await _call(client, options.debug, "list_queues", **params)


async def list_queue_tags(
    queue_url: str,
    *opts: DefaultOptions | None,
    client: SQSClient | None = None,
) -> dict[str, Any]:
    _require(queue_url=queue_url)
    options = merge_default_options(*opts)
    return await _call(client, options.debug, "list_queue_tags", QueueUrl=queue_url)


async def get_queue_url(
    queue_name: str,
    *opts: DefaultOptions | None,
    queue_owner_aws_account_id: str | None = None,
    client: SQSClient | None = None,
) -> dict[str, Any]:
    _require(queue_name=queue_name)
    options = merge_default_options(*opts)

    params: dict[str, Any] = {"QueueName": queue_name}
    if queue_owner_aws_account_id:
        params["QueueOwnerAWSAccountId"] = queue_owner_aws_account_id

    return await _call(client, options.debug, "get_queue_url", **params)


async def get_queue_attributes(
    queue_url: str,
    *opts: DefaultOptions | None,
    attribute_names: Sequence[str] | None = None,
    client: SQSClient | None = None,
) -> dict[str, Any]:
    _require(queue_url=queue_url)
    options = merge_default_options(*opts)
    return await _call(
        client,
        options.debug,
        "get_queue_attributes",
        QueueUrl=queue_url,
        AttributeNames=list(attribute_names or [ALL_ATTRIBUTES]),
    )


async def change_message_visibility(
    queue_url: str,
    receipt_handle: str,
    visibility_timeout: int,
    *opts: DefaultOptions | None,
    client: SQSClient | None = None,
) -> dict[str, Any]:
    """Changes the visibility timeout of a received message; zero makes it visible again."""
    _require(queue_url=queue_url, receipt_handle=receipt_handle)
    options = merge_default_options(*opts)
    return await _call(
        client,
        options.debug,
        "change_message_visibility",
        QueueUrl=queue_url,
        ReceiptHandle=receipt_handle,
        VisibilityTimeout=int(visibility_timeout),
    )


async def change_message_visibility_batch(
    queue_url: str,
    entries: Sequence[ChangeMessageVisibilityBatchEntry],
    *opts: DefaultOptions | None,
    client: SQSClient | None = None,
) -> dict[str, Any]:
    _require(queue_url=queue_url, entries=entries)
    options = merge_default_options(*opts)
    return await _call(
        client,
        options.debug,
        "change_message_visibility_batch",
        QueueUrl=queue_url,
        Entries=[entry.to_wire() for entry in entries],
    )


async def delete_message(
    queue_url: str,
    receipt_handle: str,
    *opts: DefaultOptions | None,
    client: SQSClient | None = None,
) -> dict[str, Any]:
    _require(queue_url=queue_url, receipt_handle=receipt_handle)
    options = merge_default_options(*opts)
    return await _call(
        client,
        options.debug,
        "delete_message",
        QueueUrl=queue_url,
        ReceiptHandle=receipt_handle,
    )


async def delete_message_batch(
    queue_url: str,
    entries: Sequence[DeleteMessageBatchEntry],
    *opts: DefaultOptions | None,
    client: SQSClient | None = None,
) -> dict[str, Any]:
    _require(queue_url=queue_url, entries=entries)
    options = merge_default_options(*opts)
    return await _call(
        client,
        options.debug,
        "delete_message_batch",
        QueueUrl=queue_url,
        Entries=[entry.to_wire() for entry in entries],
    )


async def start_message_move_task(
    source_arn: str,
    *opts: DefaultOptions | None,
    destination_arn: str | None = None,
    max_number_of_messages_per_second: int | None = None,
    client: SQSClient | None = None,
) -> dict[str, Any]:
    """Moves messages from a dead-letter queue back to its source, or to ``destination_arn``."""
    _require(source_arn=source_arn)
    options = merge_default_options(*opts)

    params: dict[str, Any] = {"SourceArn": source_arn}
    if destination_arn:
        params["DestinationArn"] = destination_arn
    if max_number_of_messages_per_second:
        params["MaxNumberOfMessagesPerSecond"] = max_number_of_messages_per_second

    return await _call(client, options.debug, "start_message_move_task", **params)


async def cancel_message_move_task(
    task_handle: str,
    *opts: DefaultOptions | None,
    client: SQSClient | None = None,
) -> dict[str, Any]:
    _require(task_handle=task_handle)
    options = merge_default_options(*opts)
    return await _call(client, options.debug, "cancel_message_move_task", TaskHandle=task_handle)


async def list_message_move_tasks(
    source_arn: str,
    *opts: ListMoveTasksOptions | None,
    client: SQSClient | None = None,
) -> dict[str, Any]:
    _require(source_arn=source_arn)
    options = merge_list_move_tasks_options(*opts)
    return await _call(
        client,
        options.debug,
        "list_message_move_tasks",
        SourceArn=source_arn,
        MaxResults=options.max_results,
    )

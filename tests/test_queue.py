from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError

from sqstemplate.clients.sqs import SQSClient
from sqstemplate.datastructures import ChangeMessageVisibilityBatchEntry, DeleteMessageBatchEntry
from sqstemplate.exceptions import MissingParameterError
from sqstemplate.options import (
    CreateQueueOptions,
    DefaultOptions,
    ListMoveTasksOptions,
    ListQueuesOptions,
)
from sqstemplate.sqs import queue
from tests.conftest import QUEUE_URL

SOURCE_ARN = "arn:aws:sqs:us-east-1:000000000000:orders-dlq"


class TestQueueOperations:
    @pytest.mark.asyncio
    async def test_create_queue(self, client: SQSClient, boto_client: MagicMock):
        boto_client.create_queue.return_value = {"QueueUrl": QUEUE_URL}

        response = await queue.create_queue(
            "orders",
            CreateQueueOptions(attributes={"VisibilityTimeout": "60"}),
            CreateQueueOptions(tags={"team": "billing"}, debug=True),
            client=client,
        )

        assert response == {"QueueUrl": QUEUE_URL}
        boto_client.create_queue.assert_called_once_with(
            QueueName="orders",
            Attributes={"VisibilityTimeout": "60"},
            tags={"team": "billing"},
        )

    @pytest.mark.asyncio
    async def test_create_queue_without_options(self, client: SQSClient, boto_client: MagicMock):
        await queue.create_queue("orders", client=client)

        boto_client.create_queue.assert_called_once_with(QueueName="orders")

    @pytest.mark.asyncio
    async def test_simple_queue_operations(self, client: SQSClient, boto_client: MagicMock):
        await queue.delete_queue(QUEUE_URL, client=client)
        await queue.purge_queue(QUEUE_URL, DefaultOptions(debug=True), client=client)
        await queue.list_queue_tags(QUEUE_URL, client=client)

        boto_client.delete_queue.assert_called_once_with(QueueUrl=QUEUE_URL)
        boto_client.purge_queue.assert_called_once_with(QueueUrl=QUEUE_URL)
        boto_client.list_queue_tags.assert_called_once_with(QueueUrl=QUEUE_URL)

    @pytest.mark.asyncio
    async def test_tags(self, client: SQSClient, boto_client: MagicMock):
        await queue.tag_queue(QUEUE_URL, {"team": "billing"}, client=client)
        await queue.untag_queue(QUEUE_URL, ("team",), client=client)

        boto_client.tag_queue.assert_called_once_with(QueueUrl=QUEUE_URL, Tags={"team": "billing"})
        boto_client.untag_queue.assert_called_once_with(QueueUrl=QUEUE_URL, TagKeys=["team"])

    @pytest.mark.asyncio
    async def test_set_queue_attributes(self, client: SQSClient, boto_client: MagicMock):
        await queue.set_queue_attributes(QUEUE_URL, {"DelaySeconds": "10"}, client=client)

        boto_client.set_queue_attributes.assert_called_once_with(
            QueueUrl=QUEUE_URL, Attributes={"DelaySeconds": "10"}
        )

    @pytest.mark.asyncio
    async def test_list_queues(self, client: SQSClient, boto_client: MagicMock):
        boto_client.list_queues.return_value = {"QueueUrls": [QUEUE_URL]}

        response = await queue.list_queues(
            ListQueuesOptions(max_results=5, queue_name_prefix="ord"),
            ListQueuesOptions(next_token="token"),
            client=client,
        )

        assert response == {"QueueUrls": [QUEUE_URL]}
        boto_client.list_queues.assert_called_once_with(
            MaxResults=5, NextToken="token", QueueNamePrefix="ord"
        )

    @pytest.mark.asyncio
    async def test_get_queue_url(self, client: SQSClient, boto_client: MagicMock):
        await queue.get_queue_url(
            "orders", queue_owner_aws_account_id="000000000000", client=client
        )

        boto_client.get_queue_url.assert_called_once_with(
            QueueName="orders", QueueOwnerAWSAccountId="000000000000"
        )

    @pytest.mark.asyncio
    async def test_get_queue_attributes(self, client: SQSClient, boto_client: MagicMock):
        await queue.get_queue_attributes(QUEUE_URL, client=client)
        await queue.get_queue_attributes(
            QUEUE_URL, attribute_names=["ApproximateNumberOfMessages"], client=client
        )

        first, second = boto_client.get_queue_attributes.call_args_list
        assert first.kwargs == {"QueueUrl": QUEUE_URL, "AttributeNames": ["All"]}
        assert second.kwargs == {
            "QueueUrl": QUEUE_URL,
            "AttributeNames": ["ApproximateNumberOfMessages"],
        }

    @pytest.mark.asyncio
    async def test_missing_parameters(self, client: SQSClient, boto_client: MagicMock):
        with pytest.raises(MissingParameterError) as exc_info:
            await queue.delete_queue("", client=client)
        assert exc_info.value.parameter == "queue_url"

        with pytest.raises(MissingParameterError):
            await queue.create_queue("", client=client)

        with pytest.raises(MissingParameterError):
            await queue.tag_queue(QUEUE_URL, {}, client=client)

        with pytest.raises(MissingParameterError):
            await queue.delete_message_batch(QUEUE_URL, [], client=client)

        assert not boto_client.method_calls

    @pytest.mark.asyncio
    async def test_transport_errors_propagate(self, client: SQSClient, boto_client: MagicMock):
        error = ClientError(
            {"Error": {"Code": "AWS.SimpleQueueService.NonExistentQueue", "Message": "no"}},
            "DeleteQueue",
        )
        boto_client.delete_queue.side_effect = error

        with pytest.raises(ClientError) as exc_info:
            await queue.delete_queue(QUEUE_URL, DefaultOptions(debug=True), client=client)

        assert exc_info.value is error


class TestMessageOperations:
    @pytest.mark.asyncio
    async def test_change_message_visibility(self, client: SQSClient, boto_client: MagicMock):
        await queue.change_message_visibility(QUEUE_URL, "h1", 30, client=client)

        boto_client.change_message_visibility.assert_called_once_with(
            QueueUrl=QUEUE_URL, ReceiptHandle="h1", VisibilityTimeout=30
        )

    @pytest.mark.asyncio
    async def test_change_message_visibility_batch(
        self, client: SQSClient, boto_client: MagicMock
    ):
        entries = [
            ChangeMessageVisibilityBatchEntry(id="1", receipt_handle="h1", visibility_timeout=10),
            ChangeMessageVisibilityBatchEntry(id="2", receipt_handle="h2"),
        ]

        await queue.change_message_visibility_batch(QUEUE_URL, entries, client=client)

        boto_client.change_message_visibility_batch.assert_called_once_with(
            QueueUrl=QUEUE_URL,
            Entries=[
                {"Id": "1", "ReceiptHandle": "h1", "VisibilityTimeout": 10},
                {"Id": "2", "ReceiptHandle": "h2", "VisibilityTimeout": 0},
            ],
        )

    @pytest.mark.asyncio
    async def test_delete_message(self, client: SQSClient, boto_client: MagicMock):
        await queue.delete_message(QUEUE_URL, "h1", client=client)

        boto_client.delete_message.assert_called_once_with(QueueUrl=QUEUE_URL, ReceiptHandle="h1")

        with pytest.raises(MissingParameterError):
            await queue.delete_message(QUEUE_URL, "", client=client)

    @pytest.mark.asyncio
    async def test_delete_message_batch(self, client: SQSClient, boto_client: MagicMock):
        await queue.delete_message_batch(
            QUEUE_URL, [DeleteMessageBatchEntry(id="1", receipt_handle="h1")], client=client
        )

        boto_client.delete_message_batch.assert_called_once_with(
            QueueUrl=QUEUE_URL, Entries=[{"Id": "1", "ReceiptHandle": "h1"}]
        )


class TestMessageMoveTasks:
    @pytest.mark.asyncio
    async def test_start_message_move_task(self, client: SQSClient, boto_client: MagicMock):
        boto_client.start_message_move_task.return_value = {"TaskHandle": "task-1"}

        response = await queue.start_message_move_task(
            SOURCE_ARN, max_number_of_messages_per_second=50, client=client
        )

        assert response == {"TaskHandle": "task-1"}
        boto_client.start_message_move_task.assert_called_once_with(
            SourceArn=SOURCE_ARN, MaxNumberOfMessagesPerSecond=50
        )

    @pytest.mark.asyncio
    async def test_cancel_message_move_task(self, client: SQSClient, boto_client: MagicMock):
        await queue.cancel_message_move_task("task-1", client=client)

        boto_client.cancel_message_move_task.assert_called_once_with(TaskHandle="task-1")

        with pytest.raises(MissingParameterError):
            await queue.cancel_message_move_task("", client=client)

    @pytest.mark.asyncio
    async def test_list_message_move_tasks(self, client: SQSClient, boto_client: MagicMock):
        await queue.list_message_move_tasks(SOURCE_ARN, client=client)
        await queue.list_message_move_tasks(
            SOURCE_ARN, ListMoveTasksOptions(max_results=10), client=client
        )

        first, second = boto_client.list_message_move_tasks.call_args_list
        assert first.kwargs == {"SourceArn": SOURCE_ARN, "MaxResults": 1}
        assert second.kwargs == {"SourceArn": SOURCE_ARN, "MaxResults": 10}

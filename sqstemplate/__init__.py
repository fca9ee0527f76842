"""Typed producers and consumers for Amazon SQS"""

from sqstemplate.__about__ import __version__
from sqstemplate.broker import SQSBroker
from sqstemplate.clients.sqs import SQSClient
from sqstemplate.datastructures import (
    AttributeValue,
    ChangeMessageVisibilityBatchEntry,
    Context,
    DeleteMessageBatchEntry,
    MessageSystemAttributes,
    ReceivedMessage,
    SendMessageResult,
    SimpleContext,
    SystemAttributes,
    WireAttributes,
)
from sqstemplate.options import (
    ConsumerOptions,
    CreateQueueOptions,
    DefaultOptions,
    ListMoveTasksOptions,
    ListQueuesOptions,
    ProducerOptions,
)
from sqstemplate.sqs.consumer import (
    ConsumerHandle,
    receive,
    receive_async,
    receive_simple,
    receive_simple_async,
)
from sqstemplate.sqs.producer import send, send_async

__all__ = [
    "__version__",
    "SQSBroker",
    "SQSClient",
    "AttributeValue",
    "ChangeMessageVisibilityBatchEntry",
    "Context",
    "DeleteMessageBatchEntry",
    "MessageSystemAttributes",
    "ReceivedMessage",
    "SendMessageResult",
    "SimpleContext",
    "SystemAttributes",
    "WireAttributes",
    "ConsumerOptions",
    "CreateQueueOptions",
    "DefaultOptions",
    "ListMoveTasksOptions",
    "ListQueuesOptions",
    "ProducerOptions",
    "ConsumerHandle",
    "receive",
    "receive_async",
    "receive_simple",
    "receive_simple_async",
    "send",
    "send_async",
]

"""Option records for every operation.

Options are plain data. Each operation accepts any number of them and merges
them left to right: the last non-zero value of a field wins, and the fields
left unset fall back to the documented defaults at the end of the merge.
"""

import dataclasses
from dataclasses import dataclass
from typing import Any, TypeVar

from sqstemplate.codec.convert import is_record, is_zero
from sqstemplate.datastructures import MessageSystemAttributes

DEFAULT_MAX_MESSAGES_PER_FETCH = 10
MAX_MESSAGES_PER_FETCH_LIMIT = 10
DEFAULT_FETCH_RETRY_DELAY = 5.0
DEFAULT_HANDLER_TIMEOUT = 5.0
DEFAULT_LIST_MOVE_TASKS_MAX_RESULTS = 1
MAX_DELAY_SECONDS = 900

OptionsT = TypeVar("OptionsT")


@dataclass(frozen=True)
class DefaultOptions:
    debug: bool = False


@dataclass(frozen=True)
class ConsumerOptions:
    max_messages_per_fetch: int = 0
    # Seconds; 0 keeps the queue default.
    visibility_timeout: float = 0
    wait_time: float = 0
    fetch_retry_delay: float = 0
    handler_timeout: float = 0
    auto_delete_on_success: bool = False
    dedup_attempt_id: str | None = None
    debug: bool = False


@dataclass(frozen=True)
class ProducerOptions:
    # Seconds, up to 15 minutes. FIFO queues only accept a queue-level delay.
    delay: float = 0
    # A mapping or a record (pydantic model or dataclass).
    attributes: Any = None
    system_attributes: MessageSystemAttributes | None = None
    # FIFO only; validated by SQS itself.
    dedup_id: str | None = None
    group_id: str | None = None
    debug: bool = False


@dataclass(frozen=True)
class CreateQueueOptions:
    attributes: dict[str, str] | None = None
    tags: dict[str, str] | None = None
    debug: bool = False


@dataclass(frozen=True)
class ListQueuesOptions:
    max_results: int = 0
    next_token: str | None = None
    queue_name_prefix: str | None = None
    debug: bool = False


@dataclass(frozen=True)
class ListMoveTasksOptions:
    max_results: int = 0
    debug: bool = False


def _is_unset(value: Any) -> bool:
    if is_zero(value):
        return True

    if dataclasses.is_dataclass(value) and is_record(value):
        return all(is_zero(getattr(value, field.name)) for field in dataclasses.fields(value))

    return False


def merge_options(options_type: type[OptionsT], opts: tuple[Any, ...]) -> OptionsT:
    """Merges the options left to right with the last non-zero value winning."""
    merged: dict[str, Any] = {}
    for opt in opts:
        if opt is None:
            continue

        if not isinstance(opt, options_type):
            raise TypeError(
                f"Expected {options_type.__name__} options but got {type(opt).__name__}."
            )

        for field in dataclasses.fields(opt):  # type: ignore[arg-type]
            value = getattr(opt, field.name)
            if not _is_unset(value):
                merged[field.name] = value

    return options_type(**merged)


def merge_consumer_options(*opts: ConsumerOptions | None) -> ConsumerOptions:
    merged = merge_options(ConsumerOptions, opts)

    max_messages = merged.max_messages_per_fetch
    if max_messages <= 0:
        max_messages = DEFAULT_MAX_MESSAGES_PER_FETCH
    max_messages = min(max_messages, MAX_MESSAGES_PER_FETCH_LIMIT)

    return dataclasses.replace(
        merged,
        max_messages_per_fetch=max_messages,
        fetch_retry_delay=merged.fetch_retry_delay or DEFAULT_FETCH_RETRY_DELAY,
        handler_timeout=merged.handler_timeout or DEFAULT_HANDLER_TIMEOUT,
    )


def merge_producer_options(*opts: ProducerOptions | None) -> ProducerOptions:
    merged = merge_options(ProducerOptions, opts)
    return dataclasses.replace(merged, delay=min(max(merged.delay, 0), MAX_DELAY_SECONDS))


def merge_default_options(*opts: DefaultOptions | None) -> DefaultOptions:
    return merge_options(DefaultOptions, opts)


def merge_create_queue_options(*opts: CreateQueueOptions | None) -> CreateQueueOptions:
    return merge_options(CreateQueueOptions, opts)


def merge_list_queues_options(*opts: ListQueuesOptions | None) -> ListQueuesOptions:
    return merge_options(ListQueuesOptions, opts)


def merge_list_move_tasks_options(*opts: ListMoveTasksOptions | None) -> ListMoveTasksOptions:
    merged = merge_options(ListMoveTasksOptions, opts)
    if merged.max_results <= 0:
        return dataclasses.replace(merged, max_results=DEFAULT_LIST_MOVE_TASKS_MAX_RESULTS)
    return merged

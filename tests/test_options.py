import pytest

from sqstemplate.options import (
    DEFAULT_FETCH_RETRY_DELAY,
    DEFAULT_HANDLER_TIMEOUT,
    MAX_DELAY_SECONDS,
    ConsumerOptions,
    CreateQueueOptions,
    DefaultOptions,
    ListMoveTasksOptions,
    ProducerOptions,
    merge_consumer_options,
    merge_create_queue_options,
    merge_default_options,
    merge_list_move_tasks_options,
    merge_producer_options,
)


class TestConsumerOptions:
    def test_defaults(self):
        options = merge_consumer_options()

        assert options.max_messages_per_fetch == 10
        assert options.visibility_timeout == 0
        assert options.wait_time == 0
        assert options.fetch_retry_delay == DEFAULT_FETCH_RETRY_DELAY
        assert options.handler_timeout == DEFAULT_HANDLER_TIMEOUT
        assert not options.auto_delete_on_success
        assert options.dedup_attempt_id is None
        assert not options.debug

    def test_last_non_zero_wins(self):
        options = merge_consumer_options(
            ConsumerOptions(max_messages_per_fetch=5, handler_timeout=1, debug=True),
            None,
            ConsumerOptions(max_messages_per_fetch=3),
            ConsumerOptions(max_messages_per_fetch=0, wait_time=20),
        )

        assert options.max_messages_per_fetch == 3
        assert options.handler_timeout == 1
        assert options.wait_time == 20
        assert options.debug

    def test_max_messages_is_clamped(self):
        options = merge_consumer_options(ConsumerOptions(max_messages_per_fetch=50))
        assert options.max_messages_per_fetch == 10

    def test_wrong_option_type(self):
        with pytest.raises(TypeError):
            merge_consumer_options(ProducerOptions(delay=1))  # type: ignore[arg-type]


class TestProducerOptions:
    def test_merge(self):
        options = merge_producer_options(
            ProducerOptions(delay=10, attributes={"a": "1"}, group_id="g1"),
            ProducerOptions(delay=30, dedup_id="d1"),
        )

        assert options.delay == 30
        assert options.attributes == {"a": "1"}
        assert options.group_id == "g1"
        assert options.dedup_id == "d1"

    def test_empty_attributes_do_not_override(self):
        options = merge_producer_options(
            ProducerOptions(attributes={"a": "1"}),
            ProducerOptions(attributes={}),
        )

        assert options.attributes == {"a": "1"}

    def test_delay_is_clamped_to_fifteen_minutes(self):
        assert merge_producer_options(ProducerOptions(delay=3600)).delay == MAX_DELAY_SECONDS
        assert merge_producer_options(ProducerOptions(delay=-5)).delay == 0
        assert merge_producer_options(ProducerOptions(delay=120)).delay == 120


class TestAdminOptions:
    def test_default_options(self):
        assert merge_default_options(DefaultOptions(debug=True), DefaultOptions()).debug
        assert not merge_default_options().debug

    def test_create_queue_options(self):
        options = merge_create_queue_options(
            CreateQueueOptions(attributes={"DelaySeconds": "5"}),
            CreateQueueOptions(tags={"team": "billing"}),
        )

        assert options.attributes == {"DelaySeconds": "5"}
        assert options.tags == {"team": "billing"}

    def test_list_move_tasks_default(self):
        assert merge_list_move_tasks_options().max_results == 1
        assert merge_list_move_tasks_options(ListMoveTasksOptions(max_results=7)).max_results == 7

"""
Unit tests for the delivery retry policy.
"""

from datetime import timedelta

import pytest

from deliveryq.constants import FALLBACK_RETRY_DELAY_MS, MessagePriority
from deliveryq.dispatch.retry import RetryPolicy
from deliveryq.types.queue import QueuedItem
from tests.conftest import FakeClock


def _item(max_retries: int = 3) -> QueuedItem:
    return QueuedItem(
        id="msg_test",
        payload={"to": "user@example.com"},
        priority=MessagePriority.NORMAL,
        max_retries=max_retries,
    )


class TestRetryDelays:
    """Tests for the delay table."""

    @pytest.mark.parametrize(
        "attempt,expected",
        [(1, 1000), (2, 2000), (3, 5000), (4, 5000), (10, 5000)],
    )
    def test_delay_table_clamps_to_last_entry(self, attempt: int, expected: int):
        """Test attempts past the table reuse the last delay."""
        policy = RetryPolicy([1000, 2000, 5000])
        assert policy.delay_for(attempt) == expected

    def test_empty_table_uses_fallback(self):
        """Test the fallback delay when no delays are configured."""
        policy = RetryPolicy([])
        assert policy.delay_for(1) == FALLBACK_RETRY_DELAY_MS
        assert policy.delay_for(1) == 5000


class TestOnFailure:
    """Tests for routing failed deliveries."""

    def test_first_failure_schedules_retry(self):
        """Test a failure within the retry budget is rescheduled."""
        clock = FakeClock()
        policy = RetryPolicy([1000, 2000], clock=clock)
        item = _item()

        decision = policy.on_failure(item, "timeout")

        assert decision.retry is True
        assert decision.attempt == 1
        assert decision.delay_ms == 1000
        assert item.retry_count == 1
        assert item.scheduled_for == clock.now + timedelta(milliseconds=1000)
        assert decision.retry_at == item.scheduled_for

    def test_backoff_grows_with_attempts(self):
        """Test successive failures use successive delays."""
        clock = FakeClock()
        policy = RetryPolicy([1000, 2000], clock=clock)
        item = _item()

        policy.on_failure(item, "timeout")
        decision = policy.on_failure(item, "timeout")

        assert decision.delay_ms == 2000
        assert item.scheduled_for == clock.now + timedelta(milliseconds=2000)

    def test_exhausted_retries_drop_item(self):
        """Test max_retries=2 allows three attempts in total."""
        policy = RetryPolicy([10])
        item = _item(max_retries=2)

        assert policy.on_failure(item, "boom").retry is True
        assert policy.on_failure(item, "boom").retry is True
        decision = policy.on_failure(item, "boom")

        assert decision.retry is False
        assert decision.attempt == 3
        assert item.retry_count == 3

    def test_zero_retries_fails_immediately(self):
        """Test an item without retry budget is dropped on first failure."""
        policy = RetryPolicy([10])
        item = _item(max_retries=0)

        decision = policy.on_failure(item, "boom")

        assert decision.retry is False
        assert item.scheduled_for is None

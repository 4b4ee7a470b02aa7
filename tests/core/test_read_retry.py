"""
Tests for bounded retry of idempotent reads.
"""

import asyncio

import pytest

from forgebot.core.flow.errors import ExternalServiceError, ValidationError
from forgebot.core.recovery import RetryConfig, retry_read

FAST = RetryConfig(max_attempts=3, initial_delay_seconds=0.001, jitter=False)


class TestRetryRead:
    """Tests for retry_read."""

    @pytest.mark.asyncio
    async def test_successful_read_runs_once(self):
        call_count = 0

        async def operation():
            nonlocal call_count
            call_count += 1
            return 42

        assert await retry_read(operation, name="balance", config=FAST) == 42
        assert call_count == 1

    @pytest.mark.asyncio
    async def test_retries_external_errors(self):
        call_count = 0

        async def operation():
            nonlocal call_count
            call_count += 1
            if call_count < 3:
                raise ExternalServiceError("rpc 503")
            return "ok"

        assert await retry_read(operation, name="balance", config=FAST) == "ok"
        assert call_count == 3

    @pytest.mark.asyncio
    async def test_gives_up_with_last_error(self):
        call_count = 0

        async def operation():
            nonlocal call_count
            call_count += 1
            raise ExternalServiceError(f"failure {call_count}")

        with pytest.raises(ExternalServiceError) as excinfo:
            await retry_read(operation, name="balance", config=FAST)

        assert call_count == 3
        assert excinfo.value.message == "failure 3"

    @pytest.mark.asyncio
    async def test_other_errors_are_not_retried(self):
        call_count = 0

        async def operation():
            nonlocal call_count
            call_count += 1
            raise ValidationError("bad input")

        with pytest.raises(ValidationError):
            await retry_read(operation, name="balance", config=FAST)
        assert call_count == 1

    @pytest.mark.asyncio
    async def test_timeouts_become_external_errors(self):
        config = RetryConfig(
            max_attempts=2, initial_delay_seconds=0.001, jitter=False, attempt_timeout_seconds=0.01
        )

        async def operation():
            await asyncio.sleep(1)

        with pytest.raises(ExternalServiceError) as excinfo:
            await retry_read(operation, name="quote", config=config)

        assert excinfo.value.provider == "quote"
        assert "timed out after 2 attempts" in excinfo.value.message


class TestRetryConfig:

    def test_delay_grows_and_is_capped(self):
        config = RetryConfig(initial_delay_seconds=1.0, max_delay_seconds=5.0, jitter=False)

        assert [config.get_delay(i) for i in range(5)] == [1.0, 2.0, 4.0, 5.0, 5.0]

    def test_jitter_stays_in_range(self):
        config = RetryConfig(initial_delay_seconds=1.0, jitter_factor=0.1)

        for _ in range(20):
            assert 0.9 <= config.get_delay(0) <= 1.1

"""Unit tests for RetryConfig and retry_async."""

import pytest

from infrastructure.resilience import RetryConfig, retry_async


class Flaky:
    """Fails ``failures`` times with ``error`` before returning ``value``."""

    def __init__(self, failures, error=None, value="ok"):
        self.failures = failures
        self.error = error or ConnectionError("down")
        self.value = value
        self.attempts = []

    async def __call__(self, attempt_no):
        self.attempts.append(attempt_no)
        if len(self.attempts) <= self.failures:
            raise self.error
        return self.value


@pytest.mark.unit
class TestRetryConfig:
    def test_exponential_delays(self):
        config = RetryConfig(max_attempts=4, base_delay_seconds=1, max_delay_seconds=10)

        assert config.delay_for(1) == 1
        assert config.delay_for(2) == 2
        assert config.delay_for(3) == 4

    def test_exponential_delay_is_capped(self):
        config = RetryConfig(max_attempts=10, base_delay_seconds=4, max_delay_seconds=10)
        assert config.delay_for(5) == 10

    def test_ladder_repeats_last_entry(self):
        config = RetryConfig.from_ladder([5, 15], max_attempts=4)

        assert config.delay_for(1) == 5
        assert config.delay_for(2) == 15
        assert config.delay_for(3) == 15
        assert config.max_total_delay_seconds == 35

    def test_ladder_total_is_sum_of_used_delays(self):
        config = RetryConfig.from_ladder([5, 15, 45], max_attempts=3)
        assert config.max_total_delay_seconds == 20

    def test_next_delay_none_when_attempts_exhausted(self):
        config = RetryConfig(max_attempts=2)
        assert config.next_delay(2, waited=0) is None

    def test_next_delay_none_when_ceiling_would_be_exceeded(self):
        config = RetryConfig(max_attempts=5, base_delay_seconds=4, max_total_delay_seconds=5)

        assert config.next_delay(1, waited=0) == 4
        assert config.next_delay(2, waited=4) is None

    def test_retry_after_raises_delay(self):
        config = RetryConfig(max_attempts=3, base_delay_seconds=1, max_total_delay_seconds=30)
        assert config.next_delay(1, waited=0, retry_after=7) == 7

    def test_retry_after_beyond_ceiling_gives_up(self):
        config = RetryConfig(max_attempts=3, base_delay_seconds=1, max_total_delay_seconds=30)
        assert config.next_delay(1, waited=0, retry_after=60) is None

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"max_attempts": 0},
            {"base_delay_seconds": -1},
            {"base_delay_seconds": 5, "max_delay_seconds": 1},
            {"max_total_delay_seconds": -1},
            {"delays": (1, -2)},
        ],
    )
    def test_invalid_values_rejected(self, kwargs):
        with pytest.raises(ValueError):
            RetryConfig(**kwargs)


@pytest.mark.unit
class TestRetryAsync:
    @pytest.mark.asyncio
    async def test_returns_first_success(self, clock):
        operation = Flaky(failures=0)

        result = await retry_async(operation, RetryConfig(), clock)

        assert result == "ok"
        assert operation.attempts == [1]
        assert clock.sleeps == []

    @pytest.mark.asyncio
    async def test_retries_with_ladder_delays(self, clock):
        operation = Flaky(failures=2)

        result = await retry_async(
            operation, RetryConfig.from_ladder([5, 15, 45], max_attempts=3), clock
        )

        assert result == "ok"
        assert operation.attempts == [1, 2, 3]
        assert clock.sleeps == [5, 15]

    @pytest.mark.asyncio
    async def test_raises_last_error_when_exhausted(self, clock):
        operation = Flaky(failures=5)

        with pytest.raises(ConnectionError):
            await retry_async(operation, RetryConfig(max_attempts=3), clock)

        assert operation.attempts == [1, 2, 3]
        assert clock.sleeps == [1, 2]

    @pytest.mark.asyncio
    async def test_non_retryable_error_propagates_immediately(self, clock):
        operation = Flaky(failures=5, error=ValueError("bad"))

        with pytest.raises(ValueError):
            await retry_async(
                operation,
                RetryConfig(max_attempts=3),
                clock,
                is_retryable=lambda e: not isinstance(e, ValueError),
            )

        assert operation.attempts == [1]

    @pytest.mark.asyncio
    async def test_retry_after_hint_is_honoured(self, clock):
        class Throttled(Exception):
            retry_after = 9

        operation = Flaky(failures=1, error=Throttled())

        await retry_async(
            operation,
            RetryConfig(max_attempts=3, max_total_delay_seconds=30),
            clock,
            retry_after=lambda e: getattr(e, "retry_after", None),
        )

        assert clock.sleeps == [9]

    @pytest.mark.asyncio
    async def test_on_failure_called_per_failed_attempt(self, clock):
        failures = []
        operation = Flaky(failures=2)

        await retry_async(
            operation,
            RetryConfig(max_attempts=3),
            clock,
            on_failure=lambda attempt, error: failures.append(attempt),
        )

        assert failures == [1, 2]

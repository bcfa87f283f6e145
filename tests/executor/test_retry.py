"""Tests for retry with exponential backoff."""

import random
import pytest
from stackwright.executor.retry import RetryPolicy, calculate_delay, call_with_retry
from stackwright.utils.errors import FatalProviderError, RetryableProviderError


class Flaky:
    """Callable failing a fixed number of times before returning."""

    def __init__(self, failures, error_cls=RetryableProviderError):
        self.failures = failures
        self.error_cls = error_cls
        self.calls = 0

    def __call__(self, value):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error_cls(f"failure {self.calls}")
        return value


class TestCalculateDelay:
    """Test backoff delay calculation."""

    def test_exponential_growth(self):
        """Delays double per attempt without jitter."""
        policy = RetryPolicy(base_delay=1.0, max_delay=30.0, jitter=0)

        assert [calculate_delay(n, policy) for n in range(4)] == [1.0, 2.0, 4.0, 8.0]

    def test_capped_at_max_delay(self):
        """Delays never exceed max_delay, jitter included."""
        policy = RetryPolicy(base_delay=1.0, max_delay=5.0, jitter=0.5)
        rng = random.Random(7)

        assert all(calculate_delay(10, policy, rng) <= 5.0 for _ in range(50))

    def test_jitter_bounds(self):
        """Jitter stays within the configured fraction."""
        policy = RetryPolicy(base_delay=2.0, max_delay=30.0, jitter=0.1)
        rng = random.Random(1)

        for _ in range(50):
            assert 1.8 <= calculate_delay(0, policy, rng) <= 2.2


class TestCallWithRetry:
    """Test retry behavior."""

    def test_success_first_try(self):
        """No retries when the call succeeds."""
        result, attempts = call_with_retry(lambda: "ok", policy=RetryPolicy(), sleep=lambda s: None)

        assert (result, attempts) == ("ok", 1)

    def test_retry_until_success(self):
        """Retryable errors are retried with increasing delays."""
        delays = []
        flaky = Flaky(2)
        policy = RetryPolicy(max_attempts=5, base_delay=1.0, jitter=0)

        result, attempts = call_with_retry(flaky, "done", policy=policy, sleep=delays.append)

        assert (result, attempts) == ("done", 3)
        assert delays == [1.0, 2.0]

    def test_exhausted(self):
        """The last retryable error is raised with the attempt count."""
        flaky = Flaky(10)

        with pytest.raises(RetryableProviderError) as exc_info:
            call_with_retry(flaky, "x", policy=RetryPolicy(max_attempts=3, jitter=0), sleep=lambda s: None)

        assert flaky.calls == 3
        assert exc_info.value.attempts == 3

    def test_fatal_not_retried(self):
        """Fatal errors propagate on the first attempt."""
        flaky = Flaky(1, FatalProviderError)

        with pytest.raises(FatalProviderError) as exc_info:
            call_with_retry(flaky, "x", policy=RetryPolicy(), sleep=lambda s: None)

        assert flaky.calls == 1
        assert exc_info.value.attempts == 1

    def test_other_exceptions_propagate(self):
        """Non-provider exceptions are not retried."""
        def broken():
            raise KeyError("boom")

        with pytest.raises(KeyError):
            call_with_retry(broken, policy=RetryPolicy(), sleep=lambda s: None)

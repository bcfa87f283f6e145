"""Bounded exponential backoff for retryable provider calls."""

import random
import time
from typing import Any, Callable, Optional, Tuple, TypeVar
from pydantic import BaseModel, Field
from ..utils.errors import ProviderError, RetryableProviderError
from ..utils.logging import get_logger

logger = get_logger("executor.retry")

T = TypeVar("T")


class RetryPolicy(BaseModel):
    """Configuration for retry behavior."""
    max_attempts: int = Field(default=5, ge=1, description="Total attempts including the first call")
    base_delay: float = Field(default=1.0, ge=0, description="Delay before the first retry, in seconds")
    max_delay: float = Field(default=30.0, ge=0, description="Upper bound for a single delay, in seconds")
    exponential_base: float = Field(default=2.0, ge=1, description="Growth factor between retries")
    jitter: float = Field(default=0.1, ge=0, le=1, description="Relative jitter applied to each delay")


def calculate_delay(attempt: int, policy: RetryPolicy, rng: Optional[random.Random] = None) -> float:
    """
    Calculate delay with exponential backoff.

    Args:
        attempt: Current attempt number (0-indexed)
        policy: Retry policy

    Returns:
        Delay in seconds, never above policy.max_delay
    """
    delay = min(policy.base_delay * (policy.exponential_base ** attempt), policy.max_delay)
    if policy.jitter:
        rng = rng or random
        delay += delay * policy.jitter * (2 * rng.random() - 1)
    return max(0.0, min(delay, policy.max_delay))


def call_with_retry(
    func: Callable[..., T],
    *args: Any,
    policy: RetryPolicy,
    description: str = "provider call",
    sleep: Callable[[float], None] = time.sleep,
    **kwargs: Any
) -> Tuple[T, int]:
    """
    Call func, retrying RetryableProviderError with exponential backoff.

    Returns:
        Tuple of (result, attempts made)

    Raises:
        RetryableProviderError: The last error once attempts are exhausted
        Any other exception raised by func, immediately

    Provider errors leaving this function carry the number of attempts made
    in their `attempts` attribute.
    """
    for attempt in range(policy.max_attempts):
        try:
            return func(*args, **kwargs), attempt + 1
        except ProviderError as e:
            e.attempts = attempt + 1
            if not isinstance(e, RetryableProviderError):
                raise
            if attempt >= policy.max_attempts - 1:
                logger.error(f"All {policy.max_attempts} attempts failed for {description}: {e}")
                raise
            delay = calculate_delay(attempt, policy)
            logger.warning(
                f"Retry attempt {attempt + 1}/{policy.max_attempts} after {delay:.1f}s: {description} - {e}"
            )
            sleep(delay)

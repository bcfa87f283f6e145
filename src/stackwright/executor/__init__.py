"""Plan execution."""

from .context import RunContext
from .executor import execute_plan, run_step
from .retry import RetryPolicy, calculate_delay, call_with_retry

__all__ = ["RunContext", "execute_plan", "run_step", "RetryPolicy", "calculate_delay", "call_with_retry"]

"""Bounded retry with exponential backoff for async operations."""
import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryPolicy:
    """
    How many times to try an operation and how long to wait in between.

    Attributes:
        max_attempts: Total attempts, including the first one
        base_delay_ms: Wait after the first failure
        backoff_factor: Multiplier applied to the wait after every further failure
        retry_on: Exception types that count as a failed attempt
    """
    max_attempts: int = 3
    base_delay_ms: int = 1000
    backoff_factor: float = 2.0
    retry_on: Tuple[Type[BaseException], ...] = (Exception,)

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    def delay_ms(self, failed_attempt: int) -> float:
        """Delay between attempt ``n`` and ``n + 1``: ``base * factor^(n-1)``."""
        return self.base_delay_ms * (self.backoff_factor ** (failed_attempt - 1))


class RetryExhaustedError(Exception):
    """Raised when every attempt allowed by a RetryPolicy failed."""

    def __init__(self, attempts: int, last_error: BaseException):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Operation failed after {attempts} attempt(s): {last_error}")


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    policy: Optional[RetryPolicy] = None,
    sleep: Sleep = asyncio.sleep,
    description: str = "operation",
) -> T:
    """
    Run ``operation`` until it succeeds or the policy runs out of attempts.

    Args:
        operation: Zero-argument coroutine factory; called once per attempt
        policy: Retry policy (defaults to 3 attempts, 1s then 2s)
        sleep: Coroutine used to wait between attempts, in seconds
        description: Name used in log messages

    Returns:
        Result of the first successful attempt

    Raises:
        RetryExhaustedError: If the last allowed attempt failed
    """
    policy = policy or RetryPolicy()

    for attempt in range(1, policy.max_attempts + 1):
        try:
            result = await operation()
        except policy.retry_on as e:
            if attempt >= policy.max_attempts:
                logger.error(
                    f"{description} failed on final attempt {attempt}/{policy.max_attempts}: {e}",
                    extra={"attempt": attempt, "max_attempts": policy.max_attempts},
                )
                raise RetryExhaustedError(attempt, e) from e

            delay_ms = policy.delay_ms(attempt)
            logger.warning(
                f"{description} failed on attempt {attempt}/{policy.max_attempts}: {e}; "
                f"retrying in {delay_ms:.0f}ms",
                extra={"attempt": attempt, "retry_delay_ms": delay_ms},
            )
            await sleep(delay_ms / 1000)
        else:
            if attempt > 1:
                logger.info(f"{description} succeeded on attempt {attempt}")
            return result

    # max_attempts >= 1 guarantees the loop returns or raises
    raise AssertionError("unreachable")

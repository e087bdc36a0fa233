"""
Bounded retry with exponential backoff for single async operations.

Wraps tenacity so every remote call in the relay shares one policy shape:
attempt N (0-based) that fails sleeps initial_delay * 2**N before the next try,
and the last failure is re-raised unmodified.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """
    Retry policy for remote calls.

    Attributes:
        max_attempts: Total attempts, including the first one
        initial_delay: Delay in seconds after the first failure, doubled each retry
        jitter: Upper bound in seconds of uniform random delay added to each wait
        retry_if: Optional predicate; exceptions for which it returns False are
            re-raised immediately without sleeping
    """
    max_attempts: int = 3
    initial_delay: float = 1.0
    jitter: float = 0.0
    retry_if: Optional[Callable[[BaseException], bool]] = None

    def wait_strategy(self):
        wait = wait_exponential(multiplier=self.initial_delay, exp_base=2, min=0)
        if self.jitter > 0:
            wait = wait + wait_random(0, self.jitter)
        return wait

    def retry_strategy(self):
        if self.retry_if is None:
            return retry_if_exception_type(Exception)
        return retry_if_exception(self.retry_if)


def _log_retry(retry_state: RetryCallState) -> None:
    delay_ms = int(retry_state.next_action.sleep * 1000) if retry_state.next_action else 0
    error = retry_state.outcome.exception() if retry_state.outcome else None
    logger.info(
        f"[RETRY] Attempt {retry_state.attempt_number} failed "
        f"({type(error).__name__}), retrying in {delay_ms}ms..."
    )


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    policy: Optional[RetryPolicy] = None,
    *,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> T:
    """
    Run an async operation, retrying failures with exponential backoff.

    Args:
        operation: Zero-argument callable returning an awaitable
        policy: Retry policy (defaults to 3 attempts starting at 1 second)
        sleep: Awaitable sleep used between attempts

    Returns:
        The operation's result from the first successful attempt

    Raises:
        The exception from the final attempt, unmodified
    """
    policy = policy or RetryPolicy()
    retrying = AsyncRetrying(
        stop=stop_after_attempt(policy.max_attempts),
        wait=policy.wait_strategy(),
        retry=policy.retry_strategy(),
        before_sleep=_log_retry,
        sleep=sleep,
        reraise=True,
    )

    # tenacity only awaits coroutine functions; lambdas returning a coroutine must be wrapped
    async def _attempt() -> T:
        return await operation()

    return await retrying(_attempt)

"""
Bounded retry with timeout for every external call (model, tool, whole turn).

Each attempt races the operation against a deadline. Failed attempts are retried
with exponential backoff: wait = min(min_timeout * factor ** attempt, max_timeout).
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from app.core import config
from app.core.errors import AgentError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    timeout: float
    max_retries: int
    factor: float = config.RETRY_FACTOR
    min_timeout: float = config.RETRY_MIN_TIMEOUT
    max_timeout: float = config.RETRY_MAX_TIMEOUT

    def backoff(self, attempt: int) -> float:
        """Seconds to wait after failed attempt number `attempt` (0-based)."""
        return min(self.min_timeout * self.factor ** attempt, self.max_timeout)

    def schedule(self) -> list[float]:
        """Full backoff schedule when every attempt fails."""
        return [self.backoff(i) for i in range(self.max_retries)]


MODEL_POLICY = RetryPolicy(timeout=config.MODEL_TIMEOUT, max_retries=config.MAX_MODEL_RETRIES)
TOOL_POLICY = RetryPolicy(timeout=config.TOOL_TIMEOUT, max_retries=config.MAX_TOOL_RETRIES)
WORKFLOW_POLICY = RetryPolicy(timeout=config.WORKFLOW_TIMEOUT, max_retries=config.MAX_WORKFLOW_RETRIES)


class OperationTimeoutError(TimeoutError):
    """Raised when the final attempt of an operation hit its deadline."""

    def __init__(self, label: str, attempts: int, timeout: float) -> None:
        self.label = label
        self.attempts = attempts
        self.timeout = timeout
        super().__init__(f"{label} timed out after {attempts} attempt(s) ({timeout}s each)")


def is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, AgentError):
        return exc.retryable
    return True


def deadline_after(seconds: float) -> float:
    """Absolute event-loop time `seconds` from now."""
    return asyncio.get_running_loop().time() + seconds


def time_left(deadline: float | None) -> float | None:
    if deadline is None:
        return None
    return deadline - asyncio.get_running_loop().time()


async def execute(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    label: str = "operation",
    retry_if: Callable[[BaseException], bool] = is_retryable,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    deadline: float | None = None,
) -> T:
    """
    Run `operation` (a zero-arg coroutine factory) under `policy`.

    Each attempt calls the factory again, so the operation must be safe to repeat.
    With a `deadline` (event-loop time), each attempt's timeout is capped to the time
    left and no attempt or backoff starts past it.
    Raises OperationTimeoutError if the last attempt timed out, else the last error.
    """
    attempts = policy.max_retries + 1
    last_error: Exception | None = None
    for attempt in range(attempts):
        timeout = policy.timeout
        left = time_left(deadline)
        if left is not None:
            if left <= 0:
                logger.warning("[resilience:%s] deadline reached before attempt=%d/%d", label, attempt + 1, attempts)
                break
            timeout = min(timeout, left)
        try:
            return await asyncio.wait_for(operation(), timeout=timeout)
        except asyncio.TimeoutError:
            last_error = OperationTimeoutError(label, attempt + 1, timeout)
            logger.warning("[resilience:%s] attempt=%d/%d timed out after %.2fs", label, attempt + 1, attempts, timeout)
        except Exception as e:
            if not retry_if(e):
                logger.info("[resilience:%s] attempt=%d/%d non-retryable %s", label, attempt + 1, attempts, type(e).__name__)
                raise
            last_error = e
            logger.warning("[resilience:%s] attempt=%d/%d failed: %s: %s", label, attempt + 1, attempts, type(e).__name__, e)
        if attempt < policy.max_retries:
            delay = policy.backoff(attempt)
            left = time_left(deadline)
            if left is not None and delay >= left:
                logger.warning("[resilience:%s] backoff %.2fs exceeds the %.2fs left; giving up", label, delay, left)
                break
            logger.info("[resilience:%s] retrying in %.1fs", label, delay)
            await sleep(delay)
    if last_error is None:
        last_error = OperationTimeoutError(label, 0, 0.0)
    logger.error("[resilience:%s] giving up: %s", label, type(last_error).__name__)
    raise last_error

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, Optional, Sequence, TypeVar

from ...constants import RETRYABLE_ERROR_PATTERNS, Defaults
from ...errors import ShadowWatchError
from ...logging import ShadowLogger

T = TypeVar("T")

RetryCallback = Callable[[int, BaseException, float], None]


@dataclass(frozen=True)
class RetryPolicy:
    max_retries: int = Defaults.MAX_RETRIES
    base_delay: float = Defaults.RETRY_BASE_DELAY_SECONDS
    retryable_patterns: Sequence[str] = RETRYABLE_ERROR_PATTERNS
    max_delay: Optional[float] = None
    jitter: float = 0.0

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.base_delay < 0:
            raise ValueError("base_delay must be >= 0")
        if self.jitter < 0:
            raise ValueError("jitter must be >= 0")

    def delay_for_attempt(self, attempt: int, *, random_fn: Callable[[], float] = random.random) -> float:
        """Backoff before retry number attempt + 1 (attempt is zero-based)."""
        delay = self.base_delay * (2**attempt)
        if self.jitter > 0:
            delay += delay * self.jitter * random_fn()
        if self.max_delay is not None:
            delay = min(delay, self.max_delay)
        return delay


DEFAULT_RETRY_POLICY = RetryPolicy()


@dataclass
class RetryResult(Generic[T]):
    result: T
    attempts: int


def _error_fields(error: BaseException) -> tuple[str, str, str]:
    message = str(error) if error is not None else ""
    code = getattr(error, "code", None)
    code = code if isinstance(code, str) else ""
    status = getattr(error, "status", None)
    if status is None:
        status = getattr(error, "status_code", None)
    return message.lower(), code.lower(), "" if status is None else str(status).lower()


def is_retryable(error: Optional[BaseException], patterns: Sequence[str] = RETRYABLE_ERROR_PATTERNS) -> bool:
    """
    Classify a failure.

    Errors from the shadowwatch taxonomy answer for themselves via their
    retryable flag. Anything else is retryable when its message, code or
    status matches a pattern.
    """
    if error is None:
        return False
    if isinstance(error, ShadowWatchError):
        return error.retryable
    message, code, status = _error_fields(error)
    for pattern in patterns:
        needle = pattern.lower()
        if not needle:
            continue
        if needle in message or needle in code or needle in status:
            return True
    return False


async def retry_with_count(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy = DEFAULT_RETRY_POLICY,
    *,
    on_retry: Optional[RetryCallback] = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    logger: Optional[ShadowLogger] = None,
) -> RetryResult[T]:
    """
    Run operation, retrying retryable failures with exponential backoff.

    Attempt n (zero-based) that fails with a retryable error waits
    base_delay * 2**n before attempt n + 1. Non-retryable errors and the
    error from the last allowed attempt are re-raised unchanged.
    """
    attempt = 0
    while True:
        try:
            result = await operation()
            return RetryResult(result=result, attempts=attempt + 1)
        except Exception as exc:
            if attempt >= policy.max_retries or not is_retryable(exc, policy.retryable_patterns):
                raise
            delay = policy.delay_for_attempt(attempt)
            if logger is not None:
                logger.warning(
                    "llm_retry",
                    attempt=attempt + 1,
                    max_retries=policy.max_retries,
                    delay_ms=int(delay * 1000),
                    error=str(exc) or exc.__class__.__name__,
                )
            if on_retry is not None:
                on_retry(attempt + 1, exc, delay)
            await sleep(delay)
            attempt += 1


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy = DEFAULT_RETRY_POLICY,
    *,
    on_retry: Optional[RetryCallback] = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    logger: Optional[ShadowLogger] = None,
) -> T:
    outcome = await retry_with_count(operation, policy, on_retry=on_retry, sleep=sleep, logger=logger)
    return outcome.result

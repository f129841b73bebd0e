"""Bounded retry and failure recording for per-file work.

RetryPolicy decides which errors are transient and how long to wait
between attempts. RecoveryCoordinator runs one unit of work under that
policy and records the outcome:

    | Outcome                           | Error log | Returned / raised         |
    |-----------------------------------|-----------|---------------------------|
    | success on attempt n              | nothing   | ExecutionResult(success)  |
    | retryable error, n < max_retries  | nothing   | sleeps, attempts n + 1    |
    | non-retryable or n == max_retries | one entry | failure result            |
    |   ... without continue-on-error   | one entry | JobAbortedError raised    |

Retryable errors carry one of the codes ENOENT, EBUSY, ETIMEDOUT,
ECONNRESET, ENOTFOUND, or mention "LFS" in their message.

Example:
    >>> policy = RetryPolicy(max_retries=3, retry_delay=1000)
    >>> policy.delay_for_attempt(2)
    2000
    >>> coordinator = RecoveryCoordinator(policy, ErrorLog(Path("errors.log")),
    ...                                   continue_on_error=True)
    >>> result = await coordinator.execute(convert, {"file": "a.jpg"})
    >>> result.attempts
    1
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from image_lite.core.config import ErrorRecoveryConfig
from image_lite.core.error_log import ErrorLog, error_code
from image_lite.core.types import ExecutionResult
from image_lite.utils.constants import (
    DEFAULT_MAX_RETRIES,
    DEFAULT_RETRY_DELAY_MS,
    REMOTE_FETCH_ERROR_MARKER,
    RETRYABLE_ERROR_CODES,
)

logger = logging.getLogger(__name__)

Operation = Callable[[], Any]
SleepFunction = Callable[[float], Awaitable[Any]]


class JobAbortedError(Exception):
    """Raised when a file fails terminally and continue-on-error is off.

    Attributes:
        file: Relative path of the file that failed.
        error: The final error.
        attempts: Number of attempts made.
    """

    def __init__(self, file: str, error: BaseException, attempts: int) -> None:
        self.file = file
        self.error = error
        self.attempts = attempts
        super().__init__(f"Processing {file} failed after {attempts} attempt(s): {error}")


@dataclass
class RetryPolicy:
    """Retryability and backoff rules.

    Attributes:
        max_retries: Total attempts allowed per unit of work.
        retry_delay: Base delay in milliseconds.
        exponential_backoff: Double the delay after every failed attempt.
        retryable_codes: Error codes treated as transient.
    """

    max_retries: int = DEFAULT_MAX_RETRIES
    retry_delay: int = DEFAULT_RETRY_DELAY_MS
    exponential_backoff: bool = True
    retryable_codes: frozenset[str] = field(default_factory=lambda: RETRYABLE_ERROR_CODES)

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if self.max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        if self.retry_delay < 0:
            raise ValueError("retry_delay must be non-negative")

    @classmethod
    def from_config(cls, config: ErrorRecoveryConfig) -> RetryPolicy:
        """Build a policy from the error recovery settings."""
        return cls(
            max_retries=config.max_retries,
            retry_delay=config.retry_delay,
            exponential_backoff=config.exponential_backoff,
        )

    def is_retryable(self, error: BaseException) -> bool:
        """Return True if the error is worth another attempt."""
        if error_code(error) in self.retryable_codes:
            return True
        return REMOTE_FETCH_ERROR_MARKER in str(error)

    def delay_for_attempt(self, attempt: int) -> int:
        """Delay in milliseconds to wait after a failed attempt.

        Args:
            attempt: 1-based number of the attempt that just failed.
        """
        if self.exponential_backoff and attempt > 1:
            return self.retry_delay * 2 ** (attempt - 1)
        return self.retry_delay


class RecoveryCoordinator:
    """Runs units of work with bounded retries and records failures.

    Args:
        policy: Retry policy.
        error_log: Sink for terminal failures.
        continue_on_error: Return failures instead of aborting the job.
        sleep: Coroutine used for backoff waits (seconds).
    """

    def __init__(
        self,
        policy: RetryPolicy,
        error_log: ErrorLog,
        continue_on_error: bool = False,
        sleep: SleepFunction | None = None,
    ) -> None:
        self.policy = policy
        self.error_log = error_log
        self.continue_on_error = continue_on_error
        self._sleep = sleep or asyncio.sleep

    async def execute(self, operation: Operation, context: dict[str, Any]) -> ExecutionResult:
        """Run an operation until it succeeds or recovery is exhausted.

        Args:
            operation: Zero-argument callable; may return an awaitable.
            context: Failure context. ``context["file"]`` names the file.

        Returns:
            ExecutionResult with the operation's return value or final error.

        Raises:
            JobAbortedError: On terminal failure without continue-on-error.
        """
        attempt = 1
        while True:
            try:
                result = operation()
                if inspect.isawaitable(result):
                    result = await result
            except Exception as e:
                if attempt >= self.policy.max_retries or not self.policy.is_retryable(e):
                    return self.fail(context, e, attempt)

                delay_ms = self.policy.delay_for_attempt(attempt)
                logger.warning(
                    f"Attempt {attempt}/{self.policy.max_retries} for "
                    f"{context.get('file', '?')} failed ({e}); retrying in {delay_ms} ms"
                )
                await self._sleep(delay_ms / 1000)
                attempt += 1
                continue

            if attempt > 1:
                logger.info(f"{context.get('file', '?')} succeeded on attempt {attempt}")
            return ExecutionResult(success=True, result=result, attempts=attempt)

    def fail(
        self,
        context: dict[str, Any],
        error: BaseException,
        attempts: int = 1,
    ) -> ExecutionResult:
        """Record a terminal failure and apply the continue-on-error policy.

        Args:
            context: Failure context. ``context["file"]`` names the file.
            error: The final error.
            attempts: Number of attempts made.

        Returns:
            A failed ExecutionResult when continue-on-error is on.

        Raises:
            JobAbortedError: When continue-on-error is off.
        """
        file = str(context.get("file", ""))
        extra = {k: v for k, v in context.items() if k != "file"}
        self.error_log.append(file, error, extra, retry_count=attempts)
        logger.error(f"Failed to process {file} after {attempts} attempt(s): {error}")

        if not self.continue_on_error:
            raise JobAbortedError(file, error, attempts) from error

        return ExecutionResult(success=False, error=error, attempts=attempts)


__all__ = [
    "JobAbortedError",
    "RecoveryCoordinator",
    "RetryPolicy",
]

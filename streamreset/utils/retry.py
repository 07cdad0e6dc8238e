"""
Retry logic with exponential backoff.

Only failures explicitly marked as retryable are retried; everything
else surfaces on the first occurrence.
"""

import random
import time
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar

from streamreset.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar('T')


@dataclass
class RetryConfig:
    """
    Configuration for retry behavior.

    Attributes:
        max_attempts: Total number of attempts, including the first one
        retry_backoff_ms: Initial backoff in milliseconds
        retry_backoff_max_ms: Maximum backoff in milliseconds
        retry_jitter_ms: Random jitter to add to backoff
    """
    max_attempts: int = 5
    retry_backoff_ms: int = 100
    retry_backoff_max_ms: int = 5000
    retry_jitter_ms: int = 20


class RetryableError(Exception):
    """Exception that should trigger retry."""
    pass


class RetriesExhaustedError(Exception):
    """All attempts failed with retryable errors."""

    def __init__(self, operation_name: str, attempts: int):
        self.operation_name = operation_name
        self.attempts = attempts
        super().__init__(f"{operation_name} failed after {attempts} attempts")


class RetryManager:
    """
    Manages retry logic with exponential backoff.

    Implements:
    - Exponential backoff: delay doubles each retry
    - Maximum backoff: caps delay at maximum
    - Random jitter: prevents thundering herd
    """

    def __init__(
        self,
        config: Optional[RetryConfig] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize retry manager.

        Args:
            config: Retry configuration
            sleep: Sleep function (injectable for tests)
        """
        self.config = config or RetryConfig()
        self._sleep = sleep

        if self.config.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    def execute_with_retry(
        self,
        operation: Callable[[], T],
        operation_name: str = "operation",
    ) -> T:
        """
        Execute operation with retry logic.

        Args:
            operation: Callable to execute
            operation_name: Name for logging

        Returns:
            Result from operation

        Raises:
            RetriesExhaustedError: If every attempt failed with RetryableError,
                chained to the last failure
            Exception: Any non-retryable error, unchanged
        """
        last_exception: Optional[RetryableError] = None

        for attempt in range(self.config.max_attempts):
            try:
                result = operation()

                if attempt > 0:
                    logger.info(
                        f"{operation_name} succeeded after retry",
                        attempt=attempt,
                    )

                return result

            except RetryableError as e:
                last_exception = e

                if attempt < self.config.max_attempts - 1:
                    backoff_ms = self._calculate_backoff(attempt)

                    logger.warning(
                        f"{operation_name} failed, retrying",
                        attempt=attempt,
                        backoff_ms=backoff_ms,
                        error=str(e),
                    )

                    self._sleep(backoff_ms / 1000.0)
                else:
                    logger.error(
                        f"{operation_name} failed after all retries",
                        attempts=attempt + 1,
                        error=str(e),
                    )

        raise RetriesExhaustedError(
            operation_name, self.config.max_attempts
        ) from last_exception

    def _calculate_backoff(self, attempt: int) -> int:
        """
        Calculate backoff delay with exponential growth and jitter.

        Formula: min(base * 2^attempt, max) + jitter

        Args:
            attempt: Current attempt number (0-indexed)

        Returns:
            Backoff delay in milliseconds
        """
        exponential_backoff = self.config.retry_backoff_ms * (2 ** attempt)

        backoff = min(exponential_backoff, self.config.retry_backoff_max_ms)

        jitter = random.randint(0, self.config.retry_jitter_ms)

        return backoff + jitter

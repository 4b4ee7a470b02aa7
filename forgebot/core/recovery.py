"""
Read Recovery

Bounded retry for idempotent reads (balances, allowance, token metadata,
quotes, fee history). Submissions are never routed through here: a signed
transaction is sent exactly once.
"""

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

from forgebot.config import settings
from forgebot.core.flow.errors import ExternalServiceError

T = TypeVar("T")

logger = logging.getLogger(__name__)


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""

    max_attempts: int = 3
    initial_delay_seconds: float = 0.5
    max_delay_seconds: float = 8.0
    exponential_base: float = 2.0
    jitter: bool = True
    jitter_factor: float = 0.1
    attempt_timeout_seconds: Optional[float] = None

    @classmethod
    def from_settings(cls) -> "RetryConfig":
        return cls(
            max_attempts=settings.read_retry_attempts,
            initial_delay_seconds=settings.read_retry_initial_delay_seconds,
            attempt_timeout_seconds=settings.request_timeout_seconds,
        )

    def get_delay(self, attempt: int) -> float:
        """Calculate delay before retrying after ``attempt`` (0-based) failed."""
        delay = min(
            self.initial_delay_seconds * (self.exponential_base ** attempt),
            self.max_delay_seconds,
        )
        if self.jitter:
            jitter_range = delay * self.jitter_factor
            delay += random.uniform(-jitter_range, jitter_range)
        return max(delay, 0)


async def retry_read(
    operation: Callable[[], Awaitable[T]],
    *,
    name: str,
    config: Optional[RetryConfig] = None,
) -> T:
    """Run an idempotent read, retrying on ``ExternalServiceError`` and timeouts.

    Any other exception propagates immediately. After the last attempt the
    final failure is raised as ``ExternalServiceError``.
    """

    config = config or RetryConfig.from_settings()
    last_error: Optional[BaseException] = None

    for attempt in range(config.max_attempts):
        try:
            if config.attempt_timeout_seconds:
                return await asyncio.wait_for(operation(), config.attempt_timeout_seconds)
            return await operation()
        except (ExternalServiceError, asyncio.TimeoutError) as exc:
            last_error = exc
            if attempt < config.max_attempts - 1:
                delay = config.get_delay(attempt)
                logger.warning(
                    f"{name} attempt {attempt + 1}/{config.max_attempts} failed: "
                    f"{exc!r}. Retrying in {delay:.2f}s"
                )
                await asyncio.sleep(delay)

    if isinstance(last_error, ExternalServiceError):
        raise last_error
    raise ExternalServiceError(f"{name} timed out after {config.max_attempts} attempts", provider=name)


__all__ = ["RetryConfig", "retry_read"]

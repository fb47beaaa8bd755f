"""
Retry utilities for RPC calls.

Sequential retries with exponential backoff. Only errors listed in
``RetryConfig.retryable_errors`` are retried; anything else propagates
on the first attempt.
"""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

from somnia_deployer.errors import NetworkTransient
from somnia_deployer.utils.logging import get_logger

T = TypeVar("T")

_logger = get_logger(__name__)


@dataclass(frozen=True)
class RetryConfig:
    """
    Backoff policy for read-type RPC calls.

    With the defaults a failing read is tried three times, sleeping 1s and
    then 2s in between.

    Example:
        ```python
        config = RetryConfig(max_attempts=5, base_delay_ms=500)
        balance = await retry_async(lambda: client.get_balance(addr), config)
        ```
    """

    max_attempts: int = 3
    """Total attempts, including the first one."""

    base_delay_ms: int = 1000
    """Sleep before the first retry."""

    max_delay_ms: int = 30000

    jitter: bool = False
    """Full jitter: sleep a random fraction of the computed delay."""

    exponential_base: float = 2.0

    retryable_errors: Tuple[Type[Exception], ...] = field(
        default_factory=lambda: (NetworkTransient,)
    )


def calculate_delay(attempt: int, config: RetryConfig) -> float:
    """Seconds to sleep before retry number ``attempt`` (0-based)."""
    delay_ms = min(
        config.base_delay_ms * config.exponential_base ** attempt,
        config.max_delay_ms,
    )
    if config.jitter:
        delay_ms = random.uniform(0, delay_ms)
    return delay_ms / 1000


async def retry_async(
    fn: Callable[[], Awaitable[T]],
    config: Optional[RetryConfig] = None,
    *,
    operation: str = "call",
) -> T:
    """
    Await ``fn()`` until it succeeds or the attempts run out.

    Args:
        fn: Zero-argument coroutine factory, called once per attempt
        config: Backoff policy (defaults to ``RetryConfig()``)
        operation: RPC method or label used in log lines

    Raises:
        The last retryable error once every attempt failed, or the first
        non-retryable error immediately.
    """
    config = config or RetryConfig()
    attempts = max(config.max_attempts, 1)

    for attempt in range(attempts):
        try:
            return await fn()
        except config.retryable_errors as e:
            if attempt == attempts - 1:
                _logger.error(
                    "Retries exhausted",
                    extra={"operation": operation, "attempts": attempts, "error": str(e)},
                )
                raise
            delay = calculate_delay(attempt, config)
            _logger.warning(
                "Transient failure, retrying",
                extra={
                    "operation": operation,
                    "attempt": attempt + 1,
                    "max_attempts": attempts,
                    "delay_seconds": delay,
                    "error": str(e),
                },
            )
            await asyncio.sleep(delay)

    raise AssertionError("unreachable")

"""Retry utilities for collaborator reads.

Provides:
  - RetryPolicy: Configurable retry parameters.
  - retry_async: Decorator for async functions with exponential backoff + jitter.

Only idempotent calls (listing environments, fetching logs) are wrapped.
Launch and terminate calls are never retried.
"""
from __future__ import annotations

import asyncio
import functools
import logging
import random
from dataclasses import dataclass
from typing import Callable, Optional, Tuple, Type

import httpx

logger = logging.getLogger("envgate.resilience")


# ---------------------------------------------------------------------------
# Retry Policy
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RetryPolicy:
    """Configuration for retry behaviour.

    Attributes:
        max_retries: Maximum number of retry attempts (0 = no retries).
        base_delay: Initial delay in seconds before first retry.
        max_delay: Cap on delay.
        backoff_factor: Multiplier for exponential growth (2.0 = doubling).
        jitter: Randomisation range added to delay.
        retryable_exceptions: Exception types that trigger a retry.
    """
    max_retries: int = 2
    base_delay: float = 0.5
    max_delay: float = 5.0
    backoff_factor: float = 2.0
    jitter: float = 0.3
    retryable_exceptions: Tuple[Type[Exception], ...] = (
        httpx.TransportError,
    )


ORCHESTRATOR_READ_POLICY = RetryPolicy()


def _calculate_delay(attempt: int, policy: RetryPolicy) -> float:
    """Calculate delay with exponential backoff + jitter."""
    delay = policy.base_delay * (policy.backoff_factor ** attempt)
    delay = min(delay, policy.max_delay)
    jitter = random.uniform(0, policy.jitter)
    return delay + jitter


# ---------------------------------------------------------------------------
# Retry decorator
# ---------------------------------------------------------------------------

def retry_async(
    policy: Optional[RetryPolicy] = None,
    *,
    on_retry: Optional[Callable[[Exception, int, float], None]] = None,
):
    """Decorator: retry an async function with exponential backoff.

    Usage::

        @retry_async(ORCHESTRATOR_READ_POLICY)
        async def fetch_tasks(...):
            ...

    Args:
        policy: RetryPolicy (defaults to ORCHESTRATOR_READ_POLICY).
        on_retry: Optional callback(exception, attempt, delay) for logging.
    """
    _policy = policy or ORCHESTRATOR_READ_POLICY

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            for attempt in range(_policy.max_retries + 1):
                try:
                    return await func(*args, **kwargs)
                except _policy.retryable_exceptions as e:
                    if attempt >= _policy.max_retries:
                        logger.error(
                            "All %d retries exhausted for %s: %s",
                            _policy.max_retries, func.__name__, e,
                        )
                        raise
                    delay = _calculate_delay(attempt, _policy)
                    logger.warning(
                        "Retry %d/%d for %s: %s (waiting %.1fs)",
                        attempt + 1, _policy.max_retries, func.__name__, e, delay,
                    )
                    if on_retry:
                        on_retry(e, attempt + 1, delay)
                    await asyncio.sleep(delay)

        return wrapper
    return decorator

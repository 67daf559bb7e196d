"""Retry with exponential backoff for rate-limited calls.

Only rate limiting (HTTP 429) is retried.  Every other failure is raised to
the caller on the first attempt.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, TypeVar

import httpx
from loguru import logger

T = TypeVar("T")


def _status_code(exc: BaseException) -> int | None:
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code
    code = getattr(exc, "status_code", None)
    return code if isinstance(code, int) else None


def is_rate_limit_error(exc: BaseException) -> bool:
    """True for 429 responses from httpx or provider SDK errors."""
    if _status_code(exc) == 429:
        return True
    text = str(exc).lower()
    return "429" in text or "rate limit" in text or "rate_limit" in text


def retry_after_seconds(exc: BaseException) -> float | None:
    """Read a ``Retry-After`` header off the error's response, if any."""
    response = getattr(exc, "response", None)
    headers = getattr(response, "headers", None)
    if not headers:
        return None
    value = headers.get("retry-after") or headers.get("Retry-After")
    if value is None:
        return None
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        return None
    return seconds if seconds >= 0 else None


class RetryPolicy:
    """Bounded retry for rate limits: ``Retry-After`` or ``min(cap, base * 2**attempt)``."""

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 2.0,
        max_delay: float = 10.0,
        should_retry: Callable[[BaseException], bool] = is_rate_limit_error,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.max_attempts = max(1, max_attempts)
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.should_retry = should_retry
        self._sleep = sleep

    def delay_for(self, attempt: int, exc: BaseException | None = None) -> float:
        """Delay before retry number ``attempt`` (0-based)."""
        if exc is not None:
            hinted = retry_after_seconds(exc)
            if hinted is not None:
                return hinted
        return min(self.max_delay, self.base_delay * (2 ** attempt))

    async def run(
        self,
        fn: Callable[..., Awaitable[T]],
        *args: Any,
        description: str = "call",
        **kwargs: Any,
    ) -> T:
        attempt = 0
        while True:
            try:
                return await fn(*args, **kwargs)
            except Exception as exc:
                if not self.should_retry(exc) or attempt + 1 >= self.max_attempts:
                    raise
                delay = self.delay_for(attempt, exc)
                attempt += 1
                logger.warning(
                    f"Rate limited on {description}, retrying in {delay:.1f}s "
                    f"(attempt {attempt}/{self.max_attempts - 1})"
                )
                await self._sleep(delay)

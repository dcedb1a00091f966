"""Retry classification and backoff for the model transport call."""

from __future__ import annotations

import asyncio
import logging

import httpx

from atelier.errors import ProviderError
from atelier.types.config import RetryConfig

logger = logging.getLogger(__name__)

# Request timeout, conflict, rate limit and every server-side failure.
_RETRYABLE_STATUS_CODES: frozenset[int] = frozenset({408, 409, 429})

# SDK exception class names (openai / anthropic) that mean "try again later".
_RETRYABLE_NAMES: frozenset[str] = frozenset({
    "RateLimitError",
    "OverloadedError",
    "InternalServerError",
    "APIConnectionError",
    "APITimeoutError",
    "ServiceUnavailableError",
})


def is_transient(exc: BaseException) -> bool:
    """Return True when *exc* represents a transient error worth retrying."""
    if isinstance(exc, ProviderError):
        return exc.transient
    if isinstance(exc, (httpx.TransportError, ConnectionError, TimeoutError, asyncio.TimeoutError)):
        return True
    if type(exc).__name__ in _RETRYABLE_NAMES:
        return True
    status_code: int | None = getattr(exc, "status_code", None)
    if status_code is None:
        response = getattr(exc, "response", None)
        status_code = getattr(response, "status_code", None)
    if isinstance(status_code, int):
        return status_code in _RETRYABLE_STATUS_CODES or status_code >= 500
    return False


def describe_error(exc: BaseException) -> str:
    """Short human-readable reason for a divider or log line."""
    message = str(exc).strip().splitlines()[0] if str(exc).strip() else ""
    name = type(exc).__name__
    if not message:
        return name
    return message if isinstance(exc, ProviderError) else f"{name}: {message}"


class RetryPolicy:
    """Exponential backoff over a :class:`RetryConfig`.

    ``max_attempts`` counts the first try, so the default of 3 allows two
    retries with delays of 1s and 2s.
    """

    def __init__(self, config: RetryConfig | None = None) -> None:
        self.config = config or RetryConfig()

    @property
    def max_attempts(self) -> int:
        return max(1, self.config.max_attempts)

    def should_retry(self, exc: BaseException, attempt: int) -> bool:
        """True when *exc* raised on *attempt* (1-based) deserves another try."""
        return attempt < self.max_attempts and is_transient(exc)

    def delay(self, attempt: int) -> float:
        """Seconds to wait after failed *attempt* (1-based)."""
        return min(self.config.backoff_base * (2.0 ** (attempt - 1)), self.config.backoff_max)

    async def sleep(self, attempt: int) -> None:
        delay = self.delay(attempt)
        if delay > 0:
            logger.warning("Transient error on attempt %d/%d. Retrying in %.1fs.",
                           attempt, self.max_attempts, delay)
            await asyncio.sleep(delay)

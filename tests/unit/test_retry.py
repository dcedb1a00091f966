"""Tests for retry classification and backoff."""

from __future__ import annotations

import httpx
import pytest

from atelier.core.retry import RetryPolicy, describe_error, is_transient
from atelier.errors import ProviderError, RetryExhaustedError
from atelier.types.config import RetryConfig


class _StatusError(Exception):
    def __init__(self, status_code: int):
        super().__init__(f"HTTP {status_code}")
        self.status_code = status_code


class RateLimitError(Exception):
    pass


class TestIsTransient:
    def test_network_errors(self):
        assert is_transient(ConnectionError("reset"))
        assert is_transient(TimeoutError())
        assert is_transient(httpx.ConnectError("refused"))

    def test_status_codes(self):
        assert is_transient(_StatusError(429))
        assert is_transient(_StatusError(503))
        assert is_transient(_StatusError(408))
        assert not is_transient(_StatusError(400))
        assert not is_transient(_StatusError(401))

    def test_status_from_response(self):
        request = httpx.Request("POST", "https://example.invalid")
        response = httpx.Response(502, request=request)
        exc = httpx.HTTPStatusError("bad gateway", request=request, response=response)
        assert is_transient(exc)

    def test_sdk_class_names(self):
        assert is_transient(RateLimitError("slow down"))

    def test_provider_error_flag(self):
        assert is_transient(ProviderError("x", transient=True))
        assert not is_transient(ProviderError("x"))
        assert not is_transient(RetryExhaustedError(3, ConnectionError("x")))

    def test_other_errors(self):
        assert not is_transient(ValueError("bad"))
        assert not is_transient(KeyError("k"))


class TestDescribeError:
    def test_includes_class_name(self):
        assert describe_error(ConnectionError("reset by peer")) == "ConnectionError: reset by peer"

    def test_provider_error_message_only(self):
        assert describe_error(ProviderError("rate limited")) == "rate limited"

    def test_first_line_only(self):
        assert describe_error(ValueError("first\nsecond")) == "ValueError: first"

    def test_empty_message(self):
        assert describe_error(TimeoutError()) == "TimeoutError"


class TestRetryPolicy:
    def test_exponential_delay_capped(self):
        policy = RetryPolicy(RetryConfig(max_attempts=6, backoff_base=1.0, backoff_max=5.0))
        assert [policy.delay(n) for n in range(1, 6)] == [1.0, 2.0, 4.0, 5.0, 5.0]

    def test_should_retry(self):
        policy = RetryPolicy(RetryConfig(max_attempts=3))
        assert policy.should_retry(ConnectionError(), 1)
        assert policy.should_retry(ConnectionError(), 2)
        assert not policy.should_retry(ConnectionError(), 3)
        assert not policy.should_retry(ValueError(), 1)

    def test_max_attempts_at_least_one(self):
        assert RetryPolicy(RetryConfig(max_attempts=0)).max_attempts == 1

    @pytest.mark.asyncio
    async def test_zero_delay(self):
        policy = RetryPolicy(RetryConfig(backoff_base=0.0))
        assert policy.delay(3) == 0.0
        await policy.sleep(3)

    def test_exhausted_error_keeps_last_error(self):
        last = _StatusError(503)
        exc = RetryExhaustedError(3, last)
        assert exc.attempts == 3
        assert exc.last_error is last
        assert exc.status_code == 503
        assert str(exc) == "Gave up after 3 attempts: HTTP 503"

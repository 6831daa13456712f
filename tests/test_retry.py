"""Tests for rate-limit classification and the retrying invoker.

Tests cover:
  - every rate-limit signature (status, code, message, nested body)
  - backoff delays grow per attempt
  - retries only on throttling, bounded by max_attempts
  - foreign exceptions surface as RemoteError
"""

from __future__ import annotations

import asyncio

import pytest

from fakes import ScriptedClient
from geolens.llm.base import (
    LLMRequest,
    RemoteConnectionError,
    RemoteError,
    RemoteRateLimitError,
)
from geolens.llm.retry import (
    RetryingInvoker,
    as_remote_error,
    backoff_delay,
    is_rate_limited,
)


class _StatusError(Exception):
    def __init__(self, message="boom", *, status=None, code=None):
        super().__init__(message)
        self.status = status
        self.code = code


class _NestedError(Exception):
    def __init__(self, error):
        super().__init__("upstream failure")
        self.error = error


REQUEST = LLMRequest(prompt="where is Paris?")


# ======================================================================
# Classification
# ======================================================================


class TestIsRateLimited:

    def test_status_429(self):
        assert is_rate_limited(_StatusError(status=429))

    def test_code_429(self):
        assert is_rate_limited(_StatusError(code=429))

    def test_string_status_429(self):
        assert is_rate_limited(_StatusError(status="429"))

    @pytest.mark.parametrize(
        "message",
        [
            "got HTTP 429 from upstream",
            "Quota exceeded for metric generate_content",
            "RESOURCE_EXHAUSTED: try again later",
        ],
    )
    def test_message_markers(self, message):
        assert is_rate_limited(Exception(message))

    def test_nested_dict_code(self):
        assert is_rate_limited(_NestedError({"code": 429, "message": "slow down"}))

    def test_nested_dict_status(self):
        assert is_rate_limited(_NestedError({"code": 8, "status": "RESOURCE_EXHAUSTED"}))

    def test_dict_in_args(self):
        assert is_rate_limited(Exception({"error": {"code": 429}}))

    def test_remote_rate_limit_error(self):
        assert is_rate_limited(RemoteRateLimitError("throttled"))

    @pytest.mark.parametrize(
        "error",
        [
            _StatusError("server exploded", status=500),
            _StatusError("bad request", code=400),
            ValueError("something else"),
            _NestedError({"code": 503, "status": "UNAVAILABLE"}),
            TimeoutError("timed out"),
        ],
    )
    def test_other_errors_are_not_rate_limits(self, error):
        assert not is_rate_limited(error)

    def test_bool_status_is_ignored(self):
        assert not is_rate_limited(_StatusError("x", status=True))


class TestAsRemoteError:

    def test_wraps_foreign_exception(self):
        original = _StatusError("Quota exceeded", status=429)
        wrapped = as_remote_error(original)
        assert isinstance(wrapped, RemoteError)
        assert wrapped.rate_limited is True
        assert wrapped.status == 429
        assert wrapped.__cause__ is original

    def test_remote_error_passes_through(self):
        err = RemoteConnectionError("down")
        assert as_remote_error(err) is err
        assert err.rate_limited is False

    def test_remote_error_with_429_message_is_flagged(self):
        err = RemoteError("Gemini status=429 RESOURCE_EXHAUSTED")
        flagged = as_remote_error(err)
        assert flagged.rate_limited is True
        assert flagged.__cause__ is err

    def test_input_error_is_not_modified(self):
        err = RemoteConnectionError("upstream said Quota exceeded", status=503)
        flagged = as_remote_error(err)
        assert isinstance(flagged, RemoteRateLimitError)
        assert flagged.status == 503
        assert err.rate_limited is False


class TestBackoffDelay:

    def test_grows_per_attempt(self):
        assert [backoff_delay(n, 2.0) for n in (1, 2, 3)] == [2.0, 4.0, 6.0]

    def test_attempt_floor(self):
        assert backoff_delay(0, 1.5) == 1.5


# ======================================================================
# Invoker
# ======================================================================


class TestRetryingInvoker:

    @pytest.mark.asyncio
    async def test_success_first_try_no_sleep(self, recording_sleep):
        client = ScriptedClient('{"ok": true}')
        invoker = RetryingInvoker(client, max_attempts=3, sleep=recording_sleep)

        response = await invoker.invoke(REQUEST)

        assert response.text == '{"ok": true}'
        assert client.call_count == 1
        assert recording_sleep.delays == []

    @pytest.mark.asyncio
    async def test_two_rate_limits_then_success(self, recording_sleep):
        client = ScriptedClient(
            RemoteRateLimitError("429 Too Many Requests"),
            _StatusError("RESOURCE_EXHAUSTED", code=429),
            "done",
        )
        invoker = RetryingInvoker(client, max_attempts=3, backoff_base=2.0, sleep=recording_sleep)

        response = await invoker.invoke(REQUEST)

        assert response.text == "done"
        assert client.call_count == 3
        assert len(recording_sleep.delays) == 2
        assert recording_sleep.delays[0] < recording_sleep.delays[1]
        assert recording_sleep.delays == [2.0, 4.0]

    @pytest.mark.asyncio
    async def test_identical_request_is_retried(self, recording_sleep):
        client = ScriptedClient(RemoteRateLimitError("429"), "ok")
        invoker = RetryingInvoker(client, max_attempts=2, sleep=recording_sleep)

        await invoker.invoke(REQUEST)

        assert client.requests == [REQUEST, REQUEST]

    @pytest.mark.asyncio
    async def test_single_attempt_surfaces_immediately(self, recording_sleep):
        client = ScriptedClient(RemoteRateLimitError("429"), "never reached")
        invoker = RetryingInvoker(client, max_attempts=3, sleep=recording_sleep)

        with pytest.raises(RemoteError) as exc_info:
            await invoker.invoke(REQUEST, max_attempts=1)

        assert exc_info.value.rate_limited is True
        assert client.call_count == 1
        assert recording_sleep.delays == []

    @pytest.mark.asyncio
    async def test_exhaustion_raises_after_max_attempts(self, recording_sleep):
        client = ScriptedClient(RemoteRateLimitError("429"))
        invoker = RetryingInvoker(client, max_attempts=4, backoff_base=1.0, sleep=recording_sleep)

        with pytest.raises(RemoteRateLimitError):
            await invoker.invoke(REQUEST)

        assert client.call_count == 4
        assert recording_sleep.delays == [1.0, 2.0, 3.0]

    @pytest.mark.asyncio
    async def test_non_rate_limit_error_is_not_retried(self, recording_sleep):
        client = ScriptedClient(RemoteConnectionError("connection reset"), "never reached")
        invoker = RetryingInvoker(client, max_attempts=5, sleep=recording_sleep)

        with pytest.raises(RemoteConnectionError):
            await invoker.invoke(REQUEST)

        assert client.call_count == 1
        assert recording_sleep.delays == []

    @pytest.mark.asyncio
    async def test_foreign_exception_is_wrapped(self, recording_sleep):
        client = ScriptedClient(ValueError("bad payload"))
        invoker = RetryingInvoker(client, max_attempts=3, sleep=recording_sleep)

        with pytest.raises(RemoteError) as exc_info:
            await invoker.invoke(REQUEST)

        assert isinstance(exc_info.value.__cause__, ValueError)
        assert exc_info.value.rate_limited is False

    @pytest.mark.asyncio
    async def test_concurrent_invocations_keep_separate_counters(self, recording_sleep):
        def reply(request):
            return request.prompt

        flaky = ScriptedClient(RemoteRateLimitError("429"), reply)
        steady = ScriptedClient(reply)
        flaky_invoker = RetryingInvoker(flaky, max_attempts=2, sleep=recording_sleep)
        steady_invoker = RetryingInvoker(steady, max_attempts=2, sleep=recording_sleep)

        a, b = await asyncio.gather(
            flaky_invoker.invoke(LLMRequest(prompt="a")),
            steady_invoker.invoke(LLMRequest(prompt="b")),
        )

        assert (a.text, b.text) == ("a", "b")
        assert flaky.call_count == 2
        assert steady.call_count == 1
        assert recording_sleep.delays == [2.0]

    def test_max_attempts_floor(self):
        assert RetryingInvoker(ScriptedClient("x"), max_attempts=0).max_attempts == 1

"""Bounded retry with linear backoff for rate-limited remote calls.

Only throttling is retried. Every other failure surfaces on the first
attempt.

The upstream reports throttling inconsistently across transport layers, so
``is_rate_limited`` accepts any of these signatures:
- a numeric ``status`` / ``code`` / ``status_code`` equal to 429
- a message containing "429", "Quota" or "RESOURCE_EXHAUSTED"
- a nested error object (attribute or dict) with code 429 or status
  "RESOURCE_EXHAUSTED"
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from geolens.llm.base import (
    LLMRequest,
    LLMResponse,
    RemoteError,
    RemoteRateLimitError,
    TextModelClient,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 4
DEFAULT_BACKOFF_BASE = 2.0  # seconds
RATE_LIMIT_MARKERS = ("429", "Quota", "RESOURCE_EXHAUSTED")

SleepFn = Callable[[float], Awaitable[None]]


def _is_429(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return value == 429
    if isinstance(value, str):
        return value.strip() == "429"
    return False


def _nested_is_rate_limited(nested: Any) -> bool:
    if nested is None:
        return False
    if isinstance(nested, dict):
        code = nested.get("code")
        status = nested.get("status")
    else:
        code = getattr(nested, "code", None)
        status = getattr(nested, "status", None)
    return _is_429(code) or _is_429(status) or status == "RESOURCE_EXHAUSTED"


def is_rate_limited(error: BaseException) -> bool:
    """Classify an exception as remote throttling."""
    if getattr(error, "rate_limited", False) is True:
        return True

    for attr in ("status", "code", "status_code"):
        if _is_429(getattr(error, attr, None)):
            return True

    message = str(error)
    if any(marker in message for marker in RATE_LIMIT_MARKERS):
        return True
    status_text = getattr(error, "status_text", None)
    if isinstance(status_text, str) and "RESOURCE_EXHAUSTED" in status_text:
        return True

    if _nested_is_rate_limited(getattr(error, "error", None)):
        return True
    if _nested_is_rate_limited(getattr(error, "details", None)):
        return True
    for arg in getattr(error, "args", ()):
        if isinstance(arg, dict) and (
            _nested_is_rate_limited(arg) or _nested_is_rate_limited(arg.get("error"))
        ):
            return True

    return False


def backoff_delay(attempt: int, base: float = DEFAULT_BACKOFF_BASE) -> float:
    """Delay after failed attempt ``attempt`` (1-based): base, 2*base, 3*base, ..."""
    return base * max(1, int(attempt))


def as_remote_error(error: BaseException) -> RemoteError:
    """Wrap a foreign exception, keeping its rate-limit classification.

    A ``RemoteError`` is returned as-is unless it looks throttled without
    being flagged; then a flagged ``RemoteRateLimitError`` wraps it. The
    input is never modified.
    """
    if isinstance(error, RemoteError):
        if error.rate_limited or not is_rate_limited(error):
            return error
        flagged = RemoteRateLimitError(
            str(error),
            status=error.status,
            code=error.code,
            details=error.details,
        )
        flagged.__cause__ = error
        return flagged
    wrapped = RemoteError(
        f"{type(error).__name__}: {error}",
        status=getattr(error, "status", None),
        code=getattr(error, "code", None),
        rate_limited=is_rate_limited(error),
    )
    wrapped.__cause__ = error
    return wrapped


class RetryingInvoker:
    """Runs one remote call, retrying only on rate-limit errors.

    Attempts are counted locally per ``invoke`` call; the invoker holds no
    mutable state, so one instance can serve concurrent callers.

    Example:
        invoker = RetryingInvoker(client, max_attempts=3)
        response = await invoker.invoke(LLMRequest(prompt="..."))
    """

    def __init__(
        self,
        client: TextModelClient,
        *,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        backoff_base: float = DEFAULT_BACKOFF_BASE,
        sleep: Optional[SleepFn] = None,
    ):
        self._client = client
        self._max_attempts = max(1, int(max_attempts))
        self._backoff_base = float(backoff_base)
        self._sleep = sleep or asyncio.sleep

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    async def invoke(
        self,
        request: LLMRequest,
        max_attempts: Optional[int] = None,
    ) -> LLMResponse:
        """Execute ``request``.

        Raises:
            RemoteError: attempts exhausted on throttling, or any
                non-throttling failure (raised immediately)
        """
        attempts = self._max_attempts if max_attempts is None else max(1, int(max_attempts))

        attempt = 1
        while True:
            try:
                return await self._client.generate(request)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                error = as_remote_error(e)
                if not error.rate_limited:
                    logger.debug("[RETRY] non-retryable error on attempt %d: %s", attempt, error)
                    raise error
                if attempt >= attempts:
                    logger.warning(
                        "[RETRY] rate limited, giving up after %d attempt(s)", attempt
                    )
                    raise error

                delay = backoff_delay(attempt, self._backoff_base)
                logger.warning(
                    "[RETRY] rate limited (429) attempt=%d/%d, retrying in %.1fs",
                    attempt,
                    attempts,
                    delay,
                )
                await self._sleep(delay)
                attempt += 1

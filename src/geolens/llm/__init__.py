from __future__ import annotations

from .base import (
    LLMClientError,
    LLMRequest,
    LLMResponse,
    RemoteAuthError,
    RemoteConnectionError,
    RemoteError,
    RemoteInvalidResponseError,
    RemoteRateLimitError,
    RemoteTimeoutError,
    TextModelClient,
    create_client,
)
from .extraction import extract_json, is_conversational_refusal
from .json_repair import repair_truncated_json
from .retry import RetryingInvoker, is_rate_limited

__all__ = [
    "LLMClientError",
    "LLMRequest",
    "LLMResponse",
    "RemoteAuthError",
    "RemoteConnectionError",
    "RemoteError",
    "RemoteInvalidResponseError",
    "RemoteRateLimitError",
    "RemoteTimeoutError",
    "TextModelClient",
    "create_client",
    "extract_json",
    "is_conversational_refusal",
    "repair_truncated_json",
    "RetryingInvoker",
    "is_rate_limited",
]

"""Text model client interface - request/response shapes and error taxonomy.

The remote text model is treated as a single atomic exchange: one
``LLMRequest`` goes out, one ``LLMResponse`` (just text) comes back. All domain
structure is recovered from that text by ``geolens.llm.extraction``.

Design goals:
- One interface for every orchestrator (easy to fake in tests)
- Errors carry enough detail (status, code, nested body) for rate-limit
  classification in ``geolens.llm.retry``
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from geolens.config import GeoLensConfig


@dataclass(frozen=True)
class LLMRequest:
    """A single prompt sent to the remote model."""
    prompt: str
    grounded: bool = False  # allow web-search grounding
    max_output_tokens: int = 4000
    response_schema: Optional[dict[str, Any]] = None


@dataclass(frozen=True)
class LLMResponse:
    """The remote model's reply. Only ``text`` is consumed downstream."""
    text: str
    model: str = ""
    finish_reason: str = "stop"


class LLMClientError(Exception):
    """Base exception for text model client errors."""
    pass


class RemoteError(LLMClientError):
    """The remote call failed.

    Attributes:
        status: HTTP status code, if any
        code: Provider error code (often the same number as ``status``)
        details: Decoded provider error body, if any
        rate_limited: Set once the error has been classified as throttling
    """

    def __init__(
        self,
        message: str,
        *,
        status: Optional[int] = None,
        code: Any = None,
        details: Optional[dict[str, Any]] = None,
        rate_limited: bool = False,
    ):
        super().__init__(message)
        self.status = status
        self.code = code
        self.details = details or {}
        self.rate_limited = rate_limited


class RemoteRateLimitError(RemoteError):
    """Remote service is throttling this caller (HTTP 429 / RESOURCE_EXHAUSTED)."""

    def __init__(self, message: str, **kwargs: Any):
        kwargs["rate_limited"] = True
        kwargs.setdefault("status", 429)
        super().__init__(message, **kwargs)


class RemoteConnectionError(RemoteError):
    """Server connection failed or returned a server error."""
    pass


class RemoteTimeoutError(RemoteError):
    """Request timed out."""
    pass


class RemoteAuthError(RemoteError):
    """API key missing or rejected."""
    pass


class RemoteInvalidResponseError(RemoteError):
    """Request rejected or response body could not be decoded."""
    pass


class TextModelClient(ABC):
    """Abstract base class for remote text model clients."""

    @abstractmethod
    async def generate(self, request: LLMRequest) -> LLMResponse:
        """Run one request/response exchange.

        Args:
            request: Prompt and generation options

        Returns:
            LLMResponse with the raw model text

        Raises:
            RemoteError (or a subclass) on any transport or provider failure
        """
        pass

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Current model name."""
        pass

    @property
    @abstractmethod
    def backend_name(self) -> str:
        """Backend type: 'gemini', etc."""
        pass


def create_client(backend: str, *, config: "GeoLensConfig") -> TextModelClient:
    """Factory function to create a text model client.

    Args:
        backend: 'gemini'
        config: Explicit configuration (API key, model, timeout)

    Raises:
        ValueError: Unknown backend

    Example:
        >>> client = create_client('gemini', config=load_config())
    """
    backend = backend.lower().strip()

    if backend == "gemini":
        from geolens.llm.gemini_client import GeminiClient

        return GeminiClient(
            api_key=config.api_key,
            model=config.model,
            base_url=config.base_url,
            timeout_seconds=config.timeout_seconds,
            metrics=config.metrics,
        )

    raise ValueError(f"Unknown backend: {backend}")

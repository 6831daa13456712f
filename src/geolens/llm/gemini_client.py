from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any, Optional

import requests

from geolens.llm.base import (
    LLMRequest,
    LLMResponse,
    RemoteAuthError,
    RemoteConnectionError,
    RemoteError,
    RemoteInvalidResponseError,
    RemoteRateLimitError,
    RemoteTimeoutError,
    TextModelClient,
)


logger = logging.getLogger(__name__)
metrics_logger = logging.getLogger("geolens.llm.metrics")


class GeminiClient(TextModelClient):
    """Gemini (Google Generative Language API) client.

    Uses the public REST API through ``requests``. Each ``generate`` call is
    exactly one HTTP exchange; retrying is the caller's job
    (see ``geolens.llm.retry.RetryingInvoker``).

    Notes:
      - The blocking HTTP call runs in a worker thread so concurrent
        orchestrator calls do not block each other.
      - ``responseMimeType``/``responseSchema`` cannot be combined with the
        search tool, so grounded requests drop the schema.
    """

    def __init__(
        self,
        *,
        api_key: str,
        model: str,
        timeout_seconds: float = 60.0,
        base_url: str = "https://generativelanguage.googleapis.com",
        metrics: bool = False,
    ):
        self._api_key = (api_key or "").strip()
        self._model = (model or "").strip()
        self._timeout_seconds = float(timeout_seconds)
        self._base_url = base_url.rstrip("/")
        self._metrics = bool(metrics)

    @property
    def model_name(self) -> str:
        return self._model

    @property
    def backend_name(self) -> str:
        return "gemini"

    async def generate(self, request: LLMRequest) -> LLMResponse:
        return await asyncio.to_thread(self.generate_sync, request)

    def build_payload(self, request: LLMRequest) -> dict:
        payload: dict = {
            "contents": [{"role": "user", "parts": [{"text": request.prompt}]}],
            "generationConfig": {
                "maxOutputTokens": int(request.max_output_tokens),
            },
        }
        if request.grounded:
            payload["tools"] = [{"google_search": {}}]
        elif request.response_schema is not None:
            payload["generationConfig"]["responseMimeType"] = "application/json"
            payload["generationConfig"]["responseSchema"] = request.response_schema
        return payload

    def generate_sync(self, request: LLMRequest) -> LLMResponse:
        if not self._api_key:
            raise RemoteAuthError("Gemini API key missing")
        if not self._model:
            raise RemoteInvalidResponseError("Gemini model not set")

        url = f"{self._base_url}/v1beta/models/{self._model}:generateContent"
        payload = self.build_payload(request)

        t0 = time.perf_counter()
        try:
            r = requests.post(
                url,
                params={"key": self._api_key},
                headers={"Content-Type": "application/json"},
                data=json.dumps(payload, ensure_ascii=False).encode("utf-8"),
                timeout=self._timeout_seconds,
            )
        except requests.Timeout as e:
            self._log_metrics(t0, reason="timeout")
            raise RemoteTimeoutError(
                f"Gemini timeout reason=timeout timeout_s={self._timeout_seconds}"
            ) from e
        except requests.RequestException as e:
            self._log_metrics(t0, reason="connection_error")
            raise RemoteConnectionError(
                "Gemini connection_error reason=connection_error"
            ) from e

        if r.status_code != 200:
            self._log_metrics(t0, reason=f"status_{r.status_code}")
            raise _error_from_response(r)

        try:
            data = r.json() or {}
        except ValueError as e:
            raise RemoteInvalidResponseError("Gemini parse_error reason=parse_error") from e

        text_out, finish_reason = _extract_text(data)
        self._log_metrics(t0)

        return LLMResponse(
            text=text_out.strip(),
            model=self._model,
            finish_reason=finish_reason,
        )

    def _log_metrics(self, t0: float, *, reason: Optional[str] = None) -> None:
        if not self._metrics:
            return
        elapsed_ms = int((time.perf_counter() - t0) * 1000)
        if reason is None:
            metrics_logger.info(
                "llm_call backend=%s model=%s latency_ms=%s",
                self.backend_name,
                self.model_name,
                elapsed_ms,
            )
        else:
            metrics_logger.info(
                "llm_call_failed backend=%s model=%s latency_ms=%s reason=%s",
                self.backend_name,
                self.model_name,
                elapsed_ms,
                reason,
            )


def _extract_text(data: dict) -> tuple[str, str]:
    """Join the text parts of the first candidate."""
    candidates = data.get("candidates") or []
    if not candidates or not isinstance(candidates[0], dict):
        return "", "stop"

    cand = candidates[0]
    finish_reason = str(cand.get("finishReason") or "stop")
    content_data = cand.get("content") or {}
    parts = content_data.get("parts") or []
    texts = [str(p.get("text") or "") for p in parts if isinstance(p, dict)]
    return "".join(texts), finish_reason


def _decode_error_body(r: Any) -> dict[str, Any]:
    """Return the provider's ``error`` object, or ``{}``."""
    try:
        body = r.json()
    except ValueError:
        return {}
    if isinstance(body, list) and body and isinstance(body[0], dict):
        body = body[0]
    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        return body["error"]
    return {}


def _error_from_response(r: Any) -> RemoteError:
    status = int(r.status_code)
    details = _decode_error_body(r)
    provider_status = str(details.get("status") or "")
    message = str(details.get("message") or getattr(r, "reason", "") or "")
    code = details.get("code", status)

    text = f"Gemini status={status} {provider_status} {message}".strip()
    kwargs = {"status": status, "code": code, "details": details}

    if status == 429 or provider_status == "RESOURCE_EXHAUSTED":
        return RemoteRateLimitError(text, **kwargs)
    if status in {401, 403}:
        return RemoteAuthError(text, **kwargs)
    if status >= 500:
        return RemoteConnectionError(text, **kwargs)
    return RemoteInvalidResponseError(text, **kwargs)

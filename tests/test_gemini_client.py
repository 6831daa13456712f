"""Tests for the Gemini REST client.

The HTTP layer is mocked; no network access.
"""

from __future__ import annotations

import json
import os
from unittest.mock import MagicMock, patch

import pytest
import requests

from geolens.config import GeoLensConfig
from geolens.llm.base import (
    LLMRequest,
    RemoteAuthError,
    RemoteConnectionError,
    RemoteInvalidResponseError,
    RemoteRateLimitError,
    RemoteTimeoutError,
    create_client,
)
from geolens.llm.gemini_client import GeminiClient
from geolens.llm.retry import is_rate_limited


def _client(**kwargs) -> GeminiClient:
    return GeminiClient(api_key="test-key", model="gemini-2.5-flash", **kwargs)


def _response(status: int = 200, body=None) -> MagicMock:
    r = MagicMock()
    r.status_code = status
    r.reason = "reason"
    if isinstance(body, Exception):
        r.json.side_effect = body
    else:
        r.json.return_value = body
    return r


def _ok_body(*texts: str, finish: str = "STOP") -> dict:
    return {
        "candidates": [
            {
                "content": {"parts": [{"text": t} for t in texts]},
                "finishReason": finish,
            }
        ]
    }


class TestPayload:

    def test_structured_request(self):
        schema = {"type": "OBJECT"}
        payload = _client().build_payload(
            LLMRequest(prompt="hi", max_output_tokens=123, response_schema=schema)
        )
        assert payload["contents"] == [{"role": "user", "parts": [{"text": "hi"}]}]
        assert payload["generationConfig"] == {
            "maxOutputTokens": 123,
            "responseMimeType": "application/json",
            "responseSchema": schema,
        }
        assert "tools" not in payload

    def test_grounded_request_drops_schema(self):
        payload = _client().build_payload(
            LLMRequest(prompt="news", grounded=True, response_schema={"type": "ARRAY"})
        )
        assert payload["tools"] == [{"google_search": {}}]
        assert "responseSchema" not in payload["generationConfig"]
        assert "responseMimeType" not in payload["generationConfig"]


class TestGenerateSync:

    @patch("geolens.llm.gemini_client.requests.post")
    def test_success_joins_parts(self, mock_post):
        mock_post.return_value = _response(200, _ok_body('{"a":', ' 1}'))

        result = _client().generate_sync(LLMRequest(prompt="x"))

        assert result.text == '{"a": 1}'
        assert result.finish_reason == "STOP"
        url = mock_post.call_args.args[0]
        assert url.endswith("/v1beta/models/gemini-2.5-flash:generateContent")
        assert mock_post.call_args.kwargs["params"] == {"key": "test-key"}
        sent = json.loads(mock_post.call_args.kwargs["data"].decode("utf-8"))
        assert sent["contents"][0]["parts"][0]["text"] == "x"

    @patch("geolens.llm.gemini_client.requests.post")
    def test_no_candidates_gives_empty_text(self, mock_post):
        mock_post.return_value = _response(200, {"candidates": []})
        assert _client().generate_sync(LLMRequest(prompt="x")).text == ""

    @patch("geolens.llm.gemini_client.requests.post")
    def test_429_body_becomes_rate_limit_error(self, mock_post):
        mock_post.return_value = _response(
            429,
            {"error": {"code": 429, "message": "Quota exceeded", "status": "RESOURCE_EXHAUSTED"}},
        )
        with pytest.raises(RemoteRateLimitError) as exc_info:
            _client().generate_sync(LLMRequest(prompt="x"))

        err = exc_info.value
        assert err.status == 429
        assert err.details["status"] == "RESOURCE_EXHAUSTED"
        assert is_rate_limited(err)

    @patch("geolens.llm.gemini_client.requests.post")
    def test_resource_exhausted_without_429_status(self, mock_post):
        mock_post.return_value = _response(
            400, [{"error": {"code": 400, "message": "x", "status": "RESOURCE_EXHAUSTED"}}]
        )
        with pytest.raises(RemoteRateLimitError):
            _client().generate_sync(LLMRequest(prompt="x"))

    @pytest.mark.parametrize(
        "status,error_cls",
        [
            (401, RemoteAuthError),
            (403, RemoteAuthError),
            (500, RemoteConnectionError),
            (503, RemoteConnectionError),
            (400, RemoteInvalidResponseError),
            (404, RemoteInvalidResponseError),
        ],
    )
    @patch("geolens.llm.gemini_client.requests.post")
    def test_error_statuses(self, mock_post, status, error_cls):
        mock_post.return_value = _response(status, ValueError("no json"))
        with pytest.raises(error_cls) as exc_info:
            _client().generate_sync(LLMRequest(prompt="x"))
        assert exc_info.value.status == status
        assert not is_rate_limited(exc_info.value)

    @patch("geolens.llm.gemini_client.requests.post")
    def test_timeout(self, mock_post):
        mock_post.side_effect = requests.Timeout("slow")
        with pytest.raises(RemoteTimeoutError):
            _client().generate_sync(LLMRequest(prompt="x"))

    @patch("geolens.llm.gemini_client.requests.post")
    def test_connection_error(self, mock_post):
        mock_post.side_effect = requests.ConnectionError("refused")
        with pytest.raises(RemoteConnectionError):
            _client().generate_sync(LLMRequest(prompt="x"))

    @patch("geolens.llm.gemini_client.requests.post")
    def test_undecodable_success_body(self, mock_post):
        mock_post.return_value = _response(200, ValueError("not json"))
        with pytest.raises(RemoteInvalidResponseError):
            _client().generate_sync(LLMRequest(prompt="x"))

    def test_missing_api_key(self):
        client = GeminiClient(api_key="", model="gemini-2.5-flash")
        with pytest.raises(RemoteAuthError):
            client.generate_sync(LLMRequest(prompt="x"))

    @patch("geolens.llm.gemini_client.requests.post")
    def test_metrics_line(self, mock_post, caplog):
        mock_post.return_value = _response(200, _ok_body("ok"))
        with caplog.at_level("INFO", logger="geolens.llm.metrics"):
            _client(metrics=True).generate_sync(LLMRequest(prompt="x"))
        assert any("llm_call backend=gemini" in r.getMessage() for r in caplog.records)


class TestGenerateAsync:

    @pytest.mark.asyncio
    @patch("geolens.llm.gemini_client.requests.post")
    async def test_generate_runs_request(self, mock_post):
        mock_post.return_value = _response(200, _ok_body("[]"))
        result = await _client().generate(LLMRequest(prompt="x"))
        assert result.text == "[]"
        assert mock_post.call_count == 1


class TestCreateClient:

    def test_gemini(self):
        config = GeoLensConfig(api_key="k", model="gemini-x", timeout_seconds=5)
        client = create_client("Gemini", config=config)
        assert isinstance(client, GeminiClient)
        assert client.model_name == "gemini-x"
        assert client.backend_name == "gemini"

    def test_unknown_backend(self):
        with pytest.raises(ValueError):
            create_client("other", config=GeoLensConfig())


@pytest.mark.integration
@pytest.mark.asyncio
async def test_live_gemini_roundtrip():
    key = os.getenv("GEMINI_API_KEY", "")
    if not key:
        pytest.skip("GEMINI_API_KEY not set")
    client = GeminiClient(api_key=key, model="gemini-2.5-flash")
    result = await client.generate(LLMRequest(prompt='Reply with exactly: {"ok": true}'))
    assert result.text

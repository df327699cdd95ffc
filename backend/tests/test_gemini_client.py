"""Tests for the Gemini invocation adapter and upstream error classification."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
from google.genai import errors as genai_errors

from app.core.circuit_breaker import CircuitState
from app.core.errors import (
    UpstreamAuthError,
    UpstreamTimeout,
    UpstreamUnavailable,
)
from app.core.image_payload import DecodedImage
from app.services.gemini_client import GeminiClient, classify_upstream_error


def _configure(mock_settings, api_key: str = "test-key") -> None:
    mock_settings.gemini_api_key = api_key
    mock_settings.gemini_model = "gemini-test"
    mock_settings.gemini_timeout_seconds = 5.0
    mock_settings.gemini_api_base_url = "https://test.api/v1beta"
    mock_settings.circuit_breaker_failure_threshold = 2
    mock_settings.circuit_breaker_cooldown_seconds = 60


def _mock_genai(mock_client_cls, text: str | None = "answer", side_effect=None) -> AsyncMock:
    generate = AsyncMock(return_value=MagicMock(text=text), side_effect=side_effect)
    mock_client = MagicMock()
    mock_client.aio.models.generate_content = generate
    mock_client_cls.return_value = mock_client
    return generate


# ---------------------------------------------------------------------------
# classify_upstream_error
# ---------------------------------------------------------------------------


class TestClassifyUpstreamError:
    def test_asyncio_timeout(self):
        assert isinstance(classify_upstream_error(asyncio.TimeoutError()), UpstreamTimeout)

    def test_timeout_in_message(self):
        assert isinstance(classify_upstream_error(RuntimeError("Request timeout after 10s")), UpstreamTimeout)

    def test_httpx_timeout(self):
        exc = httpx.ReadTimeout("read", request=MagicMock())
        assert isinstance(classify_upstream_error(exc), UpstreamTimeout)

    def test_api_key_message(self):
        exc = RuntimeError("400 INVALID_ARGUMENT. API key not valid. Please pass a valid API key.")
        assert isinstance(classify_upstream_error(exc), UpstreamAuthError)

    def test_sdk_name_message(self):
        exc = RuntimeError("google.genai client could not be created")
        assert isinstance(classify_upstream_error(exc), UpstreamAuthError)

    def test_client_error_403(self):
        exc = MagicMock(spec=genai_errors.ClientError)
        exc.code = 403
        assert isinstance(classify_upstream_error(exc), UpstreamAuthError)

    def test_everything_else_is_unavailable(self):
        assert isinstance(classify_upstream_error(RuntimeError("503 Service Unavailable")), UpstreamUnavailable)

    def test_timeout_wins_over_auth(self):
        exc = RuntimeError("API key check timed out")
        assert isinstance(classify_upstream_error(exc), UpstreamTimeout)


# ---------------------------------------------------------------------------
# GeminiClient.generate (genai client mocked)
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
class TestGeminiClientGenerate:
    @patch("app.services.gemini_client.genai.Client")
    @patch("app.services.gemini_client.settings")
    async def test_text_only_call(self, mock_settings, mock_client_cls):
        _configure(mock_settings)
        generate = _mock_genai(mock_client_cls, text="steps")

        result = await GeminiClient().generate("instruction")

        assert result == "steps"
        kwargs = generate.call_args.kwargs
        assert kwargs["model"] == "gemini-test"
        assert kwargs["contents"] == ["instruction"]
        assert kwargs["config"] is None

    @patch("app.services.gemini_client.genai.Client")
    @patch("app.services.gemini_client.settings")
    async def test_image_is_attached_inline(self, mock_settings, mock_client_cls):
        _configure(mock_settings)
        generate = _mock_genai(mock_client_cls)

        image = DecodedImage(mime_type="image/png", data=b"\x89PNG")
        await GeminiClient().generate("look", image=image)

        contents = generate.call_args.kwargs["contents"]
        assert contents[0] == "look"
        assert contents[1].inline_data.mime_type == "image/png"
        assert contents[1].inline_data.data == b"\x89PNG"

    @patch("app.services.gemini_client.genai.Client")
    @patch("app.services.gemini_client.settings")
    async def test_search_grounding_adds_google_search_tool(self, mock_settings, mock_client_cls):
        _configure(mock_settings)
        generate = _mock_genai(mock_client_cls)

        await GeminiClient().generate("plan", use_search_grounding=True)

        config = generate.call_args.kwargs["config"]
        assert config.tools[0].google_search is not None

    @patch("app.services.gemini_client.genai.Client")
    @patch("app.services.gemini_client.settings")
    async def test_missing_api_key(self, mock_settings, mock_client_cls):
        _configure(mock_settings, api_key="")

        with pytest.raises(UpstreamAuthError):
            await GeminiClient().generate("instruction")
        mock_client_cls.assert_not_called()

    @patch("app.services.gemini_client.genai.Client")
    @patch("app.services.gemini_client.settings")
    async def test_timeout_raises_upstream_timeout(self, mock_settings, mock_client_cls):
        _configure(mock_settings)
        mock_settings.gemini_timeout_seconds = 0.01

        async def _slow(**kwargs):
            await asyncio.sleep(1)

        mock_client = MagicMock()
        mock_client.aio.models.generate_content = _slow
        mock_client_cls.return_value = mock_client

        with pytest.raises(UpstreamTimeout):
            await GeminiClient().generate("instruction")

    @patch("app.services.gemini_client.genai.Client")
    @patch("app.services.gemini_client.settings")
    async def test_sdk_error_is_classified(self, mock_settings, mock_client_cls):
        _configure(mock_settings)
        _mock_genai(mock_client_cls, side_effect=RuntimeError("API key not valid"))

        with pytest.raises(UpstreamAuthError):
            await GeminiClient().generate("instruction")

    @patch("app.services.gemini_client.genai.Client")
    @patch("app.services.gemini_client.settings")
    async def test_empty_response_is_unavailable(self, mock_settings, mock_client_cls):
        _configure(mock_settings)
        _mock_genai(mock_client_cls, text=None)

        with pytest.raises(UpstreamUnavailable):
            await GeminiClient().generate("instruction")

    @patch("app.services.gemini_client.genai.Client")
    @patch("app.services.gemini_client.settings")
    async def test_open_circuit_fails_fast(self, mock_settings, mock_client_cls):
        _configure(mock_settings)
        generate = _mock_genai(mock_client_cls, side_effect=RuntimeError("503 overloaded"))
        client = GeminiClient()

        for _ in range(2):
            with pytest.raises(UpstreamUnavailable):
                await client.generate("instruction")
        assert generate.await_count == 2

        with pytest.raises(UpstreamUnavailable):
            await client.generate("instruction")
        assert generate.await_count == 2

    @patch("app.services.gemini_client.genai.Client")
    @patch("app.services.gemini_client.settings")
    async def test_rejected_requests_leave_circuit_closed(self, mock_settings, mock_client_cls):
        _configure(mock_settings)
        rejected = genai_errors.ClientError(
            400,
            {"error": {"code": 400, "message": "Unsupported MIME type: image/x-foo", "status": "INVALID_ARGUMENT"}},
        )
        generate = _mock_genai(mock_client_cls, side_effect=rejected)
        client = GeminiClient()
        image = DecodedImage(mime_type="image/x-foo", data=b"\x00")

        for _ in range(3):
            with pytest.raises(UpstreamUnavailable):
                await client.generate("instruction", image=image)

        assert client.circuit_breaker.state == CircuitState.CLOSED
        assert client.circuit_breaker.failure_count == 0

        generate.side_effect = None
        assert await client.generate("instruction") == "answer"
        assert generate.await_count == 4

    @patch("app.services.gemini_client.genai.Client")
    @patch("app.services.gemini_client.settings")
    async def test_quota_errors_still_open_circuit(self, mock_settings, mock_client_cls):
        _configure(mock_settings)
        quota = genai_errors.ClientError(
            429,
            {"error": {"code": 429, "message": "Resource has been exhausted", "status": "RESOURCE_EXHAUSTED"}},
        )
        _mock_genai(mock_client_cls, side_effect=quota)
        client = GeminiClient()

        for _ in range(2):
            with pytest.raises(UpstreamUnavailable):
                await client.generate("instruction")

        assert client.circuit_breaker.state == CircuitState.OPEN


# ---------------------------------------------------------------------------
# list_models
# ---------------------------------------------------------------------------


@patch("app.services.gemini_client.httpx.AsyncClient")
@patch("app.services.gemini_client.settings")
async def test_list_models_sends_api_key_header(mock_settings, mock_client_cls):
    _configure(mock_settings)

    mock_response = MagicMock(status_code=200)
    mock_client = AsyncMock()
    mock_client.get.return_value = mock_response
    mock_client.__aenter__ = AsyncMock(return_value=mock_client)
    mock_client.__aexit__ = AsyncMock(return_value=None)
    mock_client_cls.return_value = mock_client

    response = await GeminiClient().list_models()

    assert response is mock_response
    call = mock_client.get.call_args
    assert call.args[0] == "https://test.api/v1beta/models"
    assert call.kwargs["headers"] == {"x-goog-api-key": "test-key"}

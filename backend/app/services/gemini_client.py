"""
Gemini invocation adapter.

Sends an instruction (and optionally a screenshot) to the configured Gemini
model and returns the raw response text. Transport failures are normalized into
``UpstreamTimeout``, ``UpstreamAuthError`` or ``UpstreamUnavailable``; nothing
here retries.
"""

import asyncio
import logging
from typing import Any

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from app.config import settings
from app.core.circuit_breaker import CircuitBreaker, CircuitBreakerOpen
from app.core.errors import (
    UpstreamAuthError,
    UpstreamError,
    UpstreamTimeout,
    UpstreamUnavailable,
)
from app.core.image_payload import DecodedImage

logger = logging.getLogger(__name__)

_AUTH_MARKERS = ("api key", "api_key", "genai", "googlegenerativeai")
_TIMEOUT_MARKERS = ("timeout", "timed out", "deadline exceeded")

# 4xx statuses that describe the API key or project quota, not the request itself
_SHARED_CLIENT_ERROR_CODES = (401, 403, 429)


class RejectedRequest(Exception):
    """Gemini refused this particular request (bad MIME type, invalid argument).

    Raised in place of the SDK's 4xx ``ClientError`` so the circuit breaker can
    let it through without counting it against the upstream.
    """

    def __init__(self, cause: genai_errors.ClientError):
        super().__init__(str(cause))
        self.status_code = cause.code


def classify_upstream_error(exc: BaseException) -> UpstreamError:
    """Map an SDK/transport exception onto the upstream error taxonomy."""
    if isinstance(exc, UpstreamError):
        return exc

    if isinstance(exc, (asyncio.TimeoutError, TimeoutError, httpx.TimeoutException)):
        return UpstreamTimeout()

    message = str(exc).lower()
    if any(marker in message for marker in _TIMEOUT_MARKERS):
        return UpstreamTimeout()

    if isinstance(exc, genai_errors.ClientError) and exc.code in (401, 403):
        return UpstreamAuthError()

    if any(marker in message for marker in _AUTH_MARKERS):
        return UpstreamAuthError()

    return UpstreamUnavailable()


class GeminiClient:
    """Thin async wrapper around ``google.genai`` guarded by a circuit breaker."""

    def __init__(self) -> None:
        self._client: genai.Client | None = None
        self._client_key: str | None = None
        self.circuit_breaker = CircuitBreaker(
            name="gemini",
            failure_threshold=settings.circuit_breaker_failure_threshold,
            cooldown_seconds=settings.circuit_breaker_cooldown_seconds,
            ignore=(RejectedRequest,),
        )

    def _get_client(self) -> genai.Client:
        api_key = settings.gemini_api_key
        if not api_key:
            logger.error("GEMINI_API_KEY is not set — model calls will fail")
            raise UpstreamAuthError("GEMINI_API_KEY が設定されていません")

        if self._client is None or self._client_key != api_key:
            self._client = genai.Client(
                api_key=api_key,
                http_options=types.HttpOptions(
                    timeout=int(settings.gemini_timeout_seconds * 1000),
                ),
            )
            self._client_key = api_key
        return self._client

    async def _generate_content(
        self,
        client: genai.Client,
        contents: list[Any],
        config: types.GenerateContentConfig | None,
    ) -> types.GenerateContentResponse:
        try:
            return await asyncio.wait_for(
                client.aio.models.generate_content(
                    model=settings.gemini_model,
                    contents=contents,
                    config=config,
                ),
                timeout=settings.gemini_timeout_seconds,
            )
        except genai_errors.ClientError as e:
            if e.code in _SHARED_CLIENT_ERROR_CODES:
                raise
            raise RejectedRequest(e) from e

    async def generate(
        self,
        instruction: str,
        image: DecodedImage | None = None,
        *,
        use_search_grounding: bool = False,
    ) -> str:
        """
        Run one generation call and return the response text.

        Args:
            instruction: Full prompt text
            image: Screenshot to attach as inline data; omitted for text-only calls
            use_search_grounding: Let the model run a Google Search before answering

        Raises:
            UpstreamTimeout, UpstreamAuthError, UpstreamUnavailable
        """
        client = self._get_client()

        contents: list[Any] = [instruction]
        if image is not None:
            contents.append(types.Part.from_bytes(data=image.data, mime_type=image.mime_type))

        config = None
        if use_search_grounding:
            config = types.GenerateContentConfig(
                tools=[types.Tool(google_search=types.GoogleSearch())],
            )

        try:
            response = await self.circuit_breaker.call(
                self._generate_content, client, contents, config,
            )
        except CircuitBreakerOpen as e:
            logger.warning("Gemini call skipped: %s", e)
            raise UpstreamUnavailable() from e
        except UpstreamError:
            raise
        except Exception as e:
            error = classify_upstream_error(e)
            logger.error(
                "Gemini call failed (%s): %s", error.code, e,
                exc_info=not isinstance(error, UpstreamTimeout),
            )
            raise error from e

        text = response.text
        if not text:
            logger.warning("Gemini returned an empty response (model=%s)", settings.gemini_model)
            raise UpstreamUnavailable("AIから空の応答が返されました。もう一度試してください。")

        logger.info(
            "Gemini response received (%d chars, image=%s, grounded=%s)",
            len(text), image is not None, use_search_grounding,
        )
        return text

    async def list_models(self) -> httpx.Response:
        """Fetch the raw model listing from the Gemini REST API (diagnostics only)."""
        async with httpx.AsyncClient(timeout=settings.gemini_timeout_seconds) as client:
            return await client.get(
                f"{settings.gemini_api_base_url}/models",
                headers={"x-goog-api-key": settings.gemini_api_key},
            )


# Singleton instance
gemini_client = GeminiClient()

"""Diagnostic endpoint listing the models visible to the configured API key."""

import logging

import httpx
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from app.api.dependencies import GeminiClientDep
from app.config import settings
from app.middleware.rate_limiter import DEFAULT_LIMIT, limiter

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/list-models", response_model=None)
@limiter.limit(DEFAULT_LIMIT)
async def list_models(request: Request, client: GeminiClientDep) -> dict | JSONResponse:
    """Proxy the Gemini model listing; upstream error statuses pass through."""
    api_key = settings.gemini_api_key
    if not api_key:
        return JSONResponse(status_code=500, content={"error": "GEMINI_API_KEY が設定されていません"})

    try:
        upstream = await client.list_models()
    except httpx.HTTPError as e:
        logger.error(f"List models request failed: {e}")
        return JSONResponse(status_code=500, content={"error": str(e) or "不明なエラー", "details": repr(e)})

    if upstream.is_error:
        return JSONResponse(
            status_code=upstream.status_code,
            content={
                "error": f"API Error: {upstream.status_code} {upstream.reason_phrase}",
                "details": upstream.text,
            },
        )

    data = upstream.json()
    return {
        "success": True,
        "apiKeyPrefix": api_key[:10] + "...",
        "models": data.get("models", []),
        "raw": data,
    }

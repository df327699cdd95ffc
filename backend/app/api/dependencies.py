"""API dependencies: rate limiter, model client and advice service."""

import logging
from typing import Annotated

from fastapi import Depends, Request

from app.config import settings
from app.core.rate_limit import InMemoryRateLimitStore, RateLimiter, RateLimitPolicy
from app.middleware.rate_limiter import get_client_identifier
from app.services.advice_service import AdviceService
from app.services.gemini_client import GeminiClient, gemini_client
from app.services.redis_client import RedisRateLimitStore, get_redis

logger = logging.getLogger(__name__)

_rate_limiter: RateLimiter | None = None


async def get_rate_limiter() -> RateLimiter:
    """Process-wide rate limiter, built on first use from settings."""
    global _rate_limiter

    if _rate_limiter is None:
        policy = RateLimitPolicy.from_settings()
        if settings.rate_limit_backend == "redis":
            store = RedisRateLimitStore(await get_redis(), grace_seconds=policy.min_interval)
        else:
            store = InMemoryRateLimitStore(grace_seconds=policy.min_interval)
        _rate_limiter = RateLimiter(store, policy)
        logger.info(
            "Rate limiter initialized (%s store, %d/day, %.0fs spacing)",
            settings.rate_limit_backend, policy.daily_limit, policy.min_interval,
        )

    return _rate_limiter


def peek_rate_limiter() -> RateLimiter | None:
    """Return the rate limiter if it has been built, without creating it."""
    return _rate_limiter


def reset_rate_limiter() -> None:
    """Drop the process-wide rate limiter (tests)."""
    global _rate_limiter
    _rate_limiter = None


def get_gemini_client() -> GeminiClient:
    return gemini_client


async def get_advice_service(
    rate_limiter: Annotated[RateLimiter, Depends(get_rate_limiter)],
    model_client: Annotated[GeminiClient, Depends(get_gemini_client)],
) -> AdviceService:
    return AdviceService(rate_limiter, model_client)


def client_identifier(request: Request) -> str:
    return get_client_identifier(request)


AdviceServiceDep = Annotated[AdviceService, Depends(get_advice_service)]
GeminiClientDep = Annotated[GeminiClient, Depends(get_gemini_client)]
ClientIdentifier = Annotated[str, Depends(client_identifier)]

"""Client identification and generic per-client throttling using slowapi.

Model endpoints use ``app.core.rate_limit`` (burst spacing + daily cap);
slowapi only throttles the diagnostic routes.
"""

from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from starlette.requests import Request
from starlette.responses import JSONResponse

from app.config import settings

UNKNOWN_CLIENT = "unknown"


def get_client_identifier(request: Request) -> str:
    """Rate-limit key: first X-Forwarded-For hop, else X-Real-IP, else ``"unknown"``.

    Every caller without either header shares the ``"unknown"`` bucket.
    """
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.headers.get("x-real-ip") or UNKNOWN_CLIENT


limiter = Limiter(key_func=get_client_identifier)

DEFAULT_LIMIT = settings.rate_limit_default


def rate_limit_exceeded_handler(_request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return the standard ``{"error": ...}`` body when slowapi rejects a request."""
    return JSONResponse(
        status_code=429,
        content={"error": f"リクエストが多すぎます（{exc.detail}）。少し待ってから再試行してください。"},
    )

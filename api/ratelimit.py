from __future__ import annotations

from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from core.config import get_settings


def assignment_rate_key(request: Request) -> str:
    # Bulk assignment from one coach session should not starve other clients behind the same IP.
    auth = request.headers.get("Authorization", "")
    token_tail = auth[-16:] if auth.lower().startswith("bearer ") else ""
    return f"{get_remote_address(request)}:{token_tail}"


def build_limiter() -> Limiter:
    settings = get_settings()
    enabled = settings.rate_limit_enabled and settings.app_env.lower() != "test"
    return Limiter(
        key_func=assignment_rate_key,
        storage_uri=settings.rate_limit_storage_uri,
        enabled=enabled,
        headers_enabled=True,
    )


limiter = build_limiter()


def rate_limit_exceeded_handler(request: Request, exc: Exception) -> JSONResponse:
    response = JSONResponse(
        status_code=429,
        content={"detail": {"code": "RATE_LIMITED", "message": "Too many requests, retry later"}},
    )
    view_limit = getattr(request.state, "view_rate_limit", None)
    if isinstance(exc, RateLimitExceeded) and view_limit is not None:
        # Adds Retry-After and X-RateLimit-* when headers are enabled
        response = request.app.state.limiter._inject_headers(response, view_limit)
    return response

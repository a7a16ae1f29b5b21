from __future__ import annotations

from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from skillgate.core.config import settings
from skillgate.core.errors import ErrorKind

limiter = Limiter(key_func=get_remote_address, enabled=settings.rate_limit_enabled)


def rate_limit():
    if settings.rate_limit_enabled:
        return limiter.limit(settings.rate_limit)

    def decorator(func):
        return func

    return decorator


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    return JSONResponse(
        status_code=ErrorKind.RATE_LIMITED.status_code,
        content={
            "detail": {
                "kind": ErrorKind.RATE_LIMITED.value,
                "code": "RATE_LIMITED",
                "message": f"Too many requests ({exc.detail}). Please wait and try again.",
            }
        },
    )

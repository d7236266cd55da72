# app/middleware.py
"""Request logging and rate limiting"""

import time
import uuid

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded

from app.core.config import settings
from app.logging_config import get_logger

logger = get_logger("http")

# Limits are attached per route (login, re-verification)
limiter = Limiter(key_func=get_remote_address, enabled=settings.rate_limit_enabled)


def _credential_summary(request: Request) -> str:
    """Which auth cookies came with the request. Never their values."""
    present = [
        label for label, name in (
            ("session", settings.session_cookie_name),
            ("federated", settings.federated_cookie_name),
        )
        if request.cookies.get(name)
    ]
    return ",".join(present) or "none"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every request with a request id, timing, status and credential kinds"""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:12]
        request.state.request_id = request_id
        start_time = time.perf_counter()
        client = request.client.host if request.client else "unknown"

        logger.info(
            f"[{request_id}] {request.method} {request.url.path} - "
            f"client={client} credentials={_credential_summary(request)}"
        )

        try:
            response = await call_next(request)
        except Exception as e:
            elapsed = (time.perf_counter() - start_time) * 1000
            logger.error(
                f"[{request_id}] {request.method} {request.url.path} failed after "
                f"{elapsed:.2f}ms: {type(e).__name__}",
                exc_info=True
            )
            raise

        elapsed = (time.perf_counter() - start_time) * 1000
        logger.info(
            f"[{request_id}] {request.method} {request.url.path} -> "
            f"{response.status_code} in {elapsed:.2f}ms"
        )
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Process-Time"] = f"{elapsed:.2f}ms"
        return response


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    """Render slowapi breaches in the application's error shape"""
    logger.warning(
        f"Rate limit {exc.detail} exceeded by "
        f"{request.client.host if request.client else 'unknown'} on {request.url.path}"
    )
    return JSONResponse(
        status_code=429,
        content={
            "error": "Too many requests. Please slow down and try again later.",
            "details": {"limit": str(exc.detail)},
            "path": request.url.path
        }
    )

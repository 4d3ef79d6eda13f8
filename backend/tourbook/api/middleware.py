"""
Request middleware for logging, timing, request ID tracking and rate limiting.
"""

import time
import uuid

import structlog
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from tourbook.core.config import get_settings
from tourbook.core.logging import get_logger
from tourbook.core.metrics import http_request_latency, rate_limited_requests
from tourbook.infrastructure.redis_client import get_redis

logger = get_logger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware that:
    1. Assigns a unique request ID to each request
    2. Logs request method, path, status code, and duration
    3. Binds request context to structlog for correlation
    4. Records request latency
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = str(uuid.uuid4())[:8]
        start_time = time.perf_counter()

        # Bind request context for all downstream log calls
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        try:
            response = await call_next(request)
        except Exception as e:
            duration_ms = round((time.perf_counter() - start_time) * 1000, 2)
            logger.error("request_failed", error=str(e), duration_ms=duration_ms)
            raise

        elapsed = time.perf_counter() - start_time
        duration_ms = round(elapsed * 1000, 2)
        http_request_latency.labels(method=request.method, status_code=response.status_code).observe(elapsed)
        logger.info("request_completed", status_code=response.status_code, duration_ms=duration_ms)

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Response-Time"] = f"{duration_ms}ms"
        return response


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Fixed-window request limit per client IP on /api routes, counted in Redis.
    Requests pass through untouched when Redis is disabled or unreachable.
    """

    prefix = "ratelimit:"

    async def dispatch(self, request: Request, call_next) -> Response:
        if not request.url.path.startswith("/api"):
            return await call_next(request)

        settings = get_settings()
        client = await get_redis()
        if client is None:
            return await call_next(request)

        ip = request.client.host if request.client else "unknown"
        window = int(time.time()) // settings.RATE_LIMIT_WINDOW_SECONDS
        key = f"{self.prefix}{ip}:{window}"
        try:
            count = await client.incr(key)
            if count == 1:
                await client.expire(key, settings.RATE_LIMIT_WINDOW_SECONDS)
        except RedisError as e:
            logger.error("rate_limit_error", error=str(e))
            return await call_next(request)

        remaining = max(settings.RATE_LIMIT_MAX - count, 0)
        if count > settings.RATE_LIMIT_MAX:
            rate_limited_requests.inc()
            logger.warning("rate_limited", ip=ip, count=count)
            return JSONResponse(
                status_code=429,
                content={
                    "status": "fail",
                    "message": "Too many requests from this IP, please try again in an hour!",
                },
                headers={"Retry-After": str(settings.RATE_LIMIT_WINDOW_SECONDS)},
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(settings.RATE_LIMIT_MAX)
        response.headers["X-RateLimit-Remaining"] = str(remaining)
        return response

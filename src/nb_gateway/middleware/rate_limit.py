"""Fixed-window rate limiting backed by Redis.

Only the image-generation endpoint is limited: it is the one that spends
money upstream on every call.

Key pattern: ``ratelimit:{client}:{group}:{window}`` where ``window`` is the
current minute. Over the limit → 429 with Retry-After.

``client`` is the socket peer unless ``trusted_proxy_hops`` > 0. Each trusted
proxy appends the address it saw to X-Forwarded-For, so the client is the
N-th entry from the right; anything further left is caller-supplied.
"""

import logging
import time
from collections.abc import Awaitable, Callable

import redis.asyncio as aioredis
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from src.nb_common.errors import RateLimitError
from src.nb_common.response import error_body

logger = logging.getLogger(__name__)

_WINDOW_SECONDS = 60


def client_key(request: Request, trusted_proxy_hops: int = 0) -> str:
    peer = request.client.host if request.client else "unknown"
    if trusted_proxy_hops <= 0:
        return peer
    hops = [h.strip() for h in request.headers.get("x-forwarded-for", "").split(",")]
    hops = [h for h in hops if h]
    if not hops:
        return peer
    return hops[-min(trusted_proxy_hops, len(hops))]


class FixedWindowLimiter:
    def __init__(self, redis_factory: Callable[[], Awaitable[aioredis.Redis]]) -> None:
        self._redis_factory = redis_factory

    async def hit(self, client: str, group: str, limit: int, now: float | None = None) -> bool:
        """Count one request; return False when the window is already full."""
        window = int((now if now is not None else time.time()) // _WINDOW_SECONDS)
        key = f"ratelimit:{client}:{group}:{window}"
        redis = await self._redis_factory()
        count = await redis.incr(key)
        if count == 1:
            await redis.expire(key, _WINDOW_SECONDS)
        return count <= limit


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(
        self,
        app,  # type: ignore[no-untyped-def]
        limiter: FixedWindowLimiter,
        rules: dict[str, tuple[str, int]],
        enabled: bool = True,
        trusted_proxy_hops: int = 0,
    ) -> None:
        super().__init__(app)
        self._limiter = limiter
        self._rules = rules  # path -> (group, per-minute limit)
        self._enabled = enabled
        self._trusted_proxy_hops = trusted_proxy_hops

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        rule = self._rules.get(request.url.path) if self._enabled else None
        if rule is None or request.method == "OPTIONS":
            return await call_next(request)

        group, limit = rule
        try:
            allowed = await self._limiter.hit(
                client_key(request, self._trusted_proxy_hops), group, limit
            )
        except RedisError:
            # Limiter outage must not take the endpoint down with it
            logger.warning("Rate limiter unavailable, allowing %s", request.url.path, exc_info=True)
            allowed = True

        if not allowed:
            err = RateLimitError()
            return JSONResponse(
                status_code=err.http_status,
                content=error_body(err.code, err.message),
                headers={"Retry-After": str(_WINDOW_SECONDS)},
            )
        return await call_next(request)

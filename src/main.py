"""FastAPI application entry point.

Run with: uvicorn src.main:app --reload --port 8000
"""

# ruff: noqa: E402  -- uvloop.install() must run before other imports

import uvloop

uvloop.install()

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy import text

from config.settings import settings
from src.nb_common.database import engine
from src.nb_common.errors import AppError
from src.nb_common.redis_client import check_redis, close_redis, get_redis
from src.nb_common.response import error_body
from src.nb_credits.api.router import router as credits_router
from src.nb_gateway.api.router import router as auth_router
from src.nb_gateway.middleware.rate_limit import FixedWindowLimiter, RateLimitMiddleware
from src.nb_gateway.middleware.request_log import RequestLogMiddleware
from src.nb_imaging.api.dependencies import close_openrouter_client
from src.nb_imaging.api.router import router as imaging_router
from src.nb_payments.api.dependencies import close_payment_clients
from src.nb_payments.api.router import router as payments_router

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger(__name__)

API_PREFIX = "/api"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: verify the DB (and Redis when limiting). Shutdown: close clients."""
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
    if settings.RATE_LIMIT_ENABLED:
        await check_redis()
    yield
    await close_payment_clients()
    await close_openrouter_client()
    await engine.dispose()
    await close_redis()


app = FastAPI(
    title=settings.APP_NAME,
    version="0.1.0",
    lifespan=lifespan,
)


app.add_middleware(
    RateLimitMiddleware,
    limiter=FixedWindowLimiter(get_redis),
    rules={f"{API_PREFIX}/generate": ("generate", settings.GENERATE_RATE_LIMIT_PER_MINUTE)},
    enabled=settings.RATE_LIMIT_ENABLED,
    trusted_proxy_hops=settings.TRUSTED_PROXY_HOPS,
)
app.add_middleware(RequestLogMiddleware)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.http_status >= 500:
        logger.error(
            "%s %s -> %d %s", request.method, request.url.path, exc.http_status, exc.message
        )
    return JSONResponse(
        status_code=exc.http_status,
        content=error_body(exc.code, exc.message, exc.details),
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    first = exc.errors()[0] if exc.errors() else {}
    loc = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = f"{loc}: {first.get('msg')}" if loc else str(first.get("msg", "Invalid request"))
    return JSONResponse(status_code=400, content=error_body(2001, message))


app.include_router(auth_router, prefix=API_PREFIX)
app.include_router(credits_router, prefix=API_PREFIX)
app.include_router(payments_router, prefix=API_PREFIX)
app.include_router(imaging_router, prefix=API_PREFIX)


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok", "version": "0.1.0"}

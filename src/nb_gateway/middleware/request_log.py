"""Per-request access log for the API.

One line per request on the ``nb.request`` logger, level chosen by outcome:
INFO below 500, ERROR for 5xx and for exceptions escaping the app. Each
request carries an id in ``request.state.request_id`` and the
``X-Request-ID`` response header. A well-formed id sent by the caller (or an
upstream proxy) is kept so logs can be joined across hops; anything else is
replaced with a fresh ``req_<12 hex>``.

    INFO  [POST] /api/credits/deduct → 200 (23ms) req_a1b2c3d4e5f6
    ERROR [POST] /api/generate → 502 (8113ms) req_0f9e8d7c6b5a
"""

import logging
import re
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("nb.request")

REQUEST_ID_HEADER = "X-Request-ID"
_INCOMING_ID_RE = re.compile(r"[A-Za-z0-9_.:-]{8,64}")


def resolve_request_id(request: Request) -> str:
    incoming = request.headers.get(REQUEST_ID_HEADER, "").strip()
    if _INCOMING_ID_RE.fullmatch(incoming):
        return incoming
    return f"req_{uuid.uuid4().hex[:12]}"


class RequestLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = resolve_request_id(request)
        request.state.request_id = request_id
        start = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception:
            logger.exception(
                "[%s] %s → unhandled error (%.0fms) %s",
                request.method, request.url.path,
                (time.perf_counter() - start) * 1000, request_id,
            )
            raise

        response.headers[REQUEST_ID_HEADER] = request_id
        logger.log(
            logging.ERROR if response.status_code >= 500 else logging.INFO,
            "[%s] %s → %d (%.0fms) %s",
            request.method, request.url.path, response.status_code,
            (time.perf_counter() - start) * 1000, request_id,
        )
        return response

"""Access log: one JSON line per request, keyed by a request id."""

import json
import logging
import time
import uuid
from datetime import datetime, timezone

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("kc_review.access")

REQUEST_ID_HEADER = "X-Request-ID"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Tags each request with an id (taken from the caller when present) and logs the outcome.

    409s are flagged so lost optimistic-concurrency races are easy to grep for.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex[:8]
        request.state.request_id = request_id

        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = round((time.perf_counter() - started) * 1000, 1)

        record = {
            "at": datetime.now(timezone.utc).isoformat(timespec="milliseconds"),
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "query": request.url.query or None,
            "status": response.status_code,
            "duration_ms": elapsed_ms,
            "client": request.client.host if request.client else None,
        }
        if response.status_code == 409:
            record["conflict"] = True

        level = logging.ERROR if response.status_code >= 500 else logging.INFO
        logger.log(level, json.dumps(record))

        response.headers[REQUEST_ID_HEADER] = request_id
        return response

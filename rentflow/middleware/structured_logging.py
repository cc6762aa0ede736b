# rentflow/middleware/structured_logging.py
from __future__ import annotations

import json
import logging
import time
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from ..config import settings
from ..logging_config import REQUEST_ID_HEADER, bind_request_id, unbind_request_id

log = logging.getLogger("rentflow.request")


def _json_log(payload: dict) -> None:
    try:
        log.info(json.dumps(payload, default=str))
    except (TypeError, ValueError):
        log.info(str(payload))


class StructuredLoggingMiddleware(BaseHTTPMiddleware):
    """
    Binds the request id for the duration of the request and emits one
    structured log line per request with:
      request_id, user_id, method, path, status_code, latency_ms

    The id comes from the incoming X-Request-ID header when present, else a
    fresh one, and is echoed back on the response.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        t0 = time.time()
        rid, token = bind_request_id(request.headers.get(REQUEST_ID_HEADER))
        request.state.request_id = rid

        # Header-level principal hint; the real principal is resolved in handlers.
        user_id = request.headers.get(settings.dev_header_user_id)

        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            response.headers[REQUEST_ID_HEADER] = rid
            return response
        finally:
            _json_log(
                {
                    "event": "http_request",
                    "request_id": rid,
                    "method": request.method,
                    "path": request.url.path,
                    "query": str(request.url.query) if request.url.query else "",
                    "status_code": status_code,
                    "latency_ms": int((time.time() - t0) * 1000),
                    "user_id": user_id,
                }
            )
            unbind_request_id(token)

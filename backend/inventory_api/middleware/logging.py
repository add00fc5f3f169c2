"""
Product Inventory API — Access Log Middleware
================================================

What:  One access line per request on the `inventory_api.access` logger.
How:   Times the downstream call and logs request ID, method, target (path
       plus query string, so list filters show up), status and latency.

Status → level:
    5xx         ERROR
    4xx         WARNING
    otherwise   INFO

Health probes are skipped. Bodies and headers are never logged.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from inventory_api.middleware.request_id import request_id_var

access_logger = logging.getLogger("inventory_api.access")

_SKIPPED_PATHS = frozenset({"/health"})


def _level_for(status: int) -> int:
    if status >= 500:
        return logging.ERROR
    if status >= 400:
        return logging.WARNING
    return logging.INFO


def _target(request: Request) -> str:
    query = request.url.query
    return f"{request.url.path}?{query}" if query else request.url.path


class RequestLoggingMiddleware(BaseHTTPMiddleware):

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path in _SKIPPED_PATHS:
            return await call_next(request)

        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = round((time.perf_counter() - started) * 1000, 1)

        access_logger.log(
            _level_for(response.status_code),
            "[%s] %s %s -> %d (%sms)",
            request_id_var.get(""),
            request.method,
            _target(request),
            response.status_code,
            elapsed_ms,
            extra={
                "request_id": request_id_var.get(""),
                "status": response.status_code,
                "duration_ms": elapsed_ms,
                "client_ip": request.client.host if request.client else None,
            },
        )
        return response

"""
Observability middleware.

Tags every request with a correlation ID and writes one access log line
per request on the ``fleetman.requests`` logger.
"""

import time
import uuid
import logging
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("fleetman.requests")

CORRELATION_HEADER = "X-Correlation-ID"

# Probes hit these constantly; keep them out of the INFO log
QUIET_PATHS = {"/health", "/api/health"}


def _level_for(status_code: int, path: str) -> int:
    if status_code >= 500:
        return logging.ERROR
    if status_code >= 400:
        return logging.WARNING
    if path in QUIET_PATHS:
        return logging.DEBUG
    return logging.INFO


class ObservabilityMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        correlation_id = request.headers.get(CORRELATION_HEADER) or str(uuid.uuid4())
        request.state.correlation_id = correlation_id

        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = round((time.perf_counter() - started) * 1000, 2)

        response.headers[CORRELATION_HEADER] = correlation_id
        response.headers["X-Process-Time"] = f"{elapsed_ms:.2f}"

        path = request.url.path
        logger.log(
            _level_for(response.status_code, path),
            f"{request.method} {path} -> {response.status_code} ({elapsed_ms} ms)",
            extra={
                "correlation_id": correlation_id,
                "status_code": response.status_code,
                "duration_ms": elapsed_ms,
                "client_ip": request.client.host if request.client else "unknown",
            }
        )
        return response

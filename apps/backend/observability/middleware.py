"""
FastAPI middleware for request instrumentation.

Every request gets a correlation ID (taken from X-Request-ID / X-Correlation-ID
when the caller sends one) that is echoed back and stamped on every log line
emitted while the request runs, including the provider and LLM calls made by
the research pipeline.
"""

import logging
import re
import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from .logging import correlation_id_context
from .metrics import (
    http_requests_total,
    http_request_duration_seconds,
    http_requests_in_progress,
)

logger = logging.getLogger(__name__)

# Comprehensive research runs several provider and model calls back to back
SLOW_REQUEST_SECONDS = 20.0

_NUMERIC_SEGMENT = re.compile(r"/\d+")


class ObservabilityMiddleware(BaseHTTPMiddleware):
    """Correlation IDs, RED metrics and request logging."""

    def __init__(self, app: ASGIApp, enable_request_logging: bool = True):
        super().__init__(app)
        self.enable_request_logging = enable_request_logging

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = request.headers.get("X-Request-ID") or request.headers.get("X-Correlation-ID")

        with correlation_id_context(correlation_id) as req_id:
            request.state.correlation_id = req_id

            path = _NUMERIC_SEGMENT.sub("/{id}", request.url.path)
            method = request.method
            quiet = path.startswith("/health") or path.startswith("/metrics")

            http_requests_in_progress.labels(method=method, endpoint=path).inc()
            start_time = time.time()

            try:
                response = await call_next(request)
                duration = time.time() - start_time

                http_requests_total.labels(method=method, endpoint=path, status=response.status_code).inc()
                http_request_duration_seconds.labels(method=method, endpoint=path).observe(duration)
                response.headers["X-Request-ID"] = req_id

                if self.enable_request_logging and not quiet:
                    logger.info(
                        "Request completed",
                        extra={
                            "method": method,
                            "path": path,
                            "status_code": response.status_code,
                            "duration_seconds": round(duration, 3),
                        },
                    )
                if duration > SLOW_REQUEST_SECONDS and not quiet:
                    logger.warning(
                        "Slow request detected",
                        extra={"method": method, "path": path, "duration_seconds": round(duration, 3)},
                    )
                return response

            except Exception as exc:
                duration = time.time() - start_time
                http_requests_total.labels(method=method, endpoint=path, status=500).inc()
                http_request_duration_seconds.labels(method=method, endpoint=path).observe(duration)
                logger.error(
                    "Request failed",
                    extra={
                        "method": method,
                        "path": path,
                        "duration_seconds": round(duration, 3),
                        "error_type": type(exc).__name__,
                    },
                    exc_info=True,
                )
                raise

            finally:
                http_requests_in_progress.labels(method=method, endpoint=path).dec()

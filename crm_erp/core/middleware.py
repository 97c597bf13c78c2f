"""
Request Context Middleware.

Middleware for request tracking, timing, and context propagation.
"""

import uuid
from datetime import datetime, timezone

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from crm_erp.core.logging import get_logger

logger = get_logger(__name__)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Middleware that adds request context to every request.

    Features:
    - Generates or propagates request ID (X-Request-ID header)
    - Records request timing (X-Response-Time header)
    - Binds request context to structlog for automatic inclusion in logs
    - Stores context in request.state for access by handlers

    The request ID doubles as the correlation ID carried through logs
    of the event published by the request.
    """

    def __init__(self, app, log_requests: bool = False) -> None:
        super().__init__(app)
        self.log_requests = log_requests

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        """Process request with context tracking."""
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        start_time = datetime.now(timezone.utc).replace(tzinfo=None)

        request.state.request_id = request_id
        request.state.start_time = start_time

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            source="web",
            method=request.method,
            path=request.url.path,
        )

        log = logger.info if self.log_requests else logger.debug
        log(
            "Request started",
            extra={
                "client_host": request.client.host if request.client else None,
                "user_agent": request.headers.get("User-Agent"),
            },
        )

        try:
            response = await call_next(request)

            end_time = datetime.now(timezone.utc).replace(tzinfo=None)
            duration_ms = int((end_time - start_time).total_seconds() * 1000)

            response.headers["X-Request-ID"] = request_id
            response.headers["X-Response-Time"] = f"{duration_ms}ms"

            log(
                "Request completed",
                extra={
                    "status_code": response.status_code,
                    "duration_ms": duration_ms,
                },
            )

            return response

        except Exception as exc:
            end_time = datetime.now(timezone.utc).replace(tzinfo=None)
            duration_ms = int((end_time - start_time).total_seconds() * 1000)

            # Exception handlers build the response
            logger.error(
                "Request failed with exception",
                extra={
                    "duration_ms": duration_ms,
                    "error_type": type(exc).__name__,
                },
            )
            raise

        finally:
            # Clear context vars to prevent leaking to other requests
            structlog.contextvars.clear_contextvars()

"""
Event Observability Middleware.

Cross-cutting middleware applied to all event consumers.
Binds structlog context (message_id, source) for every consumed delivery
and measures processing duration.
"""

import time

import structlog
from faststream import BaseMiddleware

from crm_erp.core.logging import get_logger

logger = get_logger(__name__)


class EventObservabilityMiddleware(BaseMiddleware):
    """Middleware that binds structlog context for event consumers.

    Applied to every delivery read from Redis Streams. A batch delivery is
    one unit here; per-message IDs are bound by the consumer itself.
    """

    async def on_consume(self, msg):
        structlog.contextvars.bind_contextvars(
            delivery_id=str(getattr(msg, "message_id", None) or "unknown"),
            correlation_id=str(getattr(msg, "correlation_id", None) or "unknown"),
            source="events",
        )
        self._start_time = time.monotonic()
        return await super().on_consume(msg)

    async def after_consume(self, err):
        duration_ms = round((time.monotonic() - self._start_time) * 1000, 1)

        if err:
            logger.error(
                "Event delivery left unacknowledged",
                extra={
                    "duration_ms": duration_ms,
                    "error": str(err),
                    "error_type": type(err).__name__,
                },
            )
        else:
            logger.info(
                "Event delivery processed",
                extra={"duration_ms": duration_ms},
            )

        structlog.contextvars.unbind_contextvars(
            "delivery_id", "correlation_id", "source",
        )
        return await super().after_consume(err)

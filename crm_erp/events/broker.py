"""
Event Broker.

FastStream RedisBroker setup with lazy initialization.
UserCreated events travel over a Redis Stream read by a consumer group,
so a message stays pending until a consumer handles it without raising.
The worker app also runs the pending-entry reclaimer, which hands those
pending messages back to the consumer.

Usage:
    from crm_erp.events.broker import get_event_broker

    broker = get_event_broker()
"""

from faststream import FastStream
from faststream.redis import RedisBroker

from crm_erp.core.logging import get_logger

logger = get_logger(__name__)

_broker: RedisBroker | None = None
_app: FastStream | None = None


def create_event_broker() -> RedisBroker:
    """Create a new RedisBroker using the project's Redis URL.

    Returns:
        Configured RedisBroker instance
    """
    from crm_erp.core.config import get_redis_url
    from crm_erp.events.middleware import EventObservabilityMiddleware

    redis_url = get_redis_url()
    broker = RedisBroker(redis_url, middlewares=[EventObservabilityMiddleware])
    logger.info("Event broker created")
    return broker


def get_event_broker() -> RedisBroker:
    """Get the shared event broker (lazy initialization).

    Returns:
        Shared RedisBroker instance
    """
    global _broker
    if _broker is None:
        _broker = create_event_broker()
    return _broker


def create_event_app() -> FastStream:
    """Create a FastStream application for the ERP processor worker.

    This is a factory function, so the FastStream CLI must be invoked with `--factory`:
        faststream run --factory crm_erp.events.broker:create_event_app

    Returns:
        FastStream app with broker and consumers registered
    """
    global _app
    if _app is not None:
        return _app

    broker = get_event_broker()

    from crm_erp.events.consumers import erp as _erp_consumer  # noqa: F841

    _app = FastStream(broker)

    @_app.on_startup
    async def _configure_worker() -> None:
        from crm_erp.core.logging import setup_logging

        setup_logging()

    @_app.after_startup
    async def _start_reclaimer() -> None:
        from crm_erp.events.consumers.reclaim import start_pending_reclaimer

        await start_pending_reclaimer()

    @_app.on_shutdown
    async def _stop_reclaimer() -> None:
        from crm_erp.events.consumers.reclaim import stop_pending_reclaimer

        await stop_pending_reclaimer()

    logger.info("Event worker application created")
    return _app

"""
Event Publishers.

Wraps the broker's publish() with the correct stream name and the
canonical JSON encoding of the event.

Publishers check the events_publish_enabled feature flag before publishing.
When disabled, events are skipped (debug log only).

Any transport failure surfaces as PublishError; the caller decides whether
that is fatal (the intake endpoint treats it as a 500).

Usage:
    from crm_erp.events.publishers import UserEventPublisher

    publisher = UserEventPublisher()
    await publisher.publish(event, correlation_id=request_id)
"""

from crm_erp.core.exceptions import PublishError
from crm_erp.core.logging import get_logger
from crm_erp.events.schemas import UserCreatedEvent

logger = get_logger(__name__)


class UserEventPublisher:
    """Publishes user domain events to Redis Streams."""

    async def publish(
        self, event: UserCreatedEvent, correlation_id: str | None = None,
    ) -> None:
        """Publish a UserCreated event.

        The event ID must already be assigned by the caller.

        Raises:
            PublishError: If the broker is unreachable or rejects the message
        """
        from crm_erp.core.config import get_app_config

        stream = get_app_config().events.streams.user_created
        await self._publish(stream, event, correlation_id)

    async def _publish(
        self, stream: str, event: UserCreatedEvent, correlation_id: str | None,
    ) -> None:
        """Publish an event if the feature flag is enabled."""
        from crm_erp.core.config import get_app_config

        app_config = get_app_config()
        if not app_config.features.events_publish_enabled:
            logger.debug(
                "Event publishing disabled, skipping",
                extra={"stream": stream, "event_id": event.event_id},
            )
            return

        from crm_erp.events.broker import get_event_broker

        broker = get_event_broker()
        body = event.to_json()

        try:
            await broker.publish(
                body,
                stream=stream,
                maxlen=app_config.events.streams.default_maxlen,
                correlation_id=correlation_id,
            )
        except Exception as exc:
            logger.error(
                "Event publish failed",
                extra={
                    "stream": stream,
                    "event_id": event.event_id,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
            )
            raise PublishError(
                f"Could not publish {event.event_type} event {event.event_id}"
            ) from exc

        logger.info(
            "Event published",
            extra={
                "stream": stream,
                "event_type": event.event_type,
                "event_id": event.event_id,
                "user_id": event.user.id,
            },
        )

"""
ERP Processor Event Consumer.

Subscribes to UserCreated events in batches and hands each valid event to
the ErpProcessor, strictly in delivery order.

Each message ends in one of four outcomes:

    processed      audit row written
    skipped        failed decoding/validation, dropped by policy
    dead_lettered  failed decoding/validation, copied to the DLQ stream
    poison         failed decoding/validation under the "retry" policy

Poison messages do not block their siblings: the rest of the batch is
still processed, then the first poison error is raised so the whole
delivery stays unacknowledged for the pending reclaimer (reclaim.py) to
claim back. A ProcessingError is raised immediately and the remainder of
the batch is not attempted.

Failure policies come from events.yaml (consumers.erp_processor):
    malformed_policy  payload is not a UserCreated event    (default: retry)
    invalid_policy    event has no usable user snapshot     (default: drop)

Run with: python cli.py --service event-worker
"""

import json
from collections.abc import Awaitable, Callable, Sequence
from enum import Enum
from typing import Any

import structlog
from faststream import Context
from faststream.redis import StreamSub
from pydantic import BaseModel, Field

from crm_erp.core.config import get_app_config
from crm_erp.core.exceptions import (
    ApplicationError,
    EventValidationError,
    MalformedEventError,
    PublishError,
)
from crm_erp.core.logging import get_logger
from crm_erp.events.broker import get_event_broker
from crm_erp.events.schemas import RawMessage, decode_user_created_event
from crm_erp.services.erp_processor import ErpProcessor, create_erp_processor

logger = get_logger(__name__)

CONSUMER_NAME = "erp_processor"

POLICY_RETRY = "retry"
POLICY_DEAD_LETTER = "dead-letter"
POLICY_DROP = "drop"
POLICIES = frozenset({POLICY_RETRY, POLICY_DEAD_LETTER, POLICY_DROP})

DeadLetterSink = Callable[[RawMessage, ApplicationError], Awaitable[None]]


class MessageOutcome(str, Enum):
    PROCESSED = "processed"
    SKIPPED = "skipped"
    DEAD_LETTERED = "dead_lettered"
    POISON = "poison"


class MessageResult(BaseModel):
    message_id: str
    outcome: MessageOutcome
    event_id: str | None = None
    error_code: str | None = None


class BatchResult(BaseModel):
    """Per-message outcomes of one delivery, in delivery order."""

    results: list[MessageResult] = Field(default_factory=list)

    def count(self, outcome: MessageOutcome) -> int:
        return sum(1 for r in self.results if r.outcome is outcome)

    @property
    def processed(self) -> int:
        return self.count(MessageOutcome.PROCESSED)


class UserEventConsumer:
    """Drives the ErpProcessor over a batch of raw UserCreated messages."""

    def __init__(
        self,
        processor: ErpProcessor,
        malformed_policy: str = POLICY_RETRY,
        invalid_policy: str = POLICY_DROP,
        dead_letter: DeadLetterSink | None = None,
    ) -> None:
        for name, policy in (("malformed_policy", malformed_policy), ("invalid_policy", invalid_policy)):
            if policy not in POLICIES:
                raise ValueError(f"{name} must be one of {sorted(POLICIES)}, got {policy!r}")
            if policy == POLICY_DEAD_LETTER and dead_letter is None:
                raise ValueError(f"{name} is 'dead-letter' but no dead letter sink was given")

        self.processor = processor
        self.malformed_policy = malformed_policy
        self.invalid_policy = invalid_policy
        self._dead_letter = dead_letter

    async def handle_batch(self, raw_messages: Sequence[RawMessage]) -> BatchResult:
        """
        Process one delivery.

        Raises:
            MalformedEventError: A message could not be decoded and the
                malformed policy is "retry" (raised after the batch loop)
            EventValidationError: A message had no usable user snapshot and
                the invalid policy is "retry" (raised after the batch loop)
            ProcessingError: Downstream processing failed (raised at once)
            PublishError: A message could not be dead-lettered
        """
        result = BatchResult()
        deferred: list[ApplicationError] = []

        logger.info("Received batch", extra={"batch_size": len(raw_messages)})

        for raw in raw_messages:
            structlog.contextvars.bind_contextvars(message_id=raw.message_id)
            try:
                event = decode_user_created_event(raw.body, message_id=raw.message_id)
            except MalformedEventError as exc:
                outcome = await self._apply_policy(self.malformed_policy, raw, exc)
                if outcome is MessageOutcome.POISON:
                    deferred.append(exc)
                result.results.append(
                    MessageResult(message_id=raw.message_id, outcome=outcome, error_code=exc.code)
                )
                continue
            except EventValidationError as exc:
                outcome = await self._apply_policy(self.invalid_policy, raw, exc)
                if outcome is MessageOutcome.POISON:
                    deferred.append(exc)
                result.results.append(
                    MessageResult(message_id=raw.message_id, outcome=outcome, error_code=exc.code)
                )
                continue
            finally:
                structlog.contextvars.unbind_contextvars("message_id")

            structlog.contextvars.bind_contextvars(message_id=raw.message_id, event_id=event.event_id)
            try:
                await self.processor.process(event)
            finally:
                structlog.contextvars.unbind_contextvars("message_id", "event_id")

            result.results.append(
                MessageResult(
                    message_id=raw.message_id,
                    outcome=MessageOutcome.PROCESSED,
                    event_id=event.event_id,
                )
            )

        logger.info(
            "Batch handled",
            extra={
                "processed": result.processed,
                "skipped": result.count(MessageOutcome.SKIPPED),
                "dead_lettered": result.count(MessageOutcome.DEAD_LETTERED),
                "poison": result.count(MessageOutcome.POISON),
            },
        )

        if deferred:
            raise deferred[0]
        return result

    async def _apply_policy(
        self, policy: str, raw: RawMessage, error: ApplicationError,
    ) -> MessageOutcome:
        log_extra = {
            "message_id": raw.message_id,
            "error_code": error.code,
            "error": error.message,
            "policy": policy,
        }

        if policy == POLICY_DROP:
            logger.warning("Skipping message", extra=log_extra)
            return MessageOutcome.SKIPPED

        if policy == POLICY_DEAD_LETTER:
            await self._dead_letter(raw, error)
            return MessageOutcome.DEAD_LETTERED

        logger.error("Poison message, delivery will be retried", extra=log_extra)
        return MessageOutcome.POISON


async def send_to_dlq(stream: str, raw: RawMessage, error: ApplicationError) -> None:
    """Publish a rejected message to the dead letter queue stream.

    DLQ stream name follows the convention: {dlq.stream_prefix}:{original_stream}
    The original body is preserved verbatim with added error metadata.

    Raises:
        PublishError: If the DLQ stream cannot be written, so the message
            is redelivered instead of lost
    """
    dlq_config = get_app_config().events.dlq
    if not dlq_config.enabled:
        logger.warning(
            "DLQ disabled, dropping message",
            extra={"message_id": raw.message_id, "error_code": error.code},
        )
        return

    dlq_stream = f"{dlq_config.stream_prefix}:{stream}"
    dlq_payload = {
        "body": raw.body,
        "_dlq_error": error.message,
        "_dlq_error_code": error.code,
        "_dlq_original_stream": stream,
        "_dlq_message_id": raw.message_id,
    }

    try:
        await broker.publish(dlq_payload, stream=dlq_stream)
    except Exception as dlq_err:
        logger.error(
            "Failed to send message to DLQ",
            extra={
                "dlq_stream": dlq_stream,
                "message_id": raw.message_id,
                "dlq_error": str(dlq_err),
                "original_error": error.message,
            },
        )
        raise PublishError(f"Could not dead-letter message {raw.message_id}") from dlq_err

    logger.warning(
        "Message sent to DLQ",
        extra={
            "dlq_stream": dlq_stream,
            "message_id": raw.message_id,
            "error_code": error.code,
        },
    )


def as_text(item: Any) -> str:
    if isinstance(item, str):
        return item
    if isinstance(item, bytes):
        return item.decode("utf-8", errors="replace")
    # Producers that published a JSON object get it back already decoded
    return json.dumps(item)


def _delivery_ids(message: Any, count: int) -> list[str]:
    """Transport message IDs for a batch, positional fallbacks if unavailable."""
    raw = getattr(message, "raw_message", None)
    ids = raw.get("message_ids") if isinstance(raw, dict) else None
    if ids and len(ids) == count:
        return [i.decode() if isinstance(i, bytes) else str(i) for i in ids]
    base = getattr(message, "message_id", None) or "batch"
    return [f"{base}#{index}" for index in range(count)]


def to_raw_messages(bodies: Sequence[Any], message: Any = None) -> list[RawMessage]:
    """Pair each decoded body of a batch delivery with its transport message ID."""
    ids = _delivery_ids(message, len(bodies))
    return [
        RawMessage(message_id=message_id, body=as_text(body))
        for message_id, body in zip(ids, bodies)
    ]


_consumer: UserEventConsumer | None = None


def get_user_event_consumer() -> UserEventConsumer:
    """Get the worker's UserEventConsumer (lazy initialization)."""
    global _consumer
    if _consumer is None:
        config = get_app_config().consumer(CONSUMER_NAME)

        async def _dead_letter(raw: RawMessage, error: ApplicationError) -> None:
            await send_to_dlq(config.stream, raw, error)

        _consumer = UserEventConsumer(
            processor=create_erp_processor(CONSUMER_NAME),
            malformed_policy=config.malformed_policy,
            invalid_policy=config.invalid_policy,
            dead_letter=_dead_letter,
        )
    return _consumer


broker = get_event_broker()

_config = get_app_config().consumer(CONSUMER_NAME)


@broker.subscriber(
    stream=StreamSub(
        _config.stream,
        group=_config.group,
        consumer=_config.consumer,
        batch=True,
        max_records=_config.batch_size,
    ),
)
async def handle_user_created_batch(body: list[Any], message: Any = Context("message")) -> None:
    """Process a batch of UserCreated events delivered by Redis Streams."""
    raw_messages = to_raw_messages(body, message)
    await get_user_event_consumer().handle_batch(raw_messages)

"""
Pending Entry Reclaim.

A consumer group only hands out entries that were never delivered. When a
batch handler raises, its entries stay in the group's pending entries list
(PEL) and the subscriber never sees them again. The reclaimer sweeps the
PEL on an interval:

    idle >= min_idle_ms, deliveries <  max_deliveries   claimed and handled again
    idle >= min_idle_ms, deliveries >= max_deliveries   dead-lettered and acked

Reclaimed entries are handled one at a time, so a poison entry only holds
up itself. A ProcessingError ends the sweep; the untried entries stay
pending for the next one.

Settings come from events.yaml (consumers.erp_processor.reclaim).
"""

import asyncio
import contextlib
import json
from typing import Any

import redis.asyncio as redis
from faststream.redis.message import DATA_KEY
from faststream.redis.parser import JSONMessageFormat
from pydantic import BaseModel
from redis.exceptions import RedisError

from crm_erp.core.config import get_app_config, get_redis_url
from crm_erp.core.exceptions import (
    ApplicationError,
    EventValidationError,
    MalformedEventError,
    RedeliveryExhaustedError,
)
from crm_erp.core.logging import get_logger
from crm_erp.events.consumers.erp import (
    CONSUMER_NAME,
    DeadLetterSink,
    UserEventConsumer,
    as_text,
    get_user_event_consumer,
    send_to_dlq,
)
from crm_erp.events.schemas import RawMessage

logger = get_logger(__name__)

_DATA_FIELD = DATA_KEY.encode()


class SweepResult(BaseModel):
    acked: int = 0
    dead_lettered: int = 0
    left_pending: int = 0


def entry_body(fields: dict[bytes, bytes]) -> str:
    """Payload of a stream entry as published through the broker."""
    data = fields.get(_DATA_FIELD)
    if data is None:
        # Written by a plain XADD rather than through the broker
        return json.dumps({as_text(k): as_text(v) for k, v in fields.items()})
    body, _headers = JSONMessageFormat.parse(data)
    return as_text(body)


class PendingReclaimer:
    """Claims idle pending entries of one consumer group and settles them."""

    def __init__(
        self,
        client: Any,
        consumer: UserEventConsumer,
        dead_letter: DeadLetterSink,
        stream: str,
        group: str,
        consumer_name: str,
        min_idle_ms: int,
        max_deliveries: int,
        batch_size: int = 10,
    ) -> None:
        self._client = client
        self._consumer = consumer
        self._dead_letter = dead_letter
        self.stream = stream
        self.group = group
        self.consumer_name = consumer_name
        self.min_idle_ms = min_idle_ms
        self.max_deliveries = max_deliveries
        self.batch_size = batch_size

    async def sweep(self) -> SweepResult:
        """
        Settle one page of idle pending entries.

        Raises:
            ProcessingError: A reclaimed event could not be processed
            PublishError: An exhausted entry could not be dead-lettered
        """
        result = SweepResult()

        pending = await self._client.xpending_range(
            self.stream,
            self.group,
            min="-",
            max="+",
            count=self.batch_size,
            idle=self.min_idle_ms,
        )
        if not pending:
            return result

        deliveries = {as_text(p["message_id"]): p["times_delivered"] for p in pending}
        exhausted = [mid for mid, n in deliveries.items() if n >= self.max_deliveries]
        retryable = [mid for mid, n in deliveries.items() if n < self.max_deliveries]

        logger.info(
            "Reclaiming pending entries",
            extra={
                "stream": self.stream,
                "group": self.group,
                "retryable": len(retryable),
                "exhausted": len(exhausted),
            },
        )

        for raw in await self._claim(exhausted):
            error = RedeliveryExhaustedError(
                f"Entry {raw.message_id} failed {deliveries[raw.message_id]} deliveries",
                message_id=raw.message_id,
                deliveries=deliveries[raw.message_id],
            )
            await self._dead_letter(raw, error)
            await self._client.xack(self.stream, self.group, raw.message_id)
            result.dead_lettered += 1

        for raw in await self._claim(retryable):
            try:
                await self._consumer.handle_batch([raw])
            except (MalformedEventError, EventValidationError) as exc:
                logger.warning(
                    "Reclaimed entry still rejected",
                    extra={
                        "message_id": raw.message_id,
                        "error_code": exc.code,
                        "deliveries": deliveries[raw.message_id] + 1,
                        "max_deliveries": self.max_deliveries,
                    },
                )
                result.left_pending += 1
                continue
            await self._client.xack(self.stream, self.group, raw.message_id)
            result.acked += 1

        logger.info("Pending sweep done", extra=result.model_dump())
        return result

    async def _claim(self, message_ids: list[str]) -> list[RawMessage]:
        if not message_ids:
            return []
        claimed = await self._client.xclaim(
            self.stream,
            self.group,
            self.consumer_name,
            self.min_idle_ms,
            message_ids,
        )
        # Entries trimmed from the stream come back empty
        return [
            RawMessage(message_id=as_text(entry_id), body=entry_body(fields))
            for entry_id, fields in claimed
            if entry_id is not None and fields is not None
        ]

    async def run(self, interval_seconds: float) -> None:
        """Sweep forever, one sweep every ``interval_seconds``."""
        logger.info(
            "Pending reclaimer started",
            extra={"stream": self.stream, "group": self.group, "interval_s": interval_seconds},
        )
        while True:
            try:
                await self.sweep()
            except (ApplicationError, RedisError, OSError) as exc:
                logger.error(
                    "Pending sweep failed",
                    extra={
                        "stream": self.stream,
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                    },
                )
            await asyncio.sleep(interval_seconds)


_client: Any = None
_task: asyncio.Task | None = None


async def start_pending_reclaimer() -> None:
    """Start the background sweep for the ERP processor's consumer group."""
    global _client, _task
    config = get_app_config().consumer(CONSUMER_NAME)
    if not config.reclaim.enabled:
        logger.info("Pending reclaimer disabled")
        return

    async def _dead_letter(raw: RawMessage, error: ApplicationError) -> None:
        await send_to_dlq(config.stream, raw, error)

    _client = redis.from_url(get_redis_url())
    reclaimer = PendingReclaimer(
        _client,
        consumer=get_user_event_consumer(),
        dead_letter=_dead_letter,
        stream=config.stream,
        group=config.group,
        consumer_name=config.consumer,
        min_idle_ms=config.reclaim.min_idle_ms,
        max_deliveries=config.reclaim.max_deliveries,
        batch_size=config.batch_size,
    )
    _task = asyncio.create_task(
        reclaimer.run(config.reclaim.interval_seconds), name="pending-reclaimer",
    )


async def stop_pending_reclaimer() -> None:
    """Cancel the background sweep and close its Redis connection."""
    global _client, _task
    if _task is not None:
        _task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await _task
        _task = None
    if _client is not None:
        await _client.aclose()
        _client = None

"""
ERP Processor.

Downstream step for UserCreated events: a simulated ERP employee-record
call followed by an audit row in the record store.

The simulated call cannot fail. Persistence failures, an open circuit
breaker, or running past the processing timeout are all reported as
ProcessingError so the consumer can leave the batch unacknowledged.
"""

import asyncio

import aiobreaker
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from crm_erp.core.config_schema import ErpSchema
from crm_erp.core.exceptions import ProcessingError
from crm_erp.core.logging import get_logger
from crm_erp.core.resilience import create_circuit_breaker
from crm_erp.core.utils import utc_now
from crm_erp.events.schemas import UserCreatedEvent
from crm_erp.models.processed_event import STATUS_PROCESSED, ProcessedEventRecord
from crm_erp.repositories.processed_event import ProcessedEventRepository

logger = get_logger(__name__)


def employee_id_for(user_id: str, prefix: str = "EMP-", length: int = 8) -> str:
    """Synthetic ERP employee ID: prefix plus the first ``length`` chars of the user ID."""
    return f"{prefix}{user_id[:length]}"


class ErpProcessor:
    """Processes one UserCreated event at a time."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        erp: ErpSchema,
        processing_timeout: float,
        breaker: aiobreaker.CircuitBreaker | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._erp = erp
        self._processing_timeout = processing_timeout
        self._breaker = breaker or create_circuit_breaker("record-store")

    async def process(self, event: UserCreatedEvent) -> ProcessedEventRecord:
        """
        Run the simulated ERP call, then store the audit row.

        Args:
            event: A validated UserCreated event

        Returns:
            The stored audit row

        Raises:
            ProcessingError: If the audit row could not be stored in time, or
                the database could not be reached
        """
        logger.info(
            "Processing event",
            extra={"event_id": event.event_id, "user_id": event.user.id},
        )

        try:
            async with asyncio.timeout(self._processing_timeout):
                await self.simulate_erp_call(event)
                record = await self._breaker.call_async(self._store_processed_event, event)
        except TimeoutError as exc:
            logger.error(
                "Event processing timed out",
                extra={"event_id": event.event_id, "timeout_s": self._processing_timeout},
            )
            raise ProcessingError(
                f"Processing of event {event.event_id} timed out",
                event_id=event.event_id,
            ) from exc
        except (SQLAlchemyError, OSError, aiobreaker.CircuitBreakerError) as exc:
            logger.error(
                "Error processing event",
                extra={
                    "event_id": event.event_id,
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                },
            )
            raise ProcessingError(
                f"Could not store processed event {event.event_id}",
                event_id=event.event_id,
            ) from exc

        logger.info("Successfully processed event", extra={"event_id": event.event_id})
        return record

    async def simulate_erp_call(self, event: UserCreatedEvent) -> str:
        """Pretend to create an employee record in the ERP and return its ID."""
        logger.debug(
            "Simulating ERP API call",
            extra={"erp_system": self._erp.system_name, "event_id": event.event_id},
        )

        await asyncio.sleep(self._erp.simulated_latency_ms / 1000)

        employee_id = employee_id_for(
            event.user.id,
            prefix=self._erp.employee_id_prefix,
            length=self._erp.employee_id_length,
        )
        logger.info(
            "ERP employee record created",
            extra={
                "erp_system": self._erp.system_name,
                "employee_id": employee_id,
                "user_name": event.user.name,
            },
        )
        return employee_id

    async def _store_processed_event(self, event: UserCreatedEvent) -> ProcessedEventRecord:
        async with self._session_factory() as session:
            repo = ProcessedEventRepository(session)
            record = await repo.put(
                ProcessedEventRecord(
                    event_id=event.event_id,
                    user_id=event.user.id,
                    user_name=event.user.name,
                    user_email=event.user.email,
                    processed_at=utc_now(),
                    event_type=event.event_type,
                    status=STATUS_PROCESSED,
                )
            )
            await session.commit()

        logger.debug("Processed event stored", extra={"event_id": event.event_id})
        return record


def create_erp_processor(consumer_name: str = "erp_processor") -> ErpProcessor:
    """Build an ErpProcessor from events.yaml / erp.yaml and the shared session factory."""
    from crm_erp.core.config import get_app_config
    from crm_erp.core.database import get_session_factory

    app_config = get_app_config()
    consumer = app_config.consumer(consumer_name)

    return ErpProcessor(
        session_factory=get_session_factory(),
        erp=app_config.erp,
        processing_timeout=consumer.processing_timeout,
        breaker=create_circuit_breaker(
            "record-store",
            fail_max=consumer.circuit_breaker.fail_max,
            timeout_duration=consumer.circuit_breaker.timeout_duration,
        ),
    )

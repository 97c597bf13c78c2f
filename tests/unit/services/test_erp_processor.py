"""
Unit Tests for the ERP Processor.

The record store is mocked; see tests/integration for real audit rows.
"""

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import aiobreaker
import pytest
from sqlalchemy.exc import OperationalError

from crm_erp.core.exceptions import ProcessingError
from crm_erp.core.resilience import create_circuit_breaker
from crm_erp.events.schemas import UserCreatedEvent
from crm_erp.models.processed_event import STATUS_PROCESSED
from crm_erp.services.erp_processor import ErpProcessor, employee_id_for


@pytest.fixture
def event(fixed_timestamp) -> UserCreatedEvent:
    user = SimpleNamespace(id="0123456789abcdef", name="Ada", email="ada@example.com")
    return UserCreatedEvent.for_user(user, event_id="evt-1", timestamp=fixed_timestamp)


@pytest.fixture
def session_factory(mock_db_session):
    """Session factory whose sessions are all ``mock_db_session``."""
    mock_db_session.merge.side_effect = lambda instance: instance
    context = MagicMock()
    context.__aenter__ = AsyncMock(return_value=mock_db_session)
    context.__aexit__ = AsyncMock(return_value=False)
    return MagicMock(return_value=context)


class TestEmployeeId:
    def test_prefix_and_truncation(self):
        assert employee_id_for("0123456789abcdef") == "EMP-01234567"

    def test_short_user_id(self):
        assert employee_id_for("abc", prefix="E", length=8) == "Eabc"


class TestProcess:
    @pytest.mark.asyncio
    async def test_stores_processed_audit_row(self, event, session_factory, mock_db_session, erp_config):
        processor = ErpProcessor(session_factory, erp_config, processing_timeout=5)

        record = await processor.process(event)

        assert record.event_id == "evt-1"
        assert record.user_id == event.user.id
        assert record.user_name == "Ada"
        assert record.user_email == "ada@example.com"
        assert record.event_type == "UserCreated"
        assert record.status == STATUS_PROCESSED
        assert record.processed_at is not None
        mock_db_session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_simulated_call_returns_employee_id(self, event, session_factory, erp_config):
        processor = ErpProcessor(session_factory, erp_config, processing_timeout=5)

        assert await processor.simulate_erp_call(event) == "EMP-01234567"

    @pytest.mark.asyncio
    async def test_store_failure_raises_processing_error(
        self, event, session_factory, mock_db_session, erp_config,
    ):
        mock_db_session.flush.side_effect = OperationalError("INSERT", {}, Exception("locked"))
        processor = ErpProcessor(session_factory, erp_config, processing_timeout=5)

        with pytest.raises(ProcessingError) as exc_info:
            await processor.process(event)

        assert exc_info.value.event_id == "evt-1"
        assert exc_info.value.code == "EVT_PROCESSING_FAILED"
        mock_db_session.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_timeout_raises_processing_error(self, event, session_factory, erp_config):
        processor = ErpProcessor(session_factory, erp_config, processing_timeout=0.01)

        async def _slow(_event):
            await asyncio.sleep(1)

        with patch.object(processor, "simulate_erp_call", side_effect=_slow):
            with pytest.raises(ProcessingError, match="timed out"):
                await processor.process(event)

    @pytest.mark.asyncio
    async def test_open_breaker_fails_fast(self, event, session_factory, mock_db_session, erp_config):
        mock_db_session.flush.side_effect = OperationalError("INSERT", {}, Exception("down"))
        breaker = create_circuit_breaker("record-store", fail_max=1, timeout_duration=60)
        processor = ErpProcessor(session_factory, erp_config, processing_timeout=5, breaker=breaker)

        with pytest.raises(ProcessingError):
            await processor.process(event)

        mock_db_session.flush.reset_mock()
        with pytest.raises(ProcessingError) as exc_info:
            await processor.process(event)

        assert isinstance(exc_info.value.__cause__, aiobreaker.CircuitBreakerError)
        mock_db_session.flush.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unreachable_database_raises_processing_error(
        self, event, session_factory, mock_db_session, erp_config,
    ):
        mock_db_session.flush.side_effect = ConnectionRefusedError(111, "Connect call failed")
        processor = ErpProcessor(session_factory, erp_config, processing_timeout=5)

        with pytest.raises(ProcessingError) as exc_info:
            await processor.process(event)

        assert isinstance(exc_info.value.__cause__, ConnectionRefusedError)
        assert exc_info.value.event_id == "evt-1"

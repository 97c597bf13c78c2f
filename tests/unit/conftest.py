"""
Unit Test Fixtures.

Fixtures for unit tests - all external dependencies are mocked.
Unit tests should be fast and isolated, never touching real databases or Redis.
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from crm_erp.core.config_schema import ErpSchema


# =============================================================================
# Database Mock Fixtures
# =============================================================================


@pytest.fixture
def mock_db_session() -> AsyncMock:
    """
    Mock database session for unit tests.

    Usage:
        def test_repository(mock_db_session: AsyncMock):
            repo = UserRepository(mock_db_session)
    """
    session = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.flush = AsyncMock()
    session.merge = AsyncMock()
    session.execute = AsyncMock()
    session.add = MagicMock()
    session.get = AsyncMock()
    return session


@pytest.fixture
def mock_db_result() -> MagicMock:
    """
    Mock database query result.

    Usage:
        def test_query(mock_db_session, mock_db_result):
            mock_db_result.scalars.return_value.all.return_value = [user]
            mock_db_session.execute.return_value = mock_db_result
    """
    result = MagicMock()
    result.scalars = MagicMock()
    result.scalars.return_value.all = MagicMock(return_value=[])
    return result


# =============================================================================
# Event Fixtures
# =============================================================================


@pytest.fixture
def erp_config() -> ErpSchema:
    """ERP settings with no simulated latency."""
    return ErpSchema(
        system_name="Oracle Fusion",
        employee_id_prefix="EMP-",
        employee_id_length=8,
        simulated_latency_ms=0,
    )


@pytest.fixture
def fixed_timestamp() -> datetime:
    return datetime(2024, 1, 1, tzinfo=timezone.utc)


# =============================================================================
# Settings Mock Fixtures
# =============================================================================


@pytest.fixture
def mock_app_config() -> MagicMock:
    """
    Mock YAML application configuration.

    Usage:
        def test_with_config(mock_app_config):
            with patch("crm_erp.core.config.get_app_config", return_value=mock_app_config):
                ...
    """
    config = MagicMock()
    config.features.events_enabled = True
    config.features.events_publish_enabled = True
    config.features.api_request_logging = False
    config.events.streams.user_created = "users:user-created"
    config.events.streams.default_maxlen = 1000
    config.events.dlq.enabled = True
    config.events.dlq.stream_prefix = "dlq"
    config.observability.health_checks.ready_timeout_seconds = 1
    return config


# =============================================================================
# Logging Mock Fixtures
# =============================================================================


@pytest.fixture
def mock_logger() -> MagicMock:
    """
    Mock logger for testing logging calls.

    Usage:
        def test_logging(mock_logger):
            with patch("module.logger", mock_logger):
                ...
                mock_logger.info.assert_called_once()
    """
    logger = MagicMock()
    logger.debug = MagicMock()
    logger.info = MagicMock()
    logger.warning = MagicMock()
    logger.error = MagicMock()
    logger.exception = MagicMock()
    return logger

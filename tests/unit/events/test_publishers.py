"""Unit tests for the UserCreated event publisher."""

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from crm_erp.core.exceptions import PublishError
from crm_erp.events.publishers import UserEventPublisher
from crm_erp.events.schemas import UserCreatedEvent


@pytest.fixture
def event(fixed_timestamp) -> UserCreatedEvent:
    user = SimpleNamespace(id="user-1", name="Ada", email="ada@example.com")
    return UserCreatedEvent.for_user(user, event_id="evt-1", timestamp=fixed_timestamp)


@pytest.fixture
def mock_broker() -> MagicMock:
    broker = MagicMock()
    broker.publish = AsyncMock()
    return broker


class TestUserEventPublisher:
    @pytest.mark.asyncio
    async def test_publishes_wire_json_to_stream(self, event, mock_broker, mock_app_config):
        with patch("crm_erp.core.config.get_app_config", return_value=mock_app_config), \
             patch("crm_erp.events.broker.get_event_broker", return_value=mock_broker):
            await UserEventPublisher().publish(event, correlation_id="req-1")

        mock_broker.publish.assert_awaited_once()
        call = mock_broker.publish.await_args
        assert json.loads(call.args[0])["eventId"] == "evt-1"
        assert call.kwargs["stream"] == "users:user-created"
        assert call.kwargs["maxlen"] == 1000
        assert call.kwargs["correlation_id"] == "req-1"

    @pytest.mark.asyncio
    async def test_skips_when_publishing_disabled(self, event, mock_broker, mock_app_config):
        mock_app_config.features.events_publish_enabled = False

        with patch("crm_erp.core.config.get_app_config", return_value=mock_app_config), \
             patch("crm_erp.events.broker.get_event_broker", return_value=mock_broker):
            await UserEventPublisher().publish(event)

        mock_broker.publish.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_transport_failure_raises_publish_error(self, event, mock_broker, mock_app_config):
        mock_broker.publish.side_effect = ConnectionError("redis unreachable")

        with patch("crm_erp.core.config.get_app_config", return_value=mock_app_config), \
             patch("crm_erp.events.broker.get_event_broker", return_value=mock_broker):
            with pytest.raises(PublishError) as exc_info:
                await UserEventPublisher().publish(event)

        assert exc_info.value.code == "EVT_PUBLISH_FAILED"
        assert isinstance(exc_info.value.__cause__, ConnectionError)

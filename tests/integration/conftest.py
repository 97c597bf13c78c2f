"""
Integration Test Fixtures.

Fixtures for integration tests - uses a real (SQLite) record store.
The event transport is replaced with an in-memory publisher that
records what would have been sent.
"""

from collections.abc import AsyncGenerator
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from crm_erp.core.database import get_db_session
from crm_erp.core.dependencies import get_user_event_publisher
from crm_erp.core.exceptions import PublishError
from crm_erp.events.schemas import UserCreatedEvent


class RecordingPublisher:
    """In-memory stand-in for UserEventPublisher."""

    def __init__(self) -> None:
        self.published: list[tuple[str, str | None]] = []
        self.fail = False

    async def publish(
        self, event: UserCreatedEvent, correlation_id: str | None = None,
    ) -> None:
        if self.fail:
            raise PublishError("Could not publish UserCreated event")
        self.published.append((event.to_json(), correlation_id))


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


# =============================================================================
# API Client Fixtures
# =============================================================================


@pytest.fixture
async def client(
    db_session: AsyncSession,
    publisher: RecordingPublisher,
) -> AsyncGenerator[AsyncClient, None]:
    """
    Create a test client with database session and publisher overrides.

    Usage:
        async def test_health_endpoint(client: AsyncClient):
            response = await client.get("/health")
            assert response.status_code == 200
    """
    async def override_get_db_session() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    from crm_erp.main import create_app

    app = create_app()
    app.dependency_overrides[get_db_session] = override_get_db_session
    app.dependency_overrides[get_user_event_publisher] = lambda: publisher

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as test_client:
        yield test_client

    app.dependency_overrides.clear()


# =============================================================================
# API Response Assertion Helpers
# =============================================================================


class ApiAssertions:
    """Helper class for API error response assertions."""

    @staticmethod
    def assert_error(
        response: Any,
        expected_status: int,
        expected_code: str | None = None,
    ) -> dict[str, Any]:
        """
        Assert API response is an error.

        Returns:
            Response JSON data
        """
        assert response.status_code == expected_status, (
            f"Expected status {expected_status}, got {response.status_code}: "
            f"{response.text}"
        )
        data = response.json()
        assert data.get("success") is False, f"Response should be error: {data}"
        assert data.get("error") is not None, f"Missing error details: {data}"

        if expected_code:
            actual_code = data["error"].get("code")
            assert actual_code == expected_code, (
                f"Expected error code {expected_code}, got {actual_code}"
            )

        return data

    @staticmethod
    def assert_validation_error(
        response: Any,
        field: str | None = None,
    ) -> dict[str, Any]:
        """
        Assert API response is a request validation error (400).

        Args:
            response: httpx Response object
            field: Expected field with validation error (optional)
        """
        data = ApiAssertions.assert_error(response, 400, "VAL_REQUEST_INVALID")

        if field:
            errors = data["error"].get("details", {}).get("validation_errors", [])
            fields = [e.get("field", "") for e in errors]
            assert any(field in f for f in fields), (
                f"Expected validation error for field '{field}', "
                f"got errors for: {fields}"
            )

        return data


@pytest.fixture
def api() -> ApiAssertions:
    """Provide API assertion helpers."""
    return ApiAssertions()

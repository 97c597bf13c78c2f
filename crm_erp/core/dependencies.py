"""
FastAPI Dependencies.

Shared dependencies for request handling.
"""

import uuid
from typing import Annotated

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from crm_erp.core.database import get_db_session
from crm_erp.events.publishers import UserEventPublisher

# Type alias for database session dependency
DbSession = Annotated[AsyncSession, Depends(get_db_session)]


async def get_request_id(x_request_id: str | None = Header(None)) -> str:
    """
    Extract or generate request ID from headers.

    Used for request tracing and as the correlation ID of published events.
    """
    return x_request_id or str(uuid.uuid4())


RequestId = Annotated[str, Depends(get_request_id)]


def get_user_event_publisher() -> UserEventPublisher:
    """Publisher used by the intake endpoint. Overridden in tests."""
    return UserEventPublisher()


EventPublisher = Annotated[UserEventPublisher, Depends(get_user_event_publisher)]

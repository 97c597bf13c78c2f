"""
User Service.

Intake logic for CRM users: persist the user, then announce it with a
UserCreated event. Failure of either step is fatal to the request.
"""

from uuid import uuid4

from sqlalchemy.ext.asyncio import AsyncSession

from crm_erp.events.publishers import UserEventPublisher
from crm_erp.events.schemas import UserCreatedEvent
from crm_erp.models.user import User
from crm_erp.repositories.user import UserRepository
from crm_erp.schemas.user import UserCreate
from crm_erp.services.base import BaseService


class UserService(BaseService):
    """Service for user intake and lookup."""

    def __init__(
        self,
        session: AsyncSession,
        publisher: UserEventPublisher | None = None,
    ) -> None:
        super().__init__(session)
        self.repo = UserRepository(session)
        self.publisher = publisher or UserEventPublisher()

    async def create_user(
        self, data: UserCreate, correlation_id: str | None = None,
    ) -> User:
        """
        Create a user and publish its UserCreated event.

        Args:
            data: Validated creation request
            correlation_id: Request ID propagated onto the published message

        Returns:
            The stored user, with its generated ID

        Raises:
            DatabaseError: If the user cannot be stored
            PublishError: If the event cannot be published
        """
        user = User(id=str(uuid4()), name=data.name, email=data.email)
        self._log_operation("Creating user", user_id=user.id)

        user = await self._execute_db_operation("create_user", self.repo.put(user))

        event = UserCreatedEvent.for_user(user, event_id=str(uuid4()))
        await self.publisher.publish(event, correlation_id=correlation_id)

        self._log_debug("User created", user_id=user.id, event_id=event.event_id)
        return user

    async def find_user(self, user_id: str) -> User | None:
        """Get a user by ID, or None if there is no such user."""
        return await self._execute_db_operation("find_user", self.repo.get(user_id))

    async def list_users(self) -> list[User]:
        """Return every stored user."""
        return await self._execute_db_operation("list_users", self.repo.scan_all())

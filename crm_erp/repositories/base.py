"""
Base Repository.

Key-value record store over an SQLAlchemy async session. Every entity has a
single-column string primary key; operations touch exactly one row and rely
on the database's per-row atomicity.
"""

from typing import Generic, TypeVar

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from crm_erp.core.logging import get_logger
from crm_erp.models.base import Base

logger = get_logger(__name__)

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """
    Record store with get / scan_all / put.

    Subclasses should set the model class:

        class UserRepository(BaseRepository[User]):
            model = User
    """

    model: type[ModelType]

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, key: str) -> ModelType | None:
        """Get a single record by primary key, returning None if absent."""
        return await self.session.get(self.model, key)

    async def scan_all(self) -> list[ModelType]:
        """Return every record in the table (full scan, no ordering guarantee)."""
        result = await self.session.execute(select(self.model))
        return list(result.scalars().all())

    async def put(self, instance: ModelType) -> ModelType:
        """
        Write a record, replacing any existing record with the same key.

        Returns:
            The persistent instance attached to this session
        """
        persistent = await self.session.merge(instance)
        await self.session.flush()
        logger.debug(
            "Record stored",
            extra={"table": self.model.__tablename__},
        )
        return persistent

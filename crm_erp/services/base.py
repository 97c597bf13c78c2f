"""
Base Service.

Base class for request-scoped services. Services orchestrate repositories
and collaborators, and translate storage failures into application errors.

Usage:
    from crm_erp.services.base import BaseService

    class UserService(BaseService):
        def __init__(self, session: AsyncSession) -> None:
            super().__init__(session)
            self.repo = UserRepository(session)
"""

from collections.abc import Awaitable
from typing import Any, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from crm_erp.core.exceptions import DatabaseError
from crm_erp.core.logging import get_logger

T = TypeVar("T")


class BaseService:
    """
    Base class for all request-scoped services.

    Provides:
    - Database session management
    - Logging context
    - Error wrapping for database operations
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self._logger = get_logger(self.__class__.__module__)

    @property
    def session(self) -> AsyncSession:
        """Get the database session."""
        return self._session

    async def _execute_db_operation(
        self,
        operation: str,
        coro: Awaitable[T],
    ) -> T:
        """
        Execute a database operation with error handling.

        Args:
            operation: Description of the operation for logging
            coro: Awaitable to execute

        Returns:
            Result of the awaitable

        Raises:
            DatabaseError: For any SQLAlchemy or connection error
        """
        try:
            return await coro
        except (SQLAlchemyError, OSError) as e:
            self._logger.error(
                "Database error",
                extra={"operation": operation, "error": str(e)},
            )
            raise DatabaseError(f"Database operation failed: {operation}") from e

    def _log_operation(self, operation: str, **context: Any) -> None:
        """Log a service operation with context."""
        self._logger.info(
            operation,
            extra={"service": self.__class__.__name__, **context},
        )

    def _log_debug(self, message: str, **context: Any) -> None:
        """Log debug information."""
        self._logger.debug(
            message,
            extra={"service": self.__class__.__name__, **context},
        )

"""
User Repository.

Data access layer for CRM users.
"""

from crm_erp.models.user import User
from crm_erp.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    """Repository for the users table."""

    model = User

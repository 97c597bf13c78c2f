"""
User Model.

CRM user record. Created once by the intake endpoint, never updated or deleted.
"""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from crm_erp.models.base import Base, UUIDMixin


class User(UUIDMixin, Base):
    """User database model."""

    __tablename__ = "users"

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    email: Mapped[str] = mapped_column(
        String(320),
        nullable=False,
        index=True,
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, name={self.name!r})>"

"""
SQLAlchemy Base Model.

Base class for all record store models with common fields and utilities.
"""

from uuid import uuid4

from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class UUIDMixin:
    """Mixin that adds a UUID string primary key.

    The key is assigned in Python at construction time by the caller
    (or by the column default on insert), never by the database.
    """

    id: Mapped[str] = mapped_column(
        primary_key=True,
        default=lambda: str(uuid4()),
    )

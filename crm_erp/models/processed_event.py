"""
Processed Event Model.

Audit row written by the ERP processor once a UserCreated event has
been handled. Keyed by event_id so a redelivered event overwrites its
own row instead of adding a second one.
"""

from datetime import datetime

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from crm_erp.models.base import Base

STATUS_PROCESSED = "Processed"


class ProcessedEventRecord(Base):
    """ERP processed-event audit row."""

    __tablename__ = "erp_processed_users"

    event_id: Mapped[str] = mapped_column(
        String(64),
        primary_key=True,
    )
    user_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        index=True,
    )
    user_name: Mapped[str] = mapped_column(String(255), nullable=False)
    user_email: Mapped[str] = mapped_column(String(320), nullable=False)
    processed_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    event_type: Mapped[str] = mapped_column(String(64), nullable=False)
    status: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=STATUS_PROCESSED,
    )

    def __repr__(self) -> str:
        return f"<ProcessedEventRecord(event_id={self.event_id}, status={self.status!r})>"

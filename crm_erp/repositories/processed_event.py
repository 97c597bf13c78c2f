"""
Processed Event Repository.

Data access layer for ERP processed-event audit rows.
"""

from crm_erp.models.processed_event import ProcessedEventRecord
from crm_erp.repositories.base import BaseRepository


class ProcessedEventRepository(BaseRepository[ProcessedEventRecord]):
    """Repository for the erp_processed_users table, keyed by event_id."""

    model = ProcessedEventRecord

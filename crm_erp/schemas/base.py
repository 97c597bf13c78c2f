"""
Base Schemas.

Standard error envelope returned by every failing API call.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from crm_erp.core.utils import utc_now


class ResponseMetadata(BaseModel):
    """Metadata included in error responses."""

    timestamp: datetime = Field(default_factory=utc_now)
    request_id: str | None = None


class ErrorDetail(BaseModel):
    """Error detail structure."""

    code: str
    message: str
    details: dict[str, Any] | None = None


class ErrorResponse(BaseModel):
    """Standard error response."""

    success: bool = False
    data: None = None
    error: ErrorDetail
    metadata: ResponseMetadata = Field(default_factory=ResponseMetadata)

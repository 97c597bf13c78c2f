# Pydantic schemas package
from crm_erp.schemas.base import (
    ErrorDetail,
    ErrorResponse,
    ResponseMetadata,
)
from crm_erp.schemas.user import UserCreate, UserResponse

__all__ = [
    "ErrorDetail",
    "ErrorResponse",
    "ResponseMetadata",
    "UserCreate",
    "UserResponse",
]

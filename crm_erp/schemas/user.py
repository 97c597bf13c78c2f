"""
User Schemas.

Pydantic schemas for user API request/response validation.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator


class UserCreate(BaseModel):
    """Schema for creating a new user."""

    name: str = Field(
        ...,
        min_length=1,
        max_length=255,
        description="Full name",
        examples=["Ada Lovelace"],
    )
    email: str = Field(
        ...,
        min_length=3,
        max_length=320,
        description="Email address",
        examples=["ada@example.com"],
    )

    @field_validator("name", "email")
    @classmethod
    def _strip(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value

    @field_validator("email")
    @classmethod
    def _has_at_sign(cls, value: str) -> str:
        local, _, domain = value.partition("@")
        if not local or not domain:
            raise ValueError("must be an email address")
        return value


class UserResponse(BaseModel):
    """Schema for a user in API responses."""

    id: str = Field(description="User unique identifier")
    name: str = Field(description="Full name")
    email: str = Field(description="Email address")

    model_config = ConfigDict(from_attributes=True)

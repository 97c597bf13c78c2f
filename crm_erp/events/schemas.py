"""
Event Schemas.

The UserCreated event and its wire codec. The wire format is a JSON object
with lower-camel-case keys so that consumers written in any language can
read it without sharing code:

    {
        "eventId": "…",
        "eventType": "UserCreated",
        "timestamp": "2024-01-01T00:00:00Z",
        "user": {"id": "…", "name": "…", "email": "…"}
    }

Stream naming convention: {domain}:{event-type} (colon-separated)

Usage:
    from crm_erp.events.schemas import UserCreatedEvent, decode_user_created_event

    event = UserCreatedEvent.for_user(user, event_id=str(uuid4()))
    body = event.to_json()
    same = decode_user_created_event(body)
"""

from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from crm_erp.core.exceptions import EventValidationError, MalformedEventError
from crm_erp.core.utils import utc_now_aware

USER_CREATED = "UserCreated"


class _WireModel(BaseModel):
    """camelCase on the wire, snake_case in Python, immutable once built."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )


class UserSnapshot(_WireModel):
    """Copy of the user taken at publish time."""

    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    email: str = Field(min_length=1)


class UserCreatedEvent(_WireModel):
    """Published once per successful user creation."""

    event_id: str = Field(min_length=1)
    event_type: Literal["UserCreated"]
    timestamp: datetime
    user: UserSnapshot

    @field_validator("timestamp", mode="before")
    @classmethod
    def _require_iso_string(cls, value: Any) -> Any:
        # Numbers would otherwise be read as unix epoch seconds
        if not isinstance(value, (str, datetime)):
            raise ValueError("timestamp must be an ISO-8601 string")
        return value

    @field_validator("timestamp")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        # Producers that omit the offset mean UTC
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    @classmethod
    def for_user(
        cls,
        user: Any,
        event_id: str,
        timestamp: datetime | None = None,
    ) -> "UserCreatedEvent":
        """Build an event carrying a by-value snapshot of ``user``."""
        return cls(
            event_id=event_id,
            event_type=USER_CREATED,
            timestamp=timestamp or utc_now_aware(),
            user=UserSnapshot(id=user.id, name=user.name, email=user.email),
        )

    def to_json(self) -> str:
        """Serialize to the canonical camelCase wire format."""
        return self.model_dump_json(by_alias=True)


class RawMessage(BaseModel):
    """One queue delivery: transport message ID plus the UTF-8 payload."""

    model_config = ConfigDict(frozen=True)

    message_id: str
    body: str


def _is_user_error(error: dict[str, Any]) -> bool:
    loc = error.get("loc") or ()
    return len(loc) > 0 and loc[0] == "user"


def _describe(errors: list[dict[str, Any]]) -> list[dict[str, str]]:
    """Field/type pairs only; payload values never leave the decoder."""
    return [
        {
            "field": ".".join(str(part) for part in err.get("loc", ())) or "<root>",
            "type": err.get("type", "unknown"),
        }
        for err in errors
    ]


def decode_user_created_event(
    body: str | bytes,
    message_id: str | None = None,
) -> UserCreatedEvent:
    """
    Deserialize a wire payload into a UserCreatedEvent.

    Args:
        body: JSON text as delivered by the queue
        message_id: Transport message ID, attached to raised errors

    Returns:
        The decoded event

    Raises:
        MalformedEventError: Payload is not JSON, not an object, or an
            envelope field (eventId, eventType, timestamp) is missing or invalid
        EventValidationError: Envelope is valid but the user snapshot is
            absent, null, or has missing/empty fields
    """
    try:
        return UserCreatedEvent.model_validate_json(body)
    except PydanticValidationError as exc:
        errors = exc.errors(include_url=False, include_input=False)
        details = {"errors": _describe(errors)}
        if errors and all(_is_user_error(err) for err in errors):
            raise EventValidationError(
                "Event has no usable user snapshot",
                details=details,
                message_id=message_id,
            ) from exc
        raise MalformedEventError(
            f"Payload is not a valid {USER_CREATED} event ({len(errors)} error(s))",
            message_id=message_id,
        ) from exc

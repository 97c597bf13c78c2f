"""
Configuration Schemas.

Pydantic models defining the expected structure of each YAML config file.
Used by AppConfig to validate configuration at load time. If a YAML file
has missing keys, wrong types, or unknown fields, a clear ValidationError
is raised at startup instead of a cryptic KeyError deep in application code.

Each top-level class corresponds to one file in config/settings/:
    ApplicationSchema    → application.yaml
    DatabaseSchema       → database.yaml
    LoggingSchema        → logging.yaml
    FeaturesSchema       → features.yaml
    EventsSchema         → events.yaml
    ErpSchema            → erp.yaml
    ObservabilitySchema  → observability.yaml
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator


class _StrictBase(BaseModel):
    """Base with extra='forbid' so unknown YAML keys are caught immediately."""

    model_config = ConfigDict(extra="forbid")


# =============================================================================
# application.yaml
# =============================================================================


class ServerSchema(_StrictBase):
    host: str
    port: int


class CorsSchema(_StrictBase):
    origins: list[str]


class ApplicationSchema(_StrictBase):
    name: str
    version: str
    description: str
    environment: str
    debug: bool
    server: ServerSchema
    cors: CorsSchema


# =============================================================================
# database.yaml
# =============================================================================


class RedisSchema(_StrictBase):
    host: str
    port: int
    db: int


class DatabaseSchema(_StrictBase):
    driver: str
    host: str
    port: int
    name: str
    user: str
    pool_size: int
    max_overflow: int
    pool_timeout: int
    pool_recycle: int
    echo: bool
    redis: RedisSchema


# =============================================================================
# logging.yaml
# =============================================================================


class ConsoleHandlerSchema(_StrictBase):
    enabled: bool


class FileHandlerSchema(_StrictBase):
    enabled: bool
    path: str
    max_bytes: int
    backup_count: int


class HandlersSchema(_StrictBase):
    console: ConsoleHandlerSchema
    file: FileHandlerSchema


class LoggingSchema(_StrictBase):
    level: str
    format: Literal["json", "console"]
    handlers: HandlersSchema


# =============================================================================
# features.yaml
# =============================================================================


class FeaturesSchema(_StrictBase):
    api_request_logging: bool
    events_enabled: bool
    events_publish_enabled: bool

    @model_validator(mode="after")
    def _publishing_needs_broker(self) -> "FeaturesSchema":
        # The API only connects the broker when events_enabled is set
        if self.events_publish_enabled and not self.events_enabled:
            raise ValueError("events_publish_enabled requires events_enabled")
        return self


# =============================================================================
# events.yaml
# =============================================================================

FailurePolicy = Literal["retry", "dead-letter", "drop"]


class EventBrokerSchema(_StrictBase):
    type: Literal["redis"]


class EventStreamsSchema(_StrictBase):
    user_created: str
    default_maxlen: int


class ConsumerCircuitBreakerSchema(_StrictBase):
    fail_max: int
    timeout_duration: int


class ConsumerReclaimSchema(_StrictBase):
    enabled: bool
    interval_seconds: float = Field(gt=0)
    min_idle_ms: int = Field(ge=0)
    max_deliveries: int = Field(ge=1)


class ConsumerConfigSchema(_StrictBase):
    stream: str
    group: str
    consumer: str
    batch_size: int = Field(ge=1)
    processing_timeout: int
    malformed_policy: FailurePolicy
    invalid_policy: FailurePolicy
    circuit_breaker: ConsumerCircuitBreakerSchema
    reclaim: ConsumerReclaimSchema


class EventDlqSchema(_StrictBase):
    enabled: bool
    stream_prefix: str


class EventsSchema(_StrictBase):
    broker: EventBrokerSchema
    streams: EventStreamsSchema
    consumers: dict[str, ConsumerConfigSchema]
    dlq: EventDlqSchema


# =============================================================================
# erp.yaml
# =============================================================================


class ErpSchema(_StrictBase):
    system_name: str
    employee_id_prefix: str
    employee_id_length: int = Field(ge=1)
    simulated_latency_ms: int = Field(ge=0)


# =============================================================================
# observability.yaml
# =============================================================================


class HealthChecksSchema(_StrictBase):
    ready_timeout_seconds: int


class ObservabilitySchema(_StrictBase):
    health_checks: HealthChecksSchema

"""
Logging.

structlog on top of the stdlib root logger, configured from
config/settings/logging.yaml. The intake API, the event worker and the CLI
all log through here, so one JSONL stream can be filtered by ``source``:

    web      HTTP request handling (RequestContextMiddleware)
    events   UserCreated deliveries in the ERP worker (EventObservabilityMiddleware)
    cli      cli.py commands

Context fields bound along the way:

    request_id                   per HTTP request
    delivery_id, correlation_id  per queue delivery
    message_id, event_id         per message inside a delivery

Fields passed as ``extra={...}`` are lifted to the top level of the record,
next to the bound context:

    logger.info("Event published", extra={"event_id": event.event_id})
    jq 'select(.event_id == "...")' logs/system.jsonl

Usage:
    from crm_erp.core.logging import get_logger, setup_logging

    setup_logging()                                        # from logging.yaml
    setup_logging(level="DEBUG", format_type="console")    # CLI overrides

    logger = get_logger(__name__)
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from typing import Any

import structlog
from structlog.typing import EventDict, Processor, WrappedLogger

from crm_erp.core.config import find_project_root, load_yaml_config
from crm_erp.core.config_schema import LoggingSchema

VALID_SOURCES = frozenset({"web", "events", "cli"})

# Libraries that log every request or statement at INFO
_NOISY_LOGGERS = ("uvicorn.access", "sqlalchemy.engine")

_logging_config: LoggingSchema | None = None


def _load_logging_config() -> LoggingSchema:
    """Load and validate logging.yaml once per process."""
    global _logging_config
    if _logging_config is None:
        _logging_config = LoggingSchema(**load_yaml_config("logging.yaml"))
    return _logging_config


def lift_extra(_logger: WrappedLogger, _method: str, event_dict: EventDict) -> EventDict:
    """Merge stdlib-style ``extra={...}`` into the record; bound context wins."""
    extra = event_dict.pop("extra", None)
    if isinstance(extra, dict):
        for key, value in extra.items():
            event_dict.setdefault(key, value)
    return event_dict


def setup_logging(
    level: str | None = None,
    format_type: str | None = None,
    enable_console: bool | None = None,
    enable_file_logging: bool | None = None,
) -> None:
    """
    Configure structured logging for the process.

    Arguments left as None fall back to logging.yaml.

    Args:
        level: DEBUG, INFO, WARNING, ERROR or CRITICAL
        format_type: 'json' or 'console' (console output only; the file is always JSON)
        enable_console: Write to stdout
        enable_file_logging: Write to the rotating JSONL file
    """
    config = _load_logging_config()
    handlers = config.handlers

    level = level or config.level
    format_type = format_type or config.format
    if enable_console is None:
        enable_console = handlers.console.enabled
    if enable_file_logging is None:
        enable_file_logging = handlers.file.enabled

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        lift_extra,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        structlog.processors.CallsiteParameterAdder(
            parameters=[
                structlog.processors.CallsiteParameter.FUNC_NAME,
                structlog.processors.CallsiteParameter.LINENO,
            ],
        ),
    ]

    structlog.configure(
        processors=shared_processors + [
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    json_formatter = structlog.stdlib.ProcessorFormatter(
        processor=structlog.processors.JSONRenderer(),
        foreign_pre_chain=shared_processors,
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    if enable_console:
        console_handler = logging.StreamHandler(sys.stdout)
        if format_type == "console":
            console_handler.setFormatter(structlog.stdlib.ProcessorFormatter(
                processor=structlog.dev.ConsoleRenderer(colors=True),
                foreign_pre_chain=shared_processors,
            ))
        else:
            console_handler.setFormatter(json_formatter)
        root_logger.addHandler(console_handler)

    if enable_file_logging:
        log_path = find_project_root() / handlers.file.path
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = RotatingFileHandler(
            filename=str(log_path),
            maxBytes=handlers.file.max_bytes,
            backupCount=handlers.file.backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(json_formatter)
        root_logger.addHandler(file_handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> Any:
    """Structlog logger for a module, typically ``get_logger(__name__)``."""
    return structlog.get_logger(name)

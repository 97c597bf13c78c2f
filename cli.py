#!/usr/bin/env python3
"""
CRM-to-ERP Bridge CLI.

Primary entry point for all application operations.
Use --service to select what to run.

Usage:
    python cli.py --help
    python cli.py --service server --verbose
    python cli.py --service event-worker --verbose
    python cli.py --service init-db
    python cli.py --service health --debug
    python cli.py --service config
"""

import asyncio
import subprocess
import sys
from pathlib import Path

import click
import structlog

PROJECT_ROOT = Path(__file__).parent
sys.path.insert(0, str(PROJECT_ROOT))

from crm_erp.core.logging import get_logger, setup_logging


def validate_project_root() -> Path:
    """Validate that we're running from the project root."""
    if not (PROJECT_ROOT / ".project_root").exists():
        click.echo(
            click.style("Error: .project_root not found. Run from project root.", fg="red"),
            err=True,
        )
        sys.exit(1)
    return PROJECT_ROOT


@click.command()
@click.option(
    "--service", "-s",
    type=click.Choice(["server", "event-worker", "health", "config", "init-db", "info"]),
    default="info",
    help="Service or command to run.",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output (INFO level logging).")
@click.option("--debug", "-d", is_flag=True, help="Enable debug output (DEBUG level logging).")
@click.option("--host", default=None, help="Server host.")
@click.option("--port", default=None, type=int, help="Server port.")
@click.option("--reload", is_flag=True, help="Enable auto-reload (server only).")
def main(
    service: str,
    verbose: bool,
    debug: bool,
    host: str | None,
    port: int | None,
    reload: bool,
) -> None:
    """
    CRM-to-ERP Bridge CLI.

    \b
    Examples:
        python cli.py --service server --reload --verbose
        python cli.py --service event-worker --verbose
        python cli.py --service init-db
        python cli.py --service health
    """
    validate_project_root()

    if debug:
        log_level = "DEBUG"
    elif verbose:
        log_level = "INFO"
    else:
        log_level = "WARNING"

    setup_logging(level=log_level, format_type="console")

    structlog.contextvars.bind_contextvars(source="cli")

    logger = get_logger(__name__)

    logger.debug("CLI invoked", extra={"service": service, "log_level": log_level})

    if service == "server":
        run_server(logger, host, port, reload)
    elif service == "event-worker":
        run_event_worker(logger)
    elif service == "health":
        check_health(logger)
    elif service == "config":
        show_config(logger)
    elif service == "init-db":
        init_db(logger)
    elif service == "info":
        show_info(logger)


def run_server(logger, host: str | None, port: int | None, reload: bool) -> None:
    """Start the FastAPI intake server."""
    from crm_erp.core.config import get_app_config

    try:
        server_config = get_app_config().application.server
    except Exception as e:
        logger.error("Failed to load configuration.", extra={"error": str(e)})
        click.echo(
            click.style("Error: Could not load config/settings/application.yaml.", fg="red"),
            err=True,
        )
        sys.exit(1)

    server_host = host or server_config.host
    server_port = port or server_config.port

    logger.info(
        "Starting server",
        extra={"host": server_host, "port": server_port, "reload": reload},
    )

    cmd = [
        sys.executable, "-m", "uvicorn",
        "crm_erp.main:app",
        "--host", server_host,
        "--port", str(server_port),
    ]

    if reload:
        cmd.append("--reload")

    click.echo(f"Starting server at http://{server_host}:{server_port}")
    click.echo("Press Ctrl+C to stop\n")

    try:
        subprocess.run(cmd, check=True)
    except KeyboardInterrupt:
        logger.info("Server stopped")
    except subprocess.CalledProcessError as e:
        logger.error("Server failed to start", extra={"exit_code": e.returncode})
        sys.exit(e.returncode)


def run_event_worker(logger) -> None:
    """Start the FastStream worker that feeds UserCreated events to the ERP processor."""
    try:
        from crm_erp.core.config import get_app_config, get_redis_url

        consumer = get_app_config().consumer("erp_processor")
        redis_url = get_redis_url()
        logger.debug("Redis configured", extra={"redis_url": redis_url.split("@")[-1]})
    except Exception as e:
        logger.error("Failed to load event configuration.", extra={"error": str(e)})
        click.echo(click.style(f"Error: Event worker not configured: {e}", fg="red"), err=True)
        sys.exit(1)

    logger.info(
        "Starting event worker",
        extra={"stream": consumer.stream, "group": consumer.group, "consumer": consumer.consumer},
    )

    cmd = [
        sys.executable, "-m", "faststream",
        "run", "--factory",
        "crm_erp.events.broker:create_event_app",
    ]

    click.echo(f"Consuming {consumer.stream} as {consumer.group}/{consumer.consumer}")
    click.echo("Press Ctrl+C to stop\n")

    try:
        subprocess.run(cmd, check=True, cwd=PROJECT_ROOT)
    except KeyboardInterrupt:
        logger.info("Event worker stopped")
    except subprocess.CalledProcessError as e:
        logger.error("Event worker failed to start", extra={"exit_code": e.returncode})
        sys.exit(e.returncode)


def init_db(logger) -> None:
    """Create the record store tables."""
    from crm_erp.core.database import create_tables, get_engine

    async def _run() -> None:
        try:
            await create_tables()
        finally:
            await get_engine().dispose()

    try:
        asyncio.run(_run())
    except Exception as e:
        logger.error("Failed to create tables", extra={"error": str(e)})
        click.echo(click.style(f"Error creating tables: {e}", fg="red"), err=True)
        sys.exit(1)

    click.echo(click.style("Record store tables ready.", fg="green"))


def check_health(logger) -> None:
    """Check application health by testing imports and configuration."""
    click.echo("Checking application health...\n")

    checks = []

    try:
        from crm_erp.core.config import get_app_config
        from crm_erp.core.exceptions import ApplicationError  # noqa: F401
        checks.append(("Core imports", True, None))
        logger.debug("Core imports successful")
    except Exception as e:
        checks.append(("Core imports", False, str(e)))
        logger.error("Core imports failed", extra={"error": str(e)})

    try:
        app_config = get_app_config()
        app_name = app_config.application.name
        checks.append(("YAML configuration", True, f"App: {app_name}"))
        logger.debug("Configuration loaded", extra={"app_name": app_name})
    except Exception as e:
        checks.append(("YAML configuration", False, str(e)))
        logger.error("Configuration failed", extra={"error": str(e)})

    try:
        from crm_erp.main import get_app
        app = get_app()
        checks.append(("FastAPI application", True, f"Title: {app.title}"))
        logger.debug("FastAPI app loaded", extra={"title": app.title})
    except Exception as e:
        checks.append(("FastAPI application", False, str(e)))
        logger.error("FastAPI app failed", extra={"error": str(e)})

    try:
        from crm_erp.events.broker import create_event_app
        create_event_app()
        checks.append(("Event worker", True, None))
        logger.debug("Event worker loaded")
    except Exception as e:
        checks.append(("Event worker", False, str(e)))
        logger.error("Event worker failed", extra={"error": str(e)})

    try:
        from crm_erp.models.processed_event import ProcessedEventRecord
        from crm_erp.models.user import User
        tables = f"{User.__tablename__}, {ProcessedEventRecord.__tablename__}"
        checks.append(("Database models", True, tables))
        logger.debug("Database models loaded")
    except Exception as e:
        checks.append(("Database models", False, str(e)))
        logger.error("Database models failed", extra={"error": str(e)})

    click.echo("Health Check Results:")
    click.echo("-" * 50)

    all_passed = True
    for name, passed, detail in checks:
        status = click.style("✓ PASS", fg="green") if passed else click.style("✗ FAIL", fg="red")
        detail_str = f" ({detail})" if detail else ""
        click.echo(f"  {status}  {name}{detail_str}")
        if not passed:
            all_passed = False

    click.echo("-" * 50)

    if all_passed:
        click.echo(click.style("\nAll checks passed!", fg="green"))
    else:
        click.echo(click.style("\nSome checks failed. See details above.", fg="yellow"))
        sys.exit(1)


def _echo_section(title: str, values: dict, indent: int = 2) -> None:
    if title:
        click.echo(f"\n{title}:")
        click.echo("-" * 40)
    for key, value in values.items():
        if isinstance(value, dict):
            click.echo(f"{' ' * indent}{key}:")
            _echo_section("", value, indent + 2)
        else:
            click.echo(f"{' ' * indent}{key}: {value}")


def show_config(logger) -> None:
    """Display loaded configuration."""
    click.echo("Application Configuration:")

    try:
        from crm_erp.core.config import get_app_config

        app_config = get_app_config()

        _echo_section("Application Settings (from YAML)", app_config.application.model_dump())
        _echo_section(
            "Database Settings (from YAML)",
            app_config.database.model_dump(exclude={"redis"}),
        )
        _echo_section("Logging Settings (from YAML)", app_config.logging.model_dump())
        _echo_section("Feature Flags (from YAML)", app_config.features.model_dump())
        _echo_section("Events (from YAML)", app_config.events.model_dump())
        _echo_section("ERP (from YAML)", app_config.erp.model_dump())

        logger.info("Configuration displayed successfully")

    except Exception as e:
        logger.error("Failed to load configuration", extra={"error": str(e)})
        click.echo(click.style(f"Error loading configuration: {e}", fg="red"))
        sys.exit(1)


def show_info(logger) -> None:
    """Display application information."""
    try:
        from crm_erp.core.config import get_app_config
        app_config = get_app_config()
        click.echo(app_config.application.name)
        click.echo("=" * 40)
        click.echo(f"Version: {app_config.application.version}")
        click.echo(f"Description: {app_config.application.description}")
    except Exception as e:
        logger.error(
            "Failed to load application configuration",
            extra={"error": str(e)},
        )
        click.echo(
            click.style("Error: Could not load application.yaml configuration.", fg="red"),
            err=True,
        )
        sys.exit(1)

    click.echo()
    click.echo("Services (--service):")
    click.echo("  server         FastAPI intake server (POST/GET /users)")
    click.echo("  event-worker   ERP processor consuming UserCreated events")
    click.echo("  init-db        Create record store tables")
    click.echo("  health         Check application health")
    click.echo("  config         Display configuration")
    click.echo("  info           Show this information")

    logger.debug("Info displayed")


if __name__ == "__main__":
    main()

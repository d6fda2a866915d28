"""sqsd-gate API service.

FastAPI application for an Elastic Beanstalk style worker environment:
- SQS daemon requests are authenticated and dispatched to job handlers or
  periodic tasks by SqsMessageConsumerMiddleware
- All other requests reach the application routes (or a mounted downstream
  ASGI application)

This module provides the app factory pattern for creating configured
FastAPI instances suitable for testing and production deployment.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fastapi import FastAPI
from uvicorn.importer import ImportFromStringError, import_from_string

from sqsd_gate.api.middleware import (
    ErrorHandlerMiddleware,
    RequestIDMiddleware,
    SqsMessageConsumerMiddleware,
)
from sqsd_gate.core.config import ConfigValidationError, validate_settings
from sqsd_gate.core.container import ContainerInfo
from sqsd_gate.core.settings import get_settings
from sqsd_gate.services.registry import HandlerRegistry, JobRegistry, PeriodicTaskRegistry

if TYPE_CHECKING:
    from starlette.types import ASGIApp

    from sqsd_gate.core.config import Settings

logger = logging.getLogger(__name__)

API_TITLE = "sqsd-gate"
API_DESCRIPTION = """
Worker endpoint for messages delivered by the SQS daemon.

- Signed job messages are verified and executed
- Periodic task triggers under the periodic task path are executed
- Requests from anything other than the daemon reach the application
"""


def load_registry(
    import_path: str | None,
    registry_type: type[HandlerRegistry],
    field: str,
) -> HandlerRegistry:
    """Import a registry from a "module:attribute" path.

    Returns an empty registry of ``registry_type`` when no path is configured.

    Raises:
        ConfigValidationError: If the path cannot be imported or names an
            object of another type.
    """
    if not import_path:
        return registry_type()

    try:
        registry = import_from_string(import_path)
    except ImportFromStringError as e:
        raise ConfigValidationError(str(e), field=field) from e

    if not isinstance(registry, registry_type):
        msg = f"{import_path} is not a {registry_type.__name__}"
        raise ConfigValidationError(msg, field=field)

    logger.info("Loaded %s from %s: handlers=%d", field, import_path, len(registry))
    return registry


def create_app(
    settings: Settings | None = None,
    *,
    jobs: JobRegistry | None = None,
    periodic_tasks: PeriodicTaskRegistry | None = None,
    downstream: ASGIApp | None = None,
    container: ContainerInfo | None = None,
) -> FastAPI:
    """Create and configure a FastAPI application instance.

    Args:
        settings: Settings instance. Loaded from the environment if omitted.
        jobs: Registry executing decoded job messages. Imported from
            settings.jobs_registry if omitted, else empty.
        periodic_tasks: Registry resolving periodic task names. Imported from
            settings.periodic_tasks_registry if omitted, else empty.
        downstream: Optional ASGI application mounted at "/" for pass-through
            traffic. Without it, pass-through requests reach this app's routes.
        container: Container probe result. Probed from settings if omitted.

    Returns:
        Configured FastAPI application ready to serve requests.

    Raises:
        ConfigValidationError: If explicit settings fail runtime validation, or a
            configured registry cannot be imported.

    Example:
        jobs = JobRegistry()

        @jobs.register("SendReceipt")
        def send_receipt(job: dict) -> None:
            ...

        app = create_app(jobs=jobs)
    """
    if settings is None:
        settings = get_settings()
    else:
        validate_settings(settings)

    if jobs is None:
        jobs = load_registry(settings.jobs_registry, JobRegistry, "jobs_registry")
    if periodic_tasks is None:
        periodic_tasks = load_registry(
            settings.periodic_tasks_registry, PeriodicTaskRegistry, "periodic_tasks_registry"
        )
    if container is None:
        container = ContainerInfo.from_settings(settings)

    app = FastAPI(
        title=API_TITLE,
        description=API_DESCRIPTION,
        version=settings.app_version,
        docs_url=None,
        redoc_url=None,
        openapi_url=None if settings.is_production else "/openapi.json",
    )

    app.state.settings = settings
    app.state.jobs = jobs
    app.state.periodic_tasks = periodic_tasks

    # Order matters - last added is outermost
    app.add_middleware(
        SqsMessageConsumerMiddleware,
        settings=settings,
        job_executor=jobs.execute,
        periodic_tasks=periodic_tasks,
        container=container,
    )
    app.add_middleware(ErrorHandlerMiddleware)
    app.add_middleware(RequestIDMiddleware)

    @app.get("/health", tags=["health"])
    async def health_check() -> dict[str, str]:
        """Health check endpoint for the load balancer.

        Returns:
            Status dictionary indicating the service is healthy.
        """
        return {"status": "healthy"}

    if downstream is not None:
        app.mount("/", downstream)

    logger.info(
        "sqsd-gate application created: version=%s, consumer_enabled=%s, jobs=%d, "
        "periodic_tasks=%d, inside_container=%s",
        settings.app_version,
        settings.consumer_enabled,
        len(jobs),
        len(periodic_tasks),
        container.inside_container,
    )

    return app


__all__ = ["create_app", "load_registry"]

"""Registries mapping names delivered by the daemon to executable handlers.

Periodic task names and job classes arrive in request headers and bodies. They
are never resolved dynamically; only handlers registered here can run, and an
unknown name fails closed with UnknownHandlerError.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable, Mapping
from typing import Any

from starlette.concurrency import run_in_threadpool

logger = logging.getLogger(__name__)

# Key of the job description naming the job handler
JOB_CLASS_KEY = "job_class"

Handler = Callable[..., Any]


class UnknownHandlerError(LookupError):
    """Raised when a name does not resolve to a registered handler."""

    def __init__(self, kind: str, name: str | None) -> None:
        """Initialize with the lookup details.

        Args:
            kind: Kind of handler looked up (e.g., "job", "periodic task").
            name: The name that failed to resolve.
        """
        self.kind = kind
        self.name = name
        super().__init__(f"Unknown {kind}: {name!r}")


async def call_handler(handler: Handler, *args: Any) -> Any:
    """Invoke a sync or async handler from async code.

    Sync handlers run in the threadpool so they may block.
    """
    if inspect.iscoroutinefunction(handler):
        return await handler(*args)
    result = await run_in_threadpool(handler, *args)
    if inspect.isawaitable(result):
        return await result
    return result


class HandlerRegistry:
    """Name to handler mapping.

    Example:
        tasks = HandlerRegistry("periodic task")

        @tasks.register("cleanup")
        def cleanup() -> None:
            ...

        handler = tasks.resolve("cleanup")
    """

    def __init__(self, kind: str) -> None:
        """Initialize an empty registry.

        Args:
            kind: Human-readable kind of handler, used in errors and logs.
        """
        self.kind = kind
        self._handlers: dict[str, Handler] = {}

    def register(self, name: str, handler: Handler | None = None) -> Any:
        """Register a handler under ``name``.

        Can be called directly or used as a decorator when ``handler`` is omitted.

        Args:
            name: Name the daemon will deliver.
            handler: Callable to run for that name.

        Returns:
            The handler, or a decorator registering the decorated function.

        Raises:
            ValueError: If the name is empty.
        """
        if not name:
            msg = f"{self.kind} name cannot be empty"
            raise ValueError(msg)

        def decorator(func: Handler) -> Handler:
            if name in self._handlers:
                logger.warning("Replacing handler: kind=%s, name=%s", self.kind, name)
            self._handlers[name] = func
            logger.debug("Registered handler: kind=%s, name=%s", self.kind, name)
            return func

        if handler is None:
            return decorator
        return decorator(handler)

    def resolve(self, name: str | None) -> Handler:
        """Look up the handler registered under ``name``.

        Raises:
            UnknownHandlerError: If the name is missing, empty or unknown.
        """
        if not name or name not in self._handlers:
            raise UnknownHandlerError(self.kind, name)
        return self._handlers[name]

    def names(self) -> list[str]:
        """Return registered names in sorted order."""
        return sorted(self._handlers)

    def __contains__(self, name: object) -> bool:
        return name in self._handlers

    def __len__(self) -> int:
        return len(self._handlers)


class PeriodicTaskRegistry(HandlerRegistry):
    """Registry of periodic tasks, run without arguments."""

    def __init__(self) -> None:
        super().__init__("periodic task")


class JobRegistry(HandlerRegistry):
    """Registry of job handlers that also acts as the job-execution sink.

    Handlers receive the full decoded job description.
    """

    def __init__(self) -> None:
        super().__init__("job")

    async def execute(self, job: Mapping[str, Any]) -> Any:
        """Run the handler named by the job's ``job_class``.

        Args:
            job: Decoded job description.

        Returns:
            Whatever the handler returns.

        Raises:
            UnknownHandlerError: If ``job_class`` is missing or not registered.
        """
        job_class = job.get(JOB_CLASS_KEY)
        handler = self.resolve(job_class if isinstance(job_class, str) else None)
        logger.info("Executing job: job_class=%s", job_class)
        return await call_handler(handler, job)

"""Pytest configuration and shared fixtures.

HTTP tests run in-process through httpx's ASGI transport. The transport's
``client`` tuple sets the remote address seen by the application, which is
how tests simulate loopback, container host and foreign senders.
"""

import json
from collections.abc import AsyncGenerator, Callable
from contextlib import asynccontextmanager
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient

from sqsd_gate.core.config import Settings
from sqsd_gate.core.settings import clear_settings_cache
from tests.factories import DAEMON_USER_AGENT, DIGEST_HEADER, LOOPBACK, SECRET, sign


@pytest.fixture(autouse=True)
def clean_settings_cache():
    """Clear settings cache before and after each test."""
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Remove deployment variables that would leak into Settings()."""
    for name in (
        "DISABLE_SQS_CONSUMER",
        "SECRET_KEY_BASE",
        "SQSD_GATE_DISABLE_SQS_CONSUMER",
        "SQSD_GATE_SECRET_KEY_BASE",
        "SQSD_GATE_ENVIRONMENT",
        "SQSD_GATE_DEBUG",
        "SQSD_GATE_LOG_LEVEL",
        "SQSD_GATE_JOBS_REGISTRY",
        "SQSD_GATE_PERIODIC_TASKS_REGISTRY",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def settings() -> Settings:
    """Settings with the shared test secret and consumer enabled."""
    return Settings(secret_key_base=SECRET)


@pytest.fixture
def job_request() -> Callable[..., dict[str, Any]]:
    """Build keyword arguments for a signed job POST from the daemon."""

    def _job_request(
        job: dict[str, Any] | None = None,
        *,
        body: bytes | None = None,
        digest: str | None = None,
        headers: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        if body is None:
            body = json.dumps(job if job is not None else {"job_class": "Foo"}).encode()
        request_headers = {
            "User-Agent": DAEMON_USER_AGENT,
            "Content-Type": "application/json",
            DIGEST_HEADER: sign(body) if digest is None else digest,
        }
        request_headers.update(headers or {})
        return {"content": body, "headers": request_headers}

    return _job_request


@pytest.fixture
def client_for():
    """Factory for async clients talking to an app from a given remote address."""

    @asynccontextmanager
    async def _client_for(app, host: str = LOOPBACK) -> AsyncGenerator[AsyncClient, None]:
        transport = ASGITransport(app=app, client=(host, 51234))
        async with AsyncClient(transport=transport, base_url="http://localhost") as client:
            yield client

    return _client_for

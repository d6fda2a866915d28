"""sqsd-gate API service entry point.

Serves the app factory under uvicorn; there is no module-level app, since
building one at import time would require a valid configuration:

    sqsd-gate
    # or
    uvicorn --factory sqsd_gate.api:create_app

Jobs and periodic tasks come from the registries named by
SQSD_GATE_JOBS_REGISTRY and SQSD_GATE_PERIODIC_TASKS_REGISTRY
(e.g. "myapp.jobs:registry"). Without them the registries are empty and
every verified job fails with UnknownHandlerError (a 500 to the daemon).
"""

import logging

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

# uvicorn import string of the app factory
APP_FACTORY = "sqsd_gate.api:create_app"


def run() -> None:
    """Run the API server using uvicorn.

    This function is called by the sqsd-gate console script
    defined in pyproject.toml.
    """
    import uvicorn

    from sqsd_gate.core.settings import get_settings

    settings = get_settings()

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format=LOG_FORMAT,
    )

    logger.info("Starting sqsd-gate on %s:%d", settings.api_host, settings.api_port)

    uvicorn.run(
        APP_FACTORY,
        factory=True,
        host=settings.api_host,
        port=settings.api_port,
        reload=False,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()

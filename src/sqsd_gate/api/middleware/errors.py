"""Error handling middleware for unexpected failures.

Failures raised by job handlers, periodic tasks or downstream routes are
logged with their traceback and converted into a JSON 500 response with:
- error: Error code
- message: Human-readable description
- request_id: Correlation ID (the SQS message id for daemon requests)

A non-2xx status makes the SQS daemon retry the message and eventually move
it to the dead-letter queue.
"""

import logging
from collections.abc import Callable
from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from sqsd_gate.api.middleware.request_id import get_request_id

logger = logging.getLogger(__name__)


def build_error_response(
    error: str,
    message: str,
    status_code: int,
    detail: dict[str, Any] | None = None,
) -> JSONResponse:
    """Build a standardized error response.

    Args:
        error: Machine-readable error code.
        message: Human-readable description.
        status_code: HTTP status code.
        detail: Optional additional details.

    Returns:
        JSONResponse with consistent error structure.
    """
    body: dict[str, Any] = {
        "error": error,
        "message": message,
    }

    request_id = get_request_id()
    if request_id:
        body["request_id"] = request_id

    if detail:
        body["detail"] = detail

    return JSONResponse(status_code=status_code, content=body)


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Middleware that turns unexpected exceptions into a logged JSON 500.

    HTTPException never reaches this point; FastAPI renders it in its own
    exception middleware.
    """

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Response]
    ) -> Response:
        """Process request and handle any exceptions.

        Args:
            request: The incoming HTTP request.
            call_next: The next middleware/handler in the chain.

        Returns:
            The response, or an error response if an exception occurred.
        """
        try:
            return await call_next(request)
        except Exception:
            logger.exception(
                "Unexpected error processing request: %s %s",
                request.method,
                request.url.path,
            )
            return build_error_response(
                error="internal_error",
                message="An internal error occurred",
                status_code=500,
            )

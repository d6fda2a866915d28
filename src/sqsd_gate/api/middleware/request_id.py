"""Request ID middleware for log correlation.

Adds X-Request-ID header to all responses. Requests from the SQS daemon carry
the SQS message id, which is used as the request ID so log lines can be
matched to queue messages. Otherwise a client-provided X-Request-ID is kept,
or a new UUID is generated.
"""

import uuid
from collections.abc import Callable
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

# Context variable for accessing request ID in the current request context
request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)

REQUEST_ID_HEADER = "X-Request-ID"
MESSAGE_ID_HEADER = "X-Aws-Sqsd-Msgid"


def get_request_id() -> str | None:
    """Get the current request ID from context.

    Returns:
        The request ID for the current request, or None if not in a request context.
    """
    return request_id_ctx.get()


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Middleware that ensures every request has a unique X-Request-ID.

    Lookup order: SQS message id, X-Request-ID header, new UUID v4.
    """

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Response]
    ) -> Response:
        """Process the request and add X-Request-ID to response.

        Args:
            request: The incoming HTTP request.
            call_next: The next middleware/handler in the chain.

        Returns:
            The response with X-Request-ID header added.
        """
        request_id = (
            request.headers.get(MESSAGE_ID_HEADER)
            or request.headers.get(REQUEST_ID_HEADER)
            or str(uuid.uuid4())
        )

        token = request_id_ctx.set(request_id)
        try:
            response = await call_next(request)
        finally:
            request_id_ctx.reset(token)

        response.headers[REQUEST_ID_HEADER] = request_id

        return response

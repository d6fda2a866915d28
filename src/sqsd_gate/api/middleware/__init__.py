"""sqsd-gate API middleware components.

This module provides middleware for:
- Consuming SQS daemon requests (periodic tasks and signed jobs)
- Request ID tracking for log correlation
- Consistent error response formatting
"""

from sqsd_gate.api.middleware.errors import ErrorHandlerMiddleware, build_error_response
from sqsd_gate.api.middleware.request_id import RequestIDMiddleware, get_request_id
from sqsd_gate.api.middleware.sqs_consumer import (
    SqsMessageConsumerMiddleware,
    is_daemon_user_agent,
    is_loopback_address,
)

__all__ = [
    "ErrorHandlerMiddleware",
    "RequestIDMiddleware",
    "SqsMessageConsumerMiddleware",
    "build_error_response",
    "get_request_id",
    "is_daemon_user_agent",
    "is_loopback_address",
]

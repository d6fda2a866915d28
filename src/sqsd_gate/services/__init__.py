"""sqsd-gate services.

- message_verifier: HMAC digests over job message bodies
- producer: message attributes for the producing side
- registry: name to handler lookup for jobs and periodic tasks
"""

from sqsd_gate.services.message_verifier import InvalidDigest, MessageVerifier
from sqsd_gate.services.producer import build_message_attributes, serialize_job
from sqsd_gate.services.registry import (
    HandlerRegistry,
    JobRegistry,
    PeriodicTaskRegistry,
    UnknownHandlerError,
    call_handler,
)

__all__ = [
    "HandlerRegistry",
    "InvalidDigest",
    "JobRegistry",
    "MessageVerifier",
    "PeriodicTaskRegistry",
    "UnknownHandlerError",
    "build_message_attributes",
    "call_handler",
    "serialize_job",
]

"""Helpers for the producing side of job messages.

The SQS daemon turns every message attribute ``<name>`` into a request header
``X-Aws-Sqsd-Attr-<Name>``, so the attributes built here arrive at the worker
as the digest and origin headers the consumer middleware checks.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Mapping

    from sqsd_gate.services.message_verifier import MessageVerifier

DIGEST_ATTRIBUTE = "message-digest"
ORIGIN_ATTRIBUTE = "origin"


def serialize_job(job: Mapping[str, Any]) -> str:
    """Encode a job description as compact JSON with sorted keys."""
    return json.dumps(dict(job), sort_keys=True, separators=(",", ":"))


def build_message_attributes(
    body: str | bytes,
    verifier: MessageVerifier,
    origin_token: str,
) -> dict[str, dict[str, str]]:
    """Build SQS ``MessageAttributes`` for a signed job message.

    Args:
        body: Exact message body that will be sent.
        verifier: Verifier holding the shared secret.
        origin_token: Token marking the message as produced by us.

    Returns:
        Mapping in the shape expected by SQS SendMessage.
    """
    return {
        DIGEST_ATTRIBUTE: {
            "DataType": "String",
            "StringValue": verifier.generate_digest(body),
        },
        ORIGIN_ATTRIBUTE: {
            "DataType": "String",
            "StringValue": origin_token,
        },
    }

"""Test data for sqsd-gate.

Constants describing daemon requests, registries importable by path, and a
digest calculator that does not go through MessageVerifier so tests can
check it against an independent implementation.
"""

import hashlib
import hmac

from sqsd_gate.services.registry import JobRegistry, PeriodicTaskRegistry

SECRET = "s3cr3t"
DAEMON_USER_AGENT = "aws-sqsd/3.0.4"

LOOPBACK = "127.0.0.1"
FOREIGN_ADDRESS = "10.1.2.3"
DOCKER_HOST = "172.17.0.1"

DIGEST_HEADER = "X-Aws-Sqsd-Attr-Message-Digest"
ORIGIN_HEADER = "X-Aws-Sqsd-Attr-Origin"
TASK_NAME_HEADER = "X-Aws-Sqsd-Taskname"
MESSAGE_ID_HEADER = "X-Aws-Sqsd-Msgid"


def sign(body: bytes | str, secret: str = SECRET, algorithm: str = "sha256") -> str:
    """Compute the hex HMAC of ``body`` with ``secret``."""
    if isinstance(body, str):
        body = body.encode("utf-8")
    return hmac.new(secret.encode("utf-8"), body, getattr(hashlib, algorithm)).hexdigest()


# Registries importable as "tests.factories:REGISTERED_JOBS" etc.
REGISTERED_JOBS = JobRegistry()
REGISTERED_JOBS.register("Ping", lambda job: None)

REGISTERED_PERIODIC_TASKS = PeriodicTaskRegistry()
REGISTERED_PERIODIC_TASKS.register("cleanup", lambda: None)

"""Middleware consuming requests sent by the SQS daemon.

In an Elastic Beanstalk worker environment the SQS daemon (aws-sqsd) pulls
messages from the queue and POSTs each one to the local application. This
middleware recognizes those requests by their User-Agent and handles two
kinds of messages:

1. Periodic tasks triggered by the daemon's scheduler, posted under the
   periodic task path with the task name in a header. Trust rests on the
   request coming from the local machine.
2. Jobs queued by our producers. The producer signs the body with the shared
   secret and the digest arrives as a message attribute header. The job only
   runs when the digest verifies.

Everything else, including daemon requests of neither kind, passes through
to the wrapped application untouched.
"""

from __future__ import annotations

import ipaddress
import json
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import PlainTextResponse, Response

from sqsd_gate.api.middleware.request_id import get_request_id
from sqsd_gate.core.config import ConfigValidationError
from sqsd_gate.core.container import ContainerInfo
from sqsd_gate.services.message_verifier import InvalidDigest, MessageVerifier
from sqsd_gate.services.registry import UnknownHandlerError, call_handler

if TYPE_CHECKING:
    from starlette.requests import Request
    from starlette.types import ASGIApp

    from sqsd_gate.core.config import Settings
    from sqsd_gate.services.registry import HandlerRegistry

logger = logging.getLogger(__name__)

# Request headers set by the daemon
USER_AGENT_HEADER = "User-Agent"
DIGEST_HEADER = "X-Aws-Sqsd-Attr-Message-Digest"
ORIGIN_HEADER = "X-Aws-Sqsd-Attr-Origin"
TASK_NAME_HEADER = "X-Aws-Sqsd-Taskname"

ACK_CONTENT_TYPE = "application/json"

LOCAL_ONLY_MESSAGE = "Accepts only requests from localhost for job processing"
INCORRECT_DIGEST_MESSAGE = (
    "Incorrect digest! Please, make sure that both environments, worker and web, "
    "use the same SECRET_KEY_BASE setting."
)
INVALID_PAYLOAD_MESSAGE = "Job payload must be a JSON object"

JobExecutor = Callable[[dict[str, Any]], Any]


def is_daemon_user_agent(user_agent: str | None, prefix: str) -> bool:
    """Check whether a User-Agent value starts with the daemon prefix.

    Plain prefix comparison, case-sensitive and anchored at position 0.
    """
    return bool(user_agent) and user_agent.startswith(prefix)


def is_loopback_address(host: str | None) -> bool:
    """Check whether ``host`` is a loopback address.

    Covers 127.0.0.0/8, ::1 and IPv4-mapped loopback. Hostnames and
    unparseable values are not trusted.
    """
    if not host:
        return False
    try:
        address = ipaddress.ip_address(host.split("%", 1)[0])
    except ValueError:
        return False
    if isinstance(address, ipaddress.IPv6Address) and address.ipv4_mapped is not None:
        address = address.ipv4_mapped
    return address.is_loopback


def request_raw_path(request: Request) -> str:
    """Return the request path as sent, without percent-decoding.

    Falls back to the decoded path when the server provides no raw path.
    """
    raw_path = request.scope.get("raw_path")
    if not raw_path:
        return request.url.path
    return raw_path.decode("latin-1").split("?", 1)[0]


def acknowledgement() -> Response:
    """Build the fixed response telling the daemon the message was consumed."""
    return Response(content=b"", status_code=200, media_type=ACK_CONTENT_TYPE)


class SqsMessageConsumerMiddleware(BaseHTTPMiddleware):
    """Intercepts SQS daemon requests and runs periodic tasks or signed jobs.

    Checks run in a fixed order:
    1. Feature gate: when disabled, every request passes through.
    2. User-Agent prefix: non-daemon requests pass through.
    3. Network origin: daemon requests must come from loopback, or from the
       container host when running inside a container; otherwise 403.
    4. Periodic task path: resolve the task header and run it.
    5. Job delivery (origin token or digest header present): verify the
       digest, decode the body and hand it to the job executor.
    6. Anything else passes through.

    Execution failures of tasks and jobs are recorded with their context and
    re-raised; the traceback is left to the outer error handler.
    """

    def __init__(
        self,
        app: ASGIApp,
        *,
        settings: Settings,
        job_executor: JobExecutor,
        periodic_tasks: HandlerRegistry,
        container: ContainerInfo | None = None,
        verifier: MessageVerifier | None = None,
    ) -> None:
        """Initialize the middleware.

        Args:
            app: The ASGI application receiving pass-through requests.
            settings: Application settings (feature gate, secret, consumer settings).
            job_executor: Sync or async callable receiving decoded job descriptions.
            periodic_tasks: Registry resolving periodic task names.
            container: Result of the container probe. Probed from settings if omitted.
            verifier: Verifier to use instead of one built from the shared secret.
        """
        super().__init__(app)
        self._settings = settings
        self._consumer = settings.consumer
        self._enabled = settings.consumer_enabled
        self._job_executor = job_executor
        self._periodic_tasks = periodic_tasks
        self._verifier = verifier

        if container is None:
            container = ContainerInfo.from_settings(settings) if self._enabled else ContainerInfo()
        self._container = container

        if not self._enabled:
            logger.info("SQS daemon handling disabled; all requests pass through")

    @property
    def enabled(self) -> bool:
        """Whether daemon requests are intercepted."""
        return self._enabled

    @property
    def container(self) -> ContainerInfo:
        """Container probe result used for the network check."""
        return self._container

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Any]
    ) -> Response:
        """Classify the request and handle it or pass it through.

        Args:
            request: The incoming HTTP request.
            call_next: The next middleware/handler in the chain.

        Returns:
            The consumer's response, or the downstream response.
        """
        if not self._enabled or not self._is_daemon_request(request):
            return await call_next(request)

        remote_address = request.client.host if request.client else None
        if not self._is_trusted_origin(remote_address):
            logger.warning(
                "SQSD_REJECTED: reason=untrusted_origin, remote=%s, path=%s, request_id=%s",
                remote_address,
                request.url.path,
                get_request_id(),
            )
            return PlainTextResponse(LOCAL_ONLY_MESSAGE, status_code=403)

        if self._is_periodic_task(request):
            return await self._execute_periodic_task(request)

        if self._is_job_delivery(request):
            return await self._execute_job(request)

        logger.debug(
            "Unrecognized daemon request passed through: path=%s, request_id=%s",
            request.url.path,
            get_request_id(),
        )
        return await call_next(request)

    def _is_daemon_request(self, request: Request) -> bool:
        return is_daemon_user_agent(
            request.headers.get(USER_AGENT_HEADER),
            self._consumer.user_agent_prefix,
        )

    def _is_trusted_origin(self, remote_address: str | None) -> bool:
        return is_loopback_address(remote_address) or self._container.trusts(remote_address)

    def _is_periodic_task(self, request: Request) -> bool:
        return request_raw_path(request).startswith(self._consumer.periodic_task_path)

    def _is_job_delivery(self, request: Request) -> bool:
        # An empty digest header still marks a job delivery and fails verification
        if request.headers.get(ORIGIN_HEADER) == self._consumer.origin_token:
            return True
        return DIGEST_HEADER in request.headers

    def _get_verifier(self) -> MessageVerifier:
        """Return the verifier, building it from the shared secret on first use.

        Construction runs without awaiting, so concurrent requests on the
        event loop cannot interleave here.

        Raises:
            ConfigValidationError: If no shared secret is configured.
        """
        if self._verifier is None:
            secret = self._settings.get_secret()
            if secret is None:
                raise ConfigValidationError(
                    "Shared secret is not configured; cannot verify job messages",
                    field="secret_key_base",
                )
            self._verifier = MessageVerifier(secret, self._consumer.digest_algorithm)
        return self._verifier

    async def _execute_periodic_task(self, request: Request) -> Response:
        task_name = request.headers.get(TASK_NAME_HEADER)
        try:
            task = self._periodic_tasks.resolve(task_name)
        except UnknownHandlerError:
            logger.warning(
                "SQSD_REJECTED: reason=unknown_periodic_task, task=%s, request_id=%s",
                task_name,
                get_request_id(),
            )
            return PlainTextResponse(f"Unknown periodic task: {task_name}", status_code=404)

        logger.info("Running periodic task: task=%s, request_id=%s", task_name, get_request_id())
        try:
            await call_handler(task)
        except Exception as e:
            logger.error(
                "Periodic task failed: task=%s, error=%s, request_id=%s",
                task_name,
                type(e).__name__,
                get_request_id(),
            )
            raise
        return acknowledgement()

    async def _execute_job(self, request: Request) -> Response:
        verifier = self._get_verifier()
        body = await request.body()

        try:
            verifier.verify(body, request.headers.get(DIGEST_HEADER))
        except InvalidDigest as e:
            logger.warning(
                "SQSD_REJECTED: reason=invalid_digest, detail=%s, request_id=%s",
                e,
                get_request_id(),
            )
            return PlainTextResponse(INCORRECT_DIGEST_MESSAGE, status_code=403)

        try:
            job = json.loads(body)
        except ValueError:
            job = None
        if not isinstance(job, dict):
            logger.warning(
                "SQSD_REJECTED: reason=invalid_payload, request_id=%s", get_request_id()
            )
            return PlainTextResponse(INVALID_PAYLOAD_MESSAGE, status_code=400)

        logger.info(
            "Dispatching job: job_class=%s, request_id=%s",
            job.get("job_class"),
            get_request_id(),
        )
        try:
            await call_handler(self._job_executor, job)
        except Exception as e:
            logger.error(
                "Job execution failed: job_class=%s, error=%s, request_id=%s",
                job.get("job_class"),
                type(e).__name__,
                get_request_id(),
            )
            raise
        return acknowledgement()

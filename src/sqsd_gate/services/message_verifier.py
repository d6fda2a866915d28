"""HMAC digests for job messages.

Producers sign the JSON body of each job message with the shared secret and
attach the hex digest as the ``message-digest`` message attribute. The worker
recomputes the digest over the raw request body and refuses the job when the
two differ.

Both sides must use the same secret byte-for-byte.
"""

from __future__ import annotations

import hashlib
import hmac

from sqsd_gate.core.config import ALLOWED_DIGEST_ALGORITHMS


class InvalidDigest(Exception):  # noqa: N818
    """Raised when a message digest is missing or does not match."""


class MessageVerifier:
    """Generates and verifies keyed digests over message bodies.

    Read-only after construction, so a single instance can be shared
    between concurrent requests.

    Example:
        verifier = MessageVerifier("s3cr3t")
        digest = verifier.generate_digest(b'{"job_class":"Foo"}')
        verifier.verify(b'{"job_class":"Foo"}', digest)
    """

    def __init__(self, secret: str | bytes, digest_algorithm: str = "sha256") -> None:
        """Initialize the verifier.

        Args:
            secret: Shared secret. Strings are encoded as UTF-8.
            digest_algorithm: Hash algorithm used for the HMAC.

        Raises:
            ValueError: If the secret is empty or the algorithm is not allowed.
        """
        if not secret:
            msg = "Message verifier requires a non-empty secret"
            raise ValueError(msg)
        algorithm = digest_algorithm.lower()
        if algorithm not in ALLOWED_DIGEST_ALGORITHMS:
            msg = f"Unsupported digest algorithm: {digest_algorithm}"
            raise ValueError(msg)

        self._key = secret.encode("utf-8") if isinstance(secret, str) else bytes(secret)
        self._digestmod = getattr(hashlib, algorithm)
        self.digest_algorithm = algorithm

    def generate_digest(self, message: bytes | str) -> str:
        """Compute the hex digest of ``message``."""
        return hmac.new(self._key, _to_bytes(message), self._digestmod).hexdigest()

    def verify(self, message: bytes | str, digest: str | None) -> None:
        """Check ``digest`` against the digest recomputed over ``message``.

        Args:
            message: Raw message body.
            digest: Digest supplied with the message.

        Raises:
            InvalidDigest: If the digest is missing, empty or differs.
        """
        if not digest:
            raise InvalidDigest("Message digest is missing")

        expected = self.generate_digest(message)
        # Constant-time comparison to prevent timing attacks
        if not hmac.compare_digest(expected.encode("utf-8"), digest.encode("utf-8")):
            raise InvalidDigest("Message digest does not match")

    def is_valid(self, message: bytes | str, digest: str | None) -> bool:
        """Return True when ``digest`` is valid for ``message``."""
        try:
            self.verify(message, digest)
        except InvalidDigest:
            return False
        return True

    def __repr__(self) -> str:
        return f"MessageVerifier(digest_algorithm={self.digest_algorithm!r})"


def _to_bytes(message: bytes | str) -> bytes:
    if isinstance(message, str):
        return message.encode("utf-8")
    return bytes(message)

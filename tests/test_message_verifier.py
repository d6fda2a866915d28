"""Tests for HMAC message digests.

Tests cover:
- Digest generation against an independent HMAC computation
- Verification success and failure modes
- Determinism across repeated verification
- Construction errors
"""

import hmac
from unittest.mock import patch

import pytest

from sqsd_gate.services.message_verifier import InvalidDigest, MessageVerifier
from tests.factories import SECRET, sign


@pytest.fixture
def verifier() -> MessageVerifier:
    return MessageVerifier(SECRET)


class TestGenerateDigest:
    """Tests for MessageVerifier.generate_digest."""

    def test_matches_independent_hmac(self, verifier):
        """Test the documented digest for secret s3cr3t."""
        body = b'{"job_class":"Foo"}'
        assert verifier.generate_digest(body) == sign(body, "s3cr3t")

    def test_hex_encoded_sha256(self, verifier):
        """Test that the default digest is a 64 character hex string."""
        digest = verifier.generate_digest(b"payload")
        assert len(digest) == 64
        int(digest, 16)  # Raises if not hex

    def test_str_and_bytes_agree(self, verifier):
        """Test that str messages are signed as their UTF-8 encoding."""
        assert verifier.generate_digest("héllo") == verifier.generate_digest("héllo".encode())

    def test_bytes_secret(self):
        """Test that a bytes secret behaves like its str equivalent."""
        assert MessageVerifier(b"s3cr3t").generate_digest(b"x") == MessageVerifier(
            "s3cr3t"
        ).generate_digest(b"x")

    @pytest.mark.parametrize("algorithm", ["sha384", "sha512", "SHA512"])
    def test_other_algorithms(self, algorithm):
        """Test digests with the other allowed algorithms."""
        verifier = MessageVerifier(SECRET, algorithm)
        assert verifier.generate_digest(b"x") == sign(b"x", algorithm=algorithm.lower())

    def test_different_secrets_differ(self):
        """Test that the secret is part of the digest."""
        assert MessageVerifier("a").generate_digest(b"x") != MessageVerifier("b").generate_digest(
            b"x"
        )


class TestVerify:
    """Tests for MessageVerifier.verify."""

    def test_valid_digest(self, verifier):
        """Test that a matching digest verifies without raising."""
        body = b'{"job_class":"Foo"}'
        assert verifier.verify(body, sign(body)) is None

    @pytest.mark.parametrize("digest", [None, ""])
    def test_missing_digest(self, verifier, digest):
        """Test that an absent digest is rejected."""
        with pytest.raises(InvalidDigest, match="missing"):
            verifier.verify(b"body", digest)

    def test_wrong_secret(self, verifier):
        """Test that a digest from another secret is rejected."""
        with pytest.raises(InvalidDigest, match="does not match"):
            verifier.verify(b"body", sign(b"body", "other"))

    def test_modified_message(self, verifier):
        """Test that a digest for another message is rejected."""
        with pytest.raises(InvalidDigest):
            verifier.verify(b"body!", sign(b"body"))

    @pytest.mark.parametrize("transform", [str.upper, lambda d: d[:-1], lambda d: d + "0"])
    def test_altered_digest(self, verifier, transform):
        """Test that case, truncation and extension all fail."""
        digest = sign(b"body")
        with pytest.raises(InvalidDigest):
            verifier.verify(b"body", transform(digest))

    def test_non_ascii_digest(self, verifier):
        """Test that a non-ASCII header value fails instead of raising TypeError."""
        with pytest.raises(InvalidDigest):
            verifier.verify(b"body", "é" * 64)

    def test_uses_constant_time_comparison(self, verifier):
        """Test that the comparison goes through hmac.compare_digest."""
        with patch(
            "sqsd_gate.services.message_verifier.hmac.compare_digest",
            wraps=hmac.compare_digest,
        ) as compare:
            verifier.verify(b"body", sign(b"body"))

        compare.assert_called_once()

    def test_repeated_verification_is_stable(self, verifier):
        """Test that verifying the same triple always gives the same result."""
        body = b'{"job_class":"Foo"}'
        good = sign(body)
        bad = sign(body, "other")

        for _ in range(5):
            verifier.verify(body, good)
            assert verifier.is_valid(body, good) is True
            assert verifier.is_valid(body, bad) is False

    def test_independent_instances_agree(self):
        """Test that two verifiers sharing a secret accept each other's digests."""
        producer = MessageVerifier(SECRET)
        consumer = MessageVerifier(SECRET)
        consumer.verify(b"payload", producer.generate_digest(b"payload"))


class TestConstruction:
    """Tests for MessageVerifier construction."""

    @pytest.mark.parametrize("secret", ["", b""])
    def test_empty_secret_rejected(self, secret):
        """Test that an empty secret cannot sign anything."""
        with pytest.raises(ValueError, match="non-empty secret"):
            MessageVerifier(secret)

    @pytest.mark.parametrize("algorithm", ["md5", "sha1", "nope"])
    def test_unsupported_algorithm_rejected(self, algorithm):
        """Test that weak or unknown algorithms are refused."""
        with pytest.raises(ValueError, match="Unsupported digest algorithm"):
            MessageVerifier(SECRET, algorithm)

    def test_repr_hides_secret(self, verifier):
        """Test that the secret does not leak through repr."""
        assert SECRET not in repr(verifier)
        assert "sha256" in repr(verifier)

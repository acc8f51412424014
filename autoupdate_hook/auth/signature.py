"""
Signature Functions
===================
Streaming digest computation and verification for ``X-Hub-Signature-256``.
"""

import hashlib
import hmac
from typing import AsyncIterable, Tuple, Union

from autoupdate_hook.errors import MalformedSignature
from .models import SignatureScheme

SIGNATURE_SEPARATOR = "="


def parse_signature_header(value: str) -> Tuple[str, str]:
    """
    Split a signature header into its algorithm prefix and digest.

    Only the first ``=`` is significant. The prefix is returned for logging
    but is never checked.

    Args:
        value: Raw header value, e.g. ``sha256=5d41...``

    Returns:
        Tuple of (algorithm, digest)

    Raises:
        MalformedSignature: If the value contains no ``=``
    """
    algorithm, separator, digest = value.partition(SIGNATURE_SEPARATOR)
    if not separator:
        raise MalformedSignature("signature header has no algorithm prefix")
    return algorithm, digest


def _new_accumulator(secret: bytes, scheme: SignatureScheme):
    if scheme == SignatureScheme.HMAC_SHA256:
        return hmac.new(secret, digestmod=hashlib.sha256)
    accumulator = hashlib.sha256()
    accumulator.update(secret)
    return accumulator


async def compute_digest(
    secret: Union[str, bytes],
    body: AsyncIterable[bytes],
    scheme: SignatureScheme = SignatureScheme.SHA256_PREFIX,
) -> str:
    """
    Compute the lowercase hex digest of a request body.

    The body is consumed once, front to back, and never buffered.

    Args:
        secret: Shared webhook secret
        body: Async iterable of body chunks in arrival order
        scheme: Digest construction

    Returns:
        Hex-encoded SHA-256 digest
    """
    if isinstance(secret, str):
        secret = secret.encode()

    accumulator = _new_accumulator(secret, scheme)
    async for chunk in body:
        if chunk:
            accumulator.update(chunk)
    return accumulator.hexdigest()


def compute_digest_bytes(
    secret: Union[str, bytes],
    body: bytes,
    scheme: SignatureScheme = SignatureScheme.SHA256_PREFIX,
) -> str:
    """Compute the digest of an in-memory body, e.g. for signing test requests."""
    if isinstance(secret, str):
        secret = secret.encode()
    accumulator = _new_accumulator(secret, scheme)
    accumulator.update(body)
    return accumulator.hexdigest()


def create_signature_header(
    secret: Union[str, bytes],
    body: bytes,
    scheme: SignatureScheme = SignatureScheme.SHA256_PREFIX,
) -> str:
    """Build an ``X-Hub-Signature-256`` value for ``body``."""
    return f"sha256{SIGNATURE_SEPARATOR}{compute_digest_bytes(secret, body, scheme)}"


async def verify_signature(
    secret: Union[str, bytes],
    body: AsyncIterable[bytes],
    presented: str,
    scheme: SignatureScheme = SignatureScheme.SHA256_PREFIX,
) -> bool:
    """
    Verify a presented signature header against the body.

    The header is parsed before the body is read, so a malformed header
    never triggers hashing.

    Args:
        secret: Shared webhook secret
        body: Async iterable of body chunks
        presented: Raw ``X-Hub-Signature-256`` value
        scheme: Digest construction

    Returns:
        True if the digests match

    Raises:
        MalformedSignature: If ``presented`` has no ``=``
    """
    _, expected = parse_signature_header(presented)
    computed = await compute_digest(secret, body, scheme)
    return hmac.compare_digest(computed, expected)

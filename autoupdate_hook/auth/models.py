"""
Auth Models
===========
Policies, credentials and decisions for webhook authentication.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, Optional


class SignatureScheme(str, Enum):
    """Digest construction used for ``X-Hub-Signature-256`` verification."""
    SHA256_PREFIX = "sha256-prefix"  # sha256(secret || body)
    HMAC_SHA256 = "hmac-sha256"


class AuthDecision(str, Enum):
    """Authenticator decision types."""
    ALLOW = "ALLOW"
    BLOCK = "BLOCK"
    IGNORE = "IGNORE"


class BlockReason(str, Enum):
    """Reasons for blocking a request."""
    BAD_REQUEST = "bad_request"
    UNAUTHORIZED = "unauthorized"


class AuthPolicy:
    """Base class for the process-wide authorization policy."""

    mode: str = "none"


@dataclass(frozen=True)
class NoAuth(AuthPolicy):
    """Accept every request."""

    mode: str = field(default="none", init=False)


@dataclass(frozen=True)
class StaticToken(AuthPolicy):
    """Require ``Authorization: Bearer <expected>``."""

    expected: str
    mode: str = field(default="token", init=False)

    def __repr__(self) -> str:
        return "StaticToken(expected=***)"


@dataclass(frozen=True)
class SignedWebhook(AuthPolicy):
    """
    Require a verifiable ``X-Hub-Signature-256`` header.

    An empty ``allowed_events`` accepts any event name; otherwise events
    outside the set are acknowledged but not acted on.
    """

    secret: str
    allowed_events: FrozenSet[str] = frozenset()
    scheme: SignatureScheme = SignatureScheme.SHA256_PREFIX
    mode: str = field(default="github", init=False)

    def __repr__(self) -> str:
        return (
            f"SignedWebhook(secret=***, allowed_events={sorted(self.allowed_events)}, "
            f"scheme={self.scheme.value})"
        )


@dataclass(frozen=True)
class Credentials:
    """Credential material presented by a single request. All fields are untrusted."""
    bearer: Optional[str] = None
    signature: Optional[str] = None
    event: Optional[str] = None


@dataclass(frozen=True)
class AuthResult:
    """Result of authentication check."""
    decision: AuthDecision
    reason_code: Optional[BlockReason] = None
    reason: Optional[str] = None

    @property
    def allowed(self) -> bool:
        return self.decision == AuthDecision.ALLOW

    @property
    def status_code(self) -> int:
        """HTTP status for a request that does not proceed to the update."""
        if self.decision == AuthDecision.BLOCK:
            if self.reason_code == BlockReason.BAD_REQUEST:
                return 400
            return 401
        return 200

    @property
    def outcome(self) -> str:
        """Short label used for logs and metrics."""
        if self.decision == AuthDecision.BLOCK and self.reason_code is not None:
            return self.reason_code.value
        return self.decision.value.lower()

    @classmethod
    def allow(cls) -> "AuthResult":
        return cls(decision=AuthDecision.ALLOW)

    @classmethod
    def ignore(cls, reason: str) -> "AuthResult":
        return cls(decision=AuthDecision.IGNORE, reason=reason)

    @classmethod
    def block(cls, reason_code: BlockReason, reason: str) -> "AuthResult":
        return cls(decision=AuthDecision.BLOCK, reason_code=reason_code, reason=reason)

"""
Webhook Authentication
======================
Bearer-token and signed-webhook authentication for the hook endpoint.
"""

from .models import (
    AuthDecision,
    AuthPolicy,
    AuthResult,
    BlockReason,
    Credentials,
    NoAuth,
    SignatureScheme,
    SignedWebhook,
    StaticToken,
)
from .signature import (
    compute_digest,
    compute_digest_bytes,
    create_signature_header,
    parse_signature_header,
    verify_signature,
)
from .headers import (
    AUTHORIZATION_HEADER,
    EVENT_HEADER,
    SIGNATURE_HEADER,
    parse_bearer,
    parse_credentials,
)
from .authenticator import RequestAuthenticator

__all__ = [
    # Models
    "AuthDecision",
    "AuthPolicy",
    "AuthResult",
    "BlockReason",
    "Credentials",
    "NoAuth",
    "SignatureScheme",
    "SignedWebhook",
    "StaticToken",
    # Signature
    "compute_digest",
    "compute_digest_bytes",
    "create_signature_header",
    "parse_signature_header",
    "verify_signature",
    # Headers
    "AUTHORIZATION_HEADER",
    "EVENT_HEADER",
    "SIGNATURE_HEADER",
    "parse_bearer",
    "parse_credentials",
    # Authenticator
    "RequestAuthenticator",
]

"""
Podman Auto-Update Hook
=======================
Authenticated webhook that runs ``podman auto-update`` and returns its result.
"""

__version__ = "0.3.0"

# Errors
from autoupdate_hook.errors import (
    HookError,
    ConfigurationError,
    MalformedSignature,
    InvocationError,
    ExecutionFailed,
    ParseFailed,
)

# Auth
from autoupdate_hook.auth import (
    AuthDecision,
    AuthPolicy,
    AuthResult,
    BlockReason,
    Credentials,
    NoAuth,
    SignatureScheme,
    SignedWebhook,
    StaticToken,
    RequestAuthenticator,
    compute_digest,
    parse_credentials,
    verify_signature,
)

# Rate Limiting
from autoupdate_hook.rate_limit import (
    InMemoryRateLimiter,
    RedisRateLimiter,
    RateLimiter,
    RateLimitInfo,
    extract_rate_limit_key,
)

# Update
from autoupdate_hook.update import (
    UpdateInvoker,
    UpdateRecord,
    UpdateState,
)

# Config
from autoupdate_hook.config import HookSettings, build_policy

# App
from autoupdate_hook.app import create_app

__all__ = [
    # Errors
    "HookError",
    "ConfigurationError",
    "MalformedSignature",
    "InvocationError",
    "ExecutionFailed",
    "ParseFailed",
    # Auth
    "AuthDecision",
    "AuthPolicy",
    "AuthResult",
    "BlockReason",
    "Credentials",
    "NoAuth",
    "SignatureScheme",
    "SignedWebhook",
    "StaticToken",
    "RequestAuthenticator",
    "compute_digest",
    "parse_credentials",
    "verify_signature",
    # Rate Limiting
    "InMemoryRateLimiter",
    "RedisRateLimiter",
    "RateLimiter",
    "RateLimitInfo",
    "extract_rate_limit_key",
    # Update
    "UpdateInvoker",
    "UpdateRecord",
    "UpdateState",
    # Config
    "HookSettings",
    "build_policy",
    # App
    "create_app",
]

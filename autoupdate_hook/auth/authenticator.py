"""
Request Authenticator
=====================
Decides, per request, whether the active policy authorizes the update.

Checks run in a fixed order: credential shape, then signature, then the
event allow-list. Event filtering never overrides a failed security check.
"""

import hmac
from typing import AsyncIterable, Optional

import structlog

from autoupdate_hook.errors import MalformedSignature
from .models import (
    AuthPolicy,
    AuthResult,
    BlockReason,
    Credentials,
    NoAuth,
    SignedWebhook,
    StaticToken,
)
from .signature import verify_signature

logger = structlog.get_logger(__name__)


class RequestAuthenticator:
    """
    Authenticator bound to a single, immutable policy.

    The policy is injected at construction so several authenticators with
    different policies can coexist, e.g. in tests.
    """

    def __init__(self, policy: AuthPolicy):
        self.policy = policy

    async def authenticate(
        self,
        credentials: Credentials,
        body: Optional[AsyncIterable[bytes]] = None,
    ) -> AuthResult:
        """
        Evaluate credentials against the active policy.

        Args:
            credentials: Headers presented by the request
            body: Request body stream, only consumed for the signed policy

        Returns:
            AuthResult with ALLOW, BLOCK or IGNORE decision
        """
        policy = self.policy
        bearer, signature, event = (
            credentials.bearer,
            credentials.signature,
            credentials.event,
        )

        if isinstance(policy, NoAuth):
            return AuthResult.allow()

        if isinstance(policy, StaticToken):
            if bearer is not None and signature is None and event is None:
                if hmac.compare_digest(bearer.encode(), policy.expected.encode()):
                    return AuthResult.allow()
            return self._block(BlockReason.UNAUTHORIZED, "token_mismatch")

        if isinstance(policy, SignedWebhook):
            if bearer is not None:
                return self._block(BlockReason.UNAUTHORIZED, "unexpected_bearer_token")
            if signature is None:
                return self._block(BlockReason.BAD_REQUEST, "missing_github_signature_header")
            return await self._authenticate_signed(policy, signature, event, body)

        return self._block(BlockReason.UNAUTHORIZED, "unknown_policy")

    async def _authenticate_signed(
        self,
        policy: SignedWebhook,
        signature: str,
        event: Optional[str],
        body: Optional[AsyncIterable[bytes]],
    ) -> AuthResult:
        try:
            verified = await verify_signature(
                policy.secret, body if body is not None else _empty_body(), signature, policy.scheme
            )
        except MalformedSignature:
            return self._block(BlockReason.BAD_REQUEST, "malformed_github_signature_header")

        if not verified:
            return self._block(BlockReason.UNAUTHORIZED, "github_signature_mismatch")

        if not policy.allowed_events:
            return AuthResult.allow()
        if event is None:
            return self._block(BlockReason.BAD_REQUEST, "missing_github_event_header")
        if event not in policy.allowed_events:
            logger.debug("github_event_mismatch_ignoring", github_event=event)
            return AuthResult.ignore("github_event_not_allowed")
        return AuthResult.allow()

    def _block(self, reason_code: BlockReason, reason: str) -> AuthResult:
        logger.debug("auth_rejected", reason=reason, policy=self.policy.mode)
        return AuthResult.block(reason_code, reason)


async def _empty_body():
    return
    yield b""

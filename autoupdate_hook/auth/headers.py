"""
Header Functions
================
Extraction of credential material from request headers.
"""

from typing import Mapping, Optional

from .models import Credentials

AUTHORIZATION_HEADER = "authorization"
SIGNATURE_HEADER = "x-hub-signature-256"
EVENT_HEADER = "x-github-event"

BEARER_PREFIX = "Bearer "


def _lower_keys(headers: Mapping[str, str]) -> Mapping[str, str]:
    # Starlette Headers are already case-insensitive; plain dicts are not.
    if hasattr(headers, "getlist"):
        return headers
    return {name.lower(): value for name, value in headers.items()}


def header_text(headers: Mapping[str, str], name: str) -> Optional[str]:
    """
    Return a header value if it is visible ASCII, else None.

    Starlette decodes raw header bytes as latin-1, so anything outside the
    printable ASCII range means the client sent bytes that are not a valid
    textual header value.
    """
    value = _lower_keys(headers).get(name)
    if value is None:
        return None
    if not all(" " <= char <= "~" or char == "\t" for char in value):
        return None
    return value


def parse_bearer(value: Optional[str]) -> Optional[str]:
    """Parse ``Bearer <token>`` with a case-insensitive scheme, returning the token."""
    if not value:
        return None
    scheme, _, token = value.strip().partition(" ")
    if scheme.lower() != "bearer":
        return None
    token = token.strip()
    return token or None


def parse_credentials(headers: Mapping[str, str]) -> Credentials:
    """
    Collect the credential headers of a request.

    Args:
        headers: Request headers

    Returns:
        Credentials with absent or undecodable headers set to None
    """
    return Credentials(
        bearer=parse_bearer(header_text(headers, AUTHORIZATION_HEADER)),
        signature=header_text(headers, SIGNATURE_HEADER),
        event=header_text(headers, EVENT_HEADER),
    )

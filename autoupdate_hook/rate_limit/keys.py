"""
Rate Limit Keys
===============
Derives the throttling bucket key from request headers.
"""

from typing import Mapping

from autoupdate_hook.auth.headers import AUTHORIZATION_HEADER, BEARER_PREFIX, header_text


def extract_rate_limit_key(headers: Mapping[str, str]) -> str:
    """
    Return the bearer value used as rate limit bucket key.

    Requires the exact ``Bearer `` prefix and trims the remainder. Absent,
    undecodable or unprefixed headers all map to the shared ``""`` bucket,
    so omitting the header never bypasses the limiter.

    Args:
        headers: Request headers

    Returns:
        Bucket key, possibly empty
    """
    value = header_text(headers, AUTHORIZATION_HEADER)
    if value is None or not value.startswith(BEARER_PREFIX):
        return ""
    return value[len(BEARER_PREFIX):].strip()

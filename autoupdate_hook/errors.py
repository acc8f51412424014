"""
Hook Exceptions
===============
Exception hierarchy shared by the authenticator, invoker and configuration.
"""

from typing import Optional


class HookError(Exception):
    """Base exception for all autoupdate hook errors."""
    pass


class ConfigurationError(HookError):
    """Raised when startup configuration cannot produce a valid policy or settings."""
    pass


class MalformedSignature(HookError):
    """Raised when a signature header has no ``algorithm=`` separator."""
    pass


class InvocationError(HookError):
    """Base exception for failures of the external update command."""

    def __init__(
        self,
        message: str,
        returncode: Optional[int] = None,
        stderr: str = "",
    ):
        self.message = message
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(f"{message} (returncode: {returncode})")


class ExecutionFailed(InvocationError):
    """Raised when the command cannot start, exits non-zero or times out."""
    pass


class ParseFailed(InvocationError):
    """Raised when the command output does not match the expected record schema."""
    pass

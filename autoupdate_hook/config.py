"""
Hook Configuration
==================
Settings resolved from environment variables and command-line flags.
"""

import os
import shlex
from dataclasses import dataclass, field
from typing import FrozenSet, List, Mapping, Optional

import structlog

from autoupdate_hook.auth.models import (
    AuthPolicy,
    NoAuth,
    SignatureScheme,
    SignedWebhook,
    StaticToken,
)
from autoupdate_hook.errors import ConfigurationError
from autoupdate_hook.update.invoker import DEFAULT_UPDATE_COMMAND

logger = structlog.get_logger(__name__)

ENV_PREFIX = "HOOK_"
TRUE_VALUES = {"1", "true", "yes", "on"}


def _env_bool(value: Optional[str], default: bool) -> bool:
    if value is None or value == "":
        return default
    return value.strip().lower() in TRUE_VALUES


def _env_number(environ: Mapping[str, str], name: str, default, cast):
    value = environ.get(ENV_PREFIX + name)
    if value is None or value.strip() == "":
        return default
    try:
        return cast(value)
    except ValueError as e:
        raise ConfigurationError(f"{ENV_PREFIX}{name} must be a number, got {value!r}") from e


def parse_events(value: Optional[str]) -> FrozenSet[str]:
    """Parse a comma separated event list, ignoring blanks."""
    if not value:
        return frozenset()
    return frozenset(e.strip() for e in value.split(",") if e.strip())


@dataclass
class HookSettings:
    """Runtime settings for the hook service."""
    host: str = "0.0.0.0"
    port: int = 5000
    log_level: str = "INFO"
    json_logs: bool = True
    rate_limit_burst: int = 5
    rate_limit_period: float = 10.0
    redis_url: Optional[str] = None
    update_command: List[str] = field(default_factory=lambda: list(DEFAULT_UPDATE_COMMAND))
    update_timeout: Optional[float] = None
    dry_run: bool = False
    signature_scheme: SignatureScheme = SignatureScheme.SHA256_PREFIX
    token: Optional[str] = None
    github_secret: Optional[str] = None
    github_events: FrozenSet[str] = frozenset()

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "HookSettings":
        """
        Build settings from ``HOOK_*`` environment variables.

        Args:
            environ: Mapping to read, defaults to ``os.environ``

        Returns:
            Validated HookSettings

        Raises:
            ConfigurationError: If a value cannot be parsed
        """
        env = os.environ if environ is None else environ
        defaults = cls()

        command = env.get(ENV_PREFIX + "UPDATE_COMMAND")
        scheme = env.get(ENV_PREFIX + "SIGNATURE_SCHEME") or defaults.signature_scheme.value

        settings = cls(
            host=env.get(ENV_PREFIX + "HOST") or defaults.host,
            port=_env_number(env, "PORT", defaults.port, int),
            log_level=(env.get(ENV_PREFIX + "LOG_LEVEL") or defaults.log_level).upper(),
            json_logs=_env_bool(env.get(ENV_PREFIX + "JSON_LOGS"), defaults.json_logs),
            rate_limit_burst=_env_number(env, "RATE_LIMIT_BURST", defaults.rate_limit_burst, int),
            rate_limit_period=_env_number(env, "RATE_LIMIT_PERIOD", defaults.rate_limit_period, float),
            redis_url=env.get(ENV_PREFIX + "REDIS_URL") or None,
            update_command=shlex.split(command) if command else defaults.update_command,
            update_timeout=_env_number(env, "UPDATE_TIMEOUT", None, float),
            dry_run=_env_bool(env.get(ENV_PREFIX + "DRY_RUN"), defaults.dry_run),
            signature_scheme=_parse_scheme(scheme),
            token=env.get(ENV_PREFIX + "TOKEN") or None,
            github_secret=env.get(ENV_PREFIX + "GITHUB_SECRET") or None,
            github_events=parse_events(env.get(ENV_PREFIX + "GITHUB_EVENTS")),
        )
        settings.validate()
        return settings

    def validate(self) -> None:
        if not 0 < self.port < 65536:
            raise ConfigurationError(f"port out of range: {self.port}")
        if self.rate_limit_burst < 1:
            raise ConfigurationError("rate limit burst must be at least 1")
        if self.rate_limit_period <= 0:
            raise ConfigurationError("rate limit period must be positive")
        if self.update_timeout is not None and self.update_timeout <= 0:
            raise ConfigurationError("update timeout must be positive")
        if not self.update_command:
            raise ConfigurationError("update command must not be empty")
        if self.token is not None and self.github_secret is not None:
            raise ConfigurationError("configure either a bearer token or a github secret, not both")


def _parse_scheme(value: str) -> SignatureScheme:
    try:
        return SignatureScheme(value.strip().lower())
    except ValueError as e:
        choices = ", ".join(s.value for s in SignatureScheme)
        raise ConfigurationError(f"unknown signature scheme {value!r}, expected one of: {choices}") from e


def build_policy(settings: HookSettings) -> AuthPolicy:
    """
    Resolve the single process-wide policy from settings.

    Raises:
        ConfigurationError: If a configured token or secret is empty
    """
    if settings.token is not None:
        if not settings.token.strip():
            raise ConfigurationError("bearer token must not be empty")
        logger.info("accepting_authorization_header")
        return StaticToken(expected=settings.token)

    if settings.github_secret is not None:
        if not settings.github_secret:
            raise ConfigurationError("github secret must not be empty")
        logger.info(
            "accepting_github_events",
            events=sorted(settings.github_events),
            scheme=settings.signature_scheme.value,
        )
        return SignedWebhook(
            secret=settings.github_secret,
            allowed_events=frozenset(settings.github_events),
            scheme=settings.signature_scheme,
        )

    logger.warning("authentication_disabled")
    return NoAuth()

"""
Hook CLI
========
Command-line entry point.

Commands:
- autoupdate-hook                       : serve, policy from HOOK_* env vars
- autoupdate-hook token <bearer>        : require a static bearer token
- autoupdate-hook github <secret> [ev..]: require a signed GitHub webhook
"""

import argparse
import sys
from dataclasses import replace
from typing import List, Optional

import structlog
import uvicorn

from autoupdate_hook import __version__
from autoupdate_hook.app import create_app
from autoupdate_hook.auth import SignatureScheme
from autoupdate_hook.config import HookSettings, build_policy
from autoupdate_hook.errors import ConfigurationError
from autoupdate_hook.logging import setup_logging

logger = structlog.get_logger("autoupdate_hook.cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="autoupdate-hook",
        description="Webhook that runs podman auto-update",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-p", "--port", type=int, default=None, help="Listen port (default: 5000)")
    parser.add_argument("--host", default=None, help="Listen address (default: 0.0.0.0)")
    parser.add_argument("--log-level", default=None, help="Log level (default: INFO)")
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Kill the update command after this many seconds",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        default=None,
        help="Pass --dry-run to the update command",
    )

    subparsers = parser.add_subparsers(dest="command", help="Authentication mode")

    token_parser = subparsers.add_parser("token", help="Require Authorization: Bearer <token>")
    token_parser.add_argument("bearer", help="Expected bearer token")

    github_parser = subparsers.add_parser("github", help="Require X-Hub-Signature-256")
    github_parser.add_argument("secret", help="Webhook secret")
    github_parser.add_argument("events", nargs="*", help="Accepted X-GitHub-Event names (default: any)")
    github_parser.add_argument(
        "--scheme",
        default=None,
        choices=["sha256-prefix", "hmac-sha256"],
        help="Signature construction (default: sha256-prefix)",
    )

    return parser


def resolve_settings(args: argparse.Namespace, settings: HookSettings) -> HookSettings:
    """Apply command-line flags on top of environment settings."""
    flags = {
        "port": args.port,
        "host": args.host,
        "log_level": args.log_level.upper() if args.log_level else None,
        "update_timeout": args.timeout,
        "dry_run": args.dry_run,
    }
    overrides = {name: value for name, value in flags.items() if value is not None}

    # A subcommand replaces whatever policy the environment configured
    if args.command == "token":
        overrides.update(token=args.bearer, github_secret=None)
    elif args.command == "github":
        overrides.update(
            token=None,
            github_secret=args.secret,
            github_events=frozenset(args.events),
        )
        if args.scheme:
            overrides["signature_scheme"] = SignatureScheme(args.scheme)

    settings = replace(settings, **overrides)
    settings.validate()
    return settings


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = resolve_settings(args, HookSettings.from_env())
    except ConfigurationError as e:
        parser.error(str(e))

    setup_logging(level=settings.log_level, json_output=settings.json_logs)

    try:
        policy = build_policy(settings)
    except ConfigurationError as e:
        logger.error("invalid_configuration", error=str(e))
        return 2

    app = create_app(policy=policy, settings=settings)
    logger.info("listening", host=settings.host, port=settings.port)

    # uvicorn installs SIGINT/SIGTERM handlers and shuts down gracefully
    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_config=None,
        access_log=False,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())

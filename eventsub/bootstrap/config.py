"""Server configuration and CLI argument parsing."""

import argparse
import os
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from eventsub.security.secrets import EnvironmentSecret, SecretHolder, StaticSecret


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value is not None else default


DEFAULT_HOST = os.getenv("EVENTSUB_HOST", "0.0.0.0")
DEFAULT_PORT = _env_int("EVENTSUB_PORT", 8080)
DEFAULT_MAX_MESSAGE_AGE_SECONDS = _env_int("EVENTSUB_MAX_MESSAGE_AGE_SECONDS", 600)
DEFAULT_MAX_REQUEST_BYTES = _env_int("EVENTSUB_MAX_REQUEST_BYTES", 1024 * 1024)
SECRET_ENV_VAR = "EVENTSUB_SECRET"


@dataclass
class ServerConfig:
    """Runtime settings for the webhook server."""

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    max_message_age_seconds: int = DEFAULT_MAX_MESSAGE_AGE_SECONDS
    max_request_bytes: int = DEFAULT_MAX_REQUEST_BYTES

    @property
    def max_message_age(self) -> timedelta:
        return timedelta(seconds=self.max_message_age_seconds)

    @classmethod
    def from_args(cls, args: argparse.Namespace) -> "ServerConfig":
        return cls(
            host=args.host,
            port=args.port,
            max_message_age_seconds=args.max_message_age,
            max_request_bytes=args.max_request_bytes,
        )


def parse_cli_args(argv: list[str]) -> argparse.Namespace:
    """Return parsed CLI arguments for server configuration."""
    parser = argparse.ArgumentParser(description="EventSub webhook server")
    parser.add_argument("--host", default=DEFAULT_HOST)
    parser.add_argument("--port", type=int, default=DEFAULT_PORT)
    parser.add_argument(
        "--secret",
        default=None,
        help=f"Shared signing secret (defaults to ${SECRET_ENV_VAR})",
    )
    default_log_level = os.getenv("EVENTSUB_LOG_LEVEL", "INFO").upper()
    default_destination = os.getenv("EVENTSUB_LOG_DESTINATION", "stdout")
    parser.add_argument(
        "--log-level",
        default=default_log_level,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        type=str.upper,
    )
    parser.add_argument(
        "--log-destination",
        default=default_destination,
        help="stdout or a file path",
    )
    parser.add_argument(
        "--max-message-age",
        type=int,
        default=DEFAULT_MAX_MESSAGE_AGE_SECONDS,
        help="Reject messages whose timestamp is older than this many seconds",
    )
    parser.add_argument(
        "--max-request-bytes",
        type=int,
        default=DEFAULT_MAX_REQUEST_BYTES,
        help="Maximum size of one inbound request including headers",
    )
    return parser.parse_args(argv)


def resolve_secret(args: argparse.Namespace) -> Optional[SecretHolder]:
    """Prefer the CLI secret, falling back to the environment variable.

    The environment secret is re-read on every request so it can be rotated
    without a restart.
    """
    if args.secret:
        return StaticSecret(args.secret)
    if os.getenv(SECRET_ENV_VAR):
        return EnvironmentSecret(SECRET_ENV_VAR)
    return None

"""Providers of the shared secret used to sign EventSub messages."""

import os
from dataclasses import dataclass
from typing import Protocol


class SecretHolder(Protocol):  # pylint: disable=too-few-public-methods
    """Anything that can hand out the client secret."""

    @property
    def client_secret(self) -> str: ...


@dataclass(frozen=True)
class StaticSecret:
    """Secret fixed at construction time."""

    client_secret: str

    def __post_init__(self) -> None:
        if not self.client_secret:
            raise ValueError("EventSub secret must not be empty")

    def __repr__(self) -> str:
        return "StaticSecret(client_secret='[REDACTED]')"


class EnvironmentSecret:
    """Secret read from an environment variable on every access."""

    def __init__(self, variable: str = "EVENTSUB_SECRET") -> None:
        self.variable = variable

    @property
    def client_secret(self) -> str:
        value = os.getenv(self.variable)
        if not value:
            raise LookupError(f"Environment variable {self.variable} is not set")
        return value

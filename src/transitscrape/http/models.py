# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Request, cookie, outcome and retry data models."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Union

from ..config import ScrapeSettings

Headers = dict[str, str]


@dataclass(frozen=True)
class FetchRequest:
    """Immutable description of one fetch. A body turns the request into a POST."""

    url: str
    body: bytes | str | None = None
    content_type: str | None = None
    referer: str | None = None
    headers: Mapping[str, str] = field(default_factory=dict)
    user_agent: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "headers", MappingProxyType(dict(self.headers or {})))

    @property
    def method(self) -> str:
        return "GET" if self.body is None else "POST"


@dataclass(frozen=True)
class SessionCookie:
    """The tracked cookie. ``raw`` is the Set-Cookie line it came from."""

    name: str
    value: str
    raw: str = ""

    @property
    def wire(self) -> str:
        """Form sent back in the ``Cookie`` request header."""
        return f"{self.name}={self.value}"


@dataclass(frozen=True)
class Success:
    pass


@dataclass(frozen=True)
class RedirectDetected:
    target: str | None


@dataclass(frozen=True)
class SessionExpired:
    pass


@dataclass(frozen=True)
class InternalError:
    detail: str


@dataclass(frozen=True)
class Blocked:
    detail: str


@dataclass(frozen=True)
class NotFound:
    detail: str


@dataclass(frozen=True)
class TransportFailure:
    detail: str


Outcome = Union[Success, RedirectDetected, SessionExpired, InternalError, Blocked, NotFound, TransportFailure]


@dataclass
class RetryPolicy:
    """Retry policy for fetches derived from ScrapeSettings."""

    max_attempts: int = 3
    backoff_factor: float = 2.0
    initial_delay: float = 0.5
    budget_seconds: float = 120.0

    @classmethod
    def from_settings(cls, settings: ScrapeSettings) -> RetryPolicy:
        """Build a retry policy from the shared ScrapeSettings."""
        return cls(
            max_attempts=max(1, settings.max_attempts),
            backoff_factor=settings.backoff_factor,
            initial_delay=max(0.0, settings.initial_delay),
            budget_seconds=settings.retry_budget_cap,
        )


__all__ = [
    "Blocked",
    "FetchRequest",
    "Headers",
    "InternalError",
    "NotFound",
    "Outcome",
    "RedirectDetected",
    "RetryPolicy",
    "SessionCookie",
    "SessionExpired",
    "Success",
    "TransportFailure",
]

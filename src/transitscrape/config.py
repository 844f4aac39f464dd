# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Configuration helpers for transitscrape."""

import os
from dataclasses import dataclass, field

SCRAPE_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"


def _float_env(name: str, default: float) -> float:
    try:
        value = os.getenv(name)
        return float(value) if value is not None else default
    except ValueError:
        return default


def _int_env(name: str, default: int) -> int:
    try:
        value = os.getenv(name)
        return int(value) if value is not None else default
    except ValueError:
        return default


def _bool_env(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _str_env(name: str, default: str | None) -> str | None:
    value = os.getenv(name)
    if value is None:
        return default
    value = value.strip()
    return value or None


@dataclass
class ScrapeSettings:
    """Client defaults; every timeout is finite."""

    connect_timeout: float = 15.0
    read_timeout: float = 30.0
    write_timeout: float = 30.0
    pool_timeout: float = 30.0
    max_attempts: int = 3
    backoff_factor: float = 2.0
    initial_delay: float = 0.5
    retry_budget_cap: float = 120.0
    peek_size: int = 8192
    user_agent: str | None = None
    session_cookie_name: str | None = None
    proxy: str | None = None
    trust_all_certificates: bool = False
    certificate_pins: dict[str, list[str]] = field(default_factory=dict)
    retry_empty_body: bool = True
    max_connections: int = 64
    max_keepalive_connections: int = 16

    @classmethod
    def from_env(cls) -> "ScrapeSettings":
        """Create settings from environment variables (evaluated at call time)."""
        peek_size = _int_env("TRANSITSCRAPE_PEEK_SIZE", cls.peek_size)
        if peek_size <= 0:
            peek_size = cls.peek_size
        return cls(
            connect_timeout=_positive(_float_env("TRANSITSCRAPE_CONNECT_TIMEOUT", cls.connect_timeout), cls.connect_timeout),
            read_timeout=_positive(_float_env("TRANSITSCRAPE_READ_TIMEOUT", cls.read_timeout), cls.read_timeout),
            write_timeout=_positive(_float_env("TRANSITSCRAPE_WRITE_TIMEOUT", cls.write_timeout), cls.write_timeout),
            pool_timeout=_positive(_float_env("TRANSITSCRAPE_POOL_TIMEOUT", cls.pool_timeout), cls.pool_timeout),
            max_attempts=_int_env("TRANSITSCRAPE_MAX_ATTEMPTS", cls.max_attempts),
            backoff_factor=_float_env("TRANSITSCRAPE_BACKOFF", cls.backoff_factor),
            initial_delay=_float_env("TRANSITSCRAPE_INITIAL_DELAY", cls.initial_delay),
            retry_budget_cap=_float_env("TRANSITSCRAPE_RETRY_BUDGET_CAP", cls.retry_budget_cap),
            peek_size=peek_size,
            user_agent=_str_env("TRANSITSCRAPE_USER_AGENT", cls.user_agent),
            session_cookie_name=_str_env("TRANSITSCRAPE_SESSION_COOKIE", cls.session_cookie_name),
            proxy=_str_env("TRANSITSCRAPE_PROXY", cls.proxy),
            trust_all_certificates=_bool_env("TRANSITSCRAPE_TRUST_ALL_CERTIFICATES", cls.trust_all_certificates),
            retry_empty_body=_bool_env("TRANSITSCRAPE_RETRY_EMPTY_BODY", cls.retry_empty_body),
            max_connections=_int_env("TRANSITSCRAPE_MAX_CONNECTIONS", cls.max_connections),
            max_keepalive_connections=_int_env("TRANSITSCRAPE_MAX_KEEPALIVE", cls.max_keepalive_connections),
        )


def _positive(value: float, default: float) -> float:
    # An unbounded request is never acceptable, so zero/negative means default.
    return value if value > 0 else default


def load_scrape_settings() -> ScrapeSettings:
    """Load scrape settings from environment with sensible defaults."""
    return ScrapeSettings.from_env()


__all__ = ["SCRAPE_ACCEPT", "ScrapeSettings", "load_scrape_settings"]

# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
transitscrape package entrypoint.

A resilient fetch engine for fragile transit-data endpoints. Responses are
classified beyond their status code (embedded redirects, expired sessions,
gateway error pages, empty bodies) and failures surface as typed errors.
Transport is httpx; request and response shapes are typed dataclasses.
"""

from .config import ScrapeSettings, load_scrape_settings
from .errors import (
    BlockedError,
    CertificatePinningError,
    ContentDecodingError,
    EmptyResponseError,
    ErrorCategory,
    InternalServerError,
    NotFoundError,
    ScrapeError,
    SessionExpiredError,
    TransportError,
    UnexpectedRedirectError,
)
from .http import FetchedResponse, FetchRequest, ResponseBody, RetryPolicy, ScrapeClient, SessionCookie
from .log import setup_logging
from .version import __version__

__all__ = [
    "BlockedError",
    "CertificatePinningError",
    "ContentDecodingError",
    "EmptyResponseError",
    "ErrorCategory",
    "FetchRequest",
    "FetchedResponse",
    "InternalServerError",
    "NotFoundError",
    "ResponseBody",
    "RetryPolicy",
    "ScrapeClient",
    "ScrapeError",
    "ScrapeSettings",
    "SessionCookie",
    "SessionExpiredError",
    "TransportError",
    "UnexpectedRedirectError",
    "load_scrape_settings",
    "setup_logging",
    "__version__",
]

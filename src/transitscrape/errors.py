# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Error taxonomy and exception helpers.

Every failed fetch raises exactly one :class:`ScrapeError` subclass. Only
:class:`TransportError` instances with ``retryable`` set are eligible for an
automatic retry; everything else is terminal and needs caller intervention
(back off, re-authenticate, follow the redirect).
"""

from __future__ import annotations

from enum import Enum


class ScrapeError(Exception):
    """Base class for fetch failures. Always carries the requested URL."""

    def __init__(self, url: str, message: str | None = None, *, body_peek: str | None = None):
        super().__init__(message or url)
        self.url = url
        self.body_peek = body_peek


class BlockedError(ScrapeError):
    """Remote refused or rate-limited the request."""


class NotFoundError(ScrapeError):
    """Resource does not exist at this URL."""


class UnexpectedRedirectError(ScrapeError):
    """HTTP-level or content-embedded redirect. Never followed automatically."""

    def __init__(self, url: str, redirect_url: str | None, *, body_peek: str | None = None):
        super().__init__(url, f"{url} -> {redirect_url}", body_peek=body_peek)
        self.redirect_url = redirect_url


class SessionExpiredError(ScrapeError):
    """Remote reported the session as expired inside a successful page."""


class InternalServerError(ScrapeError):
    """Remote-side failure, either HTTP 5xx or an embedded error page."""


class TransportError(ScrapeError):
    """Low-level I/O failure or an unrecognised status code."""

    def __init__(
        self,
        url: str,
        message: str | None = None,
        *,
        body_peek: str | None = None,
        status_code: int | None = None,
        retryable: bool = True,
    ):
        super().__init__(url, message, body_peek=body_peek)
        self.status_code = status_code
        self.retryable = retryable


class EmptyResponseError(TransportError):
    """Successful status with an empty body."""


class ContentDecodingError(TransportError):
    """Compressed body could not be decoded."""


class CertificatePinningError(TransportError):
    """Peer certificate matched none of the configured pins."""

    def __init__(self, url: str, message: str | None = None):
        super().__init__(url, message, retryable=False)


class ErrorCategory(str, Enum):
    BLOCKED = "BLOCKED"
    NOT_FOUND = "NOT_FOUND"
    REDIRECT = "REDIRECT"
    SESSION_EXPIRED = "SESSION_EXPIRED"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    TIMEOUT = "TIMEOUT"
    SSL_ERROR = "SSL_ERROR"
    CONNECTION_ERROR = "CONNECTION_ERROR"
    DNS_ERROR = "DNS_ERROR"
    TRANSPORT_ERROR = "TRANSPORT_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


_TYPED_CATEGORIES: tuple[tuple[type[ScrapeError], ErrorCategory], ...] = (
    (BlockedError, ErrorCategory.BLOCKED),
    (NotFoundError, ErrorCategory.NOT_FOUND),
    (UnexpectedRedirectError, ErrorCategory.REDIRECT),
    (SessionExpiredError, ErrorCategory.SESSION_EXPIRED),
    (InternalServerError, ErrorCategory.INTERNAL_ERROR),
    (CertificatePinningError, ErrorCategory.SSL_ERROR),
)


def categorize_exception(exc: BaseException) -> ErrorCategory:
    """
    Map typed fetch errors and Python/httpx exceptions to ErrorCategory.

    Wrapped transport errors are categorised by their cause when one exists.
    """
    import socket
    import ssl as ssl_module

    import httpx

    for error_type, category in _TYPED_CATEGORIES:
        if isinstance(exc, error_type):
            return category

    if isinstance(exc, TransportError):
        cause = exc.__cause__
        if cause is not None and not isinstance(cause, ScrapeError):
            category = categorize_exception(cause)
            if category is not ErrorCategory.UNKNOWN_ERROR:
                return category
        return ErrorCategory.TRANSPORT_ERROR

    if isinstance(exc, httpx.TimeoutException):
        return ErrorCategory.TIMEOUT

    if isinstance(exc, (ssl_module.SSLError, ssl_module.CertificateError)):
        return ErrorCategory.SSL_ERROR

    if isinstance(exc, (socket.gaierror, socket.herror)):
        return ErrorCategory.DNS_ERROR

    if isinstance(exc, (httpx.ConnectError, httpx.RemoteProtocolError, httpx.NetworkError, httpx.ProxyError)):
        # httpx wraps TLS and DNS failures in ConnectError; the underlying error is the context.
        inner = exc.__context__ or exc.__cause__
        if inner is not None and inner is not exc:
            category = categorize_exception(inner)
            if category in (ErrorCategory.SSL_ERROR, ErrorCategory.DNS_ERROR):
                return category
        return ErrorCategory.CONNECTION_ERROR

    if isinstance(exc, (ConnectionError, ConnectionRefusedError, ConnectionResetError)):
        return ErrorCategory.CONNECTION_ERROR

    return ErrorCategory.UNKNOWN_ERROR


def error_category_to_reason(category: ErrorCategory | None) -> str:
    """User-facing reason string."""
    mapping = {
        ErrorCategory.BLOCKED: "Request refused or rate limited by the server",
        ErrorCategory.NOT_FOUND: "Resource not found",
        ErrorCategory.REDIRECT: "Server redirected the request elsewhere",
        ErrorCategory.SESSION_EXPIRED: "Server session expired",
        ErrorCategory.INTERNAL_ERROR: "Server reported an internal error",
        ErrorCategory.TIMEOUT: "Network timeout",
        ErrorCategory.SSL_ERROR: "TLS/certificate issue",
        ErrorCategory.CONNECTION_ERROR: "Network connectivity issue",
        ErrorCategory.DNS_ERROR: "DNS resolution failure",
        ErrorCategory.TRANSPORT_ERROR: "Transport error",
        ErrorCategory.UNKNOWN_ERROR: "Unexpected error",
        None: "",
    }
    return mapping.get(category, "Fetch failed")


__all__ = [
    "BlockedError",
    "CertificatePinningError",
    "ContentDecodingError",
    "EmptyResponseError",
    "ErrorCategory",
    "InternalServerError",
    "NotFoundError",
    "ScrapeError",
    "SessionExpiredError",
    "TransportError",
    "UnexpectedRedirectError",
    "categorize_exception",
    "error_category_to_reason",
]

# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""HTTP fetch engine exports."""

from .anomaly import detect_anomaly, detect_redirect, is_internal_error, is_session_expired
from .body import FetchedResponse, ResponseBody
from .classify import ResponseFacts, classify
from .client import ScrapeClient
from .encoding import effective_content_type, normalize_compression
from .models import (
    Blocked,
    FetchRequest,
    Headers,
    InternalError,
    NotFound,
    Outcome,
    RedirectDetected,
    RetryPolicy,
    SessionCookie,
    SessionExpired,
    Success,
    TransportFailure,
)
from .retry import build_default_retry_policy, run_with_retries
from .session import SessionTracker
from .transport import close_shared_http_client, get_shared_http_client

__all__ = [
    "Blocked",
    "FetchRequest",
    "FetchedResponse",
    "Headers",
    "InternalError",
    "NotFound",
    "Outcome",
    "RedirectDetected",
    "ResponseBody",
    "ResponseFacts",
    "RetryPolicy",
    "ScrapeClient",
    "SessionCookie",
    "SessionExpired",
    "SessionTracker",
    "Success",
    "TransportFailure",
    "build_default_retry_policy",
    "classify",
    "close_shared_http_client",
    "detect_anomaly",
    "detect_redirect",
    "effective_content_type",
    "get_shared_http_client",
    "is_internal_error",
    "is_session_expired",
    "normalize_compression",
    "run_with_retries",
]

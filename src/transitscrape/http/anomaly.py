# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Anomaly detection over the body peek of a 200 response.

Fragile endpoints (and captive portals in front of them) answer with status 200
and a page that really means "go elsewhere", "your session is gone" or "the
gateway broke". These checks look for those signals in the first few KiB of
the body. The peek is size-capped and may be cut mid-tag; the patterns have no
nested quantifiers, so truncated input simply fails to match.
"""

from __future__ import annotations

import re
from collections.abc import Callable

from .models import InternalError, Outcome, RedirectDetected, SessionExpired, Success
from .url import resolve_url

_REDIRECT_HTTP_EQUIV_RE = re.compile(
    r'<META\s+http-equiv="?refresh"?\s+content="\d+;\s*URL=([^"]+)"',
    re.IGNORECASE,
)

_REDIRECT_SCRIPT_RE = re.compile(
    r'<script\s+(?:type="text/javascript"|language="javascript")>\s*'
    r'(?:window\.location|location\.href)\s*=\s*"([^"]+)"',
    re.IGNORECASE,
)

SESSION_EXPIRED_PHRASES: tuple[str, ...] = (
    r"Your session has expired\.",
    r"Session Expired",
    r"Ihre Verbindungskennung ist nicht mehr g.ltig\.",
)

INTERNAL_ERROR_PHRASES: tuple[str, ...] = (
    r"Internal Error",
    r"Server ein Fehler aufgetreten",
    r"Internal error in gateway",
    r"VRN - Keine Verbindung zum Server m.glich",
)


def _between_tags(phrases: tuple[str, ...]) -> re.Pattern[str]:
    return re.compile(r">\s*(?:" + "|".join(phrases) + r")\s*<")


_EXPIRED_RE = _between_tags(SESSION_EXPIRED_PHRASES)
_INTERNAL_ERROR_RE = _between_tags(INTERNAL_ERROR_PHRASES)


def detect_redirect(base_url: str, content: str) -> str | None:
    """
    Return the absolute target of an embedded redirect, or None.

    Meta refresh wins over an inline script assignment.
    """
    if not content:
        return None
    for pattern in (_REDIRECT_HTTP_EQUIV_RE, _REDIRECT_SCRIPT_RE):
        match = pattern.search(content)
        if match:
            return resolve_url(base_url, match.group(1))
    return None


def is_session_expired(content: str) -> bool:
    return bool(content) and _EXPIRED_RE.search(content) is not None


def is_internal_error(content: str) -> bool:
    return bool(content) and _INTERNAL_ERROR_RE.search(content) is not None


def _redirect_rule(base_url: str, peek: str) -> Outcome | None:
    target = detect_redirect(base_url, peek)
    return RedirectDetected(target) if target else None


def _expired_rule(base_url: str, peek: str) -> Outcome | None:  # noqa: ARG001
    return SessionExpired() if is_session_expired(peek) else None


def _internal_error_rule(base_url: str, peek: str) -> Outcome | None:  # noqa: ARG001
    return InternalError(peek) if is_internal_error(peek) else None


AnomalyRule = Callable[[str, str], "Outcome | None"]

# Evaluated top to bottom; a body is assumed to carry one signal at most.
ANOMALY_RULES: tuple[tuple[str, AnomalyRule], ...] = (
    ("redirect", _redirect_rule),
    ("session_expired", _expired_rule),
    ("internal_error", _internal_error_rule),
)


def detect_anomaly(base_url: str, peek: str) -> Outcome:
    """Run the anomaly rules in order and return the first hit, else Success."""
    for _name, rule in ANOMALY_RULES:
        outcome = rule(base_url, peek)
        if outcome is not None:
            return outcome
    return Success()


__all__ = [
    "ANOMALY_RULES",
    "INTERNAL_ERROR_PHRASES",
    "SESSION_EXPIRED_PHRASES",
    "detect_anomaly",
    "detect_redirect",
    "is_internal_error",
    "is_session_expired",
]

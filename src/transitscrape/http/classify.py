# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Response classification.

One ordered table of ``(predicate, outcome)`` rules, first match wins. The
status-code sets are data; the partition between them is the contract. A 200
falls through to the anomaly rules, so a "successful" page can still classify
as a redirect, an expired session or an internal error.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from ..errors import (
    BlockedError,
    InternalServerError,
    NotFoundError,
    ScrapeError,
    SessionExpiredError,
    TransportError,
    UnexpectedRedirectError,
)
from .anomaly import detect_anomaly
from .models import (
    Blocked,
    InternalError,
    NotFound,
    Outcome,
    RedirectDetected,
    SessionExpired,
    Success,
    TransportFailure,
)
from .url import resolve_url

OK_CODES = frozenset({200})
BLOCKED_CODES = frozenset({400, 401, 403, 406, 503})
NOT_FOUND_CODES = frozenset({404})
REDIRECT_CODES = frozenset({301, 302, 307, 308})
INTERNAL_ERROR_CODES = frozenset({500, 502})


@dataclass(frozen=True)
class ResponseFacts:
    """What the classifier is allowed to look at for one attempt."""

    url: str
    status_code: int
    peek: str = ""
    reason: str = ""
    location: str | None = None


Predicate = Callable[[ResponseFacts], bool]
OutcomeFactory = Callable[[ResponseFacts], Outcome]


def status_in(codes: frozenset[int]) -> Predicate:
    return lambda facts: facts.status_code in codes


CLASSIFICATION_RULES: tuple[tuple[Predicate, OutcomeFactory], ...] = (
    (status_in(OK_CODES), lambda f: detect_anomaly(f.url, f.peek)),
    (status_in(BLOCKED_CODES), lambda f: Blocked(f.peek)),
    (status_in(NOT_FOUND_CODES), lambda f: NotFound(f.peek)),
    (status_in(REDIRECT_CODES), lambda f: RedirectDetected(resolve_url(f.url, f.location))),
    (status_in(INTERNAL_ERROR_CODES), lambda f: InternalError(f.peek)),
)


def classify(facts: ResponseFacts) -> Outcome:
    """Return the outcome of the first matching rule."""
    for predicate, outcome in CLASSIFICATION_RULES:
        if predicate(facts):
            return outcome(facts)
    reason = f" {facts.reason}" if facts.reason else ""
    return TransportFailure(f"got response: {facts.status_code}{reason}: {facts.url}")


def outcome_to_error(outcome: Outcome, facts: ResponseFacts) -> ScrapeError | None:
    """Translate a failure outcome into its typed error; None for Success."""
    if isinstance(outcome, Success):
        return None
    if isinstance(outcome, RedirectDetected):
        return UnexpectedRedirectError(facts.url, outcome.target, body_peek=facts.peek)
    if isinstance(outcome, SessionExpired):
        return SessionExpiredError(facts.url, body_peek=facts.peek)
    if isinstance(outcome, InternalError):
        return InternalServerError(facts.url, body_peek=outcome.detail)
    if isinstance(outcome, Blocked):
        return BlockedError(facts.url, body_peek=outcome.detail)
    if isinstance(outcome, NotFound):
        return NotFoundError(facts.url, body_peek=outcome.detail)
    if isinstance(outcome, TransportFailure):
        return TransportError(facts.url, outcome.detail, body_peek=facts.peek, status_code=facts.status_code)
    raise TypeError(f"unknown outcome {outcome!r}")


__all__ = [
    "BLOCKED_CODES",
    "CLASSIFICATION_RULES",
    "INTERNAL_ERROR_CODES",
    "NOT_FOUND_CODES",
    "OK_CODES",
    "REDIRECT_CODES",
    "ResponseFacts",
    "classify",
    "outcome_to_error",
]

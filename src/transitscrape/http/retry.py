# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Bounded retry helper for fetch attempts."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import TypeVar

from ..config import load_scrape_settings
from ..errors import TransportError
from .models import RetryPolicy

logger = logging.getLogger(__name__)

T = TypeVar("T")


def build_default_retry_policy() -> RetryPolicy:
    """Create a RetryPolicy from environment-backed ScrapeSettings."""
    return RetryPolicy.from_settings(load_scrape_settings())


def is_retryable(exc: BaseException) -> bool:
    """Only transport-level failures flagged retryable are worth another attempt."""
    return isinstance(exc, TransportError) and exc.retryable


def run_with_retries(
    attempt: Callable[[int], T],
    *,
    policy: RetryPolicy | None = None,
) -> T:
    """
    Call ``attempt(n)`` until it returns, raises a terminal error, or the budget is spent.

    Both the attempt count and the wall-clock budget are hard bounds. The last
    error is re-raised unchanged once either runs out.
    """
    cfg = policy or build_default_retry_policy()
    max_attempts = max(1, cfg.max_attempts)
    deadline = time.monotonic() + cfg.budget_seconds if cfg.budget_seconds and cfg.budget_seconds > 0 else None
    delay = cfg.initial_delay

    number = 0
    while True:
        number += 1
        try:
            return attempt(number)
        except TransportError as exc:
            if not is_retryable(exc) or number >= max_attempts:
                raise
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    logger.info("Retry budget exhausted for %s", exc.url)
                    raise
                delay_to_sleep = min(delay, remaining)
            else:
                delay_to_sleep = delay
            logger.info("%s, retrying (%d/%d)...", exc, number + 1, max_attempts)
            if delay_to_sleep > 0:
                time.sleep(delay_to_sleep)
            delay *= cfg.backoff_factor


__all__ = ["build_default_retry_policy", "is_retryable", "run_with_retries"]

# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Single-slot session cookie tracking."""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, MutableMapping

from .models import SessionCookie

logger = logging.getLogger(__name__)


def parse_set_cookie(line: str) -> SessionCookie | None:
    """
    Parse the name and value of one ``Set-Cookie`` header line.

    Attributes (path, expires, ...) are kept only in ``raw``.
    """
    if not line:
        return None
    pair = line.split(";", 1)[0]
    name, sep, value = pair.partition("=")
    name = name.strip()
    if not sep or not name:
        return None
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] == '"':
        value = value[1:-1]
    return SessionCookie(name=name, value=value, raw=line.strip())


class SessionTracker:
    """
    Holds at most one cookie, the one named ``cookie_name``.

    Reads and writes go through a lock so concurrent fetches on one client never
    see a half-replaced cookie; the last writer wins.
    """

    def __init__(self, cookie_name: str | None = None):
        self._lock = threading.Lock()
        self._cookie_name = cookie_name
        self._cookie: SessionCookie | None = None

    @property
    def cookie_name(self) -> str | None:
        return self._cookie_name

    @cookie_name.setter
    def cookie_name(self, name: str | None) -> None:
        with self._lock:
            self._cookie_name = name

    @property
    def cookie(self) -> SessionCookie | None:
        with self._lock:
            return self._cookie

    def observe(self, set_cookie_headers: Iterable[str]) -> SessionCookie | None:
        """Store the first cookie, in response order, whose name matches."""
        with self._lock:
            name = self._cookie_name
            if not name:
                return None
            for line in set_cookie_headers:
                cookie = parse_set_cookie(line)
                if cookie is not None and cookie.name == name:
                    self._cookie = cookie
                    logger.debug("Tracking session cookie %s", name)
                    return cookie
        return None

    def attach(self, headers: MutableMapping[str, str]) -> bool:
        """Add a ``Cookie`` header when the stored cookie still has the configured name."""
        with self._lock:
            cookie = self._cookie
            if cookie is None or cookie.name != self._cookie_name:
                return False
            headers["Cookie"] = cookie.wire
            return True

    def clear(self) -> None:
        with self._lock:
            self._cookie = None


__all__ = ["SessionTracker", "parse_set_cookie"]

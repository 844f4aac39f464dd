# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""URL helpers shared by the classifier and the anomaly detector."""

from __future__ import annotations

from urllib.parse import urljoin


def resolve_url(base_url: str, target: str | None) -> str | None:
    """
    Resolve a relative or absolute redirect target against the request URL.

    Example:
      resolve_url("http://x/a", "/next") -> "http://x/next"
    """
    if target is None:
        return None
    target = target.strip()
    if not target:
        return None
    return urljoin(str(base_url or ""), target)


__all__ = ["resolve_url"]

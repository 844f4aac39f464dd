# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Header utilities.

HTTP header field names are case-insensitive (RFC 9110). Request headers are
assembled from several layers (client defaults, per-call headers, fixed scrape
headers), so merging has to respect that or a default could shadow a per-call
value that differs only in case.
"""

from __future__ import annotations

from collections.abc import Mapping


def merge_headers(*layers: Mapping[str, str] | None) -> dict[str, str]:
    """
    Merge header mappings; later layers win, case-insensitively.

    The casing of the winning layer is kept.
    """
    merged: dict[str, str] = {}
    for layer in layers:
        if not layer:
            continue
        for key, value in layer.items():
            if key is None or value is None:
                continue
            lower = str(key).lower()
            for existing in [k for k in merged if k.lower() == lower]:
                del merged[existing]
            merged[str(key)] = str(value)
    return merged


def parse_content_type(value: str | None) -> tuple[str, dict[str, str]]:
    """
    Split a Content-Type value into a lowercase mime type and its parameters.

    ``text/xml; charset="UTF-8"`` -> ``("text/xml", {"charset": "UTF-8"})``
    """
    if not value:
        return "", {}
    parts = value.split(";")
    mime = parts[0].strip().lower()
    params: dict[str, str] = {}
    for part in parts[1:]:
        key, sep, raw = part.partition("=")
        if not sep:
            continue
        params[key.strip().lower()] = raw.strip().strip('"').strip("'")
    return mime, params


def content_type_charset(value: str | None) -> str | None:
    _, params = parse_content_type(value)
    return params.get("charset") or None


__all__ = ["content_type_charset", "merge_headers", "parse_content_type"]

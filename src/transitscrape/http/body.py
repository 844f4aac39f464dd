# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Verified response bodies handed to callers."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field

from .models import Headers

DEFAULT_TEXT_ENCODING = "utf-8"


def _decode(content: bytes, encoding: str | None) -> str:
    try:
        return content.decode(encoding or DEFAULT_TEXT_ENCODING, errors="replace")
    except LookupError:
        return content.decode(DEFAULT_TEXT_ENCODING, errors="replace")


class ResponseBody:
    """
    Readable, decompressed body of a successful response.

    Only valid inside the fetch callback; the underlying connection is released
    as soon as the callback returns.
    """

    def __init__(
        self,
        chunks: Iterator[bytes],
        *,
        url: str,
        status_code: int,
        headers: Headers,
        content_type: str | None,
        encoding: str | None,
    ):
        self._chunks = chunks
        self._buffer = bytearray()
        self._exhausted = False
        self.url = url
        self.status_code = status_code
        self.headers = headers
        self.content_type = content_type
        self.encoding = encoding

    def _fill(self, size: int) -> None:
        while not self._exhausted and (size < 0 or len(self._buffer) < size):
            chunk = next(self._chunks, None)
            if chunk is None:
                self._exhausted = True
                break
            self._buffer.extend(chunk)

    def read(self, size: int = -1) -> bytes:
        """Read up to ``size`` bytes, or everything left when ``size`` is negative."""
        self._fill(size)
        if size < 0 or size >= len(self._buffer):
            data = bytes(self._buffer)
            self._buffer.clear()
            return data
        data = bytes(self._buffer[:size])
        del self._buffer[:size]
        return data

    def iter_bytes(self) -> Iterator[bytes]:
        if self._buffer:
            data = bytes(self._buffer)
            self._buffer.clear()
            yield data
        if self._exhausted:
            return
        for chunk in self._chunks:
            if chunk:
                yield chunk
        self._exhausted = True

    def content(self) -> bytes:
        return self.read()

    def text(self) -> str:
        return _decode(self.read(), self.encoding)


@dataclass
class FetchedResponse:
    """Fully read result of :meth:`ScrapeClient.fetch_bytes`."""

    url: str
    status_code: int
    content: bytes
    content_type: str | None = None
    encoding: str | None = None
    body_peek: str = ""
    headers: Headers = field(default_factory=dict)

    @property
    def text(self) -> str:
        return _decode(self.content, self.encoding)


__all__ = ["FetchedResponse", "ResponseBody"]

# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Body normalisation: gzip layers, XML charset sniffing and peek decoding.

Everything here is either a pure function or a generator over raw byte chunks,
so the orchestrator composes it explicitly instead of hiding it in transport
hooks.
"""

from __future__ import annotations

import codecs
import logging
import re
import unicodedata
import zlib
from collections.abc import Iterable, Iterator

from ..errors import ContentDecodingError
from .headers import content_type_charset, parse_content_type

logger = logging.getLogger(__name__)

GZIP_MAGIC = b"\x1f\x8b"
XML_PRAGMA_PEEK_SIZE = 64

_XML_CONTENT_TYPES = frozenset({"text/xml", "application/xml"})
_XML_PRAGMA_RE = re.compile(rb"<\?xml[^>]*?encoding=[\"']([A-Za-z0-9._:-]+)[\"'][^>]*?\?>")


def peek_prefix(chunks: Iterable[bytes], size: int) -> tuple[bytes, Iterator[bytes]]:
    """
    Read at least ``size`` bytes (or everything) from ``chunks`` without losing them.

    Returns the bytes read and an iterator that replays them before the rest.
    """
    iterator = iter(chunks)
    buffered: list[bytes] = []
    total = 0
    while total < size:
        chunk = next(iterator, None)
        if chunk is None:
            break
        if chunk:
            buffered.append(chunk)
            total += len(chunk)
    head = b"".join(buffered)

    def replay() -> Iterator[bytes]:
        if head:
            yield head
        yield from iterator

    return head, replay()


def gunzip_chunks(chunks: Iterable[bytes], *, url: str = "") -> Iterator[bytes]:
    """Decompress one gzip layer, including concatenated members."""
    decompressor = zlib.decompressobj(16 + zlib.MAX_WBITS)
    trailing = False
    try:
        for chunk in chunks:
            while chunk and not trailing:
                if decompressor.eof:
                    # Anything after a member is either another member or trailing junk.
                    if not chunk.startswith(GZIP_MAGIC[: len(chunk)]):
                        logger.debug("Ignoring trailing bytes after gzip stream")
                        trailing = True
                        break
                    decompressor = zlib.decompressobj(16 + zlib.MAX_WBITS)
                data = decompressor.decompress(chunk)
                if data:
                    yield data
                chunk = decompressor.unused_data if decompressor.eof else b""
        tail = decompressor.flush()
        if tail:
            yield tail
    except zlib.error as exc:
        raise ContentDecodingError(url, f"corrupt gzip stream: {exc}") from exc
    if not decompressor.eof:
        raise ContentDecodingError(url, "truncated gzip stream")


def is_gzip_candidate(content_encoding: str | None, content_type: str | None) -> bool:
    """Declared gzip, or an octet-stream that commonly hides gzip."""
    mime, _ = parse_content_type(content_type)
    return (content_encoding or "").strip().lower() == "gzip" or mime == "application/octet-stream"


def normalize_compression(
    chunks: Iterable[bytes],
    *,
    content_encoding: str | None = None,
    content_type: str | None = None,
    url: str = "",
) -> Iterator[bytes]:
    """
    Undo gzip compression on a raw body stream.

    The magic header is sniffed before each layer: at most two layers are removed
    (double-gzipped bodies occur in the wild), never more. Bodies without the
    magic pass through untouched.
    """
    stream: Iterator[bytes] = iter(chunks)
    if not is_gzip_candidate(content_encoding, content_type):
        return stream
    for layer in (1, 2):
        head, stream = peek_prefix(stream, len(GZIP_MAGIC))
        if not head.startswith(GZIP_MAGIC):
            break
        if layer == 2:
            logger.debug("Body is double gzipped: %s", url)
        stream = gunzip_chunks(stream, url=url)
    return stream


def sniff_xml_encoding(prefix: bytes) -> str | None:
    """Return the ``encoding`` of a leading ``<?xml ...?>`` declaration, if any."""
    match = _XML_PRAGMA_RE.search(prefix[:XML_PRAGMA_PEEK_SIZE])
    if not match:
        return None
    return match.group(1).decode("ascii")


def effective_content_type(prefix: bytes, declared: str | None) -> str | None:
    """
    Derive a charset for XML bodies that do not declare one.

    ``(b'<?xml version="1.0" encoding="ISO-8859-1"?>', "text/xml")``
    -> ``"text/xml; charset=ISO-8859-1"``. Other inputs come back unchanged.
    """
    mime, params = parse_content_type(declared)
    if mime not in _XML_CONTENT_TYPES or params.get("charset"):
        return declared
    encoding = sniff_xml_encoding(prefix)
    if not encoding:
        return declared
    logger.debug("Deriving missing %s encoding from XML pragma", encoding)
    return f"{str(declared).strip().rstrip(';')}; charset={encoding}"


def resolve_encoding(content_type: str | None) -> str | None:
    """Return the declared charset if Python knows it."""
    charset = content_type_charset(content_type)
    if not charset:
        return None
    try:
        return codecs.lookup(charset).name
    except LookupError:
        logger.debug("Unknown charset %r, ignoring", charset)
        return None


def strip_control_chars(text: str) -> str:
    """Drop every Unicode "other" (C*) character, newlines and tabs included."""
    return "".join(ch for ch in text if not unicodedata.category(ch).startswith("C"))


def decode_peek(prefix: bytes, encoding: str | None, size: int) -> str:
    """Decode the first ``size`` bytes for classification only."""
    raw = prefix[:size]
    try:
        text = raw.decode(encoding or "utf-8", errors="replace")
    except LookupError:
        text = raw.decode("utf-8", errors="replace")
    return strip_control_chars(text)


__all__ = [
    "GZIP_MAGIC",
    "decode_peek",
    "effective_content_type",
    "gunzip_chunks",
    "is_gzip_candidate",
    "normalize_compression",
    "peek_prefix",
    "resolve_encoding",
    "sniff_xml_encoding",
    "strip_control_chars",
]

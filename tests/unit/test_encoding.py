# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

import gzip

import pytest

from transitscrape.errors import ContentDecodingError
from transitscrape.http.encoding import (
    decode_peek,
    effective_content_type,
    normalize_compression,
    peek_prefix,
    resolve_encoding,
    sniff_xml_encoding,
    strip_control_chars,
)

PAGE = b"<html><body>Abfahrt 12:05</body></html>"


def _normalize(data, *, encoding="gzip", content_type=None, chunk=7):
    chunks = [data[i : i + chunk] for i in range(0, len(data), chunk)]
    return b"".join(normalize_compression(chunks, content_encoding=encoding, content_type=content_type))


def test_single_gzip_layer_is_removed():
    assert _normalize(gzip.compress(PAGE)) == PAGE


def test_double_gzip_is_removed_twice():
    assert _normalize(gzip.compress(gzip.compress(PAGE))) == PAGE


def test_triple_gzip_stops_after_two_layers():
    once = gzip.compress(PAGE)
    assert _normalize(gzip.compress(gzip.compress(once))) == once


def test_body_without_magic_passes_through_unchanged():
    assert _normalize(PAGE) == PAGE
    assert _normalize(b"") == b""


def test_octet_stream_is_sniffed_without_content_encoding():
    assert _normalize(gzip.compress(PAGE), encoding=None, content_type="application/octet-stream") == PAGE


def test_undeclared_gzip_is_left_alone():
    data = gzip.compress(PAGE)
    assert _normalize(data, encoding=None, content_type="text/html") == data


def test_concatenated_gzip_members():
    data = gzip.compress(b"<html>") + gzip.compress(b"</html>")
    assert _normalize(data, chunk=3) == b"<html></html>"


def test_corrupt_gzip_raises_content_decoding_error():
    data = b"\x1f\x8b" + b"\x00" * 20
    with pytest.raises(ContentDecodingError):
        _normalize(data)


def test_truncated_gzip_raises_content_decoding_error():
    data = gzip.compress(PAGE * 50)
    with pytest.raises(ContentDecodingError) as exc_info:
        _normalize(data[: len(data) // 2])
    assert exc_info.value.retryable is True


def test_peek_prefix_replays_consumed_bytes():
    head, rest = peek_prefix(iter([b"ab", b"", b"cd", b"ef"]), 3)
    assert head == b"abcd"
    assert b"".join(rest) == b"abcdef"


def test_xml_charset_is_derived_from_pragma():
    prefix = b'<?xml version="1.0" encoding="ISO-8859-1"?><efa/>'
    assert sniff_xml_encoding(prefix) == "ISO-8859-1"
    assert effective_content_type(prefix, "text/xml") == "text/xml; charset=ISO-8859-1"
    assert effective_content_type(prefix, "application/xml;") == "application/xml; charset=ISO-8859-1"


def test_xml_charset_left_alone_when_declared_or_not_xml():
    prefix = b'<?xml version="1.0" encoding="ISO-8859-1"?><efa/>'
    assert effective_content_type(prefix, "text/xml; charset=UTF-8") == "text/xml; charset=UTF-8"
    assert effective_content_type(prefix, "text/html") == "text/html"
    assert effective_content_type(b"<efa/>", "text/xml") == "text/xml"
    assert effective_content_type(prefix, None) is None


def test_xml_pragma_outside_prefix_is_ignored():
    prefix = b" " * 60 + b'<?xml version="1.0" encoding="ISO-8859-1"?>'
    assert sniff_xml_encoding(prefix) is None


def test_resolve_encoding_normalizes_known_charsets():
    assert resolve_encoding("text/html; charset=ISO-8859-1") == "iso8859-1"
    assert resolve_encoding("text/html; charset=no-such-charset") is None
    assert resolve_encoding("text/html") is None


def test_peek_strips_control_characters_and_survives_truncation():
    assert strip_control_chars("a\r\n\tb\x00c\u200bd") == "abcd"
    text = "<p>Grüße</p>".encode("utf-8")
    assert decode_peek(text[:-6], "utf-8", 8192).startswith("<p>Gr")
    assert decode_peek(PAGE, None, 6) == "<html>"
    assert decode_peek(PAGE, "bogus-charset", 6) == "<html>"

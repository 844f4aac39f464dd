# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
httpx transport construction.

A single pooled ``httpx.Client`` is shared by every ScrapeClient that has no
hardening options. Proxy, trust-all and certificate pinning each force a
one-off client that copies the shared base settings and adds the overrides;
the caller closes it after the request. Pins are checked as soon as the TLS
handshake completes, before the request is written.
"""

from __future__ import annotations

import base64
import hashlib
import logging
import ssl
import threading
from collections.abc import Callable, Mapping, Sequence
from http.cookiejar import CookieJar, DefaultCookiePolicy
from typing import Any

import httpx

from ..config import ScrapeSettings, load_scrape_settings
from ..errors import CertificatePinningError

logger = logging.getLogger(__name__)

PIN_PREFIX = "sha256/"

_CLIENT_LOCK = threading.RLock()
_SHARED_CLIENT: httpx.Client | None = None


def build_timeout(settings: ScrapeSettings) -> httpx.Timeout:
    return httpx.Timeout(
        connect=settings.connect_timeout,
        read=settings.read_timeout,
        write=settings.write_timeout,
        pool=settings.pool_timeout,
    )


def build_limits(settings: ScrapeSettings) -> httpx.Limits:
    return httpx.Limits(
        max_connections=max(1, settings.max_connections),
        max_keepalive_connections=max(0, settings.max_keepalive_connections),
    )


def _cookieless_jar() -> CookieJar:
    # The session tracker owns cookies; httpx must neither store nor replay any.
    return CookieJar(policy=DefaultCookiePolicy(allowed_domains=[]))


def disable_cookie_storage(client: httpx.Client) -> httpx.Client:
    """Swap an externally built client's jar for one that stores nothing."""
    if len(client.cookies.jar):
        logger.debug("Dropping %d cookies held by the injected client", len(client.cookies.jar))
    client.cookies = _cookieless_jar()
    return client


def _log_response(response: httpx.Response) -> None:
    request = response.request
    logger.debug("%s %s -> %s", request.method, request.url, response.status_code)


def create_http_client(
    settings: ScrapeSettings,
    *,
    proxy: str | None = None,
    verify: bool = True,
    certificate_pins: Mapping[str, Sequence[str]] | None = None,
    transport: httpx.BaseTransport | None = None,
) -> httpx.Client:
    """Build an httpx client with the scrape base settings and optional overrides."""
    request_hooks: list[Callable[[httpx.Request], Any]] = []
    response_hooks: list[Callable[[httpx.Response], Any]] = [_log_response]
    if certificate_pins:
        attach_verifier, confirm_verified = make_pin_hooks(certificate_pins)
        request_hooks.append(attach_verifier)
        response_hooks.insert(0, confirm_verified)
    kwargs: dict[str, Any] = {
        "timeout": build_timeout(settings),
        "limits": build_limits(settings),
        "follow_redirects": False,
        "verify": verify,
        "cookies": _cookieless_jar(),
        "event_hooks": {"request": request_hooks, "response": response_hooks},
    }
    if proxy:
        kwargs["proxy"] = proxy
    if transport is not None:
        kwargs["transport"] = transport
    return httpx.Client(**kwargs)


def get_shared_http_client(settings: ScrapeSettings | None = None) -> httpx.Client:
    """Return the process-wide pooled client, creating it on first use."""
    global _SHARED_CLIENT
    with _CLIENT_LOCK:
        if _SHARED_CLIENT is None or _SHARED_CLIENT.is_closed:
            _SHARED_CLIENT = create_http_client(settings or load_scrape_settings())
        return _SHARED_CLIENT


def close_shared_http_client() -> None:
    global _SHARED_CLIENT
    with _CLIENT_LOCK:
        if _SHARED_CLIENT is not None:
            _SHARED_CLIENT.close()
        _SHARED_CLIENT = None


def derive_http_client(
    settings: ScrapeSettings,
    *,
    proxy: str | None = None,
    trust_all_certificates: bool = False,
    certificate_pins: Mapping[str, Sequence[str]] | None = None,
) -> httpx.Client:
    """One-off client for a hardened request. Connection reuse is given up."""
    logger.debug(
        "Deriving dedicated transport (proxy=%s, trust_all=%s, pinned_hosts=%s)",
        bool(proxy),
        trust_all_certificates,
        sorted(certificate_pins or {}),
    )
    if trust_all_certificates:
        logger.warning("Certificate validation disabled; use for diagnostics only")
    return create_http_client(
        settings,
        proxy=proxy,
        verify=not trust_all_certificates,
        certificate_pins=certificate_pins,
    )


def normalize_pin(pin: str) -> str:
    """Validate a ``sha256/<base64>`` pin and return it stripped."""
    value = str(pin or "").strip()
    if not value.startswith(PIN_PREFIX):
        raise ValueError(f"pins must start with {PIN_PREFIX!r}: {pin!r}")
    try:
        digest = base64.b64decode(value[len(PIN_PREFIX):], validate=True)
    except ValueError as exc:
        raise ValueError(f"pin is not valid base64: {pin!r}") from exc
    if len(digest) != hashlib.sha256().digest_size:
        raise ValueError(f"pin is not a SHA-256 digest: {pin!r}")
    return value


def spki_pin(der_certificate: bytes) -> str:
    """Return the ``sha256/`` pin of a DER certificate's SubjectPublicKeyInfo."""
    from cryptography import x509
    from cryptography.hazmat.primitives import serialization

    certificate = x509.load_der_x509_certificate(der_certificate)
    spki = certificate.public_key().public_bytes(
        serialization.Encoding.DER,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    return PIN_PREFIX + base64.b64encode(hashlib.sha256(spki).digest()).decode("ascii")


def pins_for_host(certificate_pins: Mapping[str, Sequence[str]], host: str) -> list[str]:
    """Collect pins for ``host``; ``*.example.com`` covers exactly one extra label."""
    host = host.lower().rstrip(".")
    pins: list[str] = []
    for pattern, values in certificate_pins.items():
        pattern = pattern.lower().rstrip(".")
        if pattern.startswith("*."):
            suffix = pattern[1:]
            matched = host.endswith(suffix) and "." not in host[: -len(suffix)]
        else:
            matched = host == pattern
        if matched:
            pins.extend(values)
    return pins


def _peer_certificates(ssl_object: Any) -> list[bytes]:
    """Leaf first, then whatever verified chain the TLS object exposes."""
    certificates: list[bytes] = []
    leaf = ssl_object.getpeercert(True)
    if leaf:
        certificates.append(bytes(leaf))
    get_chain = getattr(ssl_object, "get_verified_chain", None)
    if callable(get_chain):
        try:
            chain = get_chain() or []
        except (ssl.SSLError, ValueError):
            chain = []
        for cert in chain:
            der = bytes(cert) if isinstance(cert, (bytes, bytearray)) else ssl.PEM_cert_to_DER_cert(cert.public_bytes())
            if der not in certificates:
                certificates.append(der)
    return certificates


TLS_ESTABLISHED_SUFFIX = ".start_tls.complete"


class PinVerifier:
    """
    httpx ``trace`` extension that checks certificate pins as each TLS
    handshake completes.

    httpcore reports ``connection.start_tls.complete`` (``proxy.start_tls.complete``
    for tunnelled connections) right after the handshake and before any request
    byte is written. Raising there aborts the request, so a peer that matches
    none of the pins never sees headers, cookies or a body. Handshakes with a
    host that has no pins (an HTTPS proxy, for instance) pass through.
    """

    def __init__(
        self,
        certificate_pins: Mapping[str, Sequence[str]],
        url: httpx.URL,
        inner: Callable[[str, dict], Any] | None = None,
    ):
        self.certificate_pins = certificate_pins
        self.url = url
        self.inner = inner
        self.verified_hosts: set[str] = set()

    def __call__(self, event_name: str, info: dict) -> None:
        if self.inner is not None:
            self.inner(event_name, info)
        if not event_name.endswith(TLS_ESTABLISHED_SUFFIX):
            return
        stream = info.get("return_value")
        ssl_object = stream.get_extra_info("ssl_object") if stream is not None else None
        if ssl_object is None:
            return
        try:
            self.check(ssl_object)
        except CertificatePinningError:
            stream.close()
            raise

    def check(self, ssl_object: Any) -> None:
        host = (getattr(ssl_object, "server_hostname", None) or self.url.host).lower()
        expected = pins_for_host(self.certificate_pins, host)
        if not expected:
            return
        seen = [spki_pin(der) for der in _peer_certificates(ssl_object)]
        if not set(seen) & set(expected):
            raise CertificatePinningError(
                str(self.url),
                f"certificate pinning failure for {host}: peer pins {seen} match none of {expected}",
            )
        logger.debug("Certificate pin verified for %s", host)
        self.verified_hosts.add(host)

    def require_verified(self) -> None:
        """Fail closed when a pinned https host was reached without a checked handshake."""
        host = self.url.host.lower()
        if self.url.scheme != "https" or not pins_for_host(self.certificate_pins, host):
            return
        if host not in self.verified_hosts:
            raise CertificatePinningError(str(self.url), f"no TLS handshake was verified for {host}")


def make_pin_hooks(
    certificate_pins: Mapping[str, Sequence[str]],
) -> tuple[Callable[[httpx.Request], None], Callable[[httpx.Response], None]]:
    """Request hook that installs a PinVerifier, and the response hook that confirms it ran."""
    pins = {host: list(values) for host, values in certificate_pins.items()}

    def _attach_verifier(request: httpx.Request) -> None:
        inner = request.extensions.get("trace")
        request.extensions = {**request.extensions, "trace": PinVerifier(pins, request.url, inner)}

    def _confirm_verified(response: httpx.Response) -> None:
        verifier = response.request.extensions.get("trace")
        if isinstance(verifier, PinVerifier):
            verifier.require_verified()

    return _attach_verifier, _confirm_verified


__all__ = [
    "PIN_PREFIX",
    "build_limits",
    "build_timeout",
    "close_shared_http_client",
    "create_http_client",
    "derive_http_client",
    "get_shared_http_client",
    "PinVerifier",
    "disable_cookie_storage",
    "make_pin_hooks",
    "normalize_pin",
    "pins_for_host",
    "spki_pin",
]

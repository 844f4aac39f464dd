# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Scraping fetch orchestrator.

``ScrapeClient.fetch`` sends a request, classifies the outcome (status code
first, then anomalies in the body peek), updates the tracked session cookie on
success and hands the verified body to a callback while the response is still
open. Failures surface as exactly one typed ``ScrapeError``; only retryable
``TransportError``s are attempted again, within a fixed budget.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TypeVar

import httpx

from ..config import SCRAPE_ACCEPT, ScrapeSettings, load_scrape_settings
from ..errors import ContentDecodingError, EmptyResponseError, ScrapeError, TransportError
from .body import FetchedResponse, ResponseBody
from .classify import OK_CODES, ResponseFacts, classify, outcome_to_error
from .encoding import (
    decode_peek,
    effective_content_type,
    normalize_compression,
    peek_prefix,
    resolve_encoding,
)
from .headers import content_type_charset, merge_headers
from .models import FetchRequest, Headers, RetryPolicy
from .retry import run_with_retries
from .session import SessionTracker
from .transport import derive_http_client, disable_cookie_storage, get_shared_http_client, normalize_pin

logger = logging.getLogger(__name__)

T = TypeVar("T")

BodyCallback = Callable[[str, ResponseBody], T]


class ScrapeClient:
    """
    Client for fragile, non-REST endpoints.

    Configuration (user agent, default headers, session cookie name, proxy,
    trust-all, certificate pins) is meant to be set once before the first fetch.
    Fetches may run concurrently from several threads; the shared httpx pool is
    thread-safe and the session cookie slot is lock-guarded. An injected
    ``http_client`` has its cookie jar replaced by one that stores nothing.
    """

    def __init__(self, settings: ScrapeSettings | None = None, http_client: httpx.Client | None = None):
        self.settings = settings or load_scrape_settings()
        self._http_client = disable_cookie_storage(http_client) if http_client is not None else None
        self.user_agent: str | None = self.settings.user_agent
        self.headers: Headers = {}
        self.session = SessionTracker(self.settings.session_cookie_name)
        self.proxy: str | None = self.settings.proxy
        self.trust_all_certificates: bool = self.settings.trust_all_certificates
        self.certificate_pins: dict[str, list[str]] = {}
        for host, pins in self.settings.certificate_pins.items():
            self.set_certificate_pin(host, *pins)
        self.retry_policy = RetryPolicy.from_settings(self.settings)

    def set_user_agent(self, user_agent: str | None) -> None:
        self.user_agent = user_agent

    def set_header(self, name: str, value: str) -> None:
        self.headers[name] = value

    def set_session_cookie_name(self, name: str | None) -> None:
        self.session.cookie_name = name

    def set_proxy(self, proxy: str | None) -> None:
        self.proxy = proxy

    def set_trust_all_certificates(self, trust_all: bool) -> None:
        self.trust_all_certificates = trust_all

    def set_certificate_pin(self, host: str, *hashes: str) -> None:
        if not host or not hashes:
            raise ValueError("a certificate pin needs a host and at least one hash")
        self.certificate_pins[host.lower()] = [normalize_pin(h) for h in hashes]

    @property
    def hardened(self) -> bool:
        return bool(self.proxy or self.trust_all_certificates or self.certificate_pins)

    def fetch(self, request: FetchRequest | str, callback: BodyCallback[T]) -> T:
        """
        Fetch ``request`` and return ``callback(body_peek, body)``.

        The callback runs while the response is open; the connection is released
        when it returns or raises.
        """
        if isinstance(request, str):
            request = FetchRequest(url=request)
        logger.debug("%s: %s", request.method, request.url)
        return run_with_retries(
            lambda number: self._attempt(request, callback, number),
            policy=self.retry_policy,
        )

    def fetch_bytes(self, request: FetchRequest | str) -> FetchedResponse:
        """Fetch and fully read a verified body."""

        def _collect(body_peek: str, body: ResponseBody) -> FetchedResponse:
            return FetchedResponse(
                url=body.url,
                status_code=body.status_code,
                content=body.content(),
                content_type=body.content_type,
                encoding=body.encoding,
                body_peek=body_peek,
                headers=body.headers,
            )

        return self.fetch(request, _collect)

    def get(
        self,
        url: str,
        *,
        body: str | bytes | None = None,
        content_type: str | None = None,
        referer: str | None = None,
    ) -> str:
        """Fetch a page and return its text."""
        request = FetchRequest(url=url, body=body, content_type=content_type, referer=referer)
        return self.fetch(request, lambda _peek, response_body: response_body.text())

    def build_headers(self, request: FetchRequest) -> Headers:
        """Default headers, fixed scrape headers, then per-call values, then the session cookie."""
        layers: list[Headers | None] = [
            self.headers,
            {"Accept": SCRAPE_ACCEPT, "Accept-Encoding": "gzip"},
            {"User-Agent": self.user_agent} if self.user_agent else None,
            dict(request.headers),
            {"User-Agent": request.user_agent} if request.user_agent else None,
            {"Referer": request.referer} if request.referer else None,
            {"Content-Type": request.content_type} if request.body is not None and request.content_type else None,
        ]
        cookie: Headers = {}
        self.session.attach(cookie)
        return merge_headers(*layers, cookie)

    def _encode_body(self, request: FetchRequest) -> bytes | None:
        if request.body is None or isinstance(request.body, bytes):
            return request.body
        charset = content_type_charset(request.content_type) or "utf-8"
        return request.body.encode(charset)

    def _select_transport(self) -> tuple[httpx.Client, bool]:
        """Return (client, owned). Owned clients are one-off and closed after use."""
        if self.hardened:
            return (
                derive_http_client(
                    self.settings,
                    proxy=self.proxy,
                    trust_all_certificates=self.trust_all_certificates,
                    certificate_pins=self.certificate_pins,
                ),
                True,
            )
        if self._http_client is not None:
            return self._http_client, False
        return get_shared_http_client(self.settings), False

    def _attempt(self, request: FetchRequest, callback: BodyCallback[T], number: int) -> T:
        client, owned = self._select_transport()
        delivered = False

        def _deliver(body_peek: str, body: ResponseBody) -> T:
            nonlocal delivered
            delivered = True
            return callback(body_peek, body)

        try:
            with client.stream(
                request.method,
                request.url,
                headers=self.build_headers(request),
                content=self._encode_body(request),
            ) as response:
                return self._handle_response(request, response, _deliver)
        except ScrapeError as exc:
            if delivered and isinstance(exc, TransportError):
                # The caller already saw part of the body; another attempt would replay it.
                exc.retryable = False
            raise
        except httpx.HTTPError as exc:
            raise TransportError(
                request.url,
                f"{type(exc).__name__} on attempt {number}: {exc}",
                retryable=not delivered,
            ) from exc
        except httpx.InvalidURL as exc:
            raise TransportError(request.url, f"invalid URL: {exc}", retryable=False) from exc
        finally:
            if owned:
                client.close()

    def _handle_response(
        self,
        request: FetchRequest,
        response: httpx.Response,
        deliver: Callable[[str, ResponseBody], T],
    ) -> T:
        url = request.url
        declared_type = response.headers.get("content-type")
        try:
            chunks = normalize_compression(
                response.iter_raw(),
                content_encoding=response.headers.get("content-encoding"),
                content_type=declared_type,
                url=url,
            )
            head, chunks = peek_prefix(chunks, self.settings.peek_size)
        except ContentDecodingError:
            if response.status_code in OK_CODES:
                raise
            # The status alone decides a failure response; its body is only detail.
            logger.debug("Undecodable body on %s response from %s", response.status_code, url)
            head, chunks = b"", iter(())
        content_type = effective_content_type(head, declared_type)
        encoding = resolve_encoding(content_type)
        facts = ResponseFacts(
            url=url,
            status_code=response.status_code,
            peek=decode_peek(head, encoding, self.settings.peek_size),
            reason=response.reason_phrase,
            location=response.headers.get("location"),
        )

        error = outcome_to_error(classify(facts), facts)
        if error is not None:
            raise error
        if not head and self.settings.retry_empty_body:
            raise EmptyResponseError(url, f"got empty response: {url}")

        self.session.observe(response.headers.get_list("set-cookie"))

        body = ResponseBody(
            chunks,
            url=str(response.url),
            status_code=response.status_code,
            headers=dict(response.headers),
            content_type=content_type,
            encoding=encoding,
        )
        return deliver(facts.peek, body)

    def close(self) -> None:
        """Release an injected client. The shared pool stays open for other clients."""
        if self._http_client is not None:
            self._http_client.close()

    def __enter__(self) -> ScrapeClient:
        return self

    def __exit__(self, _exc_type, _exc, _tb) -> None:  # noqa: ANN001
        self.close()


__all__ = ["BodyCallback", "ScrapeClient"]

# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Programmable httpx transports that replay canned responses in tests."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field

import httpx

from transitscrape.config import ScrapeSettings
from transitscrape.http.transport import create_http_client


@dataclass
class StubResponse:
    """
    Canned response. Built fresh for every request and never pre-decoded, so
    ``content`` reaches the client byte for byte (gzip included).
    """

    status_code: int = 200
    content: bytes | str = b""
    headers: Mapping[str, str] | list[tuple[str, str]] = field(default_factory=dict)

    def build(self) -> httpx.Response:
        content = self.content.encode("utf-8") if isinstance(self.content, str) else self.content
        return httpx.Response(self.status_code, headers=self.headers, stream=httpx.ByteStream(content))


Responder = Callable[[httpx.Request], httpx.Response]
Step = StubResponse | Exception | Responder


class StubTransport(httpx.MockTransport):
    """
    Deterministic transport that replays a sequence of steps.

    Each step is a StubResponse, an exception to raise, or a callable taking the
    request. The last step repeats once the sequence is used up. URL-specific
    steps registered with :meth:`add` take precedence.
    """

    def __init__(self, steps: Iterable[Step] | None = None):
        self._steps: list[Step] = list(steps or [])
        self._by_url: dict[str, Step] = {}
        self.requests: list[httpx.Request] = []
        super().__init__(self._dispatch)

    def add(self, url: str, step: Step) -> None:
        self._by_url[url] = step

    def _next_step(self, request: httpx.Request) -> Step:
        url = str(request.url)
        if url in self._by_url:
            return self._by_url[url]
        if not self._steps:
            return StubResponse(404, "No stubbed response configured")
        index = min(len(self.requests) - 1, len(self._steps) - 1)
        return self._steps[index]

    def _dispatch(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        step = self._next_step(request)
        if isinstance(step, Exception):
            raise step
        if isinstance(step, StubResponse):
            return step.build()
        return step(request)

    def client(self) -> httpx.Client:
        """An httpx client over this transport with the scrape base behaviour."""
        return create_http_client(ScrapeSettings(), transport=self)


__all__ = ["StubResponse", "StubTransport"]

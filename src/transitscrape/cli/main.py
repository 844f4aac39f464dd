# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""transitscrape CLI."""

from __future__ import annotations

import argparse
import json
import sys
from typing import Any

from ..config import ScrapeSettings, load_scrape_settings
from ..errors import (
    ScrapeError,
    UnexpectedRedirectError,
    categorize_exception,
    error_category_to_reason,
)
from ..http import FetchedResponse, FetchRequest, ScrapeClient
from ..log import setup_logging

CLI_TEXT_TRUNCATION_BYTES = 4096


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Fetch a page from a fragile endpoint and classify the result")
    parser.add_argument("url", help="URL to fetch")
    parser.add_argument("--post", metavar="BODY", help="Send BODY as a POST request")
    parser.add_argument("--content-type", default="application/x-www-form-urlencoded", help="Content type of the POST body")
    parser.add_argument("--referer", help="Referer header")
    parser.add_argument(
        "-H",
        "--header",
        action="append",
        default=[],
        metavar="'NAME: VALUE'",
        help="Extra request header (repeatable)",
    )
    parser.add_argument("--user-agent", help="User-Agent header")
    parser.add_argument("--session-cookie", metavar="NAME", help="Name of the session cookie to track")
    parser.add_argument("--proxy", help="Proxy URL, e.g. http://127.0.0.1:8080")
    parser.add_argument(
        "--trust-all-certificates",
        action="store_true",
        help="Skip TLS verification (diagnostics only)",
    )
    parser.add_argument(
        "--pin",
        action="append",
        default=[],
        metavar="HOST=sha256/BASE64",
        help="Certificate pin for HOST (repeatable)",
    )
    parser.add_argument("--retries", type=int, help="Maximum number of attempts")
    parser.add_argument("--json", action="store_true", help="Output JSON instead of the page text")
    parser.add_argument("--log-level", help="Logging level (default: TRANSITSCRAPE_LOG_LEVEL or WARNING)")
    return parser


def _parse_header(raw: str) -> tuple[str, str]:
    name, sep, value = raw.partition(":")
    if not sep or not name.strip():
        raise argparse.ArgumentTypeError(f"header must look like 'Name: value': {raw!r}")
    return name.strip(), value.strip()


def _parse_pin(raw: str) -> tuple[str, str]:
    host, sep, pin = raw.partition("=")
    if not sep or not host.strip() or not pin.strip():
        raise argparse.ArgumentTypeError(f"pin must look like 'host=sha256/...': {raw!r}")
    return host.strip(), pin.strip()


def _truncate_text_bytes(text: str, max_bytes: int) -> str:
    raw = text.encode("utf-8")
    if len(raw) <= max_bytes:
        return text
    suffix = "...[truncated]"
    suffix_bytes = suffix.encode("utf-8")
    keep = max_bytes - len(suffix_bytes)
    if keep <= 0:
        return suffix_bytes[:max_bytes].decode("utf-8", errors="ignore")
    prefix = raw[:keep].decode("utf-8", errors="ignore")
    return prefix + suffix


def _print_json(payload: dict[str, Any]) -> None:
    json.dump(payload, sys.stdout, indent=2, sort_keys=True)
    sys.stdout.write("\n")


def _response_payload(response: FetchedResponse) -> dict[str, Any]:
    return {
        "url": response.url,
        "status_code": response.status_code,
        "content_type": response.content_type,
        "encoding": response.encoding,
        "bytes": len(response.content),
        "text": _truncate_text_bytes(response.text, CLI_TEXT_TRUNCATION_BYTES),
    }


def _error_payload(exc: ScrapeError) -> dict[str, Any]:
    category = categorize_exception(exc)
    payload: dict[str, Any] = {
        "error": type(exc).__name__,
        "category": category.value,
        "reason": error_category_to_reason(category),
        "url": exc.url,
        "detail": str(exc),
    }
    if isinstance(exc, UnexpectedRedirectError):
        payload["redirect_url"] = exc.redirect_url
    if exc.body_peek:
        payload["body_peek"] = _truncate_text_bytes(exc.body_peek, CLI_TEXT_TRUNCATION_BYTES)
    return payload


def build_client(args: argparse.Namespace, settings: ScrapeSettings | None = None) -> ScrapeClient:
    settings = settings or load_scrape_settings()
    if args.retries is not None:
        settings.max_attempts = max(1, args.retries)
    client = ScrapeClient(settings)
    if args.user_agent:
        client.set_user_agent(args.user_agent)
    if args.session_cookie:
        client.set_session_cookie_name(args.session_cookie)
    if args.proxy:
        client.set_proxy(args.proxy)
    if args.trust_all_certificates:
        client.set_trust_all_certificates(True)
    pins: dict[str, list[str]] = {}
    for raw in args.pin:
        host, pin = _parse_pin(raw)
        pins.setdefault(host, []).append(pin)
    for host, values in pins.items():
        client.set_certificate_pin(host, *values)
    return client


def build_request(args: argparse.Namespace) -> FetchRequest:
    headers = dict(_parse_header(raw) for raw in args.header)
    return FetchRequest(
        url=args.url,
        body=args.post,
        content_type=args.content_type if args.post is not None else None,
        referer=args.referer,
        headers=headers,
    )


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.log_level)

    try:
        client = build_client(args)
        request = build_request(args)
    except (argparse.ArgumentTypeError, ValueError) as exc:
        parser.error(str(exc))

    try:
        with client:
            response = client.fetch_bytes(request)
    except ScrapeError as exc:
        if args.json:
            _print_json(_error_payload(exc))
        else:
            category = categorize_exception(exc)
            print(f"[transitscrape] {error_category_to_reason(category)}: {exc}", file=sys.stderr)
        return 1

    if args.json:
        _print_json(_response_payload(response))
    else:
        sys.stdout.write(response.text)
        if not response.text.endswith("\n"):
            sys.stdout.write("\n")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

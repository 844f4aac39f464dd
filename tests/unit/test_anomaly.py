# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

from transitscrape.http.anomaly import (
    detect_anomaly,
    detect_redirect,
    is_internal_error,
    is_session_expired,
)
from transitscrape.http.models import InternalError, RedirectDetected, SessionExpired, Success

BASE = "http://example.com"


def test_meta_refresh_resolves_against_request_url():
    body = '<html><head><META http-equiv="refresh" content="5;URL=/next"></head></html>'
    assert detect_redirect("http://x/a", body) == "http://x/next"


def test_captive_portal_meta_refresh_with_absolute_target():
    body = (
        '<?xml version="1.0" encoding="UTF-8"?><html xmlns="http://www.w3.org/1999/xhtml"><head>'
        "<title>Vodafone Center</title>"
        '<meta http-equiv="Cache-Control" content="no-cache"/>'
        '<meta http-equiv="refresh" content="1;URL=https://center.vodafone.de/vfcenter/index.html?targetUrl=http%3A%2F%2Fwww.fahrinfo-berlin.de"/>'
        "</head><body><h1>Sie werden weitergeleitet ...</h1>"
    )
    target = detect_redirect(BASE, body)
    assert target is not None
    assert target.startswith("https://center.vodafone.de/vfcenter/index.html")


def test_unquoted_refresh_attribute_is_accepted():
    body = (
        '<HEAD><TITLE>HTML Redirection</TITLE><META http-equiv=Content-Type content="text/html; ">'
        '<META http-equiv=Refresh content="0;URL=/cgi-bin/index.cgi"></HEAD>'
    )
    assert detect_redirect(BASE, body) == "http://example.com/cgi-bin/index.cgi"


def test_script_location_href_redirect():
    body = '<body><script language="javaScript">location.href="http://tplinkextender.net/";</script></body></html>'
    assert detect_redirect(BASE, body) == "http://tplinkextender.net/"


def test_script_window_location_redirect():
    body = '<script type="text/javascript"> window.location = "http://www.hotspot.example/portal/?RequestedURI=x" </script>'
    assert detect_redirect(BASE, body) == "http://www.hotspot.example/portal/?RequestedURI=x"


def test_detect_redirect_is_pure():
    body = '<META http-equiv="refresh" content="0;URL=../up">'
    first = detect_redirect("http://x/a/b", body)
    second = detect_redirect("http://x/a/b", body)
    assert first == second == "http://x/up"


def test_no_redirect_in_plain_page_or_truncated_tag():
    assert detect_redirect(BASE, "<html><body>Abfahrten</body></html>") is None
    assert detect_redirect(BASE, '<META http-equiv="refresh" content="5;URL=/ne') is None
    assert detect_redirect(BASE, "") is None


def test_session_expired_variants():
    assert is_session_expired(
        '<title>Efa9 Internal Error</title></head><body><div class="BOLD">Internal Error</div>'
        '<div class="NORMAL">Your session has expired.</div></body>'
    )
    assert is_session_expired("<html><head><title>Session Expired</title></head>")
    assert is_session_expired("<h2>Ihre Verbindungskennung ist nicht mehr gültig.</h2>")


def test_session_expired_requires_tag_boundaries_and_exact_case():
    assert not is_session_expired("<p>Your Session Expired yesterday</p>")
    assert not is_session_expired("<p>session expired</p>")
    assert not is_session_expired("<p>Session Expire")


def test_internal_error_variants():
    assert is_internal_error("<title>          Internal error in gateway     </title>")
    assert is_internal_error('<div style="font: bold large Arial;">Internal Error</div>')
    assert is_internal_error("<title>VRN - Keine Verbindung zum Server möglich</title>")
    assert is_internal_error("<p>Leider ist auf dem Server ein Fehler aufgetreten</p>") is False
    assert is_internal_error("<p>Server ein Fehler aufgetreten</p>")


def test_detect_anomaly_order_redirect_then_expiry_then_error():
    redirect_and_expired = '<META http-equiv="refresh" content="0;URL=/login"><p>Session Expired</p>'
    assert detect_anomaly("http://x/a", redirect_and_expired) == RedirectDetected("http://x/login")

    expired_and_error = "<div>Internal Error</div><div>Your session has expired.</div>"
    assert detect_anomaly(BASE, expired_and_error) == SessionExpired()

    error_page = "<h1>Internal error in gateway</h1>"
    assert detect_anomaly(BASE, error_page) == InternalError(error_page)

    assert detect_anomaly(BASE, "<html>departures</html>") == Success()

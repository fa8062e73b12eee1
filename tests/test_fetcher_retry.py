from __future__ import annotations

from typing import Any, Optional

import pytest
import requests

from tuf_tracker.errors import FetchError, FetchErrorKind
from tuf_tracker.fetcher import ProfileFetcher, build_profile_url
from tuf_tracker.http_engine import HttpEngine, RetryPolicy, _backoff_delay, browser_like_headers


def _mk_resp(status: int, html: str = "", *, headers: Optional[dict[str, str]] = None,
             url: str = "https://takeuforward.org/profile/someone") -> requests.Response:
    r = requests.Response()
    r.status_code = status
    r._content = html.encode("utf-8")
    r.headers["Content-Type"] = "text/html; charset=utf-8"
    for k, v in (headers or {}).items():
        r.headers[k] = v
    r.encoding = "utf-8"
    r.url = url
    return r


class FakeSession:
    def __init__(self, outcomes: list[Any]) -> None:
        self.outcomes = list(outcomes)
        self.calls: list[dict[str, Any]] = []
        self.closed = False

    def request(self, method: str, url: str, **kw: Any) -> requests.Response:
        self.calls.append({"method": method, "url": url, **kw})
        o = self.outcomes.pop(0)
        if isinstance(o, Exception):
            raise o
        return o

    def close(self) -> None:
        self.closed = True


def _fetcher(outcomes: list[Any], **pol: Any) -> tuple[ProfileFetcher, FakeSession, list[float]]:
    sleeps: list[float] = []
    session = FakeSession(outcomes)
    engine = HttpEngine(session=session, retry_policy=RetryPolicy(**pol), sleep=sleeps.append)  # type: ignore[arg-type]
    return ProfileFetcher(engine), session, sleeps


def test_profile_url_is_quoted():
    assert build_profile_url("volcaryx") == "https://takeuforward.org/profile/volcaryx"
    assert build_profile_url("a b/c") == "https://takeuforward.org/profile/a%20b%2Fc"


def test_browser_like_headers_are_sent():
    f, session, _ = _fetcher([_mk_resp(200, "<p>187/455</p>")])
    doc = f.fetch("someone")
    sent = session.calls[0]["headers"]
    assert sent["User-Agent"] == browser_like_headers()["User-Agent"]
    assert sent["Sec-Fetch-Mode"] == "navigate"
    assert "text/html" in sent["Accept"]
    assert session.calls[0]["timeout"] == 30.0
    assert doc.html == "<p>187/455</p>"
    assert doc.status_code == 200
    assert doc.transport == "http"
    assert doc.size_bytes == len("<p>187/455</p>")


def test_linear_backoff_until_success():
    f, session, sleeps = _fetcher([requests.Timeout(), requests.ConnectionError(), _mk_resp(200, "ok")])
    doc = f.fetch("someone")
    assert doc.html == "ok"
    assert len(session.calls) == 3
    assert sleeps == [1.0, 2.0]


def test_exponential_backoff_is_capped():
    pol = RetryPolicy(base_delay=1.0, cap_delay=3.0, backoff="exponential")
    assert [_backoff_delay(n, pol) for n in (1, 2, 3, 4)] == [1.0, 2.0, 3.0, 3.0]


def test_not_found_is_not_retried():
    f, session, sleeps = _fetcher([_mk_resp(404, "missing")])
    with pytest.raises(FetchError) as ei:
        f.fetch("demo-user")
    assert ei.value.kind is FetchErrorKind.NOT_FOUND
    assert ei.value.status_code == 404
    assert len(session.calls) == 1
    assert sleeps == []


def test_not_found_title_on_200_page():
    f, _, _ = _fetcher([_mk_resp(200, "<html><head><title>404 | Not Found</title></head></html>")])
    with pytest.raises(FetchError) as ei:
        f.fetch("ghost")
    assert ei.value.kind is FetchErrorKind.NOT_FOUND


def test_identifier_with_404_is_a_real_profile():
    f, _, _ = _fetcher([_mk_resp(200, "<html><head><title>coder404 | takeUforward</title></head><p>187/455</p></html>")])
    doc = f.fetch("coder404")
    assert doc.identifier == "coder404"
    assert "187/455" in doc.html


def test_exhausted_retries_are_network_failures():
    f, session, sleeps = _fetcher([_mk_resp(500), _mk_resp(502), _mk_resp(503)])
    with pytest.raises(FetchError) as ei:
        f.fetch("someone")
    assert ei.value.kind is FetchErrorKind.NETWORK_FAILURE
    assert ei.value.attempts == 3
    assert len(session.calls) == 3
    assert sleeps == [1.0, 2.0]


def test_timeouts_only_are_network_failures():
    f, _, _ = _fetcher([requests.Timeout()] * 3)
    with pytest.raises(FetchError) as ei:
        f.fetch("someone")
    assert ei.value.kind is FetchErrorKind.NETWORK_FAILURE
    assert ei.value.status_code is None
    assert "timeout" in str(ei.value)


def test_retry_after_header_overrides_backoff():
    f, _, sleeps = _fetcher([_mk_resp(429, "Too many requests", headers={"Retry-After": "5"}), _mk_resp(200, "ok")])
    assert f.fetch("someone").html == "ok"
    assert sleeps == [5.0]


def test_fetcher_closes_transport():
    f, session, _ = _fetcher([])
    with f:
        pass
    assert session.closed

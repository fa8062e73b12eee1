from __future__ import annotations

"""
http_engine.py — requests.Session transport for profile pages.

- browser-like header set (a bare python-requests UA gets challenge pages)
- retry with linear (default) or exponential backoff
- Retry-After: seconds and HTTP-date
- 404/410 are final and not retried
- every attempt is logged as a one-line diagnostic
"""

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Callable, Optional
from urllib.parse import urlparse

import requests

logger = logging.getLogger(__name__)


# =========================
# Headers + block hints
# =========================

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

DEFAULT_HTML_HEADERS: dict[str, str] = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.5",
    "Upgrade-Insecure-Requests": "1",
    "Cache-Control": "max-age=0",
}


def _sec_headers() -> dict[str, str]:
    """Navigation-style sec-fetch headers of a top-level page load."""
    return {
        "Sec-Fetch-Dest": "document",
        "Sec-Fetch-Mode": "navigate",
        "Sec-Fetch-Site": "none",
        "Sec-Fetch-User": "?1",
    }


def browser_like_headers(user_agent: str = DEFAULT_USER_AGENT) -> dict[str, str]:
    h = {"User-Agent": user_agent}
    h.update(DEFAULT_HTML_HEADERS)
    h.update(_sec_headers())
    return h


def _block_hint(resp: requests.Response) -> Optional[str]:
    """Rough label for 401/403/429 responses; only used in diagnostics."""
    sc = resp.status_code
    if sc not in (401, 403, 429):
        return None
    h = {k.lower(): v for k, v in (resp.headers or {}).items()}
    txt = (resp.text or "")[:6000].lower()
    if "cf-ray" in h or "cloudflare" in h.get("server", "").lower():
        return "cloudflare"
    if "captcha" in txt:
        return "captcha"
    if "checking your browser" in txt or "just a moment" in txt:
        return "js_challenge"
    if sc == 429:
        return "rate_limited"
    if "access denied" in txt or "forbidden" in txt:
        return "access_denied"
    return None


# =========================
# Retry / backoff
# =========================

@dataclass
class RetryPolicy:
    max_attempts: int = 3
    base_delay: float = 1.0
    cap_delay: float = 30.0
    backoff: str = "linear"  # linear | exponential
    give_up_statuses: tuple[int, ...] = (404, 410)
    respect_retry_after: bool = True


def make_retry_policy_from_cfg(cfg: Any) -> RetryPolicy:
    """Build from TrackerConfig (or anything with the same attributes)."""
    return RetryPolicy(
        max_attempts=int(getattr(cfg, "max_attempts", 3)),
        base_delay=float(getattr(cfg, "backoff_base", 1.0)),
        backoff=str(getattr(cfg, "backoff", "linear")),
    )


def _backoff_delay(attempt: int, pol: RetryPolicy) -> float:
    """Delay after a failed attempt (1-based)."""
    n = max(1, int(attempt))
    if pol.backoff == "exponential":
        delay = pol.base_delay * (2 ** (n - 1))
    else:
        delay = pol.base_delay * n
    return float(min(pol.cap_delay, delay))


def _retry_after_seconds(resp: requests.Response) -> Optional[float]:
    ra = (resp.headers.get("Retry-After") or "").strip()
    if not ra:
        return None
    try:
        sec = float(ra)
        return sec if sec > 0 else None
    except ValueError:
        pass
    try:
        dt = parsedate_to_datetime(ra)
    except (TypeError, ValueError):
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    sec = (dt - datetime.now(timezone.utc)).total_seconds()
    return sec if sec > 0 else None


def _domain_of(url: str) -> str:
    return urlparse(url).netloc.lower()


@dataclass
class FetchResult:
    """Outcome of one transport.get(): final attempt's status and body."""

    url: str
    ok: bool
    status_code: Optional[int]
    elapsed_ms: int
    text: str = ""
    url_final: str = ""
    attempts: int = 0
    error: Optional[str] = None


# =========================
# HttpEngine
# =========================

class HttpEngine:
    """Single place where profile pages are requested over plain HTTP."""

    name = "http"

    def __init__(
        self,
        *,
        default_timeout: float = 30.0,
        default_headers: Optional[dict[str, str]] = None,
        retry_policy: Optional[RetryPolicy] = None,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.default_timeout = float(default_timeout)
        self.default_headers = dict(default_headers if default_headers is not None else browser_like_headers())
        self.retry_policy = retry_policy or RetryPolicy()
        self.session = session or requests.Session()
        self.last_diag: Optional[dict[str, Any]] = None
        self.last_attempts = 0
        self._sleep_fn = sleep

    def close(self) -> None:
        self.session.close()

    def __enter__(self) -> "HttpEngine":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _sleep(self, sec: float) -> None:
        if sec and sec > 0:
            self._sleep_fn(float(sec))

    def _emit_diag(self, d: dict[str, Any]) -> None:
        self.last_diag = d
        line = (
            f"[HTTP] GET {d.get('domain')} sc={d.get('status')} err={d.get('err')} "
            f"try={d.get('attempt')}/{d.get('max_attempts')} elapsed={d.get('elapsed_ms')}ms"
        )
        if d.get("hint"):
            logger.warning("%s hint=%s url=%s", line, d["hint"], d.get("url"))
        else:
            logger.debug("%s url=%s", line, d.get("url"))

    def request(
        self,
        url: str,
        *,
        headers: Optional[dict[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> tuple[Optional[requests.Response], Optional[str], int]:
        """GET with retries. Returns (response, error, elapsed_ms of the last attempt).

        error is None only for a 2xx response. On a final non-2xx status the
        response is still returned so callers can inspect it.
        """
        pol = self.retry_policy
        domain = _domain_of(url)
        merged_headers = dict(self.default_headers)
        if headers:
            merged_headers.update(headers)

        last_err: Optional[str] = None
        last_resp: Optional[requests.Response] = None
        elapsed_ms = 0

        for attempt in range(1, pol.max_attempts + 1):
            t0 = time.monotonic()
            resp: Optional[requests.Response]
            try:
                resp = self.session.request(
                    method="GET",
                    url=url,
                    headers=merged_headers,
                    timeout=float(timeout or self.default_timeout),
                    allow_redirects=True,
                )
            except requests.Timeout:
                last_err = "timeout"
                resp = None
            except requests.RequestException as e:
                last_err = f"network_error:{type(e).__name__}"
                resp = None
            elapsed_ms = int((time.monotonic() - t0) * 1000)
            self.last_attempts = attempt

            hint: Optional[str] = None
            if resp is not None:
                sc = resp.status_code
                if 200 <= sc < 300:
                    self._emit_diag({
                        "url": url, "domain": domain, "status": sc, "err": None,
                        "attempt": attempt, "max_attempts": pol.max_attempts,
                        "elapsed_ms": elapsed_ms, "hint": None,
                    })
                    return resp, None, elapsed_ms
                last_err = f"http_{sc}"
                last_resp = resp
                hint = _block_hint(resp)
            else:
                last_resp = None

            self._emit_diag({
                "url": url, "domain": domain,
                "status": resp.status_code if resp is not None else None,
                "err": last_err, "attempt": attempt, "max_attempts": pol.max_attempts,
                "elapsed_ms": elapsed_ms, "hint": hint,
            })

            if resp is not None and resp.status_code in pol.give_up_statuses:
                return resp, last_err, elapsed_ms
            if attempt >= pol.max_attempts:
                break

            wait = _backoff_delay(attempt, pol)
            if resp is not None and pol.respect_retry_after:
                ra = _retry_after_seconds(resp)
                if ra is not None:
                    wait = min(pol.cap_delay, ra)
            self._sleep(wait)

        return last_resp, last_err or "request_failed", elapsed_ms

    def get(self, url: str) -> FetchResult:
        self.last_attempts = 0
        resp, err, ms = self.request(url)
        if resp is None:
            return FetchResult(url=url, ok=False, status_code=None, elapsed_ms=ms,
                               url_final=url, attempts=self.last_attempts, error=err)
        return FetchResult(
            url=url,
            ok=err is None,
            status_code=resp.status_code,
            elapsed_ms=ms,
            text=resp.text or "",
            url_final=resp.url or url,
            attempts=self.last_attempts,
            error=err,
        )


def make_http_engine_from_cfg(cfg: Any, *, session: Optional[requests.Session] = None,
                              sleep: Callable[[float], None] = time.sleep) -> HttpEngine:
    return HttpEngine(
        default_timeout=float(getattr(cfg, "timeout", 30.0)),
        default_headers=browser_like_headers(str(getattr(cfg, "user_agent", "") or DEFAULT_USER_AGENT)),
        retry_policy=make_retry_policy_from_cfg(cfg),
        session=session,
        sleep=sleep,
    )

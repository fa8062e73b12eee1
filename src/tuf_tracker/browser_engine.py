from __future__ import annotations

"""browser_engine.py — optional Playwright transport for JS-rendered profiles.

- Playwright is an optional extra; asking for this transport without it
  installed raises BrowserUnavailableError on first use.
- The engine owns one Playwright driver + browser for its lifetime: started
  lazily, released by close() / the context manager. Each page load uses a
  fresh browser context.
- Same RetryPolicy as the HTTP transport.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

from .errors import BrowserUnavailableError
from .http_engine import FetchResult, RetryPolicy, _backoff_delay, browser_like_headers

logger = logging.getLogger(__name__)

_DROP_HEADERS = {"host", "content-length", "connection", "transfer-encoding", "user-agent"}


def _safe_extra_headers(headers: dict[str, str]) -> dict[str, str]:
    return {str(k): str(v) for k, v in (headers or {}).items() if str(k).lower() not in _DROP_HEADERS}


def _pw_import():
    try:
        from playwright.sync_api import sync_playwright, TimeoutError as PwTimeoutError  # type: ignore
        return sync_playwright, PwTimeoutError, None
    except ImportError as e:
        return None, None, e


@dataclass
class BrowserConfig:
    headless: bool = True
    browser: str = "chromium"
    timeout_ms: int = 30000
    wait_until: str = "networkidle"
    settle_ms: int = 3000
    viewport_width: int = 1366
    viewport_height: int = 768

    @classmethod
    def from_dict(cls, d: Optional[dict[str, Any]], *, timeout: Optional[float] = None) -> "BrowserConfig":
        d = dict(d or {})
        viewport = d.get("viewport") if isinstance(d.get("viewport"), dict) else {}
        timeout_ms = int(d.get("timeout_ms") or (timeout * 1000 if timeout else 30000))
        return cls(
            headless=bool(d.get("headless", True)),
            browser=str(d.get("browser") or "chromium").lower(),
            timeout_ms=timeout_ms,
            wait_until=str(d.get("wait_until") or "networkidle"),
            settle_ms=int(d.get("settle_ms", 3000)),
            viewport_width=int(viewport.get("width") or 1366),
            viewport_height=int(viewport.get("height") or 768),
        )


class BrowserEngine:
    name = "browser"

    def __init__(
        self,
        *,
        cfg: Optional[BrowserConfig] = None,
        headers: Optional[dict[str, str]] = None,
        retry_policy: Optional[RetryPolicy] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.cfg = cfg or BrowserConfig()
        self.headers = dict(headers if headers is not None else browser_like_headers())
        self.retry_policy = retry_policy or RetryPolicy()
        self._sleep_fn = sleep
        self._pw_cm: Any = None
        self._pw: Any = None
        self._browser: Any = None
        self._timeout_exc: Any = None

    # --------- lifecycle ---------

    def open(self) -> None:
        if self._browser is not None:
            return
        sync_playwright, pw_timeout, imp_err = _pw_import()
        if sync_playwright is None:
            raise BrowserUnavailableError(
                f"browser transport needs Playwright: pip install 'tuf-class-tracker[browser]' ({imp_err})"
            )
        self._timeout_exc = pw_timeout
        self._pw_cm = sync_playwright()
        self._pw = self._pw_cm.__enter__()
        try:
            btype = getattr(self._pw, self.cfg.browser, None) or self._pw.chromium
            self._browser = btype.launch(headless=self.cfg.headless)
        except Exception:
            self._pw_cm.__exit__(None, None, None)
            self._pw_cm = self._pw = None
            raise
        logger.debug("browser started: %s headless=%s", self.cfg.browser, self.cfg.headless)

    def close(self) -> None:
        browser, pw_cm = self._browser, self._pw_cm
        self._browser = self._pw = self._pw_cm = None
        try:
            if browser is not None:
                browser.close()
        finally:
            if pw_cm is not None:
                pw_cm.__exit__(None, None, None)

    def __enter__(self) -> "BrowserEngine":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # --------- fetching ---------

    def _render_once(self, url: str) -> FetchResult:
        ua = self.headers.get("User-Agent") or None
        t0 = time.monotonic()
        context: Any = None
        try:
            # a crashed or disconnected browser fails here, not in goto()
            context = self._browser.new_context(
                user_agent=ua,
                extra_http_headers=_safe_extra_headers(self.headers) or None,
                viewport={"width": self.cfg.viewport_width, "height": self.cfg.viewport_height},
            )
            page = context.new_page()
            resp = page.goto(url, wait_until=self.cfg.wait_until, timeout=self.cfg.timeout_ms)
            if self.cfg.settle_ms > 0:
                page.wait_for_timeout(self.cfg.settle_ms)
            html = page.content() or ""
            status = resp.status if resp is not None else None
            ms = int((time.monotonic() - t0) * 1000)
            ok = status is None or 200 <= int(status) < 300
            return FetchResult(
                url=url,
                ok=ok,
                status_code=status if status is not None else 200,
                elapsed_ms=ms,
                text=html,
                url_final=page.url,
                error=None if ok else f"http_{status}",
            )
        except self._timeout_exc:
            return FetchResult(url, False, None, int((time.monotonic() - t0) * 1000), url_final=url,
                               error="playwright_timeout")
        except Exception as e:
            # navigation errors (DNS, connection reset) come as playwright Error
            return FetchResult(url, False, None, int((time.monotonic() - t0) * 1000), url_final=url,
                               error=f"playwright_error:{type(e).__name__}")
        finally:
            if context is not None:
                try:
                    context.close()
                except Exception:
                    logger.debug("browser context close failed for %s", url, exc_info=True)

    def get(self, url: str) -> FetchResult:
        self.open()
        pol = self.retry_policy
        res: Optional[FetchResult] = None
        for attempt in range(1, pol.max_attempts + 1):
            res = self._render_once(url)
            res.attempts = attempt
            logger.debug(
                "[BROWSER] GET sc=%s err=%s try=%s/%s elapsed=%sms url=%s",
                res.status_code, res.error, attempt, pol.max_attempts, res.elapsed_ms, url,
            )
            if res.ok or (res.status_code in pol.give_up_statuses):
                return res
            if attempt < pol.max_attempts:
                self._sleep_fn(_backoff_delay(attempt, pol))
        assert res is not None
        return res

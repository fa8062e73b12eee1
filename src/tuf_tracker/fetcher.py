from __future__ import annotations

"""
fetcher.py — identifier -> RawDocument.

The transport (HttpEngine or BrowserEngine) does the retries; this module only
maps the final outcome:
- 404 / 410, or a 2xx page titled "404" / "Not Found"  -> FetchError(NOT_FOUND)
- anything else that did not end in 2xx                -> FetchError(NETWORK_FAILURE)
- a transport that could not run (no Playwright, dead browser) -> FetchError(NETWORK_FAILURE)
"""

import logging
from typing import Any, Optional, Protocol
from urllib.parse import quote

from .block_detect import classify_block, looks_like_missing_profile
from .catalog import PROFILE_URL_TEMPLATE
from .errors import FetchError, FetchErrorKind, validate_identifier
from .http_engine import FetchResult, make_http_engine_from_cfg, make_retry_policy_from_cfg, browser_like_headers
from .models import RawDocument, utc_now

logger = logging.getLogger(__name__)

NOT_FOUND_STATUSES = (404, 410)


class Transport(Protocol):
    name: str

    def get(self, url: str) -> FetchResult: ...

    def close(self) -> None: ...


def build_profile_url(identifier: str, template: str = PROFILE_URL_TEMPLATE) -> str:
    return template.format(identifier=quote(identifier, safe=""))


class ProfileFetcher:
    def __init__(self, transport: Transport, *, url_template: str = PROFILE_URL_TEMPLATE) -> None:
        self.transport = transport
        self.url_template = url_template

    @classmethod
    def from_config(cls, cfg: Any) -> "ProfileFetcher":
        if cfg.transport == "browser":
            from .browser_engine import BrowserConfig, BrowserEngine

            transport: Transport = BrowserEngine(
                cfg=BrowserConfig.from_dict(cfg.browser, timeout=cfg.timeout),
                headers=browser_like_headers(cfg.user_agent),
                retry_policy=make_retry_policy_from_cfg(cfg),
            )
        else:
            transport = make_http_engine_from_cfg(cfg)
        return cls(transport, url_template=cfg.profile_url_template)

    def close(self) -> None:
        self.transport.close()

    def __enter__(self) -> "ProfileFetcher":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def fetch(self, identifier: str) -> RawDocument:
        ident = validate_identifier(identifier)
        url = build_profile_url(ident, self.url_template)
        try:
            res = self.transport.get(url)
        except Exception as e:
            # transport could not run at all (no Playwright, browser failed to launch)
            raise FetchError(FetchErrorKind.NETWORK_FAILURE, f"{url}: transport_error:{type(e).__name__}: {e}") from e

        if res.status_code in NOT_FOUND_STATUSES:
            raise FetchError(FetchErrorKind.NOT_FOUND, f"{url}: http_{res.status_code}",
                             status_code=res.status_code, attempts=res.attempts)
        if not res.ok:
            raise FetchError(FetchErrorKind.NETWORK_FAILURE, f"{url}: {res.error or 'request_failed'}",
                             status_code=res.status_code, attempts=res.attempts)
        if looks_like_missing_profile(res.text, ident):
            raise FetchError(FetchErrorKind.NOT_FOUND, f"{url}: not-found page",
                             status_code=res.status_code, attempts=res.attempts)

        hint: Optional[str] = classify_block(res.text, res.status_code)
        if hint:
            logger.warning("profile page for %s looks like a %s page; numbers are unlikely", ident, hint)

        return RawDocument(
            identifier=ident,
            url=res.url_final or url,
            html=res.text,
            status_code=int(res.status_code or 200),
            fetched_at=utc_now(),
            transport=self.transport.name,
            elapsed_ms=res.elapsed_ms,
        )

from __future__ import annotations

"""
block_detect.py — page-level classification of fetched HTML.

Two questions the fetcher asks about a 2xx page:
- is this the site's "profile does not exist" page? (title says 404 / Not Found)
- is this an anti-bot / challenge page instead of a profile?

Detection only: a challenge page is logged and extraction simply finds no
numbers in it.
"""

import html as html_lib
import re
from typing import Optional

_TITLE_RE = re.compile(r"<title[^>]*>(.*?)</title\s*>", re.IGNORECASE | re.DOTALL)

_NOT_FOUND_TITLE_RE = re.compile(r"\b404\b|\bnot found\b", re.IGNORECASE)


def page_title(html: str) -> str:
    m = _TITLE_RE.search(html or "")
    if not m:
        return ""
    return " ".join(html_lib.unescape(m.group(1)).split())


def looks_like_missing_profile(html: str, identifier: str = "") -> bool:
    """Title reads as a 404 page. The identifier itself is ignored ("coder404")."""
    title = page_title(html)
    if identifier:
        title = re.sub(re.escape(identifier), " ", title, flags=re.IGNORECASE)
    return _NOT_FOUND_TITLE_RE.search(title) is not None


def classify_block(html: str, status_code: Optional[int] = None) -> Optional[str]:
    """
    None when the page does not look like a block. Otherwise one of:
    cloudflare | js_challenge | captcha | rate_limited | access_denied
    """
    txt = (html or "")[:6000].lower()
    sc = int(status_code or 0)

    is_cf = "__cf_bm" in txt or "cf-chl" in txt or "cloudflare" in txt
    is_js = "checking your browser" in txt or "just a moment" in txt or "verify you are human" in txt
    is_captcha = "g-recaptcha" in txt or "hcaptcha" in txt or re.search(r"\bcaptcha\b", txt) is not None
    is_rate = sc == 429 or "too many requests" in txt
    is_denied = sc == 403 or "access denied" in txt

    if is_captcha:
        return "captcha"
    if is_js:
        return "js_challenge"
    if is_cf and sc in (403, 503):
        return "cloudflare"
    if is_rate:
        return "rate_limited"
    if is_denied:
        return "access_denied"
    return None

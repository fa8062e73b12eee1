from __future__ import annotations

from datetime import datetime, timezone
from types import SimpleNamespace
from typing import Any, Optional

import pytest

from tuf_tracker import browser_engine
from tuf_tracker.browser_engine import BrowserConfig, BrowserEngine
from tuf_tracker.errors import BrowserUnavailableError, FetchError, FetchErrorKind
from tuf_tracker.fetcher import ProfileFetcher
from tuf_tracker.http_engine import RetryPolicy
from tuf_tracker.pipeline import ProfileScraper
from tuf_tracker.synthetic import SyntheticGenerator

FIXED = datetime(2026, 1, 1, tzinfo=timezone.utc)


class FakeTimeout(Exception):
    pass


class FakePlaywright:
    """Stands in for playwright.sync_api: records what the engine does."""

    def __init__(self, pages: list[Any], context_error: Optional[Exception] = None) -> None:
        self.pages = list(pages)  # (status, html) or an exception per page load
        self.context_error = context_error
        self.waits: list[int] = []
        self.contexts_closed = 0
        self.launched = 0
        self.stopped = 0
        self.browser_closed = 0
        self.context_kwargs: list[dict[str, Any]] = []

    def sync_playwright(self) -> Any:
        fake = self

        class Page:
            url = ""

            def goto(self, url: str, wait_until: str, timeout: int) -> Any:
                self.url = url
                outcome = fake.pages.pop(0)
                if isinstance(outcome, Exception):
                    raise outcome
                self._html = outcome[1]
                return SimpleNamespace(status=outcome[0])

            def wait_for_timeout(self, ms: int) -> None:
                fake.waits.append(ms)

            def content(self) -> str:
                return self._html

        class Context:
            def new_page(self) -> Page:
                return Page()

            def close(self) -> None:
                fake.contexts_closed += 1

        class Browser:
            def new_context(self, **kw: Any) -> Context:
                if fake.context_error is not None:
                    raise fake.context_error
                fake.context_kwargs.append(kw)
                return Context()

            def close(self) -> None:
                fake.browser_closed += 1

        class BrowserType:
            def launch(self, headless: bool) -> Browser:
                fake.launched += 1
                return Browser()

        class Manager:
            def __enter__(self) -> Any:
                return SimpleNamespace(chromium=BrowserType())

            def __exit__(self, *exc: Any) -> None:
                fake.stopped += 1

        return Manager()


def _engine(monkeypatch, pages: list[Any], **fake_kw: Any) -> tuple[BrowserEngine, FakePlaywright, list[float]]:
    fake = FakePlaywright(pages, **fake_kw)
    monkeypatch.setattr(browser_engine, "_pw_import", lambda: (fake.sync_playwright, FakeTimeout, None))
    sleeps: list[float] = []
    engine = BrowserEngine(cfg=BrowserConfig(settle_ms=3000), retry_policy=RetryPolicy(), sleep=sleeps.append)
    return engine, fake, sleeps


def test_renders_page_and_releases_resources(monkeypatch):
    engine, fake, _ = _engine(monkeypatch, [(200, "<p>187/455</p>")])
    with ProfileFetcher(engine) as fetcher:
        doc = fetcher.fetch("someone")
    assert doc.html == "<p>187/455</p>"
    assert doc.transport == "browser"
    assert fake.waits == [3000]
    assert fake.context_kwargs[0]["viewport"] == {"width": 1366, "height": 768}
    assert "User-Agent" not in (fake.context_kwargs[0]["extra_http_headers"] or {})
    assert fake.launched == 1
    assert fake.contexts_closed == 1
    assert (fake.browser_closed, fake.stopped) == (1, 1)


def test_browser_is_reused_across_fetches(monkeypatch):
    engine, fake, _ = _engine(monkeypatch, [(200, "a"), (200, "b")])
    with engine:
        assert engine.get("https://example.test/a").text == "a"
        assert engine.get("https://example.test/b").text == "b"
    assert fake.launched == 1
    assert fake.contexts_closed == 2


def test_timeouts_are_retried_then_reported(monkeypatch):
    engine, fake, sleeps = _engine(monkeypatch, [FakeTimeout(), FakeTimeout(), FakeTimeout()])
    with ProfileFetcher(engine) as fetcher:
        with pytest.raises(FetchError) as ei:
            fetcher.fetch("someone")
    assert ei.value.kind is FetchErrorKind.NETWORK_FAILURE
    assert "playwright_timeout" in str(ei.value)
    assert sleeps == [1.0, 2.0]
    assert fake.contexts_closed == 3


def test_not_found_status_is_final(monkeypatch):
    engine, fake, sleeps = _engine(monkeypatch, [(404, "<title>Not Found</title>")])
    with ProfileFetcher(engine) as fetcher:
        with pytest.raises(FetchError) as ei:
            fetcher.fetch("ghost")
    assert ei.value.kind is FetchErrorKind.NOT_FOUND
    assert sleeps == []


def test_missing_playwright_is_reported(monkeypatch):
    monkeypatch.setattr(browser_engine, "_pw_import", lambda: (None, None, ImportError("no module")))
    engine = BrowserEngine()
    with pytest.raises(BrowserUnavailableError):
        engine.get("https://example.test/x")


def test_config_from_dict():
    cfg = BrowserConfig.from_dict({"headless": False, "viewport": {"width": 800}}, timeout=10)
    assert cfg.headless is False
    assert cfg.timeout_ms == 10000
    assert (cfg.viewport_width, cfg.viewport_height) == (800, 768)


def test_dead_browser_is_a_failed_load_not_a_crash(monkeypatch):
    engine, fake, sleeps = _engine(monkeypatch, [], context_error=RuntimeError("Target page, context or browser has been closed"))
    res = engine.get("https://example.test/alice")
    assert res.ok is False
    assert res.error == "playwright_error:RuntimeError"
    assert res.attempts == 3
    assert sleeps == [1.0, 2.0]
    assert fake.contexts_closed == 0


def test_scrape_falls_back_when_browser_context_fails(monkeypatch):
    engine, _, _ = _engine(monkeypatch, [], context_error=RuntimeError("browser has been closed"))
    scraper = ProfileScraper(ProfileFetcher(engine), clock=lambda: FIXED)
    profile = scraper.scrape_profile("alice")
    assert profile == SyntheticGenerator(clock=lambda: FIXED).generate("alice")
    assert profile.is_authentic is False


def test_scrape_falls_back_when_playwright_is_missing(monkeypatch):
    monkeypatch.setattr(browser_engine, "_pw_import", lambda: (None, None, ImportError("no module")))
    scraper = ProfileScraper(ProfileFetcher(BrowserEngine()), clock=lambda: FIXED)
    report = scraper.scrape_many(["alice", "bob"], delay=0)
    assert [p.source for p in report.profiles] == ["synthetic", "synthetic"]
    assert report.cancelled is False

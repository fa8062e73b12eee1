from __future__ import annotations

from tuf_tracker.block_detect import classify_block, looks_like_missing_profile, page_title
from tuf_tracker.html_extract import HtmlTree


HTML = """
<html><head><title>Profile | TUF</title>
<style>.x { color: red }</style>
<script>window.__INITIAL_STATE__ = {"a": 1};</script>
</head><body>
  <div class="ProfileStats card" id="stats-main" data-testid="progress-widget">
    Easy <b>74</b> Medium <b>84</b><br>Hard <i>29</i>
  </div>
  <section class="topics"><div data-topic="Arrays" class="topic-card">Arrays <span>30/53</span></div></section>
</body></html>
"""


def test_text_keeps_document_order_and_skips_scripts():
    tree = HtmlTree.parse(HTML)
    text = tree.text()
    assert "Easy 74 Medium 84 Hard 29" in text
    assert "__INITIAL_STATE__" not in text
    assert "color" not in text


def test_attribute_substring_selectors_are_case_insensitive():
    tree = HtmlTree.parse(HTML)
    assert len(tree.select("[class*=stats]")) == 1
    assert len(tree.select("[id^=stats]")) == 1
    assert len(tree.select("[data-testid*=PROGRESS]")) == 1
    assert len(tree.select("div.card")) == 1
    assert tree.select("section [data-topic=Arrays]") == tree.select("[class*=topic-card]")


def test_select_any_is_document_ordered_and_deduplicated():
    tree = HtmlTree.parse(HTML)
    ids = tree.select_any(["[data-topic]", "[class*=stats]", "[class*=card]"])
    assert ids == sorted(set(ids))
    assert len(ids) == 2


def test_raw_text_returns_script_body():
    tree = HtmlTree.parse(HTML)
    (script,) = tree.select("script")
    assert tree.raw_text(script).strip() == 'window.__INITIAL_STATE__ = {"a": 1};'


def test_ancestors_walk_up_to_root():
    tree = HtmlTree.parse(HTML)
    (card,) = tree.select("[data-topic]")
    tags = [tree.tag(i) for i in tree.ancestors(card)]
    assert tags == ["section", "body", "html"]


def test_missing_profile_and_block_pages():
    assert page_title("<title> 404 &ndash; Not Found </title>") == "404 – Not Found"
    assert looks_like_missing_profile("<html><title>Page Not Found</title></html>")
    assert not looks_like_missing_profile("<html><title>volcaryx | Profile</title>404 problems</html>")
    assert not looks_like_missing_profile("<title>coder404 | takeUforward</title>")
    assert not looks_like_missing_profile("<title>404 | takeUforward</title>", "404")
    assert looks_like_missing_profile("<title>Error 404</title>", "coder404")
    assert classify_block("<html>Just a moment...</html>", 200) == "js_challenge"
    assert classify_block("<div class='g-recaptcha'></div>", 403) == "captcha"
    assert classify_block("Too many requests", 429) == "rate_limited"
    assert classify_block("<h1>187/455</h1>", 200) is None

from __future__ import annotations

"""
html_extract.py — tolerant HTML node tree on top of html.parser.

Profile pages are parsed once per scrape; the heuristics then query the tree
with a small CSS subset:
    tag  .class  #id  [attr]  [attr=value]  [attr*=value]  [attr^=value]
and descendant combinators (whitespace). Attribute substring matches are
case-insensitive because class names like "ProgressCard" vary by build.
"""

from dataclasses import dataclass, field
from html.parser import HTMLParser
import re
from typing import Iterable, Optional, Sequence

_WS_RE = re.compile(r"\s+")
_TEXT_TAG = "#text"

# data in these never becomes visible text
_INVISIBLE_TAGS = frozenset({"script", "style", "template", "noscript"})

_VOID_TAGS = frozenset({
    "area", "base", "br", "col", "embed", "hr", "img", "input",
    "link", "meta", "param", "source", "track", "wbr",
})


@dataclass
class _HtmlNode:
    tag: str
    attrs: dict[str, str]
    parent: Optional[int]
    children: list[int] = field(default_factory=list)
    text_parts: list[str] = field(default_factory=list)


class _HtmlTreeBuilder(HTMLParser):
    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.nodes: list[_HtmlNode] = [_HtmlNode(tag="__root__", attrs={}, parent=None)]
        self.stack: list[int] = [0]

    def _push_node(self, tag: str, attrs: Sequence[tuple[str, Optional[str]]], *, self_close: bool) -> None:
        parent = self.stack[-1] if self.stack else 0
        clean_attrs: dict[str, str] = {}
        for k, v in attrs:
            if not k:
                continue
            clean_attrs[str(k).strip().lower()] = "" if v is None else str(v)

        t = str(tag or "").strip().lower()
        idx = len(self.nodes)
        self.nodes.append(_HtmlNode(tag=t, attrs=clean_attrs, parent=parent))
        self.nodes[parent].children.append(idx)
        if not self_close and t not in _VOID_TAGS:
            self.stack.append(idx)

    def handle_starttag(self, tag: str, attrs: Sequence[tuple[str, Optional[str]]]) -> None:
        self._push_node(tag, attrs, self_close=False)

    def handle_startendtag(self, tag: str, attrs: Sequence[tuple[str, Optional[str]]]) -> None:
        self._push_node(tag, attrs, self_close=True)

    def handle_endtag(self, tag: str) -> None:
        if len(self.stack) <= 1:
            return
        t = str(tag or "").strip().lower()
        for i in range(len(self.stack) - 1, 0, -1):
            if self.nodes[self.stack[i]].tag == t:
                del self.stack[i:]
                return

    def handle_data(self, data: str) -> None:
        # text is kept as "#text" children so it stays ordered with elements
        if not data or not self.stack:
            return
        parent = self.stack[-1]
        siblings = self.nodes[parent].children
        if siblings and self.nodes[siblings[-1]].tag == _TEXT_TAG:
            self.nodes[siblings[-1]].text_parts.append(data)
            return
        idx = len(self.nodes)
        self.nodes.append(_HtmlNode(tag=_TEXT_TAG, attrs={}, parent=parent, text_parts=[data]))
        siblings.append(idx)


# =========================
# Selectors
# =========================

@dataclass(frozen=True)
class _AttrTest:
    key: str
    op: Optional[str]  # None (presence) | "=" | "*=" | "^="
    value: str = ""


@dataclass(frozen=True)
class _SimpleSelector:
    tag: Optional[str]
    id_value: Optional[str]
    classes: tuple[str, ...]
    attrs: tuple[_AttrTest, ...]


def _split_selector(selector: str) -> list[str]:
    sel = str(selector or "").strip()
    if not sel:
        return []
    out: list[str] = []
    buf: list[str] = []
    depth = 0
    quote: Optional[str] = None

    for ch in sel:
        if quote is not None:
            buf.append(ch)
            if ch == quote:
                quote = None
            continue
        if ch in ("'", '"'):
            quote = ch
            buf.append(ch)
            continue
        if ch == "[":
            depth += 1
        elif ch == "]" and depth > 0:
            depth -= 1
        elif ch.isspace() and depth == 0:
            if buf:
                out.append("".join(buf))
                buf = []
            continue
        buf.append(ch)

    if buf:
        out.append("".join(buf))
    return out


def _read_ident(token: str, pos: int) -> tuple[str, int]:
    i = pos
    while i < len(token) and token[i] not in ".#[":
        i += 1
    return token[pos:i], i


def _parse_attr_test(body: str) -> _AttrTest:
    for op in ("*=", "^=", "="):
        if op in body:
            k, v = body.split(op, 1)
            val = v.strip()
            if len(val) >= 2 and val[0] == val[-1] and val[0] in ("'", '"'):
                val = val[1:-1]
            return _AttrTest(key=k.strip().lower(), op=op, value=val)
    return _AttrTest(key=body.strip().lower(), op=None)


def _parse_simple_selector(token: str) -> Optional[_SimpleSelector]:
    t = str(token or "").strip()
    if not t:
        return None

    i = 0
    n = len(t)
    tag: Optional[str] = None
    id_value: Optional[str] = None
    classes: list[str] = []
    attrs: list[_AttrTest] = []

    if t[0].isalpha() or t[0] == "*":
        i = 1
        while i < n and (t[i].isalnum() or t[i] in ("_", "-")):
            i += 1
        tag = t[:i].lower()

    while i < n:
        ch = t[i]
        if ch in "#.":
            ident, i = _read_ident(t, i + 1)
            if not ident:
                return None
            if ch == "#":
                id_value = ident
            else:
                classes.append(ident)
            continue
        if ch == "[":
            end = t.find("]", i + 1)
            if end < 0:
                return None
            body = t[i + 1:end].strip()
            if not body:
                return None
            attrs.append(_parse_attr_test(body))
            i = end + 1
            continue
        return None

    return _SimpleSelector(tag=tag, id_value=id_value, classes=tuple(classes), attrs=tuple(attrs))


def _matches(node: _HtmlNode, sel: _SimpleSelector) -> bool:
    if node.tag == _TEXT_TAG:
        return False
    if sel.tag and sel.tag != "*" and node.tag != sel.tag:
        return False
    if sel.id_value is not None and node.attrs.get("id") != sel.id_value:
        return False
    if sel.classes:
        cls_set = {x for x in _WS_RE.split((node.attrs.get("class") or "").strip()) if x}
        if any(c not in cls_set for c in sel.classes):
            return False
    for test in sel.attrs:
        if test.key not in node.attrs:
            return False
        actual = node.attrs[test.key]
        if test.op == "=" and actual != test.value:
            return False
        if test.op == "*=" and test.value.lower() not in actual.lower():
            return False
        if test.op == "^=" and not actual.lower().startswith(test.value.lower()):
            return False
    return True


def _iter_descendants(nodes: list[_HtmlNode], start_id: int) -> list[int]:
    out: list[int] = []
    stack = list(reversed(nodes[start_id].children))
    while stack:
        idx = stack.pop()
        out.append(idx)
        if nodes[idx].children:
            stack.extend(reversed(nodes[idx].children))
    return out


def _select_nodes(nodes: list[_HtmlNode], selector: str, *, contexts: Optional[list[int]] = None) -> list[int]:
    chain: list[_SimpleSelector] = []
    for tok in _split_selector(selector):
        parsed = _parse_simple_selector(tok)
        if parsed is None:
            return []
        chain.append(parsed)
    if not chain:
        return []

    current = list(contexts) if contexts else [0]
    for step in chain:
        next_ids: list[int] = []
        seen: set[int] = set()
        for ctx in current:
            for node_id in _iter_descendants(nodes, ctx):
                if node_id not in seen and _matches(nodes[node_id], step):
                    next_ids.append(node_id)
                    seen.add(node_id)
        current = next_ids
        if not current:
            break
    return current


def _parse_html_nodes(html: str) -> list[_HtmlNode]:
    p = _HtmlTreeBuilder()
    p.feed(html or "")
    p.close()
    return p.nodes


# =========================
# Public tree
# =========================

class HtmlTree:
    """Parsed page. Node 0 is the synthetic root."""

    def __init__(self, nodes: list[_HtmlNode]) -> None:
        self.nodes = nodes

    @classmethod
    def parse(cls, html: str) -> "HtmlTree":
        return cls(_parse_html_nodes(html))

    def tag(self, node_id: int) -> str:
        return self.nodes[node_id].tag

    def attr(self, node_id: int, name: str) -> Optional[str]:
        return self.nodes[node_id].attrs.get(name.lower())

    def select(self, selector: str, *, within: Optional[int] = None) -> list[int]:
        return _select_nodes(self.nodes, selector, contexts=[within] if within is not None else None)

    def select_any(self, selectors: Iterable[str]) -> list[int]:
        """Union of several selectors, in document order."""
        found: set[int] = set()
        for sel in selectors:
            found.update(self.select(sel))
        return sorted(found)

    def text(self, node_id: int = 0) -> str:
        """Visible text under the node, whitespace-collapsed."""
        parts: list[str] = []
        stack = [node_id]
        while stack:
            cur = stack.pop()
            node = self.nodes[cur]
            if node.tag in _INVISIBLE_TAGS:
                continue
            for piece in node.text_parts:
                if piece and piece.strip():
                    parts.append(piece.strip())
            if node.children:
                stack.extend(reversed(node.children))
        return _WS_RE.sub(" ", " ".join(parts)).strip()

    def raw_text(self, node_id: int) -> str:
        """Unmodified character data under the node (script bodies)."""
        return "".join(
            "".join(self.nodes[i].text_parts)
            for i in _iter_descendants(self.nodes, node_id)
            if self.nodes[i].tag == _TEXT_TAG
        )

    def ancestors(self, node_id: int) -> list[int]:
        out: list[int] = []
        cur = self.nodes[node_id].parent
        while cur is not None and cur != 0:
            out.append(cur)
            cur = self.nodes[cur].parent
        return out

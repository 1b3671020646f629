# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""lxml tree primitives shared by every extraction stage.

lxml keeps text in ``.text`` / ``.tail`` instead of separate text nodes, so the
helpers here take care of the two things a DOM-style algorithm gets wrong on
lxml: removing an element must not take the following text with it, and
"next node" walks must skip comments and processing instructions.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterator

import lxml.html
from lxml import etree

# Block-level tags that stop a <div> from being a paragraph.
DIV_TO_P_ELEMS = frozenset({"blockquote", "dl", "div", "img", "ol", "p", "pre", "table", "ul"})

# Phrasing content. canvas/iframe/svg/video are phrasing per HTML but get
# wrapped badly, so they are listed only where the browser engines agree.
PHRASING_ELEMS = frozenset(
    {
        "canvas",
        "iframe",
        "svg",
        "video",
        "abbr",
        "audio",
        "b",
        "bdo",
        "br",
        "button",
        "cite",
        "code",
        "data",
        "datalist",
        "dfn",
        "em",
        "embed",
        "i",
        "img",
        "input",
        "kbd",
        "label",
        "mark",
        "math",
        "meter",
        "noscript",
        "object",
        "output",
        "progress",
        "q",
        "ruby",
        "samp",
        "script",
        "select",
        "small",
        "span",
        "strong",
        "sub",
        "sup",
        "textarea",
        "time",
        "var",
        "wbr",
    }
)

# Phrasing only when every child is phrasing.
_TRANSPARENT_PHRASING = frozenset({"a", "del", "ins"})

_NORMALIZE_RE = re.compile(r"\s{2,}")
_HASH_URL_RE = re.compile(r"^#.+")
_TOKENIZE_RE = re.compile(r"\W+")
_DISPLAY_NONE_RE = re.compile(r"display\s*:\s*none", re.IGNORECASE)
_VISIBILITY_HIDDEN_RE = re.compile(r"visibility\s*:\s*hidden", re.IGNORECASE)

_NAMED_ENTITIES = {"quot": '"', "amp": "&", "apos": "'", "lt": "<", "gt": ">"}
_ENTITY_RE = re.compile(r"&(?:(quot|amp|apos|lt|gt)|#(?:[xX]([0-9a-fA-F]+)|([0-9]+)));")

_HASH_LINK_COEFFICIENT = 0.3


# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------


def tag_of(node) -> str:
    """Lowercase tag name, or "" for comments / PIs / entities."""
    tag = getattr(node, "tag", None)
    return tag.lower() if isinstance(tag, str) else ""


def is_element(node) -> bool:
    return isinstance(getattr(node, "tag", None), str)


def create_element(tag: str, attrib: dict[str, str] | None = None) -> lxml.html.HtmlElement:
    """Create a detached HTML element."""
    el = lxml.html.Element(tag)
    for key, value in (attrib or {}).items():
        el.set(key, value)
    return el


def count_elements(root) -> int:
    """Number of elements in the tree, root included."""
    return sum(1 for _ in root.iter(etree.Element))


def class_and_id(el) -> str:
    return f"{el.get('class', '')} {el.get('id', '')}"


# ---------------------------------------------------------------------------
# Navigation
# ---------------------------------------------------------------------------


def element_children(el) -> list:
    return [c for c in el if is_element(c)]


def next_element_sibling(el):
    nxt = el.getnext()
    while nxt is not None and not is_element(nxt):
        nxt = nxt.getnext()
    return nxt


def previous_element_sibling(el):
    prev = el.getprevious()
    while prev is not None and not is_element(prev):
        prev = prev.getprevious()
    return prev


def next_node(node, ignore_self_and_kids: bool = False):
    """Depth-first successor of *node* (elements only).

    With ``ignore_self_and_kids`` the subtree of *node* is skipped, which is
    what the caller wants right before removing it.
    """
    if not ignore_self_and_kids:
        children = element_children(node)
        if children:
            return children[0]
    current = node
    while current is not None:
        sibling = next_element_sibling(current)
        if sibling is not None:
            return sibling
        current = current.getparent()
    return None


def remove_and_get_next(node):
    nxt = next_node(node, ignore_self_and_kids=True)
    remove_node(node)
    return nxt


def get_node_ancestors(el, max_depth: int = 0) -> list:
    """Ancestors nearest first; ``max_depth`` 0 means all of them."""
    ancestors = []
    parent = el.getparent()
    while parent is not None:
        ancestors.append(parent)
        if max_depth and len(ancestors) == max_depth:
            break
        parent = parent.getparent()
    return ancestors


def has_ancestor_tag(
    el,
    tag: str,
    max_depth: int = 3,
    filter_fn: Callable | None = None,
) -> bool:
    """True when an ancestor within *max_depth* hops has *tag* (``max_depth`` <= 0: unlimited)."""
    depth = 0
    parent = el.getparent()
    while parent is not None:
        if 0 < max_depth < depth + 1:
            return False
        if tag_of(parent) == tag and (filter_fn is None or filter_fn(parent)):
            return True
        parent = parent.getparent()
        depth += 1
    return False


def iter_tags(root, *tags: str) -> Iterator:
    """Snapshot of descendants (root included) with one of *tags*.

    Materialised up front so callers can mutate the tree while iterating.
    """
    wanted = set(tags)
    return iter([el for el in root.iter(etree.Element) if tag_of(el) in wanted])


# ---------------------------------------------------------------------------
# Mutation
# ---------------------------------------------------------------------------


def _append_text_before(el, text: str | None) -> None:
    """Attach *text* to whatever precedes *el* (previous sibling tail or parent text)."""
    if not text:
        return
    prev = el.getprevious()
    if prev is not None:
        prev.tail = (prev.tail or "") + text
        return
    parent = el.getparent()
    if parent is not None:
        parent.text = (parent.text or "") + text


def remove_node(el) -> None:
    """Detach *el* with its subtree; the text after it stays in the tree."""
    parent = el.getparent()
    if parent is None:
        return
    _append_text_before(el, el.tail)
    el.tail = None
    parent.remove(el)


def unwrap_node(el) -> None:
    """Replace *el* by its children and text (the tag goes, the content stays)."""
    parent = el.getparent()
    if parent is None:
        return
    _append_text_before(el, el.text)
    index = parent.index(el)
    children = list(el)
    tail = el.tail
    el.tail = None
    parent.remove(el)
    for offset, child in enumerate(children):
        parent.insert(index + offset, child)
    if children:
        last = children[-1]
        last.tail = (last.tail or "") + (tail or "") or None
    elif tail:
        if index > 0:
            prev = parent[index - 1]
            prev.tail = (prev.tail or "") + tail
        else:
            parent.text = (parent.text or "") + tail


def replace_node(old, new) -> None:
    """Put *new* where *old* is; *new* may be a descendant of *old*."""
    parent = old.getparent()
    if parent is None:
        return
    current_parent = new.getparent()
    if current_parent is not None:
        current_parent.remove(new)
    new.tail = old.tail
    old.tail = None
    parent.replace(old, new)


def set_node_tag(el, tag: str):
    """Retag in place. Attributes, children and identity are kept."""
    el.tag = tag
    return el


def trim_trailing_whitespace(el) -> None:
    """Drop trailing whitespace text and <br> from *el*."""
    while True:
        children = list(el)
        if not children:
            if is_whitespace_text(el.text):
                el.text = None
            return
        last = children[-1]
        if not is_whitespace_text(last.tail):
            last.tail = last.tail.rstrip()
            return
        last.tail = None
        if tag_of(last) != "br":
            return
        remove_node(last)


def move_children(src, dst) -> None:
    """Append every child (and text) of *src* to *dst*."""
    if src.text:
        last = dst[-1] if len(dst) else None
        if last is not None:
            last.tail = (last.tail or "") + src.text
        else:
            dst.text = (dst.text or "") + src.text
        src.text = None
    for child in list(src):
        dst.append(child)


# ---------------------------------------------------------------------------
# Text
# ---------------------------------------------------------------------------


def inner_text(el, normalize_spaces: bool = True) -> str:
    """Trimmed text content; runs of whitespace collapse to one space."""
    text = str(el.xpath("string()")).strip() if is_element(el) else ""
    if normalize_spaces:
        return _NORMALIZE_RE.sub(" ", text)
    return text


def _is_xml_char(code: int) -> bool:
    # lxml refuses to store anything else in .text / .tail
    return (
        code in (0x9, 0xA, 0xD)
        or 0x20 <= code <= 0xD7FF
        or 0xE000 <= code <= 0xFFFD
        or 0x10000 <= code <= 0x10FFFF
    )


def _decode_entity(match: re.Match) -> str:
    name, hex_digits, dec_digits = match.groups()
    if name:
        return _NAMED_ENTITIES[name]
    code = int(hex_digits, 16) if hex_digits else int(dec_digits)
    return chr(code) if _is_xml_char(code) else "\ufffd"


def unescape_html_entities(text: str | None) -> str | None:
    """Decode &lt; &gt; &amp; &quot; &apos; and numeric references, in one pass."""
    if not text:
        return text
    return _ENTITY_RE.sub(_decode_entity, text)


def get_char_count(el, sep: str = ",") -> int:
    return inner_text(el).count(sep)


def is_whitespace_text(text: str | None) -> bool:
    return not text or not text.strip()


def tokenize(text: str) -> list[str]:
    return [t for t in _TOKENIZE_RE.split(text.lower()) if t]


def text_similarity(text_a: str, text_b: str) -> float:
    """Shared distinct tokens over the larger distinct token set (0..1)."""
    tokens_a = set(tokenize(text_a))
    tokens_b = set(tokenize(text_b))
    if not tokens_a or not tokens_b:
        return 0.0
    return len(tokens_a & tokens_b) / max(len(tokens_a), len(tokens_b))


def link_density(el) -> float:
    """Share of the element's text that sits inside links.

    In-page ``#anchor`` links count at 0.3 of their length.
    """
    text_length = len(inner_text(el))
    if text_length == 0:
        return 0.0
    link_length = 0.0
    for a in el.iter("a"):
        href = a.get("href")
        coefficient = _HASH_LINK_COEFFICIENT if href and _HASH_URL_RE.match(href) else 1.0
        link_length += len(inner_text(a)) * coefficient
    return link_length / text_length


def text_density(el) -> float:
    """Characters of text per descendant element (0 for an empty element)."""
    text_length = len(inner_text(el))
    descendants = sum(1 for _ in el.iterdescendants(etree.Element))
    if text_length == 0:
        return 0.0
    return text_length / max(descendants, 1)


# ---------------------------------------------------------------------------
# Structure predicates
# ---------------------------------------------------------------------------


def is_phrasing_content(node) -> bool:
    """Phrasing per HTML content categories (a/del/ins only with phrasing children)."""
    tag = tag_of(node)
    if tag in PHRASING_ELEMS:
        return True
    return tag in _TRANSPARENT_PHRASING and all(is_phrasing_content(c) for c in element_children(node))


def has_direct_text(el) -> bool:
    """Non-whitespace text directly inside *el* (not in descendants)."""
    if not is_whitespace_text(el.text):
        return True
    return any(not is_whitespace_text(child.tail) for child in el)


def has_single_tag_inside(el, tag: str) -> bool:
    """Exactly one element child, with *tag*, and no direct text."""
    children = element_children(el)
    if len(children) != 1 or tag_of(children[0]) != tag:
        return False
    return not has_direct_text(el)


def is_element_without_content(el) -> bool:
    if inner_text(el):
        return False
    children = element_children(el)
    return not children or len(children) == sum(1 for c in children if tag_of(c) in ("br", "hr"))


def has_child_block_element(el) -> bool:
    return any(tag_of(c) in DIV_TO_P_ELEMS or has_child_block_element(c) for c in element_children(el))


def is_single_image(el) -> bool:
    """*el* is an <img>, or wraps exactly one image with no text along the way."""
    if tag_of(el) == "img":
        return True
    children = element_children(el)
    if len(children) != 1 or inner_text(el):
        return False
    return is_single_image(children[0])


def is_probably_visible(el) -> bool:
    """Inline-style / hidden / aria-hidden visibility check."""
    style = el.get("style") or ""
    if _DISPLAY_NONE_RE.search(style) or _VISIBILITY_HIDDEN_RE.search(style):
        return False
    if el.get("hidden") is not None:
        return False
    if el.get("aria-hidden") == "true" and "fallback-image" not in (el.get("class") or ""):
        return False
    return True

# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Document preparation before scoring.

Pipeline (in place, on the lxml tree):
  1. Drop comments
  2. Recover noscript-wrapped images (lazy-load fallbacks)
  3. Drop <script>, leftover <noscript>, <style>
  4. Promote lazy-image attributes (data-src, data-srcset, ...) to src/srcset
  5. Turn <br><br> runs into paragraphs
  6. <font> → <span>
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

from lxml import etree

from pagereader.config import DEFAULT_THRESHOLDS, Thresholds
from pagereader.dom import (
    create_element,
    element_children,
    is_phrasing_content,
    is_single_image,
    is_whitespace_text,
    iter_tags,
    next_element_sibling,
    previous_element_sibling,
    remove_node,
    replace_node,
    set_node_tag,
    tag_of,
    trim_trailing_whitespace,
)

logger = logging.getLogger(__name__)

_REMOVE_TAGS = ("script", "noscript", "style")
_LAZY_IMAGE_TAGS = ("img", "picture", "figure")
_IMAGE_SOURCE_ATTRS = ("src", "srcset", "data-src", "data-srcset")

_IMAGE_EXT_RE = re.compile(r"\.(jpg|jpeg|png|webp)", re.IGNORECASE)
_SRCSET_VALUE_RE = re.compile(r"\.(jpg|jpeg|png|webp)\s+\d", re.IGNORECASE)
_SINGLE_URL_VALUE_RE = re.compile(r"^\s*\S+\.(jpg|jpeg|png|webp)\S*\s*$", re.IGNORECASE)
_SRCSET_WIDTH_RE = re.compile(r"\s(\d+)w\b")
_B64_DATA_URL_RE = re.compile(r"^data:\s*([^\s;,]+)\s*;\s*base64\s*,", re.IGNORECASE)
_B64_MARKER_RE = re.compile(r"base64\s*", re.IGNORECASE)


@dataclass
class PrepStats:
    """What prep_document changed, for debug logging and tests."""

    removed: dict[str, int] = field(default_factory=dict)
    noscript_images: int = 0
    lazy_images: int = 0
    br_paragraphs: int = 0
    fonts: int = 0

    def record(self, reason: str, n: int = 1) -> None:
        self.removed[reason] = self.removed.get(reason, 0) + n


# ---------------------------------------------------------------------------
# Scripts / styles / comments
# ---------------------------------------------------------------------------


def remove_comments(root, stats: PrepStats | None = None) -> None:
    for comment in list(root.iter(etree.Comment)):
        remove_node(comment)
        if stats:
            stats.record("comment")


def remove_scripts(root, stats: PrepStats | None = None) -> None:
    """Drop script/noscript/style with content. Untagged nodes are left alone."""
    for el in iter_tags(root, *_REMOVE_TAGS):
        tag = tag_of(el)
        if not tag:
            continue
        remove_node(el)
        if stats:
            stats.record(tag)


# ---------------------------------------------------------------------------
# Noscript images
# ---------------------------------------------------------------------------


def _has_image_source(img) -> bool:
    for name, value in img.attrib.items():
        if name in _IMAGE_SOURCE_ATTRS:
            return True
        if _IMAGE_EXT_RE.search(value or ""):
            return True
    return False


def _usable_source(img) -> bool:
    """Has a src/srcset that is not a base64 placeholder."""
    src = img.get("src") or ""
    if img.get("srcset") or img.get("data-srcset"):
        return True
    return bool(src) and not _B64_DATA_URL_RE.match(src)


def _declared_width(img) -> int:
    """Largest ``NNNw`` descriptor across the image's srcset-style attributes."""
    return max((_max_declared_width(img.get(name) or "") for name in ("srcset", "data-srcset")), default=0)


def unwrap_noscript_images(root, stats: PrepStats | None = None) -> None:
    """Replace a placeholder image with the real one from the next <noscript>."""
    for img in iter_tags(root, "img"):
        if not _has_image_source(img):
            remove_node(img)
            if stats:
                stats.record("placeholder-img")

    for noscript in iter_tags(root, "noscript"):
        if noscript.getparent() is None:
            continue
        content = element_children(noscript)
        if len(content) != 1 or not is_whitespace_text(noscript.text) or not is_single_image(content[0]):
            continue
        prev = previous_element_sibling(noscript)
        if prev is None or not is_single_image(prev):
            continue

        new_img = content[0] if tag_of(content[0]) == "img" else next(content[0].iter("img"))
        if not _usable_source(new_img):
            continue
        prev_img = prev if tag_of(prev) == "img" else next(prev.iter("img"))
        # Keep the placeholder when it already advertises a wider source.
        if _declared_width(prev_img) > _declared_width(new_img):
            continue

        for name, value in prev_img.attrib.items():
            if not value:
                continue
            if name in ("src", "srcset") or _IMAGE_EXT_RE.search(value):
                if new_img.get(name) == value:
                    continue
                target = f"data-old-{name}" if new_img.get(name) is not None else name
                new_img.set(target, value)

        replacement = content[0]
        replace_node(prev, replacement)
        remove_node(noscript)
        if stats:
            stats.noscript_images += 1


# ---------------------------------------------------------------------------
# Lazy images
# ---------------------------------------------------------------------------


def _max_declared_width(value: str) -> int:
    widths = [int(w) for w in _SRCSET_WIDTH_RE.findall(f" {value}")]
    return max(widths) if widths else 0


def _lazy_candidates(el) -> list[tuple[str, str]]:
    """(target attribute, value) pairs found in non-standard attributes."""
    found: list[tuple[str, str]] = []
    for name, value in el.attrib.items():
        if name in ("src", "srcset", "alt") or not value:
            continue
        if name == "data-srcset" or _SRCSET_VALUE_RE.search(value):
            found.append(("srcset", value))
        elif name == "data-src" or _SINGLE_URL_VALUE_RE.match(value):
            found.append(("src", value))
    return found


def _drop_b64_placeholder(el, thresholds: Thresholds) -> None:
    src = el.get("src") or ""
    match = _B64_DATA_URL_RE.match(src)
    if not match or match.group(1) == "image/svg+xml":
        return
    if not any(n != "src" and _IMAGE_EXT_RE.search(v or "") for n, v in el.attrib.items()):
        return
    marker = _B64_MARKER_RE.search(src)
    b64_length = len(src) - (marker.end() if marker else 0)
    if b64_length < thresholds.b64_placeholder_max:
        del el.attrib["src"]


def fix_lazy_images(root, thresholds: Thresholds = DEFAULT_THRESHOLDS, stats: PrepStats | None = None) -> None:
    """Make img/picture/figure usable without script execution."""
    for el in iter_tags(root, *_LAZY_IMAGE_TAGS):
        _drop_b64_placeholder(el, thresholds)

        srcset = el.get("srcset")
        has_source = bool(el.get("src")) or bool(srcset and srcset != "null")
        if has_source and "lazy" not in (el.get("class") or "").lower():
            continue

        candidates = _lazy_candidates(el)
        if not candidates:
            continue
        # Widest declared candidate wins; without width descriptors the first one does.
        best = max(candidates, key=lambda c: _max_declared_width(c[1]))
        if _max_declared_width(best[1]) == 0:
            best = candidates[0]
        target, value = best

        tag = tag_of(el)
        if tag in ("img", "picture"):
            el.set(target, value)
        elif tag == "figure" and next(el.iter("img", "picture"), None) is None:
            img = create_element("img", {target: value})
            el.append(img)
        else:
            continue
        if stats:
            stats.lazy_images += 1


# ---------------------------------------------------------------------------
# <br> runs
# ---------------------------------------------------------------------------


def _next_br(br):
    """The <br> directly after *br* with only whitespace between, else None."""
    if not is_whitespace_text(br.tail):
        return None
    nxt = next_element_sibling(br)
    return nxt if tag_of(nxt) == "br" else None


def replace_brs(root, stats: PrepStats | None = None) -> None:
    """<div>foo<br>bar<br> <br><br>abc</div> → <div>foo<br>bar<p>abc</p></div>."""
    for br in iter_tags(root, "br"):
        parent = br.getparent()
        if parent is None:
            continue

        # Collapse the run that starts here down to the first <br>.
        replaced = False
        nxt = _next_br(br)
        while nxt is not None:
            replaced = True
            following = _next_br(nxt)
            br.tail = nxt.tail
            nxt.tail = None
            parent.remove(nxt)
            nxt = following
        if not replaced:
            continue

        p = create_element("p")
        p.text = br.tail
        br.tail = None
        replace_node(br, p)
        p.tail = None

        sibling = p.getnext()
        while sibling is not None:
            if tag_of(sibling) == "br" and _next_br(sibling) is not None:
                break
            if not is_phrasing_content(sibling):
                break
            following = sibling.getnext()
            p.append(sibling)
            sibling = following

        trim_trailing_whitespace(p)
        if tag_of(p.getparent()) == "p":
            set_node_tag(p.getparent(), "div")
        if stats:
            stats.br_paragraphs += 1


# ---------------------------------------------------------------------------
# Fonts
# ---------------------------------------------------------------------------


def replace_fonts(root, stats: PrepStats | None = None) -> None:
    for font in iter_tags(root, "font"):
        set_node_tag(font, "span")
        if stats:
            stats.fonts += 1


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def prep_document(root, thresholds: Thresholds = DEFAULT_THRESHOLDS) -> PrepStats:
    """Normalise the raw tree in place so it is safe to score."""
    stats = PrepStats()
    remove_comments(root, stats)
    unwrap_noscript_images(root, stats)
    remove_scripts(root, stats)
    fix_lazy_images(root, thresholds, stats)
    replace_brs(root, stats)
    replace_fonts(root, stats)
    logger.debug(
        "prep_document: removed=%s noscript_images=%d lazy_images=%d br_paragraphs=%d fonts=%d",
        stats.removed,
        stats.noscript_images,
        stats.lazy_images,
        stats.br_paragraphs,
        stats.fonts,
    )
    return stats

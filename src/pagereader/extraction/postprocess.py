# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Final touches on the extracted article.

  1. Absolute URIs for href/src/poster/srcset; javascript: links unwrapped
  2. Redundant div/section wrappers collapsed
  3. class attributes stripped (preserved classes excepted)

Entity references in text are decoded once, by the HTML parser, and
serialisation escapes them again; nothing here touches .text or .tail.
"""

from __future__ import annotations

import logging
import re
from urllib.parse import urljoin, urlsplit

from pagereader.config import ReadabilityOptions
from pagereader.dom import (
    create_element,
    element_children,
    has_single_tag_inside,
    is_element_without_content,
    iter_tags,
    move_children,
    next_node,
    remove_and_get_next,
    replace_node,
    tag_of,
    unwrap_node,
)

logger = logging.getLogger(__name__)

_MEDIA_TAGS = ("img", "picture", "figure", "video", "audio", "source")
_SRCSET_URL_RE = re.compile(r"(\S+)(\s+[\d.]+[xw])?(\s*(?:,|$))")
_WRAPPER_TAGS = ("div", "section")


def _is_absolute(uri: str) -> bool:
    parts = urlsplit(uri)
    return bool(parts.scheme and parts.netloc)


def resolve_base_uri(root, url: str | None) -> str | None:
    """``<base href>`` resolved against *url*, else *url* itself."""
    base = next((b for b in iter_tags(root, "base") if b.get("href")), None)
    if base is None:
        return url
    href = base.get("href").strip()
    try:
        if url:
            return urljoin(url, href)
    except ValueError as e:
        logger.debug("Unresolvable <base href=%r>: %s", href, e)
        return url
    return href if _is_absolute(href) else None


class UriResolver:
    """Makes article URIs absolute against a base URI."""

    def __init__(self, base_uri: str, document_uri: str | None = None) -> None:
        self.base_uri = base_uri
        self.document_uri = document_uri if document_uri is not None else base_uri

    def absolute(self, uri: str) -> str:
        # In-page anchors keep working only when nothing rebased the document.
        if self.base_uri == self.document_uri and uri.startswith("#"):
            return uri
        try:
            return urljoin(self.base_uri, uri)
        except ValueError as e:
            logger.debug("Leaving unresolvable URI %r: %s", uri, e)
            return uri

    def absolute_srcset(self, srcset: str) -> str:
        return _SRCSET_URL_RE.sub(
            lambda m: self.absolute(m.group(1)) + (m.group(2) or "") + m.group(3),
            srcset,
        )


def _replace_javascript_link(link) -> None:
    if len(link) == 0:
        unwrap_node(link)
        return
    span = create_element("span")
    move_children(link, span)
    replace_node(link, span)


def fix_relative_uris(article, base_uri: str | None, document_uri: str | None = None) -> None:
    resolver = UriResolver(base_uri, document_uri) if base_uri else None

    for link in iter_tags(article, "a"):
        href = link.get("href")
        if not href:
            continue
        if href.startswith("javascript:"):
            _replace_javascript_link(link)
        elif resolver is not None:
            link.set("href", resolver.absolute(href))

    if resolver is None:
        return
    for media in iter_tags(article, *_MEDIA_TAGS):
        for attr in ("src", "poster"):
            value = media.get(attr)
            if value:
                media.set(attr, resolver.absolute(value))
        srcset = media.get("srcset")
        if srcset:
            media.set("srcset", resolver.absolute_srcset(srcset))


def simplify_nested_elements(article) -> None:
    """Drop empty div/section wrappers; collapse a wrapper around a single div/section."""
    node = article
    while node is not None:
        if (
            node.getparent() is not None
            and tag_of(node) in _WRAPPER_TAGS
            and not (node.get("id") or "").startswith("readability")
        ):
            if is_element_without_content(node):
                node = remove_and_get_next(node)
                continue
            if any(has_single_tag_inside(node, tag) for tag in _WRAPPER_TAGS):
                child = element_children(node)[0]
                for name, value in node.attrib.items():
                    child.set(name, value)
                replace_node(node, child)
                node = child
                continue
        node = next_node(node)


def clean_classes(article, preserved: frozenset[str]) -> None:
    for el in article.iter():
        if not isinstance(el.tag, str):
            continue
        cls = el.get("class")
        if cls is None:
            continue
        kept = " ".join(c for c in cls.split() if c in preserved)
        if kept:
            el.set("class", kept)
        else:
            del el.attrib["class"]


def post_process(
    article,
    options: ReadabilityOptions | None = None,
    *,
    base_uri: str | None = None,
    document_uri: str | None = None,
) -> None:
    options = options or ReadabilityOptions()
    fix_relative_uris(article, base_uri, document_uri)
    simplify_nested_elements(article)
    if not options.keep_classes:
        clean_classes(article, options.preserved_classes)

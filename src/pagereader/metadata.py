# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Article metadata extraction from the lxml document.

Cascade priority per field: JSON-LD > meta tags > DOM heuristics.
JSON-LD must be read before the preprocessor drops <script>; the pipeline
calls ``extract_jsonld`` first and hands the result to ``extract_metadata``.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from pagereader import Metadata
from pagereader.config import DEFAULT_PATTERNS, DEFAULT_THRESHOLDS, Patterns, ReadabilityOptions, Thresholds
from pagereader.dom import (
    class_and_id,
    inner_text,
    iter_tags,
    next_node,
    text_similarity,
    unescape_html_entities,
)

logger = logging.getLogger(__name__)

# --- Patterns ---

_SCHEMA_ORG_RE = re.compile(r"^https?://schema\.org/?$")
_CDATA_RE = re.compile(r"^\s*<!\[CDATA\[|\]\]>\s*$")
_PROPERTY_RE = re.compile(
    r"\s*(article|dc|dcterm|og|twitter)\s*:\s*(author|creator|description|published_time|title|site_name)\s*",
    re.IGNORECASE,
)
_NAME_RE = re.compile(
    r"^\s*(?:(dc|dcterm|og|twitter|parsely|weibo:(article|webpage))\s*[-.:]\s*)?"
    r"(author|creator|pub-date|description|title|site_name)\s*$",
    re.IGNORECASE,
)
_URL_RE = re.compile(r"^[a-z][a-z0-9+.-]*://", re.IGNORECASE)

# " | ", " - ", " – ", " — ", " » ", " / ", ": "
_TITLE_SEPARATORS_RE = re.compile(r" [|\-–—»/] |: ")
_SENTENCE_END_RE = re.compile(r"[.!?](\s|$)")

# Meta keys in precedence order, per field.
_TITLE_KEYS = (
    "dc:title",
    "dcterm:title",
    "og:title",
    "weibo:article:title",
    "weibo:webpage:title",
    "title",
    "twitter:title",
)
_BYLINE_KEYS = ("dc:creator", "dcterm:creator", "author", "parsely-author")
_EXCERPT_KEYS = (
    "dc:description",
    "dcterm:description",
    "og:description",
    "weibo:article:description",
    "weibo:webpage:description",
    "description",
    "twitter:description",
)
_PUBLISHED_KEYS = ("article:published_time", "parsely-pub-date")


# --- JSON-LD ---


def _has_schema_context(data: dict) -> bool:
    context = data.get("@context")
    if isinstance(context, str):
        return bool(_SCHEMA_ORG_RE.match(context))
    if isinstance(context, dict):
        vocab = context.get("@vocab")
        return isinstance(vocab, str) and bool(_SCHEMA_ORG_RE.match(vocab))
    return False


def _type_matches(schema_type: Any, pattern: re.Pattern) -> bool:
    if isinstance(schema_type, list):
        return any(isinstance(t, str) and pattern.match(t) for t in schema_type)
    return isinstance(schema_type, str) and bool(pattern.match(schema_type))


def _find_type_in_jsonld(data: Any, pattern: re.Pattern, max_depth: int = 5) -> dict | None:
    """Find first object whose @type matches *pattern* (handles @graph, arrays, list types)."""
    if max_depth <= 0:
        return None
    if isinstance(data, list):
        for item in data:
            found = _find_type_in_jsonld(item, pattern, max_depth - 1)
            if found:
                return found
        return None
    if not isinstance(data, dict):
        return None
    if _type_matches(data.get("@type"), pattern):
        return data
    if "@graph" in data:
        return _find_type_in_jsonld(data["@graph"], pattern, max_depth - 1)
    return None


def _parse_jsonld_scripts(root) -> list[Any]:
    """Parse every application/ld+json script once. Broken JSON is skipped."""
    parsed = []
    for script in iter_tags(root, "script"):
        if (script.get("type") or "").strip().lower() != "application/ld+json":
            continue
        content = _CDATA_RE.sub("", script.text or "")
        try:
            parsed.append(json.loads(content))
        except json.JSONDecodeError as e:
            logger.debug("Skipping unparseable JSON-LD: %s", e)
    return parsed


def _jsonld_author(author: Any) -> str | None:
    if isinstance(author, dict) and isinstance(author.get("name"), str):
        return author["name"].strip()
    if isinstance(author, list):
        names = [a["name"].strip() for a in author if isinstance(a, dict) and isinstance(a.get("name"), str)]
        return ", ".join(names) or None
    return None


def _jsonld_title(article: dict, document_title: str, thresholds: Thresholds) -> str | None:
    name = article.get("name")
    headline = article.get("headline")
    if isinstance(name, str) and isinstance(headline, str) and name != headline:
        # Both present and different: prefer the one that looks like the page title.
        name_matches = text_similarity(name, document_title) > thresholds.title_similarity
        headline_matches = text_similarity(headline, document_title) > thresholds.title_similarity
        return headline.strip() if headline_matches and not name_matches else name.strip()
    if isinstance(name, str):
        return name.strip()
    if isinstance(headline, str):
        return headline.strip()
    return None


def extract_jsonld(
    root,
    patterns: Patterns = DEFAULT_PATTERNS,
    thresholds: Thresholds = DEFAULT_THRESHOLDS,
) -> dict[str, str]:
    """Article fields from the first schema.org Article-family JSON-LD object."""
    for data in _parse_jsonld_scripts(root):
        items = data if isinstance(data, list) else [data]
        for item in items:
            if not isinstance(item, dict) or not _has_schema_context(item):
                continue
            article = _find_type_in_jsonld(item, patterns.json_ld_article_types)
            if article is None:
                continue

            result: dict[str, str] = {}
            title = _jsonld_title(article, get_article_title(root, thresholds), thresholds)
            if title:
                result["title"] = title
            byline = _jsonld_author(article.get("author"))
            if byline:
                result["byline"] = byline
            if isinstance(article.get("description"), str):
                result["excerpt"] = article["description"].strip()
            publisher = article.get("publisher")
            if isinstance(publisher, dict) and isinstance(publisher.get("name"), str):
                result["site_name"] = publisher["name"].strip()
            if isinstance(article.get("datePublished"), str):
                result["published_time"] = article["datePublished"].strip()
            # Script text is raw; the HTML parser never decoded these.
            return {key: unescape_html_entities(value) for key, value in result.items()}
    return {}


# --- Meta tags ---


def extract_meta_values(root) -> dict[str, str]:
    """Normalised meta key → content. Later tags overwrite earlier ones."""
    values: dict[str, str] = {}
    for meta in iter_tags(root, "meta"):
        content = meta.get("content")
        if not content:
            continue
        matched = False
        prop = meta.get("property")
        if prop:
            m = _PROPERTY_RE.search(prop)
            if m:
                matched = True
                values[re.sub(r"\s", "", m.group(0)).lower()] = content.strip()
        name = meta.get("name")
        if not matched and name and _NAME_RE.match(name):
            key = re.sub(r"\s", "", name).lower().replace(".", ":")
            values[key] = content.strip()
    return values


def _first_value(values: dict[str, str], keys: tuple[str, ...]) -> str | None:
    for key in keys:
        if values.get(key):
            return values[key]
    return None


# --- Title ---


def _title_case_words(text: str) -> int:
    return sum(1 for w in text.split() if w[:1].isupper())


def _plausible_heading(text: str, thresholds: Thresholds) -> bool:
    """2..title_max_words words, short, at most one sentence."""
    words = len(text.split())
    if not 2 <= words <= thresholds.title_max_words:
        return False
    if len(text) > thresholds.title_max_length:
        return False
    return len(_SENTENCE_END_RE.findall(text)) <= 1


def clean_title(title: str) -> str:
    """Drop site-name segments: the segment with the most title-case words wins, then the longest."""
    title = " ".join(title.split())
    segments = [s.strip() for s in _TITLE_SEPARATORS_RE.split(title) if s.strip()]
    if len(segments) <= 1:
        return title
    return max(segments, key=lambda s: (_title_case_words(s), len(s)))


def get_article_title(root, thresholds: Thresholds = DEFAULT_THRESHOLDS) -> str:
    title_el = next(iter_tags(root, "title"), None)
    h1 = next(iter_tags(root, "h1"), None)
    title = inner_text(title_el) if title_el is not None else ""
    heading = inner_text(h1) if h1 is not None else ""

    if not title:
        return heading
    if (
        heading
        and text_similarity(title, heading) < thresholds.title_similarity
        and _plausible_heading(heading, thresholds)
    ):
        return heading
    return clean_title(title)


# --- Byline ---


def is_valid_byline(
    el,
    patterns: Patterns = DEFAULT_PATTERNS,
    thresholds: Thresholds = DEFAULT_THRESHOLDS,
) -> bool:
    """rel=author, itemprop~author, or byline-ish class/id; 1..99 chars of text."""
    itemprop = el.get("itemprop") or ""
    looks_like_byline = (
        el.get("rel") == "author" or "author" in itemprop or bool(patterns.byline.search(class_and_id(el)))
    )
    if not looks_like_byline:
        return False
    length = len(inner_text(el, normalize_spaces=False))
    return 0 < length < thresholds.byline_max_length


def byline_text(el) -> str:
    """Text of the first itemprop=name descendant, else of *el* itself."""
    end = next_node(el, ignore_self_and_kids=True)
    node = next_node(el)
    while node is not None and node is not end:
        if "name" in (node.get("itemprop") or ""):
            return inner_text(node, normalize_spaces=False)
        node = next_node(node)
    return inner_text(el, normalize_spaces=False)


# --- Entry point ---


def extract_metadata(
    root,
    options: ReadabilityOptions | None = None,
    *,
    jsonld: dict[str, str] | None = None,
) -> Metadata:
    """Combine JSON-LD, meta tags and the document title.

    ``jsonld`` short-circuits JSON-LD parsing (the pipeline reads it before
    scripts are stripped). ``dir`` is the document-level direction from
    ``<html dir>``; byline, excerpt and a closer dir may still come later
    from the article itself.
    """
    options = options or ReadabilityOptions()
    if jsonld is None:
        jsonld = {} if options.disable_json_ld else extract_jsonld(root, options.patterns, options.thresholds)
    values = extract_meta_values(root)

    title = jsonld.get("title") or _first_value(values, _TITLE_KEYS)
    if not title:
        title = get_article_title(root, options.thresholds)

    article_author = values.get("article:author")
    if article_author and _URL_RE.match(article_author):
        article_author = None
    byline = jsonld.get("byline") or _first_value(values, _BYLINE_KEYS) or article_author

    excerpt = jsonld.get("excerpt") or _first_value(values, _EXCERPT_KEYS)
    site_name = jsonld.get("site_name") or values.get("og:site_name")
    published_time = jsonld.get("published_time") or _first_value(values, _PUBLISHED_KEYS)
    lang = root.get("lang") if root.tag == "html" else None
    direction = root.get("dir") if root.tag == "html" else None

    metadata = Metadata(
        title=title or "",
        byline=byline,
        excerpt=excerpt,
        site_name=site_name,
        lang=lang or None,
        dir=direction or None,
        published_time=published_time,
    )
    logger.debug(
        "Metadata: title=%r byline=%r jsonld=%s meta_keys=%d",
        metadata.title,
        metadata.byline,
        bool(jsonld),
        len(values),
    )
    return metadata

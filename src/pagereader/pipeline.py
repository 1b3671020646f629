# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Article extraction pipeline orchestration.

Flow:
  raw HTML / parsed tree
    → element-count guard (before any mutation)
    → JSON-LD read (scripts still present)
    → Preprocessor (comments, noscript images, scripts, lazy images, <br> runs, fonts)
    → Metadata (JSON-LD > meta tags > title heuristics)
    → Candidate Selector (scoring + cleaning per relaxation attempt)
    → Post-Processor (URIs, wrappers, classes, entities)
    → ArticleResult
"""

from __future__ import annotations

import logging
import time

import lxml.html
from lxml import etree

from pagereader import ArticleResult
from pagereader.config import ReadabilityOptions
from pagereader.dom import count_elements, inner_text, iter_tags
from pagereader.errors import NoArticleFoundError, ParseError, TooManyElementsError
from pagereader.extraction.postprocess import post_process, resolve_base_uri
from pagereader.extraction.preprocessor import prep_document
from pagereader.extraction.selector import find_body, grab_article
from pagereader.metadata import extract_jsonld, extract_metadata

logger = logging.getLogger(__name__)


def load_document(source):
    """Return the root element for *source* (HTML str/bytes, element or tree)."""
    if isinstance(source, etree._ElementTree):
        source = source.getroot()
    if isinstance(source, etree._Element):
        return source
    if isinstance(source, (str, bytes)):
        if not source.strip():
            raise ParseError("empty document")
        try:
            return lxml.html.document_fromstring(source)
        except (etree.LxmlError, ValueError) as e:
            raise ParseError(f"cannot parse HTML: {e}") from e
    raise ParseError(f"unsupported input type: {type(source).__name__}")


def _first_paragraph(article) -> str | None:
    p = next(iter_tags(article, "p"), None)
    if p is None:
        return None
    return inner_text(p, normalize_spaces=False) or None


class Readability:
    """One-shot extractor: ``Readability(html, url=...).parse()``.

    A parsed tree passed in is mutated in place (scripts, comments and
    friends are removed by the preprocessor).
    """

    def __init__(self, source, url: str | None = None, options: ReadabilityOptions | None = None) -> None:
        self.options = options or ReadabilityOptions()
        self.url = url
        self.root = load_document(source)

    def _check_size(self) -> None:
        limit = self.options.max_elems_to_parse
        if limit <= 0:
            return
        count = count_elements(self.root)
        if count > limit:
            logger.warning("Aborting parse: %d elements exceeds max_elems_to_parse=%d", count, limit)
            raise TooManyElementsError(
                f"document has {count} elements, limit is {limit}",
                element_count=count,
                limit=limit,
            )

    def parse(self) -> ArticleResult:
        """Run the pipeline.

        Raises:
            TooManyElementsError: element count above ``max_elems_to_parse``.
            NoArticleFoundError: no <body>, or no attempt produced any text.
        """
        start = time.monotonic()
        opts = self.options
        root = self.root

        self._check_size()
        if find_body(root) is None:
            raise NoArticleFoundError("document has no <body>")

        base_uri = resolve_base_uri(root, self.url)
        jsonld = {} if opts.disable_json_ld else extract_jsonld(root, opts.patterns, opts.thresholds)
        prep_document(root, opts.thresholds)
        metadata = extract_metadata(root, opts, jsonld=jsonld)

        grabbed = grab_article(root, opts, title=metadata.title, known_byline=metadata.byline)
        article = grabbed.article
        post_process(article, opts, base_uri=base_uri, document_uri=self.url)

        text_content = inner_text(article, normalize_spaces=False)
        excerpt = metadata.excerpt or _first_paragraph(article)
        result = ArticleResult(
            title=metadata.title,
            content=etree.tostring(article, encoding="unicode", method="html"),
            text_content=text_content,
            length=len(text_content),
            excerpt=excerpt,
            byline=metadata.byline or grabbed.byline,
            dir=grabbed.dir or metadata.dir,
            site_name=metadata.site_name,
            lang=metadata.lang,
            published_time=metadata.published_time,
            below_threshold=grabbed.below_threshold,
            attempts=grabbed.attempts,
            elapsed_ms=(time.monotonic() - start) * 1000,
        )
        logger.info(
            "Parsed article %r",
            result.title,
            extra={
                "length": result.length,
                "attempts": result.attempts,
                "below_threshold": result.below_threshold,
                "elapsed_ms": round(result.elapsed_ms, 1),
            },
        )
        return result


def parse(source, url: str | None = None, options: ReadabilityOptions | None = None) -> ArticleResult:
    """Convenience wrapper around ``Readability(source, url, options).parse()``."""
    return Readability(source, url=url, options=options).parse()

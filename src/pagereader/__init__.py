# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Page Reader: reader-mode article extraction for HTML documents.

Turns a noisy web page into the readable article it carries:
- content: cleaned article HTML wrapped in ``<div id="readability-page-1" class="page">``
- metadata: title, byline, excerpt, site name, language, direction, published time
"""

from __future__ import annotations

from dataclasses import asdict, dataclass


@dataclass(frozen=True)
class Metadata:
    """Article metadata from JSON-LD, meta tags and DOM heuristics."""

    title: str = ""
    byline: str | None = None
    excerpt: str | None = None
    site_name: str | None = None
    lang: str | None = None
    dir: str | None = None
    published_time: str | None = None


@dataclass(frozen=True)
class ArticleResult:
    """The extracted article plus quality indicators."""

    title: str
    content: str  # serialized article HTML
    text_content: str
    length: int  # len(text_content)
    excerpt: str | None = None
    byline: str | None = None
    dir: str | None = None
    site_name: str | None = None
    lang: str | None = None
    published_time: str | None = None
    below_threshold: bool = False  # no attempt reached char_threshold; best effort returned
    attempts: int = 1
    elapsed_ms: float = 0.0

    def to_dict(self) -> dict:
        return asdict(self)

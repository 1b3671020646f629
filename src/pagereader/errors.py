# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""PageReader exception hierarchy.

All PageReader-specific errors inherit from ReadabilityError, allowing callers
to catch the base class for any extraction failure or specific subclasses
for targeted handling.

A short article is not an error: it comes back as an ArticleResult with
``below_threshold=True``.
"""

from __future__ import annotations


class ReadabilityError(Exception):
    """Base exception for all PageReader errors."""


class ConfigError(ReadabilityError, ValueError):
    """Invalid ReadabilityOptions / Thresholds value."""


class ParseError(ReadabilityError):
    """Input could not be turned into an HTML document tree."""


class TooManyElementsError(ReadabilityError):
    """Document exceeds the configured element-count guard.

    Raised before any preprocessing or scoring touches the tree.
    """

    def __init__(self, message: str, *, element_count: int = 0, limit: int = 0) -> None:
        super().__init__(message)
        self.element_count = element_count
        self.limit = limit


class NoArticleFoundError(ReadabilityError):
    """No usable article content (missing <body>, or every attempt came back empty)."""

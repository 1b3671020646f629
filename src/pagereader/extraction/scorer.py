# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Node scoring: tag/class base scores and distance-decayed propagation.

A scorable element (p, td, pre, ...) earns a local score from its own text:

    1 + commas + min(len // 100, 3)

The local score lands on the element itself and on each ancestor up to the
document root, decayed by distance from the element:

    parent       S
    grandparent  S / 2
    hop d >= 2   S / (d * 3)
"""

from __future__ import annotations

import logging

from pagereader.config import DEFAULT_PATTERNS, DEFAULT_THRESHOLDS, Patterns, Thresholds
from pagereader.dom import get_node_ancestors, inner_text, tag_of
from pagereader.extraction import Flags, ScoreBoard

logger = logging.getLogger(__name__)

_TAG_BASE_SCORES: dict[str, int] = {
    "div": 5,
    "pre": 3,
    "td": 3,
    "blockquote": 3,
    "address": -3,
    "ol": -3,
    "ul": -3,
    "dl": -3,
    "dd": -3,
    "dt": -3,
    "li": -3,
    "form": -3,
    "h1": -5,
    "h2": -5,
    "h3": -5,
    "h4": -5,
    "h5": -5,
    "h6": -5,
    "th": -5,
}

# ASCII comma plus the CJK / full-width commas.
_COMMA_CHARS = (",", "，", "、", "﹐", "﹑", "،")


def tag_base_score(el) -> int:
    return _TAG_BASE_SCORES.get(tag_of(el), 0)


def count_commas(text: str) -> int:
    return sum(text.count(c) for c in _COMMA_CHARS)


def propagation_divider(level: int) -> int:
    """Divider for the ancestor *level* hops above the scored element (parent = 0)."""
    if level == 0:
        return 1
    if level == 1:
        return 2
    return level * 3


class NodeScorer:
    """Scores elements into a ScoreBoard under the active Flags."""

    def __init__(
        self,
        board: ScoreBoard,
        flags: Flags = Flags.ALL,
        *,
        patterns: Patterns = DEFAULT_PATTERNS,
        thresholds: Thresholds = DEFAULT_THRESHOLDS,
    ) -> None:
        self.board = board
        self.flags = flags
        self.patterns = patterns
        self.thresholds = thresholds

    # ---- class / id weight ----

    def class_weight(self, el) -> int:
        """+class_weight if class or id looks positive, -class_weight if negative.

        Each direction counts once per element, so a positive class and a
        negative id cancel. Zero when WEIGHT_CLASSES is switched off.
        """
        if not self.flags & Flags.WEIGHT_CLASSES:
            return 0
        values = [v for v in (el.get("class"), el.get("id")) if v]
        negative = any(self.patterns.negative.search(v) for v in values)
        positive = any(self.patterns.positive.search(v) for v in values)
        return self.thresholds.class_weight * (int(positive) - int(negative))

    # ---- annotation ----

    def initialize_node(self, el) -> bool:
        """Seed *el*'s annotation with its base score. Returns False if already done."""
        ann = self.board.annotation(el)
        if ann.initialized:
            return False
        ann.content_score = float(tag_base_score(el) + self.class_weight(el))
        ann.initialized = True
        return True

    def score_text(self, text: str) -> int:
        th = self.thresholds
        return 1 + count_commas(text) + min(len(text) // th.length_bonus_divisor, th.length_bonus_cap)

    def score_paragraph(self, el) -> float:
        """Score one scorable element and propagate to its ancestors.

        Returns the local score, or 0.0 when the element is skipped
        (detached, or text shorter than ``min_paragraph_length``).
        """
        if el.getparent() is None:
            return 0.0
        text = inner_text(el)
        if len(text) < self.thresholds.min_paragraph_length:
            return 0.0

        # The document root (<html>, no parent) is never a candidate.
        ancestors = [a for a in get_node_ancestors(el) if a.getparent() is not None]
        if not ancestors:
            return 0.0

        local = float(self.score_text(text))

        self.initialize_node(el)
        self.board.annotation(el).content_score += local

        for level, ancestor in enumerate(ancestors):
            self.initialize_node(ancestor)
            self.board.annotation(ancestor).content_score += local / propagation_divider(level)

        logger.debug("Scored <%s> %.1f over %d ancestors", tag_of(el), local, len(ancestors))
        return local

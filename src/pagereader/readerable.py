# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Cheap "is this page an article?" check, run without the full pipeline.

Does not mutate the document.
"""

from __future__ import annotations

import math

from pagereader.config import DEFAULT_PATTERNS, Patterns
from pagereader.dom import class_and_id, has_ancestor_tag, inner_text, is_probably_visible, iter_tags, tag_of

DEFAULT_MIN_CONTENT_LENGTH = 140
DEFAULT_MIN_SCORE = 20


def _content_nodes(root) -> list:
    nodes = list(iter_tags(root, "p", "pre", "article"))
    seen = set(nodes)
    for br in iter_tags(root, "br"):
        parent = br.getparent()
        if tag_of(parent) == "div" and parent not in seen:
            seen.add(parent)
            nodes.append(parent)
    return nodes


def is_probably_readerable(
    root,
    min_content_length: int = DEFAULT_MIN_CONTENT_LENGTH,
    min_score: float = DEFAULT_MIN_SCORE,
    patterns: Patterns = DEFAULT_PATTERNS,
) -> bool:
    """True once sqrt(len - min_content_length) summed over text blocks exceeds *min_score*."""
    score = 0.0
    for node in _content_nodes(root):
        if not is_probably_visible(node):
            continue
        match_string = class_and_id(node)
        if patterns.unlikely_candidates.search(match_string) and not patterns.maybe_candidate.search(match_string):
            continue
        if tag_of(node) == "p" and has_ancestor_tag(node, "li", -1):
            continue
        length = len(inner_text(node, normalize_spaces=False))
        if length < min_content_length:
            continue
        score += math.sqrt(length - min_content_length)
        if score > min_score:
            return True
    return False

# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Candidate selection: find the article subtree, retrying with relaxed heuristics.

Per attempt (``RELAXATION_STEPS``), on a fresh deep copy of the prepared document:
  1. Walk: drop invisible/unlikely/empty nodes, capture the byline, queue scorables
  2. Score queued elements (NodeScorer)
  3. Rank candidates by score * (1 - link density), pick and refine the top one
  4. Merge qualifying siblings, clean (ArticleCleaner), wrap in the page div
  5. Accept when the text reaches ``char_threshold``

No attempt long enough: the longest one is returned with ``below_threshold``.
"""

from __future__ import annotations

import copy
import logging
import re
from dataclasses import dataclass

from pagereader.config import DEFAULT_THRESHOLDS, ReadabilityOptions, Thresholds
from pagereader.dom import (
    class_and_id,
    create_element,
    element_children,
    get_node_ancestors,
    has_ancestor_tag,
    has_child_block_element,
    has_single_tag_inside,
    inner_text,
    is_element,
    is_element_without_content,
    is_phrasing_content,
    is_probably_visible,
    is_whitespace_text,
    link_density,
    move_children,
    next_node,
    remove_and_get_next,
    remove_node,
    replace_node,
    set_node_tag,
    tag_of,
    trim_trailing_whitespace,
)
from pagereader.errors import NoArticleFoundError
from pagereader.extraction import RELAXATION_STEPS, Candidate, Flags, ScoreBoard
from pagereader.extraction.cleaner import ArticleCleaner
from pagereader.extraction.scorer import NodeScorer
from pagereader.metadata import byline_text, is_valid_byline

logger = logging.getLogger(__name__)

PAGE_ID = "readability-page-1"
PAGE_CLASS = "page"

_EMPTY_REMOVABLE_TAGS = frozenset({"div", "section", "header", "h1", "h2", "h3", "h4", "h5", "h6"})
_NEVER_UNLIKELY_TAGS = frozenset({"body", "a", "html"})
_ALTER_TO_DIV_EXCEPTIONS = frozenset({"div", "article", "section", "p"})
_SENTENCE_END_RE = re.compile(r"\.( |$)")


@dataclass
class Attempt:
    """Outcome of one grab attempt."""

    flags: Flags
    article: object  # the page <div>
    text_length: int
    byline: str | None = None
    dir: str | None = None


@dataclass
class GrabResult:
    article: object
    text_length: int
    byline: str | None
    dir: str | None
    flags: Flags
    attempts: int
    below_threshold: bool = False


def find_body(root):
    if tag_of(root) == "body":
        return root
    return next((el for el in root.iter("body")), None)


# ---------------------------------------------------------------------------
# Phrasing runs
# ---------------------------------------------------------------------------


def wrap_phrasing_runs(div) -> None:
    """Wrap each run of phrasing content (text included) directly in *div* into a <p>."""
    children = list(div)
    p = None
    if not is_whitespace_text(div.text):
        p = create_element("p")
        p.text = div.text
        div.text = None
        div.insert(0, p)

    for child in children:
        if not is_element(child) or is_phrasing_content(child):
            if p is not None:
                p.append(child)  # the tail travels with it
                continue
            if tag_of(child) == "br" or not is_element(child):
                # A lone <br> does not start a paragraph; its tail text might.
                if not is_whitespace_text(child.tail):
                    p = create_element("p")
                    p.text = child.tail
                    child.tail = None
                    child.addnext(p)
                continue
            p = create_element("p")
            child.addprevious(p)
            p.append(child)
            continue

        # Block element: close the open paragraph, start a new one from its tail.
        if p is not None:
            trim_trailing_whitespace(p)
            p = None
        if not is_whitespace_text(child.tail):
            p = create_element("p")
            p.text = child.tail
            child.tail = None
            child.addnext(p)

    if p is not None:
        trim_trailing_whitespace(p)


# ---------------------------------------------------------------------------
# Sibling merge
# ---------------------------------------------------------------------------


def _sibling_paragraph_qualifies(sibling, thresholds: Thresholds) -> bool:
    text = inner_text(sibling)
    density = link_density(sibling)
    if len(text) > thresholds.sibling_p_min_length:
        return density < thresholds.sibling_p_max_link_density
    return 0 < len(text) < thresholds.sibling_p_min_length and density == 0 and bool(_SENTENCE_END_RE.search(text))


def merge_siblings(top, board: ScoreBoard, thresholds: Thresholds = DEFAULT_THRESHOLDS):
    """Collect *top* plus its qualifying siblings (document order) into a new <div>."""
    article = create_element("div")
    top_score = board.score(top)
    threshold = max(thresholds.sibling_score_floor, top_score * thresholds.sibling_score_ratio)
    top_class = top.get("class") or ""

    parent = top.getparent()
    siblings = element_children(parent) if parent is not None else [top]
    for sibling in siblings:
        append = sibling is top
        if not append:
            bonus = 0.0
            if top_class and sibling.get("class") == top_class:
                bonus = top_score * thresholds.sibling_class_bonus_ratio
            if board.is_initialized(sibling) and board.score(sibling) + bonus >= threshold:
                append = True
            elif tag_of(sibling) == "p":
                append = _sibling_paragraph_qualifies(sibling, thresholds)
        if not append:
            continue

        logger.debug("Appending sibling <%s class=%r>", tag_of(sibling), sibling.get("class"))
        if tag_of(sibling) not in _ALTER_TO_DIV_EXCEPTIONS:
            set_node_tag(sibling, "div")
        remove_node(sibling)
        article.append(sibling)
    return article


def article_direction(top) -> str | None:
    """First dir attribute on the candidate, its parent, or further up."""
    for node in [top, *get_node_ancestors(top)]:
        value = node.get("dir")
        if value:
            return value
    return None


# ---------------------------------------------------------------------------
# Selector
# ---------------------------------------------------------------------------


class CandidateSelector:
    """Runs one grab attempt per ``Flags`` value."""

    def __init__(
        self,
        options: ReadabilityOptions,
        *,
        title: str = "",
        known_byline: str | None = None,
    ) -> None:
        self.options = options
        self.thresholds = options.thresholds
        self.patterns = options.patterns
        self.title = title
        self.known_byline = known_byline

    # ---- walk ----

    def _is_unlikely(self, node, flags: Flags) -> bool:
        if not flags & Flags.STRIP_UNLIKELYS:
            return False
        if (node.get("role") or "").strip().lower() in self.patterns.unlikely_roles:
            return True
        match_string = class_and_id(node)
        return (
            bool(self.patterns.unlikely_candidates.search(match_string))
            and not self.patterns.maybe_candidate.search(match_string)
            and not has_ancestor_tag(node, "table")
            and not has_ancestor_tag(node, "code")
            and tag_of(node) not in _NEVER_UNLIKELY_TAGS
        )

    def _handle_div(self, node, queue: list):
        """Paragraph-ise a <div>. Returns the node the walk continues from."""
        wrap_phrasing_runs(node)
        children = element_children(node)
        if has_single_tag_inside(node, "p") and link_density(node) < self.thresholds.single_p_link_density:
            new_node = children[0]
            replace_node(node, new_node)
            queue.append(new_node)
            return new_node
        if not has_child_block_element(node):
            set_node_tag(node, "p")
            queue.append(node)
        return node

    def walk(self, body, flags: Flags, cleaner: ArticleCleaner) -> tuple[list, str | None]:
        """Prune *body* in place. Returns (elements to score, byline found)."""
        queue: list = []
        byline: str | None = None
        remove_title_header = True
        tags_to_score = self.options.tags_to_score

        node = body
        while node is not None:
            tag = tag_of(node)

            if not is_probably_visible(node):
                logger.debug("Removing hidden node <%s>", tag)
                node = remove_and_get_next(node)
                continue

            if node.get("aria-modal") == "true" and node.get("role") == "dialog":
                node = remove_and_get_next(node)
                continue

            if self.known_byline is None and byline is None and is_valid_byline(node, self.patterns, self.thresholds):
                byline = byline_text(node).strip()
                logger.debug("Byline found: %r", byline)
                node = remove_and_get_next(node)
                continue

            if remove_title_header and cleaner.header_duplicates_title(node):
                remove_title_header = False
                node = remove_and_get_next(node)
                continue

            if self._is_unlikely(node, flags):
                logger.debug("Removing unlikely candidate <%s %r>", tag, class_and_id(node).strip())
                node = remove_and_get_next(node)
                continue

            if tag in _EMPTY_REMOVABLE_TAGS and is_element_without_content(node):
                node = remove_and_get_next(node)
                continue

            if tag in tags_to_score:
                queue.append(node)

            if tag == "div":
                node = self._handle_div(node, queue)

            node = next_node(node)
        return queue, byline

    # ---- ranking ----

    def rank(self, body, board: ScoreBoard) -> list[Candidate]:
        """Top ``n_top_candidates`` by link-density-scaled score; ties keep document order."""
        order = {el: i for i, el in enumerate(body.iter())}
        ranked: list[Candidate] = []
        for el in board.elements():
            if el not in order:
                continue
            ann = board.annotation(el)
            ann.content_score *= 1 - link_density(el)
            ranked.append(Candidate(el, ann.content_score, order[el]))
        ranked.sort(key=lambda c: (-c.score, c.order))
        return ranked[: self.options.n_top_candidates]

    def _promote_shared_ancestor(self, top, candidates: list[Candidate], board: ScoreBoard):
        th = self.thresholds
        top_score = board.score(top)
        if top_score <= 0:
            return top
        alternatives = [
            get_node_ancestors(c.element)
            for c in candidates[1:]
            if c.score / top_score >= th.alternative_candidate_ratio
        ]
        if len(alternatives) < th.min_alternative_candidates:
            return top
        parent = top.getparent()
        while parent is not None and tag_of(parent) != "body":
            shared = sum(1 for ancestors in alternatives if any(a is parent for a in ancestors))
            if shared >= th.min_alternative_candidates:
                logger.debug("Promoting shared ancestor <%s>", tag_of(parent))
                return parent
            parent = parent.getparent()
        return top

    def _climb(self, top, board: ScoreBoard, scorer: NodeScorer):
        scorer.initialize_node(top)

        # Move up while the parent scores higher; give up once it drops below a third.
        parent = top.getparent()
        last_score = board.score(top)
        score_threshold = last_score * self.thresholds.parent_climb_ratio
        while parent is not None and tag_of(parent) != "body":
            if not board.is_initialized(parent):
                parent = parent.getparent()
                continue
            parent_score = board.score(parent)
            if parent_score < score_threshold:
                break
            if parent_score > last_score:
                top = parent
                break
            last_score = parent_score
            parent = parent.getparent()

        # A lone child says nothing on its own; take the wrapper.
        parent = top.getparent()
        while parent is not None and tag_of(parent) != "body" and len(element_children(parent)) == 1:
            top = parent
            parent = top.getparent()
        scorer.initialize_node(top)
        return top

    def select_top(self, body, candidates: list[Candidate], board: ScoreBoard, scorer: NodeScorer):
        """The element whose siblings get merged. Never <body> itself."""
        top = candidates[0].element if candidates else None
        if top is None or tag_of(top) == "body":
            top = create_element("div")
            move_children(body, top)
            body.append(top)
            scorer.initialize_node(top)
            logger.debug("No usable candidate; synthesized a div from <body>")
            return top
        top = self._promote_shared_ancestor(top, candidates, board)
        return self._climb(top, board, scorer)

    # ---- attempt ----

    def attempt(self, doc, flags: Flags) -> Attempt:
        root = copy.deepcopy(doc)
        body = find_body(root)
        if body is None:
            raise NoArticleFoundError("document has no <body>")

        board = ScoreBoard()
        scorer = NodeScorer(board, flags, patterns=self.patterns, thresholds=self.thresholds)
        cleaner = ArticleCleaner(self.options, flags, board, title=self.title)

        queue, byline = self.walk(body, flags, cleaner)
        for el in queue:
            scorer.score_paragraph(el)

        candidates = self.rank(body, board)
        top = self.select_top(body, candidates, board, scorer)
        direction = article_direction(top)

        article = merge_siblings(top, board, self.thresholds)
        cleaner.prep_article(article)

        page = create_element("div", {"id": PAGE_ID, "class": PAGE_CLASS})
        move_children(article, page)

        text_length = len(inner_text(page))
        return Attempt(flags=flags, article=page, text_length=text_length, byline=byline, dir=direction)

    def grab(self, doc) -> GrabResult:
        attempts: list[Attempt] = []
        threshold = self.options.char_threshold
        for flags in RELAXATION_STEPS:
            result = self.attempt(doc, flags)
            attempts.append(result)
            if result.text_length >= threshold:
                return GrabResult(
                    article=result.article,
                    text_length=result.text_length,
                    byline=result.byline,
                    dir=result.dir,
                    flags=flags,
                    attempts=len(attempts),
                )
            logger.warning(
                "Attempt %d with flags=%s produced %d chars (< %d); relaxing",
                len(attempts),
                flags.name if flags.name else int(flags),
                result.text_length,
                threshold,
            )

        best = max(attempts, key=lambda a: a.text_length)
        if best.text_length == 0:
            raise NoArticleFoundError(f"no text extracted after {len(attempts)} attempts")
        return GrabResult(
            article=best.article,
            text_length=best.text_length,
            byline=best.byline,
            dir=best.dir,
            flags=best.flags,
            attempts=len(attempts),
            below_threshold=True,
        )


def grab_article(
    doc,
    options: ReadabilityOptions | None = None,
    *,
    title: str = "",
    known_byline: str | None = None,
) -> GrabResult:
    """Extract the article subtree from the prepared document *doc* (left untouched)."""
    selector = CandidateSelector(options or ReadabilityOptions(), title=title, known_byline=known_byline)
    return selector.grab(doc)

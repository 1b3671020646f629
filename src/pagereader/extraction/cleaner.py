# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Cleaning of the selected article subtree.

Order matters and follows prep_article():
  1. Presentational attributes stripped (preserved classes excepted)
  2. Data tables marked (exempt from conditional cleaning)
  3. Unconditional removal: style/script/link, hidden, non-video embeds,
     footer/aside/form controls, share widgets
  4. Conditional removal of form/fieldset (CLEAN_CONDITIONALLY)
  5. Headers: negative class weight, duplicates of the title
  6. Conditional removal of table/ul/div/li/p/select
  7. h1 → h2, empty <p>, <br> before <p>, single-cell tables
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from lxml import etree

from pagereader.config import ReadabilityOptions
from pagereader.dom import (
    class_and_id,
    element_children,
    has_ancestor_tag,
    has_single_tag_inside,
    inner_text,
    is_phrasing_content,
    is_whitespace_text,
    iter_tags,
    link_density,
    next_element_sibling,
    next_node,
    remove_and_get_next,
    remove_node,
    replace_node,
    set_node_tag,
    tag_of,
    text_similarity,
)
from pagereader.extraction import Flags, ScoreBoard
from pagereader.extraction.scorer import NodeScorer

logger = logging.getLogger(__name__)

PRESENTATIONAL_ATTRIBUTES = (
    "align",
    "background",
    "bgcolor",
    "border",
    "cellpadding",
    "cellspacing",
    "frame",
    "hspace",
    "rules",
    "style",
    "valign",
    "vspace",
)
DEPRECATED_SIZE_ATTRIBUTE_ELEMS = frozenset({"table", "th", "td", "hr", "pre"})

_EMBED_TAGS = ("object", "embed", "iframe")
_ALWAYS_REMOVE_TAGS = ("style", "script", "link", "footer", "aside", "input", "textarea", "button")

# Conditional cleaning runs in two passes around header cleanup.
_CONDITIONAL_TAGS_EARLY = ("form", "fieldset")
_CONDITIONAL_TAGS_LATE = ("table", "ul", "div", "li", "p", "select")
_RELAXED_DENSITY_TAGS = frozenset({"ul", "ol", "li", "table", "select"})
_DATA_TABLE_DESCENDANTS = ("col", "colgroup", "tfoot", "thead", "th")
_DATA_TABLE_ROLES = frozenset({"grid", "treegrid", "table"})


@dataclass
class CleanStats:
    """Removal counts per reason."""

    removed: dict[str, int] = field(default_factory=dict)

    def record(self, reason: str) -> None:
        self.removed[reason] = self.removed.get(reason, 0) + 1

    @property
    def total(self) -> int:
        return sum(self.removed.values())


def _is_attached(el, root) -> bool:
    node = el
    while node is not None:
        if node is root:
            return True
        node = node.getparent()
    return False


def get_row_and_column_count(table) -> tuple[int, int]:
    rows = 0
    columns = 0
    for tr in table.iter("tr"):
        try:
            rows += int(tr.get("rowspan") or 1)
        except ValueError:
            rows += 1
        columns_in_row = 0
        for cell in tr.iter("td"):
            try:
                columns_in_row += int(cell.get("colspan") or 1)
            except ValueError:
                columns_in_row += 1
        columns = max(columns, columns_in_row)
    return rows, columns


class ArticleCleaner:
    """Prunes noise from a candidate article subtree.

    One instance per grab attempt: it reads the attempt's Flags and
    ScoreBoard and the already-extracted title.
    """

    def __init__(
        self,
        options: ReadabilityOptions,
        flags: Flags = Flags.ALL,
        board: ScoreBoard | None = None,
        *,
        title: str = "",
    ) -> None:
        self.options = options
        self.flags = flags
        self.board = board if board is not None else ScoreBoard()
        self.title = title
        self.patterns = options.patterns
        self.thresholds = options.thresholds
        self.scorer = NodeScorer(self.board, flags, patterns=self.patterns, thresholds=self.thresholds)
        self.stats = CleanStats()
        self._data_tables: set = set()

    # ---- helpers ----

    def _remove(self, el, reason: str) -> None:
        logger.debug("Cleaning <%s class=%r>: %s", tag_of(el), el.get("class"), reason)
        remove_node(el)
        self.stats.record(reason)

    def _is_preserved(self, el) -> bool:
        classes = set((el.get("class") or "").split())
        return bool(classes & self.options.preserved_classes)

    def is_allowed_embed(self, el) -> bool:
        """Embeds pointing at a known video host survive cleaning."""
        videos = self.patterns.videos
        if any(videos.search(value or "") for value in el.attrib.values()):
            return True
        if tag_of(el) == "object":
            inner = "".join(etree.tostring(c, encoding="unicode", method="html") for c in el)
            return bool(videos.search(inner))
        return False

    def is_data_table(self, table) -> bool:
        return table in self._data_tables

    def _inside_data_table(self, el) -> bool:
        return has_ancestor_tag(el, "table", -1, self.is_data_table)

    # ---- 1. styles ----

    def clean_styles(self, el) -> None:
        """Strip presentational attributes from *el* and below (svg subtrees skipped)."""
        if tag_of(el) == "svg":
            return
        if not self._is_preserved(el):
            for attr in PRESENTATIONAL_ATTRIBUTES:
                el.attrib.pop(attr, None)
            if tag_of(el) in DEPRECATED_SIZE_ATTRIBUTE_ELEMS:
                el.attrib.pop("width", None)
                el.attrib.pop("height", None)
        for child in element_children(el):
            self.clean_styles(child)

    # ---- 2. data tables ----

    def _classify_table(self, table) -> bool:
        role = (table.get("role") or "").lower()
        if role == "presentation":
            return False
        if role in _DATA_TABLE_ROLES:
            return True
        if table.get("datatable") == "0":
            return False
        if table.get("summary"):
            return True
        caption = next(table.iter("caption"), None)
        if caption is not None and (len(caption) or not is_whitespace_text(caption.text)):
            return True
        if any(next(table.iter(tag), None) is not None for tag in _DATA_TABLE_DESCENDANTS):
            return True
        if any(t is not table for t in table.iter("table")):
            return False
        rows, columns = get_row_and_column_count(table)
        th = self.thresholds
        if rows >= th.data_table_min_rows or columns > th.data_table_max_columns:
            return True
        return rows * columns > th.data_table_min_cells

    def mark_data_tables(self, root) -> set:
        self._data_tables = {t for t in root.iter("table") if self._classify_table(t)}
        return self._data_tables

    # ---- 3. unconditional removal ----

    def clean_tag(self, root, tag: str) -> None:
        """Remove every *tag* element; allowed video embeds are kept."""
        is_embed = tag in _EMBED_TAGS
        for el in reversed(list(iter_tags(root, tag))):
            if el is root or not _is_attached(el, root):
                continue
            if is_embed and self.is_allowed_embed(el):
                continue
            self._remove(el, tag)

    def clean_hidden(self, root) -> None:
        for el in reversed(list(root.iterdescendants(etree.Element))):
            if not _is_attached(el, root):
                continue
            if el.get("hidden") is not None or el.get("aria-hidden") == "true":
                self._remove(el, "hidden")

    def clean_share_elements(self, root) -> None:
        """Short share/sharedaddy widgets below each top-level child."""
        limit = self.options.char_threshold
        for top in element_children(root):
            end = next_node(top, ignore_self_and_kids=True)
            node = next_node(top)
            while node is not None and node is not end:
                if self.patterns.share_elements.search(class_and_id(node)) and len(inner_text(node)) < limit:
                    self.stats.record("share")
                    node = remove_and_get_next(node)
                else:
                    node = next_node(node)

    # ---- 4/6. conditional removal ----

    def _media_counts(self, el) -> tuple[int, int]:
        images = sum(1 for _ in el.iter("img"))
        embeds = sum(1 for e in el.iter(*_EMBED_TAGS) if self.is_allowed_embed(e))
        return images, embeds

    def should_remove_conditionally(self, el) -> bool:
        """All three must hold: link-heavy, negatively weighted, few media."""
        tag = tag_of(el)
        if tag == "table" and self.is_data_table(el):
            return False
        if self._inside_data_table(el) or has_ancestor_tag(el, "code", -1):
            return False

        th = self.thresholds
        density = link_density(el)
        cutoff = th.link_density_cutoff_relaxed if tag in _RELAXED_DENSITY_TAGS else th.link_density_cutoff
        if density <= cutoff:
            return False

        weight = self.scorer.class_weight(el) - th.class_weight * density
        negative_signal = bool(self.patterns.negative.search(class_and_id(el).strip()))
        if weight >= 0 and not negative_signal:
            return False

        images, embeds = self._media_counts(el)
        media = images + embeds
        if media:
            paragraphs = sum(1 for _ in el.iter("p"))
            text_length = len(inner_text(el))
            if media > max(paragraphs, 1) or text_length / media <= th.media_text_per_item:
                return False
        return True

    def clean_conditionally(self, root, tag: str) -> None:
        if not self.flags & Flags.CLEAN_CONDITIONALLY:
            return
        for el in reversed(list(iter_tags(root, tag))):
            if el is root or not _is_attached(el, root):
                continue
            if self.should_remove_conditionally(el):
                self._remove(el, f"conditional-{tag}")

    # ---- 5. headers ----

    def header_duplicates_title(self, el) -> bool:
        if tag_of(el) not in ("h1", "h2") or not self.title:
            return False
        heading = inner_text(el, normalize_spaces=False)
        return text_similarity(self.title, heading) >= self.thresholds.title_similarity

    def clean_headers(self, root) -> None:
        for el in reversed(list(iter_tags(root, "h1", "h2"))):
            if not _is_attached(el, root):
                continue
            if self.scorer.class_weight(el) < 0:
                self._remove(el, "header-weight")
            elif self.header_duplicates_title(el):
                self._remove(el, "header-duplicates-title")

    # ---- 7. final tidy ----

    def remove_empty_paragraphs(self, root) -> None:
        for p in reversed(list(iter_tags(root, "p"))):
            if not _is_attached(p, root):
                continue
            has_media = next(p.iter("img", "embed", "object", "iframe"), None) is not None
            if not has_media and not inner_text(p, normalize_spaces=False):
                self._remove(p, "empty-p")

    def remove_br_before_p(self, root) -> None:
        for br in list(iter_tags(root, "br")):
            if not is_whitespace_text(br.tail):
                continue
            if tag_of(next_element_sibling(br)) == "p":
                remove_node(br)

    def unwrap_single_cell_tables(self, root) -> None:
        for table in reversed(list(iter_tags(root, "table"))):
            if table is root or not _is_attached(table, root):
                continue
            tbody = element_children(table)[0] if has_single_tag_inside(table, "tbody") else table
            if not has_single_tag_inside(tbody, "tr"):
                continue
            row = element_children(tbody)[0]
            if not has_single_tag_inside(row, "td"):
                continue
            cell = element_children(row)[0]
            all_phrasing = all(is_phrasing_content(c) for c in element_children(cell))
            set_node_tag(cell, "p" if all_phrasing else "div")
            replace_node(table, cell)
            self.stats.record("single-cell-table")

    # ---- entry point ----

    def prep_article(self, article) -> CleanStats:
        """Clean *article* in place and return removal stats."""
        self.clean_styles(article)
        self.mark_data_tables(article)

        for tag in _ALWAYS_REMOVE_TAGS:
            self.clean_tag(article, tag)
        for tag in _EMBED_TAGS:
            self.clean_tag(article, tag)
        self.clean_hidden(article)
        self.clean_share_elements(article)

        for tag in _CONDITIONAL_TAGS_EARLY:
            self.clean_conditionally(article, tag)
        self.clean_headers(article)
        for tag in _CONDITIONAL_TAGS_LATE:
            self.clean_conditionally(article, tag)

        for h1 in iter_tags(article, "h1"):
            set_node_tag(h1, "h2")
        self.remove_empty_paragraphs(article)
        self.remove_br_before_p(article)
        self.unwrap_single_cell_tables(article)

        logger.debug("prep_article removed %d nodes: %s", self.stats.total, self.stats.removed)
        return self.stats

# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Unit tests for extraction/scorer.py and the extraction data structures."""

from __future__ import annotations

import pytest

from pagereader.extraction import RELAXATION_STEPS, Candidate, Flags, ScoreBoard
from pagereader.extraction.scorer import NodeScorer, count_commas, propagation_divider, tag_base_score
from tests._reader_helpers import html, parse_doc, parse_el

# ---------------------------------------------------------------------------
# Flags / ScoreBoard
# ---------------------------------------------------------------------------


class TestFlags:
    def test_relaxation_drops_one_heuristic_per_step(self):
        assert RELAXATION_STEPS[0] == Flags.ALL
        assert not RELAXATION_STEPS[1] & Flags.STRIP_UNLIKELYS
        assert not RELAXATION_STEPS[2] & Flags.WEIGHT_CLASSES
        assert RELAXATION_STEPS[-1] == Flags.NONE

    def test_candidate_identity_ignored_in_compare(self):
        a = Candidate(element=object(), score=1.0, order=0)
        b = Candidate(element=object(), score=1.0, order=0)
        assert a == b


class TestScoreBoard:
    def test_annotation_created_uninitialized(self):
        board = ScoreBoard()
        el = parse_el("<p>x</p>")
        ann = board.annotation(el)
        assert ann.initialized is False
        assert el in board
        assert board.is_initialized(el) is False
        assert list(board.elements()) == []

    def test_score_of_unknown_element_is_zero(self):
        assert ScoreBoard().score(parse_el("<p>x</p>")) == 0.0


# ---------------------------------------------------------------------------
# Base scores / class weight
# ---------------------------------------------------------------------------


class TestBaseScores:
    @pytest.mark.parametrize(
        ("markup", "expected"),
        [
            ("<div>x</div>", 5),
            ("<pre>x</pre>", 3),
            ("<blockquote>x</blockquote>", 3),
            ("<ul><li>x</li></ul>", -3),
            ("<form>x</form>", -3),
            ("<h2>x</h2>", -5),
            ("<span>x</span>", 0),
        ],
    )
    def test_tag_base_score(self, markup, expected):
        assert tag_base_score(parse_el(markup)) == expected

    def test_count_commas_includes_cjk(self):
        assert count_commas("a, b, c") == 2
        assert count_commas("一，二、三") == 2

    def test_propagation_divider(self):
        assert [propagation_divider(level) for level in range(4)] == [1, 2, 6, 9]


class TestClassWeight:
    @pytest.mark.parametrize(
        ("markup", "expected"),
        [
            ('<div class="article-content">x</div>', 25),
            ('<div class="sidebar">x</div>', -25),
            ('<div id="comments">x</div>', -25),
            ('<div class="comment" id="main">x</div>', 0),
            ('<div class="entry" id="story">x</div>', 25),
            ('<div class="sidebar" id="footer">x</div>', -25),
            ('<div class="main-content" id="main">x</div>', 25),
            ("<div>x</div>", 0),
        ],
    )
    def test_class_weight(self, markup, expected):
        scorer = NodeScorer(ScoreBoard())
        assert scorer.class_weight(parse_el(markup)) == expected

    def test_zero_without_weight_classes(self):
        scorer = NodeScorer(ScoreBoard(), Flags.STRIP_UNLIKELYS | Flags.CLEAN_CONDITIONALLY)
        assert scorer.class_weight(parse_el('<div class="sidebar">x</div>')) == 0


# ---------------------------------------------------------------------------
# initialize_node / score_paragraph
# ---------------------------------------------------------------------------


class TestInitializeNode:
    def test_idempotent(self):
        board = ScoreBoard()
        scorer = NodeScorer(board)
        el = parse_el('<div class="article">x</div>')
        assert scorer.initialize_node(el) is True
        assert board.score(el) == 30.0
        board.annotation(el).content_score += 7
        assert scorer.initialize_node(el) is False
        assert board.score(el) == 37.0

    def test_class_and_id_weighted_once(self):
        board = ScoreBoard()
        scorer = NodeScorer(board)
        el = parse_el('<div class="sidebar" id="footer">x</div>')
        scorer.initialize_node(el)
        assert board.score(el) == -20.0


class TestScoreText:
    def test_formula(self):
        scorer = NodeScorer(ScoreBoard())
        assert scorer.score_text("a, b, c") == 3  # 1 + 2 commas + 0
        assert scorer.score_text("x" * 250) == 3  # 1 + 0 + 2
        assert scorer.score_text("x" * 1000) == 4  # length bonus capped at 3


class TestScoreParagraph:
    def _doc(self, text: str):
        root = parse_doc(html(f"<main><article><section><p>{text}</p></section></article></main>"))
        return root, root.find(".//p")

    def test_decay_by_distance(self):
        # 300 chars with 5 commas: S = 1 + 5 + 3 = 9
        text = ("word, " * 5) + "x" * 270
        root, p = self._doc(text)
        board = ScoreBoard()
        scorer = NodeScorer(board)

        section, article, main, body = (root.find(f".//{t}") for t in ("section", "article", "main", "body"))
        for el in (section, article, main, body):
            scorer.initialize_node(el)
        before = {el: board.score(el) for el in (section, article, main, body)}

        local = scorer.score_paragraph(p)

        assert local == 9.0
        assert board.score(p) == 9.0
        assert board.score(section) - before[section] == pytest.approx(9.0)
        assert board.score(article) - before[article] == pytest.approx(4.5)
        assert board.score(main) - before[main] == pytest.approx(1.5)
        assert board.score(body) - before[body] == pytest.approx(1.0)

    def test_root_never_scored(self):
        root, p = self._doc("y" * 120)
        board = ScoreBoard()
        NodeScorer(board).score_paragraph(p)
        assert root not in board
        assert board.is_initialized(root.find(".//body"))

    def test_short_text_skipped(self):
        _, p = self._doc("too short")
        board = ScoreBoard()
        assert NodeScorer(board).score_paragraph(p) == 0.0
        assert len(board) == 0

    def test_detached_skipped(self):
        board = ScoreBoard()
        p = parse_el("<p>" + "z" * 100 + "</p>")
        p.getparent().remove(p)
        assert NodeScorer(board).score_paragraph(p) == 0.0

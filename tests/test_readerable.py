# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Tests for readerable.py: the quick article check."""

from __future__ import annotations

from lxml import etree

from pagereader.readerable import is_probably_readerable
from tests._reader_helpers import html, paragraphs, parse_doc, prose


class TestReaderable:
    def test_article_page(self):
        assert is_probably_readerable(parse_doc(html(paragraphs(4, length=300)))) is True

    def test_short_paragraphs(self):
        body = "<p>A short paragraph, well under the minimum length.</p>" * 20
        assert is_probably_readerable(parse_doc(html(body))) is False

    def test_hidden_paragraphs_ignored(self):
        body = "".join(f'<p style="display:none">{prose(300)}</p>' for _ in range(4))
        assert is_probably_readerable(parse_doc(html(body))) is False

    def test_unlikely_paragraphs_ignored(self):
        body = "".join(f'<p class="comment">{prose(300)}</p>' for _ in range(4))
        assert is_probably_readerable(parse_doc(html(body))) is False

    def test_list_paragraphs_ignored(self):
        items = "".join(f"<li><p>{prose(300)}</p></li>" for _ in range(4))
        assert is_probably_readerable(parse_doc(html(f"<ul>{items}</ul>"))) is False

    def test_br_divs_counted(self):
        text = "<br>".join(prose(300) for _ in range(4))
        assert is_probably_readerable(parse_doc(html(f"<div>{text}</div>"))) is True

    def test_thresholds_adjustable(self):
        root = parse_doc(html(paragraphs(1, length=300)))
        assert is_probably_readerable(root) is False
        assert is_probably_readerable(root, min_content_length=100, min_score=5) is True

    def test_document_untouched(self):
        root = parse_doc(html(paragraphs(4, length=300)))
        before = etree.tostring(root)
        is_probably_readerable(root)
        assert etree.tostring(root) == before

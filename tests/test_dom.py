# Copyright (C) 2025-2026 Retio AI
# SPDX-License-Identifier: AGPL-3.0-only

"""Unit tests for dom.py: lxml tree primitives."""

from __future__ import annotations

import pytest
from lxml import etree

from pagereader.dom import (
    count_elements,
    has_ancestor_tag,
    has_child_block_element,
    has_single_tag_inside,
    inner_text,
    is_element_without_content,
    is_phrasing_content,
    is_probably_visible,
    is_single_image,
    link_density,
    next_node,
    remove_node,
    replace_node,
    tag_of,
    text_similarity,
    trim_trailing_whitespace,
    unescape_html_entities,
    unwrap_node,
)
from tests._reader_helpers import html, parse_doc, parse_el

# ---------------------------------------------------------------------------
# Identity / navigation
# ---------------------------------------------------------------------------


class TestIdentity:
    def test_tag_of_element_is_lowercase(self):
        assert tag_of(parse_el("<DIV>x</DIV>")) == "div"

    def test_tag_of_comment_is_empty(self):
        assert tag_of(etree.Comment("note")) == ""

    def test_count_elements_includes_root(self):
        root = parse_doc(html("<p>a</p><p>b</p>"))
        assert count_elements(root) == 4  # html, body, p, p


class TestNextNode:
    def test_depth_first_order(self):
        el = parse_el('<div id="a"><p id="b"><span id="c"></span></p><p id="d"></p></div>')
        seen = []
        node = el
        while node is not None:
            seen.append(node.get("id"))
            node = next_node(node)
        assert seen == ["a", "b", "c", "d"]

    def test_ignore_self_and_kids_skips_subtree(self):
        el = parse_el('<div><p id="b"><span id="c"></span></p><p id="d"></p></div>')
        b = el.find(".//p")
        assert next_node(b, ignore_self_and_kids=True).get("id") == "d"

    def test_has_ancestor_tag_respects_depth(self):
        el = parse_el("<table><tr><td><div><span><b>x</b></span></div></td></tr></table>")
        b = el.find(".//b")
        assert has_ancestor_tag(b, "table", max_depth=-1) is True
        assert has_ancestor_tag(b, "table", max_depth=3) is False


# ---------------------------------------------------------------------------
# Mutation
# ---------------------------------------------------------------------------


class TestMutation:
    def test_remove_node_keeps_tail_text(self):
        div = parse_el("<div>a<span>b</span>c</div>")
        remove_node(div.find("span"))
        assert etree.tostring(div, encoding="unicode") == "<div>ac</div>"

    def test_remove_node_tail_goes_to_previous_sibling(self):
        div = parse_el("<div><i>x</i>a<span>b</span>c</div>")
        remove_node(div.find("span"))
        assert etree.tostring(div, encoding="unicode") == "<div><i>x</i>ac</div>"

    def test_remove_detached_is_noop(self):
        div = parse_el("<div>x</div>")
        remove_node(div.getparent().getparent())  # <html> has no parent

    def test_unwrap_keeps_content_in_order(self):
        div = parse_el("<div>a<b>x<i>y</i>z</b>c</div>")
        unwrap_node(div.find("b"))
        assert etree.tostring(div, encoding="unicode") == "<div>ax<i>y</i>zc</div>"

    def test_unwrap_text_only(self):
        p = parse_el("<p>a <a>link</a> b</p>")
        unwrap_node(p.find("a"))
        assert etree.tostring(p, encoding="unicode") == "<p>a link b</p>"

    def test_replace_with_descendant(self):
        div = parse_el("<div><section><p>hi</p></section>tail</div>")
        replace_node(div.find("section"), div.find(".//p"))
        assert etree.tostring(div, encoding="unicode") == "<div><p>hi</p>tail</div>"

    def test_trim_trailing_whitespace_and_brs(self):
        p = parse_el("<p>text<br> <br> </p>")
        trim_trailing_whitespace(p)
        assert etree.tostring(p, encoding="unicode") == "<p>text</p>"


# ---------------------------------------------------------------------------
# Text measures
# ---------------------------------------------------------------------------


class TestText:
    def test_inner_text_normalizes_whitespace(self):
        assert inner_text(parse_el("<p>  a   b\n\n c </p>")) == "a b c"

    def test_inner_text_raw(self):
        assert inner_text(parse_el("<p> a  b </p>"), normalize_spaces=False) == "a  b"

    @pytest.mark.parametrize(
        ("a", "b", "expected"),
        [
            ("Hello world", "hello WORLD", 1.0),
            ("a b c d", "a b", 0.5),
            ("same same same", "same", 1.0),
            ("", "anything", 0.0),
            ("alpha", "beta", 0.0),
        ],
    )
    def test_text_similarity(self, a, b, expected):
        assert text_similarity(a, b) == pytest.approx(expected)

    def test_link_density(self):
        el = parse_el('<div>abcdefghij<a href="/x">klmnopqrst</a></div>')
        assert link_density(el) == pytest.approx(0.5)

    def test_hash_links_discounted(self):
        el = parse_el('<div>abcdefghij<a href="#x">klmnopqrst</a></div>')
        assert link_density(el) == pytest.approx(0.15)

    def test_link_density_empty(self):
        assert link_density(parse_el("<div></div>")) == 0.0

    def test_unescape_fixed_entities(self):
        assert unescape_html_entities("&lt;b&gt; &amp;amp; &#65;&#x42; &#0;") == "<b> &amp; AB \ufffd"

    def test_unescape_single_pass(self):
        assert unescape_html_entities("&amp;#65; &amp;lt;") == "&#65; &lt;"

    def test_unescape_leaves_other_named_entities(self):
        assert unescape_html_entities("a&nbsp;b") == "a&nbsp;b"

    def test_unescape_none(self):
        assert unescape_html_entities(None) is None


# ---------------------------------------------------------------------------
# Predicates
# ---------------------------------------------------------------------------


class TestPredicates:
    @pytest.mark.parametrize(
        ("markup", "visible"),
        [
            ("<div>x</div>", True),
            ('<div style="display: none">x</div>', False),
            ('<div style="visibility:hidden">x</div>', False),
            ("<div hidden>x</div>", False),
            ('<div aria-hidden="true">x</div>', False),
            ('<div aria-hidden="true" class="fallback-image">x</div>', True),
        ],
    )
    def test_is_probably_visible(self, markup, visible):
        assert is_probably_visible(parse_el(markup)) is visible

    def test_has_single_tag_inside(self):
        assert has_single_tag_inside(parse_el("<div><p>x</p></div>"), "p") is True
        assert has_single_tag_inside(parse_el("<div>text<p>x</p></div>"), "p") is False
        assert has_single_tag_inside(parse_el("<div><p>a</p><p>b</p></div>"), "p") is False

    def test_element_without_content(self):
        assert is_element_without_content(parse_el("<div> <br><hr> </div>")) is True
        assert is_element_without_content(parse_el("<div></div>")) is True
        assert is_element_without_content(parse_el("<div><span></span></div>")) is False
        assert is_element_without_content(parse_el("<div>x</div>")) is False

    def test_has_child_block_element_is_recursive(self):
        assert has_child_block_element(parse_el("<div><section><p>x</p></section></div>")) is True
        assert has_child_block_element(parse_el("<div><span>x</span></div>")) is False

    def test_phrasing_content(self):
        assert is_phrasing_content(parse_el("<span>x</span>")) is True
        assert is_phrasing_content(parse_el("<a><b>x</b></a>")) is True
        assert is_phrasing_content(parse_el("<div>x</div>")) is False

    def test_single_image(self):
        assert is_single_image(parse_el('<img src="a.jpg">')) is True
        assert is_single_image(parse_el('<span><a><img src="a.jpg"></a></span>')) is True
        assert is_single_image(parse_el('<span>caption<img src="a.jpg"></span>')) is False

"""
Unit tests for content region detection and noise selection.

Covers the three detection paths (semantic query, scored candidates,
fallback), the scoring components and noise children.
"""

import pytest

from article_capture.common.thresholds import DETECTION_THRESHOLDS
from article_capture.detection import (
    DetectionError,
    detect_region,
    find_noise_children,
    link_density,
    score_element,
    tree_from_html,
    tree_from_snapshot,
)
from article_capture.detection.dom import DomNode, assign_locators

PARAGRAPH = "<p>" + "Lorem ipsum dolor sit amet, consectetur adipiscing elit. " * 3 + "</p>"


def _div(text_length: int, children=None, **attrs) -> DomNode:
    node = DomNode("div", text_length=text_length, children=children or [], **attrs)
    return assign_locators(node)


class TestSemanticDetection:
    def test_article_post_content_is_preferred(self, article_html):
        # Act
        result = detect_region(tree_from_html(article_html))

        # Assert
        assert result.method == "semantic"
        assert result.element.class_name == "post-content"
        assert result.score is None
        assert result.locator == result.element.locator

    def test_itemprop_article_body_wins_over_article_tag(self):
        html = f'<article><div itemprop="articleBody">{PARAGRAPH * 2}</div></article>'

        result = detect_region(tree_from_html(html))

        assert result.method == "semantic"
        assert result.element.itemprop == "articleBody"

    def test_short_semantic_match_is_skipped(self):
        # <article> with 100 chars does not pass the semantic threshold
        html = (
            "<article><p>" + "x" * 100 + "</p></article>"
            f'<div class="story">{PARAGRAPH * 4}</div>'
        )

        result = detect_region(tree_from_html(html))

        assert result.method == "scored"
        assert result.element.class_name == "story"


class TestScoredDetection:
    def test_positive_class_candidate_beats_wrapper(self):
        # Arrange
        html = (
            '<div id="wrapper">'
            '<div class="menu"><a href="/">Home</a><a href="/about">About</a></div>'
            f'<div class="story">{PARAGRAPH * 4}</div>'
            '<section class="comments"><p>Nice post</p></section>'
            "</div>"
        )

        # Act
        result = detect_region(tree_from_html(html))

        # Assert
        assert result.method == "scored"
        assert result.element.class_name == "story"
        assert result.score >= DETECTION_THRESHOLDS.acceptance_score

    def test_tie_keeps_first_in_document_order(self):
        html = f'<div id="first">{PARAGRAPH * 4}</div><div id="second">{PARAGRAPH * 4}</div>'

        result = detect_region(tree_from_html(html))

        assert result.method == "scored"
        assert result.element.id == "first"

    def test_candidates_inside_excluded_ancestors_are_ignored(self):
        html = f'<aside><div class="story">{PARAGRAPH * 4}</div></aside>'

        result = detect_region(tree_from_html(html))

        assert result.method == "fallback"
        assert result.element.tag == "body"

    def test_invisible_candidates_are_ignored(self):
        html = f'<div class="story" style="display:none">{PARAGRAPH * 4}</div>'

        result = detect_region(tree_from_html(html))

        assert result.method == "fallback"


class TestFallback:
    def test_low_score_falls_back_to_body(self):
        result = detect_region(tree_from_html('<div><a href="#">x</a></div>'))

        assert result.method == "fallback"
        assert result.element.tag == "body"
        assert result.score is None

    def test_no_body_falls_back_to_root(self):
        root = tree_from_snapshot({"tag": "html", "children": [{"tag": "head"}]})

        result = detect_region(root)

        assert result.element is root

    def test_missing_root_raises(self):
        with pytest.raises(DetectionError):
            detect_region(None)

    @pytest.mark.parametrize("html", [
        "<p>hi</p>",
        "<nav><div>menu</div></nav>",
        "<span>" + "x" * 5000 + "</span>",
    ])
    def test_never_empty_for_document_with_root(self, html):
        result = detect_region(tree_from_html(html))

        assert result.element is not None


class TestScoring:
    def test_link_density_without_text_is_one(self):
        assert link_density(_div(0)) == 1.0

    def test_link_density_counts_descendant_links(self):
        node = _div(100, [DomNode("p", text_length=60, children=[DomNode("a", text_length=25)])])

        assert link_density(node) == pytest.approx(0.25)

    def test_paragraphs_never_lower_the_score(self):
        scores = [
            score_element(_div(500, [DomNode("p", text_length=10) for _ in range(n)]))
            for n in range(15)
        ]

        assert scores == sorted(scores)
        # Capped at 10 paragraphs
        assert scores[10] == scores[14]
        assert scores[1] - scores[0] == DETECTION_THRESHOLDS.paragraph_weight

    @pytest.mark.parametrize("link_chars, expected_penalty", [
        (20, 0),
        (40, 15),
        (60, 45),
    ])
    def test_link_density_penalty_tiers_are_cumulative(self, link_chars, expected_penalty):
        baseline = score_element(_div(100, [DomNode("a", text_length=10)]))

        score = score_element(_div(100, [DomNode("a", text_length=link_chars)]))

        assert baseline - score == expected_penalty

    def test_semantic_and_pattern_bonuses(self):
        plain = score_element(_div(500))
        role_main = score_element(_div(500, role="main"))
        positive = score_element(_div(500, class_name="entry"))
        negative = score_element(_div(500, class_name="sidebar"))
        itemprop = score_element(_div(500, itemprop="text"))

        assert role_main - plain == DETECTION_THRESHOLDS.role_main_bonus
        assert positive - plain == DETECTION_THRESHOLDS.positive_pattern_bonus
        assert plain - negative == DETECTION_THRESHOLDS.negative_pattern_penalty
        assert itemprop - plain == DETECTION_THRESHOLDS.itemprop_bonus

    def test_small_text_penalty(self):
        assert score_element(_div(60)) - score_element(_div(40)) == pytest.approx(
            0.2 + DETECTION_THRESHOLDS.small_text_penalty
        )


class TestNoiseChildren:
    def test_removable_tags_and_link_heavy_negatives(self, article_html):
        # Arrange
        region = detect_region(tree_from_html(article_html)).element

        # Act
        noise = find_noise_children(region)

        # Assert
        assert [n.tag for n in noise] == ["div", "script"]
        assert noise[0].class_name == "share-buttons"

    def test_positive_match_or_real_content_is_kept(self):
        html = (
            '<div class="region">'
            '<div class="post-meta"><a href="#">by someone</a></div>'
            '<div class="comment">' + "A long and thoughtful reply without links. " * 2 + "</div>"
            '<div class="widget">ad</div>'
            "<style>p {}</style>"
            "</div>"
        )
        region = tree_from_html(html).find_by_tag("div")

        noise = find_noise_children(region)

        assert [(n.tag, n.class_name) for n in noise] == [("div", "widget"), ("style", "")]

    def test_tree_is_not_modified(self, article_html):
        root = tree_from_html(article_html)
        before = [n.locator for n in root.iter_tree()]

        find_noise_children(detect_region(root).element)

        assert [n.locator for n in root.iter_tree()] == before

"""
Module: detection.scoring

Purpose:
    Content metrics and the heuristic score used to rank candidate
    elements. Approach follows Readability-style detection: semantic tags,
    class/id patterns, text volume and link density.

Key Functions:
    - link_density(): Fraction of an element's text inside links
    - score_element(): Heuristic content score for one element
    - matches_positive() / matches_negative(): Class/id pattern tests

Dependencies:
    - detection.dom: DomNode
    - common.thresholds: DetectionThresholds

Used By:
    - detection.detector: Candidate ranking and noise detection
"""

from __future__ import annotations

import re
from typing import Optional

from article_capture.common.thresholds import DETECTION_THRESHOLDS, DetectionThresholds

from .dom import DomNode

# Class/id tokens that suggest article content
POSITIVE_PATTERN = re.compile(
    r"article|body|content|entry|main|page|post|text|blog|story|hentry|prose",
    re.IGNORECASE,
)

# Class/id tokens that suggest sidebars, footers, navigation
NEGATIVE_PATTERN = re.compile(
    r"banner|breadcrumb|combx|comment|community|cover|disqus|extra|footer|header"
    r"|legends|menu|related|remark|replies|rss|shoutbox|sidebar|skyscraper|social"
    r"|sponsor|supplemental|ad-break|agegate|pagination|pager|popup|promo|share"
    r"|shopping|widget|nav|meta|tag",
    re.IGNORECASE,
)

_TAG_WEIGHTS = {
    "article": "article_tag_weight",
    "main": "main_tag_weight",
    "section": "section_tag_weight",
    "div": "div_tag_weight",
}


def matches_positive(node: DomNode) -> bool:
    return bool(POSITIVE_PATTERN.search(node.class_and_id))


def matches_negative(node: DomNode) -> bool:
    return bool(NEGATIVE_PATTERN.search(node.class_and_id))


def link_density(node: DomNode) -> float:
    """
    Fraction of the element's text that sits inside <a> elements.

    An element without text counts as all links (1.0).

    Args:
        node: Element to measure

    Returns:
        Link text length / total text length
    """
    if node.text_length == 0:
        return 1.0
    link_length = sum(link.text_length for link in node.find_all({"a"}))
    return link_length / node.text_length


def score_element(
    node: DomNode,
    thresholds: Optional[DetectionThresholds] = None,
) -> float:
    """
    Compute the heuristic content score of an element.

    Components (see DetectionThresholds for the weights):
        - tag base weight (article > main > section > div)
        - role main/article and itemprop articleBody/text bonuses
        - positive class/id bonus, negative class/id penalty
        - capped text length, paragraph count and image count bonuses
        - two-tier link density penalty (cumulative)
        - small text penalty

    Args:
        node: Candidate element
        thresholds: Scoring weights (defaults to DETECTION_THRESHOLDS)

    Returns:
        Score; higher means more likely to be the article body
    """
    t = thresholds or DETECTION_THRESHOLDS
    score = 0.0

    weight_name = _TAG_WEIGHTS.get(node.tag)
    if weight_name:
        score += getattr(t, weight_name)

    if node.role == "main":
        score += t.role_main_bonus
    elif node.role == "article":
        score += t.role_article_bonus

    if node.itemprop in ("articleBody", "text"):
        score += t.itemprop_bonus

    if matches_positive(node):
        score += t.positive_pattern_bonus
    if matches_negative(node):
        score -= t.negative_pattern_penalty

    score += min(node.text_length / t.text_length_divisor, t.text_length_cap)
    score += min(len(node.find_all({"p"})) * t.paragraph_weight, t.paragraph_cap)
    score += min(len(node.find_all({"img"})) * t.image_weight, t.image_cap)

    density = link_density(node)
    if density > t.high_link_density:
        score -= t.high_link_penalty
    if density > t.moderate_link_density:
        score -= t.moderate_link_penalty

    if node.text_length < t.small_text_floor:
        score -= t.small_text_penalty

    return score

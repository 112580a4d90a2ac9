"""
Module: detection.detector

Purpose:
    Locate the main content element of a document and the noise
    elements inside it that should be hidden while capturing.

Key Functions:
    - detect_region(): Semantic queries, then scored candidates, then fallback
    - find_noise_children(): Descendants to suppress during capture

Key Classes:
    - DetectionResult: Chosen element, its score and the method used
    - DetectionError: Document has no root element

Algorithm:
    1. Try SEMANTIC_SELECTORS in order; accept the first match whose text
       length exceeds the semantic threshold.
    2. Score every visible div/section/article/main that is not inside
       nav/footer/header/aside; keep the first strict maximum.
    3. If the best score is below the acceptance score (or there are no
       candidates) fall back to <body>, or the root when there is no body.

Dependencies:
    - detection.dom: DomNode, select_first
    - detection.scoring: score_element, link_density, patterns

Used By:
    - capture.orchestrator: Detecting phase
    - cli: Offline `detect` command
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

from article_capture.common.thresholds import DETECTION_THRESHOLDS, DetectionThresholds

from .dom import DomNode, Selector, select_first
from .scoring import link_density, matches_negative, matches_positive, score_element

logger = logging.getLogger(__name__)


SEMANTIC_SELECTORS = [
    '[itemprop="articleBody"]',
    '[role="article"] [itemprop="text"]',
    "article .post-content",
    "article .entry-content",
    "article .article-body",
    "article .article-content",
    ".post-content",
    ".entry-content",
    ".article-body",
    ".article-content",
    "article",
    "main",
    '[role="main"]',
]

CANDIDATE_TAGS = frozenset({"div", "section", "article", "main"})

# Candidates below any of these are never the article
EXCLUDED_ANCESTOR_TAGS = frozenset({"nav", "footer", "header", "aside"})

REMOVE_TAGS = frozenset({
    "script",
    "style",
    "noscript",
    "iframe",
    "nav",
    "footer",
    "header",
    "aside",
})

_PARSED_SEMANTIC = [Selector.parse(s) for s in SEMANTIC_SELECTORS]


class DetectionError(Exception):
    """No usable content region (document has no root element)."""
    pass


@dataclass(frozen=True)
class DetectionResult:
    """
    Outcome of region detection.

    Attributes:
        element: Chosen content element
        score: Heuristic score (None for semantic matches and fallback)
        method: "semantic", "scored" or "fallback"
    """

    element: DomNode
    score: Optional[float]
    method: str

    @property
    def locator(self) -> str:
        return self.element.locator


def _is_candidate(node: DomNode) -> bool:
    if node.tag not in CANDIDATE_TAGS:
        return False
    if node.closest(EXCLUDED_ANCESTOR_TAGS) is not None:
        return False
    return node.visible


def detect_region(
    root: Optional[DomNode],
    thresholds: Optional[DetectionThresholds] = None,
) -> DetectionResult:
    """
    Detect the main content element of a document.

    Never returns an empty result for a document with a root element:
    when nothing scores high enough the body (or root) is used.

    Args:
        root: Document element (html) of the tree
        thresholds: Scoring weights (defaults to DETECTION_THRESHOLDS)

    Returns:
        DetectionResult

    Raises:
        DetectionError: If root is None

    Example:
        >>> result = detect_region(tree_from_html(html))
        >>> result.method
        'semantic'
    """
    if root is None:
        raise DetectionError("Document has no root element")
    t = thresholds or DETECTION_THRESHOLDS

    for selector in _PARSED_SEMANTIC:
        match = select_first(root, selector)
        if match is not None and match.text_length > t.semantic_min_text_length:
            logger.info(f"Semantic match '{selector.text}' -> {match.locator}")
            return DetectionResult(element=match, score=None, method="semantic")

    best: Optional[DomNode] = None
    best_score = float("-inf")
    candidates = 0
    for node in root.iter_tree():
        if not _is_candidate(node):
            continue
        candidates += 1
        score = score_element(node, t)
        if score > best_score:
            best_score = score
            best = node

    logger.debug(f"Scored {candidates} candidates, best={best_score:.1f}")

    if best is None or best_score < t.acceptance_score:
        fallback = root.find_by_tag("body") or root
        logger.info(f"No candidate above {t.acceptance_score}, falling back to <{fallback.tag}>")
        return DetectionResult(element=fallback, score=None, method="fallback")

    logger.info(f"Best candidate {best.locator} (score {best_score:.1f})")
    return DetectionResult(element=best, score=best_score, method="scored")


def find_noise_children(
    region: DomNode,
    thresholds: Optional[DetectionThresholds] = None,
) -> List[DomNode]:
    """
    Find descendants of the region to hide during capture.

    A descendant is noise if its tag is in REMOVE_TAGS, or if its class/id
    matches the negative pattern but not the positive one and it is either
    link-heavy or nearly empty. The tree is not modified.

    Args:
        region: Detected content element
        thresholds: Noise limits (defaults to DETECTION_THRESHOLDS)

    Returns:
        Noise elements in document order
    """
    t = thresholds or DETECTION_THRESHOLDS
    noisy: List[DomNode] = []

    for child in region.iter_descendants():
        if child.tag in REMOVE_TAGS:
            noisy.append(child)
            continue
        if matches_negative(child) and not matches_positive(child):
            if (
                link_density(child) > t.noise_link_density
                or child.text_length < t.noise_min_text_length
            ):
                noisy.append(child)

    logger.debug(f"Found {len(noisy)} noise elements under {region.locator}")
    return noisy

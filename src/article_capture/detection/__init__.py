"""
Detection package: DOM tree model and content region heuristics.
"""

from .detector import (
    DetectionError,
    DetectionResult,
    detect_region,
    find_noise_children,
)
from .dom import DomNode, Selector, select_first, tree_from_html, tree_from_snapshot
from .scoring import link_density, score_element

__all__ = [
    "DetectionError",
    "DetectionResult",
    "detect_region",
    "find_noise_children",
    "DomNode",
    "Selector",
    "select_first",
    "tree_from_html",
    "tree_from_snapshot",
    "link_density",
    "score_element",
]

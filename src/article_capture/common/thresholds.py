"""Centralized threshold and magic number configuration.

This module contains the scoring weights, caps and limits used by article
detection and image stitching. Having these in one place makes tuning
easier and documents what each value controls.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class DetectionThresholds:
    """Weights and limits for content region scoring."""

    # Semantic query acceptance
    semantic_min_text_length: int = 200  # Chars a semantic match needs to be accepted

    # Tag base weights
    article_tag_weight: float = 30
    main_tag_weight: float = 25
    section_tag_weight: float = 5
    div_tag_weight: float = 1

    # Landmark role / content schema bonuses
    role_main_bonus: float = 25
    role_article_bonus: float = 20
    itemprop_bonus: float = 30  # itemprop="articleBody" or itemprop="text"

    # Class/id pattern matching
    positive_pattern_bonus: float = 20
    negative_pattern_penalty: float = 30

    # Content volume bonuses
    text_length_divisor: float = 100  # One point per 100 chars of text
    text_length_cap: float = 30
    paragraph_weight: float = 3
    paragraph_cap: float = 30
    image_weight: float = 2
    image_cap: float = 10

    # Link density tiers (applied cumulatively)
    moderate_link_density: float = 0.3
    moderate_link_penalty: float = 15
    high_link_density: float = 0.5
    high_link_penalty: float = 30

    # Small element penalty
    small_text_floor: int = 50
    small_text_penalty: float = 20

    # Below this the document body is used instead
    acceptance_score: float = 10

    # Noise children
    noise_link_density: float = 0.5
    noise_min_text_length: int = 30


@dataclass(frozen=True)
class SurfaceLimits:
    """Hardware limits of the raster surface used for stitching."""

    max_dimension: int = 16384  # Per-side limit of browser canvases
    max_pixels: int = 268435456  # 256 MP total pixel budget


DETECTION_THRESHOLDS = DetectionThresholds()
SURFACE_LIMITS = SurfaceLimits()

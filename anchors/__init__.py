"""
anchors package

Normalization of reviewer-supplied positions into slide-relative geometry.
"""

from anchors.normalizer import (
    normalize_point,
    normalize_rect,
    sanitize_anchor,
    sanitize_anchors,
    to_ratio,
)

__all__ = [
    "normalize_point",
    "normalize_rect",
    "sanitize_anchor",
    "sanitize_anchors",
    "to_ratio",
]

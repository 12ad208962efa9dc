"""
overlay/geometry.py

Mapping between slide-relative coordinates and on-screen pixels.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from PyQt6.QtCore import QPointF, QRectF

from models import BubblePlacement, Pin, Point, Rect


@dataclass
class RenderedPin:
    """A pin resolved against the current viewport."""
    pin: Pin
    screen_point: QPointF
    screen_rect: Optional[QRectF]
    placement: str


def choose_bubble_placement(x: float, y: float, edge: float = 0.3) -> str:
    """
    Pick the side of a pin on which its bubble opens.

    Pins near the right edge open left; otherwise pins near the top open
    below, pins near the bottom open above, and everything else opens right.
    """
    if x > 1.0 - edge:
        return BubblePlacement.LEFT
    if y < edge:
        return BubblePlacement.BOTTOM
    if y > 1.0 - edge:
        return BubblePlacement.TOP
    return BubblePlacement.RIGHT


def coerce_viewport(value: Any) -> Optional[QRectF]:
    """
    Accept a QRectF or a ``{top, left, width, height}`` mapping.

    Returns:
        A QRectF with positive size, or None when the viewport is unknown.
    """
    if value is None:
        return None
    if isinstance(value, QRectF):
        rect = QRectF(value)
    elif isinstance(value, dict):
        try:
            rect = QRectF(
                float(value.get("left", value.get("x", 0.0))),
                float(value.get("top", value.get("y", 0.0))),
                float(value["width"]),
                float(value["height"]),
            )
        except (KeyError, TypeError, ValueError):
            return None
    else:
        return None
    if rect.width() <= 0 or rect.height() <= 0:
        return None
    return rect


def to_screen(viewport: QRectF, point: Point) -> QPointF:
    return QPointF(viewport.left() + point.x * viewport.width(),
                   viewport.top() + point.y * viewport.height())


def rect_to_screen(viewport: QRectF, rect: Rect) -> QRectF:
    return QRectF(viewport.left() + rect.x * viewport.width(),
                  viewport.top() + rect.y * viewport.height(),
                  rect.width * viewport.width(),
                  rect.height * viewport.height())


def to_normalized(viewport: QRectF, px: float, py: float, margin: float = 0.0) -> Point:
    """Convert a pixel position to slide coordinates clamped to ``[margin, 1 - margin]``."""
    x = (px - viewport.left()) / viewport.width()
    y = (py - viewport.top()) / viewport.height()
    lo, hi = margin, 1.0 - margin
    return Point(max(lo, min(hi, x)), max(lo, min(hi, y)))

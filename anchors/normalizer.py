"""
anchors/normalizer.py

Conversion of loosely specified positions into slide-relative geometry.

Reviewer output mixes ratios (0.25), percentages ("25%"), 0-100 scales,
0-1000 scales and occasional pixel values.  ``to_ratio`` guesses the scale
from the magnitude of each number; the thresholds are heuristic and are kept
stable because the distribution of model output they were tuned on is not
known.
"""

from __future__ import annotations

import math
import re
from typing import Any, Dict, Iterable, List, Optional

from models import Anchor, Point, Rect, Source

_NUMBER_RE = re.compile(r"[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?\s*%?")

SLIDE_PAGE_KEYS = ("slidePage", "page", "slide", "pageNumber", "pageIndex", "slide_number")
RECT_KEYS = ("rect", "bbox", "box", "area", "region")
POINT_KEYS = ("position", "point", "center", "centre")

_X_KEYS = ("x", "left")
_Y_KEYS = ("y", "top")
_W_KEYS = ("width", "w")
_H_KEYS = ("height", "h")


def _first(d: Dict[str, Any], keys: Iterable[str]) -> Any:
    for k in keys:
        if k in d and d[k] is not None:
            return d[k]
    return None


def _numeric_tokens(s: str) -> List[str]:
    return [t.replace(" ", "") for t in _NUMBER_RE.findall(s)]


def to_ratio(value: Any, clamp: bool = True) -> Optional[float]:
    """
    Parse a number or percentage into a ``[0, 1]`` ratio.

    Rules, in order:
    - strings containing ``%`` are divided by 100
    - values ``<= 1`` are already ratios
    - values ``<= 100`` are on a 0-100 scale
    - values ``<= 1000`` are on a 0-1000 scale
    - anything larger is divided by 10000

    Args:
        value: int, float or string.
        clamp: When False the result is not clamped to ``[0, 1]``.

    Returns:
        The ratio, or None if the value cannot be parsed.
    """
    if value is None or isinstance(value, bool):
        return None

    percent = False
    if isinstance(value, (int, float)):
        n = float(value)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        percent = "%" in text
        try:
            n = float(text.replace("%", "").strip())
        except ValueError:
            tokens = _numeric_tokens(text)
            if not tokens:
                return None
            try:
                n = float(tokens[0].rstrip("%"))
            except ValueError:
                return None
    else:
        return None

    if not math.isfinite(n):
        return None

    if percent:
        ratio = n / 100.0
    elif n <= 1:
        ratio = n
    elif n <= 100:
        ratio = n / 100.0
    elif n <= 1000:
        ratio = n / 1000.0
    else:
        ratio = n / 10000.0

    if clamp:
        ratio = max(0.0, min(1.0, ratio))
    return ratio


def _components(raw: Any, count: int) -> Optional[List[Any]]:
    """Positional components from a list/tuple or a string of numbers."""
    if isinstance(raw, (list, tuple)):
        return list(raw[:count]) if len(raw) >= count else None
    if isinstance(raw, str):
        tokens = _numeric_tokens(raw)
        return tokens[:count] if len(tokens) >= count else None
    return None


def normalize_rect(raw: Any) -> Optional[Rect]:
    """
    Normalize a rectangle given as a dict, a 4-sequence or a string.

    Accepted dict forms are ``{x, y, width, height}`` (``left``/``top`` and
    ``w``/``h`` aliases) and the corner form ``{left, top, right, bottom}``.
    Sequences and strings are read positionally as x, y, w, h.

    Returns:
        A Rect clamped to ``[0, 1]``, or None if a component is missing or
        unparsable.  Zero-size rects are returned; validity is checked by
        ``sanitize_anchor``.
    """
    if raw is None:
        return None

    if isinstance(raw, dict):
        x_raw = _first(raw, _X_KEYS)
        y_raw = _first(raw, _Y_KEYS)
        w_raw = _first(raw, _W_KEYS)
        h_raw = _first(raw, _H_KEYS)
        if w_raw is None and h_raw is None and "right" in raw and "bottom" in raw:
            x = to_ratio(x_raw)
            y = to_ratio(y_raw)
            right = to_ratio(raw.get("right"), clamp=False)
            bottom = to_ratio(raw.get("bottom"), clamp=False)
            if None in (x, y, right, bottom):
                return None
            w = right - x
            h = bottom - y
        else:
            x = to_ratio(x_raw)
            y = to_ratio(y_raw)
            w = to_ratio(w_raw, clamp=False)
            h = to_ratio(h_raw, clamp=False)
    else:
        parts = _components(raw, 4)
        if parts is None:
            return None
        x = to_ratio(parts[0])
        y = to_ratio(parts[1])
        w = to_ratio(parts[2], clamp=False)
        h = to_ratio(parts[3], clamp=False)

    if None in (x, y, w, h):
        return None

    def c(v: float) -> float:
        return max(0.0, min(1.0, v))

    return Rect(x=c(x), y=c(y), width=c(w), height=c(h))


def normalize_point(raw: Any) -> Optional[Point]:
    """
    Normalize a point given as a dict (``x``/``y``, ``left``/``top`` or
    ``cx``/``cy``), a 2-sequence, or a string containing two numbers.
    """
    if raw is None:
        return None

    if isinstance(raw, dict):
        x = to_ratio(_first(raw, ("x", "left", "cx")))
        y = to_ratio(_first(raw, ("y", "top", "cy")))
    else:
        parts = _components(raw, 2)
        if parts is None:
            return None
        x = to_ratio(parts[0])
        y = to_ratio(parts[1])

    if x is None or y is None:
        return None
    return Point(x=x, y=y)


def _slide_page(raw: Dict[str, Any], fallback_index: int) -> int:
    value = _first(raw, SLIDE_PAGE_KEYS)
    if value is not None and not isinstance(value, bool):
        try:
            page = int(float(str(value).strip()))
        except (ValueError, OverflowError):
            page = 0
        if page >= 1:
            return page
    return fallback_index + 1


def _confidence(raw: Dict[str, Any]) -> Optional[float]:
    value = raw.get("confidence")
    if value is None or isinstance(value, bool):
        return None
    try:
        conf = float(value)
    except (TypeError, ValueError):
        return None
    return conf if math.isfinite(conf) else None


def sanitize_anchor(raw: Any, fallback_index: int) -> Optional[Anchor]:
    """
    Turn one raw anchor record into a canonical Anchor.

    The slide page is read from any of ``SLIDE_PAGE_KEYS`` and defaults to
    ``fallback_index + 1``.  A rect (``RECT_KEYS``) wins over a point
    (``POINT_KEYS``); when neither key is present the record itself is tried
    as a rect and then as a point.

    Returns:
        The Anchor, or None when no valid geometry can be recovered.  Rects
        with zero or negative width/height are never returned.
    """
    if not isinstance(raw, dict):
        rect = normalize_rect(raw)
        if rect is not None and rect.is_valid():
            return Anchor(slide_page=fallback_index + 1, rect=rect, anchor_index=fallback_index)
        point = normalize_point(raw)
        if point is not None:
            return Anchor(slide_page=fallback_index + 1, position=point, anchor_index=fallback_index)
        return None

    rect_raw = _first(raw, RECT_KEYS)
    point_raw = _first(raw, POINT_KEYS)
    if rect_raw is None and point_raw is None:
        if _first(raw, _W_KEYS) is not None or "right" in raw:
            rect_raw = raw
        else:
            point_raw = raw

    rect = normalize_rect(rect_raw)
    if rect is not None and not rect.is_valid():
        rect = None
    point = None if rect is not None else normalize_point(point_raw)
    if rect is None and point is None:
        return None

    anchor_index = raw.get("anchorIndex")
    if not isinstance(anchor_index, int) or isinstance(anchor_index, bool):
        anchor_index = fallback_index

    source = raw.get("source")
    if not isinstance(source, str) or not source:
        source = Source.AI

    return Anchor(
        slide_page=_slide_page(raw, fallback_index),
        rect=rect,
        position=point,
        anchor_index=anchor_index,
        source=source,
        confidence=_confidence(raw),
    )


def sanitize_anchors(raw_list: Any) -> List[Anchor]:
    """Sanitize a list of raw anchors, dropping the ones that fail."""
    if isinstance(raw_list, dict):
        raw_list = [raw_list]
    if not isinstance(raw_list, list):
        return []
    anchors = []
    for idx, raw in enumerate(raw_list):
        anchor = sanitize_anchor(raw, idx)
        if anchor is not None:
            anchors.append(anchor)
    return anchors

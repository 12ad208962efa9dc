"""Tests for anchor normalization: ratio scale guessing, rect/point forms and
anchor rejection.

Run with:
    python -m pytest tests/test_anchor_normalizer.py -v
"""
from __future__ import annotations

import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from anchors import normalize_point, normalize_rect, sanitize_anchor, sanitize_anchors, to_ratio
from models import Source


# ---------------------------------------------------------------------------
# to_ratio
# ---------------------------------------------------------------------------

class TestToRatio:

    @pytest.mark.parametrize("value, expected", [
        ("45%", 0.45),
        (45, 0.45),
        (0.45, 0.45),
        ("50%", 0.5),
        (0.25, 0.25),
        (1, 1.0),
        (50, 0.5),
        (500, 0.5),
        (5000, 0.5),
        ("  0.4 ", 0.4),
        ("x=30", 0.3),
    ])
    def test_scale_guessing(self, value, expected):
        assert to_ratio(value) == pytest.approx(expected)

    @pytest.mark.parametrize("value", [None, "", "abc", True, float("nan"), float("inf"), [1], {}])
    def test_unparsable_returns_none(self, value):
        assert to_ratio(value) is None

    def test_result_is_clamped(self):
        assert to_ratio("150%") == 1.0
        assert to_ratio(-0.5) == 0.0

    def test_clamp_can_be_disabled(self):
        assert to_ratio("150%", clamp=False) == pytest.approx(1.5)

    def test_result_always_in_unit_interval(self):
        for value in (-1000, -1, 0, 0.5, 1, 2, 99, 101, 999, 1001, 123456, "250%"):
            r = to_ratio(value)
            assert r is not None
            assert 0.0 <= r <= 1.0


# ---------------------------------------------------------------------------
# Rects and points
# ---------------------------------------------------------------------------

class TestNormalizeRect:

    def test_dict_form(self):
        r = normalize_rect({"x": 10, "y": 20, "width": 30, "height": 40})
        assert (r.x, r.y, r.width, r.height) == pytest.approx((0.1, 0.2, 0.3, 0.4))

    def test_alias_keys(self):
        r = normalize_rect({"left": "10%", "top": "20%", "w": "30%", "h": "40%"})
        assert (r.x, r.y, r.width, r.height) == pytest.approx((0.1, 0.2, 0.3, 0.4))

    def test_corner_form(self):
        r = normalize_rect({"left": 0.1, "top": 0.2, "right": 0.5, "bottom": 0.6})
        assert (r.width, r.height) == pytest.approx((0.4, 0.4))

    def test_sequence_and_string(self):
        assert normalize_rect([0.1, 0.1, 0.2, 0.2]) is not None
        r = normalize_rect("0.1, 0.2, 0.3, 0.4")
        assert (r.x, r.y, r.width, r.height) == pytest.approx((0.1, 0.2, 0.3, 0.4))

    def test_missing_component(self):
        assert normalize_rect({"x": 0.1, "y": 0.1, "width": 0.2}) is None
        assert normalize_rect([0.1, 0.2, 0.3]) is None
        assert normalize_rect(None) is None

    def test_fields_clamped(self):
        r = normalize_rect({"x": 0.9, "y": 0.9, "width": "150%", "height": 0.5})
        assert r.width == 1.0


class TestNormalizePoint:

    def test_forms(self):
        assert normalize_point({"x": 0.3, "y": 0.4}).x == pytest.approx(0.3)
        assert normalize_point({"cx": 30, "cy": 40}).y == pytest.approx(0.4)
        assert normalize_point((0.5, 0.6)).y == pytest.approx(0.6)
        assert normalize_point("80%, 90%").x == pytest.approx(0.8)

    def test_unparsable(self):
        assert normalize_point({"x": "left"}) is None
        assert normalize_point([1]) is None


# ---------------------------------------------------------------------------
# sanitize_anchor
# ---------------------------------------------------------------------------

class TestSanitizeAnchor:

    def test_rect_anchor_position_is_center(self):
        a = sanitize_anchor({"slidePage": 2, "rect": {"x": 0.1, "y": 0.1, "width": 0.2, "height": 0.2}}, 0)
        assert a.slide_page == 2
        assert a.position.x == pytest.approx(0.2)
        assert a.position.y == pytest.approx(0.2)
        assert a.source == Source.AI

    @pytest.mark.parametrize("rect", [
        {"x": 0.1, "y": 0.1, "width": 0, "height": 0.2},
        {"x": 0.1, "y": 0.1, "width": 0.2, "height": 0},
        {"x": 0.1, "y": 0.1, "width": -0.2, "height": 0.2},
    ])
    def test_non_positive_rect_rejected(self, rect):
        assert sanitize_anchor({"slidePage": 1, "rect": rect}, 0) is None

    def test_invalid_rect_falls_back_to_point(self):
        a = sanitize_anchor({"rect": [0.1, 0.1, 0, 0], "position": {"x": 0.5, "y": 0.5}}, 0)
        assert a is not None
        assert a.rect is None
        assert a.position.x == pytest.approx(0.5)

    def test_page_alias_and_default(self):
        assert sanitize_anchor({"page": "4", "point": [0.5, 0.5]}, 0).slide_page == 4
        assert sanitize_anchor({"point": [0.5, 0.5]}, 2).slide_page == 3

    @pytest.mark.parametrize("page", [float("inf"), float("-inf"), "Infinity", "1e999", float("nan"), "nan"])
    def test_non_finite_page_uses_fallback(self, page):
        a = sanitize_anchor({"slidePage": page, "rect": [0.1, 0.1, 0.2, 0.2]}, 0)
        assert a is not None
        assert a.slide_page == 1

    def test_bare_dict_read_as_rect_or_point(self):
        rect_anchor = sanitize_anchor({"x": 0.1, "y": 0.1, "w": 0.2, "h": 0.2}, 0)
        assert rect_anchor.rect is not None
        point_anchor = sanitize_anchor({"x": 0.1, "y": 0.1}, 0)
        assert point_anchor.rect is None and point_anchor.position is not None

    def test_index_source_and_confidence(self):
        a = sanitize_anchor({"point": [0.5, 0.5], "anchorIndex": 7, "source": "manual", "confidence": "0.8"}, 0)
        assert a.anchor_index == 7
        assert a.source == Source.MANUAL
        assert a.confidence == pytest.approx(0.8)

    def test_garbage_rejected(self):
        assert sanitize_anchor({"note": "somewhere"}, 0) is None
        assert sanitize_anchor("nowhere", 0) is None

    def test_sanitize_anchors_drops_failures(self):
        anchors = sanitize_anchors([
            {"rect": [0.1, 0.1, 0.2, 0.2]},
            {"rect": [0.1, 0.1, 0.0, 0.2]},
            {"position": [0.3, 0.3]},
        ])
        assert len(anchors) == 2
        assert all(a.rect is None or a.rect.is_valid() for a in anchors)

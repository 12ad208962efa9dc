"""Tests for FeedbackParser: the json / loose / text / raw tiers, free-text
position phrases and summary truncation.

Run with:
    python -m pytest tests/test_feedback_parser.py -v
"""
from __future__ import annotations

import json
import os
import sys

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from feedback import FeedbackParser, Tier
from feedback.freetext import clean_title, extract_rect, find_slide_markers, split_blocks
from models import BubblePlacement, FeedbackItem
from overlay.geometry import choose_bubble_placement


@pytest.fixture()
def parser():
    return FeedbackParser(max_blocks=12, summary_max_chars=800, ellipsis="…")


SCENARIO_TEXT = (
    "Slide 1: move the logo.\n"
    "rect(0.1,0.1,0.2,0.2)\n"
    "\n"
    "Slide 3: contrast is low\n"
    "center(0.8,0.9)"
)


# ---------------------------------------------------------------------------
# Never empty, never raises
# ---------------------------------------------------------------------------

class TestNonEmpty:

    @pytest.mark.parametrize("text", [
        "", "   ", "\n\n", "{", "```json\n{broken\n```", "just one sentence", None, "}{", "[]",
    ])
    def test_always_returns_items(self, parser, text):
        items = parser.parse(text)
        assert len(items) >= 1
        assert all(isinstance(i, FeedbackItem) and i.title for i in items)

    def test_empty_input_gives_synthetic_item(self, parser):
        items = parser.parse("")
        assert parser.last_tier == Tier.RAW
        assert items[0].id == "feedback-raw-1"
        assert items[0].title == "指摘 1"
        assert items[0].anchors == []


# ---------------------------------------------------------------------------
# Structured tiers
# ---------------------------------------------------------------------------

class TestJsonTier:

    def _payload(self):
        return {
            "feedbackItems": [
                {
                    "id": "fb-1",
                    "title": "Logo too large",
                    "summary": "Shrink it.",
                    "anchors": [
                        {"slidePage": 2, "rect": {"x": 0.1, "y": 0.2, "width": 0.3, "height": 0.1}},
                    ],
                },
                {
                    "id": "fb-2",
                    "title": "Low contrast",
                    "summary": "Use darker text.",
                    "anchors": [{"slidePage": 5, "position": {"x": 0.5, "y": 0.25}}],
                },
            ]
        }

    def test_fenced_json_round_trip(self, parser):
        payload = self._payload()
        text = "Here is my review:\n```json\n" + json.dumps(payload) + "\n```\nThanks."
        items = parser.parse(text)

        assert parser.last_tier == Tier.JSON
        assert [i.id for i in items] == ["fb-1", "fb-2"]
        assert [i.title for i in items] == ["Logo too large", "Low contrast"]
        rect = items[0].anchors[0].rect
        assert items[0].anchors[0].slide_page == 2
        assert (rect.x, rect.y, rect.width, rect.height) == pytest.approx((0.1, 0.2, 0.3, 0.1))
        pos = items[1].anchors[0].position
        assert items[1].anchors[0].slide_page == 5
        assert (pos.x, pos.y) == pytest.approx((0.5, 0.25))

    def test_single_item_rect_preserved(self, parser):
        payload = {"feedbackItems": [{
            "id": "a", "title": "T", "summary": "S", "slidePage": 2,
            "anchors": [{"slidePage": 2, "rect": {"x": 0.1, "y": 0.2, "width": 0.3, "height": 0.4}}],
        }]}
        items = parser.parse("```json\n" + json.dumps(payload) + "\n```")
        assert len(items) == 1
        assert len(items[0].anchors) == 1
        rect = items[0].anchors[0].rect
        assert rect.to_dict() == pytest.approx({"x": 0.1, "y": 0.2, "width": 0.3, "height": 0.4})
        assert items[0].anchors[0].slide_page == 2

    def test_untagged_fence_and_top_level_list(self, parser):
        text = "```\n" + json.dumps([{"title": "A"}, {"title": "B"}]) + "\n```"
        items = parser.parse(text)
        assert [i.id for i in items] == ["feedback-json-1", "feedback-json-2"]

    def test_items_key(self, parser):
        items = parser.parse("```json\n" + json.dumps({"items": [{"summary": "Only a summary"}]}) + "\n```")
        assert items[0].title == "Only a summary"

    def test_loose_brace_tier(self, parser):
        text = 'Result: {"feedbackItems": [{"title": "Fix heading", "anchors": [{"page": 3, "point": [0.5, 0.5]}]}]} end'
        items = parser.parse(text)
        assert parser.last_tier == Tier.LOOSE
        assert items[0].title == "Fix heading"
        assert items[0].anchors[0].slide_page == 3

    def test_item_level_page_applies_to_anchors(self, parser):
        text = "```json\n" + json.dumps([{"title": "T", "slidePage": 4, "anchors": [{"point": [0.2, 0.2]}]}]) + "\n```"
        item = parser.parse(text)[0]
        assert item.slide_page == 4
        assert item.anchors[0].slide_page == 4

    def test_invalid_anchor_dropped_item_kept(self, parser):
        text = "```json\n" + json.dumps([{"title": "T", "anchors": [{"rect": [0.1, 0.1, 0, 0.2]}]}]) + "\n```"
        items = parser.parse(text)
        assert len(items) == 1
        assert items[0].anchors == []

    def test_infinite_page_keeps_batch(self, parser):
        text = (
            "```json\n"
            '[{"id": "a", "title": "A", "slidePage": 2, "anchors": [{"rect": [0.1, 0.1, 0.2, 0.2]}]},'
            ' {"id": "b", "title": "B", "slidePage": "Infinity",'
            ' "anchors": [{"slidePage": 1e999, "point": [0.5, 0.5]}]}]'
            "\n```"
        )
        items = parser.parse(text)
        assert parser.last_tier == Tier.JSON
        assert [i.id for i in items] == ["a", "b"]
        assert items[0].anchors[0].slide_page == 2
        assert items[1].slide_page is None
        assert items[1].anchors[0].slide_page == 1

    def test_missing_title_gets_default(self, parser):
        items = parser.parse("```json\n[{}]\n```")
        assert items[0].title == "指摘 1"


# ---------------------------------------------------------------------------
# Free-text tier
# ---------------------------------------------------------------------------

class TestFreeTextTier:

    def test_two_slide_scenario(self, parser):
        items = parser.parse(SCENARIO_TEXT)
        assert parser.last_tier == Tier.TEXT
        assert len(items) == 2

        first, second = items
        assert first.anchors[0].slide_page == 1
        r = first.anchors[0].rect
        assert (r.x, r.y, r.width, r.height) == pytest.approx((0.1, 0.1, 0.2, 0.2))

        assert second.anchors[0].slide_page == 3
        assert second.anchors[0].rect is None
        p = second.anchors[0].position
        assert (p.x, p.y) == pytest.approx((0.8, 0.9))
        assert choose_bubble_placement(p.x, p.y) == BubblePlacement.LEFT

    def test_japanese_markers_and_keyed_rect(self, parser):
        text = "レイアウトの指摘\nスライド2 x=10 y=20 幅=30 高さ=40"
        item = parser.parse(text)[0]
        anchor = item.anchors[0]
        assert anchor.slide_page == 2
        assert anchor.rect.width == pytest.approx(0.3)

    def test_block_without_marker_uses_slide_one(self, parser):
        item = parser.parse("Crop the photo\nbbox(10%, 10%, 50%, 50%)")[0]
        assert item.anchors[0].slide_page == 1

    def test_titles_are_cleaned(self):
        assert clean_title("- **1. Fix the chart**") == "Fix the chart"
        assert clean_title("2) Align boxes") == "Align boxes"
        assert clean_title("0.5 pt lines are too thin") == "0.5 pt lines are too thin"

    def test_block_limit(self):
        text = "\n\n".join(f"Point {n}" for n in range(20))
        assert len(split_blocks(text, 12)) == 12

    def test_summary_truncated(self):
        parser = FeedbackParser(max_blocks=12, summary_max_chars=10, ellipsis="…")
        item = parser.parse("Title line\n" + "a" * 50)[0]
        assert item.summary == "a" * 10 + "…"

    def test_slide_markers(self):
        pages = [m[0] for m in find_slide_markers("Slide 2, then page 4, p. 5, スライド6, ページ7, 第8枚")]
        assert pages == [2, 4, 5, 6, 7, 8]

    def test_bare_numbers_form_rect(self):
        r = extract_rect("around 0.1, 0.2, 0.3, 0.4 there")
        assert (r.x, r.y, r.width, r.height) == pytest.approx((0.1, 0.2, 0.3, 0.4))


# ---------------------------------------------------------------------------
# Raw fallback
# ---------------------------------------------------------------------------

class TestRawFallback:

    def test_whitespace_only(self, parser):
        items = parser.parse("  \n ")
        assert parser.last_tier == Tier.RAW
        assert len(items) == 1

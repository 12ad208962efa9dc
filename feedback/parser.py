"""
feedback/parser.py

Tiered parsing of reviewer output into FeedbackItem records.

Tiers, from most to least structured:

1. ``json``  - fenced code blocks (optionally tagged ``json``)
2. ``loose`` - the first balanced ``{...}`` span anywhere in the text
3. ``text``  - blank-line separated prose blocks (see feedback/freetext.py)
4. ``raw``   - one synthetic item wrapping the whole response

Each tier only runs when the previous one produced nothing, and no tier is
allowed to raise: malformed input degrades to the next tier.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

from anchors.normalizer import SLIDE_PAGE_KEYS, POINT_KEYS, RECT_KEYS, sanitize_anchor
from feedback.freetext import clean_title, parse_free_text
from models import Anchor, FeedbackItem
from utils import find_balanced_span, iter_fenced_blocks, truncate_text

log = logging.getLogger(__name__)

TITLE_KEYS = ("title", "heading", "name")
SUMMARY_KEYS = ("summary", "details", "description", "comment")
TITLE_MAX_CHARS = 80


class Tier:
    """Which parsing tier produced the last result."""
    JSON = "json"
    LOOSE = "loose"
    TEXT = "text"
    RAW = "raw"


def _first_text(entry: Dict[str, Any], keys) -> str:
    for k in keys:
        value = entry.get(k)
        if isinstance(value, list):
            value = "\n".join(str(v) for v in value if v is not None)
        if value is not None and str(value).strip():
            return str(value).strip()
    return ""


def _declared_page(entry: Dict[str, Any]) -> Optional[int]:
    for k in SLIDE_PAGE_KEYS:
        value = entry.get(k)
        if value is None or isinstance(value, bool):
            continue
        try:
            page = int(float(str(value).strip()))
        except (ValueError, OverflowError):
            continue
        if page >= 1:
            return page
    return None


def _entries_from(parsed: Any) -> Optional[List[Any]]:
    """Locate the feedback array in a parsed JSON value."""
    if isinstance(parsed, dict) and isinstance(parsed.get("feedbackItems"), list):
        return parsed["feedbackItems"]
    if isinstance(parsed, list):
        return parsed
    if isinstance(parsed, dict) and isinstance(parsed.get("items"), list):
        return parsed["items"]
    return None


class FeedbackParser:
    """
    Parse raw reviewer text into FeedbackItem records.

    Args:
        max_blocks: Maximum number of prose blocks read by the text tier.
        summary_max_chars: Summary length cap before the ellipsis marker.
        ellipsis: Marker appended to truncated summaries.

    Unset arguments are read from ``[parser]`` in settings.toml.
    """

    def __init__(self, max_blocks: Optional[int] = None,
                 summary_max_chars: Optional[int] = None,
                 ellipsis: Optional[str] = None):
        if max_blocks is None or summary_max_chars is None or ellipsis is None:
            from settings import get_settings
            cfg = get_settings().settings.parser
            max_blocks = cfg.max_blocks if max_blocks is None else max_blocks
            summary_max_chars = cfg.summary_max_chars if summary_max_chars is None else summary_max_chars
            ellipsis = cfg.ellipsis if ellipsis is None else ellipsis
        self.max_blocks = max_blocks
        self.summary_max_chars = summary_max_chars
        self.ellipsis = ellipsis
        self.last_tier: Optional[str] = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def parse(self, raw_text: str) -> List[FeedbackItem]:
        """
        Parse reviewer output.

        Never raises.  For any input, including empty input, the returned
        list is non-empty.
        """
        text = raw_text if isinstance(raw_text, str) else ("" if raw_text is None else str(raw_text))
        try:
            items = self._parse_tiers(text)
        except Exception:
            log.exception("Feedback parsing failed; wrapping raw text")
            items = []
        if not items:
            self.last_tier = Tier.RAW
            items = [self._synthetic_item(text)]
        log.debug("Parsed %d feedback item(s) via %s tier", len(items), self.last_tier)
        return items

    # ------------------------------------------------------------------
    # Tiers
    # ------------------------------------------------------------------

    def _parse_tiers(self, text: str) -> List[FeedbackItem]:
        items = self._parse_fenced(text)
        if items:
            self.last_tier = Tier.JSON
            return items

        items = self._parse_loose(text)
        if items:
            self.last_tier = Tier.LOOSE
            return items

        if not text.strip():
            return []

        items = parse_free_text(text, self.max_blocks, self.summary_max_chars, self.ellipsis)
        if items:
            self.last_tier = Tier.TEXT
        return items

    def _parse_fenced(self, text: str) -> List[FeedbackItem]:
        items: List[FeedbackItem] = []
        for block in iter_fenced_blocks(text):
            try:
                parsed = json.loads(block)
            except ValueError as e:
                log.debug("Fenced block is not valid JSON: %s", e)
                continue
            items.extend(self._items_from_parsed(parsed, start=len(items)))
        return items

    def _parse_loose(self, text: str) -> List[FeedbackItem]:
        span = find_balanced_span(text)
        if span is None:
            return []
        try:
            parsed = json.loads(span)
        except ValueError as e:
            log.debug("Brace span is not valid JSON: %s", e)
            return []
        return self._items_from_parsed(parsed, start=0)

    # ------------------------------------------------------------------
    # Record mapping
    # ------------------------------------------------------------------

    def _items_from_parsed(self, parsed: Any, start: int) -> List[FeedbackItem]:
        entries = _entries_from(parsed)
        if not entries:
            return []
        items = []
        for entry in entries:
            if not isinstance(entry, dict):
                continue
            items.append(self._item_from_entry(entry, start + len(items) + 1))
        return items

    def _item_from_entry(self, entry: Dict[str, Any], n: int) -> FeedbackItem:
        item_id = entry.get("id")
        item_id = str(item_id) if item_id not in (None, "") else f"feedback-json-{n}"

        summary = _first_text(entry, SUMMARY_KEYS)
        title = clean_title(_first_text(entry, TITLE_KEYS).split("\n")[0])
        if not title and summary:
            title = truncate_text(clean_title(summary.split("\n")[0]), TITLE_MAX_CHARS, self.ellipsis)
        if not title:
            title = f"指摘 {n}"

        page = _declared_page(entry)
        return FeedbackItem(
            id=item_id,
            title=title,
            summary=truncate_text(summary, self.summary_max_chars, self.ellipsis),
            anchors=self._anchors_from_entry(entry, page),
            slide_page=page,
        )

    def _anchors_from_entry(self, entry: Dict[str, Any], page: Optional[int]) -> List[Anchor]:
        raw_anchors = entry.get("anchors")
        if raw_anchors is None:
            raw_anchors = entry.get("anchor")
        if raw_anchors is None and any(k in entry for k in RECT_KEYS + POINT_KEYS):
            # geometry given directly on the item
            raw_anchors = [{k: entry[k] for k in RECT_KEYS + POINT_KEYS + SLIDE_PAGE_KEYS if k in entry}]
        if isinstance(raw_anchors, dict):
            raw_anchors = [raw_anchors]
        if not isinstance(raw_anchors, list):
            return []

        anchors = []
        for idx, raw in enumerate(raw_anchors):
            if isinstance(raw, dict) and page is not None and not any(k in raw for k in SLIDE_PAGE_KEYS):
                raw = dict(raw, slidePage=page)
            anchor = sanitize_anchor(raw, idx)
            if anchor is None:
                log.debug("Dropped invalid anchor %d: %r", idx, raw)
                continue
            anchors.append(anchor)
        return anchors

    def _synthetic_item(self, text: str) -> FeedbackItem:
        first_line = next((ln for ln in text.split("\n") if ln.strip()), "")
        title = truncate_text(clean_title(first_line), TITLE_MAX_CHARS, self.ellipsis) or "指摘 1"
        return FeedbackItem(id="feedback-raw-1", title=title, summary=text.strip(), anchors=[])


def parse(raw_text: str) -> List[FeedbackItem]:
    """Parse with a default-configured FeedbackParser."""
    return FeedbackParser().parse(raw_text)

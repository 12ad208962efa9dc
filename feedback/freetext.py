"""
feedback/freetext.py

Best-effort extraction of feedback items from prose.

This is the weakest parsing tier: it only understands the position phrases
listed below and makes no attempt to interpret anything else.

Slide markers::

    Slide 3, slide #3, page 3, p. 3, スライド3, ページ3, 第3枚, 第3スライド

Positions, tried in order inside the text that follows each marker:

    rect(0.1, 0.2, 0.3, 0.4)   bbox / box / area / region / 矩形 / 領域
    x=0.1 y=0.2 w=0.3 h=0.4    width / height / 幅 / 高さ aliases
    0.1, 0.2, 0.3, 0.4         four bare numbers, read as x, y, w, h
    center(0.5, 0.5)           centre / position / pos / point / 中心 / 位置
"""

from __future__ import annotations

import re
from typing import List, Optional, Tuple

from anchors.normalizer import normalize_point, normalize_rect
from models import Anchor, FeedbackItem, Rect
from utils import truncate_text

NUM = r"[-+]?(?:\d+(?:\.\d+)?|\.\d+)\s*%?"

SLIDE_MARKER_RE = re.compile(
    r"(?:"
    r"(?<![A-Za-z])(?:slide|page|p\.)\s*(?:no\.?|number)?\s*[#:：]?\s*(\d+)"
    r"|(?:スライド|ページ)\s*[#:：]?\s*(\d+)"
    r"|第\s*(\d+)\s*(?:枚|ページ|スライド)"
    r")",
    re.IGNORECASE,
)

RECT_CALL_RE = re.compile(
    r"(?<![A-Za-z])(?:rect|bbox|box|area|region|矩形|領域)\s*[:=：]?\s*[\(\[（]([^()\[\]（）]*)[\)\]）]",
    re.IGNORECASE,
)

POINT_CALL_RE = re.compile(
    r"(?:(?<![A-Za-z])(?:center|centre|position|pos|point)|中心|位置)\s*[:=：]?\s*[\(\[（]?\s*"
    r"(" + NUM + r")\s*[,、，\s]\s*(" + NUM + r")",
    re.IGNORECASE,
)

BARE_LIST_RE = re.compile(NUM + r"(?:\s*[,、，\s]\s*" + NUM + r"){3,}")

_KEYED = {
    "x": re.compile(r"(?<![A-Za-z])x\s*[:=＝：]\s*(" + NUM + r")", re.IGNORECASE),
    "y": re.compile(r"(?<![A-Za-z])y\s*[:=＝：]\s*(" + NUM + r")", re.IGNORECASE),
    "width": re.compile(r"(?:(?<![A-Za-z])(?:width|w)|幅)\s*[:=＝：]\s*(" + NUM + r")", re.IGNORECASE),
    "height": re.compile(r"(?:(?<![A-Za-z])(?:height|h)|高さ)\s*[:=＝：]\s*(" + NUM + r")", re.IGNORECASE),
}

_BULLET_RE = re.compile(r"^\s*(?:[-*+•・●○▪►>]+\s*|#+\s*)+")
_NUMBERING_RE = re.compile(r"^\s*[\(（]?\d+\s*(?:[.．:：]\s+|[)）]\s*)")
_BLOCK_SPLIT_RE = re.compile(r"\n\s*\n")


def split_blocks(text: str, max_blocks: int) -> List[str]:
    """Split on blank lines, dropping empty blocks, keeping at most max_blocks."""
    blocks = [b.strip() for b in _BLOCK_SPLIT_RE.split(text.replace("\r\n", "\n"))]
    return [b for b in blocks if b][:max_blocks]


def clean_title(line: str) -> str:
    """Strip bullet markers, markdown headings, numbering and bold markers."""
    title = _BULLET_RE.sub("", line)
    title = title.replace("**", "").replace("__", "")
    title = _NUMBERING_RE.sub("", title)
    return title.strip()


def find_slide_markers(text: str) -> List[Tuple[int, int, int]]:
    """Return ``(page, marker_start, marker_end)`` for every slide marker."""
    markers = []
    for m in SLIDE_MARKER_RE.finditer(text):
        digits = next(g for g in m.groups() if g is not None)
        page = int(digits)
        if page >= 1:
            markers.append((page, m.start(), m.end()))
    return markers


def extract_rect(segment: str) -> Optional[Rect]:
    """Try the three rect patterns in order; return the first valid rect."""
    for m in RECT_CALL_RE.finditer(segment):
        rect = normalize_rect(m.group(1))
        if rect is not None and rect.is_valid():
            return rect

    keyed = {}
    for name, pattern in _KEYED.items():
        m = pattern.search(segment)
        if m is None:
            break
        keyed[name] = m.group(1).replace(" ", "")
    if len(keyed) == 4:
        rect = normalize_rect(keyed)
        if rect is not None and rect.is_valid():
            return rect

    for m in BARE_LIST_RE.finditer(segment):
        rect = normalize_rect(m.group(0))
        if rect is not None and rect.is_valid():
            return rect

    return None


def extract_anchor(segment: str, slide_page: int, anchor_index: int) -> Optional[Anchor]:
    """Rect first, then a point pattern, within one marker segment."""
    rect = extract_rect(segment)
    if rect is not None:
        return Anchor(slide_page=slide_page, rect=rect, anchor_index=anchor_index)

    m = POINT_CALL_RE.search(segment)
    if m is not None:
        point = normalize_point([m.group(1).replace(" ", ""), m.group(2).replace(" ", "")])
        if point is not None:
            return Anchor(slide_page=slide_page, position=point, anchor_index=anchor_index)
    return None


def extract_block_anchors(block: str) -> Tuple[List[Anchor], Optional[int]]:
    """
    Extract anchors from one block.

    Returns:
        ``(anchors, declared_page)`` where declared_page is the first slide
        marker's page, or None if the block has no marker.
    """
    markers = find_slide_markers(block)
    anchors: List[Anchor] = []

    if not markers:
        rect = extract_rect(block)
        if rect is not None:
            anchors.append(Anchor(slide_page=1, rect=rect, anchor_index=0))
        return anchors, None

    for i, (page, _start, end) in enumerate(markers):
        stop = markers[i + 1][1] if i + 1 < len(markers) else len(block)
        anchor = extract_anchor(block[end:stop], page, len(anchors))
        if anchor is not None:
            anchors.append(anchor)
    return anchors, markers[0][0]


def parse_free_text(text: str, max_blocks: int, summary_limit: int, ellipsis: str) -> List[FeedbackItem]:
    """Build one FeedbackItem per blank-line separated block."""
    items: List[FeedbackItem] = []
    for n, block in enumerate(split_blocks(text, max_blocks), start=1):
        lines = [ln.rstrip() for ln in block.split("\n")]
        non_empty = [ln for ln in lines if ln.strip()]
        if not non_empty:
            continue
        title = clean_title(non_empty[0]) or f"指摘 {n}"
        summary = truncate_text("\n".join(ln.strip() for ln in non_empty[1:]), summary_limit, ellipsis)
        anchors, declared_page = extract_block_anchors(block)
        items.append(FeedbackItem(
            id=f"feedback-text-{n}",
            title=title,
            summary=summary,
            anchors=anchors,
            slide_page=declared_page,
        ))
    return items

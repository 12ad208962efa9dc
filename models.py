"""
models.py

Data models and constants for SlidePin.

All geometry is slide-relative: ``x``/``y``/``width``/``height`` lie in
``[0, 1]`` with the origin at the top-left corner of the slide.  Records
serialize to the camelCase keys used by the persisted JSON.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


def _clamp01(v: float) -> float:
    return max(0.0, min(1.0, float(v)))


# ----------------------------
# Geometry
# ----------------------------

@dataclass
class Point:
    """A slide-relative point."""
    x: float
    y: float

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Point":
        return cls(x=float(d.get("x", 0.0)), y=float(d.get("y", 0.0)))

    def to_dict(self) -> Dict[str, Any]:
        return {"x": self.x, "y": self.y}

    def clamped(self, lo: float = 0.0, hi: float = 1.0) -> "Point":
        return Point(max(lo, min(hi, self.x)), max(lo, min(hi, self.y)))


@dataclass
class Rect:
    """A slide-relative rectangle (top-left corner plus size)."""
    x: float
    y: float
    width: float
    height: float

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Rect":
        return cls(
            x=float(d.get("x", 0.0)),
            y=float(d.get("y", 0.0)),
            width=float(d.get("width", 0.0)),
            height=float(d.get("height", 0.0)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}

    def is_valid(self) -> bool:
        """A rect needs a positive area to be pinned."""
        return self.width > 0 and self.height > 0

    def center(self) -> Point:
        return Point(_clamp01(self.x + self.width / 2.0), _clamp01(self.y + self.height / 2.0))


# ----------------------------
# Anchor provenance
# ----------------------------

class Source:
    """Anchor / pin provenance tags."""
    AI = "ai"
    MANUAL = "manual"


# ----------------------------
# Feedback records
# ----------------------------

@dataclass
class Anchor:
    """A normalized position on one slide.

    Exactly one geometry is authoritative: when ``rect`` is set, ``position``
    is its centre and is recomputed rather than stored independently.
    """
    slide_page: int
    rect: Optional[Rect] = None
    position: Optional[Point] = None
    anchor_index: int = 0
    source: str = Source.AI
    confidence: Optional[float] = None

    def __post_init__(self):
        if self.rect is not None:
            self.position = self.rect.center()

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Anchor":
        rect = d.get("rect")
        pos = d.get("position")
        return cls(
            slide_page=int(d.get("slidePage", 1)),
            rect=Rect.from_dict(rect) if isinstance(rect, dict) else None,
            position=Point.from_dict(pos) if isinstance(pos, dict) else None,
            anchor_index=int(d.get("anchorIndex", 0)),
            source=d.get("source", Source.AI),
            confidence=d.get("confidence"),
        )

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "slidePage": self.slide_page,
            "anchorIndex": self.anchor_index,
            "source": self.source,
        }
        if self.rect is not None:
            d["rect"] = self.rect.to_dict()
        if self.position is not None:
            d["position"] = self.position.to_dict()
        if self.confidence is not None:
            d["confidence"] = self.confidence
        return d


@dataclass
class FeedbackItem:
    """One review comment produced by the reviewer model."""
    id: str
    title: str
    summary: str = ""
    anchors: List[Anchor] = field(default_factory=list)
    slide_page: Optional[int] = None

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "FeedbackItem":
        anchors = [Anchor.from_dict(a) for a in d.get("anchors", []) if isinstance(a, dict)]
        page = d.get("slidePage")
        return cls(
            id=str(d.get("id", "")),
            title=str(d.get("title", "")),
            summary=str(d.get("summary", "")),
            anchors=anchors,
            slide_page=int(page) if page is not None else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "summary": self.summary,
            "anchors": [a.to_dict() for a in self.anchors],
        }
        if self.slide_page is not None:
            d["slidePage"] = self.slide_page
        return d


@dataclass
class Pin:
    """A renderable marker on one slide, linked back to its feedback item."""
    pin_id: str
    feedback_id: Optional[str]
    slide_page: int
    position: Point
    rect: Optional[Rect] = None
    anchor_index: int = 0
    source: str = Source.AI
    created_at: str = ""

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Pin":
        rect = d.get("rect")
        pos = d.get("position") or {}
        return cls(
            pin_id=str(d.get("pinId", "")),
            feedback_id=d.get("feedbackId"),
            slide_page=int(d.get("slidePage", 1)),
            position=Point.from_dict(pos),
            rect=Rect.from_dict(rect) if isinstance(rect, dict) else None,
            anchor_index=int(d.get("anchorIndex", 0)),
            source=d.get("source", Source.AI),
            created_at=d.get("createdAt") or "",
        )

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "pinId": self.pin_id,
            "feedbackId": self.feedback_id,
            "slidePage": self.slide_page,
            "position": self.position.to_dict(),
            "anchorIndex": self.anchor_index,
            "source": self.source,
            "createdAt": self.created_at,
        }
        if self.rect is not None:
            d["rect"] = self.rect.to_dict()
        return d


# ----------------------------
# Project records
# ----------------------------

class ContextStatus:
    """External context entry states."""
    EMPTY = "empty"
    PENDING = "pending"
    FILLED = "filled"


@dataclass
class ExternalContext:
    """A dated note accumulated on a project (e.g. a weekly update)."""
    id: str
    date: str                      # YYYY-MM-DD
    content: str = ""
    status: str = ContextStatus.EMPTY
    created_at: str = ""

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ExternalContext":
        return cls(
            id=str(d.get("id", "")),
            date=str(d.get("date", "")),
            content=d.get("content") or "",
            status=d.get("status", ContextStatus.EMPTY),
            created_at=d.get("createdAt") or "",
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "date": self.date,
            "content": self.content,
            "status": self.status,
            "createdAt": self.created_at,
        }


@dataclass
class StaticContext:
    """User-entered project background that rarely changes."""
    purpose: str = ""
    audience: str = ""

    @classmethod
    def from_dict(cls, d: Optional[Dict[str, Any]]) -> "StaticContext":
        if not isinstance(d, dict):
            return cls()
        return cls(purpose=d.get("purpose") or "", audience=d.get("audience") or "")

    def to_dict(self) -> Dict[str, Any]:
        return {"purpose": self.purpose, "audience": self.audience}

    def is_empty(self) -> bool:
        return not (self.purpose or self.audience)


@dataclass
class Project:
    """A document-independent container for review context."""
    project_id: str
    project_name: str
    created_at: str = ""
    updated_at: str = ""
    weekly_input_day: int = 1      # 0 = Sunday ... 6 = Saturday
    static_context: StaticContext = field(default_factory=StaticContext)
    external_contexts: List[ExternalContext] = field(default_factory=list)

    @classmethod
    def from_dict(cls, project_id: str, d: Dict[str, Any]) -> "Project":
        contexts = [ExternalContext.from_dict(c) for c in d.get("externalContexts") or [] if isinstance(c, dict)]
        return cls(
            project_id=project_id,
            project_name=d.get("projectName") or "",
            created_at=d.get("createdAt") or "",
            updated_at=d.get("updatedAt") or "",
            weekly_input_day=int(d.get("weeklyInputDay", 1)),
            static_context=StaticContext.from_dict(d.get("staticContext")),
            external_contexts=contexts,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize without the id; projects are stored keyed by id."""
        return {
            "projectName": self.project_name,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "weeklyInputDay": self.weekly_input_day,
            "staticContext": self.static_context.to_dict(),
            "externalContexts": [c.to_dict() for c in self.external_contexts],
        }


# ----------------------------
# Overlay interaction modes
# ----------------------------

class Mode:
    """Overlay interaction modes."""
    BROWSE = "browse"
    PLACING = "placing"


class TransitionReason:
    """Why placement mode ended."""
    PLACED = "placed"
    ESCAPE = "escape"
    CANCELLED = "cancelled"
    REPLACED = "replaced"


class BubblePlacement:
    """Side of a pin on which its detail bubble opens."""
    RIGHT = "right"
    LEFT = "left"
    TOP = "top"
    BOTTOM = "bottom"

"""
pins/store.py

Slide-partitioned pin storage.

The store owns the ``{slide_page: [Pin, ...]}`` map.  Pins derived from a
review batch are regenerated wholesale; pins the user places by hand survive
regeneration until ``clear_manual_pins`` is called.  Readers (the overlay's
timers) only ever see a complete generation because the map is replaced by
a single assignment.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from PyQt6.QtCore import QObject, pyqtSignal

from errors import describe_error
from models import FeedbackItem, Pin, Point, Source
from storage.base import Storage, feedback_key, pins_key, unwrap_record, wrap_record
from utils import new_pin_id, now_iso

log = logging.getLogger(__name__)

PinMap = Dict[int, List[Pin]]
PositionLike = Union[Point, Dict[str, Any], tuple, list]


def _bucket_sort_key(pin: Pin):
    # Review pins in anchor order, then manual pins by creation time
    if pin.source == Source.MANUAL:
        return (True, 0, pin.created_at or "")
    return (False, pin.anchor_index, "")


def _coerce_point(position: PositionLike) -> Point:
    if isinstance(position, Point):
        p = position
    elif isinstance(position, dict):
        p = Point.from_dict(position)
    else:
        x, y = position
        p = Point(float(x), float(y))
    return p.clamped()


def _decode_all(from_dict: Callable[[Dict[str, Any]], Any], records: List[Any]) -> List[Any]:
    """Decode stored records, skipping any that are not well-formed."""
    decoded = []
    for record in records:
        if not isinstance(record, dict):
            continue
        try:
            decoded.append(from_dict(record))
        except (TypeError, ValueError, AttributeError) as e:
            log.warning("Skipping malformed stored record: %s", e)
    return decoded


def build_pin_map(items: Iterable[FeedbackItem]) -> PinMap:
    """Derive a fresh pin map from feedback items (no side effects)."""
    created = now_iso()
    new_map: PinMap = {}
    for item in items:
        for anchor in sorted(item.anchors, key=lambda a: a.anchor_index):
            if anchor.rect is not None and not anchor.rect.is_valid():
                continue
            position = anchor.position or (anchor.rect.center() if anchor.rect else None)
            if position is None:
                continue
            new_map.setdefault(anchor.slide_page, []).append(Pin(
                pin_id=new_pin_id(),
                feedback_id=item.id,
                slide_page=anchor.slide_page,
                position=position,
                rect=anchor.rect,
                anchor_index=anchor.anchor_index,
                source=anchor.source,
                created_at=created,
            ))
    for bucket in new_map.values():
        bucket.sort(key=_bucket_sort_key)
    return new_map


class PinStore(QObject):
    """
    Owner of pin state for one document.

    Mutating methods are coroutines: the in-memory change is complete before
    the first ``await``, after which the full map and the originating
    feedback items are written through ``storage``.  Storage failures are
    logged and reported through ``persistFailed``; the in-memory state stays
    authoritative.

    Signals:
        pinsChanged(): Emitted after any change to the pin map.
        persistFailed(str): Emitted with a user-facing notice when a write fails.

    Args:
        storage: Storage backend, or None for an in-memory store.
        document_id: External document identity used in storage keys.
    """

    pinsChanged = pyqtSignal()
    persistFailed = pyqtSignal(str)

    def __init__(self, storage: Optional[Storage] = None, document_id: Optional[str] = None,
                 parent: Optional[QObject] = None):
        super().__init__(parent)
        self.storage = storage
        self.document_id = document_id
        self._map: PinMap = {}
        self._items: List[FeedbackItem] = []

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def pin_map(self) -> PinMap:
        return self._map

    @property
    def feedback_items(self) -> List[FeedbackItem]:
        return list(self._items)

    def slides(self) -> List[int]:
        return sorted(page for page, bucket in self._map.items() if bucket)

    def pins_for_slide(self, slide_page: int) -> List[Pin]:
        return list(self._map.get(slide_page, []))

    def has_pins(self, slide_page: int) -> bool:
        return bool(self._map.get(slide_page))

    def all_pins(self) -> List[Pin]:
        return [pin for page in sorted(self._map) for pin in self._map[page]]

    def find_by_feedback(self, feedback_id: str) -> List[Pin]:
        return [pin for pin in self.all_pins() if pin.feedback_id == feedback_id]

    def find_by_id(self, pin_id: str) -> Optional[Pin]:
        for bucket in self._map.values():
            for pin in bucket:
                if pin.pin_id == pin_id:
                    return pin
        return None

    def feedback_by_id(self, feedback_id: str) -> Optional[FeedbackItem]:
        for item in self._items:
            if item.id == feedback_id:
                return item
        return None

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def regenerate(self, items: List[FeedbackItem]) -> bool:
        """
        Replace every review-derived pin with pins built from ``items``.

        Manual pins are carried over into the new generation.

        Returns:
            True if the new state was persisted (or no storage is attached).
        """
        items = list(items)
        new_map = build_pin_map(items)
        for pin in self._manual_pins():
            new_map.setdefault(pin.slide_page, []).append(pin)
        for bucket in new_map.values():
            bucket.sort(key=_bucket_sort_key)

        self._map = new_map
        self._items = items
        log.info("Regenerated %d pin(s) across %d slide(s)", sum(len(b) for b in new_map.values()), len(new_map))
        self.pinsChanged.emit()
        return await self._persist()

    async def add_manual_pin(self, feedback_id: Optional[str], slide_page: int,
                             position: PositionLike) -> Pin:
        """Append a point-only pin to one slide without touching the others."""
        page = max(1, int(slide_page))
        pin = Pin(
            pin_id=new_pin_id(),
            feedback_id=feedback_id,
            slide_page=page,
            position=_coerce_point(position),
            rect=None,
            anchor_index=len(self.find_by_feedback(feedback_id)) if feedback_id else 0,
            source=Source.MANUAL,
            created_at=now_iso(),
        )
        new_map = dict(self._map)
        new_map[page] = self._map.get(page, []) + [pin]
        self._map = new_map
        log.info("Placed manual pin %s on slide %d", pin.pin_id, page)
        self.pinsChanged.emit()
        await self._persist()
        return pin

    async def remove_pin(self, pin_id: str) -> bool:
        """Remove one pin by id.  Returns False if it does not exist."""
        pin = self.find_by_id(pin_id)
        if pin is None:
            return False
        new_map = dict(self._map)
        remaining = [p for p in new_map[pin.slide_page] if p.pin_id != pin_id]
        if remaining:
            new_map[pin.slide_page] = remaining
        else:
            del new_map[pin.slide_page]
        self._map = new_map
        self.pinsChanged.emit()
        await self._persist()
        return True

    async def clear_manual_pins(self) -> int:
        """Drop every manual pin.  Returns the number removed."""
        removed = 0
        new_map: PinMap = {}
        for page, bucket in self._map.items():
            kept = [p for p in bucket if p.source != Source.MANUAL]
            removed += len(bucket) - len(kept)
            if kept:
                new_map[page] = kept
        if removed:
            self._map = new_map
            self.pinsChanged.emit()
            await self._persist()
        return removed

    def _manual_pins(self) -> List[Pin]:
        return [pin for pin in self.all_pins() if pin.source == Source.MANUAL]

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def to_record(self) -> Dict[str, Any]:
        return {
            "documentId": self.document_id,
            "slides": {str(page): [p.to_dict() for p in bucket] for page, bucket in self._map.items()},
        }

    async def _persist(self) -> bool:
        if self.storage is None or not self.document_id:
            return True
        try:
            await self.storage.set(pins_key(self.document_id), wrap_record(self.to_record()))
            await self.storage.set(feedback_key(self.document_id),
                                   wrap_record({"items": [i.to_dict() for i in self._items]}))
        except Exception as e:
            message = describe_error(e, "Saving pins")
            log.warning("Failed to persist pins for %s: %s", self.document_id, e)
            self.persistFailed.emit(message)
            return False
        return True

    async def restore(self) -> bool:
        """
        Reload pins and feedback items saved for this document.

        Returns:
            True if a saved pin map was found and loaded.
        """
        if self.storage is None or not self.document_id:
            return False
        try:
            pins_value = unwrap_record(await self.storage.get(pins_key(self.document_id)))
            items_value = unwrap_record(await self.storage.get(feedback_key(self.document_id)))
        except Exception as e:
            log.warning("Failed to restore pins for %s: %s", self.document_id, e)
            self.persistFailed.emit(describe_error(e, "Loading pins"))
            return False

        if not isinstance(pins_value, dict):
            return False

        slides = pins_value.get("slides") or {}
        if not isinstance(slides, dict):
            log.warning("Malformed pin record for %s: slides is %s", self.document_id, type(slides).__name__)
            self.persistFailed.emit(describe_error(ValueError("malformed pin record"), "Loading pins"))
            return False

        new_map: PinMap = {}
        for page_key, bucket in slides.items():
            try:
                page = int(page_key)
            except (TypeError, ValueError):
                continue
            if not isinstance(bucket, list):
                continue
            pins = _decode_all(Pin.from_dict, bucket)
            if pins:
                new_map[page] = sorted(pins, key=_bucket_sort_key)

        items: List[FeedbackItem] = []
        if isinstance(items_value, dict) and isinstance(items_value.get("items"), list):
            items = _decode_all(FeedbackItem.from_dict, items_value["items"])

        self._map = new_map
        self._items = items
        log.info("Restored %d pin(s) for %s", sum(len(b) for b in new_map.values()), self.document_id)
        self.pinsChanged.emit()
        return True

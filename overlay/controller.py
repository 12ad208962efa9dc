"""
overlay/controller.py

Keeps a pin overlay aligned with an external slide canvas and runs the
browse / pin-placement interaction.

The controller never owns the canvas.  It asks ``viewport_provider`` for the
canvas rectangle whenever a resize or scroll settles (debounced) or the
active slide changes, and learns about slide changes from a
SlideIndexWatcher.

State machine::

    browse --begin_placement(id)--> placing(id)
    placing --click inside viewport--> browse   (reason "placed")
    placing --Escape-->                browse   (reason "escape")
    placing --cancel_placement()-->    browse   (reason "cancelled")
    placing --begin_placement(other)-> placing(other), after "replaced"
"""

from __future__ import annotations

import logging
from typing import Any, Callable, List, Optional

from PyQt6.QtCore import QEvent, QObject, QPointF, QRectF, Qt, QTimer, pyqtSignal

from debug_trace import trace, trace_call, trace_exception
from models import Mode, Pin, TransitionReason
from overlay.geometry import (
    RenderedPin,
    choose_bubble_placement,
    coerce_viewport,
    rect_to_screen,
    to_normalized,
    to_screen,
)
from overlay.watchers import SlideIndexWatcher, slide_page_from_index
from pins.store import PinStore
from settings import OverlaySettings

log = logging.getLogger(__name__)

ViewportProvider = Callable[[], Any]


def _same_rect(a: Optional[QRectF], b: Optional[QRectF]) -> bool:
    if a is None or b is None:
        return a is None and b is None
    return a == b


class OverlayController(QObject):
    """
    Overlay state for one slide canvas.

    Signals:
        modeChanged(str, str): New mode and the reason the previous placement ended.
        visibilityChanged(bool): Overlay shown or hidden.
        geometryChanged(QRectF): New viewport rectangle (empty when unknown).
        slideChanged(int): New 1-based slide page.
        pinsRendered(int, list): Slide page and its RenderedPin list.
        bubbleChanged(str): Id of the pin whose bubble is open ("" when closed).
        pinPlaced(object): The Pin created by a placement click.

    Args:
        pin_store: The PinStore to read pins from and add manual pins to.
        viewport_provider: Returns the canvas rect (QRectF or
            ``{top, left, width, height}``) or None.
        slide_watcher: Source of active slide index changes.
        config: Overlay timings and margins; read from settings when None.
    """

    modeChanged = pyqtSignal(str, str)
    visibilityChanged = pyqtSignal(bool)
    geometryChanged = pyqtSignal(QRectF)
    slideChanged = pyqtSignal(int)
    pinsRendered = pyqtSignal(int, list)
    bubbleChanged = pyqtSignal(str)
    pinPlaced = pyqtSignal(object)

    def __init__(self, pin_store: PinStore, viewport_provider: ViewportProvider,
                 slide_watcher: SlideIndexWatcher,
                 config: Optional[OverlaySettings] = None,
                 parent: Optional[QObject] = None):
        super().__init__(parent)
        if config is None:
            from settings import get_settings
            config = get_settings().settings.overlay
        self.config = config
        self.pin_store = pin_store
        self._viewport_provider = viewport_provider
        self.slide_watcher = slide_watcher

        self._mode = Mode.BROWSE
        self._placing_id: Optional[str] = None
        self._placement_in_flight = False
        self._current_slide = 1
        self._open_pin_id: Optional[str] = None
        self._viewport: Optional[QRectF] = None
        self._visible = False

        self._resize_timer = QTimer(self)
        self._resize_timer.setSingleShot(True)
        self._resize_timer.setInterval(config.resize_debounce_ms)
        self._resize_timer.timeout.connect(self.refresh_geometry)

        self._scroll_timer = QTimer(self)
        self._scroll_timer.setSingleShot(True)
        self._scroll_timer.setInterval(config.scroll_debounce_ms)
        self._scroll_timer.timeout.connect(self.refresh_geometry)

        self.slide_watcher.indexChanged.connect(self._on_slide_index_changed)
        self.pin_store.pinsChanged.connect(self._on_pins_changed)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def mode(self) -> str:
        return self._mode

    @property
    def placing_feedback_id(self) -> Optional[str]:
        return self._placing_id

    @property
    def current_slide(self) -> int:
        return self._current_slide

    @property
    def open_pin_id(self) -> Optional[str]:
        return self._open_pin_id

    @property
    def viewport(self) -> Optional[QRectF]:
        return QRectF(self._viewport) if self._viewport is not None else None

    @property
    def is_visible(self) -> bool:
        return self._visible

    def is_placing(self) -> bool:
        return self._mode == Mode.PLACING

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @trace_call("OVERLAY")
    def start(self) -> None:
        """Read the viewport, start slide watching and render the current slide."""
        self.refresh_geometry()
        self.slide_watcher.start()
        self.render_pins()
        self._update_visibility()

    def stop(self) -> None:
        self.slide_watcher.stop()
        self._resize_timer.stop()
        self._scroll_timer.stop()

    # ------------------------------------------------------------------
    # Placement mode
    # ------------------------------------------------------------------

    def begin_placement(self, feedback_id: str) -> None:
        """Enter placement mode for one feedback item, leaving any active placement first."""
        if self._mode == Mode.PLACING:
            self._end_placement(TransitionReason.REPLACED)
        self.close_bubble()
        self._mode = Mode.PLACING
        self._placing_id = feedback_id
        log.debug("Placing pin for feedback %s", feedback_id)
        self.modeChanged.emit(Mode.PLACING, "")
        self._update_visibility()

    def cancel_placement(self) -> bool:
        if self._mode != Mode.PLACING:
            return False
        self._end_placement(TransitionReason.CANCELLED)
        return True

    def handle_key(self, key: Any) -> bool:
        """Handle a key press; Escape ends placement.  Returns True if consumed."""
        if isinstance(key, Qt.Key):
            key = key.value
        is_escape = key == Qt.Key.Key_Escape.value or key == "Escape"
        if is_escape and self._mode == Mode.PLACING:
            self._end_placement(TransitionReason.ESCAPE)
            return True
        return False

    async def handle_click(self, x: float, y: float) -> Optional[Pin]:
        """
        Handle a click at page pixel coordinates.

        In browse mode canvas clicks are inert.  In placement mode a click
        inside the viewport adds a manual pin for the active feedback item and
        returns to browse mode; clicks outside the viewport are ignored.

        Returns:
            The new Pin, or None if the click did nothing.
        """
        if self._mode != Mode.PLACING or self._placement_in_flight:
            return None
        viewport = self._read_viewport()
        if viewport is None or not viewport.contains(QPointF(x, y)):
            return None

        position = to_normalized(viewport, x, y, self.config.placement_margin)
        feedback_id = self._placing_id
        self._placement_in_flight = True
        try:
            pin = await self.pin_store.add_manual_pin(feedback_id, self._current_slide, position)
        finally:
            self._placement_in_flight = False

        self.pinPlaced.emit(pin)
        if self._mode == Mode.PLACING and self._placing_id == feedback_id:
            self._end_placement(TransitionReason.PLACED)
        return pin

    def _end_placement(self, reason: str) -> None:
        log.debug("Leaving placement for %s (%s)", self._placing_id, reason)
        self._mode = Mode.BROWSE
        self._placing_id = None
        self.modeChanged.emit(Mode.BROWSE, reason)
        self._update_visibility()

    # ------------------------------------------------------------------
    # Bubbles
    # ------------------------------------------------------------------

    def toggle_pin(self, pin_id: str) -> Optional[str]:
        """
        Open a pin's bubble, or close it if it is already open.

        Only one bubble is open at a time.  Ignored while placing.

        Returns:
            The id of the open bubble afterwards, or None.
        """
        if self._mode == Mode.PLACING:
            return self._open_pin_id
        if self._open_pin_id == pin_id:
            self.close_bubble()
        elif self.pin_store.find_by_id(pin_id) is not None:
            self._open_pin_id = pin_id
            self.bubbleChanged.emit(pin_id)
        return self._open_pin_id

    def close_bubble(self) -> None:
        if self._open_pin_id is not None:
            self._open_pin_id = None
            self.bubbleChanged.emit("")

    def bubble_placement(self, pin: Pin) -> str:
        return choose_bubble_placement(pin.position.x, pin.position.y, self.config.bubble_edge_threshold)

    # ------------------------------------------------------------------
    # Viewport synchronization
    # ------------------------------------------------------------------

    def notify_resize(self) -> None:
        """Restart the resize debounce timer."""
        self._resize_timer.start()

    def notify_scroll(self) -> None:
        """Restart the scroll debounce timer."""
        self._scroll_timer.start()

    def refresh_geometry(self) -> bool:
        """Re-read the viewport and re-render if it moved or resized.

        Returns:
            True if the viewport changed.
        """
        viewport = self._read_viewport()
        if _same_rect(viewport, self._viewport):
            return False
        self._viewport = viewport
        trace(f"viewport -> {viewport}", "GEOMETRY")
        self.geometryChanged.emit(QRectF(viewport) if viewport is not None else QRectF())
        self.render_pins()
        self._update_visibility()
        return True

    def _read_viewport(self) -> Optional[QRectF]:
        try:
            return coerce_viewport(self._viewport_provider())
        except Exception as e:
            log.warning("Viewport provider failed: %s", e)
            trace_exception("viewport provider")
            return None

    def eventFilter(self, obj: QObject, event: QEvent) -> bool:
        """Install on the host widget to follow resizes, scrolls and Escape presses."""
        etype = event.type()
        if etype == QEvent.Type.Resize:
            self.notify_resize()
        elif etype == QEvent.Type.Wheel:
            self.notify_scroll()
        elif etype == QEvent.Type.KeyPress:
            if self.handle_key(event.key()):
                return True
        return False

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    def to_screen(self, pin: Pin) -> Optional[QPointF]:
        if self._viewport is None:
            return None
        return to_screen(self._viewport, pin.position)

    def render_pins(self) -> List[RenderedPin]:
        """Resolve the current slide's pins against the viewport and emit them."""
        rendered: List[RenderedPin] = []
        if self._viewport is not None:
            for pin in self.pin_store.pins_for_slide(self._current_slide):
                rendered.append(RenderedPin(
                    pin=pin,
                    screen_point=to_screen(self._viewport, pin.position),
                    screen_rect=rect_to_screen(self._viewport, pin.rect) if pin.rect is not None else None,
                    placement=self.bubble_placement(pin),
                ))
        trace(f"slide {self._current_slide}: {len(rendered)} pin(s)", "RENDER")
        self.pinsRendered.emit(self._current_slide, rendered)
        return rendered

    def _update_visibility(self) -> None:
        visible = self._viewport is not None and (
            self._mode == Mode.PLACING or self.pin_store.has_pins(self._current_slide)
        )
        if visible != self._visible:
            self._visible = visible
            self.visibilityChanged.emit(visible)

    def _on_slide_index_changed(self, index: int) -> None:
        page = slide_page_from_index(index)
        self._current_slide = page
        if self._open_pin_id is not None:
            pin = self.pin_store.find_by_id(self._open_pin_id)
            if pin is None or pin.slide_page != page:
                self.close_bubble()
        self.slideChanged.emit(page)
        if not self.refresh_geometry():
            self.render_pins()
            self._update_visibility()

    def _on_pins_changed(self) -> None:
        if self._open_pin_id is not None and self.pin_store.find_by_id(self._open_pin_id) is None:
            self.close_bubble()
        self.render_pins()
        self._update_visibility()

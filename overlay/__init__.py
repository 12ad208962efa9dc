"""
overlay package

Pin overlay synchronization with an external slide canvas.
"""

from overlay.controller import OverlayController
from overlay.geometry import RenderedPin, choose_bubble_placement
from overlay.watchers import (
    PollingSlideIndexWatcher,
    PushSlideIndexWatcher,
    SlideIndexWatcher,
    slide_page_from_index,
)

__all__ = [
    "OverlayController",
    "PollingSlideIndexWatcher",
    "PushSlideIndexWatcher",
    "RenderedPin",
    "SlideIndexWatcher",
    "choose_bubble_placement",
    "slide_page_from_index",
]

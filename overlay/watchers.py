"""
overlay/watchers.py

Sources of "the active slide changed" notifications.

The host canvas offers no change event, so the default watcher polls the
active-slide provider on a QTimer.  Hosts that can push changes use
PushSlideIndexWatcher instead; the overlay controller only depends on the
``indexChanged`` signal.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from PyQt6.QtCore import QObject, QTimer, pyqtSignal

from debug_trace import trace

log = logging.getLogger(__name__)

UNKNOWN_INDEX = -1


def slide_page_from_index(index) -> int:
    """Map a 0-based active slide index to a 1-based page; unknown is page 1."""
    if isinstance(index, bool) or not isinstance(index, int) or index < 0:
        return 1
    return index + 1


class SlideIndexWatcher(QObject):
    """Base watcher.

    Signals:
        indexChanged(int): Emitted with the new 0-based index (or -1).
    """

    indexChanged = pyqtSignal(int)

    def __init__(self, parent: Optional[QObject] = None):
        super().__init__(parent)
        self._last: Optional[int] = None

    @property
    def last_index(self) -> Optional[int]:
        return self._last

    def start(self) -> None:
        pass

    def stop(self) -> None:
        pass

    def _observe(self, index: int) -> bool:
        if index == self._last:
            return False
        self._last = index
        self.indexChanged.emit(index)
        return True


class PollingSlideIndexWatcher(SlideIndexWatcher):
    """
    Poll ``provider()`` every ``interval_ms`` and emit on change.

    Args:
        provider: Returns the active 0-based slide index, -1 if unknown.
        interval_ms: Poll period; also the worst-case staleness.  Read from
            ``[overlay] poll_interval_ms`` when None.
    """

    def __init__(self, provider: Callable[[], int], interval_ms: Optional[int] = None,
                 parent: Optional[QObject] = None):
        super().__init__(parent)
        if interval_ms is None:
            from settings import get_settings
            interval_ms = get_settings().settings.overlay.poll_interval_ms
        self._provider = provider
        self._timer = QTimer(self)
        self._timer.setInterval(interval_ms)
        self._timer.timeout.connect(self.poll)

    @property
    def interval_ms(self) -> int:
        return self._timer.interval()

    def is_active(self) -> bool:
        return self._timer.isActive()

    def start(self) -> None:
        self.poll()
        self._timer.start()

    def stop(self) -> None:
        self._timer.stop()

    def poll(self) -> bool:
        """Read the provider once.  Returns True if the index changed."""
        try:
            index = self._provider()
        except Exception as e:
            log.warning("Active slide provider failed: %s", e)
            return False
        if not isinstance(index, int) or isinstance(index, bool):
            index = UNKNOWN_INDEX
        trace(f"active slide index = {index}", "POLL")
        return self._observe(index)


class PushSlideIndexWatcher(SlideIndexWatcher):
    """Watcher driven by the host calling ``notify(index)``."""

    def notify(self, index: int) -> bool:
        return self._observe(index if isinstance(index, int) else UNKNOWN_INDEX)

"""Cancellable timers and trailing-edge debouncing.

A timer backend is any object with ``add(delay_ms, callback) -> handle`` and
``remove(handle)``. The desktop app uses the GLib main loop; tests drive a
manual clock.
"""

import logging
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class GLibTimer:
    """Timer backend on top of ``GLib.timeout_add``."""

    def __init__(self):
        from gi.repository import GLib
        self._glib = GLib

    def add(self, delay_ms: int, callback: Callable[[], None]) -> int:
        def _fire() -> bool:
            callback()
            return False  # One-shot
        return self._glib.timeout_add(delay_ms, _fire)

    def remove(self, handle: int):
        self._glib.source_remove(handle)


class Debouncer:
    """Run ``callback`` once, ``delay_ms`` after the last ``schedule()`` call.

    Each ``schedule()`` cancels the pending run and starts a new window, so a
    burst of calls produces exactly one trailing run.
    """

    def __init__(self, delay_ms: int, callback: Callable[[], None],
                 timer: Optional[Any] = None, name: str = "debounce"):
        self.delay_ms = delay_ms
        self.callback = callback
        self.name = name
        self._timer = timer if timer is not None else GLibTimer()
        self._handle: Optional[Any] = None
        self._closed = False

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def schedule(self):
        """(Re)start the quiescence window."""
        if self._closed:
            logger.debug("%s: schedule after close ignored", self.name)
            return
        self.cancel()
        self._handle = self._timer.add(self.delay_ms, self._fire)

    def flush(self) -> bool:
        """Run a pending callback now. Returns True if one was pending."""
        if self._handle is None:
            return False
        self.cancel()
        self.callback()
        return True

    def cancel(self):
        """Drop the pending run, if any."""
        if self._handle is not None:
            self._timer.remove(self._handle)
            self._handle = None

    def close(self):
        """Cancel and refuse further scheduling."""
        self.cancel()
        self._closed = True

    def _fire(self):
        self._handle = None
        self.callback()

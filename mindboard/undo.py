"""Undo/Redo history for MindBoard.

History is a value: ``past`` (oldest first), ``present`` and ``future``
(next redo first). ``commit``, ``undo`` and ``redo`` are pure transitions;
``UndoManager`` holds the current value for the interactive surfaces.
"""

from typing import Optional, Tuple, Callable
from dataclasses import dataclass

from mindboard.model import MindMap

MAX_UNDO = 50


@dataclass(frozen=True)
class History:
    """Snapshots before, at and after the current state."""
    past: Tuple[MindMap, ...]
    present: MindMap
    future: Tuple[MindMap, ...] = ()
    limit: int = MAX_UNDO

    @property
    def can_undo(self) -> bool:
        return len(self.past) > 0

    @property
    def can_redo(self) -> bool:
        return len(self.future) > 0


def new_history(present: MindMap, limit: int = MAX_UNDO) -> History:
    """Start an empty history around ``present``."""
    return History(past=(), present=present, future=(), limit=limit)


def commit(history: History, new_present: MindMap) -> History:
    """Record ``new_present``; the old present goes to ``past``, ``future`` is dropped."""
    past = history.past + (history.present,)
    # Trim history if needed
    if len(past) > history.limit:
        past = past[len(past) - history.limit:]
    return History(past=past, present=new_present, future=(), limit=history.limit)


def undo(history: History) -> History:
    """Step back one snapshot; no-op when there is nothing to undo."""
    if not history.past:
        return history
    return History(
        past=history.past[:-1],
        present=history.past[-1],
        future=(history.present,) + history.future,
        limit=history.limit,
    )


def redo(history: History) -> History:
    """Step forward one snapshot; no-op when there is nothing to redo."""
    if not history.future:
        return history
    past = history.past + (history.present,)
    if len(past) > history.limit:
        past = past[len(past) - history.limit:]
    return History(
        past=past,
        present=history.future[0],
        future=history.future[1:],
        limit=history.limit,
    )


class UndoManager:
    """Manages undo/redo history."""

    def __init__(self, present: MindMap, max_undo: int = MAX_UNDO):
        self.max_undo = max_undo
        self._history = new_history(present, limit=max_undo)

        # Callbacks
        self.on_state_changed: Optional[Callable[[], None]] = None

    @property
    def history(self) -> History:
        return self._history

    @property
    def present(self) -> MindMap:
        return self._history.present

    @property
    def can_undo(self) -> bool:
        """Check if undo is available."""
        return self._history.can_undo

    @property
    def can_redo(self) -> bool:
        """Check if redo is available."""
        return self._history.can_redo

    def commit(self, new_present: MindMap) -> bool:
        """Record a new present. Returns False for a snapshot identical to the present."""
        if new_present is self._history.present:
            return False
        self._history = commit(self._history, new_present)
        self._notify_changed()
        return True

    def undo(self) -> bool:
        """Move back one step. Returns True if anything changed."""
        if not self.can_undo:
            return False
        self._history = undo(self._history)
        self._notify_changed()
        return True

    def redo(self) -> bool:
        """Move forward one step. Returns True if anything changed."""
        if not self.can_redo:
            return False
        self._history = redo(self._history)
        self._notify_changed()
        return True

    def reset(self, present: MindMap):
        """Clear all history around a new present."""
        self._history = new_history(present, limit=self.max_undo)
        self._notify_changed()

    def _notify_changed(self):
        """Notify that undo/redo state changed."""
        if self.on_state_changed:
            self.on_state_changed()

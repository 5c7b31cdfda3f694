"""Interaction controller for the idea map.

Turns pointer and keyboard input into tree mutations, history moves or pure
view-state changes. The controller owns the ``UndoManager``; every structural
change goes through ``commit`` and then schedules a coalesced layout pass and a
coalesced save. Zoom, pan, selection and hover never touch the history.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional

from mindboard import tree
from mindboard.bridge import TaskBridge
from mindboard.config import BoardSettings
from mindboard.errors import InvalidState, NotFound, PersistenceWriteFailed, TaskSubmissionFailed
from mindboard.layout import Layout, apply_layout, calculate_layout
from mindboard.model import NEW_IDEA_CONTENT, ExternalTask, MindMap, Node
from mindboard.scheduling import Debouncer
from mindboard.storage import MindMapStore
from mindboard.undo import UndoManager

logger = logging.getLogger(__name__)

ARROW_KEYS = ("Up", "Down", "Left", "Right")
TOGGLE_KEYS = ("space", "Return", "KP_Enter")
ZOOM_IN_KEYS = ("plus", "equal", "KP_Add")
ZOOM_OUT_KEYS = ("minus", "underscore", "KP_Subtract")

WHEEL_ZOOM_FACTOR = 0.001


@dataclass
class ViewState:
    """Non-structural state of the canvas."""
    zoom: float = 1.0
    pan_x: float = 0.0
    pan_y: float = 0.0
    drag_offset_x: float = 0.0
    drag_offset_y: float = 0.0
    is_dragging: bool = False
    drag_start_x: float = 0.0
    drag_start_y: float = 0.0
    selected_id: Optional[str] = None
    hovered_id: Optional[str] = None
    tooltip: Optional[str] = None

    @property
    def effective_pan(self):
        """Pan including an in-progress drag."""
        return (self.pan_x + self.drag_offset_x, self.pan_y + self.drag_offset_y)


class MindMapController:
    """Mutation dispatch and keyboard state machine."""

    def __init__(self,
                 store: Optional[MindMapStore] = None,
                 bridge: Optional[TaskBridge] = None,
                 settings: Optional[BoardSettings] = None,
                 timer: Optional[Any] = None,
                 initial: Optional[MindMap] = None):
        self.settings = settings or BoardSettings()
        self.store = store
        self.bridge = bridge or TaskBridge()
        self.view = ViewState()

        if initial is None:
            initial = store.load() if store is not None else tree.default_mind_map()
        self.undo_manager = UndoManager(initial, max_undo=self.settings.history_limit)

        self._layout_debouncer = Debouncer(
            self.settings.layout_delay_ms, self._run_layout, timer, name="layout")
        self._save_debouncer = Debouncer(
            self.settings.save_delay_ms, self._run_save, timer, name="save")

        # Callbacks
        self.on_layout_changed: Optional[Callable[[Layout], None]] = None
        self.on_view_changed: Optional[Callable[[], None]] = None
        self.on_warning: Optional[Callable[[str], None]] = None

        self.layout = Layout()
        self.view_map = initial
        self._run_layout()

    # ==================== State ====================

    @property
    def present(self) -> MindMap:
        return self.undo_manager.present

    @property
    def selected_node(self) -> Optional[Node]:
        return self.present.get(self.view.selected_id)

    @property
    def can_undo(self) -> bool:
        return self.undo_manager.can_undo

    @property
    def can_redo(self) -> bool:
        return self.undo_manager.can_redo

    @property
    def can_promote(self) -> bool:
        return tree.can_promote(self.present, self.view.selected_id)

    @property
    def layout_pending(self) -> bool:
        return self._layout_debouncer.pending

    # ==================== Structural changes ====================

    def _commit(self, new_map: MindMap) -> bool:
        if not self.undo_manager.commit(new_map):
            return False
        self._after_history_change()
        return True

    def _after_history_change(self):
        self.view.selected_id = self._visible_or_ancestor(self.view.selected_id)
        if self.view.hovered_id is not None and self.view.hovered_id not in self.present.nodes:
            self.view.hovered_id = None
            self.view.tooltip = None
        self._layout_debouncer.schedule()
        self._save_debouncer.schedule()

    def _visible_or_ancestor(self, node_id: Optional[str]) -> Optional[str]:
        """The node itself when drawn, else its nearest drawn ancestor."""
        if node_id is None or node_id not in self.present.nodes:
            return None
        if tree.is_visible(self.present, node_id):
            return node_id
        for ancestor in tree.iter_ancestors(self.present, node_id):
            if tree.is_visible(self.present, ancestor.id):
                return ancestor.id
        return None

    def _missing(self, exc: NotFound) -> bool:
        if self.settings.strict:
            raise exc
        logger.error("Ignored mutation on a missing node: %s", exc)
        return False

    def add_child(self, parent_id: Optional[str] = None,
                  content: str = NEW_IDEA_CONTENT) -> Optional[str]:
        """Add an idea under ``parent_id`` (default: the selection) and select it."""
        parent_id = parent_id or self.view.selected_id
        if parent_id is None:
            return None
        try:
            new_map = tree.add_child(self.present, parent_id, content)
        except NotFound as exc:
            self._missing(exc)
            return None
        new_id = new_map.nodes[parent_id].children[-1]
        self._commit(new_map)
        self.view.selected_id = self._visible_or_ancestor(new_id)
        return new_id

    def set_content(self, node_id: str, content: str) -> bool:
        try:
            return self._commit(tree.set_content(self.present, node_id, content))
        except NotFound as exc:
            return self._missing(exc)

    def toggle_collapse(self, node_id: Optional[str] = None) -> bool:
        node_id = node_id or self.view.selected_id
        if node_id is None:
            return False
        try:
            return self._commit(tree.toggle_collapse(self.present, node_id))
        except NotFound as exc:
            return self._missing(exc)

    def promote(self, node_id: Optional[str] = None) -> bool:
        """Convert an idea into an external task. False when disabled or failed."""
        node_id = node_id or self.view.selected_id
        if node_id is None:
            return False
        if node_id not in self.present.nodes:
            return self._missing(NotFound(node_id))
        if not tree.can_promote(self.present, node_id):
            return False
        try:
            new_map = self.bridge.promote(self.present, node_id)
        except TaskSubmissionFailed as exc:
            logger.warning("%s", exc)
            self._warn(f"Could not create a task: {exc.cause}. You can try again.")
            return False
        return self._commit(new_map)

    def complete(self, node_id: Optional[str] = None) -> bool:
        """Mark a task node as completed."""
        node_id = node_id or self.view.selected_id
        if node_id is None:
            return False
        try:
            return self._commit(tree.complete_task(self.present, node_id))
        except NotFound as exc:
            return self._missing(exc)
        except InvalidState as exc:
            logger.info("Complete skipped: %s", exc)
            return False

    def reconcile(self, tasks: Iterable[ExternalTask]) -> bool:
        """Mirror new external tasks. False when the list added nothing."""
        return self._commit(self.bridge.reconcile(self.present, tasks))

    def reset_map(self) -> bool:
        """Replace the map with the default one (undoable) and reset the view."""
        self.reset_view()
        self.view.selected_id = None
        return self._commit(tree.default_mind_map())

    def undo(self) -> bool:
        if not self.undo_manager.undo():
            return False
        self._after_history_change()
        return True

    def redo(self) -> bool:
        if not self.undo_manager.redo():
            return False
        self._after_history_change()
        return True

    # ==================== Layout and persistence ====================

    def _run_layout(self):
        present = self.present
        self.layout = calculate_layout(
            present,
            node_width=self.settings.node_width,
            node_height=self.settings.node_height,
            vertical_gap=self.settings.vertical_gap,
        )
        self.view_map = apply_layout(present, self.layout)
        if self.on_layout_changed:
            self.on_layout_changed(self.layout)

    def _run_save(self):
        if self.store is None:
            return
        try:
            self.store.save(self.present)
        except PersistenceWriteFailed as exc:
            logger.warning("%s", exc)
            self._warn("Changes could not be saved and may not survive a restart.")

    def flush(self):
        """Run pending layout and save passes immediately."""
        self._layout_debouncer.flush()
        self._save_debouncer.flush()

    def close(self):
        """Teardown: write any pending save, then cancel all timers."""
        self._save_debouncer.flush()
        self._layout_debouncer.close()
        self._save_debouncer.close()

    def _warn(self, message: str):
        if self.on_warning:
            self.on_warning(message)

    # ==================== View state ====================

    def _view_changed(self):
        if self.on_view_changed:
            self.on_view_changed()

    def select(self, node_id: Optional[str], activate: bool = False):
        """Select a node; ``activate`` forwards task-backed nodes to the host."""
        if node_id is not None and node_id not in self.present.nodes:
            self._missing(NotFound(node_id))
            return
        self.view.selected_id = node_id
        if activate and node_id is not None:
            self.bridge.activate(self.present, node_id)
        self._view_changed()

    def hover(self, node_id: Optional[str]):
        """Track the node under the pointer and its tooltip text."""
        node = self.present.get(node_id)
        self.view.hovered_id = node.id if node else None
        if node is None:
            self.view.tooltip = None
        elif node.children:
            verb = "Expand" if node.is_collapsed else "Collapse"
            self.view.tooltip = f"{node.content} ({verb}: Space)"
        else:
            self.view.tooltip = node.content
        self._view_changed()

    def set_zoom(self, zoom: float):
        self.view.zoom = max(self.settings.zoom_min, min(self.settings.zoom_max, zoom))
        self._view_changed()

    def zoom_in(self):
        self.set_zoom(self.view.zoom + self.settings.zoom_step)

    def zoom_out(self):
        self.set_zoom(self.view.zoom - self.settings.zoom_step)

    def zoom_by_wheel(self, delta_y: float):
        self.set_zoom(self.view.zoom - delta_y * WHEEL_ZOOM_FACTOR)

    def reset_view(self):
        self.view.zoom = 1.0
        self.view.pan_x = 0.0
        self.view.pan_y = 0.0
        self.view.drag_offset_x = 0.0
        self.view.drag_offset_y = 0.0
        self.view.is_dragging = False
        self._view_changed()

    def begin_drag(self, x: float, y: float):
        self.view.is_dragging = True
        self.view.drag_start_x = x
        self.view.drag_start_y = y
        self.view.drag_offset_x = 0.0
        self.view.drag_offset_y = 0.0

    def drag_to(self, x: float, y: float):
        if not self.view.is_dragging:
            return
        self.view.drag_offset_x = x - self.view.drag_start_x
        self.view.drag_offset_y = y - self.view.drag_start_y
        self._view_changed()

    def end_drag(self):
        """Fold the drag offset into the pan (pointer release or leave)."""
        if not self.view.is_dragging:
            return
        self.view.pan_x += self.view.drag_offset_x
        self.view.pan_y += self.view.drag_offset_y
        self.view.drag_offset_x = 0.0
        self.view.drag_offset_y = 0.0
        self.view.is_dragging = False
        self._view_changed()

    # ==================== Keyboard ====================

    def handle_key(self, key: str, ctrl: bool = False, shift: bool = False) -> bool:
        """Dispatch a key press by name (GDK key names). Returns True if handled."""
        if ctrl:
            lowered = key.lower()
            if lowered == "z":
                return self.redo() if shift else self.undo()
            if lowered == "y":
                return self.redo()
            if key in ZOOM_IN_KEYS:
                self.zoom_in()
                return True
            if key in ZOOM_OUT_KEYS:
                self.zoom_out()
                return True
            return False

        if key not in ARROW_KEYS and key not in TOGGLE_KEYS and key != "Tab":
            return False

        node = self.selected_node
        if node is None:
            if key == "Tab":
                return False
            self.select(self.present.root_id)
            return True

        if key == "Tab":
            return self.add_child(node.id) is not None
        if key in TOGGLE_KEYS:
            self.toggle_collapse(node.id)
            return True
        if key == "Right":
            self._navigate_right(node)
        elif key == "Left":
            if node.parent_id is not None:
                self.select(node.parent_id)
        else:
            self._navigate_sibling(node, -1 if key == "Up" else 1)
        return True

    def _navigate_right(self, node: Node):
        if node.is_collapsed:
            return
        first = next(tree.iter_children(self.present, node.id), None)
        if first is not None:
            self.select(first.id)

    def _navigate_sibling(self, node: Node, step: int):
        ids = tree.siblings(self.present, node.id)
        index = ids.index(node.id) + step
        if 0 <= index < len(ids):
            self.select(ids[index])

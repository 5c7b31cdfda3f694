"""Canvas widget for rendering the idea map and feeding input to the controller."""

import logging
import math
from typing import Callable, Optional, Tuple

import gi

gi.require_version("Gtk", "4.0")
gi.require_version("Gdk", "4.0")
from gi.repository import Gtk, Gdk

import cairo

from mindboard.controller import MindMapController
from mindboard.export import draw_connections, draw_rounded_rect, fit_text
from mindboard.layout import Layout, RenderedNode
from mindboard.model import STATUS_COMPLETED, STATUS_TASK

logger = logging.getLogger(__name__)


class MindMapCanvas(Gtk.DrawingArea):
    """Custom canvas widget for rendering idea maps."""

    # Colors (matching theme)
    COLORS = {
        'bg_primary': (0.039, 0.039, 0.039),      # #0a0a0a
        'surface': (0.118, 0.118, 0.118),         # #1e1e1e
        'surface_hover': (0.145, 0.145, 0.145),   # #252525
        'border_subtle': (0.165, 0.165, 0.165),   # #2a2a2a
        'border_active': (1.0, 0.176, 0.176),     # #ff2d2d
        'text_primary': (0.878, 0.878, 0.878),    # #e0e0e0
        'text_muted': (0.333, 0.333, 0.333),      # #555555
        'accent_primary': (1.0, 0.176, 0.176),    # #ff2d2d
        'accent_secondary': (0.8, 0.0, 0.0),      # #cc0000
        'root_node': (0.15, 0.05, 0.05),          # Dark red for root
        'task': (0.302, 0.651, 1.0),              # Blue
        'completed': (0.0, 0.8, 0.255),           # Green
    }

    # Wheel steps are ~1.0 per notch; the zoom factor expects pixel deltas
    WHEEL_PIXELS_PER_STEP = 100

    def __init__(self, controller: MindMapController):
        super().__init__()

        self.controller = controller
        controller.on_layout_changed = self._on_layout_changed
        controller.on_view_changed = self._on_view_changed

        self._edit_popover: Optional[Gtk.Popover] = None
        self._drag_start = (0.0, 0.0)

        # Callbacks
        self.on_changed: Optional[Callable[[], None]] = None

        # Setup widget
        self.set_draw_func(self._on_draw)
        self.set_focusable(True)
        self.set_can_focus(True)
        self.set_has_tooltip(True)

        # Setup event controllers
        self._setup_event_controllers()

        # Set size request
        self.set_hexpand(True)
        self.set_vexpand(True)

    def _setup_event_controllers(self):
        """Setup mouse and keyboard event controllers."""
        # Mouse click
        click_ctrl = Gtk.GestureClick()
        click_ctrl.set_button(1)
        click_ctrl.connect("pressed", self._on_click)
        self.add_controller(click_ctrl)

        # Mouse motion
        motion_ctrl = Gtk.EventControllerMotion()
        motion_ctrl.connect("motion", self._on_motion)
        motion_ctrl.connect("leave", self._on_leave)
        self.add_controller(motion_ctrl)

        # Scroll (zoom)
        scroll_ctrl = Gtk.EventControllerScroll()
        scroll_ctrl.set_flags(Gtk.EventControllerScrollFlags.VERTICAL)
        scroll_ctrl.connect("scroll", self._on_scroll)
        self.add_controller(scroll_ctrl)

        # Keyboard
        key_ctrl = Gtk.EventControllerKey()
        key_ctrl.connect("key-pressed", self._on_key_pressed)
        self.add_controller(key_ctrl)

        # Drag for panning
        drag_ctrl = Gtk.GestureDrag()
        drag_ctrl.set_button(0)
        drag_ctrl.connect("drag-begin", self._on_drag_begin)
        drag_ctrl.connect("drag-update", self._on_drag_update)
        drag_ctrl.connect("drag-end", self._on_drag_end)
        self.add_controller(drag_ctrl)

    # ==================== Coordinates ====================

    def _origin(self) -> Tuple[float, float]:
        """Screen point of canvas (0, 0) before zoom: centered, upper third."""
        pan_x, pan_y = self.controller.view.effective_pan
        return self.get_width() / 2 + pan_x, self.get_height() / 3 + pan_y

    def _to_canvas(self, x: float, y: float) -> Tuple[float, float]:
        origin_x, origin_y = self._origin()
        zoom = self.controller.view.zoom
        return (x - origin_x) / zoom, (y - origin_y) / zoom

    def _find_node_at(self, x: float, y: float) -> Optional[RenderedNode]:
        """Find the node at the given screen coordinates."""
        return self.controller.layout.find_node_at(*self._to_canvas(x, y))

    # ==================== Drawing ====================

    def _on_layout_changed(self, layout: Layout):
        self._on_view_changed()

    def _on_view_changed(self):
        self.queue_draw()
        if self.on_changed:
            self.on_changed()

    def _on_draw(self, area, cr, width, height):
        """Main drawing function."""
        cr.save()

        # Fill background
        cr.set_source_rgb(*self.COLORS['bg_primary'])
        cr.paint()

        # Apply zoom and pan transformations
        cr.translate(*self._origin())
        cr.scale(self.controller.view.zoom, self.controller.view.zoom)

        layout = self.controller.layout

        # Draw connections first (behind nodes)
        draw_connections(cr, layout, self.COLORS['accent_primary'], self.COLORS['accent_secondary'])

        # Draw nodes
        for rendered in layout.nodes:
            self._draw_node(cr, rendered)

        cr.restore()

    def _draw_node(self, cr, rendered: RenderedNode):
        """Draw a single node."""
        node = rendered.node
        view = self.controller.view
        is_selected = view.selected_id == node.id
        is_hovered = view.hovered_id == node.id

        x = rendered.x - rendered.width / 2
        y = rendered.y - rendered.height / 2
        w, h = rendered.width, rendered.height

        cr.save()

        # Node background
        draw_rounded_rect(cr, x, y, w, h, h / 2)
        if node.is_root:
            bg = self.COLORS['root_node']
        elif is_selected or is_hovered:
            bg = self.COLORS['surface_hover']
        else:
            bg = self.COLORS['surface']
        cr.set_source_rgb(*bg)
        cr.fill_preserve()

        # Border
        if is_selected:
            border_color = self.COLORS['border_active']
            cr.set_line_width(2)
        elif node.status in (STATUS_TASK, STATUS_COMPLETED):
            border_color = self.COLORS[node.status]
            cr.set_line_width(1.5)
        else:
            border_color = self.COLORS['border_subtle']
            cr.set_line_width(1)
        cr.set_source_rgb(*border_color)
        cr.stroke()

        # Task indicator
        if node.status in (STATUS_TASK, STATUS_COMPLETED):
            cr.set_source_rgb(*self.COLORS[node.status])
            cr.arc(x + 16, y + h / 2, 4, 0, 2 * math.pi)
            cr.fill()

        # Node text
        cr.set_source_rgb(*self.COLORS['text_primary'])
        cr.select_font_face("Sans", cairo.FONT_SLANT_NORMAL,
                            cairo.FONT_WEIGHT_BOLD if node.is_root else cairo.FONT_WEIGHT_NORMAL)
        cr.set_font_size(15 if node.is_root else 13)
        text = fit_text(cr, node.content, w - 48)
        extents = cr.text_extents(text)
        cr.move_to(rendered.x - extents.width / 2, rendered.y + extents.height / 2 - 2)
        cr.show_text(text)

        # Collapse/expand indicator
        if node.children:
            indicator_x = x + w - 18
            indicator_y = y + h / 2
            cr.set_source_rgb(*self.COLORS['text_muted'])
            cr.set_line_width(1.5)
            cr.move_to(indicator_x - 4, indicator_y)
            cr.line_to(indicator_x + 4, indicator_y)
            if node.is_collapsed:
                cr.move_to(indicator_x, indicator_y - 4)
                cr.line_to(indicator_x, indicator_y + 4)
            cr.stroke()

        cr.restore()

    # ==================== Pointer ====================

    def _on_click(self, gesture, n_press, x, y):
        """Handle mouse click."""
        # Grab focus so we can receive keyboard events
        self.grab_focus()

        clicked = self._find_node_at(x, y)
        if clicked is None:
            return
        if n_press == 2:
            self.start_editing(clicked)
        else:
            self.controller.select(clicked.node.id, activate=True)

    def _on_motion(self, controller, x, y):
        """Handle mouse motion."""
        hovered = self._find_node_at(x, y)
        node_id = hovered.node.id if hovered else None
        if node_id != self.controller.view.hovered_id:
            self.controller.hover(node_id)
            self.set_tooltip_text(self.controller.view.tooltip)

    def _on_leave(self, controller):
        """Handle mouse leaving canvas."""
        self.controller.hover(None)
        self.controller.end_drag()

    def _on_scroll(self, controller, dx, dy):
        """Handle scroll for zooming."""
        self.controller.zoom_by_wheel(dy * self.WHEEL_PIXELS_PER_STEP)
        return True

    def _on_drag_begin(self, gesture, start_x, start_y):
        """Handle start of drag (pan)."""
        self.controller.begin_drag(start_x, start_y)
        self._drag_start = (start_x, start_y)

    def _on_drag_update(self, gesture, offset_x, offset_y):
        """Handle drag movement."""
        start_x, start_y = self._drag_start
        self.controller.drag_to(start_x + offset_x, start_y + offset_y)

    def _on_drag_end(self, gesture, offset_x, offset_y):
        """Handle end of drag."""
        self.controller.end_drag()

    # ==================== Keyboard ====================

    def _on_key_pressed(self, controller, keyval, keycode, state):
        """Handle keyboard input."""
        ctrl = bool(state & Gdk.ModifierType.CONTROL_MASK)
        shift = bool(state & Gdk.ModifierType.SHIFT_MASK)
        name = Gdk.keyval_name(keyval) or ""

        if name == "F2" and self.controller.view.selected_id:
            rendered = self.controller.layout.get(self.controller.view.selected_id)
            if rendered:
                self.start_editing(rendered)
            return True

        return self.controller.handle_key(name, ctrl=ctrl, shift=shift)

    # ==================== Editing ====================

    def start_editing(self, rendered: RenderedNode):
        """Edit node content in a popover anchored on the node."""
        self.controller.select(rendered.node.id)
        if self._edit_popover is not None:
            self._edit_popover.popdown()

        entry = Gtk.Entry()
        entry.set_text(rendered.node.content)
        entry.connect("activate", lambda e: self._commit_edit(rendered.node.id, e))

        popover = Gtk.Popover()
        popover.set_child(entry)
        popover.set_parent(self)

        origin_x, origin_y = self._origin()
        zoom = self.controller.view.zoom
        rect = Gdk.Rectangle()
        rect.x = int(origin_x + rendered.x * zoom)
        rect.y = int(origin_y + rendered.y * zoom)
        rect.width = 1
        rect.height = 1
        popover.set_pointing_to(rect)
        popover.connect("closed", self._on_edit_closed)
        self._edit_popover = popover
        popover.popup()
        entry.grab_focus()

    def _commit_edit(self, node_id: str, entry: Gtk.Entry):
        self.controller.set_content(node_id, entry.get_text())
        if self._edit_popover is not None:
            self._edit_popover.popdown()

    def _on_edit_closed(self, popover):
        popover.unparent()
        if self._edit_popover is popover:
            self._edit_popover = None
        self.grab_focus()

"""Main MindBoard application."""

import logging
import sys
from typing import Optional

import gi
gi.require_version("Gtk", "4.0")
gi.require_version("Adw", "1")
gi.require_version("Gdk", "4.0")
from gi.repository import Gtk, Gio, GLib, Adw

from mindboard import __version__, __app_id__
from mindboard.bridge import TaskBridge
from mindboard.canvas import MindMapCanvas
from mindboard.config import setup_logging
from mindboard.controller import MindMapController
from mindboard.export import MindMapExporter, get_export_dir
from mindboard.model import STATUS_TASK, TaskDraft
from mindboard.scheduling import GLibTimer
from mindboard.storage import Database, MindMapStore, TaskStore

logger = logging.getLogger(__name__)


class MindBoardWindow(Adw.ApplicationWindow):
    """Main application window."""

    def __init__(self, app: Adw.Application, db: Database):
        super().__init__(application=app)
        self.db = db
        self.task_store = TaskStore(db)
        self.exporter = MindMapExporter()

        bridge = TaskBridge(on_task_create=self._on_task_create,
                            on_task_select=self._on_task_select)
        self.controller = MindMapController(
            store=MindMapStore(db),
            bridge=bridge,
            settings=db.load_board_settings(),
            timer=GLibTimer(),
        )
        self.controller.on_warning = self._show_toast

        # Window setup
        self.set_title("MindBoard")
        self.set_default_size(1200, 800)

        # Build UI
        self._build_ui()

        # Setup keyboard shortcuts
        self._setup_shortcuts()

        # Mirror tasks that already exist in the task list
        self.controller.reconcile(self.task_store.list_tasks())
        self._update_actions()

    def _build_ui(self):
        """Build the main UI layout."""
        main_box = Gtk.Box(orientation=Gtk.Orientation.VERTICAL)
        main_box.append(self._build_header())

        self.canvas = MindMapCanvas(self.controller)
        self.canvas.on_changed = self._update_actions

        canvas_frame = Gtk.Frame()
        canvas_frame.set_child(self.canvas)
        canvas_frame.set_vexpand(True)

        # Wrap in toast overlay for in-app notifications
        self.toast_overlay = Adw.ToastOverlay()
        self.toast_overlay.set_child(canvas_frame)
        main_box.append(self.toast_overlay)

        self.set_content(main_box)

    def _build_header(self) -> Adw.HeaderBar:
        """Build the header bar."""
        header = Adw.HeaderBar()
        header.add_css_class("flat")

        # Menu button
        menu_btn = Gtk.MenuButton()
        menu_btn.set_icon_name("open-menu-symbolic")
        menu_btn.set_tooltip_text("Menu")

        menu = Gio.Menu()

        map_section = Gio.Menu()
        map_section.append("Mark Task Completed", "win.complete-task")
        map_section.append("Reset Map", "win.reset-map")
        menu.append_section(None, map_section)

        export_section = Gio.Menu()
        export_menu = Gio.Menu()
        export_menu.append("Export as PNG...", "win.export-png")
        export_menu.append("Export as Markdown...", "win.export-md")
        export_menu.append("Export as JSON...", "win.export-json")
        export_section.append_submenu("Export", export_menu)
        menu.append_section(None, export_section)

        help_section = Gio.Menu()
        help_section.append("About MindBoard", "win.show-about")
        menu.append_section(None, help_section)

        popover = Gtk.PopoverMenu()
        popover.set_menu_model(menu)
        menu_btn.set_popover(popover)
        header.pack_start(menu_btn)

        # Editing
        add_btn = Gtk.Button.new_from_icon_name("list-add-symbolic")
        add_btn.set_tooltip_text("Add Idea (Tab)")
        add_btn.set_action_name("win.add-idea")
        header.pack_start(add_btn)

        convert_btn = Gtk.Button(label="Convert to Task")
        convert_btn.set_tooltip_text("Create a task from the selected idea")
        convert_btn.set_action_name("win.convert-task")
        header.pack_start(convert_btn)

        undo_btn = Gtk.Button.new_from_icon_name("edit-undo-symbolic")
        undo_btn.set_tooltip_text("Undo (Ctrl+Z)")
        undo_btn.set_action_name("win.undo")
        header.pack_start(undo_btn)

        redo_btn = Gtk.Button.new_from_icon_name("edit-redo-symbolic")
        redo_btn.set_tooltip_text("Redo (Ctrl+Shift+Z)")
        redo_btn.set_action_name("win.redo")
        header.pack_start(redo_btn)

        # View
        reset_btn = Gtk.Button(label="Reset View")
        reset_btn.set_action_name("win.reset-view")
        header.pack_end(reset_btn)

        zoom_in_btn = Gtk.Button.new_from_icon_name("zoom-in-symbolic")
        zoom_in_btn.set_tooltip_text("Zoom In (Ctrl++)")
        zoom_in_btn.set_action_name("win.zoom-in")
        header.pack_end(zoom_in_btn)

        zoom_out_btn = Gtk.Button.new_from_icon_name("zoom-out-symbolic")
        zoom_out_btn.set_tooltip_text("Zoom Out (Ctrl+-)")
        zoom_out_btn.set_action_name("win.zoom-out")
        header.pack_end(zoom_out_btn)

        return header

    def _setup_shortcuts(self):
        """Setup window actions and their accelerators."""
        controller = self.controller
        actions = [
            ("add-idea", lambda: controller.add_child(), None),
            ("convert-task", lambda: controller.promote(), "<Control>t"),
            ("complete-task", lambda: controller.complete(), None),
            ("undo", controller.undo, "<Control>z"),
            ("redo", controller.redo, "<Control><Shift>z"),
            ("zoom-in", controller.zoom_in, "<Control>plus"),
            ("zoom-out", controller.zoom_out, "<Control>minus"),
            ("reset-view", controller.reset_view, "<Control>0"),
            ("reset-map", self._confirm_reset_map, None),
            ("export-png", lambda: self._export("png"), None),
            ("export-md", lambda: self._export("md"), None),
            ("export-json", lambda: self._export("json"), None),
            ("show-about", self._show_about, None),
            ("quit", lambda: self.close(), "<Control>q"),
        ]

        self._actions = {}
        for name, callback, accel in actions:
            action = Gio.SimpleAction.new(name, None)
            action.connect("activate", lambda a, p, cb=callback: cb())
            self.add_action(action)
            self._actions[name] = action

            if accel:
                self.get_application().set_accels_for_action(f"win.{name}", [accel])

        # Additional accelerators
        self.get_application().set_accels_for_action("win.zoom-in", ["<Control>plus", "<Control>equal"])
        self.get_application().set_accels_for_action("win.redo", ["<Control><Shift>z", "<Control>y"])

    def _update_actions(self):
        """Sync action sensitivity with the controller state."""
        if not hasattr(self, "_actions"):
            return
        controller = self.controller
        selected = controller.selected_node
        self._actions["add-idea"].set_enabled(selected is not None)
        self._actions["convert-task"].set_enabled(controller.can_promote)
        self._actions["complete-task"].set_enabled(selected is not None and selected.status == STATUS_TASK)
        self._actions["undo"].set_enabled(controller.can_undo)
        self._actions["redo"].set_enabled(controller.can_redo)

    # ==================== Task list ====================

    def _on_task_create(self, draft: TaskDraft) -> str:
        task_id = self.task_store.create_task(draft)
        logger.info("Created task %s from idea %r", task_id, draft.title)
        # Let the mirror pass run after this promotion has been committed
        GLib.idle_add(self._reconcile_tasks)
        return task_id

    def _reconcile_tasks(self) -> bool:
        self.controller.reconcile(self.task_store.list_tasks())
        return False

    def _on_task_select(self, task_id: str):
        titles = {task.id: task.title for task in self.task_store.list_tasks()}
        if task_id in titles:
            self._show_toast(f"Task: {titles[task_id]}")

    # ==================== Map ====================

    def _confirm_reset_map(self):
        """Ask before replacing the map with the default one."""
        dialog = Adw.MessageDialog(
            transient_for=self,
            heading="Reset Map?",
            body="All ideas are replaced by the default map. You can undo this.",
        )
        dialog.add_response("cancel", "Cancel")
        dialog.add_response("reset", "Reset")
        dialog.set_response_appearance("reset", Adw.ResponseAppearance.DESTRUCTIVE)
        dialog.connect("response", self._on_reset_response)
        dialog.present()

    def _on_reset_response(self, dialog, response):
        if response == "reset":
            self.controller.reset_map()
            self._show_toast("Map reset")

    def _show_about(self):
        """Show about dialog."""
        about = Adw.AboutWindow(
            transient_for=self,
            application_name="MindBoard",
            application_icon="applications-graphics",
            version=__version__,
            comments="Idea maps that turn into tasks",
            license_type=Gtk.License.MIT_X11,
        )
        about.present()

    # ==================== Export ====================

    EXPORT_FORMATS = {
        "png": ("Export as PNG", "PNG Images", "image/png"),
        "md": ("Export as Markdown", "Markdown Files", "text/markdown"),
        "json": ("Export as JSON", "JSON Files", "application/json"),
    }

    def _export(self, fmt: str):
        """Ask for a target file and export the current map."""
        title, filter_name, mime_type = self.EXPORT_FORMATS[fmt]

        dialog = Gtk.FileDialog()
        dialog.set_title(title)
        dialog.set_initial_name(f"{self.controller.present.name}.{fmt}")
        dialog.set_initial_folder(Gio.File.new_for_path(str(get_export_dir())))

        file_filter = Gtk.FileFilter()
        file_filter.set_name(filter_name)
        file_filter.add_mime_type(mime_type)
        file_filter.add_suffix(fmt)

        filters = Gio.ListStore.new(Gtk.FileFilter)
        filters.append(file_filter)
        dialog.set_filters(filters)

        dialog.save(self, None, lambda d, r: self._on_export_response(d, r, fmt))

    def _on_export_response(self, dialog, result, fmt: str):
        """Handle export dialog response."""
        try:
            file = dialog.save_finish(result)
        except GLib.Error:
            return  # User cancelled

        filepath = file.get_path() if file else None
        if not filepath:
            self._show_toast("Export failed: selected location is not a local file")
            return

        mind_map = self.controller.present
        try:
            if fmt == "png":
                ok = self.exporter.export_png(mind_map, filepath, layout=self.controller.layout)
            elif fmt == "md":
                ok = self.exporter.export_markdown(mind_map, filepath)
            else:
                ok = self.exporter.export_json(mind_map, filepath)
        except OSError as exc:
            logger.error("Export to %s failed: %s", filepath, exc)
            ok = False

        self._show_toast(f"Exported to {filepath}" if ok else "Export failed")

    def _show_toast(self, message: str):
        """Show a toast notification."""
        toast = Adw.Toast(title=message)
        toast.set_timeout(3)
        self.toast_overlay.add_toast(toast)


class MindBoardApp(Adw.Application):
    """Main application class."""

    def __init__(self):
        super().__init__(
            application_id=__app_id__,
            flags=Gio.ApplicationFlags.DEFAULT_FLAGS
        )
        self.db: Optional[Database] = None
        self.window: Optional[MindBoardWindow] = None

    def do_startup(self):
        """Initialize application."""
        Adw.Application.do_startup(self)

        # Initialize database
        self.db = Database()

        # Set dark theme
        style_manager = Adw.StyleManager.get_default()
        style_manager.set_color_scheme(Adw.ColorScheme.FORCE_DARK)

    def do_activate(self):
        """Activate application."""
        if not self.window:
            self.window = MindBoardWindow(self, self.db)

        self.window.present()

    def do_shutdown(self):
        """Shutdown application."""
        if self.window:
            self.window.controller.close()

        if self.db:
            self.db.close()

        Adw.Application.do_shutdown(self)


def main() -> int:
    """Application entry point."""
    setup_logging()
    app = MindBoardApp()
    return app.run(sys.argv)


if __name__ == "__main__":
    sys.exit(main())

import json
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from fake_timer import ManualTimer
from mindboard import tree
from mindboard.bridge import TaskBridge
from mindboard.config import BoardSettings
from mindboard.controller import MindMapController
from mindboard.errors import NotFound, PersistenceWriteFailed
from mindboard.model import ExternalTask
from mindboard.storage import MINDMAP_SLOT_KEY, Database, MindMapStore


class ControllerTestCase(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.db = Database(Path(self._tmp.name) / "test.db")
        self.store = MindMapStore(self.db)
        self.timer = ManualTimer()
        self.created = []
        self.selected_tasks = []
        self.warnings = []
        self.controller = self.make_controller()

    def tearDown(self):
        self.controller.close()
        self.db.close()
        self._tmp.cleanup()

    def make_controller(self, **kwargs):
        kwargs.setdefault("store", self.store)
        kwargs.setdefault("bridge", TaskBridge(on_task_create=self._create_task,
                                               on_task_select=self.selected_tasks.append))
        kwargs.setdefault("timer", self.timer)
        controller = MindMapController(**kwargs)
        controller.on_warning = self.warnings.append
        return controller

    def _create_task(self, draft):
        self.created.append(draft)
        return f"t-{len(self.created)}"


class TestControllerScenario(ControllerTestCase):
    def test_add_promote_undo_and_persist(self):
        c = self.controller
        c.select("root")
        new_id = c.add_child(content="Write paper")
        self.assertEqual(c.view.selected_id, new_id)
        self.assertEqual(c.present.root.children, (new_id,))

        self.assertTrue(c.can_promote)
        self.assertTrue(c.promote())
        node = c.present.nodes[new_id]
        self.assertEqual(node.status, "task")
        self.assertEqual(node.task_id, "t-1")
        self.assertEqual(self.created[0].title, "Write paper")
        self.assertFalse(c.can_promote)

        self.assertTrue(c.undo())
        self.assertEqual(c.present.nodes[new_id].status, "idea")
        self.assertIsNone(c.present.nodes[new_id].task_id)

        self.timer.advance(300)
        saved = json.loads(self.db.read_slot(MINDMAP_SLOT_KEY))
        self.assertEqual(saved["nodes"][new_id]["status"], "idea")
        self.assertEqual(self.store.load(), c.present)

    def test_stored_map_is_loaded_on_start(self):
        stored = tree.add_child(tree.default_mind_map(), "root", "Saved idea", node_id="s1")
        self.store.save(stored)
        c = self.make_controller()
        self.assertEqual(c.present, stored)
        self.assertIn("s1", c.layout.positions)

    def test_broken_stored_tree_falls_back_and_navigates(self):
        m = tree.add_child(tree.default_mind_map(), "root", node_id="a")
        data = tree.add_child(m, "root", node_id="b").to_dict()
        data["nodes"]["root"]["children"] = ["a"]
        data["nodes"]["a"]["parentId"] = "b"
        self.db.write_slot(MINDMAP_SLOT_KEY, json.dumps(data))
        with self.assertLogs("mindboard.storage", level="ERROR"):
            c = self.make_controller()
        self.assertEqual(c.present, tree.default_mind_map())
        for key in ("Right", "Right", "Down"):
            self.assertTrue(c.handle_key(key))
        self.assertEqual(c.view.selected_id, "root")

    def test_failed_promotion_keeps_idea_and_warns(self):
        def failing(draft):
            raise ConnectionError("offline")

        c = self.make_controller(bridge=TaskBridge(on_task_create=failing))
        new_id = c.add_child("root", "Write paper")
        before = c.undo_manager.history
        with self.assertLogs("mindboard.controller", level="WARNING"):
            self.assertFalse(c.promote(new_id))
        self.assertEqual(c.present.nodes[new_id].status, "idea")
        self.assertIs(c.undo_manager.history, before)
        self.assertEqual(len(self.warnings), 1)
        self.assertIn("offline", self.warnings[0])

    def test_promote_is_disabled_for_tasks_and_without_selection(self):
        c = self.controller
        self.assertFalse(c.promote())
        c.reconcile([ExternalTask("5", "Existing")])
        self.assertFalse(c.promote("task-5"))
        self.assertEqual(self.created, [])

    def test_reconcile_and_complete_are_undoable(self):
        c = self.controller
        self.assertTrue(c.reconcile([ExternalTask("5", "Existing")]))
        self.assertFalse(c.reconcile([ExternalTask("5", "Existing")]))
        self.assertTrue(c.complete("task-5"))
        self.assertEqual(c.present.nodes["task-5"].status, "completed")
        self.assertFalse(c.complete("task-5"))
        c.undo()
        self.assertEqual(c.present.nodes["task-5"].status, "task")
        c.undo()
        self.assertNotIn("task-5", c.present.nodes)

    def test_activation_forwards_task_id(self):
        c = self.controller
        c.reconcile([ExternalTask("5", "Existing")])
        c.select("task-5", activate=True)
        c.select("root", activate=True)
        self.assertEqual(self.selected_tasks, ["5"])

    def test_reset_map_is_undoable_and_clears_selection(self):
        c = self.controller
        c.add_child("root", "A")
        c.set_zoom(1.5)
        c.select("root")
        self.assertTrue(c.reset_map())
        self.assertEqual(c.present, tree.default_mind_map())
        self.assertIsNone(c.view.selected_id)
        self.assertEqual(c.view.zoom, 1.0)
        c.undo()
        self.assertEqual(len(c.present.root.children), 1)

    def test_undo_that_hides_selection_moves_it_to_visible_ancestor(self):
        c = self.controller
        a = c.add_child("root", "A")
        a1 = c.add_child(a, "A1")
        c.toggle_collapse(a)
        self.assertEqual(c.view.selected_id, a)
        c.toggle_collapse(a)
        c.select(a1)
        c.undo()
        self.assertTrue(c.present.nodes[a].is_collapsed)
        self.assertEqual(c.view.selected_id, a)

    def test_add_under_collapsed_parent_keeps_a_visible_selection(self):
        c = self.controller
        a = c.add_child("root", "A")
        c.add_child(a, "A1")
        c.toggle_collapse(a)
        hidden = c.add_child(a, "A2")
        self.assertIn(hidden, c.present.nodes[a].children)
        self.assertEqual(c.view.selected_id, a)
        c.handle_key("Down")
        self.assertEqual(c.view.selected_id, a)

    def test_undo_drops_selection_of_removed_node(self):
        c = self.controller
        new_id = c.add_child("root")
        self.assertEqual(c.view.selected_id, new_id)
        c.undo()
        self.assertIsNone(c.view.selected_id)


class TestControllerErrors(ControllerTestCase):
    def test_missing_node_is_logged_and_ignored(self):
        with self.assertLogs("mindboard.controller", level="ERROR"):
            self.assertFalse(self.controller.set_content("ghost", "x"))
        self.assertFalse(self.controller.can_undo)

    def test_missing_node_raises_in_strict_mode(self):
        c = self.make_controller(settings=BoardSettings(strict=True))
        with self.assertRaises(NotFound):
            c.toggle_collapse("ghost")

    def test_save_failure_warns_and_keeps_state(self):
        c = self.controller
        c.add_child("root", "A")
        with mock.patch.object(self.store, "save",
                               side_effect=PersistenceWriteFailed("disk full")):
            with self.assertLogs("mindboard.controller", level="WARNING"):
                self.timer.advance(300)
        self.assertEqual(len(self.warnings), 1)
        self.assertEqual(len(c.present.root.children), 1)


class TestControllerScheduling(ControllerTestCase):
    def test_layout_is_coalesced(self):
        c = self.controller
        layouts = []
        c.on_layout_changed = layouts.append
        for _ in range(3):
            c.add_child("root")
            self.timer.advance(50)
        self.assertTrue(c.layout_pending)
        self.assertEqual(len(c.layout.nodes), 1)
        self.timer.advance(100)
        self.assertEqual(len(layouts), 1)
        self.assertEqual(len(c.layout.nodes), 4)
        self.assertIsNotNone(c.view_map.nodes[c.present.root.children[0]].x)

    def test_save_waits_for_quiescence(self):
        c = self.controller
        c.add_child("root")
        self.timer.advance(200)
        self.assertIsNone(self.db.read_slot(MINDMAP_SLOT_KEY))
        self.timer.advance(100)
        self.assertIsNotNone(self.db.read_slot(MINDMAP_SLOT_KEY))

    def test_flush_runs_pending_passes(self):
        c = self.controller
        c.add_child("root")
        c.flush()
        self.assertFalse(c.layout_pending)
        self.assertEqual(len(c.layout.nodes), 2)
        self.assertEqual(self.store.load(), c.present)

    def test_close_writes_pending_save_and_cancels_timers(self):
        c = self.controller
        c.add_child("root", "Last words")
        c.close()
        self.assertEqual(self.timer.pending_count, 0)
        self.assertEqual(self.store.load(), c.present)

        c.add_child("root")
        self.assertEqual(self.timer.pending_count, 0)


class TestControllerView(ControllerTestCase):
    def test_view_changes_do_not_touch_history(self):
        c = self.controller
        c.select("root")
        c.hover("root")
        c.zoom_in()
        c.begin_drag(0, 0)
        c.drag_to(10, 10)
        c.end_drag()
        c.reset_view()
        self.assertFalse(c.can_undo)
        self.assertEqual(self.timer.pending_count, 0)

    def test_zoom_steps_and_clamps(self):
        c = self.controller
        c.zoom_in()
        self.assertAlmostEqual(c.view.zoom, 1.1)
        c.zoom_out()
        c.zoom_out()
        self.assertAlmostEqual(c.view.zoom, 0.9)
        c.zoom_by_wheel(100)
        self.assertAlmostEqual(c.view.zoom, 0.8)
        c.zoom_by_wheel(-100000)
        self.assertEqual(c.view.zoom, 2.0)
        c.zoom_by_wheel(100000)
        self.assertEqual(c.view.zoom, 0.1)

    def test_drag_is_live_and_folded_on_release(self):
        c = self.controller
        c.begin_drag(10, 10)
        c.drag_to(30, 50)
        self.assertEqual(c.view.effective_pan, (20, 40))
        self.assertEqual((c.view.pan_x, c.view.pan_y), (0, 0))
        c.end_drag()
        self.assertEqual((c.view.pan_x, c.view.pan_y), (20, 40))
        self.assertEqual(c.view.effective_pan, (20, 40))
        c.drag_to(100, 100)
        self.assertEqual(c.view.effective_pan, (20, 40))

    def test_hover_tooltip(self):
        c = self.controller
        c.hover("root")
        self.assertEqual(c.view.tooltip, "Main Goal")
        c.add_child("root")
        c.hover("root")
        self.assertEqual(c.view.tooltip, "Main Goal (Collapse: Space)")
        c.toggle_collapse("root")
        c.hover("root")
        self.assertEqual(c.view.tooltip, "Main Goal (Expand: Space)")
        c.hover(None)
        self.assertIsNone(c.view.tooltip)


class TestKeyboard(ControllerTestCase):
    def setUp(self):
        super().setUp()
        c = self.controller
        self.a = c.add_child("root", "A")
        self.b = c.add_child("root", "B")
        self.a1 = c.add_child(self.a, "A1")
        c.select(None)

    def test_first_key_selects_root(self):
        c = self.controller
        self.assertTrue(c.handle_key("Down"))
        self.assertEqual(c.view.selected_id, "root")
        c.select(None)
        self.assertTrue(c.handle_key("space"))
        self.assertEqual(c.view.selected_id, "root")
        self.assertFalse(c.present.root.is_collapsed)

    def test_arrow_navigation(self):
        c = self.controller
        c.select("root")
        c.handle_key("Right")
        self.assertEqual(c.view.selected_id, self.a)
        c.handle_key("Down")
        self.assertEqual(c.view.selected_id, self.b)
        c.handle_key("Down")
        self.assertEqual(c.view.selected_id, self.b)
        c.handle_key("Up")
        self.assertEqual(c.view.selected_id, self.a)
        c.handle_key("Right")
        self.assertEqual(c.view.selected_id, self.a1)
        c.handle_key("Left")
        self.assertEqual(c.view.selected_id, self.a)
        c.handle_key("Left")
        c.handle_key("Left")
        self.assertEqual(c.view.selected_id, "root")
        c.handle_key("Up")
        self.assertEqual(c.view.selected_id, "root")

    def test_toggle_blocks_entering_collapsed_node(self):
        c = self.controller
        c.select(self.a)
        c.handle_key("Return")
        self.assertTrue(c.present.nodes[self.a].is_collapsed)
        c.handle_key("Right")
        self.assertEqual(c.view.selected_id, self.a)
        c.handle_key("space")
        c.handle_key("Right")
        self.assertEqual(c.view.selected_id, self.a1)

    def test_tab_adds_child(self):
        c = self.controller
        c.select(self.b)
        self.assertTrue(c.handle_key("Tab"))
        new_id = c.view.selected_id
        self.assertEqual(c.present.nodes[new_id].parent_id, self.b)

    def test_history_and_zoom_shortcuts(self):
        c = self.controller
        c.select(self.b)
        c.handle_key("Tab")
        self.assertTrue(c.handle_key("z", ctrl=True))
        self.assertEqual(c.present.nodes[self.b].children, ())
        self.assertTrue(c.handle_key("Z", ctrl=True, shift=True))
        self.assertEqual(len(c.present.nodes[self.b].children), 1)
        c.handle_key("z", ctrl=True)
        self.assertTrue(c.handle_key("y", ctrl=True))
        self.assertEqual(len(c.present.nodes[self.b].children), 1)

        c.handle_key("plus", ctrl=True)
        self.assertAlmostEqual(c.view.zoom, 1.1)
        c.handle_key("minus", ctrl=True)
        self.assertAlmostEqual(c.view.zoom, 1.0)

    def test_unhandled_keys(self):
        c = self.controller
        self.assertFalse(c.handle_key("a"))
        self.assertFalse(c.handle_key("Tab"))
        self.assertFalse(c.handle_key("q", ctrl=True))


if __name__ == "__main__":
    unittest.main(verbosity=2)

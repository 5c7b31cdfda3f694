import importlib.util
import json
import tempfile
import unittest
from pathlib import Path

from mindboard import tree
from mindboard.export import MindMapExporter, render_markdown

HAS_CAIRO = importlib.util.find_spec("cairo") is not None


def _sample_map():
    m = tree.add_child(tree.default_mind_map(), "root", "Research", node_id="a")
    m = tree.add_child(m, "a", "Read papers", node_id="a1")
    m = tree.add_child(m, "a1", "Survey", node_id="a2")
    m = tree.add_child(m, "a2", "Notes", node_id="a3")
    m = tree.add_child(m, "root", "Write paper", node_id="b")
    m = tree.mark_promoted(m, "b", "t-1")
    m = tree.add_child(m, "root", "Submit", node_id="c")
    m = tree.complete_task(tree.mark_promoted(m, "c", "t-2"), "c")
    return tree.toggle_collapse(m, "a")


class TestMarkdownExportContract(unittest.TestCase):
    def test_outline_levels_and_task_markers(self):
        text = render_markdown(_sample_map())
        self.assertEqual(text, "\n".join([
            "---",
            "title: Task Planning",
            "map: default",
            "---",
            "",
            "# Main Goal",
            "",
            "## Research",
            "### Read papers",
            "- Survey",
            "  - Notes",
            "## [ ] Write paper",
            "## [x] Submit",
        ]) + "\n")

    def test_deep_chain_renders_every_level(self):
        m = tree.default_mind_map()
        parent = "root"
        for i in range(1200):
            m = tree.add_child(m, parent, f"step {i}", node_id=f"n{i}")
            parent = f"n{i}"
        self.assertEqual(tree.check_tree(m), [])
        lines = render_markdown(m).splitlines()
        self.assertEqual(lines[7], "## step 0")
        self.assertEqual(lines[-1], "  " * 1197 + "- step 1199")

    def test_export_writes_files(self):
        exporter = MindMapExporter()
        with tempfile.TemporaryDirectory() as tmp:
            md = Path(tmp) / "map.md"
            js = Path(tmp) / "map.json"
            self.assertTrue(exporter.export_markdown(_sample_map(), str(md)))
            self.assertTrue(exporter.export_json(_sample_map(), str(js)))
            self.assertIn("# Main Goal", md.read_text(encoding="utf-8"))
            self.assertEqual(json.loads(js.read_text(encoding="utf-8"))["rootId"], "root")


@unittest.skipUnless(HAS_CAIRO, "pycairo not installed")
class TestPngExportContract(unittest.TestCase):
    def test_png_covers_visible_nodes(self):
        import cairo

        with tempfile.TemporaryDirectory() as tmp:
            out = Path(tmp) / "map.png"
            self.assertTrue(MindMapExporter().export_png(_sample_map(), str(out), scale=1.0))
            surface = cairo.ImageSurface.create_from_png(str(out))
            # Three children on level one: 3 * 160 wide plus padding
            self.assertEqual(surface.get_width(), 3 * 160 + 100)
            self.assertEqual(surface.get_height(), 150 + 50 + 100)


if __name__ == "__main__":
    unittest.main(verbosity=2)

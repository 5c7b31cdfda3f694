import unittest

from mindboard import tree
from mindboard.layout import apply_layout, calculate_layout


def _sample_map():
    m = tree.add_child(tree.default_mind_map(), "root", node_id="a")
    m = tree.add_child(m, "root", node_id="b")
    m = tree.add_child(m, "root", node_id="c")
    m = tree.add_child(m, "a", node_id="a1")
    m = tree.add_child(m, "c", node_id="c1")
    return m


class TestLayoutContract(unittest.TestCase):
    def test_levels_are_centered_and_stacked(self):
        positions = calculate_layout(_sample_map()).positions
        self.assertEqual(positions["root"], (0.0, 0.0))
        self.assertEqual(positions["a"], (-160.0, 150.0))
        self.assertEqual(positions["b"], (0.0, 150.0))
        self.assertEqual(positions["c"], (160.0, 150.0))
        self.assertEqual(positions["a1"], (-80.0, 300.0))
        self.assertEqual(positions["c1"], (80.0, 300.0))

    def test_layout_is_deterministic_and_ignores_content(self):
        m = _sample_map()
        renamed = tree.set_content(m, "b", "a much longer idea text")
        self.assertEqual(calculate_layout(m).positions, calculate_layout(m).positions)
        self.assertEqual(calculate_layout(m).positions, calculate_layout(renamed).positions)

    def test_collapsed_subtrees_are_skipped(self):
        m = tree.toggle_collapse(_sample_map(), "a")
        positions = calculate_layout(m).positions
        self.assertNotIn("a1", positions)
        self.assertEqual(positions["c1"], (0.0, 300.0))

        placed = apply_layout(m, calculate_layout(m))
        self.assertIsNone(placed.nodes["a1"].x)
        self.assertEqual((placed.nodes["c1"].x, placed.nodes["c1"].y), (0.0, 300.0))
        self.assertEqual(set(placed.nodes), set(m.nodes))

    def test_custom_dimensions(self):
        positions = calculate_layout(_sample_map(), node_width=100, node_height=40,
                                     vertical_gap=10).positions
        self.assertEqual(positions["a"], (-100.0, 50.0))
        self.assertEqual(positions["a1"], (-50.0, 100.0))

    def test_hit_testing_and_bounds(self):
        layout = calculate_layout(_sample_map())
        self.assertEqual(layout.find_node_at(5, 5).node.id, "root")
        self.assertEqual(layout.find_node_at(160, 160).node.id, "c")
        self.assertIsNone(layout.find_node_at(0, 75))
        self.assertEqual(layout.bounds(), (-240.0, -25.0, 240.0, 325.0))


if __name__ == "__main__":
    unittest.main(verbosity=2)

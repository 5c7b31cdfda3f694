"""Level-order layout for the idea map.

Rows are breadth-first levels of the visible tree; each row is centered on
x = 0 with a fixed slot width, and rows are stacked downwards.
"""

from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Tuple

from mindboard.model import MindMap, Node
from mindboard.tree import visible_levels

NODE_WIDTH = 160.0
NODE_HEIGHT = 100.0
VERTICAL_GAP = 50.0

# Drawn box inside each slot
BOX_WIDTH = 160.0
BOX_HEIGHT = 50.0


@dataclass
class RenderedNode:
    """A node with calculated center position and level."""
    node: Node
    x: float
    y: float
    level: int
    width: float = BOX_WIDTH
    height: float = BOX_HEIGHT

    def contains_point(self, px: float, py: float) -> bool:
        """Check if a point is inside this node's box."""
        return (abs(px - self.x) <= self.width / 2 and
                abs(py - self.y) <= self.height / 2)


@dataclass
class Layout:
    """Positions for every visible node, in level order."""
    nodes: List[RenderedNode] = field(default_factory=list)

    @property
    def positions(self) -> Dict[str, Tuple[float, float]]:
        return {r.node.id: (r.x, r.y) for r in self.nodes}

    def get(self, node_id: str) -> Optional[RenderedNode]:
        for rendered in self.nodes:
            if rendered.node.id == node_id:
                return rendered
        return None

    def find_node_at(self, x: float, y: float) -> Optional[RenderedNode]:
        """Top-most node under a canvas-space point."""
        for rendered in reversed(self.nodes):
            if rendered.contains_point(x, y):
                return rendered
        return None

    def bounds(self) -> Optional[Tuple[float, float, float, float]]:
        """(min_x, min_y, max_x, max_y) of all node boxes."""
        if not self.nodes:
            return None
        return (
            min(r.x - r.width / 2 for r in self.nodes),
            min(r.y - r.height / 2 for r in self.nodes),
            max(r.x + r.width / 2 for r in self.nodes),
            max(r.y + r.height / 2 for r in self.nodes),
        )


def calculate_layout(mind_map: MindMap,
                     node_width: float = NODE_WIDTH,
                     node_height: float = NODE_HEIGHT,
                     vertical_gap: float = VERTICAL_GAP) -> Layout:
    """Place every visible node.

    For a level with ``k`` nodes, the node at index ``i`` is centered at
    ``-(k * w) / 2 + i * w + w / 2``; the level sits at
    ``level * (node_height + vertical_gap)``.
    """
    layout = Layout()
    for level, node_ids in enumerate(visible_levels(mind_map)):
        start_x = -(len(node_ids) * node_width) / 2
        y = level * (node_height + vertical_gap)
        for index, node_id in enumerate(node_ids):
            layout.nodes.append(RenderedNode(
                node=mind_map.nodes[node_id],
                x=start_x + index * node_width + node_width / 2,
                y=y,
                level=level,
                width=min(BOX_WIDTH, node_width),
            ))
    return layout


def apply_layout(mind_map: MindMap, layout: Layout) -> MindMap:
    """Copy of ``mind_map`` with ``x``/``y`` caches filled for visible nodes.

    Hidden nodes get their caches cleared.
    """
    positions = layout.positions
    nodes = {}
    for node_id, node in mind_map.nodes.items():
        x, y = positions.get(node_id, (None, None))
        nodes[node_id] = replace(node, x=x, y=y)
    return replace(mind_map, nodes=nodes)

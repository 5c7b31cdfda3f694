"""Export functionality for MindBoard idea maps."""

import json
import math
from pathlib import Path
from typing import List, Optional

from mindboard.config import get_data_dir
from mindboard.layout import Layout, RenderedNode, calculate_layout
from mindboard.model import STATUS_COMPLETED, STATUS_TASK, MindMap, Node
from mindboard.tree import iter_children


def _label(node: Node) -> str:
    if node.status == STATUS_TASK:
        return f"[ ] {node.content}"
    if node.status == STATUS_COMPLETED:
        return f"[x] {node.content}"
    return node.content


def render_markdown(mind_map: MindMap) -> str:
    """Markdown outline of the whole tree, collapsed branches included."""
    root = mind_map.root
    lines: List[str] = []

    # Frontmatter
    lines.append("---")
    lines.append(f"title: {mind_map.name}")
    lines.append(f"map: {mind_map.id}")
    lines.append("---")
    lines.append("")

    # Title
    lines.append(f"# {_label(root)}")
    lines.append("")

    # Depth-first, explicit stack
    stack = [(child, 1) for child in reversed(list(iter_children(mind_map, root.id)))]
    seen = {root.id}
    while stack:
        node, depth = stack.pop()
        if node.id in seen:
            continue
        seen.add(node.id)

        # Heading or bullet based on depth
        if depth == 1:
            lines.append(f"## {_label(node)}")
        elif depth == 2:
            lines.append(f"### {_label(node)}")
        else:
            indent = "  " * (depth - 3)
            lines.append(f"{indent}- {_label(node)}")

        stack.extend((child, depth + 1) for child in reversed(list(iter_children(mind_map, node.id))))

    return "\n".join(lines) + "\n"


class MindMapExporter:
    """Handles exporting idea maps to various formats."""

    # Colors matching canvas
    COLORS = {
        'bg_primary': (0.039, 0.039, 0.039),
        'surface': (0.118, 0.118, 0.118),
        'border_subtle': (0.165, 0.165, 0.165),
        'text_primary': (0.878, 0.878, 0.878),
        'accent_primary': (1.0, 0.176, 0.176),
        'accent_secondary': (0.8, 0.0, 0.0),
        'task': (0.302, 0.651, 1.0),
        'completed': (0.0, 0.8, 0.255),
    }

    def export_markdown(self, mind_map: MindMap, filepath: str) -> bool:
        """Export idea map to a Markdown outline."""
        if mind_map.root_id not in mind_map.nodes:
            return False
        Path(filepath).write_text(render_markdown(mind_map), encoding="utf-8")
        return True

    def export_json(self, mind_map: MindMap, filepath: str) -> bool:
        """Export the snapshot in its persisted JSON shape."""
        Path(filepath).write_text(json.dumps(mind_map.to_dict(), indent=2), encoding="utf-8")
        return True

    def export_png(self, mind_map: MindMap, filepath: str,
                   scale: float = 2.0, transparent: bool = False,
                   layout: Optional[Layout] = None) -> bool:
        """Export the visible nodes to a PNG image.

        If ``layout`` is provided it is used directly (WYSIWYG), otherwise
        positions are calculated from scratch.
        """
        import cairo

        layout = layout or calculate_layout(mind_map)
        bounds = layout.bounds()
        if bounds is None:
            return False
        min_x, min_y, max_x, max_y = bounds

        padding = 50
        width = int((max_x - min_x + padding * 2) * scale)
        height = int((max_y - min_y + padding * 2) * scale)

        # Create surface
        surface = cairo.ImageSurface(cairo.FORMAT_ARGB32, width, height)
        cr = cairo.Context(surface)

        # Scale and translate
        cr.scale(scale, scale)
        cr.translate(-min_x + padding, -min_y + padding)

        # Background
        if not transparent:
            cr.set_source_rgb(*self.COLORS['bg_primary'])
            cr.paint()

        draw_connections(cr, layout, self.COLORS['accent_primary'], self.COLORS['accent_secondary'])
        for rendered in layout.nodes:
            self._draw_node(cr, rendered)

        # Save
        surface.write_to_png(filepath)
        return True

    def _draw_node(self, cr, rendered: RenderedNode):
        """Draw a single node."""
        import cairo

        node = rendered.node
        x = rendered.x - rendered.width / 2
        y = rendered.y - rendered.height / 2
        w, h = rendered.width, rendered.height

        draw_rounded_rect(cr, x, y, w, h, h / 2)

        # Fill
        cr.set_source_rgb(*self.COLORS['surface'])
        cr.fill_preserve()

        # Border
        border = self.COLORS.get(node.status, self.COLORS['border_subtle'])
        cr.set_source_rgb(*border)
        cr.set_line_width(1.5 if node.status != "idea" else 1)
        cr.stroke()

        # Text
        cr.set_source_rgb(*self.COLORS['text_primary'])
        cr.select_font_face("Sans", cairo.FONT_SLANT_NORMAL,
                            cairo.FONT_WEIGHT_BOLD if node.is_root else cairo.FONT_WEIGHT_NORMAL)
        cr.set_font_size(15 if node.is_root else 13)

        text = fit_text(cr, node.content, w - 24)
        extents = cr.text_extents(text)
        cr.move_to(rendered.x - extents.width / 2, rendered.y + extents.height / 2 - 2)
        cr.show_text(text)


def fit_text(cr, text: str, max_width: float) -> str:
    """Truncate ``text`` with an ellipsis until it fits ``max_width``."""
    extents = cr.text_extents(text)
    while extents.width > max_width and len(text) > 3:
        text = text[:-4] + "..."
        extents = cr.text_extents(text)
    return text


def draw_connections(cr, layout: Layout, start_color, end_color):
    """Draw a curve from the bottom of each parent to the top of each child."""
    import cairo

    for rendered in layout.nodes:
        parent = layout.get(rendered.node.parent_id) if rendered.node.parent_id else None
        if parent is None:
            continue

        start_x, start_y = parent.x, parent.y + parent.height / 2
        end_x, end_y = rendered.x, rendered.y - rendered.height / 2
        ctrl_dist = math.hypot(end_x - start_x, end_y - start_y) * 0.4

        gradient = cairo.LinearGradient(start_x, start_y, end_x, end_y)
        gradient.add_color_stop_rgba(0, *start_color, 0.8)
        gradient.add_color_stop_rgba(1, *end_color, 0.6)

        cr.set_source(gradient)
        cr.set_line_width(2)
        cr.set_line_cap(cairo.LINE_CAP_ROUND)

        cr.move_to(start_x, start_y)
        cr.curve_to(start_x, start_y + ctrl_dist, end_x, end_y - ctrl_dist, end_x, end_y)
        cr.stroke()


def draw_rounded_rect(cr, x, y, w, h, radius):
    """Draw a rounded rectangle path."""
    radius = min(radius, w / 2, h / 2)
    cr.new_path()
    cr.arc(x + w - radius, y + radius, radius, -math.pi / 2, 0)
    cr.arc(x + w - radius, y + h - radius, radius, 0, math.pi / 2)
    cr.arc(x + radius, y + h - radius, radius, math.pi / 2, math.pi)
    cr.arc(x + radius, y + radius, radius, math.pi, 3 * math.pi / 2)
    cr.close_path()


def get_export_dir() -> Path:
    """Get the default export directory."""
    export_dir = get_data_dir() / "exports"
    export_dir.mkdir(exist_ok=True)
    return export_dir

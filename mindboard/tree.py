"""Tree store: pure mutation functions over ``MindMap`` snapshots.

Every mutation returns a new ``MindMap`` and leaves its argument untouched.
Structure can only grow through ``append_node`` (and ``add_child`` on top of
it), which keeps the map a rooted tree by construction.
"""

import uuid
from collections import deque
from dataclasses import replace
from typing import Dict, Iterator, List, Optional, Tuple

from mindboard.errors import InvalidState, NotFound
from mindboard.model import (
    DEFAULT_MAP_ID, DEFAULT_MAP_NAME, DEFAULT_ROOT_CONTENT, DEFAULT_ROOT_ID,
    NEW_IDEA_CONTENT, STATUS_COMPLETED, STATUS_IDEA, STATUS_TASK, STATUSES,
    MindMap, Node, TaskDraft,
)


def default_mind_map() -> MindMap:
    """A fresh map holding only the root node."""
    root = Node(id=DEFAULT_ROOT_ID, parent_id=None, content=DEFAULT_ROOT_CONTENT)
    return MindMap(
        id=DEFAULT_MAP_ID,
        name=DEFAULT_MAP_NAME,
        root_id=DEFAULT_ROOT_ID,
        nodes={root.id: root},
    )


def new_node_id(mind_map: MindMap) -> str:
    """Generate an id that is not used in ``mind_map``."""
    while True:
        node_id = f"node-{uuid.uuid4().hex[:12]}"
        if node_id not in mind_map.nodes:
            return node_id


def get_node(mind_map: MindMap, node_id: str) -> Node:
    """Return the node or raise ``NotFound``."""
    node = mind_map.nodes.get(node_id)
    if node is None:
        raise NotFound(node_id)
    return node


def _with_nodes(mind_map: MindMap, updates: Dict[str, Node]) -> MindMap:
    nodes = dict(mind_map.nodes)
    nodes.update(updates)
    return replace(mind_map, nodes=nodes)


# ==================== Mutations ====================

def append_node(mind_map: MindMap, node: Node) -> MindMap:
    """Attach a brand-new leaf under ``node.parent_id``."""
    if node.parent_id is None:
        raise InvalidState("Only the root may have no parent")
    parent = get_node(mind_map, node.parent_id)
    if node.id in mind_map.nodes:
        raise InvalidState(f"Node id already in use: {node.id!r}")
    if node.children:
        raise InvalidState("New nodes must not have children")

    return _with_nodes(mind_map, {
        parent.id: replace(parent, children=parent.children + (node.id,)),
        node.id: node,
    })


def add_child(mind_map: MindMap, parent_id: str,
              content: str = NEW_IDEA_CONTENT,
              node_id: Optional[str] = None) -> MindMap:
    """Append a new ``idea`` node to the children of ``parent_id``."""
    get_node(mind_map, parent_id)
    node = Node(
        id=node_id or new_node_id(mind_map),
        parent_id=parent_id,
        content=content,
        status=STATUS_IDEA,
    )
    return append_node(mind_map, node)


def set_content(mind_map: MindMap, node_id: str, content: str) -> MindMap:
    """Replace the text of a node. Unchanged content returns ``mind_map`` itself."""
    node = get_node(mind_map, node_id)
    if node.content == content:
        return mind_map
    return _with_nodes(mind_map, {node_id: replace(node, content=content)})


def toggle_collapse(mind_map: MindMap, node_id: str) -> MindMap:
    """Flip the collapsed flag; the subtree is hidden, never removed."""
    node = get_node(mind_map, node_id)
    return _with_nodes(mind_map, {node_id: replace(node, is_collapsed=not node.is_collapsed)})


def promote_to_task(mind_map: MindMap, node_id: str) -> Tuple[MindMap, TaskDraft]:
    """Build the task draft for a node.

    The map comes back unchanged: the status only flips once the external
    store confirms the new task (see ``mark_promoted``).
    """
    node = get_node(mind_map, node_id)
    if node.status != STATUS_IDEA:
        raise InvalidState(f"Node {node_id!r} is already a {node.status}")
    return mind_map, TaskDraft(title=node.content, status="todo")


def can_promote(mind_map: MindMap, node_id: Optional[str]) -> bool:
    node = mind_map.get(node_id)
    return node is not None and node.status == STATUS_IDEA


def mark_promoted(mind_map: MindMap, node_id: str, task_id: str) -> MindMap:
    """Flip an ``idea`` node to ``task`` and stamp the external id."""
    node = get_node(mind_map, node_id)
    if node.status != STATUS_IDEA:
        raise InvalidState(f"Node {node_id!r} is already a {node.status}")
    return _with_nodes(mind_map, {
        node_id: replace(node, status=STATUS_TASK, task_id=str(task_id)),
    })


def complete_task(mind_map: MindMap, node_id: str) -> MindMap:
    """Mark a ``task`` node as ``completed``."""
    node = get_node(mind_map, node_id)
    if node.status != STATUS_TASK:
        raise InvalidState(f"Only tasks can be completed, {node_id!r} is a {node.status}")
    return _with_nodes(mind_map, {node_id: replace(node, status=STATUS_COMPLETED)})


# ==================== Queries ====================

def iter_children(mind_map: MindMap, node_id: str) -> Iterator[Node]:
    """Yield the existing children of a node in display order."""
    node = mind_map.nodes.get(node_id)
    if node is None:
        return
    for child_id in node.children:
        child = mind_map.nodes.get(child_id)
        if child is not None:
            yield child


def iter_ancestors(mind_map: MindMap, node_id: str) -> Iterator[Node]:
    """Walk parent links from ``node_id`` (exclusive) up to the root."""
    node = get_node(mind_map, node_id)
    seen = {node.id}
    while node.parent_id is not None:
        if node.parent_id in seen:
            raise InvalidState(f"Cycle detected at {node.parent_id!r}")
        node = get_node(mind_map, node.parent_id)
        seen.add(node.id)
        yield node


def siblings(mind_map: MindMap, node_id: str) -> Tuple[str, ...]:
    """Ids sharing the node's parent, the node included; the root is alone."""
    node = get_node(mind_map, node_id)
    if node.parent_id is None:
        return (node.id,)
    parent = get_node(mind_map, node.parent_id)
    return tuple(cid for cid in parent.children if cid in mind_map.nodes)


def is_visible(mind_map: MindMap, node_id: str) -> bool:
    """A node is visible when no ancestor is collapsed."""
    return not any(a.is_collapsed for a in iter_ancestors(mind_map, node_id))


def visible_levels(mind_map: MindMap) -> List[List[str]]:
    """Breadth-first levels of visible node ids, children of collapsed nodes skipped."""
    if mind_map.root_id not in mind_map.nodes:
        return []
    levels: List[List[str]] = []
    queue = deque([(mind_map.root_id, 0)])
    seen = set()
    while queue:
        node_id, level = queue.popleft()
        if node_id in seen:
            continue
        seen.add(node_id)
        if level == len(levels):
            levels.append([])
        levels[level].append(node_id)
        node = mind_map.nodes[node_id]
        if node.is_collapsed:
            continue
        for child in iter_children(mind_map, node_id):
            queue.append((child.id, level + 1))
    return levels


def visible_node_ids(mind_map: MindMap) -> List[str]:
    return [node_id for level in visible_levels(mind_map) for node_id in level]


def subtree_ids(mind_map: MindMap, node_id: str) -> List[str]:
    """All descendants of a node, collapsed or not (the node excluded)."""
    result: List[str] = []
    stack = [c.id for c in reversed(list(iter_children(mind_map, node_id)))]
    while stack:
        current = stack.pop()
        if current in result:
            continue
        result.append(current)
        stack.extend(c.id for c in reversed(list(iter_children(mind_map, current))))
    return result


def check_tree(mind_map: MindMap) -> List[str]:
    """Return a list of rooted-tree invariant violations (empty when sound)."""
    problems: List[str] = []
    roots = [n.id for n in mind_map.nodes.values() if n.parent_id is None]
    if roots != [mind_map.root_id]:
        problems.append(f"expected single root {mind_map.root_id!r}, found {roots}")

    for key, node in mind_map.nodes.items():
        if key != node.id:
            problems.append(f"node stored under {key!r} has id {node.id!r}")
        if node.status not in STATUSES:
            problems.append(f"node {node.id!r} has unknown status {node.status!r}")
        if node.status == STATUS_TASK and node.task_id is None:
            problems.append(f"task node {node.id!r} has no task id")
        if node.parent_id is not None:
            parent = mind_map.nodes.get(node.parent_id)
            if parent is None:
                problems.append(f"node {node.id!r} references missing parent {node.parent_id!r}")
            elif parent.children.count(node.id) != 1:
                problems.append(f"node {node.id!r} is not listed once under {parent.id!r}")
            try:
                for _ in iter_ancestors(mind_map, node.id):
                    pass
            except (InvalidState, NotFound) as exc:
                problems.append(f"node {node.id!r} does not reach the root: {exc}")
        for child_id in node.children:
            child = mind_map.nodes.get(child_id)
            if child is None:
                problems.append(f"node {node.id!r} lists missing child {child_id!r}")
            elif child.parent_id != node.id:
                problems.append(f"child {child_id!r} of {node.id!r} points at {child.parent_id!r}")
    return problems

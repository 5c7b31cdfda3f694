"""Data types for the idea map."""

from typing import Optional, Dict, Tuple, Mapping, Any
from dataclasses import dataclass, field

STATUS_IDEA = "idea"
STATUS_TASK = "task"
STATUS_COMPLETED = "completed"
STATUSES = (STATUS_IDEA, STATUS_TASK, STATUS_COMPLETED)

DEFAULT_MAP_ID = "default"
DEFAULT_MAP_NAME = "Task Planning"
DEFAULT_ROOT_ID = "root"
DEFAULT_ROOT_CONTENT = "Main Goal"
NEW_IDEA_CONTENT = "New Idea"


@dataclass(frozen=True)
class Node:
    """A single entry in the idea map.

    ``x`` and ``y`` are layout caches; they are never persisted and are
    recomputed from the structural fields.
    """
    id: str
    parent_id: Optional[str] = None
    content: str = NEW_IDEA_CONTENT
    children: Tuple[str, ...] = ()
    status: str = STATUS_IDEA
    is_collapsed: bool = False
    task_id: Optional[str] = None
    x: Optional[float] = None
    y: Optional[float] = None

    @property
    def is_root(self) -> bool:
        return self.parent_id is None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "parentId": self.parent_id,
            "content": self.content,
            "children": list(self.children),
            "status": self.status,
            "isCollapsed": self.is_collapsed,
        }
        if self.task_id is not None:
            data["taskId"] = self.task_id
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Node":
        task_id = data.get("taskId")
        return cls(
            id=data["id"],
            parent_id=data["parentId"],
            content=data["content"],
            children=tuple(data["children"]),
            status=data["status"],
            is_collapsed=bool(data.get("isCollapsed", False)),
            task_id=str(task_id) if task_id is not None else None,
        )


@dataclass(frozen=True)
class MindMap:
    """An immutable snapshot of the whole tree."""
    id: str = DEFAULT_MAP_ID
    name: str = DEFAULT_MAP_NAME
    root_id: str = DEFAULT_ROOT_ID
    nodes: Mapping[str, Node] = field(default_factory=dict)

    @property
    def root(self) -> Node:
        return self.nodes[self.root_id]

    def get(self, node_id: Optional[str]) -> Optional[Node]:
        if node_id is None:
            return None
        return self.nodes.get(node_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "rootId": self.root_id,
            "nodes": {key: node.to_dict() for key, node in self.nodes.items()},
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "MindMap":
        return cls(
            id=data["id"],
            name=data["name"],
            root_id=data["rootId"],
            nodes={key: Node.from_dict(raw) for key, raw in data["nodes"].items()},
        )


@dataclass(frozen=True)
class TaskDraft:
    """Request sent to the external task store when a node is promoted."""
    title: str
    status: str = "todo"
    description: str = ""


@dataclass(frozen=True)
class ExternalTask:
    """Read-only projection of a task owned by the external task store."""
    id: str
    title: str

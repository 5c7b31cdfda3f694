"""Task bridge between the idea map and the external task store."""

import logging
from typing import Callable, Iterable, Optional

from mindboard.errors import TaskSubmissionFailed
from mindboard.model import STATUS_TASK, ExternalTask, MindMap, Node, TaskDraft
from mindboard.tree import append_node, get_node, mark_promoted, promote_to_task

logger = logging.getLogger(__name__)

MIRROR_PREFIX = "task-"


def mirror_node_id(task_id: str) -> str:
    """Node id used for the mirror of an external task."""
    return f"{MIRROR_PREFIX}{task_id}"


def reconcile(mind_map: MindMap, tasks: Iterable[ExternalTask]) -> MindMap:
    """Add a mirror node under the root for every task not yet represented.

    A task counts as represented when its mirror id exists or when some node
    (for example a promoted idea) already carries its id. Mirrors of tasks that
    disappeared are kept. Returns ``mind_map`` itself when nothing was added.
    """
    known_task_ids = {n.task_id for n in mind_map.nodes.values() if n.task_id is not None}
    result = mind_map
    for task in tasks:
        task_id = str(task.id)
        node_id = mirror_node_id(task_id)
        if node_id in result.nodes or task_id in known_task_ids:
            continue
        result = append_node(result, Node(
            id=node_id,
            parent_id=result.root_id,
            content=task.title,
            status=STATUS_TASK,
            task_id=task_id,
        ))
        known_task_ids.add(task_id)
        logger.debug("Mirrored task %s as %s", task_id, node_id)
    return result


class TaskBridge:
    """Submits promotions and forwards activations to the host.

    ``on_task_create`` receives a ``TaskDraft`` and returns the id of the
    created task; any exception it raises counts as a failed submission.
    """

    def __init__(self,
                 on_task_create: Optional[Callable[[TaskDraft], str]] = None,
                 on_task_select: Optional[Callable[[str], None]] = None):
        self.on_task_create = on_task_create
        self.on_task_select = on_task_select

    def reconcile(self, mind_map: MindMap, tasks: Iterable[ExternalTask]) -> MindMap:
        return reconcile(mind_map, tasks)

    def promote(self, mind_map: MindMap, node_id: str) -> MindMap:
        """Create the external task and return the map with the node flipped to ``task``.

        Raises ``InvalidState`` for nodes already promoted and
        ``TaskSubmissionFailed`` when the external store fails.
        """
        _, draft = promote_to_task(mind_map, node_id)
        if self.on_task_create is None:
            raise TaskSubmissionFailed(node_id, RuntimeError("no task store connected"))
        try:
            task_id = self.on_task_create(draft)
        except Exception as exc:  # pylint: disable=broad-except
            raise TaskSubmissionFailed(node_id, exc) from exc
        if task_id is None or str(task_id) == "":
            raise TaskSubmissionFailed(node_id, RuntimeError("task store returned no id"))
        logger.info("Promoted node %s to task %s", node_id, task_id)
        return mark_promoted(mind_map, node_id, str(task_id))

    def activate(self, mind_map: MindMap, node_id: str) -> Optional[str]:
        """Emit the task id of a task-backed node to the host."""
        node = get_node(mind_map, node_id)
        if node.task_id is None:
            return None
        if self.on_task_select:
            self.on_task_select(node.task_id)
        return node.task_id

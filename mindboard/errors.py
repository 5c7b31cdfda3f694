"""Error types raised by the MindBoard engine."""


class MindBoardError(Exception):
    """Base class for all idea map errors."""


class NotFound(MindBoardError):
    """A mutation referenced a node id that is not in the map."""

    def __init__(self, node_id: str):
        super().__init__(f"Node not found: {node_id!r}")
        self.node_id = node_id


class InvalidState(MindBoardError):
    """The node is not in a state that allows the requested change."""


class PersistenceCorrupt(MindBoardError):
    """Stored map data failed shape validation."""


class PersistenceWriteFailed(MindBoardError):
    """The snapshot could not be written to durable storage."""


class TaskSubmissionFailed(MindBoardError):
    """The external task store rejected or failed a promotion."""

    def __init__(self, node_id: str, cause: Exception):
        super().__init__(f"Could not create task for node {node_id!r}: {cause}")
        self.node_id = node_id
        self.cause = cause

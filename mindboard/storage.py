"""SQLite persistence layer for MindBoard."""

import json
import logging
import sqlite3
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any, List, Mapping, Optional

from mindboard.config import BoardSettings, get_data_dir, get_db_path
from mindboard.errors import PersistenceCorrupt, PersistenceWriteFailed
from mindboard.model import STATUSES, ExternalTask, MindMap, TaskDraft
from mindboard.tree import check_tree, default_mind_map

logger = logging.getLogger(__name__)

MINDMAP_SLOT_KEY = "mindboard-mindmap"
SETTINGS_KEY = "board_settings"


class Database:
    """Database manager for MindBoard."""

    def __init__(self, db_path: Optional[Path] = None):
        self.db_path = db_path or get_db_path()
        self._conn: Optional[sqlite3.Connection] = None
        self._init_db()

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = sqlite3.connect(str(self.db_path))
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA journal_mode = WAL")
        return self._conn

    def _init_db(self):
        """Initialize the database schema."""
        cursor = self.conn.cursor()

        cursor.executescript("""
            -- Durable key-value slots holding serialized snapshots
            CREATE TABLE IF NOT EXISTS slots (
                key TEXT PRIMARY KEY,
                value TEXT,
                modified_at DATETIME DEFAULT CURRENT_TIMESTAMP
            );

            -- Local task store
            CREATE TABLE IF NOT EXISTS tasks (
                id TEXT PRIMARY KEY,
                title TEXT NOT NULL,
                description TEXT DEFAULT '',
                status TEXT NOT NULL DEFAULT 'todo',
                created_at DATETIME DEFAULT CURRENT_TIMESTAMP
            );

            -- App settings table
            CREATE TABLE IF NOT EXISTS settings (
                key TEXT PRIMARY KEY,
                value JSON
            );
        """)

        self.conn.commit()

    def close(self):
        """Close the database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None

    # ==================== Slot Operations ====================

    def read_slot(self, key: str) -> Optional[str]:
        """Raw text stored under ``key``, or None."""
        cursor = self.conn.cursor()
        cursor.execute("SELECT value FROM slots WHERE key = ?", (key,))
        row = cursor.fetchone()
        return row["value"] if row else None

    def write_slot(self, key: str, value: str):
        """Store raw text under ``key``."""
        cursor = self.conn.cursor()
        cursor.execute(
            "INSERT OR REPLACE INTO slots (key, value, modified_at) VALUES (?, ?, ?)",
            (key, value, datetime.now().isoformat())
        )
        self.conn.commit()

    # ==================== Settings Operations ====================

    def get_setting(self, key: str, default: Any = None) -> Any:
        """Get an application setting."""
        cursor = self.conn.cursor()
        cursor.execute("SELECT value FROM settings WHERE key = ?", (key,))
        row = cursor.fetchone()

        if not row:
            return default

        try:
            return json.loads(row["value"])
        except json.JSONDecodeError:
            return default

    def set_setting(self, key: str, value: Any):
        """Set an application setting."""
        cursor = self.conn.cursor()
        cursor.execute(
            "INSERT OR REPLACE INTO settings (key, value) VALUES (?, ?)",
            (key, json.dumps(value))
        )
        self.conn.commit()

    def load_board_settings(self) -> BoardSettings:
        """Board settings merged with environment overrides."""
        return BoardSettings.from_json(self.get_setting(SETTINGS_KEY)).with_env()

    def save_board_settings(self, settings: BoardSettings):
        self.set_setting(SETTINGS_KEY, settings.to_json())


class TaskStore:
    """Minimal local task store standing in for the board's task list."""

    def __init__(self, db: Database):
        self.db = db

    def list_tasks(self) -> List[ExternalTask]:
        cursor = self.db.conn.cursor()
        cursor.execute("SELECT id, title FROM tasks ORDER BY created_at, rowid")
        return [ExternalTask(id=row["id"], title=row["title"]) for row in cursor.fetchall()]

    def create_task(self, draft: TaskDraft) -> str:
        """Insert a task from a draft and return its id."""
        task_id = uuid.uuid4().hex[:12]
        cursor = self.db.conn.cursor()
        cursor.execute(
            """INSERT INTO tasks (id, title, description, status, created_at)
               VALUES (?, ?, ?, ?, ?)""",
            (task_id, draft.title, draft.description, draft.status, datetime.now().isoformat())
        )
        self.db.conn.commit()
        return task_id


# ==================== Snapshot validation ====================

def _fail(reason: str):
    raise PersistenceCorrupt(reason)


def validate_mind_map(data: Any) -> MindMap:
    """Check the stored JSON shape and build a ``MindMap``.

    Raises ``PersistenceCorrupt`` naming the first problem found.
    """
    if not isinstance(data, Mapping):
        _fail("map is not an object")
    for key in ("id", "name", "rootId"):
        if not isinstance(data.get(key), str):
            _fail(f"map field {key!r} is not a string")
    nodes = data.get("nodes")
    if not isinstance(nodes, Mapping):
        _fail("map field 'nodes' is not an object")

    for key, node in nodes.items():
        if not isinstance(node, Mapping):
            _fail(f"node {key!r} is not an object")
        if not isinstance(node.get("id"), str):
            _fail(f"node {key!r} has no string id")
        parent_id = node.get("parentId", 0)
        if parent_id is not None and not isinstance(parent_id, str):
            _fail(f"node {key!r} has an invalid parentId")
        if not isinstance(node.get("content"), str):
            _fail(f"node {key!r} has no string content")
        children = node.get("children")
        if not isinstance(children, list) or not all(isinstance(c, str) for c in children):
            _fail(f"node {key!r} has invalid children")
        if node.get("status") not in STATUSES:
            _fail(f"node {key!r} has invalid status {node.get('status')!r}")
        if not isinstance(node.get("isCollapsed", False), bool):
            _fail(f"node {key!r} has a non-boolean isCollapsed")
        task_id = node.get("taskId")
        if task_id is not None and (isinstance(task_id, bool) or not isinstance(task_id, (str, int))):
            _fail(f"node {key!r} has an invalid taskId")

    if data["rootId"] not in nodes:
        _fail(f"root {data['rootId']!r} is not among the nodes")

    return MindMap.from_dict(data)


class MindMapStore:
    """Load and save the idea map snapshot in a durable slot."""

    def __init__(self, db: Database, key: str = MINDMAP_SLOT_KEY):
        self.db = db
        self.key = key

    def load(self) -> MindMap:
        """Stored map, or the default map when missing or corrupt. Never raises."""
        try:
            raw = self.db.read_slot(self.key)
        except sqlite3.Error as exc:
            logger.error("Could not read %s: %s", self.key, exc)
            return default_mind_map()

        if raw is None:
            return default_mind_map()

        try:
            mind_map = validate_mind_map(json.loads(raw))
            problems = check_tree(mind_map)
            if problems:
                raise PersistenceCorrupt("; ".join(problems))
            return mind_map
        except json.JSONDecodeError as exc:
            logger.error("Error parsing mind map from storage: %s", exc)
        except PersistenceCorrupt as exc:
            logger.error("Invalid mind map structure in storage: %s", exc)
        return default_mind_map()

    def save(self, mind_map: MindMap):
        """Write the snapshot. Raises ``PersistenceWriteFailed`` on failure."""
        try:
            self.db.write_slot(self.key, json.dumps(mind_map.to_dict()))
        except (sqlite3.Error, TypeError, ValueError) as exc:
            raise PersistenceWriteFailed(f"Could not save mind map: {exc}") from exc

    def create_backup(self, mind_map: MindMap, keep: int = 10) -> Path:
        """Write a timestamped JSON copy to the backups folder, keeping the newest ``keep``."""
        backup_dir = get_data_dir() / "backups"
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
        backup_file = backup_dir / f"map_{mind_map.id}_{timestamp}.json"
        backup_file.write_text(json.dumps(mind_map.to_dict(), indent=2), encoding="utf-8")

        # Clean old backups (keep last N)
        backups = sorted(backup_dir.glob(f"map_{mind_map.id}_*.json"), reverse=True)
        for old_backup in backups[keep:]:
            old_backup.unlink()
        return backup_file

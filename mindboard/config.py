"""Configuration for MindBoard: data locations, board settings and logging."""

import json
import logging
import os
from pathlib import Path
from typing import Optional
from dataclasses import dataclass, asdict


def get_data_dir() -> Path:
    """Get the application data directory."""
    override = os.environ.get("MINDBOARD_DATA_DIR")
    if override:
        data_dir = Path(override).expanduser()
    else:
        data_dir = Path.home() / ".local" / "share" / "mindboard"
    data_dir.mkdir(parents=True, exist_ok=True)
    (data_dir / "exports").mkdir(exist_ok=True)
    (data_dir / "backups").mkdir(exist_ok=True)
    return data_dir


def get_db_path() -> Path:
    """Get the database file path."""
    return get_data_dir() / "mindboard.db"


@dataclass
class BoardSettings:
    """Tunable constants for layout, history and the view."""
    node_width: float = 160.0
    node_height: float = 100.0
    vertical_gap: float = 50.0
    layout_delay_ms: int = 100
    save_delay_ms: int = 300
    history_limit: int = 50
    zoom_min: float = 0.1
    zoom_max: float = 2.0
    zoom_step: float = 0.1
    strict: bool = False

    def to_json(self) -> str:
        return json.dumps(asdict(self))

    @classmethod
    def from_json(cls, data: Optional[str]) -> "BoardSettings":
        if not data:
            return cls()
        try:
            d = json.loads(data)
            # Filter to only known fields to handle schema evolution
            known = {f.name for f in cls.__dataclass_fields__.values()}
            return cls(**{k: v for k, v in d.items() if k in known})
        except (json.JSONDecodeError, TypeError, AttributeError):
            return cls()

    def with_env(self) -> "BoardSettings":
        """Apply environment overrides."""
        if os.environ.get("MINDBOARD_STRICT") == "1":
            self.strict = True
        return self


def setup_logging(level: Optional[str] = None) -> None:
    """Configure root logging once for the process."""
    name = (level or os.environ.get("MINDBOARD_LOG_LEVEL") or "WARNING").upper()
    logging.basicConfig(
        level=getattr(logging, name, logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

"""Storage layer for TaskApp space snapshots.

Each space is one YAML document under ``<data_dir>/spaces/<space_id>.yaml``::

    space:
      id: sp-1
      name: Website renewal
      members: [user-1, user-2]
    milestones:
      - id: ms-1
        name: Beta
        start_date: 2024-01-01
        due_date: 2024-01-10
    tasks:
      - id: t-1
        status: done
        milestone_id: ms-1
        created_at: 2023-12-28T09:00:00Z
        completed_at: 2024-01-03T15:00:00Z

Rows use the same snake_case keys as the task/milestone tables, so exports
from the database can be dropped in unchanged.
"""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .config import ConfigModel
from .domain import Milestone, Space, Task, TaskAppError


logger = logging.getLogger(__name__)

SPACE_ID_RE = re.compile(r"^[A-Za-z0-9_.-]+$")


class StorageError(TaskAppError):
    """A space snapshot could not be read or written."""
    pass


class SpaceNotFoundError(StorageError):
    """No snapshot exists for the requested space."""
    pass


@dataclass
class SpaceSnapshot:
    """A space with the task and milestone rows fetched for it."""
    space: Space
    tasks: List[Task] = field(default_factory=list)
    milestones: List[Milestone] = field(default_factory=list)

    def get_milestone(self, milestone_id: str) -> Optional[Milestone]:
        return next((m for m in self.milestones if m.id == milestone_id), None)

    def get_task(self, task_id: str) -> Optional[Task]:
        return next((t for t in self.tasks if t.id == task_id), None)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "space": self.space.to_dict(),
            "milestones": [m.to_dict() for m in self.milestones],
            "tasks": [t.to_dict() for t in self.tasks],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], space_id: str) -> "SpaceSnapshot":
        space_data = dict(data.get("space") or {})
        space_data.setdefault("id", space_id)
        space = Space.from_dict(space_data)

        # Rows inherit the space id when the export left it out
        milestones = [
            Milestone.from_dict({"space_id": space.id, **row})
            for row in data.get("milestones") or []
        ]
        tasks = [
            Task.from_dict({"space_id": space.id, **row})
            for row in data.get("tasks") or []
        ]
        return cls(space=space, tasks=tasks, milestones=milestones)


class SpaceStorage:
    """File-based storage for space snapshots."""

    def __init__(self, config: ConfigModel):
        self.config = config
        self.spaces_dir = config.get_spaces_dir()

    def _space_path(self, space_id: str) -> Path:
        if not space_id or not SPACE_ID_RE.match(space_id):
            raise SpaceNotFoundError(f"Invalid space id: {space_id!r}")
        return self.spaces_dir / f"{space_id}.yaml"

    def load_space(self, space_id: str) -> SpaceSnapshot:
        """Load a space and its rows.

        Raises:
            SpaceNotFoundError: If the space has no snapshot
            StorageError: If the snapshot cannot be parsed
        """
        path = self._space_path(space_id)
        if not path.exists():
            raise SpaceNotFoundError(f"Space not found: {space_id}")

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
            if not isinstance(data, dict):
                raise ValueError("snapshot must be a YAML mapping")
            return SpaceSnapshot.from_dict(data, space_id)
        except (yaml.YAMLError, ValueError, KeyError, TypeError) as e:
            logger.error("Error loading space %s: %s", space_id, e)
            raise StorageError(f"Failed to load space {space_id}: {e}") from e

    def save_space(self, snapshot: SpaceSnapshot) -> Path:
        """Write a snapshot, replacing any previous one."""
        path = self._space_path(snapshot.space.id)
        path.parent.mkdir(parents=True, exist_ok=True)

        tmp_path = path.with_suffix(".yaml.tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            yaml.safe_dump(snapshot.to_dict(), f, default_flow_style=False, sort_keys=False)
        tmp_path.replace(path)

        logger.info("Saved space %s (%d tasks, %d milestones)",
                    snapshot.space.id, len(snapshot.tasks), len(snapshot.milestones))
        return path

    def list_spaces(self) -> List[str]:
        """List all stored space ids."""
        if not self.spaces_dir.exists():
            return []
        return sorted(p.stem for p in self.spaces_dir.glob("*.yaml"))

    def delete_space(self, space_id: str) -> bool:
        """Delete a space snapshot. Returns False if it did not exist."""
        path = self._space_path(space_id)
        if not path.exists():
            return False
        path.unlink()
        return True


# Global storage instance
_storage_instance: Optional[SpaceStorage] = None


def get_storage() -> SpaceStorage:
    """Get the global storage instance.

    Returns:
        SpaceStorage initialized with current config
    """
    global _storage_instance

    if _storage_instance is None:
        from .config import get_config
        _storage_instance = SpaceStorage(get_config())

    return _storage_instance


def reset_storage() -> None:
    """Reset the global storage instance (useful for testing)."""
    global _storage_instance
    _storage_instance = None

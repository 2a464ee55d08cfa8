# repotransfer/core/repo_snapshot.py

import json
import logging
from collections import OrderedDict
from pathlib import Path
from threading import RLock
from typing import Dict, List, Optional, Tuple

from .context_managers import safe_file_operation
from .exceptions import NodeNotFoundError, SnapshotPersistenceError
from .interfaces.snapshot import RepoSnapshotManager, SnapshotNode

logger = logging.getLogger(__name__)

DEFAULT_LRU_SIZE = 3000


def split_relative_path(relative_path: str) -> List[str]:
    """Split "a/b/c", "/a/b/" or "." into path components."""
    return [part for part in relative_path.replace("\\", "/").split("/") if part and part != "."]


class DirectoryNode(SnapshotNode):
    """A directory in the tree snapshot, tracking how many of its files are still pending"""

    def __init__(self, name: str, parent: Optional["DirectoryNode"] = None):
        self._name = name
        self.parent = parent
        self.children: Dict[str, "DirectoryNode"] = {}
        self.files_count = 0
        self.done_exploring = False
        self.completed = False

    @property
    def name(self) -> str:
        return self._name

    def get_path(self) -> str:
        parts = []
        node = self
        while node.parent is not None:
            parts.append(node.name)
            node = node.parent
        return "/".join(reversed(parts))

    def is_completed(self) -> bool:
        return self.completed

    def get_or_create_child(self, name: str) -> "DirectoryNode":
        child = self.children.get(name)
        if child is None:
            child = DirectoryNode(name, self)
            self.children[name] = child
        return child

    def increment_files_count(self, count: int = 1) -> None:
        self.files_count += count

    def decrement_files_count(self, count: int = 1) -> None:
        if count > self.files_count:
            raise ValueError(f"Cannot decrement files count of '{self.get_path()}' below zero")
        self.files_count -= count
        self.check_completed()

    def mark_done_exploring(self) -> None:
        self.done_exploring = True
        self.check_completed()

    def check_completed(self) -> None:
        """Complete once explored, no files pending and all children complete; propagates upward."""
        node = self
        while node is not None and not node.completed:
            if not node.done_exploring or node.files_count > 0:
                return
            if not all(child.completed for child in node.children.values()):
                return
            node.completed = True
            node = node.parent

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "files_count": self.files_count,
            "done_exploring": self.done_exploring,
            "completed": self.completed,
            "children": [child.to_dict() for child in self.children.values()],
        }

    @classmethod
    def from_dict(cls, data: dict, parent: Optional["DirectoryNode"] = None) -> "DirectoryNode":
        node = cls(data["name"], parent)
        node.files_count = int(data.get("files_count", 0))
        node.done_exploring = bool(data.get("done_exploring", False))
        node.completed = bool(data.get("completed", False))
        for child_data in data.get("children", []):
            child = cls.from_dict(child_data, node)
            node.children[child.name] = child
        return node


class FileRepoSnapshotManager(RepoSnapshotManager):
    """Tree snapshot persisted as a single JSON file, with an LRU of recently used directories"""

    def __init__(self, repo_key: str, snapshot_path: Path, root: Optional[DirectoryNode] = None,
                 lru_size: int = DEFAULT_LRU_SIZE):
        self.repo_key = repo_key
        self.snapshot_path = Path(snapshot_path)
        self.root = root if root is not None else DirectoryNode(".")
        self.lru_size = lru_size
        self._lru: "OrderedDict[str, DirectoryNode]" = OrderedDict()
        self._lock = RLock()

    @classmethod
    def create(cls, repo_key: str, snapshot_path: Path) -> "FileRepoSnapshotManager":
        logger.debug(f"Creating new tree snapshot for '{repo_key}' at {snapshot_path}")
        return cls(repo_key, snapshot_path)

    @classmethod
    def load(cls, repo_key: str, snapshot_path: Path) -> Tuple[Optional["FileRepoSnapshotManager"], bool]:
        snapshot_path = Path(snapshot_path)
        try:
            with open(snapshot_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return None, False
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise SnapshotPersistenceError(f"Failed to decode tree snapshot {snapshot_path}: {e}",
                                           path=snapshot_path, repo_key=repo_key, error_type="corrupt")
        except OSError as e:
            raise SnapshotPersistenceError(f"Failed to read tree snapshot {snapshot_path}: {e}",
                                           path=snapshot_path, repo_key=repo_key)

        if not isinstance(data, dict):
            raise SnapshotPersistenceError(
                f"Tree snapshot {snapshot_path} must hold a JSON object, got {type(data).__name__} (corrupt)",
                path=snapshot_path, repo_key=repo_key, error_type="corrupt")
        if data.get("repo_key") != repo_key:
            raise SnapshotPersistenceError(
                f"Tree snapshot {snapshot_path} belongs to '{data.get('repo_key')}', not '{repo_key}' (invalid)",
                path=snapshot_path, repo_key=repo_key, error_type="corrupt")
        try:
            root = DirectoryNode.from_dict(data["root"])
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise SnapshotPersistenceError(f"Corrupt tree snapshot {snapshot_path}: {e}",
                                           path=snapshot_path, repo_key=repo_key, error_type="corrupt")
        logger.info(f"Loaded tree snapshot of '{repo_key}' from {snapshot_path}")
        return cls(repo_key, snapshot_path, root), True

    def _find(self, parts: List[str]) -> Optional[DirectoryNode]:
        node = self.root
        for part in parts:
            node = node.children.get(part)
            if node is None:
                return None
        return node

    def look_up_node(self, relative_path: str) -> DirectoryNode:
        with self._lock:
            node = self._find(split_relative_path(relative_path))
        if node is None:
            raise NodeNotFoundError(f"Node '{relative_path}' was not found in the snapshot of '{self.repo_key}'",
                                    relative_path=relative_path)
        return node

    def get_directory_snapshot_node_with_lru(self, relative_path: str) -> DirectoryNode:
        key = "/".join(split_relative_path(relative_path))
        with self._lock:
            node = self._lru.get(key)
            if node is not None:
                self._lru.move_to_end(key)
                return node

            node = self.root
            for part in split_relative_path(key):
                node = node.get_or_create_child(part)

            self._lru[key] = node
            if len(self._lru) > self.lru_size:
                self._lru.popitem(last=False)
            return node

    def persist(self) -> None:
        with self._lock:
            data = {"repo_key": self.repo_key, "root": self.root.to_dict()}
        try:
            self.snapshot_path.parent.mkdir(parents=True, exist_ok=True)
            with safe_file_operation(self.snapshot_path, 'w', encoding='utf-8') as f:
                json.dump(data, f)
        except OSError as e:
            raise SnapshotPersistenceError(f"Failed to write tree snapshot {self.snapshot_path}: {e}",
                                           path=self.snapshot_path, repo_key=self.repo_key)
        logger.debug(f"Persisted tree snapshot of '{self.repo_key}' to {self.snapshot_path}")

# repotransfer/core/interfaces/snapshot.py
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Tuple

class SnapshotNode(ABC):
    """Opaque handle to a directory position in a repository tree snapshot"""

    @property
    @abstractmethod
    def name(self) -> str:
        pass

    @abstractmethod
    def get_path(self) -> str:
        """Relative path of this node from the repository root"""
        pass

    @abstractmethod
    def is_completed(self) -> bool:
        """True once every file under this directory was handled"""
        pass

class RepoSnapshotManager(ABC):
    """Capability interface of a repository tree snapshot.

    Implementations must be safe to call from several threads at once.
    """

    @classmethod
    @abstractmethod
    def create(cls, repo_key: str, snapshot_path: Path) -> "RepoSnapshotManager":
        """Create an empty tree for repo_key that persists to snapshot_path"""
        pass

    @classmethod
    @abstractmethod
    def load(cls, repo_key: str, snapshot_path: Path) -> Tuple[Optional["RepoSnapshotManager"], bool]:
        """
        Load a previously persisted tree.

        Returns:
            (manager, True) when found, (None, False) when nothing was persisted

        Raises:
            SnapshotPersistenceError: If the file exists but cannot be read
        """
        pass

    @abstractmethod
    def look_up_node(self, relative_path: str) -> SnapshotNode:
        """
        Raises:
            NodeNotFoundError: If no node is known at relative_path
        """
        pass

    @abstractmethod
    def get_directory_snapshot_node_with_lru(self, relative_path: str) -> SnapshotNode:
        """Get or create the node at relative_path, retaining it in the LRU cache"""
        pass

    @abstractmethod
    def persist(self) -> None:
        """
        Raises:
            SnapshotPersistenceError: If the tree cannot be written
        """
        pass

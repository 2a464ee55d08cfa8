# repotransfer/core/transfer_snapshot.py

import logging
import time
from pathlib import Path
from threading import Lock
from typing import Callable, Optional, Tuple, Type

from .exceptions import SnapshotUninitializedError
from .interfaces.snapshot import RepoSnapshotManager, SnapshotNode
from .repo_snapshot import FileRepoSnapshotManager

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


class PersistenceGate:
    """
    Non-blocking gate for snapshot persistence.

    A caller either gets the gate immediately or is told to skip; nobody
    ever waits for a checkpoint that is already being written.
    """

    def __init__(self):
        self._lock = Lock()

    def try_acquire(self) -> bool:
        return self._lock.acquire(blocking=False)

    def release(self) -> None:
        self._lock.release()

    @property
    def busy(self) -> bool:
        return self._lock.locked()


# Shared by every manager in the process, since only one repository is active at a time.
snapshot_persistence_gate = PersistenceGate()


class RepoTransferSnapshot:
    """Tree snapshot of one repository plus its checkpoint bookkeeping"""

    def __init__(self, snapshot_manager: RepoSnapshotManager, loaded_from_snapshot: bool = False,
                 clock: Clock = time.time):
        self.snapshot_manager = snapshot_manager
        self.last_save_timestamp: float = clock()
        # Set when this run resumes a previous one. A fresh tree only holds
        # nodes created during this run, so existence checks can be skipped.
        self.loaded_from_snapshot = loaded_from_snapshot
        self._enabled = True

    @property
    def enabled(self) -> bool:
        return self._enabled

    def disable(self) -> None:
        self._enabled = False

    def _ensure_enabled(self) -> None:
        if not self._enabled:
            raise SnapshotUninitializedError("Repository transfer snapshot was used after it was disabled")

    def look_up_node(self, relative_path: str) -> SnapshotNode:
        self._ensure_enabled()
        return self.snapshot_manager.look_up_node(relative_path)

    def get_directory_snapshot_node_with_lru(self, relative_path: str) -> SnapshotNode:
        self._ensure_enabled()
        return self.snapshot_manager.get_directory_snapshot_node_with_lru(relative_path)

    def was_snapshot_loaded(self) -> bool:
        self._ensure_enabled()
        return self.loaded_from_snapshot

    def seconds_since_last_save(self, now: float) -> float:
        return now - self.last_save_timestamp

    def mark_saved(self, now: float) -> None:
        """Advance the last save timestamp; it never moves backwards."""
        if now > self.last_save_timestamp:
            self.last_save_timestamp = now

    def persist(self) -> None:
        self._ensure_enabled()
        self.snapshot_manager.persist()


def create_repo_transfer_snapshot(repo_key: str, snapshot_path: Path, clock: Clock = time.time,
                                  manager_cls: Type[RepoSnapshotManager] = FileRepoSnapshotManager
                                  ) -> RepoTransferSnapshot:
    """
    Create a wrapper around a new, empty tree snapshot.

    Args:
        repo_key: Repository the tree belongs to
        snapshot_path: File the tree persists to
        clock: Time source, seconds since the epoch
        manager_cls: Tree snapshot implementation

    Returns:
        RepoTransferSnapshot: Wrapper with loaded_from_snapshot False
    """
    logger.info(f"Creating a new transfer snapshot for repository '{repo_key}'")
    return RepoTransferSnapshot(manager_cls.create(repo_key, snapshot_path), loaded_from_snapshot=False,
                                clock=clock)


def load_repo_transfer_snapshot(repo_key: str, snapshot_path: Path, clock: Clock = time.time,
                                manager_cls: Type[RepoSnapshotManager] = FileRepoSnapshotManager
                                ) -> Tuple[Optional[RepoTransferSnapshot], bool]:
    """
    Load a previously persisted tree snapshot.

    Args:
        repo_key: Repository the tree belongs to
        snapshot_path: File the tree was persisted to
        clock: Time source, seconds since the epoch
        manager_cls: Tree snapshot implementation

    Returns:
        (wrapper, True) when a snapshot was found, (None, False) otherwise

    Raises:
        SnapshotPersistenceError: If the snapshot exists but cannot be read
    """
    snapshot_manager, found = manager_cls.load(repo_key, snapshot_path)
    if not found:
        logger.debug(f"No persisted snapshot for repository '{repo_key}' at {snapshot_path}")
        return None, False
    logger.info(f"Resuming repository '{repo_key}' from its persisted snapshot")
    return RepoTransferSnapshot(snapshot_manager, loaded_from_snapshot=True, clock=clock), True

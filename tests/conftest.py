# tests/conftest.py
"""
Pytest configuration for RepoTransfer tests.
Defines fixtures used across multiple test modules.
"""
from pathlib import Path
from typing import Dict, List, Optional, Tuple
import pytest

from repotransfer.core.config_manager import TransferConfig
from repotransfer.core.exceptions import NodeNotFoundError, SnapshotPersistenceError
from repotransfer.core.interfaces.snapshot import RepoSnapshotManager, SnapshotNode
from repotransfer.core.state_manager import TransferStateManager
from repotransfer.core.transfer_snapshot import PersistenceGate
from repotransfer.core.transfer_state import StateStore


class FakeClock:
    """Manually advanced time source, in seconds"""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeNode(SnapshotNode):
    def __init__(self, path: str):
        self._path = path

    @property
    def name(self) -> str:
        return self._path.rsplit("/", 1)[-1]

    def get_path(self) -> str:
        return self._path

    def is_completed(self) -> bool:
        return False


class InMemorySnapshotManager(RepoSnapshotManager):
    """Tree snapshot kept in memory; persist() copies the node set into a class-level store"""

    persisted: Dict[str, List[str]] = {}

    def __init__(self, repo_key: str, snapshot_path: Path, paths: Optional[List[str]] = None):
        self.repo_key = repo_key
        self.snapshot_path = Path(snapshot_path)
        self.nodes = {p: FakeNode(p) for p in (paths or [])}
        self.persist_calls = 0
        self.fail_persist = False

    @classmethod
    def create(cls, repo_key: str, snapshot_path: Path) -> "InMemorySnapshotManager":
        return cls(repo_key, snapshot_path)

    @classmethod
    def load(cls, repo_key: str, snapshot_path: Path) -> Tuple[Optional["InMemorySnapshotManager"], bool]:
        paths = cls.persisted.get(str(snapshot_path))
        if paths is None:
            return None, False
        return cls(repo_key, snapshot_path, paths), True

    def look_up_node(self, relative_path: str) -> FakeNode:
        node = self.nodes.get(relative_path)
        if node is None:
            raise NodeNotFoundError(f"Node '{relative_path}' not found", relative_path=relative_path)
        return node

    def get_directory_snapshot_node_with_lru(self, relative_path: str) -> FakeNode:
        return self.nodes.setdefault(relative_path, FakeNode(relative_path))

    def persist(self) -> None:
        self.persist_calls += 1
        if self.fail_persist:
            raise SnapshotPersistenceError("Simulated write failure", path=self.snapshot_path,
                                           repo_key=self.repo_key)
        type(self).persisted[str(self.snapshot_path)] = list(self.nodes)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def run_dir(tmp_path: Path) -> Path:
    d = tmp_path / "run"
    d.mkdir()
    return d


@pytest.fixture
def config(run_dir: Path) -> TransferConfig:
    return TransferConfig(run_dir=str(run_dir))


@pytest.fixture
def store(run_dir: Path) -> StateStore:
    return StateStore(run_dir)


@pytest.fixture
def fake_snapshot_cls():
    """A fresh in-memory snapshot class per test, so persisted trees never leak between tests."""
    class IsolatedSnapshotManager(InMemorySnapshotManager):
        persisted = {}
    return IsolatedSnapshotManager


@pytest.fixture
def persistence_gate() -> PersistenceGate:
    return PersistenceGate()


@pytest.fixture
def manager(config, store, clock, fake_snapshot_cls, persistence_gate) -> TransferStateManager:
    return TransferStateManager(config, store=store, clock=clock, snapshot_manager_cls=fake_snapshot_cls,
                                persistence_gate=persistence_gate)


@pytest.fixture
def active_manager(manager) -> TransferStateManager:
    """Manager with repository 'libs-release' current and a fresh snapshot active."""
    manager.set_repo_state("libs-release", total_size_bytes=4096, total_files=4)
    manager.load_or_create_repo_snapshot()
    return manager

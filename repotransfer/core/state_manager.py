# repotransfer/core/state_manager.py

import logging
import time
from contextlib import contextmanager
from threading import Lock
from typing import Callable, Iterator, Optional, Type, TypeVar

from .config_manager import TransferConfig
from .exceptions import (
    RepoTransferError, SnapshotUninitializedError, StatePersistenceError, StateTransitionError
)
from .interfaces.snapshot import RepoSnapshotManager, SnapshotNode
from .interfaces.types import Phase, ProgressCounters, RepoProgress
from .repo_snapshot import FileRepoSnapshotManager
from .run_status import RunMarker
from .time_estimation import TimeEstimator, eta_to_string, speed_to_string
from .transfer_snapshot import (
    PersistenceGate, RepoTransferSnapshot, create_repo_transfer_snapshot,
    load_repo_transfer_snapshot, snapshot_persistence_gate
)
from .transfer_state import StateStore, TransferState

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Guards writes of the aggregate state file. Independent of the snapshot
# persistence gate; taken after it when both are needed.
state_persistence_lock = Lock()


class TransferStateManager:
    """
    Owns the progress counters of a transfer run and the tree snapshot of
    the repository being transferred.

    Every snapshot access goes through apply_to_snapshot(), which serializes
    the access and writes a checkpoint at most once per configured interval:

    - No active snapshot raises SnapshotUninitializedError
    - A failing action skips the checkpoint
    - A checkpoint already in progress elsewhere is skipped, never waited for
    - Checkpoint failures are raised to the caller that triggered them
    """

    def __init__(self, config: TransferConfig, state: Optional[TransferState] = None,
                 store: Optional[StateStore] = None, clock: Callable[[], float] = time.time,
                 snapshot_manager_cls: Type[RepoSnapshotManager] = FileRepoSnapshotManager,
                 persistence_gate: PersistenceGate = snapshot_persistence_gate):
        self.config = config
        self.store = store if store is not None else StateStore(config.get_run_dir())
        self.transfer_state = state if state is not None else TransferState()
        self.clock = clock
        self.snapshot_manager_cls = snapshot_manager_cls
        self.time_estimator = TimeEstimator(config.speed_smoothing, clock)
        self.run_marker = RunMarker(self.store.run_marker_path, clock)

        self._persistence_gate = persistence_gate
        self._repo_transfer_snapshot: Optional[RepoTransferSnapshot] = None
        self._snapshot_gate = Lock()
        self._state_lock = Lock()
        self._last_state_save = clock()

    @classmethod
    def create(cls, config: TransferConfig, load_run_status: bool = False, **kwargs) -> "TransferStateManager":
        """
        Create a manager for a fresh run, or one resuming the persisted state.

        Args:
            config: Loaded configuration
            load_run_status: Reload the aggregate state of the previous run if there is one
            **kwargs: Passed to the constructor

        Raises:
            StatePersistenceError: If the persisted state exists but cannot be read
        """
        store = kwargs.pop("store", None) or StateStore(config.get_run_dir())
        state = None
        if load_run_status:
            state, found = store.load_transfer_state()
            if found:
                logger.info(f"Resuming transfer state from {store.transfer_state_path}")
            else:
                logger.info("No previous transfer state found, starting fresh")
        return cls(config, state=state, store=store, **kwargs)

    # Read-only views of the aggregate state

    @property
    def current_repo_key(self) -> str:
        return self.transfer_state.current_repo_key

    @property
    def current_repo_phase(self) -> Optional[Phase]:
        return self.transfer_state.current_repo_phase

    @property
    def current_repo(self) -> Optional[RepoProgress]:
        return self.transfer_state.current_repo

    @property
    def overall_transfer(self) -> ProgressCounters:
        return self.transfer_state.overall_transfer

    @property
    def total_repositories(self) -> ProgressCounters:
        return self.transfer_state.total_repositories

    @property
    def transfer_failures(self) -> int:
        return self.transfer_state.transfer_failures

    # Run lifecycle

    @contextmanager
    def running(self) -> Iterator["TransferStateManager"]:
        """Mark the run as live for the duration of the block and save the state on exit."""
        # State first, so a status command never sees a live run without a state file
        self.save_state()
        self.run_marker.start()
        try:
            yield self
        finally:
            try:
                self.save_state()
            finally:
                self.run_marker.stop()

    # Repository lifecycle

    def set_repo_state(self, repo_key: str, total_size_bytes: int, total_files: int, reset: bool = False) -> None:
        """
        Make repo_key the current repository.

        The persisted progress of the repository is reloaded unless reset is
        set. The snapshot of the previous repository is dropped; call
        load_or_create_repo_snapshot() to activate the new one.

        Raises:
            StatePersistenceError: If the repository state cannot be read or the state cannot be saved
        """
        if not repo_key:
            raise ValueError("Repository key must not be empty")

        progress = None
        if not reset:
            progress, found = self.store.load_repo_progress(repo_key)
            if found:
                logger.info(f"Loaded previous progress of repository '{repo_key}'")
        if progress is None:
            progress = RepoProgress(name=repo_key)
            progress.phase1_info.total_units = total_files
            progress.phase1_info.total_size_bytes = total_size_bytes

        self.disable_repo_transfer_snapshot()
        with self._state_lock:
            self.transfer_state.current_repo_key = repo_key
            self.transfer_state.current_repo = progress
            self.transfer_state.current_repo_phase = Phase.PHASE1
        logger.info(f"Current repository is now '{repo_key}'")
        self.save_state()

    def set_repo_phase(self, phase: Phase) -> None:
        """
        Move the current repository to phase. Phases only move forward, one at a time.

        Raises:
            StateTransitionError: If no repository is current or the transition is not allowed
        """
        with self._state_lock:
            current = self.transfer_state.current_repo_phase
            if not self.transfer_state.current_repo_key:
                raise StateTransitionError(f"Cannot enter {phase.name} with no current repository",
                                           current_phase=current, target_phase=phase)
            if phase is not current and (current is None or current.next() is not phase):
                msg = f"Cannot move repository '{self.transfer_state.current_repo_key}' from {current} to {phase}"
                logger.warning(msg)
                raise StateTransitionError(msg, current_phase=current, target_phase=phase)
            self.transfer_state.current_repo_phase = phase
        logger.info(f"Repository '{self.current_repo_key}': {phase.label}")
        self.save_state()

    def finish_repo(self) -> None:
        """Count the current repository as transferred and clear it."""
        with self._state_lock:
            repo_key = self.transfer_state.current_repo_key
            if not repo_key:
                return
            self.transfer_state.total_repositories.transferred_units += 1
        # Final progress of the repository goes to its own file before it is cleared
        self.save_state()
        self.disable_repo_transfer_snapshot()
        with self._state_lock:
            self.transfer_state.current_repo_key = ""
            self.transfer_state.current_repo = None
            self.transfer_state.current_repo_phase = None
        logger.info(f"Finished transferring repository '{repo_key}'")
        self.save_state()

    # Snapshot access

    def set_repo_transfer_snapshot(self, snapshot: RepoTransferSnapshot) -> None:
        with self._snapshot_gate:
            previous = self._repo_transfer_snapshot
            self._repo_transfer_snapshot = snapshot
        if previous is not None and previous is not snapshot:
            previous.disable()

    def load_or_create_repo_snapshot(self) -> bool:
        """
        Activate the tree snapshot of the current repository, resuming the persisted one if present.

        Returns:
            bool: True if the snapshot was loaded from disk

        Raises:
            SnapshotUninitializedError: If no repository is current
            SnapshotPersistenceError: If a persisted snapshot exists but cannot be read
        """
        repo_key = self.current_repo_key
        if not repo_key:
            raise SnapshotUninitializedError("Cannot load a snapshot with no current repository")
        path = self.store.repo_snapshot_path(repo_key)
        snapshot, found = load_repo_transfer_snapshot(repo_key, path, self.clock, self.snapshot_manager_cls)
        if not found:
            snapshot = create_repo_transfer_snapshot(repo_key, path, self.clock, self.snapshot_manager_cls)
        self.set_repo_transfer_snapshot(snapshot)
        return found

    def disable_repo_transfer_snapshot(self) -> None:
        with self._snapshot_gate:
            snapshot = self._repo_transfer_snapshot
            self._repo_transfer_snapshot = None
        if snapshot is not None:
            snapshot.disable()
            logger.debug("Repository transfer snapshot disabled")

    def is_repo_transfer_snapshot_enabled(self) -> bool:
        return self._repo_transfer_snapshot is not None

    def apply_to_snapshot(self, action: Callable[[RepoTransferSnapshot], T]) -> T:
        """
        Run action on the active snapshot, then checkpoint if the save interval elapsed.

        Args:
            action: Reads or mutates the snapshot; its return value is passed through

        Raises:
            SnapshotUninitializedError: If no snapshot is active
            SnapshotPersistenceError: If the checkpoint of the tree failed
            StatePersistenceError: If the checkpoint of the aggregate state failed
        """
        with self._snapshot_gate:
            snapshot = self._repo_transfer_snapshot
            if snapshot is None:
                raise SnapshotUninitializedError()
            result = action(snapshot)

        interval = self.config.snapshot_save_interval_minutes * 60
        now = self.clock()
        if snapshot.seconds_since_last_save(now) < interval:
            return result

        if not self._persistence_gate.try_acquire():
            logger.debug("Snapshot checkpoint already in progress, skipping")
            return result
        try:
            # Another caller may have saved between our check and taking the gate
            if snapshot.seconds_since_last_save(now) < interval:
                return result
            snapshot.mark_saved(now)
            self._checkpoint(snapshot)
        finally:
            self._persistence_gate.release()
        return result

    def _checkpoint(self, snapshot: RepoTransferSnapshot) -> None:
        try:
            # The snapshot may have been disabled by a repository switch since the
            # action ran; its tree still gets this last checkpoint.
            snapshot.snapshot_manager.persist()
            self.save_state()
        except RepoTransferError as e:
            logger.error(f"Checkpoint of repository '{self.current_repo_key}' failed: {e}")
            raise
        logger.info(f"Checkpoint saved for repository '{self.current_repo_key}'")

    def look_up_node(self, relative_path: str) -> SnapshotNode:
        return self.apply_to_snapshot(lambda rts: rts.look_up_node(relative_path))

    def was_snapshot_loaded(self) -> bool:
        return self.apply_to_snapshot(lambda rts: rts.was_snapshot_loaded())

    def get_directory_snapshot_node_with_lru(self, relative_path: str) -> SnapshotNode:
        return self.apply_to_snapshot(lambda rts: rts.get_directory_snapshot_node_with_lru(relative_path))

    # Counters

    def _current_phase_info(self) -> Optional[ProgressCounters]:
        repo = self.transfer_state.current_repo
        phase = self.transfer_state.current_repo_phase
        if repo is None or phase is None:
            return None
        return repo.info_for(phase)

    def set_overall_totals(self, total_repositories: int, total_size_bytes: int) -> None:
        with self._state_lock:
            self.transfer_state.total_repositories.total_units = total_repositories
            self.transfer_state.overall_transfer.total_size_bytes = total_size_bytes
        self.save_state()

    def inc_total_size_and_files(self, files: int, size_bytes: int) -> None:
        """Grow the totals of the current phase, used when phase 2 or 3 discovers more work."""
        with self._state_lock:
            info = self._current_phase_info()
            if info is not None:
                info.total_units += files
                info.total_size_bytes += size_bytes
            if self.transfer_state.current_repo_phase is Phase.PHASE2:
                # Phase 1 totals were already counted in the overall size
                self.transfer_state.overall_transfer.total_size_bytes += size_bytes
        self._maybe_save_state()

    def inc_transferred_size_and_files(self, files: int, size_bytes: int) -> None:
        with self._state_lock:
            info = self._current_phase_info()
            if info is not None:
                info.transferred_units += files
                info.transferred_size_bytes += size_bytes
            overall = self.transfer_state.overall_transfer
            overall.transferred_size_bytes += size_bytes
            self.time_estimator.add_transferred_bytes(size_bytes)
            self.transfer_state.speed_bytes_per_sec = self.time_estimator.speed_bytes_per_sec
            self.transfer_state.eta_seconds = self.time_estimator.estimate_remaining_seconds(
                overall.total_size_bytes - overall.transferred_size_bytes)
        self._maybe_save_state()

    def change_transfer_failure_count(self, increase: bool, count: int = 1) -> None:
        with self._state_lock:
            if increase:
                self.transfer_state.transfer_failures += count
            else:
                self.transfer_state.transfer_failures = max(self.transfer_state.transfer_failures - count, 0)
        self._maybe_save_state()

    def set_working_threads(self, working_threads: int) -> None:
        with self._state_lock:
            self.transfer_state.working_threads = working_threads
        self._maybe_save_state()

    def get_working_threads(self) -> int:
        return self.transfer_state.working_threads

    def get_speed_string(self) -> str:
        return speed_to_string(self.transfer_state.speed_bytes_per_sec)

    def get_estimated_remaining_time_string(self) -> str:
        return eta_to_string(self.transfer_state.eta_seconds)

    # Persistence

    def save_state(self) -> None:
        """
        Write the aggregate state, and the current repository progress, to the run directory.

        Raises:
            StatePersistenceError: If the state cannot be written
        """
        with state_persistence_lock:
            with self._state_lock:
                state_copy = self.transfer_state.model_copy(deep=True)
            self.store.save_transfer_state(state_copy)
            self._last_state_save = self.clock()

    def _maybe_save_state(self) -> None:
        """Best effort periodic save so a status command in another process sees fresh counters."""
        if self.clock() - self._last_state_save < self.config.state_save_interval_seconds:
            return
        if not state_persistence_lock.acquire(blocking=False):
            return
        try:
            with self._state_lock:
                state_copy = self.transfer_state.model_copy(deep=True)
            self.store.save_transfer_state(state_copy)
            self._last_state_save = self.clock()
        except StatePersistenceError as e:
            # Retried on the next counter update
            logger.error(f"Periodic save of the transfer state failed: {e}")
        finally:
            state_persistence_lock.release()

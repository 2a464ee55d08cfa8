# repotransfer/core/transfer_state.py

import logging
from pathlib import Path
from typing import Optional, Tuple, Type, TypeVar

from pydantic import BaseModel, Field, ValidationError

from .context_managers import safe_file_operation
from .exceptions import StatePersistenceError
from .interfaces.types import Phase, ProgressCounters, RepoProgress
from .utils import ensure_directory, repo_dir_name

logger = logging.getLogger(__name__)

STATE_VERSION = 1

TRANSFER_STATE_FILE = "transfer-state.json"
RUN_MARKER_FILE = "running.json"
REPOS_DIR = "repos"
REPO_STATE_FILE = "repo-state.json"
SNAPSHOT_FILE = "snapshot.json"

ModelT = TypeVar("ModelT", bound=BaseModel)


class TransferState(BaseModel):
    """Aggregate progress of the whole transfer run"""
    version: int = STATE_VERSION
    total_repositories: ProgressCounters = Field(default_factory=ProgressCounters)
    overall_transfer: ProgressCounters = Field(default_factory=ProgressCounters)
    working_threads: int = 0
    transfer_failures: int = 0
    speed_bytes_per_sec: float = 0.0
    eta_seconds: Optional[float] = None
    current_repo_key: str = ""
    current_repo_phase: Optional[Phase] = None
    # Persisted separately, one file per repository
    current_repo: Optional[RepoProgress] = Field(default=None, exclude=True)


class StateStore:
    """
    File layout of one transfer run:

        <run_dir>/transfer-state.json
        <run_dir>/running.json
        <run_dir>/repos/<repo_key>/repo-state.json
        <run_dir>/repos/<repo_key>/snapshot.json

    Every write is atomic, so a crash leaves either the previous or the new
    version of a file, never a partial one.
    """

    def __init__(self, run_dir: Path):
        self.run_dir = Path(run_dir)

    @property
    def transfer_state_path(self) -> Path:
        return self.run_dir / TRANSFER_STATE_FILE

    @property
    def run_marker_path(self) -> Path:
        return self.run_dir / RUN_MARKER_FILE

    def repo_dir(self, repo_key: str) -> Path:
        return self.run_dir / REPOS_DIR / repo_dir_name(repo_key)

    def repo_state_path(self, repo_key: str) -> Path:
        return self.repo_dir(repo_key) / REPO_STATE_FILE

    def repo_snapshot_path(self, repo_key: str) -> Path:
        return self.repo_dir(repo_key) / SNAPSHOT_FILE

    def save_transfer_state(self, state: TransferState) -> None:
        """
        Persist the aggregate state and, when a repository is current, its progress.

        Raises:
            StatePersistenceError: If either file cannot be written
        """
        self._write_model(self.transfer_state_path, state)
        if state.current_repo is not None:
            self._write_model(self.repo_state_path(state.current_repo.name), state.current_repo)

    def load_transfer_state(self) -> Tuple[Optional[TransferState], bool]:
        """
        Returns:
            (state, True) if a state file exists, (None, False) otherwise

        Raises:
            StatePersistenceError: If the file exists but cannot be read
        """
        return self._read_model(self.transfer_state_path, TransferState)

    def load_repo_progress(self, repo_key: str) -> Tuple[Optional[RepoProgress], bool]:
        return self._read_model(self.repo_state_path(repo_key), RepoProgress)

    def _write_model(self, path: Path, model: BaseModel) -> None:
        try:
            ensure_directory(path.parent)
            with safe_file_operation(path, 'w', encoding='utf-8') as f:
                f.write(model.model_dump_json(indent=2))
        except OSError as e:
            raise StatePersistenceError(f"Failed to write state file {path}: {e}", path=path)

    def _read_model(self, path: Path, model_cls: Type[ModelT]) -> Tuple[Optional[ModelT], bool]:
        try:
            raw = path.read_text(encoding='utf-8')
        except FileNotFoundError:
            return None, False
        except UnicodeDecodeError as e:
            raise StatePersistenceError(f"Failed to decode state file {path}: {e}", path=path,
                                        error_type="corrupt")
        except OSError as e:
            raise StatePersistenceError(f"Failed to read state file {path}: {e}", path=path)

        try:
            model = model_cls.model_validate_json(raw)
        except ValidationError as e:
            raise StatePersistenceError(f"Failed to decode state file {path}: {e}", path=path,
                                        error_type="corrupt")

        version = getattr(model, "version", STATE_VERSION)
        if version != STATE_VERSION:
            raise StatePersistenceError(
                f"State file {path} has version {version}, expected {STATE_VERSION} (invalid)",
                path=path, error_type="corrupt")
        return model, True

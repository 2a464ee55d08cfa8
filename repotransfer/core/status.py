# repotransfer/core/status.py

import logging
import time
from typing import Callable, Optional

from rich.console import Console
from rich.text import Text

from .config_manager import TransferConfig
from .exceptions import MissingStateFileError
from .interfaces.types import Phase, RepoProgress
from .run_status import RunMarker
from .time_estimation import eta_to_string, speed_to_string
from .transfer_state import StateStore, TransferState
from .utils import calc_percentage, size_to_string

logger = logging.getLogger(__name__)

RETRY_FAILURE_CONTENT_NOTE = "In Phase 3 and in subsequent executions, we'll retry transferring the failed files"

__all__ = [
    "RETRY_FAILURE_CONTENT_NOTE", "build_status_report", "show_status", "calc_percentage", "size_to_string",
]


def show_status(config: TransferConfig, console: Optional[Console] = None) -> None:
    """
    Print the status of the transfer run of config's run directory.

    Raises:
        MissingStateFileError: If the run is live but a state file it needs is missing
        StatePersistenceError: If a state file cannot be read
    """
    report = build_status_report(StateStore(config.get_run_dir()))
    (console or Console()).print(report)


def build_status_report(store: StateStore, clock: Callable[[], float] = time.time) -> Text:
    """
    Render the persisted state of a transfer run. Reads only, never writes.

    Args:
        store: State files of the run
        clock: Time source used for the running duration

    Returns:
        Text: Multi-section report
    """
    output = Text()
    running_time, is_running = RunMarker(store.run_marker_path, clock).get_running_time()
    if not is_running:
        _add_string(output, "🔴", "Status", "Not running", 0)
        return output

    state, found = store.load_transfer_state()
    if not found:
        raise MissingStateFileError(
            f"Could not find the transfer state file {store.transfer_state_path}. Aborting",
            path=store.transfer_state_path)
    _add_overall_status(output, state, running_time)

    repo_key = state.current_repo_key
    if repo_key:
        progress, found = store.load_repo_progress(repo_key)
        if not found:
            raise MissingStateFileError(f"Could not find the state file of repository '{repo_key}'. Aborting",
                                        path=store.repo_state_path(repo_key), repo_key=repo_key)
        output.append("\n")
        _add_repository_status(output, repo_key, state.current_repo_phase, progress)
    return output


def _add_overall_status(output: Text, state: TransferState, running_time: str) -> None:
    overall = state.overall_transfer
    repositories = state.total_repositories
    _add_title(output, "Overall Transfer Status")
    _add_string(output, "🟢", "Status", "Running", 3)
    _add_string(output, "🏃", "Running for", running_time, 2)
    _add_string(output, "🗄 ", "Storage",
                f"{size_to_string(overall.transferred_size_bytes)} / {size_to_string(overall.total_size_bytes)}"
                + calc_percentage(overall.transferred_size_bytes, overall.total_size_bytes), 3)
    _add_string(output, "📦", "Repositories",
                f"{repositories.transferred_units} / {repositories.total_units}"
                + calc_percentage(repositories.transferred_units, repositories.total_units), 2)
    _add_string(output, "🧵", "Working threads", str(state.working_threads), 2)
    _add_string(output, "⚡", "Transfer speed", speed_to_string(state.speed_bytes_per_sec), 2)
    _add_string(output, "⌛", "Estimated time remaining", eta_to_string(state.eta_seconds), 1)
    failure_text = str(state.transfer_failures)
    if state.transfer_failures > 0:
        failure_text += f" ({RETRY_FAILURE_CONTENT_NOTE})"
    _add_string(output, "❌", "Transfer failures", failure_text, 2)


def _add_repository_status(output: Text, repo_key: str, phase: Optional[Phase], progress: RepoProgress) -> None:
    _add_title(output, "Current Repository Status")
    _add_string(output, "🏷 ", "Name", repo_key, 2)
    if phase is None:
        return
    _add_string(output, "🔢", "Phase", phase.label, 2)
    if not phase.has_totals:
        return
    info = progress.info_for(phase)
    _add_string(output, "🗄 ", "Storage",
                f"{size_to_string(info.transferred_size_bytes)} / {size_to_string(info.total_size_bytes)}"
                + calc_percentage(info.transferred_size_bytes, info.total_size_bytes), 2)
    _add_string(output, "📄", "Files",
                f"{info.transferred_units} / {info.total_units}"
                + calc_percentage(info.transferred_units, info.total_units), 2)


def _add_title(output: Text, title: str) -> None:
    output.append(title + "\n", style="bold underline")


def _add_string(output: Text, emoji: str, key: str, value: str, tabs_count: int) -> None:
    key += ": "
    if emoji:
        key = f"{emoji} {key}"
    output.append(key, style="bold")
    output.append("\t" * tabs_count + value + "\n")

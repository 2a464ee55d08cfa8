import pytest
from rich.console import Console
from repotransfer.core.exceptions import MissingStateFileError, StatePersistenceError
from repotransfer.core.interfaces.types import Phase, RepoProgress
from repotransfer.core.run_status import RunMarker
from repotransfer.core.status import RETRY_FAILURE_CONTENT_NOTE, build_status_report, show_status
from repotransfer.core.transfer_state import TransferState

@pytest.fixture
def running(store, clock):
    marker = RunMarker(store.run_marker_path, clock)
    marker.start()
    clock.advance(65)
    return marker

def _save(store, phase=None, repo=None, **fields):
    state = TransferState(current_repo_key=repo.name if repo else "", current_repo_phase=phase, **fields)
    state.current_repo = repo
    store.save_transfer_state(state)
    return state

def test_not_running(store, clock):
    report = build_status_report(store, clock).plain
    assert report == "🔴 Status: Not running\n"

def test_not_running_ignores_state_files(store, clock):
    _save(store, working_threads=3)
    assert "Not running" in build_status_report(store, clock).plain

def test_running_without_state_file(store, clock, running):
    with pytest.raises(MissingStateFileError):
        build_status_report(store, clock)

def test_overall_section(store, clock, running):
    state = TransferState(working_threads=8, speed_bytes_per_sec=1536, eta_seconds=3900)
    state.overall_transfer.transferred_size_bytes = 512
    state.overall_transfer.total_size_bytes = 1024
    state.total_repositories.transferred_units = 1
    state.total_repositories.total_units = 4
    store.save_transfer_state(state)

    report = build_status_report(store, clock).plain
    assert "Overall Transfer Status" in report
    assert "🟢 Status: \t\t\tRunning" in report
    assert "Running for: \t\t0:01:05" in report
    assert "Storage: \t\t\t512.0 BiB / 1.0 KiB (50.0%)" in report
    assert "Repositories: \t\t1 / 4 (25.0%)" in report
    assert "Working threads: \t\t8" in report
    assert "Transfer speed: \t\t1.5 KiB/s" in report
    assert "Estimated time remaining: \t1 hour 5 minutes" in report
    assert "Transfer failures: \t\t0\n" in report
    assert "Current Repository Status" not in report

def test_empty_run_has_no_percentages(store, clock, running):
    _save(store)
    report = build_status_report(store, clock).plain
    assert "0.0 BiB / 0.0 BiB\n" in report
    assert "Transfer speed: \t\tNot available yet" in report
    assert "Estimated time remaining: \tNot available yet" in report

def test_failure_note(store, clock, running):
    _save(store, transfer_failures=3)
    report = build_status_report(store, clock).plain
    assert f"Transfer failures: \t\t3 ({RETRY_FAILURE_CONTENT_NOTE})" in report

def test_phase1_repository(store, clock, running):
    repo = RepoProgress(name="libs-release")
    repo.phase1_info.transferred_units = 1
    repo.phase1_info.total_units = 4
    repo.phase1_info.transferred_size_bytes = 2048
    repo.phase1_info.total_size_bytes = 4096
    _save(store, Phase.PHASE1, repo)

    report = build_status_report(store, clock).plain
    section = report.split("Current Repository Status", 1)[1]
    assert "Name: \t\tlibs-release" in section
    assert f"Phase: \t\t{Phase.PHASE1.label}" in section
    assert "Storage: \t\t2.0 KiB / 4.0 KiB (50.0%)" in section
    assert "Files: \t\t1 / 4 (25.0%)" in section

def test_phase2_repository_has_no_totals(store, clock, running):
    repo = RepoProgress(name="libs-release")
    repo.phase2_info.transferred_units = 5
    _save(store, Phase.PHASE2, repo)

    section = build_status_report(store, clock).plain.split("Current Repository Status", 1)[1]
    assert Phase.PHASE2.label in section
    assert "Storage" not in section
    assert "Files" not in section

def test_phase3_repository_uses_phase3_counters(store, clock, running):
    repo = RepoProgress(name="libs-release")
    repo.phase1_info.total_units = 100
    repo.phase3_info.transferred_units = 1
    repo.phase3_info.total_units = 2
    _save(store, Phase.PHASE3, repo)

    section = build_status_report(store, clock).plain.split("Current Repository Status", 1)[1]
    assert "Files: \t\t1 / 2 (50.0%)" in section

def test_missing_repository_state(store, clock, running):
    store.save_transfer_state(TransferState(current_repo_key="gone", current_repo_phase=Phase.PHASE1))
    with pytest.raises(MissingStateFileError) as excinfo:
        build_status_report(store, clock)
    assert str(excinfo.value) == "Could not find the state file of repository 'gone'. Aborting"
    assert excinfo.value.repo_key == "gone"

def test_show_status_prints(config):
    console = Console(record=True, width=200)
    show_status(config, console=console)
    assert "Not running" in console.export_text()

def test_invalid_utf8_state_file(store, clock, running):
    store.transfer_state_path.write_bytes(b"\xff\xff")
    with pytest.raises(StatePersistenceError):
        build_status_report(store, clock)

def test_invalid_utf8_run_marker(store, clock):
    store.run_marker_path.write_bytes(b"\xff\xff")
    with pytest.raises(StatePersistenceError):
        build_status_report(store, clock)

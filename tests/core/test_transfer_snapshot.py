import pytest
from repotransfer.core.exceptions import SnapshotUninitializedError
from repotransfer.core.repo_snapshot import FileRepoSnapshotManager
from repotransfer.core.transfer_snapshot import (
    PersistenceGate, RepoTransferSnapshot, create_repo_transfer_snapshot, load_repo_transfer_snapshot
)

def test_persistence_gate_never_blocks():
    gate = PersistenceGate()
    assert gate.try_acquire()
    assert gate.busy
    assert not gate.try_acquire()
    gate.release()
    assert not gate.busy
    assert gate.try_acquire()
    gate.release()

def test_create_sets_timestamp(tmp_path, clock):
    wrapper = create_repo_transfer_snapshot("libs", tmp_path / "snapshot.json", clock)
    assert wrapper.enabled
    assert wrapper.last_save_timestamp == clock()
    assert not wrapper.was_snapshot_loaded()
    assert isinstance(wrapper.snapshot_manager, FileRepoSnapshotManager)

def test_load_missing_snapshot(tmp_path, clock):
    assert load_repo_transfer_snapshot("libs", tmp_path / "snapshot.json", clock) == (None, False)

def test_load_persisted_snapshot(tmp_path, clock):
    path = tmp_path / "snapshot.json"
    created = create_repo_transfer_snapshot("libs", path, clock)
    created.get_directory_snapshot_node_with_lru("a/b")
    created.persist()
    clock.advance(100)
    loaded, found = load_repo_transfer_snapshot("libs", path, clock)
    assert found
    assert loaded.was_snapshot_loaded()
    assert loaded.last_save_timestamp == clock()
    assert loaded.look_up_node("a/b").get_path() == "a/b"

def test_mark_saved_only_moves_forward(tmp_path, clock):
    wrapper = create_repo_transfer_snapshot("libs", tmp_path / "snapshot.json", clock)
    start = wrapper.last_save_timestamp
    wrapper.mark_saved(start - 10)
    assert wrapper.last_save_timestamp == start
    wrapper.mark_saved(start + 10)
    assert wrapper.seconds_since_last_save(start + 15) == 5

def test_disabled_snapshot_rejects_access(mocker):
    inner = mocker.Mock()
    wrapper = RepoTransferSnapshot(inner)
    wrapper.disable()
    for call in (lambda: wrapper.look_up_node("a"), lambda: wrapper.get_directory_snapshot_node_with_lru("a"),
                 wrapper.was_snapshot_loaded, wrapper.persist):
        with pytest.raises(SnapshotUninitializedError):
            call()
    inner.look_up_node.assert_not_called()
    inner.persist.assert_not_called()

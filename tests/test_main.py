import sys
import pytest
from types import SimpleNamespace

import main
from repotransfer import __version__
from repotransfer.cli.application_factory import run_status, validate_arguments
from repotransfer.cli.argument_parser import parse_arguments
from repotransfer.core.config_manager import ConfigManager
from repotransfer.core.exceptions import MissingStateFileError
from repotransfer.core.run_status import RunMarker

def test_parse_arguments_defaults(monkeypatch):
    monkeypatch.setattr(sys, 'argv', ['main.py'])
    args = parse_arguments()
    assert not args.status
    assert args.config is None
    assert args.run_dir is None

def test_parse_arguments_status():
    args = parse_arguments(['--status', '--config', 'c.yml', '--run-dir', '/data/run'])
    assert args.status
    assert args.config == 'c.yml'
    assert args.run_dir == '/data/run'

def test_parse_arguments_version(capsys):
    with pytest.raises(SystemExit) as excinfo:
        parse_arguments(['--version'])
    assert excinfo.value.code == 0
    assert __version__ in capsys.readouterr().out

def _args(status=True, config=None, run_dir=None):
    return SimpleNamespace(status=status, config=config, run_dir=run_dir)

def test_validate_arguments_requires_status():
    is_valid, message = validate_arguments(_args(status=False))
    assert not is_valid
    assert "--status" in message

def test_validate_arguments_missing_config(tmp_path):
    is_valid, message = validate_arguments(_args(config=str(tmp_path / "missing.yml")))
    assert not is_valid
    assert "Configuration file not found" in message

def test_validate_arguments_run_dir_is_file(tmp_path):
    path = tmp_path / "file"
    path.write_text("x")
    is_valid, message = validate_arguments(_args(run_dir=str(path)))
    assert not is_valid

def test_validate_arguments_ok(tmp_path):
    assert validate_arguments(_args(run_dir=str(tmp_path))) == (True, "")

def test_run_status_uses_run_dir_override(config, tmp_path, mocker):
    show_status = mocker.patch("repotransfer.core.status.show_status")
    other = tmp_path / "other"
    assert run_status(_args(run_dir=str(other)), config) == 0
    used_config = show_status.call_args[0][0]
    assert used_config.run_dir == str(other)
    assert config.run_dir != str(other)

def test_run_status_error_exit_code(config, mocker):
    mocker.patch("repotransfer.core.status.show_status", side_effect=MissingStateFileError("gone"))
    assert run_status(_args(), config) == 1

@pytest.fixture
def isolated_main(tmp_path, monkeypatch, mocker):
    monkeypatch.setattr(ConfigManager, "DEFAULT_CONFIG_PATHS", [tmp_path / "config.yml"])
    return mocker.patch.object(main, "setup_logging")

def test_main_not_running(isolated_main, run_dir, capsys):
    assert main.main(['--status', '--run-dir', str(run_dir)]) == 0
    assert "Not running" in capsys.readouterr().out
    isolated_main.assert_called_once()

def test_main_running_without_state(isolated_main, run_dir, store):
    RunMarker(store.run_marker_path).start()
    assert main.main(['--status', '--run-dir', str(run_dir)]) == 1

def test_main_invalid_arguments(isolated_main, capsys):
    assert main.main([]) == 1
    assert "Error:" in capsys.readouterr().out
    isolated_main.assert_not_called()

def test_main_corrupt_state_file(isolated_main, run_dir, store):
    RunMarker(store.run_marker_path).start()
    store.transfer_state_path.write_bytes(b"\xff\xff")
    assert main.main(['--status', '--run-dir', str(run_dir)]) == 1

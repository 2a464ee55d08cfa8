# repotransfer/core/config_manager.py

import logging
import yaml
from pathlib import Path
from typing import List, Optional, Dict, Any, ClassVar
from pydantic import BaseModel, ValidationError, field_validator
import shutil
import sys
import os

from .exceptions import ConfigError
from repotransfer import __version__

logger = logging.getLogger(__name__)

class TransferConfig(BaseModel):
    """Configuration settings for RepoTransfer using Pydantic for validation"""

    # Configuration sections for organized YAML output
    CONFIG_SECTIONS: ClassVar[Dict[str, List[str]]] = {
        "# Checkpoint settings - How often progress is persisted": [
            "version", "snapshot_save_interval_minutes", "state_save_interval_seconds"
        ],
        "# Run settings": [
            "run_dir", "speed_smoothing"
        ],
        "# Logging settings": [
            "log_level", "log_file_rotation", "log_file_max_size"
        ]
    }

    version: str = __version__

    # Checkpoint settings
    snapshot_save_interval_minutes: float = 10
    state_save_interval_seconds: float = 10

    # Run settings
    run_dir: str = ""  # Empty means <appdata>/transfer
    speed_smoothing: float = 0.3

    # Logging settings
    log_level: str = "INFO"
    log_file_rotation: int = 5  # Number of log files to keep
    log_file_max_size: int = 10  # MB

    @field_validator('snapshot_save_interval_minutes', 'state_save_interval_seconds')
    def validate_interval(cls, v):
        """Intervals cannot be negative"""
        if v < 0:
            return 0
        return v

    @field_validator('speed_smoothing')
    def validate_speed_smoothing(cls, v):
        """EMA factor must be in (0, 1]"""
        if v <= 0 or v > 1:
            return 0.3
        return v

    @field_validator('log_level')
    def validate_log_level(cls, v):
        """Validate log level"""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        v = v.upper()
        if v not in valid_levels:
            return 'INFO'
        return v

    def get_run_dir(self) -> Path:
        """
        Resolve the directory holding the state files of the transfer run.

        Returns:
            Path: Configured run directory, or the default under appdata
        """
        if self.run_dir:
            return Path(self.run_dir).expanduser()
        return ConfigManager.get_appdata_dir() / "transfer"

    def to_dict(self) -> dict:
        return self.model_dump()

    def save_to_yaml_with_sections(self, file_handle):
        """
        Save configuration to YAML file with organized sections.

        Args:
            file_handle: Open file handle to write to
        """
        config_dict = self.to_dict()

        for section_comment, field_names in self.CONFIG_SECTIONS.items():
            file_handle.write(f"\n{section_comment}\n")
            section_dict = {k: config_dict[k] for k in field_names if k in config_dict}
            yaml.dump(section_dict, file_handle, default_flow_style=False, sort_keys=False)


class ConfigManager:
    """Loads and saves the RepoTransfer YAML configuration"""

    @staticmethod
    def get_appdata_dir() -> Path:
        """
        Get the platform-appropriate appdata/config directory for RepoTransfer.

        Returns:
            Path: The directory path for storing user data (config, logs, run state)
        """
        if sys.platform == "win32":
            base = Path(os.getenv("APPDATA", Path.home() / "AppData" / "Roaming"))
            return base / "RepoTransfer"
        elif sys.platform == "darwin":
            return Path.home() / "Library" / "Application Support" / "RepoTransfer"
        else:
            # Linux and other POSIX
            return Path(os.getenv("XDG_CONFIG_HOME", Path.home() / ".config")) / "repotransfer"

    DEFAULT_CONFIG_PATHS = [
        get_appdata_dir.__func__() / "config.yml",
    ]

    def __init__(self, config_path: Optional[Path] = None):
        """
        Initialize configuration manager.

        Args:
            config_path: Optional path to configuration file
        """
        self.config_path = config_path
        self.config = None

    def load_config(self) -> TransferConfig:
        """
        Load configuration from file or create default.

        Returns:
            TransferConfig: Validated configuration object
        """
        config_file = self._find_config_file()
        try:
            if config_file and config_file.exists():
                with open(config_file, 'r') as f:
                    config_data = yaml.safe_load(f)
                if config_data is None:
                    config_data = {}
                if not isinstance(config_data, dict):
                    raise ConfigError(f"Configuration root must be a mapping, got {type(config_data).__name__}",
                                      expected_type=dict)
                file_version = config_data.get("version")
                if file_version != __version__:
                    self._backup_config(config_file)
                    logger.warning(f"Config version mismatch: file has {file_version}, program is {__version__}. Migrating config.")
                    config_data = self._migrate_config(config_data)
                    self.config = TransferConfig.model_validate(config_data)
                    self.save_config()
                else:
                    self.config = TransferConfig.model_validate(config_data)
                logger.info(f"Loaded configuration from {config_file}")
            else:
                self.config = TransferConfig()
                self._save_default_config(config_file)
        except Exception as e:
            logger.error(f"Error loading config: {e}")
            self.config = TransferConfig()
        return self.config

    def _backup_config(self, config_file: Path):
        """Backup the existing config file before migration."""
        try:
            backup_path = config_file.with_suffix(config_file.suffix + ".bak")
            shutil.copy2(config_file, backup_path)
            logger.info(f"Backed up config to {backup_path}")
        except OSError as e:
            logger.error(f"Failed to backup config: {e}")

    def _migrate_config(self, config_data: dict) -> dict:
        """
        Migrate an old config dict to the latest version.
        Unknown fields are dropped, invalid values replaced by defaults.
        """
        defaults = TransferConfig()
        migrated = {}
        for k in TransferConfig.model_fields:
            if k in config_data:
                try:
                    migrated[k] = getattr(TransferConfig(**{k: config_data[k]}), k)
                except ValidationError:
                    migrated[k] = getattr(defaults, k)
            else:
                migrated[k] = getattr(defaults, k)
        migrated["version"] = __version__
        return migrated

    def _find_config_file(self) -> Path:
        if self.config_path:
            return self.config_path
        for path in self.DEFAULT_CONFIG_PATHS:
            if path.exists():
                return path
        return self.DEFAULT_CONFIG_PATHS[0]

    def _save_default_config(self, config_file: Path):
        try:
            config_file.parent.mkdir(parents=True, exist_ok=True)
            with open(config_file, 'w') as f:
                self.config.save_to_yaml_with_sections(f)
            logger.info(f"Created default configuration at {config_file}")
        except OSError as e:
            logger.error(f"Failed to save default config: {e}", exc_info=True)

    def save_config(self, config: Optional[TransferConfig] = None):
        """
        Save configuration to file.

        Args:
            config: Configuration to save, uses self.config if None
        """
        if config is not None:
            self.config = config

        if self.config is None:
            logger.error("No configuration to save")
            return

        config_file = self._find_config_file()

        try:
            config_file.parent.mkdir(parents=True, exist_ok=True)
            with open(config_file, 'w') as f:
                self.config.save_to_yaml_with_sections(f)
            logger.info(f"Saved configuration to {config_file}")
        except OSError as e:
            logger.error(f"Failed to save config: {e}", exc_info=True)

    def update_config(self, updates: Dict[str, Any]) -> TransferConfig:
        """
        Update configuration with new values.

        Args:
            updates: Dictionary of key-value pairs to update

        Returns:
            TransferConfig: Updated configuration
        """
        if self.config is None:
            self.config = TransferConfig()

        config_dict = self.config.model_dump()
        config_dict.update(updates)
        self.config = TransferConfig.model_validate(config_dict)
        self.save_config()
        return self.config

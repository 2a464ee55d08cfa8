# repotransfer/core/exceptions.py

class RepoTransferError(Exception):
    """Base exception for all RepoTransfer errors"""

    def __init__(self, message, recoverable=True, recovery_steps=None, *args):
        self.recoverable = recoverable
        self.recovery_steps = recovery_steps or []
        super().__init__(message, *args)

class ConfigError(RepoTransferError):
    """Configuration related errors"""

    def __init__(self, message, config_key=None, invalid_value=None, expected_type=None, *args):
        self.config_key = config_key
        self.invalid_value = invalid_value
        self.expected_type = expected_type
        recovery_steps = ["Check configuration file format", "Verify configuration values"]
        if config_key:
            recovery_steps.append(f"Validate the '{config_key}' setting")
        super().__init__(message, recoverable=True, recovery_steps=recovery_steps, *args)

class SnapshotUninitializedError(RepoTransferError):
    """Raised when a snapshot operation runs while no repository snapshot is active"""

    def __init__(self, message="Invalid call to snapshot manager before it was initialized", *args):
        recovery_steps = [
            "Make a repository current before querying its snapshot",
            "Check whether snapshots were disabled for this storage"
        ]
        super().__init__(message, recoverable=False, recovery_steps=recovery_steps, *args)

class NodeNotFoundError(RepoTransferError):
    """Raised when a relative path is not known to the tree snapshot"""

    def __init__(self, message, relative_path=None, *args):
        self.relative_path = relative_path
        super().__init__(message, recoverable=True, recovery_steps=[
            "Walk the parent directory before looking up its children"
        ], *args)

class StatePersistenceError(RepoTransferError):
    """Read or write failure on a persisted state file"""

    def __init__(self, message, path=None, *args, error_type=None):
        self.path = path

        # Infer error type from message if not provided
        if error_type is None:
            lowered = message.lower()
            if "permission" in lowered:
                error_type = "permission"
            elif "space" in lowered:
                error_type = "space"
            elif any(word in lowered for word in ["decode", "corrupt", "invalid"]):
                error_type = "corrupt"
        self.error_type = error_type

        if error_type == "permission":
            recovery_steps = [
                "Check run directory permissions",
                "Verify user has necessary access rights"
            ]
        elif error_type == "space":
            recovery_steps = [
                "Free up space on the device holding the run directory",
                "Verify sufficient storage capacity"
            ]
        elif error_type == "corrupt":
            recovery_steps = [
                "Inspect the state file for manual edits",
                "Restart the transfer from scratch if the file cannot be repaired"
            ]
        else:
            recovery_steps = [
                "Check the run directory exists",
                "Verify disk health"
            ]

        super().__init__(message, recoverable=True, recovery_steps=recovery_steps, *args)

class SnapshotPersistenceError(StatePersistenceError):
    """Read or write failure on a repository tree snapshot"""

    def __init__(self, message, path=None, repo_key=None, *args, error_type=None):
        self.repo_key = repo_key
        super().__init__(message, path, *args, error_type=error_type)

class MissingStateFileError(RepoTransferError):
    """Expected state file is absent, which means the run directory was tampered with"""

    def __init__(self, message, path=None, repo_key=None, *args):
        self.path = path
        self.repo_key = repo_key
        recovery_steps = [
            "Check the run directory was not modified by another process",
            "Restart the transfer to rebuild the repository state"
        ]
        super().__init__(message, recoverable=False, recovery_steps=recovery_steps, *args)

class StateTransitionError(RepoTransferError):
    """Invalid phase transition for the current repository"""

    def __init__(self, message, current_phase=None, target_phase=None, *args):
        self.current_phase = current_phase
        self.target_phase = target_phase
        recovery_steps = [
            "Phases must run in order: 1, 2, 3",
            "Call set_repo_state to start the repository over"
        ]
        super().__init__(message, recoverable=True, recovery_steps=recovery_steps, *args)

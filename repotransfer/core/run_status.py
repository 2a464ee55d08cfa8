# repotransfer/core/run_status.py

import json
import logging
import os
import sys
import time
from pathlib import Path
from typing import Callable, Optional, Tuple

from .context_managers import safe_file_operation
from .exceptions import StatePersistenceError
from .utils import ensure_directory, format_time

logger = logging.getLogger(__name__)


def _pid_alive(pid: int) -> bool:
    if sys.platform == "win32":
        # No cheap liveness probe without extra dependencies; trust the marker
        return True
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        # Exists but owned by another user
        return True
    return True


class RunMarker:
    """
    Marker file showing that a transfer is running and since when.

    The marker records the owning pid. A marker left behind by a process
    that died is treated as not running.
    """

    def __init__(self, path: Path, clock: Callable[[], float] = time.time):
        self.path = Path(path)
        self.clock = clock

    def start(self) -> None:
        """
        Raises:
            StatePersistenceError: If the marker cannot be written
        """
        data = {"pid": os.getpid(), "start_time": self.clock()}
        try:
            ensure_directory(self.path.parent)
            with safe_file_operation(self.path, 'w', encoding='utf-8') as f:
                json.dump(data, f)
        except OSError as e:
            raise StatePersistenceError(f"Failed to write run marker {self.path}: {e}", path=self.path)
        logger.info(f"Transfer run started (pid {data['pid']})")

    def stop(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            return
        except OSError as e:
            raise StatePersistenceError(f"Failed to remove run marker {self.path}: {e}", path=self.path)
        logger.info("Transfer run marker removed")

    def _read(self) -> Optional[dict]:
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except FileNotFoundError:
            return None
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise StatePersistenceError(f"Failed to decode run marker {self.path}: {e}", path=self.path,
                                        error_type="corrupt")
        except OSError as e:
            raise StatePersistenceError(f"Failed to read run marker {self.path}: {e}", path=self.path)
        if not isinstance(data, dict):
            raise StatePersistenceError(f"Run marker {self.path} must hold a JSON object (corrupt)", path=self.path,
                                        error_type="corrupt")
        return data

    def get_running_time(self) -> Tuple[str, bool]:
        """
        Returns:
            (elapsed "H:MM:SS", True) while a transfer is running, ("", False) otherwise

        Raises:
            StatePersistenceError: If the marker exists but cannot be read
        """
        data = self._read()
        if data is None:
            return "", False
        try:
            pid = int(data["pid"])
            start_time = float(data["start_time"])
        except (KeyError, TypeError, ValueError) as e:
            raise StatePersistenceError(f"Corrupt run marker {self.path}: {e}", path=self.path,
                                        error_type="corrupt")
        if not _pid_alive(pid):
            logger.warning(f"Found a stale run marker of pid {pid}")
            return "", False
        return format_time(self.clock() - start_time), True

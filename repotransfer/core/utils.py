# repotransfer/core/utils.py

import logging
from datetime import timedelta
from pathlib import Path
from urllib.parse import quote

logger = logging.getLogger(__name__)

def ensure_directory(path: Path) -> Path:
    """
    Ensure directory exists, creating it if necessary.

    Args:
        path: Directory path to ensure exists

    Returns:
        Path: Same path that was passed in

    Raises:
        OSError: If directory cannot be created
    """
    path.mkdir(parents=True, exist_ok=True)
    return path

def format_time(seconds: float) -> str:
    """
    Format time duration as string.

    Args:
        seconds: Time duration in seconds

    Returns:
        Formatted string in H:MM:SS format
    """
    return str(timedelta(seconds=int(max(seconds, 0))))

def format_duration(seconds: float) -> str:
    """
    Format a duration in words, e.g. "2 hours 5 minutes".

    Args:
        seconds: Duration in seconds

    Returns:
        str: Human readable duration, "Less than a minute" under 60 seconds
    """
    seconds = int(seconds)
    if seconds < 60:
        return "Less than a minute"
    days, rem = divmod(seconds, 86400)
    hours, rem = divmod(rem, 3600)
    minutes = rem // 60
    parts = []
    for value, unit in ((days, "day"), (hours, "hour"), (minutes, "minute")):
        if value:
            parts.append(f"{value} {unit}{'s' if value != 1 else ''}")
    return " ".join(parts)

def repo_dir_name(repo_key: str) -> str:
    """
    Map a repository key to a directory name that is safe on every platform.

    Args:
        repo_key: Repository key, may contain characters illegal in paths

    Returns:
        str: Percent-encoded directory name, distinct for distinct keys
    """
    if not repo_key:
        raise ValueError("Repository key must not be empty")
    name = quote(repo_key, safe="")
    if name in (".", ".."):
        # quote() leaves dots alone, and these two would point outside the repos directory
        name = name.replace(".", "%2E")
    return name

SIZE_UNITS = "BKMGTPE"

def size_to_string(size_in_bytes: int) -> str:
    """
    Format a byte count with binary units, e.g. "1.5 KiB".

    The largest unit keeping the value below 1024 after rounding to one
    decimal is chosen, so 1048525 bytes print as "1.0 MiB" rather than
    "1024.0 KiB". Counts beyond the exbibyte range stay in EiB.

    Args:
        size_in_bytes: Size in bytes

    Returns:
        str: Size with one decimal place and an "iB" suffix
    """
    size_in_bytes = max(int(size_in_bytes), 0)
    divider = 1
    unit_index = 0
    # 1023.95 and above would print as "1024.0", so move up a unit
    while unit_index < len(SIZE_UNITS) - 1 and size_in_bytes / divider >= 1023.95:
        divider *= 1024
        unit_index += 1
    return f"{size_in_bytes / divider:.1f} {SIZE_UNITS[unit_index]}iB"

def calc_percentage(transferred: int, total: int) -> str:
    """
    Render " (xx.x%)", or nothing when either value is zero.

    Args:
        transferred: Amount done
        total: Expected amount

    Returns:
        str: Parenthesized percentage with a leading space, or ""
    """
    if transferred == 0 or total == 0:
        return ""
    return f" ({transferred / total * 100:.1f}%)"

# repotransfer/core/context_managers.py

import logging
import os
from pathlib import Path
from contextlib import contextmanager

logger = logging.getLogger(__name__)


@contextmanager
def safe_file_operation(file_path: Path, mode='w', **kwargs):
    """
    Context manager for safely writing to files with atomic updates.

    The content is written to a sibling temp file which replaces the target
    only if the block completes, so readers never observe a partial file.

    Args:
        file_path: Path to the file
        mode: File open mode
        **kwargs: Additional keyword arguments for open()

    Yields:
        file object: Open file object
    """
    temp_path = file_path.with_suffix(file_path.suffix + '.tmp')

    try:
        with open(temp_path, mode, **kwargs) as f:
            yield f
            f.flush()
            os.fsync(f.fileno())

        os.replace(temp_path, file_path)

    except BaseException:
        # Clean up temp file and re-raise
        if temp_path.exists():
            try:
                os.remove(temp_path)
            except OSError as e:
                logger.warning(f"Failed to remove temp file {temp_path}: {e}")
        raise

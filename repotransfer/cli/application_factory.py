# repotransfer/cli/application_factory.py

import logging
from pathlib import Path

from repotransfer.core.config_manager import TransferConfig
from repotransfer.core.exceptions import RepoTransferError

logger = logging.getLogger(__name__)


def run_status(args, config: TransferConfig, console=None):
    """
    Print the transfer status.

    Args:
        args: Parsed command line arguments
        config: Loaded configuration
        console: Optional rich console to print to

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    from repotransfer.core.status import show_status

    if args.run_dir:
        config = config.model_copy(update={"run_dir": args.run_dir})
    try:
        show_status(config, console=console)
        return 0
    except RepoTransferError as e:
        logger.error(f"Failed to show transfer status: {e}")
        for step in e.recovery_steps:
            logger.info(f"  - {step}")
        return 1


def validate_arguments(args):
    """
    Validate command line arguments.

    Args:
        args: Parsed command line arguments

    Returns:
        tuple: (is_valid: bool, error_message: str)
    """
    if not args.status:
        return False, "Nothing to do, pass --status to show the transfer status"

    if args.config and not Path(args.config).expanduser().is_file():
        return False, f"Configuration file not found: {args.config}"

    if args.run_dir and Path(args.run_dir).expanduser().exists() and not Path(args.run_dir).expanduser().is_dir():
        return False, f"Run directory is not a directory: {args.run_dir}"

    return True, ""

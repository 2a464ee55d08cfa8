# main.py

import sys
import logging
from pathlib import Path

from repotransfer.core.config_manager import ConfigManager
from repotransfer.core.logger_setup import setup_logging
from repotransfer.cli.argument_parser import parse_arguments
from repotransfer.cli.application_factory import run_status, validate_arguments


def main(argv=None):
    """Main entry point"""
    args = parse_arguments(argv)

    is_valid, error_message = validate_arguments(args)
    if not is_valid:
        print(f"Error: {error_message}")
        return 1

    config_path = Path(args.config).expanduser() if args.config else None
    config = ConfigManager(config_path).load_config()

    # Status output goes to stdout, keep the console log quiet
    setup_logging(
        log_level=getattr(logging, config.log_level),
        console_level=logging.WARNING,
        log_file_rotation=config.log_file_rotation,
        log_file_max_size=config.log_file_max_size
    )

    return run_status(args, config)

if __name__ == "__main__":
    sys.exit(main())

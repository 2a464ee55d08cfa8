# repotransfer/cli/argument_parser.py

import argparse
from repotransfer import __version__, __project_name__


def parse_arguments(argv=None):
    """Parse command line arguments"""
    parser = argparse.ArgumentParser(description=f"{__project_name__} v{__version__}")

    parser.add_argument(
        "--status",
        action="store_true",
        help="Show the status of the running transfer"
    )

    parser.add_argument(
        "--config",
        type=str,
        help="Path to the configuration file"
    )

    parser.add_argument(
        "--run-dir",
        type=str,
        help="Directory holding the state files of the transfer run"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"{__project_name__} {__version__}"
    )

    return parser.parse_args(argv)

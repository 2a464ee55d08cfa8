"""
RepoTransfer - Resumable repository transfer state and snapshot tracking
"""

__version__ = "1.0.0"
__author__ = "RepoTransfer Developers"
__license__ = "MIT"
__description__ = "Resumable repository transfer state and snapshot tracking"
__project_name__ = "RepoTransfer"
__copyright__ = f"Copyright 2025 {__author__}"

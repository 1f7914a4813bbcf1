"""
Version control system (VCS) integration.

This package contains the read-only Git client used to collect commit
records and tag-delimited releases for the changelog.
"""

from .git_client import GitClient, GitError  # noqa: F401

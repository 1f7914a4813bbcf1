"""
Commit message parsing.

See :mod:`vc_changelog.parsing.commit_parser` for the conventional
commit decomposition and breaking change detection.
"""

from .commit_parser import Commit, CommitRecord, parse_commit, parse_commits  # noqa: F401

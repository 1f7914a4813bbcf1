"""
Git client implementation for vc_changelog.

This module reads commit history and tags from a local Git repository
and turns them into release inputs for the changelog pipeline. It only
implements the read-only subset of Git needed by the CLI. All
subprocess calls go through :meth:`GitClient._run` so that unit tests
can mock them easily.
"""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import List, Optional

from vc_changelog.changelog import ReleaseInput
from vc_changelog.parsing.commit_parser import CommitRecord


logger = logging.getLogger(__name__)
# Attach a null handler to avoid logging errors when the root logger is not
# configured. Logs will propagate to the root when configured by the CLI.
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


# Field and record separators used in ``git log`` output.
FIELD_SEP = "\x1f"
RECORD_SEP = "\x1e"
LOG_FORMAT = f"%H{FIELD_SEP}%ct{FIELD_SEP}%an{FIELD_SEP}%B{RECORD_SEP}"


class GitError(Exception):
    """Raised when a Git command fails."""

    pass


class GitClient:
    """Client for reading a Git repository."""

    def __init__(self, repo_root: Path) -> None:
        self.repo_root = repo_root

    # ------------------------------------------------------------------
    # Static helpers
    # ------------------------------------------------------------------
    @staticmethod
    def find_repo_root(start: Path) -> Optional[Path]:
        """Find the root of the Git repository starting from ``start``.

        Walk upwards until a ``.git`` directory is found or the filesystem
        root is reached.
        """
        current = start.resolve()
        while True:
            if (current / ".git").exists():
                return current
            if current.parent == current:
                # reached filesystem root
                return None
            current = current.parent

    # ------------------------------------------------------------------
    # Basic Git commands
    # ------------------------------------------------------------------
    def _run(self, args: List[str], check: bool = True) -> subprocess.CompletedProcess:
        """Run a Git command in the repository root.

        Raises
        ------
        GitError
            If the command exits with a non-zero status when ``check`` is True.
        """
        full_cmd = ["git"] + args
        logger.debug("Executing Git command: %s", " ".join(full_cmd))
        try:
            result = subprocess.run(
                full_cmd,
                cwd=self.repo_root,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                encoding='utf-8',
                errors='replace',  # Replace invalid characters instead of failing
            )
        except FileNotFoundError as e:
            logger.error("Git executable not found: %s", e)
            raise GitError("Git is not installed or not on PATH") from e

        if check and result.returncode != 0:
            logger.error(
                "Git command failed: %s\nSTDOUT: %s\nSTDERR: %s",
                " ".join(full_cmd),
                result.stdout,
                result.stderr,
            )
            raise GitError(result.stderr.strip() or result.stdout.strip())
        return result

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------
    def get_tags(self) -> List[str]:
        """Return tag names ordered by creation date, oldest first."""
        result = self._run(["tag", "--list", "--sort=creatordate"], check=True)
        return [line.strip() for line in result.stdout.splitlines() if line.strip()]

    def get_commits(self, rev_range: str = "HEAD") -> List[CommitRecord]:
        """Return the commits in ``rev_range``, oldest first.

        Parameters
        ----------
        rev_range : str
            Any revision range accepted by ``git log``, e.g.
            ``"v0.1.0..v0.2.0"``.

        Raises
        ------
        GitError
            If the log command fails.
        """
        result = self._run(["log", "--reverse", f"--format={LOG_FORMAT}", rev_range], check=True)
        commits: List[CommitRecord] = []
        for raw in result.stdout.split(RECORD_SEP):
            # git adds a newline between records
            raw = raw.lstrip("\n")
            if not raw.strip():
                continue
            parts = raw.split(FIELD_SEP, 3)
            if len(parts) != 4:
                logger.warning("Skipping malformed log record: %r", raw[:80])
                continue
            sha, timestamp, author, message = parts
            commits.append(
                CommitRecord(
                    id=sha.strip(),
                    message=message.strip(),
                    timestamp=int(timestamp) if timestamp.strip().isdigit() else None,
                    author=author or None,
                )
            )
        return commits

    def get_timestamp(self, rev: str) -> Optional[int]:
        """Return the commit time of ``rev`` in seconds since the epoch."""
        result = self._run(["log", "-1", "--format=%ct", rev], check=True)
        value = result.stdout.strip()
        return int(value) if value.isdigit() else None

    def collect_releases(self, unreleased_version: Optional[str] = None) -> List[ReleaseInput]:
        """Split the history into releases delimited by tags, newest first.

        Commits after the last tag form an extra release named
        ``unreleased_version`` (``None`` for an unreleased section). It is
        omitted when there are no such commits.
        """
        releases: List[ReleaseInput] = []
        previous: Optional[str] = None
        for tag in self.get_tags():
            rev_range = f"{previous}..{tag}" if previous else tag
            releases.append(
                ReleaseInput(
                    version=tag,
                    previous_version=previous,
                    timestamp=self.get_timestamp(tag),
                    commits=self.get_commits(rev_range),
                )
            )
            previous = tag

        head_range = f"{previous}..HEAD" if previous else "HEAD"
        pending = self.get_commits(head_range)
        if pending:
            releases.append(
                ReleaseInput(
                    version=unreleased_version,
                    previous_version=previous,
                    timestamp=pending[-1].timestamp if unreleased_version else None,
                    commits=pending,
                )
            )

        logger.debug("Collected %d release(s) from %s", len(releases), self.repo_root)
        releases.reverse()
        return releases

"""
Conventional commit parsing.

Turns a raw commit record into an immutable :class:`Commit`. The
summary line is decomposed into type, optional scope and description
when it follows the ``type(scope)!: description`` shape. Anything else
degrades to a description-only record; parsing never raises on the
content of a message.
"""

from __future__ import annotations

import logging
import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, List, Optional


logger = logging.getLogger(__name__)
# Attach a null handler to avoid logging errors when the root logger is not
# configured. Logs will propagate to the root when configured by the CLI.
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


DEFAULT_BREAKING_LABELS: FrozenSet[str] = frozenset({"breaking-change", "breaking"})

# type(scope)!: description
CONVENTIONAL_PATTERN = re.compile(
    r"^(?P<type>[A-Za-z][\w-]*)"
    r"(?:\((?P<scope>[^()\r\n]*)\))?"
    r"(?P<breaking>!)?"
    r":\s+"
    r"(?P<description>\S.*)$"
)

BREAKING_FOOTER_PATTERN = re.compile(r"^BREAKING[ -]CHANGE:", re.MULTILINE)


@dataclass(frozen=True)
class CommitRecord:
    """A raw commit as delivered by the version control collaborator."""

    id: str
    message: str
    timestamp: Optional[int] = None
    labels: FrozenSet[str] = frozenset()
    author: Optional[str] = None


@dataclass(frozen=True)
class Commit:
    """A parsed commit.

    Attributes
    ----------
    id : str
        Opaque commit identifier (usually the hash).
    raw_message : str
        The message this record was parsed from.
    timestamp : Optional[int]
        Commit time in seconds since the epoch.
    type : str
        Conventional commit type, or ``""`` for unconventional messages.
    scope : Optional[str]
        Conventional commit scope, if any.
    description : str
        Human readable description taken from the summary line.
    body : str
        Everything after the summary line.
    breaking : bool
        Whether the commit is flagged as a breaking change.
    labels : FrozenSet[str]
        Pull request labels attached to the commit.
    author : Optional[str]
        Author name when known.
    group : Optional[str]
        Group tag; ``None`` until the classifier assigns it.
    """

    id: str
    raw_message: str
    timestamp: Optional[int] = None
    type: str = ""
    scope: Optional[str] = None
    description: str = ""
    body: str = ""
    breaking: bool = False
    labels: FrozenSet[str] = field(default_factory=frozenset)
    author: Optional[str] = None
    group: Optional[str] = None

    @property
    def summary(self) -> str:
        """First line of the raw message."""
        return first_line(self.raw_message)

    @property
    def conventional(self) -> bool:
        return bool(self.type)


def first_line(text: Optional[str]) -> str:
    lines = (text or "").splitlines()
    return lines[0] if lines else ""


def is_breaking(message: str, labels: Iterable[str], breaking_labels: Iterable[str] = DEFAULT_BREAKING_LABELS) -> bool:
    """Return True if the labels or the message footer mark a breaking change."""
    if set(labels) & set(breaking_labels):
        return True
    return bool(BREAKING_FOOTER_PATTERN.search(message or ""))


def parse_message(
    message: str,
    commit_id: str = "",
    timestamp: Optional[int] = None,
    labels: Iterable[str] = (),
    author: Optional[str] = None,
    breaking: bool = False,
) -> Commit:
    """Parse a single message into a :class:`Commit`.

    ``breaking`` forces the breaking flag on; it is OR-ed with the
    ``!`` marker of the summary line.
    """
    raw = message or ""
    summary = first_line(raw).strip()
    lines = raw.splitlines()
    body = "\n".join(lines[1:]).strip() if len(lines) > 1 else ""

    match = CONVENTIONAL_PATTERN.match(summary)
    if match is None:
        logger.debug("Unconventional commit %s: %r", commit_id, summary)
        return Commit(
            id=commit_id,
            raw_message=raw,
            timestamp=timestamp,
            description=summary,
            body=body,
            breaking=breaking,
            labels=frozenset(labels),
            author=author,
        )

    scope = match.group("scope")
    if scope is not None:
        scope = scope.strip() or None
    return Commit(
        id=commit_id,
        raw_message=raw,
        timestamp=timestamp,
        type=match.group("type").lower(),
        scope=scope,
        description=match.group("description").strip(),
        body=body,
        breaking=breaking or bool(match.group("breaking")),
        labels=frozenset(labels),
        author=author,
    )


def parse_commit(record: CommitRecord, breaking_labels: Iterable[str] = DEFAULT_BREAKING_LABELS) -> Commit:
    """Parse one commit record, detecting breaking changes from labels and footers."""
    message = record.message or ""
    breaking = is_breaking(message, record.labels, breaking_labels)
    return parse_message(
        message,
        commit_id=record.id,
        timestamp=record.timestamp,
        labels=record.labels,
        author=record.author,
        breaking=breaking,
    )


def split_commit(record: CommitRecord, breaking_labels: Iterable[str] = DEFAULT_BREAKING_LABELS) -> List[Commit]:
    """Parse every non-blank line of a record as an independent commit.

    The breaking flag is computed on the whole message and shared by
    every derived commit, as are id, timestamp, labels and author.
    """
    message = record.message or ""
    breaking = is_breaking(message, record.labels, breaking_labels)
    commits = [
        parse_message(
            line,
            commit_id=record.id,
            timestamp=record.timestamp,
            labels=record.labels,
            author=record.author,
            breaking=breaking,
        )
        for line in message.splitlines()
        if line.strip()
    ]
    if not commits:
        # An empty message still yields one record so nothing is lost.
        commits.append(parse_commit(record, breaking_labels))
    return commits


def parse_commits(
    records: Iterable[CommitRecord],
    split_commits: bool = False,
    breaking_labels: Iterable[str] = DEFAULT_BREAKING_LABELS,
    workers: int = 1,
) -> List[Commit]:
    """Parse records in order.

    With ``workers > 1`` the records are parsed in a thread pool. The
    result order always matches the input order.
    """
    records = list(records)
    breaking_labels = frozenset(breaking_labels)

    def _parse(record: CommitRecord) -> List[Commit]:
        if split_commits:
            return split_commit(record, breaking_labels)
        return [parse_commit(record, breaking_labels)]

    if workers > 1 and len(records) > 1:
        with ThreadPoolExecutor(max_workers=workers) as executor:
            parsed = list(executor.map(_parse, records))
    else:
        parsed = [_parse(record) for record in records]

    commits = [commit for group in parsed for commit in group]
    logger.debug("Parsed %d record(s) into %d commit(s)", len(records), len(commits))
    return commits

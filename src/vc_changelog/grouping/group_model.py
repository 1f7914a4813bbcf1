"""
Data models for commit grouping.

A :class:`GroupRule` assigns commits to a group tag. Classified commits
are bucketed into :class:`Group` objects which, together with the link
entries, make up a :class:`Release`.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import List, Optional, Pattern

from vc_changelog.parsing.commit_parser import Commit


MATCH_MESSAGE = "message"
MATCH_LABEL = "label"
MATCH_FIELDS = (MATCH_MESSAGE, MATCH_LABEL)

_COMMENT_RE = re.compile(r"<!--.*?-->", re.DOTALL)
_TAG_RE = re.compile(r"<[^>]+>")


def header_from_tag(tag: str) -> str:
    """Derive display text from a group tag.

    Tags often carry a sort prefix such as ``<!-- 0 -->``; comments and
    markup are removed and the remainder is trimmed.
    """
    text = _TAG_RE.sub("", _COMMENT_RE.sub("", tag)).strip()
    return text[:1].upper() + text[1:]


@dataclass(frozen=True)
class GroupRule:
    """A single classification rule.

    Attributes
    ----------
    match_field : str
        ``"message"`` to search the summary line, ``"label"`` to test
        the pull request labels.
    pattern : str
        Regular expression source.
    group_tag : str
        Tag assigned to matching commits.
    regex : Pattern
        Compiled ``pattern``.
    header : Optional[str]
        Display text override for the group.
    catch_all : bool
        True for the terminal rule that matches every commit.
    """

    match_field: str
    pattern: str
    group_tag: str
    regex: Pattern = field(compare=False, repr=False)
    header: Optional[str] = None
    catch_all: bool = False

    @property
    def display_header(self) -> str:
        return self.header if self.header is not None else header_from_tag(self.group_tag)


@dataclass
class Group:
    """An ordered bucket of commits sharing a group tag."""

    tag: str
    header: str
    commits: List[Commit] = field(default_factory=list)


@dataclass(frozen=True)
class LinkEntry:
    """Mapping from a pull request number to its URL."""

    pr_number: str
    url: str


@dataclass
class Release:
    """A release section of the changelog.

    ``version`` is ``None`` for unreleased changes. ``commits`` holds the
    kept commits in processing order and ``links`` the deduplicated
    pull request references derived from them.
    """

    version: Optional[str]
    previous_version: Optional[str] = None
    timestamp: Optional[int] = None
    groups: List[Group] = field(default_factory=list)
    commits: List[Commit] = field(default_factory=list)
    links: List[LinkEntry] = field(default_factory=list)

    @property
    def previous(self) -> dict:
        return {"version": self.previous_version}

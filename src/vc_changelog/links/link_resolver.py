"""
Pull request reference extraction.

A commit whose summary line ends in a reference such as ``(#123)``
yields a :class:`LinkEntry` pointing at the pull request. Commits
without a reference simply produce no entry.
"""

from __future__ import annotations

import logging
import re
from collections import OrderedDict
from typing import Iterable, List, Optional

from vc_changelog.errors import ConfigError
from vc_changelog.grouping.group_model import LinkEntry
from vc_changelog.parsing.commit_parser import Commit, first_line


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


PR_REFERENCE_PATTERN = re.compile(r"\(#(\d+)\)")

PR_PLACEHOLDER = "{pr}"


def extract_pr_number(message: Optional[str]) -> Optional[str]:
    """Return the number of the last ``(#N)`` reference in the first line."""
    matches = PR_REFERENCE_PATTERN.findall(first_line(message))
    return matches[-1] if matches else None


class LinkResolver:
    """Build pull request links from commit messages.

    Parameters
    ----------
    url_template : Optional[str]
        URL containing a ``{pr}`` placeholder, e.g.
        ``"https://github.com/owner/repo/pull/{pr}"``. With no template
        no links are produced.
    """

    def __init__(self, url_template: Optional[str] = None) -> None:
        if url_template is not None and PR_PLACEHOLDER not in url_template:
            raise ConfigError(f"Link URL {url_template!r} must contain the {PR_PLACEHOLDER} placeholder")
        self.url_template = url_template

    def url_for(self, pr_number: str) -> Optional[str]:
        if not self.url_template:
            return None
        return self.url_template.replace(PR_PLACEHOLDER, pr_number)

    def resolve(self, commit: Commit) -> Optional[LinkEntry]:
        pr_number = extract_pr_number(commit.raw_message)
        if pr_number is None:
            return None
        url = self.url_for(pr_number)
        if url is None:
            return None
        return LinkEntry(pr_number=pr_number, url=url)

    def resolve_all(self, commits: Iterable[Commit]) -> List[LinkEntry]:
        """Return one entry per distinct pull request number.

        Entries keep the position of the first commit mentioning the
        number; a later commit with the same number replaces the URL.
        """
        links: "OrderedDict[str, LinkEntry]" = OrderedDict()
        for commit in commits:
            entry = self.resolve(commit)
            if entry is not None:
                links[entry.pr_number] = entry
        logger.debug("Resolved %d pull request link(s)", len(links))
        return list(links.values())

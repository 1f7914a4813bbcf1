"""
Rendering of releases through the changelog templates.

A :class:`ChangelogTemplate` bundles the header, body, footer and
link-reference templates. Output is built in a fixed order: header,
then for every release the body (groups and their commits) followed by
one link-reference line per pull request, then the footer.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

from vc_changelog.grouping.group_model import LinkEntry, Release
from vc_changelog.template.nodes import Template


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


def release_context(release: Release, extra: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
    """Variables visible to the body template for one release."""
    return {
        "version": release.version,
        "previous_version": release.previous_version,
        "previous": release.previous,
        "timestamp": release.timestamp,
        "groups": release.groups,
        "commits": release.commits,
        "links": release.links,
        "release": release,
        "extra": dict(extra or {}),
    }


class ChangelogTemplate:
    """Render a list of releases into changelog text.

    Parameters
    ----------
    body : Template
        Rendered once per release.
    header, footer : Optional[Template]
        Rendered once, before and after all releases. They see
        ``releases`` and ``extra``.
    link_reference : Optional[Template]
        Rendered once per link entry of a release with ``link`` bound to
        the entry. Each rendering becomes one line.
    trim : bool
        Strip leading and trailing whitespace from the final text.
    extra : Optional[Mapping]
        Additional values exposed to every template as ``extra``.
    """

    def __init__(
        self,
        body: Template,
        header: Optional[Template] = None,
        footer: Optional[Template] = None,
        link_reference: Optional[Template] = None,
        trim: bool = False,
        extra: Optional[Mapping[str, Any]] = None,
    ) -> None:
        self.body = body
        self.header = header
        self.footer = footer
        self.link_reference = link_reference
        self.trim = trim
        self.extra = dict(extra or {})

    def render_links(self, links: Sequence[LinkEntry], context: Mapping[str, Any]) -> str:
        if self.link_reference is None or not links:
            return ""
        lines: List[str] = []
        for link in links:
            line = self.link_reference.render({**context, "link": link}).strip("\r\n")
            if line:
                lines.append(line)
        return "\n".join(lines) + "\n" if lines else ""

    def render_release(self, release: Release) -> str:
        context = release_context(release, self.extra)
        text = self.body.render(context)
        links = self.render_links(release.links, context)
        if links:
            if text and not text.endswith("\n"):
                text += "\n"
            text += links + "\n"
        return text

    def render(self, releases: Sequence[Release]) -> str:
        """Render the whole changelog; a pure function of ``releases``."""
        outer = {"releases": list(releases), "extra": dict(self.extra)}
        parts: List[str] = []
        if self.header is not None:
            parts.append(self.header.render(outer))
        for release in releases:
            logger.debug("Rendering release %s", release.version or "unreleased")
            parts.append(self.render_release(release))
        if self.footer is not None:
            parts.append(self.footer.render(outer))
        text = "".join(parts)
        return text.strip() if self.trim else text

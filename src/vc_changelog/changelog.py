"""
Changelog generation pipeline.

For every release the raw commit records go through the parser, the
classifier, the aggregator and the link resolver; the resulting
:class:`~vc_changelog.grouping.group_model.Release` objects are then
rendered through the configured templates.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

from vc_changelog.config.loader import ChangelogConfig
from vc_changelog.errors import InputError
from vc_changelog.grouping.aggregator import aggregate
from vc_changelog.grouping.classifier import Classifier
from vc_changelog.grouping.group_model import Release
from vc_changelog.parsing.commit_parser import CommitRecord, parse_commits


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


@dataclass
class ReleaseInput:
    """Raw material for one release: commit records, oldest first."""

    version: Optional[str]
    commits: List[CommitRecord] = field(default_factory=list)
    previous_version: Optional[str] = None
    timestamp: Optional[int] = None


def build_release(release_input: ReleaseInput, config: ChangelogConfig) -> Release:
    """Parse, classify and group the commits of one release."""
    commits = parse_commits(
        release_input.commits,
        split_commits=config.split_commits,
        breaking_labels=config.breaking_labels,
        workers=config.workers,
    )
    classified = Classifier(config.rules).classify_all(
        commits,
        filter_commits=config.filter_commits,
        filter_unconventional=config.filter_unconventional,
    )
    groups = aggregate(classified, config.rules, sort_order=config.sort_order, group_order=config.group_order)
    links = config.link_resolver.resolve_all(classified)

    logger.debug(
        "Release %s: %d commit(s) in %d group(s), %d link(s)",
        release_input.version or "unreleased",
        len(classified),
        len(groups),
        len(links),
    )
    return Release(
        version=release_input.version,
        previous_version=release_input.previous_version,
        timestamp=release_input.timestamp,
        groups=groups,
        commits=classified,
        links=links,
    )


def generate_changelog(release_inputs: Sequence[ReleaseInput], config: ChangelogConfig) -> str:
    """Render releases in the order given, typically newest first."""
    releases = [build_release(release_input, config) for release_input in release_inputs]
    return config.template.render(releases)


# ---------------------------------------------------------------------------
# JSON input
# ---------------------------------------------------------------------------

def _optional_int(value: Any, what: str) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InputError(f"{what} must be a number")
    return int(value)


def _optional_str(value: Any, what: str) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise InputError(f"{what} must be a string")
    return value


def record_from_dict(data: Dict[str, Any], index: int = 0) -> CommitRecord:
    """Build a :class:`CommitRecord` from a JSON object.

    Accepted keys: ``id`` (or ``hash``), ``message``, ``timestamp``,
    ``labels`` (or ``pr_labels``) and ``author``.
    """
    if not isinstance(data, dict):
        raise InputError(f"Commit #{index} must be an object")
    message = data.get("message")
    if not isinstance(message, str):
        raise InputError(f"Commit #{index} is missing a 'message' string")
    labels = data.get("labels", data.get("pr_labels")) or []
    if not isinstance(labels, list) or not all(isinstance(label, str) for label in labels):
        raise InputError(f"Commit #{index}: 'labels' must be a list of strings")
    commit_id = data.get("id", data.get("hash", ""))
    return CommitRecord(
        id=str(commit_id),
        message=message,
        timestamp=_optional_int(data.get("timestamp"), f"Commit #{index} timestamp"),
        labels=frozenset(labels),
        author=_optional_str(data.get("author"), f"Commit #{index} author"),
    )


def release_from_dict(data: Dict[str, Any]) -> ReleaseInput:
    if not isinstance(data, dict):
        raise InputError("Each release must be an object")
    commits = data.get("commits", [])
    if not isinstance(commits, list):
        raise InputError("'commits' must be a list")
    return ReleaseInput(
        version=_optional_str(data.get("version"), "Release version"),
        previous_version=_optional_str(data.get("previous_version"), "Release previous_version"),
        timestamp=_optional_int(data.get("timestamp"), "Release timestamp"),
        commits=[record_from_dict(item, index) for index, item in enumerate(commits)],
    )


def releases_from_data(data: Any, version: Optional[str] = None) -> List[ReleaseInput]:
    """Interpret decoded JSON input.

    The input is either ``{"releases": [...]}`` or a bare list of
    commits, which becomes a single release named ``version``.
    """
    if isinstance(data, list):
        return [release_from_dict({"version": version, "commits": data})]
    if isinstance(data, dict) and isinstance(data.get("releases"), list):
        return [release_from_dict(item) for item in data["releases"]]
    raise InputError("Input must be a list of commits or an object with a 'releases' list")


def load_release_inputs(path: Path, version: Optional[str] = None) -> List[ReleaseInput]:
    """Read release inputs from a JSON file.

    Raises
    ------
    InputError
        If the file cannot be read or does not have the expected shape.
    """
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        logger.error("Failed to read commit input: %s", exc)
        raise InputError(f"Cannot read commit input {path}: {exc}") from exc
    return releases_from_data(data, version=version)


def count_commits(release_inputs: Iterable[ReleaseInput]) -> int:
    return sum(len(release_input.commits) for release_input in release_inputs)

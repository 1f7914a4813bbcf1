"""
Rule based classification of parsed commits into group tags.

Rules are evaluated in declaration order and the first match wins. The
rule list must end with a catch-all rule so that every commit receives
exactly one group; this is checked when the rules are built, not while
classifying.
"""

from __future__ import annotations

import dataclasses
import logging
import re
from typing import Any, Dict, Iterable, List, Sequence

from vc_changelog.errors import ConfigError
from vc_changelog.grouping.group_model import MATCH_FIELDS, MATCH_LABEL, MATCH_MESSAGE, GroupRule
from vc_changelog.parsing.commit_parser import Commit


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


# Field names accepted for label rules, including the form used by
# cliff-style configuration files.
_LABEL_FIELD_ALIASES = {"label", "labels", "pr_labels", "github.pr_labels", "remote.pr_labels"}


# Leading inline flags such as ``(?s)`` do not change what a catch-all matches.
_INLINE_FLAGS_RE = re.compile(r"^\(\?[aiLmsux]+\)")

_CATCH_ALL_CORES = {".*", ".*?", "(.*)", "(.*?)", "(?:.*)", r"[\s\S]*", r"[\s\S]*?", r"[\S\s]*"}

CATCH_ALL_HINT = 'a message pattern of "", "^", ".*", "(.*)", ".*?" or "[\\s\\S]*"'


def is_catch_all_pattern(pattern: str) -> bool:
    """Return True if ``pattern`` matches any message."""
    core = _INLINE_FLAGS_RE.sub("", pattern)
    if core in ("", "^", "$"):
        return True
    if core.startswith("^"):
        core = core[1:]
    if core.endswith("$") and not core.endswith("\\$"):
        core = core[:-1]
    return core in _CATCH_ALL_CORES


def _normalize_rule(index: int, raw: Any) -> Dict[str, Any]:
    if not isinstance(raw, dict):
        raise ConfigError(f"Group rule #{index} must be an object, got {type(raw).__name__}")

    group = raw.get("group_tag", raw.get("group"))
    if not isinstance(group, str) or not group:
        raise ConfigError(f"Group rule #{index} is missing a 'group' string")

    if "message" in raw and "pattern" not in raw:
        # Shorthand: {"message": "^feat", "group": "..."}
        match_field, pattern = MATCH_MESSAGE, raw["message"]
    else:
        match_field = raw.get("match_field", raw.get("field", MATCH_MESSAGE))
        pattern = raw.get("pattern")
        if match_field in _LABEL_FIELD_ALIASES:
            match_field = MATCH_LABEL

    if match_field not in MATCH_FIELDS:
        raise ConfigError(
            f"Group rule #{index} has unknown match field {match_field!r}; "
            f"expected one of {', '.join(MATCH_FIELDS)}"
        )
    if not isinstance(pattern, str):
        raise ConfigError(f"Group rule #{index} is missing a 'pattern' string")

    header = raw.get("header")
    if header is not None and not isinstance(header, str):
        raise ConfigError(f"Group rule #{index}: 'header' must be a string")

    return {"match_field": match_field, "pattern": pattern, "group_tag": group, "header": header}


def build_rules(rule_configs: Iterable[Any]) -> List[GroupRule]:
    """Validate and compile rule configurations.

    Raises
    ------
    ConfigError
        If a rule is malformed, a pattern does not compile, or the list
        does not end with exactly one catch-all rule.
    """
    rules: List[GroupRule] = []
    for index, raw in enumerate(rule_configs):
        fields = _normalize_rule(index, raw)
        try:
            regex = re.compile(fields["pattern"])
        except re.error as exc:
            raise ConfigError(
                f"Group rule #{index} ({fields['group_tag']!r}) has an invalid pattern "
                f"{fields['pattern']!r}: {exc}"
            ) from exc

        if rules and rules[-1].catch_all:
            raise ConfigError(
                f"Group rule #{index} ({fields['group_tag']!r}) follows the catch-all rule and can never match"
            )

        catch_all = fields["match_field"] == MATCH_MESSAGE and is_catch_all_pattern(fields["pattern"])
        rules.append(GroupRule(regex=regex, catch_all=catch_all, **fields))

    if not rules or not rules[-1].catch_all:
        raise ConfigError(f"Group rules must end with a catch-all rule: {CATCH_ALL_HINT}")

    logger.debug("Compiled %d group rule(s)", len(rules))
    return rules


class Classifier:
    """Assign group tags to commits using an ordered rule list."""

    def __init__(self, rules: Sequence[GroupRule]) -> None:
        if not rules or not rules[-1].catch_all:
            raise ConfigError(f"Group rules must end with a catch-all rule: {CATCH_ALL_HINT}")
        self.rules = list(rules)

    @staticmethod
    def matches(rule: GroupRule, commit: Commit) -> bool:
        if rule.match_field == MATCH_LABEL:
            return any(rule.regex.fullmatch(label) for label in commit.labels)
        return rule.regex.search(commit.summary) is not None

    def classify(self, commit: Commit) -> GroupRule:
        """Return the first rule that matches ``commit``."""
        for rule in self.rules:
            if self.matches(rule, commit):
                return rule
        # Unreachable while the terminal catch-all is in place.
        return self.rules[-1]

    def classify_all(
        self,
        commits: Iterable[Commit],
        filter_commits: bool = False,
        filter_unconventional: bool = False,
    ) -> List[Commit]:
        """Classify commits in order, returning copies with ``group`` set.

        With ``filter_commits`` enabled, commits matched only by the
        catch-all rule are dropped. With ``filter_unconventional``,
        commits whose summary is not in conventional form are dropped
        before classification.
        """
        classified: List[Commit] = []
        for commit in commits:
            if filter_unconventional and not commit.conventional:
                logger.debug("Dropping unconventional commit %s: %r", commit.id, commit.summary)
                continue
            rule = self.classify(commit)
            if filter_commits and rule.catch_all:
                logger.debug("Dropping commit %s matched only by catch-all: %r", commit.id, commit.summary)
                continue
            logger.debug("Commit %s -> %r", commit.id, rule.group_tag)
            classified.append(dataclasses.replace(commit, group=rule.group_tag))
        return classified

"""
Configuration loader for vc_changelog.

The tool reads a JSON configuration file named ``.changelog_config.json``
from the repository root, or from an explicit path. When no file is
present the built-in defaults are used. The loader validates the
structure, compiles the group rules and parses the templates, so every
configuration problem is reported before any commit is processed.

Keys may be given flat or split into ``"changelog"`` and ``"git"``
sections in the manner of cliff configuration files.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, FrozenSet, List, Optional

from vc_changelog.errors import ConfigError, TemplateError
from vc_changelog.grouping.aggregator import GROUP_ORDER_RULES, GROUP_ORDERS, SORT_OLDEST, SORT_ORDERS
from vc_changelog.grouping.classifier import build_rules
from vc_changelog.grouping.group_model import GroupRule
from vc_changelog.links.link_resolver import PR_PLACEHOLDER, LinkResolver
from vc_changelog.parsing.commit_parser import DEFAULT_BREAKING_LABELS
from vc_changelog.template.parser import parse_template
from vc_changelog.template.renderer import ChangelogTemplate


logger = logging.getLogger(__name__)
# Attach a null handler to avoid "No handler" warnings or logging errors in
# environments where the root logger may be closed. Explicit configuration
# in the CLI still makes messages appear.
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


CONFIG_FILE_NAME = ".changelog_config.json"

DEFAULT_GROUP_RULES: List[Dict[str, str]] = [
    {"field": "label", "pattern": "breaking-change", "group": "<!-- 0 --> 🏗️ Breaking changes"},
    {"message": "^feat", "group": "<!-- 1 -->🚀 Features / new APIs"},
    {"message": "^fix", "group": "<!-- 2 -->🐛 Bug Fixes"},
    {"message": "^doc", "group": "<!-- 3 -->📚 Documentation"},
    {"message": "^perf", "group": "<!-- 4 -->⚡ Performance"},
    {"message": "^refactor", "group": "<!-- 5 -->🚜 Refactor"},
    {"message": "^test", "group": "<!-- 6 -->🧪 Testing"},
    {"message": "^chore|^ci", "group": "<!-- 7 -->⚙️ Chores/CI"},
    {"message": "^revert", "group": "<!-- 8 -->◀️ Revert"},
    {"message": ".*", "group": "<!-- 9 -->Other"},
]

DEFAULT_HEADER = "# Changelog\n\n"

DEFAULT_BODY = r"""{% if version -%}
## [{{ version }}]{% if extra.repo_url %}({{ extra.repo_url }}/tree/{{ version }}/){% endif %}\
{% if timestamp %} ({{ timestamp | date(format="%Y-%m-%d") }}){% endif %}
{% else -%}
## [Unreleased]
{% endif %}
{% if previous.version and extra.repo_url -%}
[Full Changelog]({{ extra.repo_url }}/compare/{{ previous.version }}...{{ version | default(value="HEAD") }})

{% endif -%}
{% for group in groups -%}
    ### {{ group.header }}

    {% for commit in group.commits -%}
        {{ loop.index }}. {% if commit.scope %}*({{ commit.scope }})* {% endif %}\
            {% if links %}{{ commit.description | upper_first | link_refs }}\
            {% else %}{{ commit.description | upper_first }}{% endif %}
    {% endfor %}
{% endfor -%}
"""

DEFAULT_FOOTER = ""

DEFAULT_LINK_REFERENCE = "[#{{ link.pr_number }}]: {{ link.url }}"

DEFAULTS: Dict[str, Any] = {
    "group_rules": DEFAULT_GROUP_RULES,
    "sort_order": SORT_OLDEST,
    "group_order": GROUP_ORDER_RULES,
    "filter_commits": False,
    "filter_unconventional": False,
    "conventional_commits": True,
    "split_commits": False,
    "trim_output": True,
    "strip_indent": True,
    "header": DEFAULT_HEADER,
    "body": DEFAULT_BODY,
    "footer": DEFAULT_FOOTER,
    "link_reference": DEFAULT_LINK_REFERENCE,
    "link_url": None,
    "breaking_labels": sorted(DEFAULT_BREAKING_LABELS),
    "extra": {},
    "workers": 1,
}

# Alternative key names, mostly from cliff configuration files.
KEY_ALIASES = {
    "commit_parsers": "group_rules",
    "sort_commits": "sort_order",
    "trim": "trim_output",
}

_SECTIONS = ("changelog", "git")

# Keys of cliff configuration files that have no effect here. Empty values
# are accepted silently; anything else is reported as a warning.
UNSUPPORTED_CLIFF_KEYS = frozenset({
    "commit_preprocessors",
    "postprocessors",
    "link_parsers",
    "protect_breaking_commits",
    "tag_pattern",
    "skip_tags",
    "ignore_tags",
    "topo_order",
})


@dataclass
class ChangelogConfig:
    """Validated configuration ready for the pipeline."""

    rules: List[GroupRule]
    template: ChangelogTemplate
    sort_order: str = SORT_OLDEST
    group_order: str = GROUP_ORDER_RULES
    filter_commits: bool = False
    filter_unconventional: bool = False
    split_commits: bool = False
    link_url: Optional[str] = None
    breaking_labels: FrozenSet[str] = DEFAULT_BREAKING_LABELS
    extra: Dict[str, Any] = field(default_factory=dict)
    workers: int = 1
    source: Optional[Path] = None

    @property
    def link_resolver(self) -> LinkResolver:
        return LinkResolver(self.link_url)


def _get_config_path(repo_root: Optional[Path]) -> Optional[Path]:
    """Return the default config file location, if one exists."""
    if repo_root is None:
        return None
    candidate = repo_root / CONFIG_FILE_NAME
    return candidate if candidate.exists() else None


def _flatten(data: Dict[str, Any]) -> Dict[str, Any]:
    flat: Dict[str, Any] = {}
    for key, value in data.items():
        if key in _SECTIONS and isinstance(value, dict):
            flat.update(value)
        else:
            flat[key] = value
    return {KEY_ALIASES.get(key, key): value for key, value in flat.items()}


_OPTIONAL_KEYS = frozenset({"header", "footer", "link_reference", "link_url"})


def _apply_overrides(data: Dict[str, Any], overrides: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    flat = _flatten(data)
    for key, value in (overrides or {}).items():
        if key == "extra" and isinstance(flat.get("extra"), dict):
            flat["extra"] = {**flat["extra"], **value}
        else:
            flat[key] = value
    return flat


def _check_type(data: Dict[str, Any], key: str, expected: Any, label: str) -> None:
    value = data.get(key)
    if value is None and key in _OPTIONAL_KEYS:
        return
    if isinstance(value, bool) and expected is int:
        raise ConfigError(f"'{key}' must be {label}")
    if not isinstance(value, expected):
        raise ConfigError(f"'{key}' must be {label}")


def _parse(name: str, source: Optional[str], strip_indent: bool):
    if source is None or source == "":
        return None
    try:
        return parse_template(source, strip_indent=strip_indent)
    except TemplateError as exc:
        raise TemplateError(f"Invalid {name} template: {exc}") from exc


def build_config(data: Optional[Dict[str, Any]] = None, source: Optional[Path] = None) -> ChangelogConfig:
    """Validate raw configuration data merged over the defaults.

    Raises
    ------
    ConfigError
        If a value has the wrong type, a group rule is invalid, the rule
        list lacks a terminal catch-all, or a template cannot be parsed.
    """
    if data is not None and not isinstance(data, dict):
        raise ConfigError("Configuration must be a JSON object")
    merged: Dict[str, Any] = dict(DEFAULTS)
    merged.update(_flatten(data or {}))
    unknown = sorted(set(merged) - set(DEFAULTS))
    unsupported = [key for key in unknown if key in UNSUPPORTED_CLIFF_KEYS and merged[key]]
    if unsupported:
        logger.warning("Ignoring unsupported cliff configuration keys: %s", unsupported)
    unknown = [key for key in unknown if key not in unsupported]
    if unknown:
        logger.debug("Ignoring unknown configuration keys: %s", unknown)

    _check_type(merged, "group_rules", list, "a list")
    for key in (
        "filter_commits",
        "filter_unconventional",
        "conventional_commits",
        "split_commits",
        "trim_output",
        "strip_indent",
    ):
        _check_type(merged, key, bool, "a boolean")
    for key in ("sort_order", "group_order", "header", "body", "footer", "link_reference"):
        _check_type(merged, key, str, "a string")
    _check_type(merged, "link_url", str, "a string")
    _check_type(merged, "breaking_labels", list, "a list of strings")
    _check_type(merged, "extra", dict, "an object")
    _check_type(merged, "workers", int, "an integer")

    if merged["sort_order"] not in SORT_ORDERS:
        raise ConfigError(f"'sort_order' must be one of {', '.join(SORT_ORDERS)}")
    if merged["group_order"] not in GROUP_ORDERS:
        raise ConfigError(f"'group_order' must be one of {', '.join(GROUP_ORDERS)}")
    if merged["workers"] < 1:
        raise ConfigError("'workers' must be at least 1")
    if not all(isinstance(label, str) for label in merged["breaking_labels"]):
        raise ConfigError("'breaking_labels' must be a list of strings")

    rules = build_rules(merged["group_rules"])

    extra = dict(merged["extra"])
    link_url = merged["link_url"]
    if link_url is None and isinstance(extra.get("repo_url"), str):
        link_url = extra["repo_url"].rstrip("/") + "/pull/" + PR_PLACEHOLDER
    # Fails early when the placeholder is missing.
    LinkResolver(link_url)

    strip_indent = merged["strip_indent"]
    body = _parse("body", merged["body"], strip_indent)
    if body is None:
        raise ConfigError("'body' template must not be empty")
    template = ChangelogTemplate(
        body=body,
        header=_parse("header", merged["header"], strip_indent),
        footer=_parse("footer", merged["footer"], strip_indent),
        link_reference=_parse("link_reference", merged["link_reference"], strip_indent),
        trim=merged["trim_output"],
        extra=extra,
    )

    return ChangelogConfig(
        rules=rules,
        template=template,
        sort_order=merged["sort_order"],
        group_order=merged["group_order"],
        filter_commits=merged["filter_commits"],
        # Without conventional parsing there is nothing to filter on.
        filter_unconventional=merged["filter_unconventional"] and merged["conventional_commits"],
        split_commits=merged["split_commits"],
        link_url=link_url,
        breaking_labels=frozenset(merged["breaking_labels"]),
        extra=extra,
        workers=merged["workers"],
        source=source,
    )


def load_config(
    config_path: Optional[Path] = None,
    repo_root: Optional[Path] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> ChangelogConfig:
    """Load and validate the changelog configuration.

    Args:
        config_path: Explicit configuration file. It must exist.
        repo_root: Repository root searched for ``.changelog_config.json``
                   when no explicit path is given.
        overrides: Values applied on top of the file, e.g. from command line
                   options. ``extra`` is merged rather than replaced.

    Returns:
        A validated :class:`ChangelogConfig`. Built-in defaults are used
        when no configuration file is found.

    Raises:
        ConfigError: If the file is missing (explicit path only),
                     malformed, or invalid.
    """
    path = config_path if config_path is not None else _get_config_path(repo_root)
    if path is None:
        logger.debug("No configuration file found; using defaults")
        return build_config(_apply_overrides({}, overrides))

    if not path.exists():
        logger.error("Configuration file '%s' does not exist", path)
        raise ConfigError(f"Missing configuration file: {path}")

    try:
        content = path.read_text(encoding="utf-8")
        data = json.loads(content)
    except (OSError, json.JSONDecodeError) as exc:
        logger.error("Failed to read or parse configuration file: %s", exc)
        raise ConfigError(f"Invalid JSON in {path.name}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigError(f"Configuration in {path.name} must be a JSON object")
    config = build_config(_apply_overrides(data, overrides), source=path)
    logger.debug("Loaded changelog configuration from: %s", path)
    return config

"""
Bucketing of classified commits into ordered groups.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from typing import Iterable, List, Sequence

from vc_changelog.errors import ConfigError
from vc_changelog.grouping.group_model import Group, GroupRule
from vc_changelog.parsing.commit_parser import Commit


logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
    logger.propagate = False


SORT_OLDEST = "oldest"
SORT_NEWEST = "newest"
SORT_ORDERS = (SORT_OLDEST, SORT_NEWEST)

GROUP_ORDER_RULES = "rules"
GROUP_ORDER_APPEARANCE = "appearance"
GROUP_ORDERS = (GROUP_ORDER_RULES, GROUP_ORDER_APPEARANCE)


def aggregate(
    commits: Iterable[Commit],
    rules: Sequence[GroupRule],
    sort_order: str = SORT_OLDEST,
    group_order: str = GROUP_ORDER_RULES,
) -> List[Group]:
    """Bucket classified commits by group tag.

    Parameters
    ----------
    commits : Iterable[Commit]
        Classified commits, oldest first.
    rules : Sequence[GroupRule]
        The rule list; supplies group headers and, for
        ``group_order="rules"``, the order of the groups.
    sort_order : str
        ``"oldest"`` keeps processing order inside each group,
        ``"newest"`` reverses it. Groups are never reordered.
    group_order : str
        ``"rules"`` orders groups by rule declaration, ``"appearance"``
        by the first commit seen in each group.

    Returns
    -------
    List[Group]
        Non-empty groups in display order.
    """
    if sort_order not in SORT_ORDERS:
        raise ConfigError(f"Invalid sort order {sort_order!r}; expected one of {', '.join(SORT_ORDERS)}")
    if group_order not in GROUP_ORDERS:
        raise ConfigError(f"Invalid group order {group_order!r}; expected one of {', '.join(GROUP_ORDERS)}")

    headers = {}
    for rule in rules:
        # Several rules may share a tag; the first one names the group.
        headers.setdefault(rule.group_tag, rule.display_header)

    buckets: "OrderedDict[str, Group]" = OrderedDict()
    if group_order == GROUP_ORDER_RULES:
        for tag, header in headers.items():
            buckets[tag] = Group(tag=tag, header=header)

    for commit in commits:
        if commit.group is None:
            raise ValueError(f"Commit {commit.id} has not been classified")
        bucket = buckets.get(commit.group)
        if bucket is None:
            bucket = Group(tag=commit.group, header=headers.get(commit.group, commit.group))
            buckets[commit.group] = bucket
        bucket.commits.append(commit)

    groups = [group for group in buckets.values() if group.commits]
    if sort_order == SORT_NEWEST:
        for group in groups:
            group.commits.reverse()

    logger.debug("Aggregated commits into %d group(s)", len(groups))
    return groups

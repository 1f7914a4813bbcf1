"""
Grouping logic for parsed commits.

This package classifies commits with an ordered rule list and buckets
them into groups. See :mod:`vc_changelog.grouping.classifier`,
:mod:`vc_changelog.grouping.aggregator` and
:mod:`vc_changelog.grouping.group_model` for details.
"""

from .aggregator import aggregate  # noqa: F401
from .classifier import Classifier, build_rules  # noqa: F401
from .group_model import Group, GroupRule, LinkEntry, Release  # noqa: F401

"""
Pull request link resolution. See :mod:`vc_changelog.links.link_resolver`.
"""

from .link_resolver import LinkResolver, extract_pr_number  # noqa: F401

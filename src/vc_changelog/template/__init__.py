"""
Template model for changelog rendering.

Templates are small syntax trees (:mod:`vc_changelog.template.nodes`)
evaluated against release data. :mod:`vc_changelog.template.parser`
turns template text into such trees and
:mod:`vc_changelog.template.renderer` renders releases through them.
"""

from .nodes import Template  # noqa: F401
from .parser import parse_expression, parse_template  # noqa: F401
from .renderer import ChangelogTemplate  # noqa: F401

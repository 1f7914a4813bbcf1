"""
Top-level package for vc_changelog.

This package turns conventional commit records into a grouped Markdown
changelog. The command line entry point lives in ``vc_changelog.cli``
and the pipeline in ``vc_changelog.changelog``.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"

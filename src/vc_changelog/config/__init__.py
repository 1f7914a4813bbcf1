"""
Configuration loading for vc_changelog.

Provides the loader for the JSON changelog configuration file located
in the repository root. See :mod:`vc_changelog.config.loader` for
implementation details.
"""

from vc_changelog.errors import ConfigError  # noqa: F401

from .loader import ChangelogConfig, build_config, load_config  # noqa: F401

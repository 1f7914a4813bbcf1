"""
Exception types shared across vc_changelog.

Only configuration-shape problems are fatal. Commit content never
raises: parsing and classification recover locally with safe defaults.
"""

from __future__ import annotations


class ConfigError(Exception):
    """Raised when the changelog configuration is missing or invalid."""

    pass


class TemplateError(ConfigError):
    """Raised when a template cannot be parsed."""

    def __init__(self, message: str, line: int = 0) -> None:
        self.line = line
        if line:
            message = f"line {line}: {message}"
        super().__init__(message)


class InputError(Exception):
    """Raised when commit input data cannot be read."""

    pass

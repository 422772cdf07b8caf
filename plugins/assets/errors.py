"""
Errors raised while grouping, filtering and resolving assets.

All of them derive from MkDocs' ``PluginError`` so a failing export aborts the
build with a readable message instead of a traceback.
"""

from mkdocs.exceptions import PluginError


class AssetsError(PluginError):
    """Base class for every error raised by the assets plugin."""


class ConfigurationError(AssetsError):
    """A rule scheme or filter setting cannot produce a required value (e.g. an output path)."""


class UnknownKindError(AssetsError):
    """A content type cannot be identified, grouped or rendered."""


class SourceMissingError(AssetsError):
    """The file backing an asset disappeared between inclusion and build."""


class FilterContractViolation(AssetsError):
    """A filter matched assets but did not produce a usable output."""

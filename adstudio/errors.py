"""
Error types surfaced to the session / CLI boundary.

None of these are fatal: the caller reports the message and the user may
retry the operation.
"""

from __future__ import annotations

from typing import List


class StudioError(Exception):
    """Base class for every error the studio reports to the user."""


class ConfigError(StudioError):
    """Missing or invalid configuration (e.g. no API key)."""


class CatalogParseError(StudioError):
    """Malformed or unreadable catalog file."""


class MissingColumnError(CatalogParseError):
    """The header row lacks one or more required columns."""

    def __init__(self, missing: List[str]) -> None:
        self.missing = list(missing)
        super().__init__(f"Missing required column(s): {', '.join(self.missing)}")


class AssetLoadError(StudioError):
    """A source or logo image could not be fetched or decoded."""


class GenerationError(StudioError):
    """The remote AI call failed or returned nothing usable."""

"""
Interfaces for metadata sources.
"""

from __future__ import annotations

from typing import Protocol

from .models import ReleaseTimeline


class MetadataClient(Protocol):
    """Provide the release timeline of a package."""

    def fetch(self, package_name: str, version_spec: str) -> ReleaseTimeline:
        ...

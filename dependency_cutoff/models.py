"""
Core data models for cutoff checks.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple


@dataclass(frozen=True)
class PackageRef:
    """A dependency edge as selected by the lockfile."""

    name: str
    requested_spec: Optional[str]
    actual_version: str

    @property
    def spec(self) -> str:
        """Version spec used for the registry lookup."""
        return self.requested_spec or self.actual_version


@dataclass(frozen=True)
class ReleaseTimeline:
    """Release history of a package in registry-reported order."""

    package_name: str
    versions: Tuple[str, ...]
    published: Mapping[str, datetime]

    def published_at(self, version: str) -> Optional[datetime]:
        return self.published.get(version)


@dataclass(frozen=True)
class PackageNode:
    """A resolved package entry of the lockfile graph."""

    version: str
    resolved: Optional[str] = None
    integrity: Optional[str] = None
    dev: bool = False
    requires: Dict[str, str] = field(default_factory=dict)
    dependencies: Dict[str, "PackageNode"] = field(default_factory=dict)


@dataclass(frozen=True)
class DependencyGraph:
    """Root requirements plus the flat top-level package map of a lockfile."""

    dependencies: Dict[str, str] = field(default_factory=dict)
    dev_dependencies: Dict[str, str] = field(default_factory=dict)
    packages: Dict[str, PackageNode] = field(default_factory=dict)

    def is_direct(self, name: str) -> bool:
        return name in self.dependencies or name in self.dev_dependencies


@dataclass(frozen=True)
class CacheEntry:
    """Raw registry metadata stored on disk for one package."""

    package_name: str
    content: Dict[str, Any]
    written_at: datetime


class DecisionStatus(str, Enum):
    PASS = "pass"
    DOWNGRADE = "downgrade"
    NO_ALTERNATIVE = "no-alternative"
    INCONCLUSIVE = "inconclusive"


@dataclass(frozen=True)
class Decision:
    """Outcome of checking one package against the cutoff."""

    package_name: str
    installed_version: str
    status: DecisionStatus
    installed_published: Optional[datetime] = None
    recommended_version: Optional[str] = None
    recommended_published: Optional[datetime] = None
    save_type: str = "exact"
    reason: Optional[str] = None

    @property
    def passed(self) -> bool:
        return self.status is DecisionStatus.PASS

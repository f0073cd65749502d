"""
Cutoff resolution over a package's release timeline.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import List, Mapping, Optional, Sequence, Tuple

from .errors import MissingVersionMetadata, NoAlternative
from .models import Decision, DecisionStatus, ReleaseTimeline


logger = logging.getLogger(__name__)

_NPM_SEMVER_RE = re.compile(
    r"^v?(?P<major>0|[1-9]\d*)\.(?P<minor>0|[1-9]\d*)\.(?P<patch>0|[1-9]\d*)"
    r"(?:-(?P<prerelease>[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*))?"
    r"(?:\+[0-9A-Za-z-]+(?:\.[0-9A-Za-z-]+)*)?$"
)


def is_prerelease(version: str) -> bool:
    """npm marks pre-releases with a ``-`` separated suffix."""
    return len(version.split("-")) > 1


def npm_semver_key(version: str) -> Optional[Tuple]:
    """Sort key for npm semver strings, or None when the string is not semver.

    A leading ``v`` and build metadata are ignored; a pre-release sorts below
    its release, and numeric identifiers sort below alphanumeric ones.
    """
    match = _NPM_SEMVER_RE.match(version.strip())
    if match is None:
        return None
    release = (int(match["major"]), int(match["minor"]), int(match["patch"]))
    prerelease = match["prerelease"]
    if prerelease is None:
        return release + (1, ())
    identifiers = tuple(
        (0, int(part), "") if part.isdigit() else (1, 0, part)
        for part in prerelease.split(".")
    )
    return release + (0, identifiers)


def _candidate_sort_key(version: str, published: datetime) -> Tuple:
    semver = npm_semver_key(version)
    return (published, semver is not None, semver or ())


def select_candidates(
    timeline: ReleaseTimeline, include_prerelease: bool
) -> List[str]:
    """Versions eligible for recommendation, in chronological order."""
    candidates = [
        ver
        for ver in timeline.versions
        if ver in timeline.published and (include_prerelease or not is_prerelease(ver))
    ]
    stamps = [timeline.published[ver] for ver in candidates]
    if any(later < earlier for earlier, later in zip(stamps, stamps[1:])):
        logger.debug(
            "Release order of %s is not chronological, sorting by publish time",
            timeline.package_name,
        )
        candidates.sort(key=lambda ver: _candidate_sort_key(ver, timeline.published[ver]))
    return candidates


def bisect_candidates(
    candidates: Sequence[str],
    published: Mapping[str, datetime],
    cutoff: datetime,
) -> str:
    """Binary search chronologically ordered candidates for the newest one
    published at or before ``cutoff``.

    The window ``[lo, hi)`` halves on every comparison until one candidate is left.
    Raises NoAlternative when even that candidate is newer than the cutoff.
    """
    if not candidates:
        raise NoAlternative("no candidate versions to choose from")

    lo, hi = 0, len(candidates)
    while hi - lo > 1:
        mid = lo + (hi - lo) // 2
        if published[candidates[mid]] > cutoff:
            hi = mid
        else:
            lo = mid

    answer = candidates[lo]
    if published[answer] > cutoff:
        raise NoAlternative(
            f"every candidate is newer than the cutoff (oldest is {answer})"
        )
    return answer


def resolve(
    timeline: ReleaseTimeline,
    installed_version: str,
    cutoff: datetime,
    include_prerelease: bool = False,
    save_type: str = "exact",
) -> Decision:
    """Check ``installed_version`` against ``cutoff``.

    Args:
        timeline: Release timeline of the package
        installed_version: Version selected by the lockfile
        cutoff: Versions published strictly before this moment pass
        include_prerelease: Allow pre-release versions as recommendations
        save_type: npm save flag carried into the decision

    Returns:
        A PASS decision, or a DOWNGRADE decision naming the newest version
        published at or before the cutoff

    Raises:
        MissingVersionMetadata: installed version absent from the timeline
        NoAlternative: no version can be recommended
    """
    installed_at = timeline.published_at(installed_version)
    if installed_at is None:
        raise MissingVersionMetadata(
            f"{timeline.package_name} has no {installed_version} in registry metadata"
        )

    if installed_at < cutoff:
        return Decision(
            package_name=timeline.package_name,
            installed_version=installed_version,
            status=DecisionStatus.PASS,
            installed_published=installed_at,
            save_type=save_type,
        )

    candidates = select_candidates(timeline, include_prerelease)
    if not candidates:
        raise NoAlternative(
            f"{timeline.package_name} has no eligible versions to downgrade to"
        )

    recommended = bisect_candidates(candidates, timeline.published, cutoff)
    return Decision(
        package_name=timeline.package_name,
        installed_version=installed_version,
        status=DecisionStatus.DOWNGRADE,
        installed_published=installed_at,
        recommended_version=recommended,
        recommended_published=timeline.published[recommended],
        save_type=save_type,
    )

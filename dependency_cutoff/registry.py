"""
npm registry metadata lookups through the ``npm info`` command.
"""

from __future__ import annotations

import json
import logging
import re
import subprocess
from typing import Any, Callable, Dict, Optional

from .cache import MetadataCache
from .config import CheckerConfig
from .errors import InvalidInput, LookupFailed
from .models import ReleaseTimeline
from .time_utils import parse_timestamp


logger = logging.getLogger(__name__)

# https://github.com/dword-design/package-name-regex
PACKAGE_NAME_RE = re.compile(r"^(@[a-z0-9-~][a-z0-9-._~]*/)?[a-z0-9-~][a-z0-9-._~]*$")

# https://semver.org/#is-there-a-suggested-regular-expression-regex-to-check-a-semver-string
# extended with ~ ^ prefixes and * / x wildcards.
SEMVER_RANGE_RE = re.compile(
    r"^(?:\*|x|[~^]?(0|[1-9]\d*)(?:\.(?:\*|x|(0|[1-9]\d*)(?:\.(?:\*|x|(0|[1-9]\d*)))?))?)"
    r"(?:-((?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*)(?:\.(?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*))*))?"
    r"(?:\+([0-9a-zA-Z-]+(?:\.[0-9a-zA-Z-]+)*))?$"
)

NON_VERSION_TIME_KEYS = ("created", "modified")

Runner = Callable[..., "subprocess.CompletedProcess[str]"]


def validate_lookup(package_name: str, version_spec: str) -> None:
    """Reject names and specs that could smuggle extra arguments into ``npm``."""
    if not PACKAGE_NAME_RE.match(package_name or ""):
        raise InvalidInput(f"{package_name!r} doesn't match the npm package name grammar")
    if not SEMVER_RANGE_RE.match(version_spec or ""):
        raise InvalidInput(f"{version_spec!r} doesn't match the semver range grammar")


def timeline_from_metadata(package_name: str, metadata: Dict[str, Any]) -> ReleaseTimeline:
    """Build a ReleaseTimeline from ``npm info --json`` output.

    Keys of ``time`` that are not versions (``created``, ``modified`` or
    unpublished versions) and unparseable timestamps are dropped.
    """
    versions = metadata.get("versions")
    if isinstance(versions, str):
        versions = [versions]
    time_data = metadata.get("time")
    if not isinstance(versions, list) or not isinstance(time_data, dict):
        raise LookupFailed(f"metadata for {package_name} lacks versions or time")

    ordered = tuple(str(ver) for ver in versions)
    known = set(ordered)
    published = {}
    for ver, timestamp in time_data.items():
        if ver in NON_VERSION_TIME_KEYS or ver not in known:
            continue
        pub_date = parse_timestamp(timestamp)
        if pub_date is None:
            logger.debug("Skipping unparseable timestamp %s@%s: %r", package_name, ver, timestamp)
            continue
        published[ver] = pub_date

    return ReleaseTimeline(package_name=package_name, versions=ordered, published=published)


class NpmRegistryClient:
    """Fetch release timelines, consulting the metadata cache first."""

    def __init__(
        self,
        cache: MetadataCache,
        max_output_buffer: int,
        timeout: Optional[float] = None,
        runner: Optional[Runner] = None,
    ) -> None:
        self.cache = cache
        self.max_output_buffer = max_output_buffer
        self.timeout = timeout
        self._runner = runner or subprocess.run

    @classmethod
    def from_config(
        cls, config: CheckerConfig, runner: Optional[Runner] = None
    ) -> "NpmRegistryClient":
        cache = MetadataCache(config.cache_dir, ignore_cache=config.ignore_cache)
        return cls(
            cache,
            max_output_buffer=config.max_output_buffer,
            timeout=config.lookup_timeout,
            runner=runner,
        )

    def fetch(self, package_name: str, version_spec: str) -> ReleaseTimeline:
        validate_lookup(package_name, version_spec)

        entry = self.cache.get(package_name)
        if entry is not None:
            return timeline_from_metadata(package_name, entry.content)

        info = self._npm_info(package_name, version_spec)
        try:
            self.cache.put(package_name, info)
        except OSError as e:
            logger.warning("Could not cache metadata for %s: %s", package_name, e)
        return timeline_from_metadata(package_name, info)

    def _npm_info(self, package_name: str, version_spec: str) -> Dict[str, Any]:
        cmd = ["npm", "info", "--json", f"{package_name}@{version_spec}"]
        logger.debug("Running %s", " ".join(cmd))
        try:
            result = self._runner(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except (subprocess.TimeoutExpired, OSError) as e:
            raise LookupFailed(f"npm info failed for {package_name}@{version_spec}: {e}") from e

        stdout = result.stdout or ""
        if result.stderr:
            logger.debug("npm info stderr for %s: %s", package_name, result.stderr.strip())
        if len(stdout.encode("utf-8")) > self.max_output_buffer:
            raise LookupFailed(
                f"npm info output for {package_name} exceeds {self.max_output_buffer} bytes"
            )
        if result.returncode != 0:
            raise LookupFailed(
                f"npm info exited with {result.returncode} for {package_name}@{version_spec}"
            )

        try:
            data = json.loads(stdout)
        except json.JSONDecodeError as e:
            raise LookupFailed(f"npm info returned invalid JSON for {package_name}: {e}") from e

        # Ambiguous specs yield one object per matching version.
        if isinstance(data, list):
            if not data:
                raise LookupFailed(f"npm info returned no versions for {package_name}@{version_spec}")
            data = data[0]
        if not isinstance(data, dict):
            raise LookupFailed(f"npm info returned unexpected data for {package_name}")
        return data

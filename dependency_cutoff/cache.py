"""
Disk-backed cache of registry metadata.
"""

from __future__ import annotations

import json
import logging
import time
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from .models import CacheEntry


logger = logging.getLogger(__name__)

FRESHNESS_WINDOW = timedelta(hours=24)


class MetadataCache:
    """One JSON file per package, fresh for a fixed window after writing.

    The file modification time is the freshness signal. There is no eviction
    and no cross-process locking: entries are only ever overwritten.
    """

    def __init__(
        self,
        cache_dir: Path,
        ignore_cache: bool = False,
        freshness_window: timedelta = FRESHNESS_WINDOW,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.cache_dir = Path(cache_dir).expanduser()
        self.ignore_cache = ignore_cache
        self.freshness_window = freshness_window
        self._clock = clock

    def path_for(self, package_name: str) -> Path:
        # Scoped names ("@scope/pkg") land in a per-scope sub-directory.
        return self.cache_dir / f"{package_name}.json"

    def get(self, package_name: str) -> Optional[CacheEntry]:
        if self.ignore_cache:
            return None

        cache_file = self.path_for(package_name)
        if not cache_file.exists():
            return None

        mtime = cache_file.stat().st_mtime
        if self._clock() - mtime > self.freshness_window.total_seconds():
            logger.debug("Cache stale: %s", package_name)
            return None

        try:
            content = json.loads(cache_file.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable cache file %s: %s", cache_file, e)
            return None
        if not isinstance(content, dict):
            logger.warning("Ignoring malformed cache file %s", cache_file)
            return None

        logger.debug("Cache hit: %s", package_name)
        return CacheEntry(
            package_name=package_name,
            content=content,
            written_at=datetime.fromtimestamp(mtime, tz=timezone.utc),
        )

    def put(self, package_name: str, content: Dict[str, Any]) -> Path:
        cache_file = self.path_for(package_name)
        cache_file.parent.mkdir(parents=True, exist_ok=True)
        cache_file.write_text(json.dumps(content), encoding="utf-8")
        return cache_file

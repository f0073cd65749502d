"""
Run configuration.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

from .errors import InvalidInput


logger = logging.getLogger(__name__)

DEFAULT_PARALLEL_LIMIT = 8
DEFAULT_MAX_OUTPUT_BUFFER = 5 * 1024 * 1024
DEFAULT_CACHE_DIR = Path.home() / ".npm-dependency-date"

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _env_flag(environ: Mapping[str, str], name: str) -> bool:
    return environ.get(name, "").strip().lower() in _TRUE_VALUES


def _env_positive_int(environ: Mapping[str, str], name: str, default: int) -> int:
    """Positive integer from the environment; anything else falls back to ``default``."""
    raw = environ.get(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        value = 0
    if value < 1:
        logger.warning("Ignoring %s=%r, using %s", name, raw, default)
        return default
    return value


@dataclass(frozen=True)
class CheckerConfig:
    """Settings shared by the registry client and the walker.

    Attributes:
        ignore_cache: Treat every cache entry as stale (writes still happen)
        use_partial_versions: Allow pre-release versions as recommendations
        process_full_graph: Also walk transitive dependencies
        parallel_limit: Maximum number of lookups in flight
        max_output_buffer: Maximum accepted size of ``npm info`` output in bytes
        cache_dir: Directory holding the metadata cache
        lookup_timeout: Seconds before an ``npm info`` call is abandoned
        show_progress: Display a progress bar on stderr
    """

    ignore_cache: bool = False
    use_partial_versions: bool = False
    process_full_graph: bool = False
    parallel_limit: int = DEFAULT_PARALLEL_LIMIT
    max_output_buffer: int = DEFAULT_MAX_OUTPUT_BUFFER
    cache_dir: Path = field(default_factory=lambda: DEFAULT_CACHE_DIR)
    lookup_timeout: Optional[float] = None
    show_progress: bool = False

    def __post_init__(self) -> None:
        if self.parallel_limit < 1:
            raise InvalidInput(f"parallel_limit must be positive, got {self.parallel_limit}")
        if self.max_output_buffer < 1:
            raise InvalidInput(
                f"max_output_buffer must be positive, got {self.max_output_buffer}"
            )

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "CheckerConfig":
        """Build a config from IGNORE_CACHE, PARALLEL_LIMIT and related variables."""
        if environ is None:
            environ = os.environ
        cache_dir = environ.get("NPM_DEPENDENCY_DATE_CACHE")
        return cls(
            ignore_cache=_env_flag(environ, "IGNORE_CACHE"),
            use_partial_versions=_env_flag(environ, "USE_PARTIAL_VERSIONS"),
            process_full_graph=_env_flag(environ, "PROCESS_FULL_GRAPH"),
            parallel_limit=_env_positive_int(environ, "PARALLEL_LIMIT", DEFAULT_PARALLEL_LIMIT),
            max_output_buffer=_env_positive_int(
                environ, "MAX_BUFFER_FOR_EXEC", DEFAULT_MAX_OUTPUT_BUFFER
            ),
            cache_dir=Path(cache_dir).expanduser() if cache_dir else DEFAULT_CACHE_DIR,
        )

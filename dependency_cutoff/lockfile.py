"""
Read-only access to ``package-lock.json``.
"""

from __future__ import annotations

import json
import logging
import subprocess
from pathlib import Path
from typing import Any, Dict, Optional

from .errors import LockfileError
from .models import DependencyGraph, PackageNode


logger = logging.getLogger(__name__)

LOCKFILE_NAME = "package-lock.json"
_NODE_MODULES = "node_modules/"


def find_project_root(cwd: Optional[Path] = None) -> Path:
    """Ask ``npm prefix`` for the project root, falling back to ``cwd``."""
    cwd = Path(cwd or Path.cwd())
    try:
        result = subprocess.run(
            ["npm", "prefix"],
            capture_output=True,
            text=True,
            cwd=cwd,
            timeout=30,
        )
    except (subprocess.TimeoutExpired, FileNotFoundError) as e:
        logger.warning("npm prefix failed, using %s: %s", cwd, e)
        return cwd
    prefix = result.stdout.strip()
    if result.returncode != 0 or not prefix:
        logger.warning("npm prefix exited with %s, using %s", result.returncode, cwd)
        return cwd
    return Path(prefix)


def _node_from_entry(entry: Dict[str, Any]) -> PackageNode:
    children = entry.get("dependencies") or {}
    return PackageNode(
        version=str(entry.get("version", "")),
        resolved=entry.get("resolved"),
        integrity=entry.get("integrity"),
        dev=bool(entry.get("dev", False)),
        requires=dict(entry.get("requires") or {}),
        dependencies={
            name: _node_from_entry(child)
            for name, child in children.items()
            if isinstance(child, dict)
        },
    )


def _nodes_from_packages(packages: Dict[str, Any]) -> Dict[str, PackageNode]:
    """Rebuild the nested graph from lockfile v3 ``node_modules/...`` keys."""
    top: Dict[str, PackageNode] = {}
    by_path: Dict[str, PackageNode] = {}
    paths = [p for p in packages if p.startswith(_NODE_MODULES)]
    for path in sorted(paths, key=lambda p: p.count(_NODE_MODULES)):
        entry = packages[path]
        if not isinstance(entry, dict) or "version" not in entry:
            continue
        parent_path, _, name = path.rpartition(_NODE_MODULES)
        parent_path = parent_path.rstrip("/")
        node = PackageNode(
            version=str(entry["version"]),
            resolved=entry.get("resolved"),
            integrity=entry.get("integrity"),
            dev=bool(entry.get("dev", False)),
            requires=dict(entry.get("dependencies") or {}),
        )
        by_path[path] = node
        if not parent_path:
            top[name] = node
        elif parent_path in by_path:
            by_path[parent_path].dependencies[name] = node
        else:
            logger.debug("Skipping %s: parent %s is not in the lockfile", path, parent_path)
    return top


def _require_object(value: Any, where: str) -> Dict[str, Any]:
    if not isinstance(value, dict):
        raise LockfileError(f"{where} is not an object")
    return value


def parse_lockfile(data: Dict[str, Any]) -> DependencyGraph:
    """Build a DependencyGraph from parsed lockfile JSON.

    Raises:
        LockfileError: the JSON does not have the shape of a package-lock file
    """
    data = _require_object(data, "lockfile root")
    packages = _require_object(data.get("packages") or {}, ".packages")
    root = _require_object(packages.get("", {}), '.packages[""]')

    try:
        if "dependencies" in data:
            entries = _require_object(data.get("dependencies") or {}, ".dependencies")
            flat = {
                name: _node_from_entry(entry)
                for name, entry in entries.items()
                if isinstance(entry, dict)
            }
        else:
            flat = _nodes_from_packages(packages)

        return DependencyGraph(
            dependencies=dict(_require_object(root.get("dependencies") or {}, "dependencies")),
            dev_dependencies=dict(
                _require_object(root.get("devDependencies") or {}, "devDependencies")
            ),
            packages=flat,
        )
    except (AttributeError, TypeError, ValueError) as e:
        raise LockfileError(f"malformed lockfile entry: {e}") from e


def load_lockfile(path: Path) -> DependencyGraph:
    """Load the dependency graph from a lockfile.

    Raises:
        LockfileError: the file is missing, unreadable or not valid JSON
    """
    path = Path(path)
    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        raise LockfileError(f"Cannot read {path}: {e}") from e
    graph = parse_lockfile(data)
    logger.info(
        "Loaded %s: %d dependencies, %d devDependencies, %d packages",
        path,
        len(graph.dependencies),
        len(graph.dev_dependencies),
        len(graph.packages),
    )
    return graph

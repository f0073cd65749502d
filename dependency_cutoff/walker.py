"""
Walk a lockfile's dependency graph and check every package against a cutoff.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Dict, Iterable, Iterator, List, Mapping, Optional

from tqdm import tqdm

from .config import CheckerConfig
from .errors import (
    GraphDataMissing,
    InvalidInput,
    LookupFailed,
    MissingVersionMetadata,
    NoAlternative,
)
from .interfaces import MetadataClient
from .models import Decision, DecisionStatus, DependencyGraph, PackageNode, PackageRef
from .resolution import resolve


logger = logging.getLogger(__name__)


class PackageState(Enum):
    UNSEEN = "unseen"
    IN_FLIGHT = "in-flight"
    DONE = "done"


class RunRegistry:
    """Names already taken by a walk. A name is resolved at most once per run."""

    def __init__(self) -> None:
        self._states: Dict[str, PackageState] = {}
        self._lock = threading.Lock()

    def claim(self, name: str) -> bool:
        """Move ``name`` from UNSEEN to IN_FLIGHT; False if it was already taken."""
        with self._lock:
            if name in self._states:
                return False
            self._states[name] = PackageState.IN_FLIGHT
            return True

    def mark_done(self, name: str) -> None:
        with self._lock:
            self._states[name] = PackageState.DONE

    def state(self, name: str) -> PackageState:
        with self._lock:
            return self._states.get(name, PackageState.UNSEEN)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._states

    def __len__(self) -> int:
        with self._lock:
            return len(self._states)


class WalkMode(Enum):
    DIRECT_ONLY = "direct"
    FULL_GRAPH = "full"


@dataclass(frozen=True)
class WorkItem:
    """One edge of the graph waiting in the worklist."""

    ref: PackageRef
    save_type: str
    node: Optional[PackageNode] = None
    check: bool = True


class DependencyWalker:
    """Check the packages of a DependencyGraph with bounded parallelism."""

    def __init__(self, client: MetadataClient, config: CheckerConfig) -> None:
        self.client = client
        self.config = config

    def walk(
        self,
        graph: DependencyGraph,
        cutoff: datetime,
        mode: Optional[WalkMode] = None,
        registry: Optional[RunRegistry] = None,
    ) -> List[Decision]:
        """Run the direct pass, then the full-graph pass when requested.

        Blocks until every queued package has been checked. Use
        ``walk_async`` from code that already runs an event loop.
        """
        return asyncio.run(self.walk_async(graph, cutoff, mode, registry))

    async def walk_async(
        self,
        graph: DependencyGraph,
        cutoff: datetime,
        mode: Optional[WalkMode] = None,
        registry: Optional[RunRegistry] = None,
    ) -> List[Decision]:
        if mode is None:
            mode = WalkMode.FULL_GRAPH if self.config.process_full_graph else WalkMode.DIRECT_ONLY
        if registry is None:
            registry = RunRegistry()

        decisions: List[Decision] = []
        # One lookup thread per worker; the default executor may be narrower.
        with ThreadPoolExecutor(
            max_workers=self.config.parallel_limit, thread_name_prefix="npm-info"
        ) as executor, tqdm(
            desc="Checking packages",
            unit="pkg",
            disable=not self.config.show_progress,
        ) as progress:
            for requires in (graph.dependencies, graph.dev_dependencies):
                items = list(self._direct_items(graph, requires))
                decisions.extend(
                    await self._drain(
                        graph, items, cutoff, registry, executor, progress, expand=False
                    )
                )

            if mode is WalkMode.FULL_GRAPH:
                logger.info("Checking non-direct dependencies")
                items = list(self._transitive_items(graph, graph.packages))
                decisions.extend(
                    await self._drain(
                        graph, items, cutoff, registry, executor, progress, expand=True
                    )
                )

        return decisions

    def check_package(
        self, ref: PackageRef, cutoff: datetime, save_type: str = "exact"
    ) -> Decision:
        """Fetch and resolve a single package, turning its errors into a Decision."""
        try:
            timeline = self.client.fetch(ref.name, ref.spec)
        except (InvalidInput, LookupFailed) as e:
            logger.warning("%s@%s: lookup failed: %s", ref.name, ref.spec, e)
            return self._inconclusive(ref, save_type, str(e))

        try:
            decision = resolve(
                timeline,
                ref.actual_version,
                cutoff,
                include_prerelease=self.config.use_partial_versions,
                save_type=save_type,
            )
        except MissingVersionMetadata as e:
            logger.warning("%s", e)
            return self._inconclusive(ref, save_type, str(e))
        except NoAlternative as e:
            logger.warning("%s@%s: %s", ref.name, ref.actual_version, e)
            return Decision(
                package_name=ref.name,
                installed_version=ref.actual_version,
                status=DecisionStatus.NO_ALTERNATIVE,
                installed_published=timeline.published_at(ref.actual_version),
                save_type=save_type,
                reason=str(e),
            )

        if decision.passed:
            logger.debug("%s@%s: OK", ref.name, ref.actual_version)
        else:
            logger.info(
                "%s@%s: downgrade to %s",
                ref.name,
                ref.actual_version,
                decision.recommended_version,
            )
        return decision

    def _direct_items(
        self, graph: DependencyGraph, requires: Mapping[str, str]
    ) -> Iterator[WorkItem]:
        for name, spec in requires.items():
            try:
                node = self._top_level_node(graph, name)
            except GraphDataMissing as e:
                logger.warning("%s", e)
                continue
            yield WorkItem(PackageRef(name, spec, node.version), save_type="exact")

    def _transitive_items(
        self, graph: DependencyGraph, nodes: Mapping[str, PackageNode]
    ) -> Iterator[WorkItem]:
        for name, node in nodes.items():
            yield WorkItem(
                PackageRef(name, None, node.version),
                save_type="peer",
                node=node,
                # Direct dependencies were handled by the direct pass.
                check=not graph.is_direct(name),
            )

    @staticmethod
    def _top_level_node(graph: DependencyGraph, name: str) -> PackageNode:
        node = graph.packages.get(name)
        if node is None or not node.version:
            raise GraphDataMissing(f"lockfile is missing .dependencies.{name}")
        return node

    async def _drain(
        self,
        graph: DependencyGraph,
        items: Iterable[WorkItem],
        cutoff: datetime,
        registry: RunRegistry,
        executor: ThreadPoolExecutor,
        progress: tqdm,
        expand: bool,
    ) -> List[Decision]:
        """Process a FIFO worklist with ``parallel_limit`` workers.

        With ``expand`` set, the nested dependencies of each item are appended
        to the worklist once the item itself has been processed.
        """
        queue: "asyncio.Queue[WorkItem]" = asyncio.Queue()
        for item in items:
            queue.put_nowait(item)
        decisions: List[Decision] = []

        async def worker() -> None:
            while True:
                item = await queue.get()
                try:
                    decision = await self._process(item, cutoff, registry, executor)
                    if decision is not None:
                        decisions.append(decision)
                        progress.update(1)
                    if expand and item.node is not None and item.node.dependencies:
                        for child in self._transitive_items(
                            graph, item.node.dependencies
                        ):
                            queue.put_nowait(child)
                finally:
                    queue.task_done()

        workers = [asyncio.create_task(worker()) for _ in range(self.config.parallel_limit)]
        await queue.join()
        for task in workers:
            task.cancel()
        await asyncio.gather(*workers, return_exceptions=True)
        return decisions

    async def _process(
        self,
        item: WorkItem,
        cutoff: datetime,
        registry: RunRegistry,
        executor: ThreadPoolExecutor,
    ) -> Optional[Decision]:
        if not item.check:
            return None
        name = item.ref.name
        if not registry.claim(name):
            logger.debug("Skipping %s: already checked in this run", name)
            return None
        try:
            loop = asyncio.get_running_loop()
            return await loop.run_in_executor(
                executor, self.check_package, item.ref, cutoff, item.save_type
            )
        except Exception as e:
            logger.exception("Unexpected error while checking %s", name)
            return self._inconclusive(item.ref, item.save_type, f"unexpected error: {e}")
        finally:
            registry.mark_done(name)

    @staticmethod
    def _inconclusive(ref: PackageRef, save_type: str, reason: str) -> Decision:
        return Decision(
            package_name=ref.name,
            installed_version=ref.actual_version,
            status=DecisionStatus.INCONCLUSIVE,
            save_type=save_type,
            reason=reason,
        )

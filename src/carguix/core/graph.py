"""
Dependency Graph Builder.

Walks the dependency graph of a root crate breadth-first and turns every
distinct (name, version) into exactly one package definition.

Algorithm:
    1. Push the root onto a FIFO queue.
    2. Pop a crate; if its identity was already claimed, drop it.
    3. Otherwise compute its locator, obtain the digest from the hash
       cache, enumerate its dependencies, record the definition and push
       the dependencies.
    4. Stop when the queue is empty. The first failure aborts the walk.

With several workers the queue is drained one level at a time; identities
are claimed under a lock before any work is done on them, so each crate is
still processed exactly once and the result is the same.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Deque, Dict, List, Optional, Set, Tuple

from ..errors import CarguixError, CratePackagingFailed
from .context import ResolutionContext
from .sources import CrateRef
from .types import CrateIdentity, PackageDefinition

logger = logging.getLogger(__name__)

Graph = Dict[CrateIdentity, PackageDefinition]


class DependencyGraphBuilder:
    """
    Builds the deduplicated package graph of a crate.

    Attributes:
        context: Resolution context shared by every crate source.
        workers: Number of crates processed concurrently.
        on_package: Called with each new definition as it is produced.

    Example:
        ```python
        with ResolutionContext.create(settings) as context:
            graph = DependencyGraphBuilder(context).build(root)
        ```
    """

    def __init__(
        self,
        context: ResolutionContext,
        workers: int = 1,
        on_package: Optional[Callable[[PackageDefinition], None]] = None,
    ):
        self.context = context
        self.workers = max(1, workers)
        self.on_package = on_package
        self._claimed: Set[CrateIdentity] = set()
        self._claim_lock = threading.Lock()

    def build(self, root: CrateRef) -> Graph:
        """
        Resolve the full graph of ``root``.

        Args:
            root: The crate to package.

        Returns:
            Mapping from identity to package definition, one entry per
            distinct (name, version) reachable from the root.

        Raises:
            CarguixError: The first failure encountered; no partial graph
                is returned.
        """
        self._claimed = set()
        logger.info(f"📦 Resolving dependency graph of {root.crate_name}...")

        if self.workers == 1:
            graph = self._build_sequential(root)
        else:
            graph = self._build_parallel(root)

        logger.info(f"✅ Resolved {len(graph)} packages")
        return graph

    def _build_sequential(self, root: CrateRef) -> Graph:
        graph: Graph = {}
        queue: Deque[CrateRef] = deque([root])
        while queue:
            crate = queue.popleft()
            if not self._claim(crate.identity()):
                continue
            definition, children = self._process(crate)
            graph[crate.identity()] = definition
            queue.extend(children)
        return graph

    def _build_parallel(self, root: CrateRef) -> Graph:
        graph: Graph = {}
        level: List[CrateRef] = [root]
        with ThreadPoolExecutor(max_workers=self.workers) as pool:
            while level:
                claimed = [crate for crate in level if self._claim(crate.identity())]
                results = list(pool.map(self._process, claimed))

                level = []
                for crate, (definition, children) in zip(claimed, results):
                    graph[crate.identity()] = definition
                    level.extend(children)
        return graph

    def _claim(self, identity: CrateIdentity) -> bool:
        """Atomically mark an identity as taken; False if it already was."""
        with self._claim_lock:
            if identity in self._claimed:
                return False
            self._claimed.add(identity)
            return True

    def _process(self, crate: CrateRef) -> Tuple[PackageDefinition, List[CrateRef]]:
        """Turn one crate into a definition plus its dependency references."""
        identity = crate.identity()
        logger.info(f"Processing crate {identity.name} in version {identity.version}")

        locator = crate.locator(self.context)
        try:
            digest = self.context.hash_cache.hash(locator)
        except CarguixError as e:
            raise CratePackagingFailed(identity.name, identity.version) from e

        children = crate.dependencies(self.context)
        definition = PackageDefinition(
            name=crate.definition_name(),
            package_name=crate.package_name(),
            version=identity.version,
            source=locator,
            hash=digest,
            # A crate may depend on the same package as normal and build dependency
            cargo_inputs=tuple(dict.fromkeys(child.package_name() for child in children)),
            **{k: v for k, v in crate.source.metadata().items() if v is not None},
        )

        if self.on_package is not None:
            self.on_package(definition)
        return definition, children

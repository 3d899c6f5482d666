"""
Registry Source.

A crate version published on the registry, described by its index record.
Dependencies are resolved against the index with the usual Cargo
requirement semantics: the greatest non-yanked version satisfying each
requirement is selected.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional

from ...errors import CrateNotFound, NoMatchingVersion
from ..index import IndexedCrate, IndexedVersion
from .base import CrateSource
from .crate_ref import CrateRef

if TYPE_CHECKING:
    from ..context import ResolutionContext

logger = logging.getLogger(__name__)


def _lookup(context: "ResolutionContext", crate_name: str) -> IndexedCrate:
    indexed = context.index.crate(crate_name)
    if indexed is None:
        raise CrateNotFound(crate_name)
    return indexed


@dataclass(frozen=True)
class RegistrySource(CrateSource):
    """
    One published version of a crate.

    Attributes:
        record: The index record of that version.
    """

    record: IndexedVersion

    @classmethod
    def new(
        cls,
        context: "ResolutionContext",
        crate_name: str,
        version: Optional[str] = None,
    ) -> "RegistrySource":
        """
        Look a crate up in the index.

        Args:
            context: Resolution context providing the index.
            crate_name: Crate name.
            version: Exact version string; the latest version when None.

        Raises:
            CrateNotFound: If the crate is not published.
            NoMatchingVersion: If the exact version is not published.
        """
        indexed = _lookup(context, crate_name)
        if version is None:
            return cls(indexed.latest_version())

        record = indexed.version(version)
        if record is None:
            raise NoMatchingVersion(crate_name, version)
        return cls(record)

    @classmethod
    def with_requirement(
        cls,
        context: "ResolutionContext",
        crate_name: str,
        requirement: str,
    ) -> "RegistrySource":
        """
        Select the greatest version satisfying a requirement.

        Raises:
            CrateNotFound: If the crate is not published.
            RequirementParseError: If the requirement is invalid.
            NoVersionMatchingRequirement: If no version satisfies it.
        """
        version = context.resolver.resolve(crate_name, requirement)
        logger.debug(f"{crate_name} {requirement} -> {version}")
        return cls(_lookup(context, crate_name).version(version))

    @property
    def crate_name(self) -> str:
        return self.record.name

    @property
    def crate_version(self) -> str:
        return self.record.version

    def source(self, context: "ResolutionContext") -> str:
        return context.settings.download_url(self.crate_name, self.crate_version)

    def dependencies(self, context: "ResolutionContext") -> List[CrateRef]:
        refs = []
        for dep in self.record.runtime_dependencies():
            source = RegistrySource.with_requirement(context, dep.crate_name, dep.req)
            refs.append(CrateRef(dep.crate_name, source))
        return refs

"""
Lock Source.

A crate pinned by a Cargo.lock. Its dependencies are read from the lock
record and resolved against the same lock, so the whole subgraph uses
exactly the versions the lock file chose. Unpublished (local) crates are
located through the path table collected from the manifests walked so far.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, List, Optional

from ...errors import (
    GitSourceUnsupported,
    LocalPathNotFound,
    PackageNotFoundInLock,
    UnsupportedRegistry,
)
from ..lockfile import (
    CargoLock,
    LockedPackage,
    LockReference,
    LockReferenceKind,
    parse_dependency_string,
)
from .base import EMPTY_PATHS, CratePaths, CrateSource
from .crate_ref import CrateRef

if TYPE_CHECKING:
    from ..context import ResolutionContext

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LockSource(CrateSource):
    """
    A crate pinned by a lock file.

    Attributes:
        package: The lock record of the crate.
        lock: The whole lock file, to resolve dependencies against.
        crate_paths: Directories of local crates, keyed by crate name.
    """

    package: LockedPackage
    lock: CargoLock = field(compare=False, repr=False)
    crate_paths: CratePaths = field(default_factory=lambda: EMPTY_PATHS, compare=False, repr=False)

    @classmethod
    def new(
        cls,
        crate_name: str,
        version: Optional[str],
        lock: CargoLock,
        crate_paths: CratePaths = EMPTY_PATHS,
    ) -> "LockSource":
        """
        Select a record of the lock.

        Args:
            crate_name: Crate name.
            version: Exact version, or None for the first record of the crate.
            lock: Parsed lock file.
            crate_paths: Path table for local dependencies.

        Raises:
            PackageNotFoundInLock: If no record matches.
        """
        package = lock.get_package(crate_name, version)
        if package is None:
            raise PackageNotFoundInLock(crate_name, version or "any version")
        return cls(package=package, lock=lock, crate_paths=crate_paths)

    @classmethod
    def from_path(
        cls,
        crate_name: str,
        version: Optional[str],
        lock_path: Path,
        crate_paths: CratePaths = EMPTY_PATHS,
    ) -> "LockSource":
        """
        Load a lock file and select a record of it.

        Raises:
            LockFileReadError: If the file cannot be read.
            LockFileParseError: If the file is malformed.
            PackageNotFoundInLock: If no record matches.
        """
        return cls.new(crate_name, version, CargoLock.load(lock_path), crate_paths)

    @property
    def crate_name(self) -> str:
        return self.package.name

    @property
    def crate_version(self) -> str:
        return self.package.version

    def source(self, context: "ResolutionContext") -> str:
        """
        Locator of the locked crate.

        Raises:
            GitSourceUnsupported: For a crate locked from a git repository.
            UnsupportedRegistry: For a crate locked from another registry.
        """
        package = self.package
        if package.is_crates_io:
            return context.settings.download_url(self.crate_name, self.crate_version)
        if package.is_git:
            raise GitSourceUnsupported(package.source)
        if not package.is_local:
            raise UnsupportedRegistry(self.crate_name, self.crate_version, package.source)

        directory = self.crate_paths.get(self.crate_name)
        if directory is not None:
            return Path(directory).resolve().as_uri()
        return Path.cwd().resolve().as_uri()

    def dependencies(self, context: "ResolutionContext") -> List[CrateRef]:
        """
        Resolve every dependency string of the lock record.

        Raises:
            BadLockFileDependency: If a string has an unexpected shape.
            PackageNotFoundInLock: If a referenced record is missing.
            LocalPathNotFound: If a local crate is absent from the path table.
        """
        # Imported here: path sources themselves defer to lock sources.
        from .path import PathSource

        refs = []
        for raw in self.package.dependencies:
            reference = parse_dependency_string(raw)
            if reference.kind == LockReferenceKind.LOCAL and self._is_unpublished(reference):
                directory = self.crate_paths.get(reference.name)
                if directory is None:
                    raise LocalPathNotFound(reference.name, self.crate_name, list(self.crate_paths))
                source = PathSource.new(context, directory, self.crate_paths)
            else:
                source = LockSource.new(reference.name, reference.version, self.lock, self.crate_paths)
            refs.append(CrateRef(reference.name, source))
        return refs

    def _is_unpublished(self, reference: LockReference) -> bool:
        # "name version" also names a published crate locked at several versions
        record = self.lock.get_package(reference.name, reference.version)
        return record is None or record.is_local

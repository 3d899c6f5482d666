"""
Path Source.

A crate checked out on the local filesystem. When a Cargo.lock is found in
the crate directory or one of its ancestors, dependencies follow the lock;
otherwise they are resolved from the manifest's own declarations.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Dict, List, Optional, Union

from ...config import MANIFEST_FILE_NAME
from ...errors import CanonicalizationFailed, GitDependencyUnsupported, NoPackageInManifest
from ..lockfile import CargoLock, find_lock_file
from ..manifest import CargoManifest
from .base import EMPTY_PATHS, CratePaths, CrateSource, extend_paths
from .crate_ref import CrateRef
from .lock import LockSource
from .registry import RegistrySource

if TYPE_CHECKING:
    from ..context import ResolutionContext

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PathSource(CrateSource):
    """
    A local crate.

    Attributes:
        directory: Canonical crate directory.
        manifest: Parsed Cargo.toml, with workspace inheritance resolved.
        lock: Lock record of this crate, if a lock file was found.
        crate_paths: Path table including this crate's own path dependencies.
    """

    directory: Path
    manifest: CargoManifest = field(compare=False, repr=False)
    lock: Optional[LockSource] = field(default=None, compare=False, repr=False)
    crate_paths: CratePaths = field(default_factory=lambda: EMPTY_PATHS, compare=False, repr=False)

    @classmethod
    def new(
        cls,
        context: "ResolutionContext",
        path: Union[str, Path],
        crate_paths: CratePaths = EMPTY_PATHS,
    ) -> "PathSource":
        """
        Load the crate at a directory.

        Args:
            context: Resolution context.
            path: Crate directory (or its Cargo.toml).
            crate_paths: Path table inherited from the dependent crate.

        Raises:
            CanonicalizationFailed: If the path does not exist.
            ManifestParseError: If Cargo.toml is missing or malformed.
            NoPackageInManifest: If Cargo.toml has no ``[package]``.
            LockFileReadError: If a lock file was found but cannot be read.
            LockFileParseError: If that lock file is malformed.
            PackageNotFoundInLock: If the lock file does not list this crate.
        """
        try:
            directory = Path(path).resolve(strict=True)
        except OSError as e:
            raise CanonicalizationFailed(str(path)) from e
        if directory.is_file() and directory.name == MANIFEST_FILE_NAME:
            directory = directory.parent

        manifest = CargoManifest.load(directory / MANIFEST_FILE_NAME).resolve_inherited()
        if manifest.package is None:
            raise NoPackageInManifest(str(directory / MANIFEST_FILE_NAME))

        local = {name: dep_path.resolve() for name, dep_path in manifest.local_paths().items()}
        paths = extend_paths(crate_paths, local)

        lock = None
        lock_path = find_lock_file(directory)
        if lock_path is not None:
            lock = LockSource.new(
                manifest.package.name,
                manifest.package.version,
                CargoLock.load(lock_path),
                paths,
            )
        else:
            logger.debug(f"No lock file for {manifest.package.name}, using manifest requirements")

        return cls(directory=directory, manifest=manifest, lock=lock, crate_paths=paths)

    @property
    def crate_name(self) -> str:
        return self.manifest.package.name

    @property
    def crate_version(self) -> str:
        return self.manifest.package.version

    def source(self, context: "ResolutionContext") -> str:
        return self.directory.as_uri()

    def dependencies(self, context: "ResolutionContext") -> List[CrateRef]:
        if self.lock is not None:
            return self.lock.dependencies(context)

        refs = []
        for spec in self.manifest.runtime_dependencies():
            if spec.is_local:
                source = PathSource.new(context, self.directory / spec.path, self.crate_paths)
            elif spec.is_git:
                raise GitDependencyUnsupported(spec.crate_name, self.crate_name)
            else:
                source = RegistrySource.with_requirement(context, spec.crate_name, spec.requirement)
            refs.append(CrateRef(spec.crate_name, source))
        return refs

    def metadata(self) -> Dict[str, Optional[str]]:
        package = self.manifest.package
        synopsis = package.description.strip().split("\n")[0] if package.description else None
        return {
            "home_page": package.homepage or package.repository,
            "synopsis": synopsis,
            "description": package.description,
            "license": package.license,
        }

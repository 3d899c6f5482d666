"""
carguix Core Module.

Building blocks for turning a crate into a graph of package definitions:

Inputs:
    - CargoManifest: Parse Cargo.toml
    - CargoLock: Parse Cargo.lock
    - LocalCrateIndex, SparseCrateIndex: Published versions of crates

Resolution:
    - VersionResolver: Greatest version satisfying a requirement
    - CrateRef and the crate sources (registry, lock, path, simple, git)
    - DependencyGraphBuilder: Breadth-first deduplicating walk

Hashing:
    - ContentHashCache: Persistent locator -> digest cache
"""

from .context import ResolutionContext
from .graph import DependencyGraphBuilder, Graph
from .hash_cache import CacheEntry, CacheStats, ContentHashCache, download_file, guix_hash
from .index import CrateIndex, IndexedCrate, IndexedVersion, LocalCrateIndex, SparseCrateIndex
from .lockfile import CargoLock, LockedPackage, find_lock_file, parse_dependency_string
from .manifest import CargoManifest, DependencySpec
from .sources import CrateRef, GitSource, LockSource, PathSource, RegistrySource, SimpleSource
from .types import CrateIdentity, PackageDefinition, definition_name, kebab, package_name
from .versions import VersionResolver, highest_matching_version

__all__ = [
    # Types
    "CrateIdentity",
    "PackageDefinition",
    "definition_name",
    "kebab",
    "package_name",
    # Inputs
    "CargoLock",
    "CargoManifest",
    "CrateIndex",
    "DependencySpec",
    "IndexedCrate",
    "IndexedVersion",
    "LocalCrateIndex",
    "LockedPackage",
    "SparseCrateIndex",
    "find_lock_file",
    "parse_dependency_string",
    # Resolution
    "CrateRef",
    "DependencyGraphBuilder",
    "GitSource",
    "Graph",
    "LockSource",
    "PathSource",
    "RegistrySource",
    "ResolutionContext",
    "SimpleSource",
    "VersionResolver",
    "highest_matching_version",
    # Hashing
    "CacheEntry",
    "CacheStats",
    "ContentHashCache",
    "download_file",
    "guix_hash",
]

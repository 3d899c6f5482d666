"""
Cargo.lock parsing.

A lock file pins every transitive dependency of a workspace to one exact
version. Each ``[[package]]`` record lists its own dependencies as raw
strings whose shape tells how the dependency is published:

    "serde 1.0.104 (registry+https://github.com/rust-lang/crates.io-index)"
        name, version and source: a published crate
    "serde (registry+https://github.com/rust-lang/crates.io-index)"
        name and source: the only locked version of a published crate
    "local-crate 0.1.0"
        name and version without a source: an unpublished local crate, or a
        published crate locked at several versions (the record tells which)
"""

from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from ..config import CRATES_IO_LOCK_SOURCES, LOCK_FILE_NAME
from ..errors import BadLockFileDependency, LockFileParseError, LockFileReadError

logger = logging.getLogger(__name__)


class LockReferenceKind(StrEnum):
    """
    How a lock dependency string refers to its target.

    Attributes:
        PINNED: name, version and source tag.
        NAMED: name and source tag; the version is the only locked one.
        LOCAL: name and version without a source; resolved by path unless
            the matching record names a source.
    """

    PINNED = "pinned"
    NAMED = "named"
    LOCAL = "local"


@dataclass(frozen=True)
class LockReference:
    """A parsed lock dependency string."""

    kind: LockReferenceKind
    name: str
    version: Optional[str] = None
    source: Optional[str] = None


def _is_source_tag(token: str) -> bool:
    return token.startswith("(") and token.endswith(")")


def parse_dependency_string(raw: str) -> LockReference:
    """
    Classify a lock dependency string by its whitespace-separated tokens.

    Args:
        raw: Dependency string from a ``[[package]]`` record.

    Returns:
        LockReference describing the target.

    Raises:
        BadLockFileDependency: If the string has any other shape.
    """
    tokens = raw.split()
    if len(tokens) == 3:
        name, version, source = tokens
        return LockReference(LockReferenceKind.PINNED, name, version, source.strip("()"))
    if len(tokens) == 2:
        name, second = tokens
        if _is_source_tag(second):
            return LockReference(LockReferenceKind.NAMED, name, source=second.strip("()"))
        return LockReference(LockReferenceKind.LOCAL, name, second)
    raise BadLockFileDependency(raw)


@dataclass(frozen=True)
class LockedPackage:
    """
    A ``[[package]]`` record.

    Attributes:
        name: Crate name.
        version: Exact locked version.
        source: Source tag (``registry+...``, ``git+...``), None for local crates.
        checksum: SHA-256 of the published .crate file.
        dependencies: Raw dependency strings.
    """

    name: str
    version: str
    source: Optional[str] = None
    checksum: Optional[str] = None
    dependencies: Tuple[str, ...] = ()

    @property
    def is_registry(self) -> bool:
        """Published on a registry (git or sparse index protocol)."""
        return self.source is not None and self.source.startswith(("registry+", "sparse+"))

    @property
    def is_crates_io(self) -> bool:
        return self.is_registry and self.source.rstrip("/") in CRATES_IO_LOCK_SOURCES

    @property
    def is_git(self) -> bool:
        return self.source is not None and self.source.startswith("git+")

    @property
    def is_local(self) -> bool:
        return self.source is None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LockedPackage":
        return cls(
            name=data["name"],
            version=data["version"],
            source=data.get("source"),
            checksum=data.get("checksum"),
            dependencies=tuple(data.get("dependencies", [])),
        )


@dataclass
class CargoLock:
    """
    Represents the parsed content of a Cargo.lock file.

    Attributes:
        packages: Locked packages in file order.
        version: Lock file format version (None for the original format).
        path: Where the lock file was loaded from.
    """

    packages: List[LockedPackage] = field(default_factory=list)
    version: Optional[int] = None
    path: Optional[Path] = None

    def __len__(self) -> int:
        return len(self.packages)

    @classmethod
    def load(cls, path: Path) -> "CargoLock":
        """
        Load and parse a Cargo.lock file.

        Raises:
            LockFileReadError: If the file cannot be read.
            LockFileParseError: If the file is malformed.
        """
        try:
            content = path.read_text(encoding="utf-8")
        except OSError as e:
            raise LockFileReadError(str(path)) from e
        return cls.loads(content, path)

    @classmethod
    def loads(cls, content: str, path: Optional[Path] = None) -> "CargoLock":
        try:
            data = tomllib.loads(content)
            packages = [LockedPackage.from_dict(p) for p in data.get("package", [])]
        except (tomllib.TOMLDecodeError, KeyError, TypeError) as e:
            raise LockFileParseError(str(path or "<memory>")) from e
        return cls(packages=packages, version=data.get("version"), path=path)

    def get_package(self, name: str, version: Optional[str] = None) -> Optional[LockedPackage]:
        """
        First record matching a name and, when given, a version.

        Args:
            name: Crate name.
            version: Exact version, or None for any.

        Returns:
            The record, or None if absent.
        """
        for package in self.packages:
            if package.name == name and (version is None or package.version == version):
                return package
        return None


def find_lock_file(start: Path) -> Optional[Path]:
    """
    Search a directory and its ancestors for a Cargo.lock.

    Args:
        start: Directory to start from.

    Returns:
        Path of the first lock file found, or None when the filesystem root
        is reached without one.
    """
    for directory in [start, *start.parents]:
        logger.debug(f"Looking for {LOCK_FILE_NAME} in {directory}")
        candidate = directory / LOCK_FILE_NAME
        if candidate.is_file():
            logger.debug(f"{LOCK_FILE_NAME} found at {candidate}")
            return candidate
    return None

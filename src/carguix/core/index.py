"""
Crate Index Providers.

Give access to the published versions of crates and the dependency
requirements of each version, in the crates.io index format: one file per
crate, one JSON record per line, one line per published version in
publication order.

Providers:
    - LocalCrateIndex: reads a git checkout of the crates.io index and can
      clone or refresh it.
    - SparseCrateIndex: fetches the same files over HTTP from the sparse
      index (https://index.crates.io).

Index Layout:
    1/a, 2/ab, 3/a/abc, ab/cd/abcd...   (lowercased crate name)
"""

from __future__ import annotations

import json
import logging
import subprocess
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Tuple

import requests

from ..config import CRATES_IO_INDEX_GIT_URL
from ..errors import DownloadError, IndexParseError, IndexUpdateError

logger = logging.getLogger(__name__)


def index_path(crate_name: str) -> str:
    """
    Relative path of a crate's file inside the index.

    Args:
        crate_name: Crate name (case-insensitive).

    Returns:
        Path fragment such as ``3/s/syn`` or ``se/rd/serde``.
    """
    name = crate_name.lower()
    if len(name) <= 2:
        return f"{len(name)}/{name}"
    if len(name) == 3:
        return f"3/{name[0]}/{name}"
    return f"{name[0:2]}/{name[2:4]}/{name}"


@dataclass(frozen=True)
class IndexDependency:
    """
    A dependency requirement of one published version.

    Attributes:
        name: Dependency key (the name the depending crate uses).
        req: Cargo version requirement.
        kind: "normal", "build" or "dev".
        optional: Whether the dependency is behind a feature.
        target: Platform cfg expression, if target-specific.
        package: Real crate name when the dependency is renamed.
    """

    name: str
    req: str
    kind: str = "normal"
    optional: bool = False
    target: Optional[str] = None
    package: Optional[str] = None

    @property
    def crate_name(self) -> str:
        """Name of the crate actually depended upon."""
        return self.package or self.name

    @classmethod
    def from_dict(cls, data: dict) -> "IndexDependency":
        return cls(
            name=data["name"],
            req=data["req"],
            kind=data.get("kind") or "normal",
            optional=bool(data.get("optional", False)),
            target=data.get("target"),
            package=data.get("package"),
        )


@dataclass(frozen=True)
class IndexedVersion:
    """
    One published version of a crate.

    Attributes:
        name: Crate name as published.
        version: Version string as published.
        dependencies: Declared dependencies in index order.
        checksum: SHA-256 of the .crate file.
        yanked: Whether the version was yanked.
    """

    name: str
    version: str
    dependencies: Tuple[IndexDependency, ...] = ()
    checksum: str = ""
    yanked: bool = False

    def runtime_dependencies(self) -> List[IndexDependency]:
        """Non-optional normal and build dependencies, in index order."""
        return [
            dep
            for dep in self.dependencies
            if dep.kind in ("normal", "build") and not dep.optional
        ]

    @classmethod
    def from_dict(cls, data: dict) -> "IndexedVersion":
        return cls(
            name=data["name"],
            version=data["vers"],
            dependencies=tuple(IndexDependency.from_dict(d) for d in data.get("deps", [])),
            checksum=data.get("cksum", ""),
            yanked=bool(data.get("yanked", False)),
        )


@dataclass
class IndexedCrate:
    """
    All published versions of one crate.

    Attributes:
        name: Crate name.
        versions: Published versions in publication order.
    """

    name: str
    versions: List[IndexedVersion] = field(default_factory=list)

    def latest_version(self) -> IndexedVersion:
        """
        The index's latest pointer: last published non-yanked version.

        Falls back to the last published version if all are yanked.
        """
        for version in reversed(self.versions):
            if not version.yanked:
                return version
        return self.versions[-1]

    def version(self, version: str) -> Optional[IndexedVersion]:
        """Exact lookup of a published version string."""
        for candidate in self.versions:
            if candidate.version == version:
                return candidate
        return None

    def available_versions(self) -> List[IndexedVersion]:
        """Versions eligible for requirement matching (not yanked)."""
        return [v for v in self.versions if not v.yanked]

    @classmethod
    def from_lines(cls, crate_name: str, content: str) -> "IndexedCrate":
        """
        Parse an index file.

        Raises:
            IndexParseError: If a line is not a valid index record.
        """
        versions = []
        for lineno, line in enumerate(content.splitlines(), start=1):
            if not line.strip():
                continue
            try:
                versions.append(IndexedVersion.from_dict(json.loads(line)))
            except (json.JSONDecodeError, KeyError, TypeError) as e:
                raise IndexParseError(crate_name, f"line {lineno}") from e

        if not versions:
            raise IndexParseError(crate_name, "no published versions")
        return cls(name=versions[-1].name, versions=versions)


class CrateIndex(Protocol):
    """Provider of published crate versions."""

    def crate(self, crate_name: str) -> Optional[IndexedCrate]:
        """Return the crate's versions, or None if it is not published."""
        ...


class LocalCrateIndex:
    """
    Reads a local checkout of the crates.io index.

    Parsed crates are memoized for the lifetime of the object.

    Attributes:
        path: Root of the index checkout.
        url: Git URL the checkout is cloned from.
    """

    def __init__(self, path: Path, url: str = CRATES_IO_INDEX_GIT_URL):
        self.path = path
        self.url = url
        self._crates: Dict[str, Optional[IndexedCrate]] = {}
        self._lock = threading.Lock()

    def exists(self) -> bool:
        """Check whether the index has been fetched."""
        return (self.path / ".git").exists() or (self.path / "config.json").exists()

    def crate(self, crate_name: str) -> Optional[IndexedCrate]:
        key = crate_name.lower()
        with self._lock:
            if key in self._crates:
                return self._crates[key]

        crate_file = self.path / index_path(crate_name)
        if crate_file.is_file():
            indexed = IndexedCrate.from_lines(crate_name, crate_file.read_text(encoding="utf-8"))
        else:
            logger.debug(f"{crate_name} not found in index at {crate_file}")
            indexed = None

        with self._lock:
            self._crates[key] = indexed
        return indexed

    def _run_git(self, *args: str, cwd: Optional[Path] = None) -> str:
        """
        Run a git command and return stdout.

        Raises:
            IndexUpdateError: If the command fails or times out.
        """
        cmd = ["git"] + list(args)
        logger.debug(f"Running: {' '.join(cmd)}")

        try:
            result = subprocess.run(
                cmd,
                cwd=cwd,
                capture_output=True,
                text=True,
                check=True,
                timeout=1800,
            )
            return result.stdout.strip()
        except subprocess.CalledProcessError as e:
            raise IndexUpdateError(f"git {' '.join(args)} failed", e.stderr.strip()) from e
        except subprocess.TimeoutExpired as e:
            raise IndexUpdateError(f"git {' '.join(args)} timed out") from e
        except FileNotFoundError as e:
            raise IndexUpdateError("git executable not found") from e

    def update(self) -> None:
        """
        Clone the index, or fast-forward an existing checkout.

        Raises:
            IndexUpdateError: If git fails.
        """
        if (self.path / ".git").exists():
            logger.info(f"🌐 Updating crates.io index at {self.path}...")
            self._run_git("fetch", "--depth", "1", "origin", "HEAD", cwd=self.path)
            self._run_git("reset", "--hard", "FETCH_HEAD", cwd=self.path)
        else:
            logger.info(f"🌐 Fetching crates.io index into {self.path}...")
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._run_git("clone", "--depth", "1", self.url, str(self.path))

        with self._lock:
            self._crates.clear()


class SparseCrateIndex:
    """
    Fetches index files on demand from a sparse HTTP index.

    Attributes:
        base_url: Root URL of the sparse index.
        timeout: Seconds before a request is abandoned.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self._crates: Dict[str, Optional[IndexedCrate]] = {}
        self._lock = threading.Lock()

    def crate(self, crate_name: str) -> Optional[IndexedCrate]:
        key = crate_name.lower()
        with self._lock:
            if key in self._crates:
                return self._crates[key]

        url = f"{self.base_url}/{index_path(crate_name)}"
        logger.debug(f"Fetching index entry {url}")
        try:
            response = self.session.get(url, timeout=self.timeout)
        except (requests.Timeout, requests.ConnectionError) as e:
            raise DownloadError(url, str(e), retryable=True) from e
        except requests.RequestException as e:
            raise DownloadError(url, str(e)) from e

        if response.status_code in (404, 410, 451):
            indexed = None
        elif response.ok:
            indexed = IndexedCrate.from_lines(crate_name, response.text)
        else:
            raise DownloadError(
                url,
                f"HTTP {response.status_code}",
                retryable=response.status_code >= 500,
            )

        with self._lock:
            self._crates[key] = indexed
        return indexed

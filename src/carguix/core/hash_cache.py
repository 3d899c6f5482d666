"""
Content Hash Cache.

Persistent map from a source locator to the content digest Guix uses to
verify the fetched source. Locators are immutable (a registry download URL
names one published artifact, a ``file://`` URI names one directory for
the lifetime of a run), so entries are never invalidated automatically.

Database Structure (SQLite):
    schema_version(version, applied_at, description)
    hashes(locator PRIMARY KEY, digest, created_at)

Guarantees:
    - A cache hit performs no I/O beyond the lookup.
    - A locator is hashed at most once, even with concurrent callers.
    - An entry is written strictly after its digest was computed, and
      committed before hash() returns.
"""

from __future__ import annotations

import base64
import hashlib
import logging
import sqlite3
import subprocess
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, Iterator, List, Optional, TypeVar
from urllib.parse import urlparse
from urllib.request import url2pathname

import requests

from ..config import Settings
from ..errors import (
    CarguixError,
    DownloadError,
    FileCreationError,
    HashCacheError,
    HashComputationError,
    UrlNotAFilePath,
)

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

T = TypeVar("T")

Downloader = Callable[[str, Path, float], None]
Hasher = Callable[[Path, float], str]


def download_file(url: str, dest: Path, timeout: float) -> None:
    """
    Stream a URL into a local file.

    Args:
        url: Artifact URL.
        dest: Destination file (overwritten).
        timeout: Seconds to wait for the server between bytes.

    Raises:
        DownloadError: On HTTP or network failure (retryable for timeouts,
            connection failures and server errors).
        FileCreationError: If the destination cannot be written.
    """
    logger.debug(f"Downloading {url} -> {dest}")
    try:
        with requests.get(url, stream=True, timeout=timeout) as response:
            if not response.ok:
                raise DownloadError(
                    url,
                    f"HTTP {response.status_code}",
                    retryable=response.status_code >= 500,
                )
            with open(dest, "wb") as f:
                for chunk in response.iter_content(chunk_size=65536):
                    f.write(chunk)
    except (requests.Timeout, requests.ConnectionError) as e:
        dest.unlink(missing_ok=True)
        raise DownloadError(url, str(e), retryable=True) from e
    except requests.RequestException as e:
        dest.unlink(missing_ok=True)
        raise DownloadError(url, str(e)) from e
    except OSError as e:
        dest.unlink(missing_ok=True)
        raise FileCreationError(url) from e


def guix_hash(path: Path, timeout: float) -> str:
    """
    Compute the Guix content hash of a file or a directory.

    Files are hashed as-is (``guix hash FILE``); directories are hashed
    recursively, excluding version-control metadata (``guix hash -rx DIR``).

    Raises:
        HashComputationError: If guix fails, is missing, or times out
            (retryable).
    """
    if path.is_dir():
        cmd = ["guix", "hash", "-rx", str(path)]
    else:
        cmd = ["guix", "hash", str(path)]
    logger.debug(f"Running: {' '.join(cmd)}")

    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            check=True,
            timeout=timeout,
        )
    except subprocess.CalledProcessError as e:
        raise HashComputationError(str(path), e.stderr.strip()) from e
    except subprocess.TimeoutExpired as e:
        raise HashComputationError(str(path), f"timed out after {timeout}s", retryable=True) from e
    except FileNotFoundError as e:
        raise HashComputationError(str(path), "guix executable not found") from e
    return result.stdout.strip()


def file_locator_path(locator: str) -> Path:
    """
    Filesystem path of a ``file://`` locator.

    Raises:
        UrlNotAFilePath: If the locator does not name a local path.
    """
    parsed = urlparse(locator)
    if parsed.scheme != "file" or parsed.netloc not in ("", "localhost"):
        raise UrlNotAFilePath(locator)
    return Path(url2pathname(parsed.path))


def scratch_file_name(locator: str) -> str:
    """Collision-free file name for a downloaded artifact."""
    digest = hashlib.sha256(locator.encode("utf-8")).digest()
    return base64.urlsafe_b64encode(digest).decode("ascii").rstrip("=") + ".tar.gz"


@dataclass
class CacheEntry:
    """
    One persisted digest.

    Attributes:
        locator: Source locator the digest belongs to.
        digest: Content hash.
        created_at: When the digest was computed.
    """

    locator: str
    digest: str
    created_at: datetime


@dataclass
class CacheStats:
    """Aggregate information about the hash database."""

    total_entries: int
    oldest_entry: Optional[datetime] = None
    newest_entry: Optional[datetime] = None


class ContentHashCache:
    """
    Persistent locator -> digest cache backed by SQLite.

    Downloading and hashing are delegated to the ``download`` and ``hasher``
    callables so they can be substituted in tests.

    Attributes:
        db_path: Location of the SQLite database.
        scratch_dir: Directory receiving downloaded artifacts.
        settings: Timeouts and retry policy.
        computed: Number of digests computed (cache misses) by this instance.

    Example:
        ```python
        cache = ContentHashCache(Path("hash.db"), Path("/tmp/scratch"))
        digest = cache.hash("https://crates.io/api/v1/crates/serde/1.0.104/download")
        ```
    """

    def __init__(
        self,
        db_path: Path,
        scratch_dir: Path,
        settings: Optional[Settings] = None,
        download: Optional[Downloader] = None,
        hasher: Optional[Hasher] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.db_path = db_path
        self.scratch_dir = scratch_dir
        self.settings = settings or Settings()
        self.download = download or download_file
        self.hasher = hasher or guix_hash
        self.computed = 0
        self._sleep = sleep
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()
        self._init_db()

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        """Context manager for database connections."""
        conn = sqlite3.connect(self.db_path, timeout=30)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA synchronous=FULL")
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_db(self) -> None:
        """Initialize database schema with versioning."""
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            with self._connection() as conn:
                conn.execute("""
                    CREATE TABLE IF NOT EXISTS schema_version (
                        version INTEGER PRIMARY KEY,
                        applied_at TEXT NOT NULL,
                        description TEXT
                    )
                """)
                row = conn.execute("SELECT MAX(version) AS v FROM schema_version").fetchone()
                current = row["v"] if row and row["v"] else 0
                if current < 1:
                    conn.execute("""
                        CREATE TABLE IF NOT EXISTS hashes (
                            locator TEXT PRIMARY KEY,
                            digest TEXT NOT NULL,
                            created_at TEXT NOT NULL
                        )
                    """)
                    conn.execute(
                        "INSERT INTO schema_version VALUES (?, ?, ?)",
                        (SCHEMA_VERSION, _now().isoformat(), "Initial schema"),
                    )
        except (sqlite3.Error, OSError) as e:
            raise HashCacheError("open") from e

    def get(self, locator: str) -> Optional[str]:
        """
        Look a locator up without computing anything.

        Raises:
            HashCacheError: If the database cannot be read.
        """
        try:
            with self._connection() as conn:
                row = conn.execute(
                    "SELECT digest FROM hashes WHERE locator = ?", (locator,)
                ).fetchone()
        except sqlite3.Error as e:
            raise HashCacheError("read", locator) from e
        return row["digest"] if row else None

    def hash(self, locator: str) -> str:
        """
        Return the content digest of a source locator.

        Args:
            locator: ``file://`` URI or artifact download URL.

        Returns:
            The digest string.

        Raises:
            UrlNotAFilePath: If a ``file`` locator names a remote host.
            DownloadError: If downloading fails after retries.
            FileCreationError: If the download cannot be written.
            HashComputationError: If hashing fails after retries.
            HashCacheError: If the database cannot be read or written.
        """
        digest = self.get(locator)
        if digest is not None:
            logger.debug(f"Cache hit for {locator}")
            return digest

        with self._lock_for(locator):
            # Another worker may have filled the entry while we waited.
            digest = self.get(locator)
            if digest is not None:
                return digest

            logger.info(f"Cache miss for {locator}, computing hash")
            digest = self._compute(locator)
            self._insert(locator, digest)
            return digest

    def _lock_for(self, locator: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(locator, threading.Lock())

    def _compute(self, locator: str) -> str:
        if urlparse(locator).scheme == "file":
            path = file_locator_path(locator)
        else:
            path = self.scratch_dir / scratch_file_name(locator)
            self._with_retries(
                lambda: self.download(locator, path, self.settings.download_timeout),
                f"Download of {locator}",
            )

        digest = self._with_retries(
            lambda: self.hasher(path, self.settings.hash_timeout),
            f"Hashing of {locator}",
        )
        with self._locks_guard:
            self.computed += 1
        return digest

    def _with_retries(self, operation: Callable[[], T], description: str) -> T:
        """Run an operation, retrying retryable failures with linear backoff."""
        attempt = 0
        while True:
            try:
                return operation()
            except CarguixError as e:
                if not e.retryable or attempt >= self.settings.retries:
                    raise
                attempt += 1
                delay = self.settings.retry_backoff * attempt
                logger.warning(
                    f"{description} failed ({e}), retrying in {delay:.1f}s "
                    f"({attempt}/{self.settings.retries})"
                )
                self._sleep(delay)

    def _insert(self, locator: str, digest: str) -> None:
        try:
            with self._connection() as conn:
                conn.execute(
                    "INSERT OR REPLACE INTO hashes (locator, digest, created_at) VALUES (?, ?, ?)",
                    (locator, digest, _now().isoformat()),
                )
        except sqlite3.Error as e:
            raise HashCacheError("insert", locator) from e

    def entries(self) -> List[CacheEntry]:
        """All persisted digests, sorted by locator."""
        try:
            with self._connection() as conn:
                rows = conn.execute(
                    "SELECT locator, digest, created_at FROM hashes ORDER BY locator"
                ).fetchall()
        except sqlite3.Error as e:
            raise HashCacheError("read") from e
        return [
            CacheEntry(
                locator=row["locator"],
                digest=row["digest"],
                created_at=datetime.fromisoformat(row["created_at"]),
            )
            for row in rows
        ]

    def stats(self) -> CacheStats:
        entries = self.entries()
        if not entries:
            return CacheStats(total_entries=0)
        dates = [e.created_at for e in entries]
        return CacheStats(
            total_entries=len(entries),
            oldest_entry=min(dates),
            newest_entry=max(dates),
        )

    def invalidate(self, locator: str) -> bool:
        """
        Remove one entry.

        Returns:
            True if removed, False if not found.
        """
        try:
            with self._connection() as conn:
                cursor = conn.execute("DELETE FROM hashes WHERE locator = ?", (locator,))
        except sqlite3.Error as e:
            raise HashCacheError("delete", locator) from e
        return cursor.rowcount > 0

    def clear(self) -> int:
        """
        Remove every entry.

        Returns:
            Number of entries removed.
        """
        try:
            with self._connection() as conn:
                cursor = conn.execute("DELETE FROM hashes")
        except sqlite3.Error as e:
            raise HashCacheError("delete") from e
        return cursor.rowcount


def _now() -> datetime:
    return datetime.now(timezone.utc)

"""
Global Configuration and Defaults.

Central place for the locations, URLs and I/O limits used by carguix.
The CLI assembles a Settings object from these defaults and its options;
core components only ever read the Settings they are handed.
"""

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

# --- Locations ---
CARGUIX_HOME = Path.home() / ".carguix"

# Persistent content-hash database (locator -> digest)
DEFAULT_CACHE_DB = CARGUIX_HOME / "hash.db"

# Local checkout of the crates.io index
DEFAULT_INDEX_DIR = CARGUIX_HOME / "index"

# --- Registry ---
CRATES_IO_DOWNLOAD_URL = "https://crates.io/api/v1/crates"
CRATES_IO_INDEX_GIT_URL = "https://github.com/rust-lang/crates.io-index"
CRATES_IO_SPARSE_URL = "https://index.crates.io"

# Source tags Cargo.lock uses for crates.io, without trailing slash
CRATES_IO_LOCK_SOURCES = (
    f"registry+{CRATES_IO_INDEX_GIT_URL}",
    f"sparse+{CRATES_IO_SPARSE_URL}",
)

# --- I/O limits ---
# Seconds before a download is abandoned (retryable)
DEFAULT_DOWNLOAD_TIMEOUT = 120.0

# Seconds before `guix hash` is abandoned (retryable)
DEFAULT_HASH_TIMEOUT = 600.0

# Attempts after the first for retryable failures
DEFAULT_RETRIES = 2
DEFAULT_RETRY_BACKOFF = 1.0

# --- Output ---
BUILD_SYSTEM = "cargo-build-system"
LOCK_FILE_NAME = "Cargo.lock"
MANIFEST_FILE_NAME = "Cargo.toml"


class Settings(BaseModel):
    """
    Runtime configuration shared by every component of a run.

    Attributes:
        cache_db: Path of the SQLite hash database.
        index_dir: Local crates.io index checkout.
        registry_download_url: Base URL for crate downloads.
        sparse_index_url: Base URL of the sparse HTTP index.
        download_timeout: Seconds before a download times out.
        hash_timeout: Seconds before the hash command times out.
        retries: Extra attempts for retryable I/O failures.
        retry_backoff: Seconds to wait per attempt before retrying.
        workers: Number of crates processed concurrently.
    """

    cache_db: Path = DEFAULT_CACHE_DB
    index_dir: Path = DEFAULT_INDEX_DIR
    registry_download_url: str = CRATES_IO_DOWNLOAD_URL
    sparse_index_url: str = CRATES_IO_SPARSE_URL
    download_timeout: float = Field(default=DEFAULT_DOWNLOAD_TIMEOUT, gt=0)
    hash_timeout: float = Field(default=DEFAULT_HASH_TIMEOUT, gt=0)
    retries: int = Field(default=DEFAULT_RETRIES, ge=0)
    retry_backoff: float = Field(default=DEFAULT_RETRY_BACKOFF, ge=0)
    workers: int = Field(default=1, ge=1)

    model_config = ConfigDict(frozen=True)

    def download_url(self, crate_name: str, version: str) -> str:
        """Registry download URL of one crate version."""
        return f"{self.registry_download_url.rstrip('/')}/{crate_name}/{version}/download"

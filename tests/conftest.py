"""Shared fixtures: an on-disk crates.io index and a context with fake I/O."""

import json
from pathlib import Path
from typing import Dict, List, Optional
from unittest.mock import MagicMock

import pytest

from carguix.config import Settings
from carguix.core.context import ResolutionContext
from carguix.core.index import LocalCrateIndex, index_path


class IndexWriter:
    """Writes crate records in the crates.io index layout."""

    def __init__(self, root: Path):
        self.root = root

    def publish(
        self,
        name: str,
        version: str,
        deps: Optional[List[Dict]] = None,
        yanked: bool = False,
    ) -> None:
        record = {
            "name": name,
            "vers": version,
            "deps": [
                {
                    "name": d["name"],
                    "req": d.get("req", "*"),
                    "kind": d.get("kind", "normal"),
                    "optional": d.get("optional", False),
                    "target": d.get("target"),
                    "package": d.get("package"),
                    "features": [],
                    "default_features": True,
                }
                for d in deps or []
            ],
            "cksum": "0" * 64,
            "features": {},
            "yanked": yanked,
        }
        path = self.root / index_path(name)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "a", encoding="utf-8") as f:
            f.write(json.dumps(record) + "\n")


@pytest.fixture
def index_writer(tmp_path: Path) -> IndexWriter:
    root = tmp_path / "index"
    root.mkdir()
    (root / "config.json").write_text('{"dl": "https://crates.io/api/v1/crates"}')
    return IndexWriter(root)


@pytest.fixture
def fake_download() -> MagicMock:
    def download(url: str, dest: Path, timeout: float) -> None:
        dest.write_bytes(url.encode("utf-8"))

    return MagicMock(side_effect=download)


@pytest.fixture
def fake_hasher() -> MagicMock:
    def hasher(path: Path, timeout: float) -> str:
        if path.is_dir():
            return f"dir-{path.name}"
        parts = path.read_text(encoding="utf-8").split("/")
        return f"file-{parts[-3]}-{parts[-2]}"

    return MagicMock(side_effect=hasher)


@pytest.fixture
def settings(tmp_path: Path, index_writer: IndexWriter) -> Settings:
    return Settings(cache_db=tmp_path / "hash.db", index_dir=index_writer.root, retry_backoff=0)


@pytest.fixture
def context(settings: Settings, fake_download: MagicMock, fake_hasher: MagicMock):
    ctx = ResolutionContext.create(
        settings,
        index=LocalCrateIndex(settings.index_dir),
        download=fake_download,
        hasher=fake_hasher,
        sleep=lambda seconds: None,
    )
    yield ctx
    ctx.close()


@pytest.fixture
def make_crate():
    """Factory creating a crate directory with a Cargo.toml and optional Cargo.lock."""

    def make(directory: Path, manifest: str, lock: Optional[str] = None) -> Path:
        directory.mkdir(parents=True, exist_ok=True)
        (directory / "Cargo.toml").write_text(manifest)
        if lock is not None:
            (directory / "Cargo.lock").write_text(lock)
        return directory

    return make

"""
Resolution Context.

Everything a crate source needs to resolve itself during one run: the
settings, the crate index, the content-hash cache and the scratch
directory receiving downloads. A context is created once per run and
handed to every source explicitly.
"""

from __future__ import annotations

import logging
import tempfile
from pathlib import Path
from typing import Optional

from ..config import Settings
from ..errors import TmpdirError
from .hash_cache import ContentHashCache
from .index import CrateIndex, LocalCrateIndex
from .versions import VersionResolver

logger = logging.getLogger(__name__)


class ResolutionContext:
    """
    Shared collaborators of a resolution run.

    Use as a context manager so the scratch directory is removed when the
    run ends.

    Attributes:
        settings: Runtime configuration.
        index: Provider of published crate versions.
        hash_cache: Persistent content-hash cache.
        resolver: Requirement resolver backed by ``index``.
    """

    def __init__(
        self,
        settings: Settings,
        index: CrateIndex,
        hash_cache: ContentHashCache,
        scratch: Optional[tempfile.TemporaryDirectory] = None,
    ):
        self.settings = settings
        self.index = index
        self.hash_cache = hash_cache
        self.resolver = VersionResolver(self._available_versions)
        self._scratch = scratch

    @classmethod
    def create(
        cls,
        settings: Settings,
        index: Optional[CrateIndex] = None,
        **cache_options,
    ) -> "ResolutionContext":
        """
        Build a context with a fresh scratch directory.

        Args:
            settings: Runtime configuration.
            index: Crate index; defaults to the local checkout at
                ``settings.index_dir``.
            **cache_options: Extra arguments for ContentHashCache
                (``download``, ``hasher``, ``sleep``).

        Raises:
            TmpdirError: If the scratch directory cannot be created.
            HashCacheError: If the hash database cannot be opened.
        """
        try:
            scratch = tempfile.TemporaryDirectory(prefix="carguix-")
        except OSError as e:
            raise TmpdirError() from e
        logger.debug(f"Scratch directory: {scratch.name}")

        try:
            hash_cache = ContentHashCache(
                settings.cache_db,
                Path(scratch.name),
                settings=settings,
                **cache_options,
            )
        except Exception:
            scratch.cleanup()
            raise

        return cls(
            settings=settings,
            index=index if index is not None else LocalCrateIndex(settings.index_dir),
            hash_cache=hash_cache,
            scratch=scratch,
        )

    def _available_versions(self, crate_name: str) -> Optional[list]:
        indexed = self.index.crate(crate_name)
        if indexed is None:
            return None
        return [v.version for v in indexed.available_versions()]

    def close(self) -> None:
        """Remove the scratch directory."""
        if self._scratch is not None:
            self._scratch.cleanup()
            self._scratch = None

    def __enter__(self) -> "ResolutionContext":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

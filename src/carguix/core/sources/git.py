"""Git Source: crates fetched from a git repository are not supported yet."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional

from ...errors import GitSourceUnsupported
from .base import CrateSource

if TYPE_CHECKING:
    from ..context import ResolutionContext
    from .crate_ref import CrateRef


@dataclass(frozen=True)
class GitSource(CrateSource):
    """
    A crate living in a git repository.

    Every capability raises GitSourceUnsupported.

    Attributes:
        url: Repository URL.
        reference: Branch, tag or revision, if pinned.
    """

    url: str
    reference: Optional[str] = None

    @property
    def crate_name(self) -> str:
        raise GitSourceUnsupported(self.url)

    @property
    def crate_version(self) -> str:
        raise GitSourceUnsupported(self.url)

    def source(self, context: "ResolutionContext") -> str:
        raise GitSourceUnsupported(self.url)

    def dependencies(self, context: "ResolutionContext") -> List["CrateRef"]:
        raise GitSourceUnsupported(self.url)

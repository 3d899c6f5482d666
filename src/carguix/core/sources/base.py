"""
Crate source contract.

A crate source knows where one crate at one exact version comes from and
how to enumerate its direct dependencies. Every variant answers the same
questions; CrateRef wraps them behind a uniform interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from types import MappingProxyType
from typing import TYPE_CHECKING, Dict, List, Mapping, Optional

if TYPE_CHECKING:
    from pathlib import Path

    from ..context import ResolutionContext
    from .crate_ref import CrateRef

CratePaths = Mapping[str, "Path"]

EMPTY_PATHS: CratePaths = MappingProxyType({})


def extend_paths(base: CratePaths, extra: Dict[str, "Path"]) -> CratePaths:
    """Copy of ``base`` with ``extra`` added; ``base`` is left untouched."""
    merged = dict(base)
    merged.update(extra)
    return MappingProxyType(merged)


class CrateSource(ABC):
    """
    Where a crate comes from.

    Implementations must be deterministic: the same source always reports
    the same name, version, locator and dependency list.
    """

    @property
    @abstractmethod
    def crate_name(self) -> str:
        """Crate name as published."""

    @property
    @abstractmethod
    def crate_version(self) -> str:
        """Exact crate version."""

    @abstractmethod
    def source(self, context: "ResolutionContext") -> str:
        """Source locator: a download URL or a ``file://`` URI."""

    @abstractmethod
    def dependencies(self, context: "ResolutionContext") -> List["CrateRef"]:
        """
        Direct dependencies, in declaration order.

        Raises:
            CarguixError: If any dependency cannot be resolved.
        """

    def metadata(self) -> Dict[str, Optional[str]]:
        """Descriptive fields for the package definition, when known."""
        return {}

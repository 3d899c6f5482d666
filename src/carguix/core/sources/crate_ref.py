"""
CrateRef: uniform handle on a crate source.

Wraps any crate source variant, derives the names used in the generated
package definitions, and attaches the crate's identity to failures raised
while its dependencies are enumerated.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Tuple, Type

from ...errors import CarguixError, DependencyProcessingFailed
from .. import types
from ..types import CrateIdentity
from .base import CrateSource

if TYPE_CHECKING:
    from ..context import ResolutionContext

logger = logging.getLogger(__name__)


def crate_source_variants() -> Tuple[Type[CrateSource], ...]:
    """The closed set of crate source variants a CrateRef may wrap."""
    # Imported here: the variant modules import this one.
    from .git import GitSource
    from .lock import LockSource
    from .path import PathSource
    from .registry import RegistrySource
    from .simple import SimpleSource

    return (RegistrySource, LockSource, PathSource, SimpleSource, GitSource)


@dataclass(frozen=True, eq=False)
class CrateRef:
    """
    A named reference to a crate source.

    Attributes:
        name: Name the crate is referred to by.
        source: The source variant.

    Raises:
        TypeError: If ``source`` is not one of the crate source variants.
    """

    name: str
    source: CrateSource

    def __post_init__(self):
        if not isinstance(self.source, crate_source_variants()):
            raise TypeError(f"unsupported crate source type: {type(self.source).__name__}")

    @classmethod
    def of(cls, source: CrateSource) -> "CrateRef":
        """Reference a source under its own crate name."""
        return cls(source.crate_name, source)

    @property
    def crate_name(self) -> str:
        return self.source.crate_name

    @property
    def version(self) -> str:
        return self.source.crate_version

    def identity(self) -> CrateIdentity:
        return CrateIdentity(self.crate_name, self.version)

    def package_name(self) -> str:
        return types.package_name(self.crate_name, self.version)

    def definition_name(self) -> str:
        return types.definition_name(self.crate_name)

    def locator(self, context: "ResolutionContext") -> str:
        return self.source.source(context)

    def dependencies(self, context: "ResolutionContext") -> List["CrateRef"]:
        """
        Direct dependencies of the referenced crate.

        Raises:
            DependencyProcessingFailed: Wrapping whatever failure occurred,
                naming this crate and its version.
        """
        try:
            return self.source.dependencies(context)
        except CarguixError as e:
            raise DependencyProcessingFailed(self.crate_name, self.version) from e

    def __repr__(self) -> str:
        return f"CrateRef({self.name!r}, {type(self.source).__name__})"

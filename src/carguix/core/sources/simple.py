"""
Simple Source.

A pre-resolved crate: name, version, locator and child list are all known
up front. Used to replay a previously resolved graph (a snapshot) without
touching the index, manifests or lock files.

Snapshot format (JSON):
    {
        "name": "serde",
        "version": "1.0.104",
        "source": "https://crates.io/api/v1/crates/serde/1.0.104/download",
        "dependencies": [ ...same shape... ]
    }
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Tuple

from ...errors import SnapshotError
from ..types import CrateIdentity
from .base import CrateSource
from .crate_ref import CrateRef

if TYPE_CHECKING:
    from ..context import ResolutionContext
    from ..types import PackageDefinition


@dataclass(frozen=True)
class SimpleSource(CrateSource):
    """
    A crate with everything already resolved.

    Attributes:
        name: Crate name.
        version: Exact version.
        locator: Source locator.
        children: Direct dependencies.
    """

    name: str
    version: str
    locator: str
    children: Tuple["SimpleSource", ...] = ()

    @property
    def crate_name(self) -> str:
        return self.name

    @property
    def crate_version(self) -> str:
        return self.version

    def source(self, context: "ResolutionContext") -> str:
        return self.locator

    def dependencies(self, context: "ResolutionContext") -> List[CrateRef]:
        return [CrateRef(child.name, child) for child in self.children]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SimpleSource":
        """
        Build a source tree from its JSON form.

        Raises:
            SnapshotError: If a node lacks a required field.
        """
        try:
            return cls(
                name=data["name"],
                version=data["version"],
                locator=data["source"],
                children=tuple(cls.from_dict(d) for d in data.get("dependencies", [])),
            )
        except (KeyError, TypeError) as e:
            raise SnapshotError(f"invalid crate entry {data!r}") from e

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "version": self.version,
            "source": self.locator,
            "dependencies": [child.to_dict() for child in self.children],
        }

    @classmethod
    def from_graph(
        cls,
        root: CrateIdentity,
        graph: Mapping[CrateIdentity, "PackageDefinition"],
    ) -> "SimpleSource":
        """
        Rebuild a source tree from a resolved graph.

        Children are found through ``cargo_inputs``; shared dependencies
        become shared subtrees.

        Raises:
            SnapshotError: If the root or an input is missing from the graph.
        """
        by_package_name = {definition.package_name: identity for identity, definition in graph.items()}
        built: Dict[CrateIdentity, SimpleSource] = {}

        def build(identity: CrateIdentity) -> SimpleSource:
            if identity in built:
                return built[identity]
            definition = graph.get(identity)
            if definition is None:
                raise SnapshotError(f"{identity} is not part of the graph")
            children = []
            for input_name in definition.cargo_inputs:
                if input_name not in by_package_name:
                    raise SnapshotError(f"input {input_name} of {identity} is not part of the graph")
                children.append(build(by_package_name[input_name]))
            built[identity] = cls(
                name=identity.name,
                version=identity.version,
                locator=definition.source,
                children=tuple(children),
            )
            return built[identity]

        return build(root)

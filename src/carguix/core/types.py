"""
Core type definitions for carguix.

Naming helpers shared by every crate source, the identity used to
deduplicate the graph walk, and the immutable package record produced
for each resolved crate.
"""

import re
from typing import NamedTuple, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from ..config import BUILD_SYSTEM

_ACRONYM_BOUNDARY = re.compile(r"([A-Z]+)([A-Z][a-z])")
_CAMEL_BOUNDARY = re.compile(r"([a-z0-9])([A-Z])")
_SEPARATORS = re.compile(r"[^A-Za-z0-9]+")


def kebab(name: str) -> str:
    """
    Convert a crate name to kebab-case.

    Words are split on any non-alphanumeric character and on camel-case
    boundaries, lowercased and joined with dashes.

    Examples:
        >>> kebab("Foo-Bar")
        'foo-bar'
        >>> kebab("serde_json")
        'serde-json'
        >>> kebab("HTTPServer")
        'http-server'
    """
    spaced = _ACRONYM_BOUNDARY.sub(r"\1-\2", name)
    spaced = _CAMEL_BOUNDARY.sub(r"\1-\2", spaced)
    return "-".join(word.lower() for word in _SEPARATORS.split(spaced) if word)


def package_name(crate_name: str, version: str) -> str:
    """Versioned package name, e.g. ``foo-bar-1.2.3``."""
    return f"{kebab(crate_name)}-{version}"


def definition_name(crate_name: str) -> str:
    """Guix package name, e.g. ``rust-foo-bar``."""
    return f"rust-{kebab(crate_name)}"


class CrateIdentity(NamedTuple):
    """Deduplication key of the graph walk: one crate at one exact version."""

    name: str
    version: str

    def __str__(self) -> str:
        return f"{self.name} {self.version}"


class PackageDefinition(BaseModel):
    """
    Output record describing how Guix fetches, verifies and builds one crate.

    Attributes:
        name: Guix package name (``rust-<kebab name>``).
        package_name: Versioned name used to reference this package.
        version: Exact crate version.
        source: Source locator (registry download URL or ``file://`` URI).
        hash: Content digest of the source.
        build_system: Guix build system tag.
        cargo_inputs: package_names of the direct dependencies, in order.
    """

    name: str
    package_name: str
    version: str
    source: str
    hash: str
    build_system: str = BUILD_SYSTEM
    home_page: Optional[str] = None
    synopsis: Optional[str] = None
    description: Optional[str] = None
    license: Optional[str] = None
    cargo_inputs: Tuple[str, ...] = ()

    model_config = ConfigDict(frozen=True, extra="forbid")

    @property
    def variable_name(self) -> str:
        """Scheme variable bound to this package in a rendered module."""
        return f"rust-{self.package_name}"

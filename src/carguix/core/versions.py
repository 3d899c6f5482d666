"""
Version Resolver.

Selects the greatest published version satisfying a Cargo version
requirement. Selection is deterministic: among all candidates that parse
and satisfy the requirement, the numerically greatest always wins.

Cargo requirement syntax is translated to ``semantic_version.SimpleSpec``:
    - ``1.2.3``     -> ``^1.2.3``  (bare versions are caret requirements)
    - ``=1.2.3``    -> ``==1.2.3``
    - ``>= 1.0, < 2`` -> ``>=1.0,<2``
    - ``*`` and ``1.*`` wildcards are passed through
"""

from __future__ import annotations

import logging
import re
from typing import Callable, Iterable, List, Optional, Tuple, TypeVar

from semantic_version import SimpleSpec, Version

from ..errors import (
    CrateNotFound,
    NoParseableVersions,
    NoVersionMatchingRequirement,
    RequirementParseError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

_WHITESPACE = re.compile(r"\s+")


def normalize_requirement(requirement: str) -> str:
    """
    Rewrite a Cargo requirement into SimpleSpec syntax.

    Args:
        requirement: Requirement as written in Cargo.toml or the index.

    Returns:
        Equivalent SimpleSpec expression.
    """
    clauses = []
    for clause in requirement.split(","):
        clause = _WHITESPACE.sub("", clause)
        if not clause:
            continue
        if clause[0].isdigit() and "*" not in clause:
            clause = "^" + clause
        elif clause.startswith("=") and not clause.startswith("=="):
            clause = "=" + clause
        clauses.append(clause)
    return ",".join(clauses) or "*"


def parse_requirement(crate_name: str, requirement: str) -> SimpleSpec:
    """
    Parse a Cargo requirement.

    Raises:
        RequirementParseError: If the requirement is not valid.
    """
    try:
        return SimpleSpec(normalize_requirement(requirement))
    except ValueError as e:
        raise RequirementParseError(crate_name, requirement) from e


def parse_versions(
    crate_name: str,
    candidates: Iterable[T],
    key: Callable[[T], str],
) -> List[Tuple[Version, T]]:
    """
    Parse candidate versions, dropping the ones that fail to parse.

    Args:
        crate_name: Crate the candidates belong to (for error reporting).
        candidates: Arbitrary records carrying a version string.
        key: Extracts the version string from a record.

    Returns:
        ``(parsed version, record)`` pairs sorted ascending by version.

    Raises:
        NoParseableVersions: If no candidate parses.
    """
    parsed = []
    skipped = []
    for candidate in candidates:
        raw = key(candidate)
        try:
            parsed.append((Version(raw), candidate))
        except ValueError:
            skipped.append(raw)

    if skipped:
        logger.debug(f"Ignoring unparseable versions of {crate_name}: {', '.join(skipped)}")
    if not parsed:
        raise NoParseableVersions(crate_name)

    parsed.sort(key=lambda pair: pair[0])
    return parsed


def highest_matching(
    crate_name: str,
    requirement: str,
    candidates: Iterable[T],
    key: Callable[[T], str] = str,
) -> T:
    """
    Pick the candidate with the greatest version satisfying a requirement.

    Args:
        crate_name: Crate being resolved.
        requirement: Cargo version requirement.
        candidates: Records carrying a version string.
        key: Extracts the version string from a record.

    Returns:
        The matching record.

    Raises:
        NoParseableVersions: If no candidate version parses.
        RequirementParseError: If the requirement is invalid.
        NoVersionMatchingRequirement: If nothing satisfies the requirement.
    """
    candidates = list(candidates)
    if not candidates:
        raise NoVersionMatchingRequirement(crate_name, requirement)

    parsed = parse_versions(crate_name, candidates, key)
    spec = parse_requirement(crate_name, requirement)

    for version, candidate in reversed(parsed):
        if spec.match(version):
            return candidate

    raise NoVersionMatchingRequirement(crate_name, requirement)


def highest_matching_version(crate_name: str, requirement: str, versions: Iterable[str]) -> str:
    """Greatest version string in ``versions`` satisfying ``requirement``."""
    return highest_matching(crate_name, requirement, versions)


class VersionResolver:
    """
    Resolves requirements against a version-listing provider.

    Attributes:
        listing: Callable returning the published version strings of a crate,
            or None if the crate is unknown.

    Example:
        ```python
        resolver = VersionResolver(lambda name: ["1.0.0", "1.2.0", "2.0.0"])
        resolver.resolve("serde", "1")  # "1.2.0"
        ```
    """

    def __init__(self, listing: Callable[[str], Optional[Iterable[str]]]):
        self.listing = listing

    def resolve(self, crate_name: str, requirement: str) -> str:
        """
        Resolve a requirement to the greatest satisfying version.

        Raises:
            CrateNotFound: If the provider does not know the crate.
        """
        versions = self.listing(crate_name)
        if versions is None:
            raise CrateNotFound(crate_name)
        return highest_matching_version(crate_name, requirement, versions)

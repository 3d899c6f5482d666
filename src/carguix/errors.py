"""
Error taxonomy for carguix.

Every failure raised while resolving crates, hashing artifacts or reading
manifests derives from CarguixError. Failures that happen while a crate's
dependencies are being enumerated are wrapped in DependencyProcessingFailed
and chained with ``raise ... from``, so walking ``__cause__`` from the
top-level error leads from the root crate down to the failing leaf.

Categories:
    - Lookup: crate or version could not be found in the index.
    - Parse: version, requirement, manifest, lock file or index record.
    - Structural: well-formed input that does not describe what we need.
    - I/O: download, file creation, hashing, cache database, canonicalization.
"""

from __future__ import annotations

from typing import Iterator, Optional


class CarguixError(Exception):
    """
    Base class for all carguix failures.

    Attributes:
        message: Human-readable error message.
        retryable: True if repeating the operation may succeed.
    """

    retryable: bool = False

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


def iter_causes(error: BaseException) -> Iterator[BaseException]:
    """
    Walk the causal chain of an error, starting with its first cause.

    Args:
        error: The outermost error.

    Yields:
        Each ``__cause__`` (or implicit ``__context__``) in order.
    """
    cause = error.__cause__ or error.__context__
    while cause is not None:
        yield cause
        cause = cause.__cause__ or cause.__context__


# --- Lookup failures ---


class CrateNotFound(CarguixError):
    def __init__(self, crate_name: str):
        self.crate_name = crate_name
        super().__init__(f"could not find crate {crate_name}")


class NoMatchingVersion(CarguixError):
    """Raised when an exact version was requested but is not published."""

    def __init__(self, crate_name: str, version: str):
        self.crate_name = crate_name
        self.version = version
        super().__init__(f"no version of crate {crate_name} matching {version} found")


class NoVersionMatchingRequirement(CarguixError):
    """Raised when no published version satisfies a requirement."""

    def __init__(self, crate_name: str, requirement: str):
        self.crate_name = crate_name
        self.requirement = requirement
        super().__init__(
            f"no version of crate {crate_name} matching requirement {requirement} found"
        )


class NoParseableVersions(CarguixError):
    def __init__(self, crate_name: str):
        self.crate_name = crate_name
        super().__init__(f"none of the published versions of crate {crate_name} can be parsed")


# --- Parse failures ---


class RequirementParseError(CarguixError):
    def __init__(self, crate_name: str, requirement: str):
        self.crate_name = crate_name
        self.requirement = requirement
        super().__init__(
            f"parsing of requirement {requirement} for crate {crate_name} failed"
        )


class ManifestParseError(CarguixError):
    def __init__(self, path: str):
        self.path = path
        super().__init__(f"error while parsing crate manifest at path {path}")


class LockFileReadError(CarguixError):
    def __init__(self, path: str):
        self.path = path
        super().__init__(f"cannot read lock file {path}")


class LockFileParseError(CarguixError):
    def __init__(self, path: str):
        self.path = path
        super().__init__(f"cannot parse lock file {path}")


class IndexParseError(CarguixError):
    def __init__(self, crate_name: str, detail: str = ""):
        self.crate_name = crate_name
        suffix = f": {detail}" if detail else ""
        super().__init__(f"cannot parse index entry of crate {crate_name}{suffix}")


class SnapshotError(CarguixError):
    """Raised when a resolved-graph snapshot is malformed or incomplete."""

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(f"invalid snapshot: {detail}")


# --- Structural failures ---


class NoPackageInManifest(CarguixError):
    def __init__(self, path: str):
        self.path = path
        super().__init__(f"{path} does not define a package")


class PackageNotFoundInLock(CarguixError):
    def __init__(self, crate_name: str, version: str):
        self.crate_name = crate_name
        self.version = version
        super().__init__(f"crate {crate_name} in version {version} not found in lock file")


class BadLockFileDependency(CarguixError):
    """Raised when a lock file dependency string has an unexpected shape."""

    def __init__(self, dependency: str):
        self.dependency = dependency
        super().__init__(f"dependency found in lock file is ill-formed: {dependency!r}")


class LocalPathNotFound(CarguixError):
    """
    Raised when an unpublished lock entry has no known filesystem path.

    Attributes:
        crate_name: The local dependency that could not be located.
        owner: The crate declaring the dependency.
        known: Names present in the path table at the time of lookup.
    """

    def __init__(self, crate_name: str, owner: str, known: Optional[list[str]] = None):
        self.crate_name = crate_name
        self.owner = owner
        self.known = sorted(known or [])
        super().__init__(
            f"path of dependency {crate_name} of {owner} not found "
            f"(known local crates: {', '.join(self.known) or 'none'})"
        )


class GitDependencyUnsupported(CarguixError):
    def __init__(self, crate_name: str, owner: str):
        self.crate_name = crate_name
        self.owner = owner
        super().__init__(
            f"git dependency {crate_name} of {owner} can only be resolved through a Cargo.lock"
        )


class GitSourceUnsupported(CarguixError):
    def __init__(self, url: str):
        self.url = url
        super().__init__(f"git sources are not supported: {url}")


class UnsupportedRegistry(CarguixError):
    """Raised when a lock record comes from a registry other than crates.io."""

    def __init__(self, crate_name: str, version: str, source: str):
        self.crate_name = crate_name
        self.version = version
        self.source = source
        super().__init__(
            f"crate {crate_name} in version {version} comes from an unsupported registry: {source}"
        )


class UrlNotAFilePath(CarguixError):
    def __init__(self, url: str):
        self.url = url
        super().__init__(f"URL is not a file path: {url}")


# --- I/O failures ---


class DownloadError(CarguixError):
    """
    Raised when downloading an artifact fails.

    Attributes:
        url: The URL being downloaded.
        retryable: True for timeouts and connection failures.
    """

    def __init__(self, url: str, detail: str = "", retryable: bool = False):
        self.url = url
        self.retryable = retryable
        suffix = f": {detail}" if detail else ""
        super().__init__(f"could not download {url}{suffix}")


class FileCreationError(CarguixError):
    def __init__(self, locator: str):
        self.locator = locator
        super().__init__(f"could not create destination file for {locator}")


class HashComputationError(CarguixError):
    """
    Raised when the external hash command fails.

    Attributes:
        locator: The source locator being hashed.
        stderr: Raw stderr output of the hash command.
        retryable: True if the command timed out.
    """

    def __init__(self, locator: str, stderr: str = "", retryable: bool = False):
        self.locator = locator
        self.stderr = stderr
        self.retryable = retryable
        suffix = f": {stderr}" if stderr else ""
        super().__init__(f"could not compute hash of {locator}{suffix}")


class HashCacheError(CarguixError):
    """Raised when the hash database cannot be read or written."""

    def __init__(self, operation: str, locator: str = ""):
        self.operation = operation
        self.locator = locator
        target = f" of {locator!r}" if locator else ""
        super().__init__(f"hash database {operation} failed{target}")


class CanonicalizationFailed(CarguixError):
    def __init__(self, path: str):
        self.path = path
        super().__init__(f"cannot canonicalize path: {path}")


class IndexUpdateError(CarguixError):
    def __init__(self, message: str, stderr: str = ""):
        self.stderr = stderr
        super().__init__(f"could not update index: {message}" + (f": {stderr}" if stderr else ""))


class TmpdirError(CarguixError):
    def __init__(self):
        super().__init__("could not create temporary directory")


# --- Wrapping ---


class DependencyProcessingFailed(CarguixError):
    """
    Raised when enumerating the dependencies of a crate fails.

    The original failure is attached as ``__cause__``.

    Attributes:
        crate_name: The crate whose dependencies were being processed.
        version: Version of that crate.
    """

    def __init__(self, crate_name: str, version: str):
        self.crate_name = crate_name
        self.version = version
        super().__init__(
            f"could not process a dependency of crate {crate_name} in version {version}"
        )


class CratePackagingFailed(CarguixError):
    """
    Raised when a crate cannot be turned into a package definition.

    The original failure (typically hashing) is attached as ``__cause__``.
    """

    def __init__(self, crate_name: str, version: str):
        self.crate_name = crate_name
        self.version = version
        super().__init__(f"could not package version {version} of crate {crate_name}")

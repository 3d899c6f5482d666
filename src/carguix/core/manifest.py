"""
Manifest definition and parsing for Cargo.toml.

Parses the parts of a crate manifest that matter for dependency
resolution: the package record, and the dependency tables (normal, build,
dev, per-target and patch overrides), including workspace inheritance.

Dependency syntax:
    Short form: `serde = "1.0"`
    Long form: `serde = { version = "1.0", features = ["derive"] }`
    Local: `util = { path = "../util" }`
    Renamed: `json = { package = "serde_json", version = "1" }`
    Inherited: `serde = { workspace = true }`
"""

from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from ..config import MANIFEST_FILE_NAME
from ..errors import ManifestParseError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DependencySpec:
    """
    A single dependency declaration from Cargo.toml.

    Attributes:
        name: Dependency key in the table.
        version: Version requirement, if any.
        path: Local filesystem path (relative to the declaring manifest).
        git: Git repository URL.
        branch: Git branch name.
        tag: Git tag name.
        rev: Git commit SHA.
        package: Real crate name when the dependency is renamed.
        optional: Whether the dependency is behind a feature.
        workspace: Whether the declaration is inherited from the workspace.
    """

    name: str
    version: Optional[str] = None
    path: Optional[str] = None
    git: Optional[str] = None
    branch: Optional[str] = None
    tag: Optional[str] = None
    rev: Optional[str] = None
    package: Optional[str] = None
    optional: bool = False
    workspace: bool = False

    @property
    def crate_name(self) -> str:
        """Name of the crate actually depended upon."""
        return self.package or self.name

    @property
    def is_git(self) -> bool:
        """Check if this is a git dependency."""
        return self.git is not None

    @property
    def is_local(self) -> bool:
        """Check if this is a local path dependency."""
        return self.path is not None

    @property
    def requirement(self) -> str:
        """Version requirement, ``*`` when none is declared."""
        return self.version or "*"

    @classmethod
    def from_toml(cls, name: str, value: Union[str, Dict[str, Any]]) -> "DependencySpec":
        """
        Parse a dependency from TOML format.

        Args:
            name: The dependency key.
            value: Either a requirement string or a table.

        Returns:
            DependencySpec instance.
        """
        if isinstance(value, str):
            return cls(name=name, version=value)

        if isinstance(value, dict):
            return cls(
                name=name,
                version=value.get("version"),
                path=value.get("path"),
                git=value.get("git"),
                branch=value.get("branch"),
                tag=value.get("tag"),
                rev=value.get("rev"),
                package=value.get("package"),
                optional=bool(value.get("optional", False)),
                workspace=bool(value.get("workspace", False)),
            )

        raise ValueError(f"Invalid dependency value for {name}: {value!r}")

    def inherit(self, base: "DependencySpec", base_dir: Path) -> "DependencySpec":
        """
        Fill a ``{ workspace = true }`` declaration from the workspace entry.

        Paths of the workspace entry are relative to the workspace root, so
        they are made absolute against ``base_dir``.
        """
        path = str(base_dir / base.path) if base.path else None
        return replace(
            base,
            name=self.name,
            path=path,
            optional=self.optional or base.optional,
            package=base.package or self.package,
            workspace=False,
        )


def _parse_table(table: Optional[Dict[str, Any]]) -> Dict[str, DependencySpec]:
    return {name: DependencySpec.from_toml(name, value) for name, value in (table or {}).items()}


@dataclass
class TargetDependencies:
    """Dependency tables of a ``[target.'cfg(...)']`` section."""

    dependencies: Dict[str, DependencySpec] = field(default_factory=dict)
    build_dependencies: Dict[str, DependencySpec] = field(default_factory=dict)


@dataclass
class PackageInfo:
    """
    The ``[package]`` section.

    Attributes:
        name: Crate name.
        version: Crate version (resolved if inherited from the workspace).
        homepage: Project home page.
        repository: Source repository URL.
        description: One-paragraph description.
        license: SPDX license expression.
    """

    name: str
    version: str = "0.0.0"
    homepage: Optional[str] = None
    repository: Optional[str] = None
    description: Optional[str] = None
    license: Optional[str] = None
    version_from_workspace: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PackageInfo":
        version = data.get("version", "0.0.0")
        inherited = isinstance(version, dict) and bool(version.get("workspace"))

        def text(key: str) -> Optional[str]:
            value = data.get(key)
            return value if isinstance(value, str) else None

        return cls(
            name=data["name"],
            version="0.0.0" if inherited else str(version),
            homepage=text("homepage"),
            repository=text("repository"),
            description=text("description"),
            license=text("license"),
            version_from_workspace=inherited,
        )


@dataclass
class WorkspaceInfo:
    """The ``[workspace]`` section: shared package fields and dependencies."""

    package: Dict[str, Any] = field(default_factory=dict)
    dependencies: Dict[str, DependencySpec] = field(default_factory=dict)


@dataclass
class CargoManifest:
    """
    Represents the parsed content of a Cargo.toml file.

    Attributes:
        path: Path to the manifest file.
        package: The ``[package]`` section, None for virtual manifests.
        dependencies: ``[dependencies]``.
        build_dependencies: ``[build-dependencies]``.
        dev_dependencies: ``[dev-dependencies]``.
        targets: Per-target tables keyed by cfg expression.
        patch: ``[patch.<registry>]`` tables keyed by registry.
        workspace: The ``[workspace]`` section if declared.
    """

    path: Path
    package: Optional[PackageInfo] = None
    dependencies: Dict[str, DependencySpec] = field(default_factory=dict)
    build_dependencies: Dict[str, DependencySpec] = field(default_factory=dict)
    dev_dependencies: Dict[str, DependencySpec] = field(default_factory=dict)
    targets: Dict[str, TargetDependencies] = field(default_factory=dict)
    patch: Dict[str, Dict[str, DependencySpec]] = field(default_factory=dict)
    workspace: Optional[WorkspaceInfo] = None

    @property
    def directory(self) -> Path:
        return self.path.parent

    @classmethod
    def load(cls, path: Path) -> "CargoManifest":
        """
        Load and parse a Cargo.toml file.

        Args:
            path: Path to the manifest file.

        Returns:
            CargoManifest: Parsed manifest.

        Raises:
            ManifestParseError: If the file cannot be read or is malformed.
        """
        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as e:
            raise ManifestParseError(str(path)) from e

        try:
            return cls.from_dict(path, data)
        except (KeyError, TypeError, ValueError) as e:
            raise ManifestParseError(str(path)) from e

    @classmethod
    def from_dict(cls, path: Path, data: Dict[str, Any]) -> "CargoManifest":
        package = data.get("package")

        targets = {}
        for cfg, section in data.get("target", {}).items():
            targets[cfg] = TargetDependencies(
                dependencies=_parse_table(section.get("dependencies")),
                build_dependencies=_parse_table(
                    section.get("build-dependencies", section.get("build_dependencies"))
                ),
            )

        workspace = None
        if "workspace" in data:
            section = data["workspace"]
            workspace = WorkspaceInfo(
                package=dict(section.get("package", {})),
                dependencies=_parse_table(section.get("dependencies")),
            )

        return cls(
            path=path,
            package=PackageInfo.from_dict(package) if package is not None else None,
            dependencies=_parse_table(data.get("dependencies")),
            build_dependencies=_parse_table(
                data.get("build-dependencies", data.get("build_dependencies"))
            ),
            dev_dependencies=_parse_table(
                data.get("dev-dependencies", data.get("dev_dependencies"))
            ),
            targets=targets,
            patch={registry: _parse_table(table) for registry, table in data.get("patch", {}).items()},
            workspace=workspace,
        )

    def find_workspace_root(self) -> Optional["CargoManifest"]:
        """
        Find the manifest declaring the workspace this crate belongs to.

        Searches this manifest and the manifests of every ancestor directory.

        Returns:
            The workspace manifest, or None if there is no workspace.
        """
        if self.workspace is not None:
            return self
        for directory in self.directory.parents:
            candidate = directory / MANIFEST_FILE_NAME
            if not candidate.is_file():
                continue
            manifest = CargoManifest.load(candidate)
            if manifest.workspace is not None:
                return manifest
        return None

    def resolve_inherited(self) -> "CargoManifest":
        """
        Resolve ``workspace = true`` entries against the workspace root.

        Returns:
            A manifest where the package version and every inherited
            dependency are concrete. Returns self if nothing is inherited.

        Raises:
            ManifestParseError: If an inherited entry has no workspace value.
        """
        inherits = (self.package is not None and self.package.version_from_workspace) or any(
            spec.workspace for _, spec in self.iter_declared()
        )
        if not inherits:
            return self

        root = self.find_workspace_root()
        if root is None or root.workspace is None:
            raise ManifestParseError(f"{self.path} (inherits from a workspace that was not found)")
        workspace = root.workspace

        def resolve(table: Dict[str, DependencySpec]) -> Dict[str, DependencySpec]:
            resolved = {}
            for name, spec in table.items():
                if spec.workspace:
                    base = workspace.dependencies.get(name)
                    if base is None:
                        raise ManifestParseError(
                            f"{self.path} (dependency {name} is not declared in the workspace)"
                        )
                    spec = spec.inherit(base, root.directory)
                resolved[name] = spec
            return resolved

        package = self.package
        if package is not None and package.version_from_workspace:
            version = workspace.package.get("version")
            if not isinstance(version, str):
                raise ManifestParseError(f"{self.path} (workspace does not define a version)")
            package = replace(package, version=version, version_from_workspace=False)

        return replace(
            self,
            package=package,
            dependencies=resolve(self.dependencies),
            build_dependencies=resolve(self.build_dependencies),
            dev_dependencies=resolve(self.dev_dependencies),
            targets={
                cfg: TargetDependencies(
                    dependencies=resolve(target.dependencies),
                    build_dependencies=resolve(target.build_dependencies),
                )
                for cfg, target in self.targets.items()
            },
        )

    def iter_declared(self) -> List[Tuple[str, DependencySpec]]:
        """Every declaration that can point at a local crate, in table order."""
        entries: List[Tuple[str, DependencySpec]] = []
        entries.extend(self.dependencies.items())
        entries.extend(self.build_dependencies.items())
        for target in self.targets.values():
            entries.extend(target.dependencies.items())
            entries.extend(target.build_dependencies.items())
        for table in self.patch.values():
            entries.extend(table.items())
        return entries

    def local_paths(self) -> Dict[str, Path]:
        """
        Map crate names to the directories of path dependencies.

        Scans the normal, build, per-target and patch tables. Keys are the
        real crate names, so renamed dependencies are found under the name
        the lock file uses.
        """
        paths = {}
        for _, spec in self.iter_declared():
            if spec.path:
                paths[spec.crate_name] = self.directory / spec.path
        return paths

    def runtime_dependencies(self) -> List[DependencySpec]:
        """
        Non-optional normal, build and per-target dependencies.

        Each crate appears once, at its first declaration.
        """
        tables = [self.dependencies, self.build_dependencies]
        for target in self.targets.values():
            tables.extend([target.dependencies, target.build_dependencies])

        seen = set()
        result = []
        for table in tables:
            for spec in table.values():
                if spec.optional or spec.crate_name in seen:
                    continue
                seen.add(spec.crate_name)
                result.append(spec)
        return result

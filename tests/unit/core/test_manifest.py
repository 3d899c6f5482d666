"""Tests for Cargo.toml parsing."""

from pathlib import Path

import pytest

from carguix.core.manifest import CargoManifest, DependencySpec
from carguix.errors import ManifestParseError


class TestDependencySpec:
    def test_short_form(self):
        spec = DependencySpec.from_toml("serde", "1.0")
        assert spec.version == "1.0"
        assert spec.requirement == "1.0"
        assert not spec.is_local

    def test_long_form(self):
        spec = DependencySpec.from_toml("util", {"path": "../util", "optional": True})
        assert spec.is_local
        assert spec.optional
        assert spec.requirement == "*"

    def test_renamed(self):
        spec = DependencySpec.from_toml("json", {"package": "serde_json", "version": "1"})
        assert spec.crate_name == "serde_json"

    def test_invalid_value(self):
        with pytest.raises(ValueError):
            DependencySpec.from_toml("bad", 42)


class TestCargoManifest:
    def test_load(self, tmp_path: Path):
        """Test parsing every dependency table."""
        (tmp_path / "Cargo.toml").write_text(
            """
[package]
name = "app"
version = "0.3.0"
description = "An app"
license = "MIT OR Apache-2.0"

[dependencies]
serde = "1.0"
util = { path = "util" }
json = { package = "serde_json", version = "1" }
extra = { version = "1", optional = true }

[build-dependencies]
cc = "1"

[dev-dependencies]
proptest = "1"

[target.'cfg(unix)'.dependencies]
libc = "0.2"

[patch.crates-io]
log = { path = "vendor/log" }
"""
        )

        manifest = CargoManifest.load(tmp_path / "Cargo.toml")

        assert manifest.package.name == "app"
        assert manifest.package.version == "0.3.0"
        assert manifest.package.license == "MIT OR Apache-2.0"
        assert list(manifest.dev_dependencies) == ["proptest"]

        runtime = [spec.crate_name for spec in manifest.runtime_dependencies()]
        assert runtime == ["serde", "util", "serde_json", "cc", "libc"]

        assert manifest.local_paths() == {
            "util": tmp_path / "util",
            "log": tmp_path / "vendor/log",
        }

    def test_virtual_manifest(self, tmp_path: Path):
        (tmp_path / "Cargo.toml").write_text('[workspace]\nmembers = ["a"]\n')
        manifest = CargoManifest.load(tmp_path / "Cargo.toml")
        assert manifest.package is None
        assert manifest.workspace is not None

    def test_malformed(self, tmp_path: Path):
        (tmp_path / "Cargo.toml").write_text("[package\nname = ")
        with pytest.raises(ManifestParseError):
            CargoManifest.load(tmp_path / "Cargo.toml")

    def test_missing(self, tmp_path: Path):
        with pytest.raises(ManifestParseError):
            CargoManifest.load(tmp_path / "Cargo.toml")

    def test_workspace_inheritance(self, tmp_path: Path):
        """Test version and dependency inheritance from the workspace root."""
        (tmp_path / "Cargo.toml").write_text(
            """
[workspace]
members = ["member"]

[workspace.package]
version = "2.1.0"

[workspace.dependencies]
serde = "1.0"
shared = { path = "shared" }
"""
        )
        member = tmp_path / "member"
        member.mkdir()
        (member / "Cargo.toml").write_text(
            """
[package]
name = "member"
version.workspace = true

[dependencies]
serde = { workspace = true }
shared = { workspace = true }
"""
        )

        manifest = CargoManifest.load(member / "Cargo.toml").resolve_inherited()

        assert manifest.package.version == "2.1.0"
        assert manifest.dependencies["serde"].version == "1.0"
        assert manifest.local_paths() == {"shared": tmp_path / "shared"}

    def test_inheritance_without_workspace(self, tmp_path: Path):
        crate = tmp_path / "lonely"
        crate.mkdir()
        (crate / "Cargo.toml").write_text(
            '[package]\nname = "lonely"\nversion = "1.0.0"\n\n[dependencies]\nserde = { workspace = true }\n'
        )

        with pytest.raises(ManifestParseError):
            CargoManifest.load(crate / "Cargo.toml").resolve_inherited()

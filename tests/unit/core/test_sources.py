"""
Tests for the crate source variants and the CrateRef dispatcher.

Registry crates come from an on-disk index written by the ``index_writer``
fixture; local crates are real directories under ``tmp_path``.
"""

from dataclasses import MISSING, fields
from pathlib import Path
from types import MappingProxyType
from unittest.mock import patch

import pytest

from carguix.core.lockfile import CargoLock
from carguix.core.sources import (
    CrateRef,
    CrateSource,
    GitSource,
    LockSource,
    PathSource,
    RegistrySource,
    SimpleSource,
    extend_paths,
)
from carguix.errors import (
    BadLockFileDependency,
    CanonicalizationFailed,
    CrateNotFound,
    DependencyProcessingFailed,
    GitDependencyUnsupported,
    GitSourceUnsupported,
    LocalPathNotFound,
    NoMatchingVersion,
    NoPackageInManifest,
    NoVersionMatchingRequirement,
    PackageNotFoundInLock,
    UnsupportedRegistry,
)

REGISTRY = "registry+https://github.com/rust-lang/crates.io-index"


def lock_text(*packages):
    """Render [[package]] records: (name, version, source or None, [deps])."""
    blocks = ["version = 3\n"]
    for name, version, source, deps in packages:
        block = f'[[package]]\nname = "{name}"\nversion = "{version}"\n'
        if source:
            block += f'source = "{source}"\n'
        if deps:
            block += "dependencies = [\n" + "".join(f' "{d}",\n' for d in deps) + "]\n"
        blocks.append(block)
    return "\n".join(blocks)


class TestRegistrySource:
    def test_latest_version(self, context, index_writer):
        index_writer.publish("serde", "1.0.0")
        index_writer.publish("serde", "1.0.104")

        source = RegistrySource.new(context, "serde")
        assert (source.crate_name, source.crate_version) == ("serde", "1.0.104")

    def test_exact_version(self, context, index_writer):
        index_writer.publish("serde", "1.0.0")
        index_writer.publish("serde", "1.0.104")

        assert RegistrySource.new(context, "serde", "1.0.0").crate_version == "1.0.0"

    def test_exact_version_may_be_yanked(self, context, index_writer):
        index_writer.publish("serde", "1.0.0", yanked=True)
        assert RegistrySource.new(context, "serde", "1.0.0").crate_version == "1.0.0"

    def test_unknown_crate(self, context):
        with pytest.raises(CrateNotFound):
            RegistrySource.new(context, "does-not-exist")

    def test_unknown_version(self, context, index_writer):
        index_writer.publish("serde", "1.0.0")
        with pytest.raises(NoMatchingVersion):
            RegistrySource.new(context, "serde", "9.9.9")

    def test_with_requirement_picks_greatest(self, context, index_writer):
        for version in ["1.0.0", "1.2.0", "1.10.0", "2.0.0"]:
            index_writer.publish("log", version)

        assert RegistrySource.with_requirement(context, "log", "^1.0").crate_version == "1.10.0"

    def test_with_requirement_skips_yanked(self, context, index_writer):
        index_writer.publish("log", "1.0.0")
        index_writer.publish("log", "1.1.0", yanked=True)

        assert RegistrySource.with_requirement(context, "log", "1").crate_version == "1.0.0"

    def test_with_requirement_no_match(self, context, index_writer):
        index_writer.publish("log", "1.0.0")
        with pytest.raises(NoVersionMatchingRequirement):
            RegistrySource.with_requirement(context, "log", "2")

    def test_with_requirement_goes_through_context_resolver(self, context, index_writer):
        index_writer.publish("log", "1.0.0")
        index_writer.publish("log", "1.1.0")

        with patch.object(context.resolver, "resolve", return_value="1.0.0") as resolve:
            source = RegistrySource.with_requirement(context, "log", "^1")

        resolve.assert_called_once_with("log", "^1")
        assert source.crate_version == "1.0.0"

    def test_with_requirement_unknown_crate(self, context):
        with pytest.raises(CrateNotFound):
            RegistrySource.with_requirement(context, "does-not-exist", "1")

    def test_locator(self, context, index_writer):
        index_writer.publish("serde", "1.0.104")
        source = RegistrySource.new(context, "serde")
        assert source.source(context) == "https://crates.io/api/v1/crates/serde/1.0.104/download"

    def test_dependencies(self, context, index_writer):
        """Normal and build dependencies only; renamed ones under their real name."""
        index_writer.publish("itoa", "1.0.0")
        index_writer.publish("ryu", "1.0.0")
        index_writer.publish("cc", "1.0.0")
        index_writer.publish("serde", "1.0.0")
        index_writer.publish(
            "serde_json",
            "1.0.0",
            deps=[
                {"name": "itoa", "req": "^1"},
                {"name": "float", "req": "1", "package": "ryu"},
                {"name": "cc", "req": "1", "kind": "build"},
                {"name": "serde", "req": "1", "kind": "dev"},
                {"name": "indexmap", "req": "1", "optional": True},
            ],
        )

        deps = RegistrySource.new(context, "serde_json").dependencies(context)

        assert [d.crate_name for d in deps] == ["itoa", "ryu", "cc"]
        assert all(isinstance(d.source, RegistrySource) for d in deps)


class TestLockSource:
    def _lock(self):
        return CargoLock.loads(
            lock_text(
                ("app", "0.1.0", None, [f"serde 1.0.104 ({REGISTRY})", f"log ({REGISTRY})", "util 0.2.0"]),
                ("serde", "1.0.104", REGISTRY, []),
                ("log", "0.4.8", REGISTRY, []),
                ("util", "0.2.0", None, []),
            )
        )

    def test_new(self):
        source = LockSource.new("serde", "1.0.104", self._lock())
        assert (source.crate_name, source.crate_version) == ("serde", "1.0.104")

    def test_new_any_version(self):
        assert LockSource.new("log", None, self._lock()).crate_version == "0.4.8"

    def test_not_in_lock(self):
        with pytest.raises(PackageNotFoundInLock) as exc_info:
            LockSource.new("rand", None, self._lock())
        assert exc_info.value.version == "any version"

    def test_from_path(self, tmp_path):
        path = tmp_path / "Cargo.lock"
        path.write_text(lock_text(("serde", "1.0.104", REGISTRY, [])))
        assert LockSource.from_path("serde", "1.0.104", path).crate_version == "1.0.104"

    def test_registry_locator(self, context):
        source = LockSource.new("serde", "1.0.104", self._lock())
        assert source.source(context) == "https://crates.io/api/v1/crates/serde/1.0.104/download"

    def test_local_locator_from_path_table(self, context, tmp_path):
        paths = MappingProxyType({"util": tmp_path / "util"})
        source = LockSource.new("util", "0.2.0", self._lock(), paths)
        assert source.source(context) == (tmp_path / "util").resolve().as_uri()

    def test_local_locator_defaults_to_working_directory(self, context, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        source = LockSource.new("app", "0.1.0", self._lock())
        assert source.source(context) == tmp_path.resolve().as_uri()

    def test_dependencies(self, context, tmp_path, make_crate):
        """Pinned and named references stay in the lock; local ones become path sources."""
        util = make_crate(tmp_path / "util", '[package]\nname = "util"\nversion = "0.2.0"\n')
        paths = MappingProxyType({"util": util})
        source = LockSource.new("app", "0.1.0", self._lock(), paths)

        deps = source.dependencies(context)

        assert [(d.crate_name, d.version) for d in deps] == [
            ("serde", "1.0.104"),
            ("log", "0.4.8"),
            ("util", "0.2.0"),
        ]
        assert isinstance(deps[0].source, LockSource)
        assert isinstance(deps[1].source, LockSource)
        assert isinstance(deps[2].source, PathSource)

    def test_local_dependency_without_path(self, context):
        source = LockSource.new("app", "0.1.0", self._lock())
        with pytest.raises(LocalPathNotFound) as exc_info:
            source.dependencies(context)
        assert exc_info.value.crate_name == "util"
        assert exc_info.value.owner == "app"

    def test_crate_paths_default_is_empty(self):
        lock = self._lock()
        source = LockSource(package=lock.get_package("serde"), lock=lock)

        assert dict(source.crate_paths) == {}
        assert all(f.default is MISSING for f in fields(LockSource) if f.name == "crate_paths")
        assert all(f.default is MISSING for f in fields(PathSource) if f.name == "crate_paths")

    def test_sparse_crates_io_locator(self, context):
        lock = CargoLock.loads(lock_text(("serde", "1.0.104", "sparse+https://index.crates.io/", [])))
        source = LockSource.new("serde", "1.0.104", lock)
        assert source.source(context) == "https://crates.io/api/v1/crates/serde/1.0.104/download"

    def test_git_locator_is_unsupported(self, context):
        lock = CargoLock.loads(lock_text(("foo", "0.3.0", "git+https://example.com/foo.git#abc", [])))
        source = LockSource.new("foo", "0.3.0", lock)

        with pytest.raises(GitSourceUnsupported) as exc_info:
            source.source(context)
        assert exc_info.value.url == "git+https://example.com/foo.git#abc"

    def test_other_registry_locator_is_unsupported(self, context):
        lock = CargoLock.loads(lock_text(("foo", "0.3.0", "sparse+https://my.registry/index/", [])))
        source = LockSource.new("foo", "0.3.0", lock)

        with pytest.raises(UnsupportedRegistry) as exc_info:
            source.source(context)
        assert exc_info.value.source == "sparse+https://my.registry/index/"

    def test_versioned_reference_to_published_crate(self, context):
        """Cargo drops the source tag when a crate is locked at several versions."""
        lock = CargoLock.loads(
            lock_text(
                ("app", "0.1.0", None, ["syn 1.0.109", "syn 2.0.48"]),
                ("syn", "1.0.109", REGISTRY, []),
                ("syn", "2.0.48", REGISTRY, []),
            )
        )

        deps = LockSource.new("app", "0.1.0", lock).dependencies(context)

        assert [(d.crate_name, d.version) for d in deps] == [("syn", "1.0.109"), ("syn", "2.0.48")]
        assert all(isinstance(d.source, LockSource) for d in deps)
        assert deps[0].locator(context) == "https://crates.io/api/v1/crates/syn/1.0.109/download"

    def test_malformed_dependency_is_wrapped(self, context):
        """A bare crate name is rejected, naming the crate that declared it."""
        lock = CargoLock.loads(lock_text(("app", "0.1.0", None, ["serde"])))
        ref = CrateRef.of(LockSource.new("app", "0.1.0", lock))

        with pytest.raises(DependencyProcessingFailed) as exc_info:
            ref.dependencies(context)

        assert exc_info.value.crate_name == "app"
        assert exc_info.value.version == "0.1.0"
        assert isinstance(exc_info.value.__cause__, BadLockFileDependency)


class TestPathSource:
    def test_new(self, context, tmp_path, make_crate):
        crate = make_crate(
            tmp_path / "app",
            '[package]\nname = "app"\nversion = "0.1.0"\nhomepage = "https://example.com"\n'
            'description = "An app.\\nWith details."\nlicense = "MIT"\n',
        )

        source = PathSource.new(context, crate)

        assert (source.crate_name, source.crate_version) == ("app", "0.1.0")
        assert source.source(context) == crate.resolve().as_uri()
        assert source.lock is None
        assert source.metadata() == {
            "home_page": "https://example.com",
            "synopsis": "An app.",
            "description": "An app.\nWith details.",
            "license": "MIT",
        }

    def test_missing_directory(self, context, tmp_path):
        with pytest.raises(CanonicalizationFailed):
            PathSource.new(context, tmp_path / "nope")

    def test_virtual_manifest(self, context, tmp_path, make_crate):
        crate = make_crate(tmp_path / "ws", '[workspace]\nmembers = []\n')
        with pytest.raises(NoPackageInManifest):
            PathSource.new(context, crate)

    def test_dependencies_without_lock(self, context, tmp_path, make_crate, index_writer):
        index_writer.publish("serde", "1.0.0")
        index_writer.publish("serde", "1.0.9")
        make_crate(tmp_path / "util", '[package]\nname = "util"\nversion = "0.2.0"\n')
        crate = make_crate(
            tmp_path / "app",
            '[package]\nname = "app"\nversion = "0.1.0"\n\n'
            '[dependencies]\nserde = "1"\nutil = { path = "../util" }\n'
            'extra = { version = "1", optional = true }\n\n'
            '[dev-dependencies]\nproptest = "1"\n',
        )

        deps = PathSource.new(context, crate).dependencies(context)

        assert [(d.crate_name, d.version) for d in deps] == [("serde", "1.0.9"), ("util", "0.2.0")]
        assert isinstance(deps[1].source, PathSource)

    def test_git_dependency_without_lock(self, context, tmp_path, make_crate):
        crate = make_crate(
            tmp_path / "app",
            '[package]\nname = "app"\nversion = "0.1.0"\n\n'
            '[dependencies]\nfoo = { git = "https://example.com/foo.git" }\n',
        )
        with pytest.raises(GitDependencyUnsupported):
            PathSource.new(context, crate).dependencies(context)

    def test_dependencies_follow_lock(self, context, tmp_path, make_crate):
        """With a lock, versions come from the lock and local crates from the path table."""
        lock = lock_text(
            ("app", "0.1.0", None, [f"serde 1.0.104 ({REGISTRY})", "util 0.2.0"]),
            ("serde", "1.0.104", REGISTRY, []),
            ("util", "0.2.0", None, []),
        )
        make_crate(tmp_path / "ws" / "util", '[package]\nname = "util"\nversion = "0.2.0"\n')
        crate = make_crate(
            tmp_path / "ws" / "app",
            '[package]\nname = "app"\nversion = "0.1.0"\n\n'
            '[dependencies]\nserde = "1"\nutil = { path = "../util" }\n',
        )
        (tmp_path / "ws" / "Cargo.lock").write_text(lock)

        source = PathSource.new(context, crate)
        deps = source.dependencies(context)

        assert source.lock is not None
        assert [(d.crate_name, d.version) for d in deps] == [("serde", "1.0.104"), ("util", "0.2.0")]
        assert deps[0].locator(context) == "https://crates.io/api/v1/crates/serde/1.0.104/download"
        assert deps[1].locator(context) == (tmp_path / "ws" / "util").resolve().as_uri()

    def test_path_table_is_extended_not_mutated(self, context, tmp_path, make_crate):
        make_crate(tmp_path / "util", '[package]\nname = "util"\nversion = "0.2.0"\n')
        crate = make_crate(
            tmp_path / "app",
            '[package]\nname = "app"\nversion = "0.1.0"\n\n[dependencies]\nutil = { path = "../util" }\n',
        )
        inherited = MappingProxyType({"other": tmp_path / "other"})

        source = PathSource.new(context, crate, inherited)

        assert dict(inherited) == {"other": tmp_path / "other"}
        assert set(source.crate_paths) == {"other", "util"}
        with pytest.raises(TypeError):
            source.crate_paths["x"] = tmp_path


class TestSimpleSource:
    def test_from_dict(self, context):
        data = {
            "name": "app",
            "version": "0.1.0",
            "source": "file:///src/app",
            "dependencies": [
                {"name": "serde", "version": "1.0.104", "source": "https://example.com/serde"},
            ],
        }

        source = SimpleSource.from_dict(data)
        deps = source.dependencies(context)

        assert source.source(context) == "file:///src/app"
        assert [(d.crate_name, d.version) for d in deps] == [("serde", "1.0.104")]
        assert source.to_dict()["dependencies"][0]["dependencies"] == []


class TestGitSource:
    def test_every_capability_is_unsupported(self, context):
        source = GitSource("https://example.com/foo.git", "main")
        with pytest.raises(GitSourceUnsupported):
            source.crate_version
        with pytest.raises(GitSourceUnsupported):
            source.source(context)
        with pytest.raises(GitSourceUnsupported):
            source.dependencies(context)


class TestCrateRef:
    def test_names(self):
        ref = CrateRef.of(SimpleSource("Foo-Bar", "1.2.3", "file:///x"))
        assert ref.package_name() == "foo-bar-1.2.3"
        assert ref.definition_name() == "rust-foo-bar"
        assert ref.identity() == ("Foo-Bar", "1.2.3")

    def test_rejects_unknown_source(self):
        with pytest.raises(TypeError):
            CrateRef("foo", object())

    def test_rejects_source_outside_the_variant_set(self):
        class ForeignSource(CrateSource):
            crate_name = "foo"
            crate_version = "1.0.0"

            def source(self, context):
                return "file:///foo"

            def dependencies(self, context):
                return []

        with pytest.raises(TypeError, match="ForeignSource"):
            CrateRef("foo", ForeignSource())


def test_extend_paths_copies(tmp_path: Path):
    base = MappingProxyType({"a": tmp_path / "a"})
    extended = extend_paths(base, {"b": tmp_path / "b"})
    assert set(extended) == {"a", "b"}
    assert set(base) == {"a"}

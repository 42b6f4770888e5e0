"""Tests for lock file reading and provenance resolution."""

import pytest

from mixgraph.errors import LockFileError
from mixgraph.lock import classify_entry, parse_lock, read_lock, resolve
from mixgraph.models import (
    DependencySpec,
    LocalPathProvenance,
    RegistryProvenance,
    UnknownProvenance,
    VersionControlProvenance,
)
from mixgraph.terms import Atom


def hex_entry(name, version, deps=(), outer=None):
    entry = (
        Atom("hex"), Atom(name), version, f"{name}-inner", [Atom("mix")],
        list(deps), "hexpm",
    )
    return entry + (outer,) if outer else entry


def required(name):
    return (Atom(name), "~> 1.0", [(Atom("hex"), Atom(name)), (Atom("optional"), False)])


def optional(name):
    return (Atom(name), "~> 1.0", [(Atom("hex"), Atom(name)), (Atom("optional"), True)])


class TestParseLock:
    """Test parse_lock and read_lock."""

    def test_parses_entries(self, sample_mix_lock):
        """Should map package names to their lock tuples."""
        entries = parse_lock(sample_mix_lock)

        assert sorted(entries) == [
            "bunt", "credo", "jason", "mime", "plug", "plug_crypto", "sparse_dep",
        ]
        assert entries["jason"][2] == "1.4.1"

    def test_empty_content(self):
        """Should treat an empty lock file as having no entries."""
        assert parse_lock("") == {}
        assert parse_lock("%{}") == {}

    def test_not_a_map(self):
        """Should raise LockFileError for a non-map term."""
        with pytest.raises(LockFileError):
            parse_lock("[1, 2]")

    def test_syntax_error(self):
        """Should raise LockFileError for unreadable text."""
        with pytest.raises(LockFileError):
            parse_lock('%{"jason": {:hex, :jason')

    def test_missing_file(self, tmp_path):
        """Should return no entries when the lock file does not exist."""
        assert read_lock(tmp_path / "mix.lock") == {}


class TestClassifyEntry:
    """Test classify_entry provenance rules."""

    def test_current_registry_entry(self, sample_mix_lock):
        """Should read both checksums, managers and repo from an 8-tuple."""
        entries = parse_lock(sample_mix_lock)

        provenance, sub_deps = classify_entry("jason", entries["jason"])

        assert provenance == RegistryProvenance(
            hex_name="jason",
            resolved_version="1.4.1",
            integrity_checksum="jason-outer",
            inner_checksum="jason-inner",
            managers=("mix",),
            repo="hexpm",
        )
        assert sub_deps == [("decimal", True)]

    def test_legacy_registry_entry(self):
        """Should accept the old four element form without an outer checksum."""
        provenance, sub_deps = classify_entry(
            "poison", (Atom("hex"), Atom("poison"), "3.1.0", "abc123")
        )

        assert isinstance(provenance, RegistryProvenance)
        assert provenance.resolved_version == "3.1.0"
        assert provenance.inner_checksum == "abc123"
        assert provenance.integrity_checksum is None
        assert provenance.managers == ()
        assert sub_deps == []

    def test_seven_element_entry(self):
        """Should leave the outer checksum empty for a 7-tuple."""
        provenance, sub_deps = classify_entry("a", hex_entry("a", "1.0.0", [required("b")]))

        assert provenance.integrity_checksum is None
        assert provenance.repo == "hexpm"
        assert sub_deps == [("b", False)]

    def test_renamed_registry_package(self):
        """Should report the registry package name rather than the app name."""
        provenance, _ = classify_entry("my_jason", hex_entry("jason", "1.4.1"))

        assert provenance.hex_name == "jason"

    def test_git_entry(self, sample_mix_lock):
        """Should read the URL, commit and sparse path of a git entry."""
        entries = parse_lock(sample_mix_lock)

        provenance, sub_deps = classify_entry("sparse_dep", entries["sparse_dep"])

        assert provenance == VersionControlProvenance(
            url="https://github.com/example/mono.git",
            resolved_ref="0123456789abcdef",
            sparse_subpath="sparse_dep",
        )
        assert sub_deps == []

    def test_git_entry_options(self):
        """Should keep branch, tag and submodule options."""
        entry = (
            Atom("git"), "https://example.com/x.git", "abc",
            [(Atom("branch"), "main"), (Atom("submodules"), True), (Atom("deps"), [required("y")])],
        )

        provenance, sub_deps = classify_entry("x", entry)

        assert provenance.branch == "main"
        assert provenance.tag is None
        assert provenance.submodules is True
        assert sub_deps == [("y", False)]

    def test_declared_path(self):
        """Should fall back to the declared path without a lock entry."""
        spec = DependencySpec(name="local", options={"path": "../local"})

        provenance, _ = classify_entry("local", None, spec)

        assert provenance == LocalPathProvenance(relative_path="../local")

    def test_umbrella_sibling(self):
        """Should place in_umbrella dependencies next to the project."""
        spec = DependencySpec(name="core", options={"in_umbrella": True})

        provenance, _ = classify_entry("core", None, spec)

        assert provenance == LocalPathProvenance(relative_path="../core")

    def test_unknown(self):
        """Should report unknown provenance for an unrecognised entry."""
        provenance, _ = classify_entry("odd", (Atom("svn"), "url"))

        assert provenance == UnknownProvenance()


class TestResolve:
    """Test resolve closure over lock entries."""

    def test_transitive_closure(self, sample_mix_lock):
        """Should include every package reachable from the declared deps."""
        entries = parse_lock(sample_mix_lock)
        declared = [DependencySpec(name="plug")]

        resolved = {dep.name: dep for dep in resolve(declared, entries)}

        assert resolved["plug"].immediate_dependencies == ["mime", "plug_crypto", "telemetry"]
        assert isinstance(resolved["telemetry"].provenance, UnknownProvenance)
        assert resolved["telemetry"].immediate_dependencies == []
        assert resolved["plug"].declaration is declared[0]
        assert resolved["mime"].declaration is None

    def test_unlocked_optional_is_pruned(self, sample_mix_lock):
        """Should drop optional sub-dependencies that are not locked."""
        entries = parse_lock(sample_mix_lock)

        resolved = {dep.name: dep for dep in resolve([DependencySpec(name="jason")], entries)}

        assert resolved["jason"].immediate_dependencies == []
        assert "decimal" not in resolved

    def test_locked_optional_is_kept(self):
        """Should keep optional sub-dependencies present in the lock."""
        entries = {
            "jason": hex_entry("jason", "1.4.1", [optional("decimal")]),
            "decimal": hex_entry("decimal", "2.1.1"),
        }

        resolved = {dep.name: dep for dep in resolve([DependencySpec(name="jason")], entries)}

        assert resolved["jason"].immediate_dependencies == ["decimal"]
        assert isinstance(resolved["decimal"].provenance, RegistryProvenance)

    def test_unreached_entries_are_appended(self):
        """Should add lock entries nothing declared reaches, in name order."""
        entries = {
            "a": hex_entry("a", "1.0.0"),
            "z": hex_entry("z", "1.0.0"),
            "m": hex_entry("m", "1.0.0", [required("a")]),
        }

        names = [dep.name for dep in resolve([DependencySpec(name="z")], entries)]

        assert names == ["z", "a", "m"]

    def test_excluded_declarations(self, sample_mix_lock):
        """Should leave out packages only reachable from disabled deps."""
        entries = parse_lock(sample_mix_lock)
        declared = [DependencySpec(name="jason"), DependencySpec(name="plug")]

        names = {dep.name for dep in resolve(declared, entries, excluded=["credo"])}

        assert "credo" not in names
        assert "bunt" not in names
        assert names == {"jason", "plug", "mime", "plug_crypto", "telemetry", "sparse_dep"}

    def test_shared_dependency_resolved_once(self):
        """Should resolve a diamond dependency a single time."""
        entries = {
            "a": hex_entry("a", "1.0.0", [required("c")]),
            "b": hex_entry("b", "1.0.0", [required("c")]),
            "c": hex_entry("c", "1.0.0"),
        }

        names = [dep.name for dep in resolve(
            [DependencySpec(name="a"), DependencySpec(name="b")], entries
        )]

        assert names == ["a", "b", "c"]

    def test_duplicate_declarations(self):
        """Should keep the first declaration of a repeated name."""
        first = DependencySpec(name="a", requirement="~> 1.0")
        second = DependencySpec(name="a", requirement="~> 2.0")

        resolved = resolve([first, second], {"a": hex_entry("a", "1.0.0")})

        assert len(resolved) == 1
        assert resolved[0].declaration is first

"""Tests for manifest assembly."""

import json
from unittest.mock import patch

import pytest

from mixgraph.errors import DescriptorError
from mixgraph.manifest import ManifestBuilder, build_manifest, dependency_path, inspect_package
from mixgraph.models import (
    LocalPathProvenance,
    RegistryProvenance,
    ResolvedDependency,
    UnknownProvenance,
    VersionControlProvenance,
)
from mixgraph.report import dumps


class TestManifestBuilder:
    """Test ManifestBuilder.build over a fixture project."""

    def setup_method(self):
        """Set up test fixtures."""
        self.builder = ManifestBuilder(max_concurrency=2)

    def test_invalid_concurrency(self):
        """Should reject a concurrency limit below one."""
        with pytest.raises(ValueError):
            ManifestBuilder(max_concurrency=0)

    @pytest.mark.asyncio
    async def test_builds_every_package(self, mix_project):
        """Should produce the root package and all locked dependencies sorted by name."""
        manifest = await self.builder.build(mix_project, env="dev")

        assert manifest.root_package.name == "demo"
        assert [record.name for record in manifest.dependencies] == [
            "bunt", "credo", "jason", "local_lib", "mime",
            "plug", "plug_crypto", "sparse_dep", "telemetry",
        ]

    @pytest.mark.asyncio
    async def test_root_package(self, mix_project):
        """Should describe the root as a buildable local package."""
        manifest = await self.builder.build(mix_project)
        root = manifest.root_package

        assert root.path == str(mix_project.resolve())
        assert root.provenance == LocalPathProvenance()
        assert root.is_buildable_via_native_tool is True
        assert root.immediate_dependencies == ["jason", "plug", "credo", "local_lib", "sparse_dep"]
        assert root.source_profile.has_primary_source is True
        assert root.project.app == "demo"

    @pytest.mark.asyncio
    async def test_registry_dependency(self, mix_project):
        """Should attach lock data and the ebin application descriptor."""
        manifest = await self.builder.build(mix_project)
        jason = manifest.get("jason")

        assert isinstance(jason.provenance, RegistryProvenance)
        assert jason.provenance.integrity_checksum == "jason-outer"
        assert jason.immediate_dependencies == []
        assert jason.app_descriptor.vsn == "1.4.1"
        assert jason.is_buildable_via_native_tool is True
        assert jason.path == str(mix_project.resolve() / "deps" / "jason")

    @pytest.mark.asyncio
    async def test_descriptor_from_root_build(self, mix_project):
        """Should find a dependency's application file in the root _build."""
        manifest = await self.builder.build(mix_project, env="dev")
        plug = manifest.get("plug")

        assert plug.immediate_dependencies == ["mime", "plug_crypto", "telemetry"]
        assert plug.app_descriptor.mod.module == "Elixir.Plug.Application"

    @pytest.mark.asyncio
    async def test_unfetched_and_unknown_dependencies(self, mix_project):
        """Should keep packages that are not on disk with empty file data."""
        manifest = await self.builder.build(mix_project)
        telemetry = manifest.get("telemetry")
        mime = manifest.get("mime")

        assert isinstance(telemetry.provenance, UnknownProvenance)
        assert mime.app_descriptor is None
        assert mime.is_buildable_via_native_tool is False
        assert mime.source_profile.has_primary_source is False

    @pytest.mark.asyncio
    async def test_local_and_git_dependencies(self, mix_project):
        """Should place path dependencies relative to the root."""
        manifest = await self.builder.build(mix_project)
        local = manifest.get("local_lib")
        sparse = manifest.get("sparse_dep")

        assert local.provenance == LocalPathProvenance(relative_path="../local_lib")
        assert local.path == str(mix_project.resolve().parent / "local_lib")
        assert local.is_buildable_via_native_tool is True
        assert isinstance(sparse.provenance, VersionControlProvenance)
        assert sparse.source_profile.compile_first == ["src/sparse_dep.erl"]

    @pytest.mark.asyncio
    async def test_environment_filtering(self, mix_project):
        """Should leave out dev-only dependencies and what only they pull in."""
        manifest = await self.builder.build(mix_project, env="prod")
        names = {record.name for record in manifest.dependencies}

        assert "credo" not in names
        assert "bunt" not in names
        assert "credo" not in manifest.root_package.immediate_dependencies

    @pytest.mark.asyncio
    async def test_graph_is_closed(self, mix_project):
        """Should only have edges between packages present in the manifest."""
        manifest = await self.builder.build(mix_project)
        names = {record.name for record in manifest.packages}

        for targets in manifest.graph().values():
            assert set(targets) <= names

    @pytest.mark.asyncio
    async def test_inspection_failure_degrades(self, mix_project):
        """Should keep a package with empty file data when inspection fails."""
        with patch("mixgraph.manifest.classify", side_effect=OSError("permission denied")):
            manifest = await self.builder.build(mix_project)

        jason = manifest.get("jason")
        assert jason is not None
        assert jason.app_descriptor is None
        assert jason.source_profile.has_primary_source is False

    @pytest.mark.asyncio
    async def test_missing_lock_file(self, mix_project):
        """Should treat every declared dependency as unlocked."""
        (mix_project / "mix.lock").unlink()

        manifest = await self.builder.build(mix_project)

        assert [record.name for record in manifest.dependencies] == [
            "credo", "jason", "local_lib", "plug", "sparse_dep",
        ]
        assert isinstance(manifest.get("jason").provenance, UnknownProvenance)
        assert isinstance(manifest.get("local_lib").provenance, LocalPathProvenance)

    @pytest.mark.asyncio
    async def test_malformed_lock_file(self, mix_project):
        """Should resolve without lock entries when the lock cannot be parsed."""
        (mix_project / "mix.lock").write_text('%{"jason": {:hex, :jason, "1.4.1"')

        manifest = await self.builder.build(mix_project)

        assert [record.name for record in manifest.dependencies] == [
            "credo", "jason", "local_lib", "plug", "sparse_dep",
        ]
        assert isinstance(manifest.get("jason").provenance, UnknownProvenance)
        assert manifest.get("local_lib").provenance == LocalPathProvenance("../local_lib")
        assert manifest.root_package.immediate_dependencies == [
            "jason", "plug", "credo", "local_lib", "sparse_dep",
        ]

    @pytest.mark.asyncio
    async def test_self_dependency_is_ignored(self, mix_project):
        """Should not list the root application as its own dependency."""
        mix_exs = mix_project / "mix.exs"
        mix_exs.write_text(mix_exs.read_text().replace(
            '{:jason, "~> 1.4"},', '{:jason, "~> 1.4"},\n      {:demo, path: "."},'
        ))

        manifest = await self.builder.build(mix_project)

        assert "demo" not in manifest.root_package.immediate_dependencies
        assert manifest.get("demo") is manifest.root_package
        assert "demo" not in manifest.graph()["demo"]
        assert [record.name for record in manifest.dependencies].count("demo") == 0

    @pytest.mark.asyncio
    async def test_missing_project(self, tmp_path):
        """Should raise DescriptorError without a root mix.exs."""
        with pytest.raises(DescriptorError):
            await self.builder.build(tmp_path)


class TestBuildManifest:
    """Test the synchronous wrapper and helpers."""

    def test_output_is_stable(self, mix_project):
        """Should render identical JSON for repeated runs."""
        first = dumps(build_manifest(mix_project, max_concurrency=1))
        second = dumps(build_manifest(mix_project, max_concurrency=4))

        assert first == second
        assert json.loads(first)[0]["app_name"] == "demo"

    def test_dependency_path(self, tmp_path):
        """Should use deps_path for fetched packages and the relative path for local ones."""
        fetched = ResolvedDependency(name="a", provenance=UnknownProvenance())
        local = ResolvedDependency(name="b", provenance=LocalPathProvenance("../b"))

        assert dependency_path(fetched, tmp_path, "deps") == tmp_path / "deps" / "a"
        assert dependency_path(local, tmp_path / "root", "deps") == tmp_path / "b"

    def test_inspect_package(self, mix_project):
        """Should gather source and descriptor data for one package."""
        files = inspect_package("jason", mix_project / "deps" / "jason", mix_project, "dev")

        assert files.has_mix_exs is True
        assert files.source_profile.has_primary_source is True
        assert files.app_descriptor.vsn == "1.4.1"

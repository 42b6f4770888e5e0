"""Tests for application resource file lookup and parsing."""

from conftest import JASON_APP, PLUG_APP, write_files

from mixgraph.app_file import extract, find_app_file, find_app_src, parse_app_file
from mixgraph.models import StartCallback
from mixgraph.terms import Atom


class TestParseAppFile:
    """Test parse_app_file."""

    def test_reads_descriptor(self):
        """Should read version, description and application lists."""
        descriptor = parse_app_file(JASON_APP, "jason")

        assert descriptor.vsn == "1.4.1"
        assert descriptor.description.startswith("A blazing fast JSON parser")
        assert descriptor.modules == ["Elixir.Jason", "Elixir.Jason.Decoder"]
        assert descriptor.applications == ["kernel", "stdlib", "elixir", "decimal"]
        assert descriptor.optional_applications == ["decimal"]
        assert descriptor.registered == []
        assert descriptor.mod is None
        assert descriptor.env == []

    def test_reads_start_callback_and_env(self):
        """Should read mod and env entries."""
        descriptor = parse_app_file(PLUG_APP, "plug")

        assert descriptor.mod == StartCallback(module="Elixir.Plug.Application", args=[])
        assert descriptor.env == [(Atom("mimes"), []), (Atom("statuses"), {})]

    def test_name_mismatch(self):
        """Should return None when the file describes another application."""
        assert parse_app_file(JASON_APP, "poison") is None

    def test_malformed(self):
        """Should return None for unreadable or unexpected content."""
        assert parse_app_file("{application, jason", "jason") is None
        assert parse_app_file("{application, jason, []}.\n{extra}.\n", "jason") is None
        assert parse_app_file("[1, 2].", "jason") is None


class TestFindAppFile:
    """Test the application file search order."""

    def test_package_ebin(self, mix_project):
        """Should find ebin/<name>.app inside the package."""
        path = find_app_file("jason", mix_project / "deps" / "jason", mix_project)

        assert path == mix_project / "deps" / "jason" / "ebin" / "jason.app"

    def test_package_build_dir(self, tmp_path):
        """Should find a package's own _build output."""
        write_files(tmp_path, {"_build/test/lib/pkg/ebin/pkg.app": "{application, pkg, []}.\n"})

        path = find_app_file("pkg", tmp_path)

        assert path == tmp_path / "_build" / "test" / "lib" / "pkg" / "ebin" / "pkg.app"

    def test_root_build_dir(self, mix_project):
        """Should fall back to the root project's _build for the environment."""
        package = mix_project / "deps" / "plug"

        assert find_app_file("plug", package, mix_project, "dev") == (
            mix_project / "_build" / "dev" / "lib" / "plug" / "ebin" / "plug.app"
        )
        assert find_app_file("plug", package, mix_project, "prod") is None

    def test_not_found(self, mix_project):
        """Should return None when no file exists."""
        assert find_app_file("demo", mix_project, mix_project) is None


class TestExtract:
    """Test extract."""

    def test_extract_from_root_build(self, mix_project):
        """Should read the descriptor found via the root _build."""
        descriptor = extract("plug", mix_project / "deps" / "plug", mix_project, "dev")

        assert descriptor.vsn == "1.15.3"
        assert "telemetry" in descriptor.applications

    def test_missing_descriptor(self, tmp_path):
        """Should return None for a package without an application file."""
        write_files(tmp_path, {"deps/bare/lib/bare.ex": "defmodule Bare do\nend\n"})

        assert extract("bare", tmp_path / "deps" / "bare", tmp_path) is None

    def test_find_app_src(self, tmp_path):
        """Should locate src/<name>.app.src before a top-level one."""
        write_files(tmp_path, {"src/lib.app.src": "{application, lib, []}.\n"})

        assert find_app_src("lib", tmp_path) == "src/lib.app.src"
        assert find_app_src("other", tmp_path) is None

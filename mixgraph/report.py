"""JSON rendering of a build manifest."""

import base64
import json
from typing import Any

from .etf import term_to_binary
from .models import (
    AppDescriptor,
    LocalPathProvenance,
    Manifest,
    PackageRecord,
    ProjectDescriptor,
    RegistryProvenance,
    VersionControlProvenance,
)
from .terms import Atom, RawExpr, to_json


def encode_term(term: Any) -> str:
    """Base64 of the term's External Term Format encoding."""
    return base64.b64encode(term_to_binary(term)).decode("ascii")


def literal_only(term: Any) -> Any:
    """Drop list items and map values that still hold a non-literal expression."""
    if isinstance(term, list):
        items = (literal_only(item) for item in term)
        return [item for item in items if not _has_raw(item)]
    if isinstance(term, tuple):
        return tuple(literal_only(item) for item in term)
    if isinstance(term, dict):
        values = {key: literal_only(value) for key, value in term.items()}
        return {key: value for key, value in values.items() if not _has_raw(value)}
    return term


def _has_raw(term: Any) -> bool:
    if isinstance(term, RawExpr):
        return True
    if isinstance(term, (list, tuple)):
        return any(_has_raw(item) for item in term)
    if isinstance(term, dict):
        return any(_has_raw(value) for value in term.values())
    return False


def _app_file(descriptor: AppDescriptor) -> dict[str, Any]:
    entry: dict[str, Any] = {
        "vsn": descriptor.vsn,
        "description": descriptor.description,
        "modules": descriptor.modules,
        "registered": descriptor.registered,
        "applications": descriptor.applications,
        "optional_applications": descriptor.optional_applications,
        "included_applications": descriptor.included_applications,
        "env": to_json(descriptor.env) if descriptor.env else {},
        "app_spec_term": encode_term(descriptor.spec),
    }
    if descriptor.mod is not None:
        entry["mod"] = {"module": descriptor.mod.module, "args": to_json(descriptor.mod.args)}
    return entry


def _project_data(project: ProjectDescriptor) -> dict[str, Any]:
    data: dict[Atom, Any] = {Atom("project"): literal_only(project.project)}
    if project.application:
        data[Atom("application")] = literal_only(project.application)
    return {
        "mix_config": to_json(project.project) if project.project else {},
        "mix_config_term": encode_term(literal_only(project.project)),
        "mix_project_data_term": encode_term(data),
    }


def package_entry(record: PackageRecord, graph: dict[str, list[str]]) -> dict[str, Any]:
    """JSON object for one package; optional keys are omitted, never null."""
    profile = record.source_profile
    entry: dict[str, Any] = {
        "app_name": record.name,
        "path": record.path,
        "type": record.provenance.kind,
        "immediate_deps": graph.get(record.name, []),
        "files_present": {
            "ex": profile.has_primary_source,
            "erl": profile.has_secondary_source,
            "hrl": profile.has_headers,
            "xrl_yrl_files": profile.generated_inputs,
            "erl_first_files": profile.compile_first,
        },
    }

    provenance = record.provenance
    if isinstance(provenance, RegistryProvenance):
        hex_info: dict[str, Any] = {
            "hex_name": provenance.hex_name,
            "resolved_version": provenance.resolved_version,
            "managers": list(provenance.managers),
        }
        if provenance.integrity_checksum is not None:
            hex_info["outer_checksum"] = provenance.integrity_checksum
        if provenance.inner_checksum is not None:
            hex_info["inner_checksum"] = provenance.inner_checksum
        if provenance.repo is not None:
            hex_info["repo"] = provenance.repo
        entry["hex_info"] = hex_info
    elif isinstance(provenance, VersionControlProvenance):
        git_info: dict[str, Any] = {"git_url": provenance.url}
        optional = {
            "resolved_commit": provenance.resolved_ref,
            "sparse": provenance.sparse_subpath,
            "branch": provenance.branch,
            "tag": provenance.tag,
        }
        git_info.update((key, value) for key, value in optional.items() if value is not None)
        if provenance.submodules:
            git_info["submodules"] = True
        entry["git_info"] = git_info
    elif isinstance(provenance, LocalPathProvenance) and provenance.relative_path is not None:
        entry["relative_path"] = provenance.relative_path

    if record.app_descriptor is not None:
        entry["app_file"] = _app_file(record.app_descriptor)
    if record.app_src_path is not None:
        entry["app_src_path"] = record.app_src_path
    if record.is_buildable_via_native_tool:
        entry["is_mix_project"] = True
    if record.project is not None:
        entry.update(_project_data(record.project))
    return entry


def render(manifest: Manifest) -> list[dict[str, Any]]:
    """Root package first, then dependencies by name."""
    graph = manifest.graph()
    return [package_entry(record, graph) for record in manifest.packages]


def dumps(manifest: Manifest) -> str:
    """Serialize a manifest to stable JSON text."""
    return json.dumps(render(manifest), indent=2, sort_keys=True)

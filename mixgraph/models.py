"""Core data models for mixgraph."""

from dataclasses import dataclass, field
from typing import Any, ClassVar, Union

from .terms import RawExpr, atom_name, keyword_get, plain_string


@dataclass
class DependencySpec:
    """A dependency declared in the root project's deps list."""

    name: str
    requirement: str | None = None
    options: dict[str, Any] = field(default_factory=dict)
    raw: str | None = None  # source text when the declaration is not a literal

    @property
    def path(self) -> str | None:
        return plain_string(self.options.get("path"))

    @property
    def git(self) -> str | None:
        url = plain_string(self.options.get("git"))
        if url is not None:
            return url
        github = plain_string(self.options.get("github"))
        return f"https://github.com/{github}.git" if github else None

    @property
    def in_umbrella(self) -> bool:
        return self.options.get("in_umbrella") is True

    @property
    def optional(self) -> bool:
        return self.options.get("optional") is True

    @property
    def only(self) -> list[str] | None:
        value = self.options.get("only")
        if value is None or isinstance(value, RawExpr):
            return None
        if isinstance(value, list):
            return [name for name in (atom_name(item) for item in value) if name]
        name = atom_name(value)
        return [name] if name else None

    def enabled_for(self, env: str) -> bool:
        """Whether the dependency applies to the given Mix environment."""
        only = self.only
        return only is None or env in only


@dataclass
class ProjectDescriptor:
    """Statically read contents of a project's mix.exs."""

    path: str
    app: str
    version: str | None
    project: list  # keyword list; non-literal values are RawExpr
    deps: list[DependencySpec] = field(default_factory=list)
    application: list = field(default_factory=list)

    def get(self, key: str, default: Any = None) -> Any:
        return keyword_get(self.project, key, default)

    @property
    def deps_path(self) -> str:
        return plain_string(self.get("deps_path")) or "deps"

    @property
    def lockfile(self) -> str:
        return plain_string(self.get("lockfile")) or "mix.lock"

    @property
    def compiler_options(self) -> dict[str, Any]:
        keys = ("erlc_options", "elixirc_options", "erlc_paths", "elixirc_paths", "compilers")
        return {
            key: value
            for key in keys
            if (value := self.get(key)) is not None and not isinstance(value, RawExpr)
        }


@dataclass(frozen=True)
class RegistryProvenance:
    """Package fetched from a Hex registry."""

    kind: ClassVar[str] = "hex"

    hex_name: str
    resolved_version: str
    integrity_checksum: str | None = None  # outer checksum, 8-tuple lock entries only
    inner_checksum: str | None = None
    managers: tuple[str, ...] = ()
    repo: str | None = None


@dataclass(frozen=True)
class VersionControlProvenance:
    """Package checked out from a git repository."""

    kind: ClassVar[str] = "git"

    url: str
    resolved_ref: str | None = None
    sparse_subpath: str | None = None
    branch: str | None = None
    tag: str | None = None
    submodules: bool = False


@dataclass(frozen=True)
class LocalPathProvenance:
    """Package living at a path relative to the root project."""

    kind: ClassVar[str] = "path"

    relative_path: str | None = None


@dataclass(frozen=True)
class UnknownProvenance:
    """Package whose origin could not be determined."""

    kind: ClassVar[str] = "unknown"


Provenance = Union[
    RegistryProvenance, VersionControlProvenance, LocalPathProvenance, UnknownProvenance
]


@dataclass
class ResolvedDependency:
    """A dependency after matching its declaration against the lock file."""

    name: str
    provenance: Provenance
    immediate_dependencies: list[str] = field(default_factory=list)
    declaration: DependencySpec | None = None


@dataclass(frozen=True)
class SourceProfile:
    """Which kinds of source files a package ships."""

    has_primary_source: bool = False  # .ex
    has_secondary_source: bool = False  # .erl
    has_headers: bool = False  # .hrl
    generated_inputs: list[str] = field(default_factory=list)  # .xrl then .yrl
    compile_first: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class StartCallback:
    """The ``mod`` entry of an application resource file."""

    module: str
    args: Any = field(default_factory=list)


@dataclass(frozen=True)
class AppDescriptor:
    """Contents of a ``.app`` application resource file."""

    vsn: str = ""
    description: str = ""
    modules: list[str] = field(default_factory=list)
    registered: list[str] = field(default_factory=list)
    applications: list[str] = field(default_factory=list)
    optional_applications: list[str] = field(default_factory=list)
    included_applications: list[str] = field(default_factory=list)
    mod: StartCallback | None = None
    env: list = field(default_factory=list)
    spec: list = field(default_factory=list)  # raw keyword list from the file


@dataclass(frozen=True)
class PackageRecord:
    """Build metadata for one package (the root project or a dependency)."""

    name: str
    path: str
    provenance: Provenance
    immediate_dependencies: list[str] = field(default_factory=list)
    source_profile: SourceProfile = field(default_factory=SourceProfile)
    app_descriptor: AppDescriptor | None = None
    is_buildable_via_native_tool: bool = False
    app_src_path: str | None = None
    project: ProjectDescriptor | None = None  # root package only


@dataclass(frozen=True)
class Manifest:
    """Every package record produced by one analysis run."""

    root_package: PackageRecord
    dependencies: list[PackageRecord]
    env: str = "dev"

    @property
    def packages(self) -> list[PackageRecord]:
        return [self.root_package, *self.dependencies]

    def get(self, name: str) -> PackageRecord | None:
        for record in self.packages:
            if record.name == name:
                return record
        return None

    def graph(self) -> dict[str, list[str]]:
        """Immediate-dependency edges restricted to packages in the manifest."""
        known = {record.name for record in self.packages}
        return {
            record.name: [dep for dep in record.immediate_dependencies if dep in known]
            for record in self.packages
        }

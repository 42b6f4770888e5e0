"""Build manifest assembly for a Mix project and its locked dependencies."""

import asyncio
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from .app_file import extract, find_app_src
from .descriptor import read_descriptor
from .errors import LockFileError, MixGraphError
from .lock import read_lock, resolve
from .models import (
    AppDescriptor,
    LocalPathProvenance,
    Manifest,
    PackageRecord,
    ProjectDescriptor,
    ResolvedDependency,
    SourceProfile,
)
from .sources import classify

logger = logging.getLogger(__name__)


@dataclass
class PackageFiles:
    """What was found on disk for one package."""

    source_profile: SourceProfile = field(default_factory=SourceProfile)
    app_descriptor: AppDescriptor | None = None
    app_src_path: str | None = None
    has_mix_exs: bool = False


def inspect_package(name: str, path: Path, root_path: Path, env: str) -> PackageFiles:
    """Classify sources and read the application descriptor of one package.

    Failures degrade to an empty result instead of propagating.
    """
    try:
        return PackageFiles(
            source_profile=classify(path),
            app_descriptor=extract(name, path, root_path, env),
            app_src_path=find_app_src(name, path),
            has_mix_exs=(path / "mix.exs").is_file(),
        )
    except (OSError, MixGraphError) as exc:
        logger.warning("Could not inspect %s at %s: %s", name, path, exc)
        return PackageFiles()


def dependency_path(dep: ResolvedDependency, root_path: Path, deps_path: str) -> Path:
    """Where a dependency lives on disk."""
    provenance = dep.provenance
    if isinstance(provenance, LocalPathProvenance) and provenance.relative_path:
        return Path(os.path.normpath(root_path / provenance.relative_path))
    return Path(os.path.normpath(root_path / deps_path / dep.name))


class ManifestBuilder:
    """Builder that analyses a project and every locked dependency."""

    def __init__(self, max_concurrency: int = 8):
        """Initialize manifest builder.

        Args:
            max_concurrency: Maximum packages inspected at the same time
        """
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self.max_concurrency = max_concurrency

    async def _inspect(
        self,
        semaphore: asyncio.Semaphore,
        name: str,
        path: Path,
        root_path: Path,
        env: str,
    ) -> PackageFiles:
        async with semaphore:
            logger.debug("Inspecting %s at %s", name, path)
            return await asyncio.to_thread(inspect_package, name, path, root_path, env)

    def _root_record(
        self, descriptor: ProjectDescriptor, root_path: Path, files: PackageFiles, env: str
    ) -> PackageRecord:
        immediate = []
        for dep in descriptor.deps:
            if dep.name == descriptor.app or not dep.enabled_for(env):
                continue
            if dep.name not in immediate:
                immediate.append(dep.name)
        return PackageRecord(
            name=descriptor.app,
            path=str(root_path),
            provenance=LocalPathProvenance(relative_path=None),
            immediate_dependencies=immediate,
            source_profile=files.source_profile,
            app_descriptor=files.app_descriptor,
            is_buildable_via_native_tool=True,
            app_src_path=files.app_src_path,
            project=descriptor,
        )

    async def build(self, root_path: str | Path, env: str = "dev") -> Manifest:
        """Analyse a project directory.

        Args:
            root_path: Directory holding the root mix.exs
            env: Mix environment used for ``only:`` filtering and ``_build`` lookups

        Returns:
            Manifest with the root package and every dependency sorted by name

        Raises:
            DescriptorError: If the root mix.exs cannot be read
        """
        root_path = Path(root_path).resolve()
        descriptor = read_descriptor(root_path)

        enabled = [dep for dep in descriptor.deps if dep.enabled_for(env)]
        excluded = [dep.name for dep in descriptor.deps if not dep.enabled_for(env)]
        try:
            lock_entries = read_lock(root_path / descriptor.lockfile)
        except LockFileError as exc:
            logger.error("%s; resolving without lock entries", exc)
            lock_entries = {}
        resolved = resolve(enabled, lock_entries, excluded)
        resolved = [dep for dep in resolved if dep.name != descriptor.app]
        logger.info("Resolved %d dependencies for %s", len(resolved), descriptor.app)

        semaphore = asyncio.Semaphore(self.max_concurrency)
        paths = [dependency_path(dep, root_path, descriptor.deps_path) for dep in resolved]
        root_files, *dep_files = await asyncio.gather(
            self._inspect(semaphore, descriptor.app, root_path, root_path, env),
            *(
                self._inspect(semaphore, dep.name, path, root_path, env)
                for dep, path in zip(resolved, paths)
            ),
        )

        dependencies = [
            PackageRecord(
                name=dep.name,
                path=str(path),
                provenance=dep.provenance,
                immediate_dependencies=list(dep.immediate_dependencies),
                source_profile=files.source_profile,
                app_descriptor=files.app_descriptor,
                is_buildable_via_native_tool=files.has_mix_exs,
                app_src_path=files.app_src_path,
            )
            for dep, path, files in zip(resolved, paths, dep_files)
        ]
        dependencies.sort(key=lambda record: record.name)

        return Manifest(
            root_package=self._root_record(descriptor, root_path, root_files, env),
            dependencies=dependencies,
            env=env,
        )


def build_manifest(root_path: str | Path, env: str = "dev", max_concurrency: int = 8) -> Manifest:
    """Synchronous wrapper around ``ManifestBuilder.build``."""
    return asyncio.run(ManifestBuilder(max_concurrency).build(root_path, env))
